"""Discovery and loading of the optional devhooks module.

The module lives at a fixed project-relative path (`.devhooks.py` by
default). Its absence is the common case and not an error. A module that
exists but fails to evaluate is operator error and aborts the build.
"""

from __future__ import annotations

import importlib.util
import logging
import sys
from pathlib import Path
from types import ModuleType

from hookbuild.config import fs_exists
from hookbuild.errors import HookBuildError
from hookbuild.pipeline.hook import HookSet

logger = logging.getLogger(__name__)

MODULE_NAME = "hookbuild_devhooks"


class ModuleLoadError(HookBuildError):
    """Raised when a devhooks module exists but cannot be evaluated."""

    def __init__(self, path: Path, cause: BaseException) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to load devhooks from {path}: {type(cause).__name__}: {cause}")


def discover(path: str | Path) -> bool:
    """Check whether a devhooks module exists at path.

    Args:
        path: Candidate module path

    Returns:
        True if the file exists
    """
    return fs_exists(path) and Path(path).is_file()


def load(path: str | Path) -> ModuleType:
    """Evaluate the devhooks module at path.

    The module's directory is on sys.path while it executes, so it can
    import helper modules that sit beside it.

    Args:
        path: Path to an existing Python source file

    Returns:
        The evaluated module

    Raises:
        ModuleLoadError: If the file cannot be compiled or raises while executing
    """
    path = Path(path)
    spec = importlib.util.spec_from_file_location(MODULE_NAME, path)
    if spec is None or spec.loader is None:
        raise ModuleLoadError(path, ImportError(f"no module loader for {path}"))

    module = importlib.util.module_from_spec(spec)
    sys.modules[MODULE_NAME] = module
    search_dir = str(path.resolve().parent)
    sys.path.insert(0, search_dir)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        sys.modules.pop(MODULE_NAME, None)
        raise ModuleLoadError(path, e) from e
    finally:
        sys.path.remove(search_dir)

    logger.debug(f"Evaluated devhooks module {path}")
    return module


def load_hooks(path: str | Path, logs: bool = True) -> HookSet:
    """Load the capability set from an optional devhooks module.

    Args:
        path: Path where the devhooks module may live
        logs: Whether to report if the module is used

    Returns:
        HookSet with the implemented hooks, or an empty HookSet if the file is absent

    Raises:
        ModuleLoadError: If the file exists but fails to load
    """
    path = Path(path)
    if not discover(path):
        if logs:
            logger.info(f"Skipping devhooks, {path} not found")
        return HookSet.empty()

    module = load(path)
    if logs:
        logger.warning(f"Using devhooks from {path}")
    return HookSet.from_module(module, source=path)
