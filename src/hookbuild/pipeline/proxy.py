"""Total-safety facade over a devhooks capability set.

Every hook name is callable through the proxy:

    hooks = devhooks_proxy(".devhooks.py")
    hooks.on_config(config, mode)     # real hook, or a no-op if absent
    hooks.has("on_build")             # True only for an implemented hook

Dunder lookups resolve to absent, so the proxy is never mistaken for an
awaitable, iterable or other protocol object.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from hookbuild.pipeline.hook import HookFn, HookName, HookSet
from hookbuild.pipeline.loader import load_hooks

logger = logging.getLogger(__name__)


def _noop(*args: Any, **kwargs: Any) -> None:
    """Stand-in for hooks the devhooks module does not implement."""
    return None


class HookProxy:
    """Resolves hook names to real implementations or safe no-ops.

    Attributes:
        hook_set: Underlying capability set
        logs: Whether hook resolution is logged
    """

    def __init__(self, hook_set: HookSet | None = None, logs: bool = True) -> None:
        self.hook_set = hook_set if hook_set is not None else HookSet.empty()
        self.logs = logs

    def has(self, name: str | HookName) -> bool:
        """Check whether the devhooks module implements a hook.

        Args:
            name: Hook name

        Returns:
            True iff the module exports a callable under name
        """
        return str(name) in self.hook_set

    def active(self) -> list[str]:
        """Names of the implemented hooks, sorted."""
        return sorted(self.hook_set)

    def resolve(self, name: str | HookName) -> HookFn:
        """Return the implementation of a hook, or a no-op if it has none.

        Args:
            name: Hook name

        Returns:
            The module's own callable, or a no-op accepting any arguments
        """
        name = str(name)
        if name in self.hook_set:
            if self.logs:
                logger.warning(f"Using devhook: „{name}”")
            return self.hook_set[name]

        if self.logs and self.hook_set.loaded:
            logger.info(f"Skipping devhook: „{name}”")
        return _noop

    def __getattr__(self, name: str) -> HookFn:
        # Only reached for names not defined on the instance or class
        if name.startswith("__") and name.endswith("__"):
            raise AttributeError(name)
        if name in ("hook_set", "logs"):
            # Instance not initialised yet (e.g. copy.copy)
            raise AttributeError(name)
        return self.resolve(name)

    def __repr__(self) -> str:
        return f"HookProxy(source={self.hook_set.source}, active={self.active()})"


def devhooks_proxy(path: str | Path, logs: bool = True) -> HookProxy:
    """Load the optional devhooks module at path and wrap it in a HookProxy.

    Args:
        path: Path where the devhooks module may live
        logs: Whether to log devhooks usage

    Returns:
        HookProxy over the module's hooks (empty if the file is absent)

    Raises:
        ModuleLoadError: If the file exists but fails to load
    """
    return HookProxy(load_hooks(path, logs=logs), logs=logs)
