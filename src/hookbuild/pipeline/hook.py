"""Hook names and the capability set loaded from a devhooks module.

A devhooks module may define any subset of:

    def on_config(config: BuildConfig, mode: BuildMode) -> None
    def on_pre_build(context: BuildContext, mode: BuildMode) -> None
    def on_build(context: BuildContext, mode: BuildMode) -> Any
    def on_post_build(context: BuildContext, result: Any, mode: BuildMode) -> None

Hooks may also be coroutine functions.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType, ModuleType
from typing import Any

HookFn = Callable[..., Any]


class HookName(str, Enum):
    """Lifecycle stages a devhooks module can intercept."""

    ON_CONFIG = "on_config"
    ON_PRE_BUILD = "on_pre_build"
    ON_BUILD = "on_build"
    ON_POST_BUILD = "on_post_build"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class HookSet(Mapping[str, HookFn]):
    """Immutable mapping of hook name to the callable implementing it.

    Attributes:
        hooks: Implemented hooks, keyed by hook name
        loaded: Whether a devhooks module was found and loaded
        source: Path of the module the hooks came from
    """

    hooks: Mapping[str, HookFn] = field(default_factory=dict)
    loaded: bool = False
    source: Path | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "hooks", MappingProxyType(dict(self.hooks)))

    @classmethod
    def empty(cls) -> HookSet:
        """Capability set for a run without a devhooks module."""
        return cls()

    @classmethod
    def from_module(cls, module: ModuleType, source: Path | None = None) -> HookSet:
        """Collect the known hooks a module exports as callables.

        Non-callable attributes that happen to share a hook name are ignored.
        """
        hooks = {}
        for name in HookName:
            candidate = getattr(module, name.value, None)
            if callable(candidate):
                hooks[name.value] = candidate
        return cls(hooks=hooks, loaded=True, source=source)

    def __getitem__(self, key: str) -> HookFn:
        return self.hooks[str(key)]

    def __iter__(self) -> Iterator[str]:
        return iter(self.hooks)

    def __len__(self) -> int:
        return len(self.hooks)

    def __contains__(self, key: object) -> bool:
        return str(key) in self.hooks
