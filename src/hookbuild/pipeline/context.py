"""Build mode and bundler configuration passed through the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from hookbuild.config import HookBuildConfig


class BuildMode(Enum):
    """Environment mode, decided once per invocation."""

    PRODUCTION = "production"
    DEVELOPMENT = "development"

    @classmethod
    def from_argument(cls, arg: str | None) -> BuildMode:
        """Map the process-level mode argument to a BuildMode.

        Only the literal "production" selects production; anything else,
        including no argument, is development.
        """
        return cls.PRODUCTION if arg == "production" else cls.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        return self is BuildMode.PRODUCTION


@dataclass
class BuildConfig:
    """Configuration handed to the bundler engine.

    Hooks receive this object in the configure stage and may mutate it in
    place; the orchestrator keeps using the same instance afterwards.

    Attributes:
        entry_points: Source files to bundle
        outfile: Path of the single output bundle
        externals: Module names left to the runtime environment
        target: ECMAScript target, None for the bundler default
        format: Output module format
        bundle: Inline imported dependencies
        minify: Minify the output
        sourcemap: False, or "inline" to embed a source map
        tree_shaking: Drop unused code
        log_level: Bundler log verbosity
        banner: Comment block prepended to the output
        extra_args: Raw bundler arguments appended verbatim
    """

    entry_points: list[str] = field(default_factory=list)
    outfile: str = "main.js"
    externals: list[str] = field(default_factory=list)
    target: str | None = None
    format: str = "cjs"
    bundle: bool = True
    minify: bool = False
    sourcemap: Literal[False, "inline"] = False
    tree_shaking: bool = True
    log_level: str = "info"
    banner: str = ""
    extra_args: list[str] = field(default_factory=list)

    @classmethod
    def baseline(
        cls,
        settings: HookBuildConfig,
        *,
        mode: BuildMode,
        target: str | None,
        banner: str,
    ) -> BuildConfig:
        """Assemble the default configuration for a mode.

        Args:
            settings: Build tool settings
            mode: Production minifies and omits source maps; development
                  keeps output readable with inline source maps
            target: ECMAScript target from the project settings
            banner: Header comment for the output file

        Returns:
            New BuildConfig
        """
        return cls(
            entry_points=list(settings.entry_points),
            outfile=settings.outfile,
            externals=list(settings.externals),
            target=target,
            format=settings.format,
            minify=mode.is_production,
            sourcemap=False if mode.is_production else "inline",
            log_level=settings.log_level,
            banner=banner,
        )

    def to_esbuild_args(self) -> list[str]:
        """Render the configuration as esbuild command-line arguments."""
        args = list(self.entry_points)
        if self.bundle:
            args.append("--bundle")
        args.extend(f"--external:{name}" for name in self.externals)
        args.append(f"--format={self.format}")
        if self.target:
            args.append(f"--target={self.target}")
        args.append(f"--log-level={self.log_level}")
        if self.sourcemap:
            args.append(f"--sourcemap={self.sourcemap}")
        args.append(f"--tree-shaking={'true' if self.tree_shaking else 'false'}")
        if self.minify:
            args.append("--minify")
        if self.banner:
            args.append(f"--banner:js={self.banner}")
        args.append(f"--outfile={self.outfile}")
        args.extend(self.extra_args)
        return args
