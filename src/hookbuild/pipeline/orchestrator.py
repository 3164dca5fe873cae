"""Staged build orchestration with devhooks interception.

One invocation walks a fixed sequence, never branching back:

    load hooks → configure → initialize → pre-build → build → post-build

Hooks are invoked at each stage through a HookProxy, so a missing hook is a
no-op. Errors from any stage, including hook implementations, propagate to
the caller and abort the build.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from hookbuild.banner import generate_banner
from hookbuild.bundler import BuildFailedError, EsbuildEngine, WatchSession
from hookbuild.config import HookBuildConfig, Manifest, ProjectSettings, load_config
from hookbuild.pipeline.context import BuildConfig, BuildMode
from hookbuild.pipeline.hook import HookName
from hookbuild.pipeline.proxy import HookProxy, devhooks_proxy

if TYPE_CHECKING:
    from hookbuild.bundler import BuildContext, BundlerEngine, WatchEvent

logger = logging.getLogger(__name__)


def settle(value: Any) -> Any:
    """Run an awaitable hook result to completion; pass other values through.

    Each awaitable gets a fresh event loop from asyncio.run, so async
    resources such as clients or tasks cannot be shared between stages. It
    also means the orchestrator must be driven from synchronous code: called
    inside a running event loop, asyncio.run raises RuntimeError.
    """
    if not inspect.isawaitable(value):
        return value

    async def _await() -> Any:
        return await value

    return asyncio.run(_await())


class BuildOrchestrator:
    """Drives one build invocation.

    Attributes:
        project_dir: Root of the project being built
        mode: Build mode, fixed for the whole invocation
        settings: Build tool settings
        engine: Bundler engine creating build contexts
        hooks: Devhooks proxy, loaded on first use
    """

    def __init__(
        self,
        project_dir: Path,
        mode: BuildMode,
        settings: HookBuildConfig | None = None,
        engine: BundlerEngine | None = None,
        hooks: HookProxy | None = None,
    ) -> None:
        self.project_dir = project_dir
        self.mode = mode
        self.settings = settings if settings is not None else load_config(project_dir)
        self.engine = engine if engine is not None else EsbuildEngine(self.settings.esbuild, cwd=project_dir)
        self.hooks = hooks
        self._watch_session: WatchSession | None = None

        logger.info(f"Building in {mode.value} mode.")

    def load_hooks(self) -> HookProxy:
        """Load the optional devhooks module.

        Raises:
            ModuleLoadError: If the module exists but fails to load
        """
        if self.hooks is None:
            path = self.project_dir / self.settings.hooks_path
            self.hooks = devhooks_proxy(path, logs=self.settings.hook_logs)
        return self.hooks

    def configure(self) -> BuildConfig:
        """Assemble the baseline configuration and let on_config reshape it in place."""
        hooks = self.load_hooks()

        project = ProjectSettings.from_file(self.project_dir / self.settings.tsconfig_path)
        manifest = Manifest.from_file(self.project_dir / self.settings.manifest_path)

        config = BuildConfig.baseline(
            self.settings,
            mode=self.mode,
            target=project.target,
            banner=generate_banner(manifest),
        )
        settle(hooks.resolve(HookName.ON_CONFIG)(config, self.mode))
        return config

    def initialize(self, config: BuildConfig) -> BuildContext:
        """Hand the final configuration to the bundler engine."""
        logger.debug(f"Bundler arguments: {config.to_esbuild_args()}")
        return self.engine.context(config)

    def pre_build(self, context: BuildContext) -> None:
        settle(self.load_hooks().resolve(HookName.ON_PRE_BUILD)(context, self.mode))

    def build(self, context: BuildContext) -> Any:
        """Run the build step.

        A devhooks on_build replaces the default entirely and its return value
        becomes the result. Otherwise production runs one rebuild and
        development starts a watch session.
        """
        hooks = self.load_hooks()
        if hooks.has(HookName.ON_BUILD):
            return settle(hooks.resolve(HookName.ON_BUILD)(context, self.mode))

        if self.mode.is_production:
            return context.rebuild()

        result = context.watch()
        if isinstance(result, WatchSession):
            self._watch_session = result
        return result

    def post_build(self, context: BuildContext, result: Any) -> None:
        settle(self.load_hooks().resolve(HookName.ON_POST_BUILD)(context, result, self.mode))

    def hold(self, context: BuildContext) -> int | None:
        """Keep the process open on a default watch session until it ends.

        With `watch_hooks: every`, each incremental rebuild re-runs the
        pre-build and post-build hooks.

        Returns:
            esbuild exit code, or None if no watch session was started
        """
        session = self._watch_session
        if session is None:
            return None

        def on_event(event: WatchEvent) -> None:
            if event == "start":
                self.pre_build(context)
            else:
                self.post_build(context, session)

        every = self.settings.watch_hooks == "every"
        return session.wait(on_event if every else None)

    def run(self) -> Any:
        """Execute every stage in order.

        A watch session started by the build stage is stopped if post-build
        or holding raises, so no esbuild process outlives a failed build.

        Returns:
            The build result (a BuildResult, a WatchSession, or whatever on_build returned)

        Raises:
            BuildFailedError: If the held watch session exits with an error
        """
        self.load_hooks()
        config = self.configure()
        context = self.initialize(config)
        self.pre_build(context)
        result = self.build(context)
        try:
            self.post_build(context, result)
            returncode = self.hold(context)
        except BaseException:
            if self._watch_session is not None:
                self._watch_session.stop()
            raise

        if self._watch_session is not None and self._watch_session.failed(returncode):
            raise BuildFailedError(returncode)
        return result
