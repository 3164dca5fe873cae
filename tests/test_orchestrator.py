"""Tests for the staged build orchestrator."""

import json
import textwrap
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from hookbuild.bundler import BuildFailedError, BundlerConfigError, WatchSession
from hookbuild.config import HookBuildConfig
from hookbuild.errors import ConfigError
from hookbuild.pipeline import BuildConfig, BuildMode, BuildOrchestrator, ModuleLoadError
from hookbuild.pipeline.orchestrator import settle


class FakeContext:
    """Build context recording the calls the orchestrator makes."""

    def __init__(self, config: BuildConfig, watch_result=None) -> None:
        self.config = config
        self.calls: list[str] = []
        self.seen: list = []
        self.watch_result = watch_result if watch_result is not None else "watch-session"

    def rebuild(self):
        self.calls.append("rebuild")
        return "rebuild-result"

    def watch(self):
        self.calls.append("watch")
        return self.watch_result


class FakeEngine:
    """Bundler engine that records the configurations it receives."""

    def __init__(self, watch_result=None, error: Exception | None = None) -> None:
        self.configs: list[BuildConfig] = []
        self.contexts: list[FakeContext] = []
        self.watch_result = watch_result
        self.error = error

    def context(self, config: BuildConfig) -> FakeContext:
        if self.error:
            raise self.error
        self.configs.append(config)
        ctx = FakeContext(config, self.watch_result)
        self.contexts.append(ctx)
        return ctx


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A minimal plugin project with tsconfig.json and manifest.json."""
    (tmp_path / "tsconfig.json").write_text(json.dumps({"compilerOptions": {"target": "ES6"}}))
    (tmp_path / "manifest.json").write_text(
        json.dumps(
            {
                "name": "Sticky Headings",
                "version": "1.2.0",
                "helpUrl": "https://github.com/GottZ/sticky-headings",
                "author": "GottZ",
            }
        )
    )
    return tmp_path


def write_hooks(project: Path, source: str) -> Path:
    path = project / ".devhooks.py"
    path.write_text(textwrap.dedent(source))
    return path


def make_orchestrator(project: Path, mode: BuildMode, engine: FakeEngine | None = None, **settings):
    return BuildOrchestrator(
        project,
        mode,
        settings=HookBuildConfig(**settings),
        engine=engine or FakeEngine(),
    )


class TestConfigure:
    def test_production_baseline(self, project: Path):
        config = make_orchestrator(project, BuildMode.PRODUCTION).configure()

        assert config.minify is True
        assert config.sourcemap is False
        assert config.target == "es6"
        assert config.entry_points == ["main.ts"]
        assert config.outfile == "main.js"
        assert "obsidian" in config.externals
        assert "„Sticky Headings”" in config.banner

    def test_development_baseline(self, project: Path):
        config = make_orchestrator(project, BuildMode.DEVELOPMENT).configure()

        assert config.minify is False
        assert config.sourcemap == "inline"

    def test_missing_manifest(self, project: Path):
        (project / "manifest.json").unlink()

        with pytest.raises(ConfigError):
            make_orchestrator(project, BuildMode.PRODUCTION).configure()


class TestScenarios:
    """End-to-end runs through every stage."""

    def test_no_hooks_production(self, project: Path):
        engine = FakeEngine()
        result = make_orchestrator(project, BuildMode.PRODUCTION, engine).run()

        assert result == "rebuild-result"
        assert len(engine.configs) == 1
        assert engine.contexts[0].calls == ["rebuild"]

    def test_no_hooks_development_starts_watch(self, project: Path):
        engine = FakeEngine()
        result = make_orchestrator(project, BuildMode.DEVELOPMENT, engine).run()

        assert result == "watch-session"
        assert engine.contexts[0].calls == ["watch"]

    def test_on_config_mutation_reaches_engine(self, project: Path):
        write_hooks(
            project,
            """
            def on_config(config, mode):
                config.minify = False
            """,
        )
        engine = FakeEngine()
        orchestrator = make_orchestrator(project, BuildMode.PRODUCTION, engine)
        orchestrator.run()

        assert engine.configs[0].minify is False
        assert engine.contexts[0].calls == ["rebuild"]

    def test_on_config_mutates_same_object(self, project: Path):
        write_hooks(
            project,
            """
            def on_config(config, mode):
                config.extra_args.append("--define:DEBUG=true")
            """,
        )
        engine = FakeEngine()
        orchestrator = make_orchestrator(project, BuildMode.PRODUCTION, engine)
        config = orchestrator.configure()
        orchestrator.initialize(config)

        assert engine.configs[0] is config
        assert config.extra_args == ["--define:DEBUG=true"]

    def test_on_build_replaces_default(self, project: Path):
        write_hooks(
            project,
            """
            def on_build(context, mode):
                return "X"

            def on_post_build(context, result, mode):
                context.seen.append(result)
            """,
        )
        for mode in BuildMode:
            engine = FakeEngine()
            result = make_orchestrator(project, mode, engine).run()

            assert result == "X"
            assert engine.contexts[0].seen == ["X"]
            assert engine.contexts[0].calls == []

    def test_broken_hooks_abort_before_configure(self, project: Path):
        write_hooks(project, "def on_config(:\n")
        engine = FakeEngine()

        with patch.object(BuildConfig, "baseline") as baseline:
            with pytest.raises(ModuleLoadError):
                make_orchestrator(project, BuildMode.PRODUCTION, engine).run()

        baseline.assert_not_called()
        assert engine.configs == []


class TestStageOrder:
    def test_hooks_called_in_order_with_same_mode(self, project: Path):
        write_hooks(
            project,
            """
            events = []

            def on_config(config, mode):
                events.append(("config", mode))

            def on_pre_build(context, mode):
                events.append(("pre", mode))
                context.seen.append("pre")

            def on_post_build(context, result, mode):
                events.append(("post", mode))
                context.seen.append(("post", result))
                context.seen.append(events)
            """,
        )
        engine = FakeEngine()
        make_orchestrator(project, BuildMode.PRODUCTION, engine).run()

        ctx = engine.contexts[0]
        assert ctx.seen[0] == "pre"
        assert ctx.seen[1] == ("post", "rebuild-result")
        events = ctx.seen[2]
        assert [stage for stage, _ in events] == ["config", "pre", "post"]
        assert {mode for _, mode in events} == {BuildMode.PRODUCTION}

    def test_pre_build_runs_after_initialize(self, project: Path):
        write_hooks(
            project,
            """
            def on_pre_build(context, mode):
                context.seen.append(list(context.calls))
            """,
        )
        engine = FakeEngine()
        make_orchestrator(project, BuildMode.PRODUCTION, engine).run()

        # Context exists, build not started yet
        assert engine.contexts[0].seen == [[]]

    def test_async_hooks_are_awaited(self, project: Path):
        write_hooks(
            project,
            """
            import asyncio

            async def on_build(context, mode):
                await asyncio.sleep(0)
                return "async-result"
            """,
        )
        result = make_orchestrator(project, BuildMode.PRODUCTION).run()

        assert result == "async-result"


class TestFailures:
    def test_on_config_error_aborts_before_initialize(self, project: Path):
        write_hooks(
            project,
            """
            def on_config(config, mode):
                raise RuntimeError("bad override")
            """,
        )
        engine = FakeEngine()

        with pytest.raises(RuntimeError, match="bad override"):
            make_orchestrator(project, BuildMode.PRODUCTION, engine).run()

        assert engine.configs == []

    def test_engine_rejection_aborts(self, project: Path):
        write_hooks(
            project,
            """
            def on_pre_build(context, mode):
                raise AssertionError("must not run")
            """,
        )
        engine = FakeEngine(error=BundlerConfigError("Invalid build configuration: no entry points"))

        with pytest.raises(BundlerConfigError):
            make_orchestrator(project, BuildMode.PRODUCTION, engine).run()

    def test_post_build_error_propagates(self, project: Path):
        write_hooks(
            project,
            """
            def on_post_build(context, result, mode):
                raise ValueError("post failed")
            """,
        )

        with pytest.raises(ValueError, match="post failed"):
            make_orchestrator(project, BuildMode.PRODUCTION).run()


def make_session(lines: list[str], returncode: int = 0) -> WatchSession:
    process = Mock()
    process.stderr = iter(lines)
    process.wait.return_value = returncode
    process.poll.return_value = None
    process.pid = 1234
    return WatchSession(process, outfile="main.js")


WATCH_OUTPUT = [
    "[watch] build finished, watching for changes...\n",
    '[watch] build started (change: "main.ts")\n',
    "[watch] build finished\n",
    '[watch] build started (change: "main.ts")\n',
    "[watch] build finished\n",
]

COUNTING_HOOKS = """
def on_pre_build(context, mode):
    context.seen.append("pre")

def on_post_build(context, result, mode):
    context.seen.append("post")
"""


class TestWatchSession:
    def test_hooks_once_per_session(self, project: Path):
        write_hooks(project, COUNTING_HOOKS)
        session = make_session(WATCH_OUTPUT)
        engine = FakeEngine(watch_result=session)

        result = make_orchestrator(project, BuildMode.DEVELOPMENT, engine, watch_hooks="once").run()

        assert result is session
        assert engine.contexts[0].seen == ["pre", "post"]
        session.process.wait.assert_called_once()

    def test_hooks_every_rebuild(self, project: Path):
        write_hooks(project, COUNTING_HOOKS)
        session = make_session(WATCH_OUTPUT)
        engine = FakeEngine(watch_result=session)

        make_orchestrator(project, BuildMode.DEVELOPMENT, engine, watch_hooks="every").run()

        assert engine.contexts[0].seen == ["pre", "post", "pre", "post", "pre", "post"]

    def test_on_build_session_is_not_held(self, project: Path):
        """Only the default watch path holds the process open."""
        session = make_session(WATCH_OUTPUT)
        engine = FakeEngine()
        orchestrator = make_orchestrator(project, BuildMode.DEVELOPMENT, engine)

        with patch.object(orchestrator, "load_hooks") as load_hooks:
            load_hooks.return_value.has.return_value = True
            load_hooks.return_value.resolve.return_value = lambda *args: session
            result = orchestrator.run()

        assert result is session
        session.process.wait.assert_not_called()

    def test_post_build_error_stops_watch(self, project: Path):
        """A failing on_post_build leaves no esbuild process running."""
        write_hooks(
            project,
            """
            def on_post_build(context, result, mode):
                raise RuntimeError("post failed")
            """,
        )
        session = make_session(WATCH_OUTPUT)
        engine = FakeEngine(watch_result=session)

        with pytest.raises(RuntimeError, match="post failed"):
            make_orchestrator(project, BuildMode.DEVELOPMENT, engine).run()

        session.process.terminate.assert_called_once()
        assert session.stopped is True

    def test_rebuild_hook_error_stops_watch(self, project: Path):
        """With watch_hooks every, a hook failing on a rebuild ends the session."""
        write_hooks(
            project,
            """
            calls = []

            def on_pre_build(context, mode):
                calls.append(mode)
                if len(calls) > 1:
                    raise RuntimeError("rebuild hook failed")
            """,
        )
        session = make_session(WATCH_OUTPUT)
        engine = FakeEngine(watch_result=session)

        with pytest.raises(RuntimeError, match="rebuild hook failed"):
            make_orchestrator(project, BuildMode.DEVELOPMENT, engine, watch_hooks="every").run()

        session.process.terminate.assert_called_once()

    def test_failed_watch_exit_raises(self, project: Path):
        session = make_session(["✘ [ERROR] Could not resolve main.ts\n"], returncode=1)
        engine = FakeEngine(watch_result=session)

        with pytest.raises(BuildFailedError) as exc_info:
            make_orchestrator(project, BuildMode.DEVELOPMENT, engine).run()

        assert exc_info.value.returncode == 1

    def test_terminated_watch_is_not_a_failure(self, project: Path):
        """esbuild killed by a signal from outside ends the session normally."""
        session = make_session(WATCH_OUTPUT, returncode=-15)
        engine = FakeEngine(watch_result=session)

        result = make_orchestrator(project, BuildMode.DEVELOPMENT, engine).run()

        assert result is session
        session.process.terminate.assert_not_called()


class TestSettle:
    def test_plain_value_passes_through(self):
        assert settle("result") == "result"
        assert settle(None) is None

    def test_coroutine_runs_to_completion(self):
        async def hook():
            return "done"

        assert settle(hook()) == "done"
