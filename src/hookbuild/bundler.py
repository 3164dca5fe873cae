"""esbuild engine adapter.

The orchestrator only depends on the `BundlerEngine` / `BuildContext`
contract: an engine turns a BuildConfig into a context, and a context can
run a one-shot rebuild or start a watch session.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal, Protocol

from hookbuild.errors import HookBuildError

if TYPE_CHECKING:
    from hookbuild.pipeline.context import BuildConfig

logger = logging.getLogger(__name__)

_FORMATS = {"iife", "cjs", "esm"}

WatchEvent = Literal["start", "end"]


class BundlerConfigError(HookBuildError):
    """Raised when the bundler rejects the assembled configuration."""


class BuildFailedError(HookBuildError):
    """Raised when esbuild exits with an error.

    Covers a failed one-shot rebuild and a watch session that ends with a
    non-zero code it was not asked to stop with.
    """

    def __init__(self, returncode: int) -> None:
        self.returncode = returncode
        super().__init__(f"esbuild exited with code {returncode}")


@dataclass
class BuildResult:
    """Outcome of a one-shot rebuild."""

    returncode: int
    outfile: str
    duration_ms: float


class BuildContext(Protocol):
    def rebuild(self) -> Any: ...

    def watch(self) -> Any: ...


class BundlerEngine(Protocol):
    def context(self, config: BuildConfig) -> BuildContext: ...


def _watch_event(line: str) -> WatchEvent | None:
    """Classify an esbuild watch-mode log line.

    The initial build reports "build finished, watching for changes..." and
    is not an incremental rebuild.
    """
    if "[watch] build started" in line:
        return "start"
    if "[watch] build finished" in line and "watching for changes" not in line:
        return "end"
    return None


class WatchSession:
    """A running `esbuild --watch` process."""

    def __init__(self, process: subprocess.Popen, outfile: str) -> None:
        self.process = process
        self.outfile = outfile
        self.stopped = False

    @property
    def pid(self) -> int:
        return self.process.pid

    def failed(self, returncode: int | None) -> bool:
        """Whether an exit code reports an esbuild error.

        Exits caused by stop() or by a signal from outside count as a normal
        end of the session.
        """
        if returncode is None or returncode == 0 or self.stopped:
            return False
        return returncode > 0

    def wait(self, on_event: Callable[[WatchEvent], None] | None = None) -> int:
        """Hold the process open until esbuild exits.

        esbuild's log output is echoed to stderr. There is no timeout; the
        session ends when the process is terminated externally. If anything
        raises while waiting, including on_event, the process is stopped
        before the exception propagates.

        Args:
            on_event: Called with "start" / "end" around each incremental rebuild

        Returns:
            esbuild exit code
        """
        try:
            if self.process.stderr is not None:
                for line in self.process.stderr:
                    sys.stderr.write(line)
                    event = _watch_event(line)
                    if event and on_event:
                        on_event(event)
            return self.process.wait()
        except BaseException:
            self.stop()
            raise

    def stop(self) -> None:
        """Terminate the watch process. Later calls do nothing."""
        if self.stopped:
            return
        self.stopped = True
        if self.process.poll() is None:
            logger.info(f"Stopping esbuild watch (PID {self.process.pid})")
            self.process.terminate()
            try:
                self.process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self.process.kill()
                self.process.wait()


class EsbuildContext:
    """Build context bound to one BuildConfig."""

    def __init__(self, executable: str, config: BuildConfig, cwd: Path) -> None:
        self.executable = executable
        self.config = config
        self.cwd = cwd

    @property
    def command(self) -> list[str]:
        return [self.executable, *self.config.to_esbuild_args()]

    def rebuild(self) -> BuildResult:
        """Run a single build to completion.

        Raises:
            BuildFailedError: If esbuild reports errors
        """
        start = time.perf_counter()
        logger.debug(f"Running: {' '.join(self.command)}")
        # S603: arguments come from BuildConfig, no shell involved
        result = subprocess.run(self.command, cwd=self.cwd)  # noqa: S603
        duration_ms = (time.perf_counter() - start) * 1000

        if result.returncode != 0:
            raise BuildFailedError(result.returncode)

        return BuildResult(returncode=result.returncode, outfile=self.config.outfile, duration_ms=duration_ms)

    def watch(self) -> WatchSession:
        """Start a watch session and return without waiting for it."""
        command = [*self.command, "--watch=forever"]
        logger.debug(f"Running: {' '.join(command)}")
        process = subprocess.Popen(  # noqa: S603
            command,
            cwd=self.cwd,
            stderr=subprocess.PIPE,
            text=True,
            bufsize=1,
        )
        logger.info(f"esbuild watching for changes (PID {process.pid})")
        return WatchSession(process, outfile=self.config.outfile)


class EsbuildEngine:
    """Creates esbuild contexts after validating the configuration."""

    def __init__(self, executable: str = "esbuild", cwd: Path | None = None) -> None:
        self.executable = executable
        self.cwd = cwd or Path.cwd()

    def resolve_executable(self) -> str | None:
        """Find esbuild on PATH or in the project's node_modules."""
        found = shutil.which(self.executable)
        if found:
            return found
        local = self.cwd / "node_modules" / ".bin" / self.executable
        if local.exists():
            return str(local)
        return None

    def context(self, config: BuildConfig) -> EsbuildContext:
        """Validate config and create a build context.

        Raises:
            BundlerConfigError: If esbuild is missing or the configuration is invalid
        """
        errors = []
        if not config.entry_points:
            errors.append("no entry points")
        if not config.outfile:
            errors.append("no outfile")
        if config.format not in _FORMATS:
            errors.append(f"unknown format {config.format!r} (expected one of {', '.join(sorted(_FORMATS))})")
        if config.sourcemap not in (False, "inline"):
            errors.append(f"unsupported sourcemap {config.sourcemap!r}")
        if errors:
            raise BundlerConfigError("Invalid build configuration: " + "; ".join(errors))

        executable = self.resolve_executable()
        if executable is None:
            raise BundlerConfigError(
                f"esbuild executable {self.executable!r} not found on PATH or in node_modules/.bin"
            )

        return EsbuildContext(executable, config, self.cwd)
