"""hookbuild CLI - Tyro implementation."""

import logging
import shutil
import sys
from pathlib import Path
from typing import Annotated

import attrs
import tyro
from rich import print
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.traceback import Traceback

from hookbuild.banner import generate_banner
from hookbuild.config import HookBuildConfig, Manifest, load_config
from hookbuild.errors import HookBuildError
from hookbuild.pipeline import BuildMode, BuildOrchestrator, HookName, ModuleLoadError, devhooks_proxy

logger = logging.getLogger(__name__)

TEMPLATE_PATH = Path(__file__).parent / "templates" / "devhooks.py"

_HOOK_STAGES = {
    HookName.ON_CONFIG: "configure",
    HookName.ON_PRE_BUILD: "pre-build",
    HookName.ON_BUILD: "build",
    HookName.ON_POST_BUILD: "post-build",
}


# Subcommand definitions using attrs
@attrs.define
class Build:
    """Bundle the plugin, running any devhooks around each stage."""

    mode: Annotated[str | None, tyro.conf.Positional] = None
    """'production' for a minified one-shot build; anything else watches in development mode."""


@attrs.define
class Banner:
    """Print the header comment generated from manifest.json."""


@attrs.define
class Hooks:
    """Show which devhooks the project's hooks module implements."""


@attrs.define
class InitHooks:
    """Write a template devhooks module into the project."""

    force: bool = False
    """Overwrite an existing devhooks module."""


Command = (
    Annotated[Build, tyro.conf.subcommand(name="build")]
    | Annotated[Banner, tyro.conf.subcommand(name="banner")]
    | Annotated[Hooks, tyro.conf.subcommand(name="hooks")]
    | Annotated[InitHooks, tyro.conf.subcommand(name="init-hooks")]
)


def setup_logging(debug: bool = False) -> None:
    """Configure logging for the build."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)-20s - %(levelname)-8s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if debug:
        logging.getLogger("hookbuild").setLevel(logging.DEBUG)


def report_error(error: HookBuildError) -> None:
    """Print a build failure and its underlying cause to stderr."""
    console = Console(stderr=True)
    console.print(Panel(str(error), title="Build failed", border_style="red"))
    cause = error.__cause__
    if cause is not None:
        console.print(Traceback.from_exception(type(cause), cause, cause.__traceback__))


def run_build(project_dir: Path, settings: HookBuildConfig, mode_arg: str | None) -> None:
    """Run the staged build and exit with its status.

    Args:
        project_dir: Project root
        settings: Build tool settings
        mode_arg: Process-level mode argument
    """
    mode = BuildMode.from_argument(mode_arg)
    orchestrator = BuildOrchestrator(project_dir, mode, settings=settings)

    try:
        orchestrator.run()
    except HookBuildError as e:
        report_error(e)
        sys.exit(1)
    except KeyboardInterrupt:
        print("[yellow]Stopped.[/yellow]", file=sys.stderr)
        sys.exit(130)

    sys.exit(0)


def show_banner(project_dir: Path, settings: HookBuildConfig) -> None:
    manifest = Manifest.from_file(project_dir / settings.manifest_path)
    # Plain stdout: rich markup would mangle the banner's brackets and backslashes
    sys.stdout.write(generate_banner(manifest) + "\n")


def show_hooks(project_dir: Path, settings: HookBuildConfig) -> None:
    """Print a table of known hooks and whether the devhooks module implements them."""
    path = project_dir / settings.hooks_path
    try:
        hooks = devhooks_proxy(path, logs=False)
    except ModuleLoadError as e:
        report_error(e)
        sys.exit(1)

    console = Console()
    if not hooks.hook_set.loaded:
        console.print(f"No devhooks module at [cyan]{path}[/cyan]; all stages use defaults.")
        return

    console.print(f"Devhooks module: [cyan]{path}[/cyan]")
    table = Table(show_header=True, header_style="bold")
    table.add_column("Hook", style="cyan")
    table.add_column("Stage")
    table.add_column("Status")

    for name in HookName:
        status = "[green]override[/green]" if hooks.has(name) else "[dim]default[/dim]"
        table.add_row(name.value, _HOOK_STAGES[name], status)

    console.print(table)


def init_hooks(project_dir: Path, settings: HookBuildConfig, force: bool = False) -> None:
    """Copy the devhooks template into the project.

    Args:
        project_dir: Project root
        settings: Build tool settings (for the hooks path)
        force: Overwrite an existing module
    """
    path = project_dir / settings.hooks_path
    if path.exists() and not force:
        print(f"[red]Error:[/red] {path} already exists. Use --force to overwrite.", file=sys.stderr)
        sys.exit(1)

    path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy(TEMPLATE_PATH, path)
    print(f"[green]Created[/green] {path}")


def main(
    cmd: Annotated[Command, tyro.conf.arg(name="")],
    *,
    project_dir: Annotated[Path | None, tyro.conf.arg(help="Project directory (default: current directory)")] = None,
) -> None:
    """hookbuild - esbuild orchestration with optional developer hooks."""
    if project_dir is None:
        project_dir = Path.cwd()

    try:
        settings = load_config(project_dir)
    except HookBuildError as e:
        setup_logging()
        report_error(e)
        sys.exit(1)

    setup_logging(debug=settings.debug)

    if isinstance(cmd, Build):
        run_build(project_dir, settings, cmd.mode)

    elif isinstance(cmd, Banner):
        try:
            show_banner(project_dir, settings)
        except HookBuildError as e:
            report_error(e)
            sys.exit(1)

    elif isinstance(cmd, Hooks):
        show_hooks(project_dir, settings)

    elif isinstance(cmd, InitHooks):
        init_hooks(project_dir, settings, force=cmd.force)


def entry_point() -> None:
    """Entry point for the hookbuild command."""
    tyro.cli(main)


if __name__ == "__main__":
    entry_point()
