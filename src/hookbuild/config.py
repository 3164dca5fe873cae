"""Configuration management for hookbuild.

Two kinds of configuration are read here:

1. **Project documents** (read-only JSON inputs of the plugin being built)
   - `tsconfig.json`: provides `compilerOptions.target`, the esbuild target
   - `manifest.json`: provides `name`, `version`, `helpUrl`, `author` for the banner

2. **Build tool settings** (`HookBuildConfig`), discovered in this order:

   1. **HOOKBUILD_CONFIG Environment Variable** (Highest Priority)
      - Path to a YAML file: `export HOOKBUILD_CONFIG=/path/to/hookbuild.yaml`
   2. **Project Directory**
      - Looks for: `{project_dir}/hookbuild.yaml`
   3. **Defaults** (Fallback)
      - Built-in defaults, still subject to `HOOKBUILD_*` environment overrides

The YAML file keeps its settings under a `hookbuild:` section:

    hookbuild:
      hooks_path: .devhooks.py
      entry_points: [main.ts]
      outfile: main.js
      watch_hooks: every
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from hookbuild.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "hookbuild.yaml"

# Modules provided by the host application at runtime
HOST_EXTERNALS = [
    "obsidian",
    "electron",
    "@codemirror/autocomplete",
    "@codemirror/collab",
    "@codemirror/commands",
    "@codemirror/language",
    "@codemirror/lint",
    "@codemirror/search",
    "@codemirror/state",
    "@codemirror/view",
    "@lezer/common",
    "@lezer/highlight",
    "@lezer/lr",
]

NODE_BUILTINS = [
    "assert",
    "assert/strict",
    "async_hooks",
    "buffer",
    "child_process",
    "cluster",
    "console",
    "constants",
    "crypto",
    "dgram",
    "diagnostics_channel",
    "dns",
    "dns/promises",
    "domain",
    "events",
    "fs",
    "fs/promises",
    "http",
    "http2",
    "https",
    "inspector",
    "inspector/promises",
    "module",
    "net",
    "os",
    "path",
    "path/posix",
    "path/win32",
    "perf_hooks",
    "process",
    "punycode",
    "querystring",
    "readline",
    "readline/promises",
    "repl",
    "stream",
    "stream/consumers",
    "stream/promises",
    "stream/web",
    "string_decoder",
    "timers",
    "timers/promises",
    "tls",
    "trace_events",
    "tty",
    "url",
    "util",
    "util/types",
    "v8",
    "vm",
    "wasi",
    "worker_threads",
    "zlib",
]


def fs_exists(path: str | Path) -> bool:
    """Check whether a file or directory exists.

    Args:
        path: Path to check

    Returns:
        True if the path exists, False otherwise (including unreadable parents)
    """
    try:
        return Path(path).exists()
    except OSError:
        return False


def read_json(path: str | Path) -> dict[str, Any]:
    """Read a JSON document from the filesystem.

    Args:
        path: Path to the JSON file

    Returns:
        Parsed JSON object

    Raises:
        ConfigError: If the file is missing, unreadable or not a JSON object
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a JSON object in {path}, got {type(data).__name__}")
    return data


class CompilerOptions(BaseModel):
    """The subset of tsconfig compiler options the build cares about."""

    model_config = ConfigDict(extra="ignore")

    target: str | None = None
    """ECMAScript target (e.g. "ES6"), forwarded to esbuild"""


class ProjectSettings(BaseModel):
    """View of the project's `tsconfig.json`."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    compiler_options: CompilerOptions = Field(default_factory=CompilerOptions, alias="compilerOptions")

    @property
    def target(self) -> str | None:
        """esbuild target string, or None to use esbuild's default."""
        target = self.compiler_options.target
        return target.lower() if target else None

    @classmethod
    def from_file(cls, path: Path) -> "ProjectSettings":
        data = read_json(path)
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid project settings in {path}: {e}") from e


class Manifest(BaseModel):
    """View of the plugin's `manifest.json`, used to render the banner."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    version: str
    help_url: str = Field(alias="helpUrl")
    author: str

    @classmethod
    def from_file(cls, path: Path) -> "Manifest":
        data = read_json(path)
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid manifest in {path}: {e}") from e


WatchHooks = Literal["once", "every"]


class HookBuildConfig(BaseSettings):
    """Build tool settings, read from hookbuild.yaml and HOOKBUILD_* variables."""

    model_config = SettingsConfigDict(
        env_prefix="HOOKBUILD_",
        case_sensitive=False,
        extra="ignore",
    )

    debug: bool = False

    # Optional developer hooks module, relative to the project directory
    hooks_path: Path = Path(".devhooks.py")
    hook_logs: bool = True

    # Project documents
    tsconfig_path: Path = Path("tsconfig.json")
    manifest_path: Path = Path("manifest.json")

    # Bundler settings
    esbuild: str = "esbuild"
    entry_points: list[str] = Field(default_factory=lambda: ["main.ts"])
    outfile: str = "main.js"
    format: Literal["iife", "cjs", "esm"] = "cjs"
    log_level: str = "info"
    externals: list[str] = Field(default_factory=lambda: [*HOST_EXTERNALS, *NODE_BUILTINS])

    # Whether pre/post hooks run once per watch session or on every incremental rebuild
    watch_hooks: WatchHooks = "once"

    config_path: Path | None = None

    @classmethod
    def from_yaml(cls, yaml_path: Path, **kwargs: Any) -> "HookBuildConfig":
        """Load settings from a hookbuild.yaml file.

        Args:
            yaml_path: Path to the YAML file
            **kwargs: Explicit overrides, applied on top of the file

        Returns:
            HookBuildConfig instance

        Raises:
            ConfigError: If the file cannot be parsed or holds invalid values
        """
        try:
            with yaml_path.open() as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot load {yaml_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Expected a mapping in {yaml_path}, got {type(data).__name__}")

        section = data.get("hookbuild") or {}
        if not isinstance(section, dict):
            raise ConfigError(f"Invalid 'hookbuild' section in {yaml_path}: {type(section).__name__}")

        try:
            return cls(**{**section, **kwargs, "config_path": yaml_path})
        except ValidationError as e:
            raise ConfigError(f"Invalid settings in {yaml_path}: {e}") from e


def load_config(project_dir: Path, **kwargs: Any) -> HookBuildConfig:
    """Discover and load build settings for a project.

    Args:
        project_dir: Root directory of the project being built
        **kwargs: Explicit overrides (highest priority)

    Returns:
        HookBuildConfig instance
    """
    env_config = os.environ.get("HOOKBUILD_CONFIG")
    if env_config:
        yaml_path = Path(env_config)
        if not yaml_path.exists():
            raise ConfigError(f"HOOKBUILD_CONFIG points to a missing file: {yaml_path}")
        logger.info(f"Using settings from environment: {yaml_path}")
        return HookBuildConfig.from_yaml(yaml_path, **kwargs)

    yaml_path = project_dir / CONFIG_FILENAME
    if yaml_path.exists():
        logger.info(f"Using settings from {yaml_path}")
        return HookBuildConfig.from_yaml(yaml_path, **kwargs)

    logger.debug(f"No {CONFIG_FILENAME} in {project_dir}, using default settings")
    try:
        return HookBuildConfig(**kwargs)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}") from e
