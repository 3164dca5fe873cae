"""hookbuild - esbuild orchestration with optional developer hooks."""

__version__ = "0.1.0"
