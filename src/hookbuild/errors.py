"""Exception hierarchy for hookbuild."""


class HookBuildError(Exception):
    """Base exception for hookbuild failures surfaced to the operator."""


class ConfigError(HookBuildError):
    """Raised when a configuration document or settings file is unusable."""
