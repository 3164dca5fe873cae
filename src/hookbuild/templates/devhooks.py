"""Local developer hooks for hookbuild.

This file is optional and usually kept out of version control. Delete any
hook you don't need; missing hooks are skipped.
"""

from hookbuild.pipeline import BuildConfig, BuildMode


def on_config(config: BuildConfig, mode: BuildMode) -> None:
    """Reshape the bundler configuration in place."""


def on_pre_build(context, mode: BuildMode) -> None:
    """Runs after the bundler context is created, before building."""


# Defining on_build replaces the default rebuild/watch step:
#
# def on_build(context, mode: BuildMode):
#     return context.rebuild()


def on_post_build(context, result, mode: BuildMode) -> None:
    """Inspect the build result."""
