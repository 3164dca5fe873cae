"""Staged build pipeline with optional devhooks interception.

Formal Model:
    Stages s₀ … s₄ = configure, initialize, pre-build, build, post-build
    Each stage sᵢ may be intercepted by hook hᵢ from the devhooks module.

    apply(h, s) = h(s) if h is implemented else noop(s)
"""

from hookbuild.pipeline.context import BuildConfig, BuildMode
from hookbuild.pipeline.hook import HookName, HookSet
from hookbuild.pipeline.loader import ModuleLoadError, discover, load, load_hooks
from hookbuild.pipeline.orchestrator import BuildOrchestrator
from hookbuild.pipeline.proxy import HookProxy, devhooks_proxy

__all__ = [
    "BuildConfig",
    "BuildMode",
    "BuildOrchestrator",
    "HookName",
    "HookProxy",
    "HookSet",
    "ModuleLoadError",
    "devhooks_proxy",
    "discover",
    "load",
    "load_hooks",
]
