"""Build configuration for nativebuild."""

from .build_config import BuildConfig, GarbageCollector, Mode, default_jobs

__all__ = [
    "BuildConfig",
    "GarbageCollector",
    "Mode",
    "default_jobs",
]
