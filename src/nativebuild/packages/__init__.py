"""Package and toolchain management for nativebuild.

This module handles locating the clang toolchain, caching the unpacked
runtime library archive, and fetching tool artifacts for `nativebuild get`.
"""

from .cache import ContentCache
from .downloader import DownloadError, ExtractionError, PackageDownloader, extract_archive
from .maven import ArtifactFetcher, MavenCoordinate, ResolutionError
from .tool_manifest import ManifestError, ToolProperties, ToolRepo, fetch_properties
from .toolchain import ToolchainDiscovery, discover_nativelib

__all__ = [
    "ContentCache",
    "PackageDownloader",
    "DownloadError",
    "ExtractionError",
    "extract_archive",
    "ArtifactFetcher",
    "MavenCoordinate",
    "ResolutionError",
    "ManifestError",
    "ToolProperties",
    "ToolRepo",
    "fetch_properties",
    "ToolchainDiscovery",
    "discover_nativelib",
]
