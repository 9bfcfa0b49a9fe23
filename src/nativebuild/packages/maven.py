"""Maven artifact fetching for `nativebuild get`.

Artifacts are looked up in order in the local Maven repository and then in
remote repositories (Maven Central by default). Remote downloads are cached:

    ~/.nativebuild/cache/           # or $NATIVEBUILD_CACHE_DIR
    └── maven/
        └── {org path}/{name}/{version}/
            ├── {name}-{version}.pom
            └── {name}-{version}.jar

Only the requested artifact and the direct compile/runtime dependencies
declared in its POM are fetched. There is no transitive resolution and no
version conflict handling.
"""

import logging
import os
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Union

from .downloader import DownloadError, PackageDownloader

logger = logging.getLogger(__name__)

MAVEN_CENTRAL = "https://repo1.maven.org/maven2"
CACHE_ENV = "NATIVEBUILD_CACHE_DIR"
DEPENDENCY_SCOPES = ("compile", "runtime")

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")


class ResolutionError(Exception):
    """Raised when an artifact is not found in any repository."""

    pass


@dataclass(frozen=True)
class MavenCoordinate:
    """org:name:version of a Maven artifact."""

    org: str
    name: str
    version: str

    def relative_path(self, extension: str) -> str:
        org_path = self.org.replace(".", "/")
        return f"{org_path}/{self.name}/{self.version}/{self.name}-{self.version}.{extension}"

    def __str__(self) -> str:
        return f"{self.org}:{self.name}:{self.version}"


@dataclass(frozen=True)
class LocalRepository:
    """A Maven repository on the local filesystem."""

    root: Path


@dataclass(frozen=True)
class RemoteRepository:
    """A Maven repository served over HTTP."""

    url: str


Repository = Union[LocalRepository, RemoteRepository]


def default_cache_dir(env: Optional[Mapping[str, str]] = None) -> Path:
    """Cache root for downloaded artifacts."""
    env = os.environ if env is None else env
    override = env.get(CACHE_ENV)
    if override:
        return Path(override).expanduser().resolve()
    return Path.home() / ".nativebuild" / "cache"


def default_repositories() -> List[Repository]:
    return [
        LocalRepository(Path.home() / ".m2" / "repository"),
        RemoteRepository(MAVEN_CENTRAL),
    ]


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str) -> Optional[str]:
    for child in element:
        if _local_name(child.tag) == name:
            return (child.text or "").strip()
    return None


def _child(element: ET.Element, name: str) -> Optional[ET.Element]:
    for child in element:
        if _local_name(child.tag) == name:
            return child
    return None


def parse_pom_dependencies(pom_text: str, coordinate: MavenCoordinate) -> List[MavenCoordinate]:
    """Direct compile/runtime dependencies declared in a POM.

    Optional and test/provided dependencies are skipped. Version
    placeholders are resolved from <properties> and project.version;
    dependencies whose version stays unresolved are skipped.
    """
    root = ET.fromstring(pom_text)

    properties: Dict[str, str] = {
        "project.version": coordinate.version,
        "version": coordinate.version,
    }
    props_element = _child(root, "properties")
    if props_element is not None:
        for prop in props_element:
            properties[_local_name(prop.tag)] = (prop.text or "").strip()

    def resolve(value: str) -> Optional[str]:
        resolved = _PLACEHOLDER.sub(lambda m: properties.get(m.group(1), m.group(0)), value)
        return None if "${" in resolved else resolved

    dependencies: List[MavenCoordinate] = []
    deps_element = _child(root, "dependencies")
    if deps_element is None:
        return dependencies

    for dep in deps_element:
        if _local_name(dep.tag) != "dependency":
            continue
        scope = _child_text(dep, "scope") or "compile"
        if scope not in DEPENDENCY_SCOPES or _child_text(dep, "optional") == "true":
            continue
        org = _child_text(dep, "groupId")
        name = _child_text(dep, "artifactId")
        version = resolve(_child_text(dep, "version") or "")
        if not org or not name or not version:
            logger.warning("Skipping dependency %s:%s of %s (unresolved version)", org, name, coordinate)
            continue
        dependencies.append(MavenCoordinate(org, name, version))

    return dependencies


class ArtifactFetcher:
    """Fetches jars for a Maven coordinate.

    Example usage:
        fetcher = ArtifactFetcher()
        jars = fetcher.fetch_jars(MavenCoordinate("com.example", "tool_native0.3_2.11", "0.1.0"))
    """

    def __init__(
        self,
        cache_dir: Optional[Path] = None,
        repositories: Optional[Sequence[Repository]] = None,
        downloader: Optional[PackageDownloader] = None,
        show_progress: bool = True,
    ):
        """Initialize artifact fetcher.

        Args:
            cache_dir: Cache root for remote downloads
            repositories: Repositories, in lookup order
            downloader: HTTP downloader
            show_progress: Whether to show download progress bars
        """
        self.cache_dir = Path(cache_dir) if cache_dir else default_cache_dir()
        self.repositories = list(repositories) if repositories is not None else default_repositories()
        self.downloader = downloader or PackageDownloader()
        self.show_progress = show_progress

    def fetch_file(self, coordinate: MavenCoordinate, extension: str) -> Path:
        """Locate or download one artifact file.

        Raises:
            ResolutionError: If no repository has the file
            DownloadError: If a repository fails for a reason other than
                the file being absent
        """
        relative = coordinate.relative_path(extension)
        tried = []

        for repository in self.repositories:
            if isinstance(repository, LocalRepository):
                candidate = repository.root / relative
                tried.append(str(candidate))
                if candidate.exists():
                    logger.debug("%s found locally at %s", coordinate, candidate)
                    return candidate
                continue

            cached = self.cache_dir / "maven" / relative
            if cached.exists():
                logger.debug("Using cached %s", cached)
                return cached

            url = f"{repository.url.rstrip('/')}/{relative}"
            tried.append(url)
            try:
                return self.downloader.download(url, cached, show_progress=self.show_progress)
            except DownloadError as e:
                if e.status_code == 404:
                    continue
                raise

        raise ResolutionError(
            f"{coordinate} ({extension}) not found. Tried:\n  " + "\n  ".join(tried)
        )

    def direct_dependencies(self, coordinate: MavenCoordinate) -> List[MavenCoordinate]:
        try:
            pom = self.fetch_file(coordinate, "pom")
        except ResolutionError:
            logger.info("No POM for %s, fetching the jar only", coordinate)
            return []
        return parse_pom_dependencies(pom.read_text(encoding="utf-8"), coordinate)

    def fetch_jars(self, coordinate: MavenCoordinate) -> List[Path]:
        """The artifact's jar followed by its direct dependencies' jars."""
        wanted = [coordinate]
        for dependency in self.direct_dependencies(coordinate):
            if dependency not in wanted:
                wanted.append(dependency)

        return [self.fetch_file(item, "jar") for item in wanted]
