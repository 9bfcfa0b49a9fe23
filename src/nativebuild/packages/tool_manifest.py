"""Remote tool manifest for `nativebuild get`.

A tool published for installation keeps a `.scalanative` file in Java
properties format at the root of its GitHub repository:

    name=mytool
    org=com.example
    artifact=mytool
    version=0.1.0
    main=com.example.MyTool
    nativeVersion=0.3.1
    scalaVersion=2.11.11

The Maven artifact name is derived from the artifact and the binary
versions, e.g. mytool_native0.3_2.11.
"""

import configparser
import re
from dataclasses import dataclass
from typing import Dict, Optional

from .downloader import DownloadError, PackageDownloader
from .maven import MavenCoordinate

MANIFEST_URL = "https://raw.githubusercontent.com/{org}/{repo}/master/.scalanative"

_ORG_REPO = re.compile(r"([^/]+)/(.+)")


class ManifestError(Exception):
    """Raised when the tool manifest is unreachable or incomplete."""

    pass


@dataclass(frozen=True)
class ToolRepo:
    """GitHub org/repo identifying a tool."""

    org: str
    repo: str

    @classmethod
    def parse(cls, arg: str) -> "ToolRepo":
        """Parse an 'org/repo' argument.

        Raises:
            ValueError: If the argument is not in org/repo form
        """
        match = _ORG_REPO.fullmatch(arg)
        if not match:
            raise ValueError(f"Invalid repo '{arg}'. Expected format 'org/repo'.")
        return cls(org=match.group(1), repo=match.group(2))

    @property
    def manifest_url(self) -> str:
        return MANIFEST_URL.format(org=self.org, repo=self.repo)

    def __str__(self) -> str:
        return f"{self.org}/{self.repo}"


def binary_version(version: str) -> str:
    """First two components of a dotted version ('2.11.11' -> '2.11')."""
    return ".".join(version.split(".")[:2])


@dataclass(frozen=True)
class ToolProperties:
    """Contents of a tool manifest."""

    name: str
    org: str
    artifact: str
    version: str
    main: str
    native_version: str
    scala_version: str

    @property
    def maven_artifact(self) -> str:
        return (
            f"{self.artifact}_native{binary_version(self.native_version)}"
            + f"_{binary_version(self.scala_version)}"
        )

    @property
    def coordinate(self) -> MavenCoordinate:
        return MavenCoordinate(self.org, self.maven_artifact, self.version)


def parse_properties(text: str) -> Dict[str, str]:
    """Parse Java properties text into a dict (keys are case-sensitive)."""
    parser = configparser.ConfigParser(
        delimiters=("=", ":"),
        comment_prefixes=("#", "!"),
        interpolation=None,
        strict=False,
    )
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    parser.read_string("[properties]\n" + text)
    return dict(parser["properties"])


def load_properties(text: str, source: str) -> ToolProperties:
    """Build ToolProperties from manifest text.

    Args:
        text: Manifest contents
        source: Where the text came from, for error messages

    Raises:
        ManifestError: If a required key is missing
    """
    try:
        props = parse_properties(text)
    except configparser.Error as e:
        raise ManifestError(f"invalid manifest {source}: {e}")

    def get_property(key: str) -> str:
        value = props.get(key)
        if value is None:
            raise ManifestError(f"missing key '{key}' in {source}!")
        return value.strip()

    return ToolProperties(
        name=get_property("name"),
        org=get_property("org"),
        artifact=get_property("artifact"),
        version=get_property("version"),
        main=get_property("main"),
        native_version=get_property("nativeVersion"),
        scala_version=get_property("scalaVersion"),
    )


def fetch_properties(repo: ToolRepo, downloader: Optional[PackageDownloader] = None) -> ToolProperties:
    """Fetch and parse a tool's manifest from GitHub.

    Raises:
        ManifestError: If the manifest cannot be fetched or is incomplete
    """
    downloader = downloader or PackageDownloader()
    url = repo.manifest_url
    try:
        text = downloader.fetch_text(url)
    except DownloadError as e:
        raise ManifestError(str(e))
    return load_properties(text, url)
