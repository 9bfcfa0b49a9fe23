"""Toolchain discovery for clang-based native builds.

This module locates the C and C++ compilers, detects the native target
triple, and collects the include/library search flags reported by
llvm-config.

Resolution order for a compiler:
    1. <NAME>_PATH environment variable (CLANG_PATH, CLANGPP_PATH), used
       verbatim without further checks
    2. Versioned names on PATH, newest first: clang40, clang-4.0, clang39, ...
    3. The bare binary name on PATH
"""

import logging
import shutil
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

from ..build.process_runner import ProcessResult, run_tool
from ..errors import NativeLibNotFound, ToolchainNotFound, ToolchainProbeFailed

logger = logging.getLogger(__name__)

DOC_SETUP = "http://www.scala-native.org/en/latest/user/setup.html"

# (major, minor) pairs tried before the unversioned binary
CLANG_VERSIONS: List[Tuple[str, str]] = [("4", "0"), ("3", "9"), ("3", "8"), ("3", "7")]

ENV_NAMES = {
    "clang": "CLANG",
    "clang++": "CLANGPP",
}

TARGET_MARKER = "target triple"

Which = Callable[[str], Optional[str]]
Runner = Callable[..., ProcessResult]


def candidate_names(binary_name: str, versions: Sequence[Tuple[str, str]]) -> List[str]:
    """All binary names tried on PATH, in lookup order."""
    names = []
    for major, minor in versions:
        names.append(f"{binary_name}{major}{minor}")
        names.append(f"{binary_name}-{major}.{minor}")
    names.append(binary_name)
    return names


def env_var_for(binary_name: str) -> str:
    """Environment variable overriding the location of a binary."""
    base = ENV_NAMES.get(binary_name, binary_name.upper())
    return f"{base}_PATH"


def parse_target_triple(ll_text: str) -> Optional[str]:
    """Extract the triple from the first 'target triple = "..."' line."""
    for line in ll_text.splitlines():
        if line.startswith(TARGET_MARKER):
            parts = line.split('"')
            if len(parts) >= 2 and parts[1]:
                return parts[1]
            return None
    return None


class ToolchainDiscovery:
    """Finds the clang toolchain and platform flags for a build.

    The environment mapping is captured once at construction; nothing here
    reads os.environ directly.

    Example usage:
        discovery = ToolchainDiscovery(env=dict(os.environ))
        clang = discovery.clang()
        triple = discovery.target_triple(clang, Path("target/native"))
    """

    def __init__(
        self,
        env: Optional[Mapping[str, str]] = None,
        which: Optional[Which] = None,
        runner: Optional[Runner] = None,
    ):
        """Initialize toolchain discovery.

        Args:
            env: Environment variables to consult (defaults to none)
            which: PATH lookup function (defaults to shutil.which using
                env's PATH)
            runner: External tool runner (defaults to run_tool)
        """
        self.env = dict(env or {})
        self.runner = runner or run_tool
        if which is None:
            search_path = self.env.get("PATH")
            which = lambda name: shutil.which(name, path=search_path)  # noqa: E731
        self.which = which

    def discover(
        self,
        binary_name: str,
        versions: Sequence[Tuple[str, str]] = CLANG_VERSIONS,
    ) -> Path:
        """Locate a binary.

        Args:
            binary_name: Unversioned binary name (e.g., 'clang')
            versions: Candidate (major, minor) version pairs

        Returns:
            Path to the binary

        Raises:
            ToolchainNotFound: If no candidate name is on PATH
        """
        override = self.env.get(env_var_for(binary_name))
        if override:
            logger.debug("%s from %s: %s", binary_name, env_var_for(binary_name), override)
            return Path(override)

        names = candidate_names(binary_name, versions)
        for name in names:
            found = self.which(name)
            if found:
                logger.debug("%s found as %s", binary_name, found)
                return Path(found)

        raise ToolchainNotFound(
            f"no {', '.join(names)} found in $PATH. Install clang ({DOC_SETUP})"
        )

    def clang(self) -> Path:
        return self.discover("clang", CLANG_VERSIONS)

    def clangpp(self) -> Path:
        return self.discover("clang++", CLANG_VERSIONS)

    def _llvm_config(self, flag: str) -> List[str]:
        # Missing or failing llvm-config is not fatal
        result = self.runner(["llvm-config", flag])
        if not result.success:
            logger.debug("llvm-config %s unavailable: %s", flag, result.stderr.strip())
            return []
        return [line.strip() for line in result.lines]

    def compile_options(self) -> List[str]:
        """Include flags for compiling runtime sources and units."""
        includes = ["/usr/local/include"] + self._llvm_config("--includedir")
        return [f"-I{path}" for path in includes] + ["-Qunused-arguments"]

    def linking_options(self) -> List[str]:
        """Library search flags for the final link."""
        libs = ["/usr/local/lib"] + self._llvm_config("--libdir")
        return [f"-L{path}" for path in libs]

    def target_triple(self, clang: Path, workdir: Path) -> str:
        """Detect the native target triple by compiling a probe file.

        The probe files use non-standard extensions so they are never
        picked up as compilation units or linked.

        Args:
            clang: C compiler to probe
            workdir: Build work directory

        Returns:
            Target triple (e.g., 'x86_64-pc-linux-gnu')

        Raises:
            ToolchainProbeFailed: If the probe does not compile or no
                target triple line is emitted
        """
        target_dir = workdir / "target"
        target_dir.mkdir(parents=True, exist_ok=True)
        probe_c = target_dir / "c.probe"
        probe_ll = target_dir / "ll.probe"
        probe_c.write_text("int probe;")

        result = self.runner(
            [clang, "-S", "-xc", "-emit-llvm", "-o", probe_ll, probe_c],
            cwd=workdir,
        )
        if not result.success:
            raise ToolchainProbeFailed("Failed to detect native target.", result)

        triple = parse_target_triple(probe_ll.read_text()) if probe_ll.exists() else None
        if triple is None:
            raise ToolchainProbeFailed("Failed to detect native target.", result)

        logger.info("native target: %s", triple)
        return triple


def discover_nativelib(classpath: Sequence[Path]) -> Path:
    """Find the runtime-support archive on the classpath.

    Raises:
        NativeLibNotFound: If no classpath entry looks like the nativelib
    """
    for entry in classpath:
        text = str(Path(entry).absolute())
        if "scala-native" in text and "nativelib" in text:
            return Path(entry)
    raise NativeLibNotFound(
        "Native library archive not found on classpath "
        + "(expected an entry containing 'scala-native' and 'nativelib')"
    )
