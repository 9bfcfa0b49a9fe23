"""
Final native link.

Links application objects and runtime library objects into the executable
with a single clang++ invocation:

    clang++ -o <workdir>/out
            -l<platform libs> -l<required libs> -l<collector libs>
            <linking options>
            -target <triple>
            <application objects> <runtime objects>

Platform libraries:
    - rt on Linux only
    - unwind and unwind-<arch> everywhere except macOS
"""

import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from ..config import BuildConfig
from ..errors import LinkFailed
from .process_runner import ProcessResult, run_tool

logger = logging.getLogger(__name__)

LINUX_NAMES = ("Linux",)
MACOS_NAMES = ("Darwin", "Mac OS X")


def platform_libraries(os_name: str, arch: str) -> List[str]:
    """System libraries the runtime needs on this platform.

    Args:
        os_name: Host OS name as reported by platform.system()
        arch: Architecture component of the target triple

    Returns:
        Library names without the -l prefix
    """
    librt = ["rt"] if os_name in LINUX_NAMES else []
    libunwind = [] if os_name in MACOS_NAMES else ["unwind", f"unwind-{arch}"]
    return librt + libunwind


class FinalLinker:
    """
    Links the executable.

    Example usage:
        linker = FinalLinker(config)
        out = linker.link(app_objects, runtime.objects, linked.links)
    """

    def __init__(
        self,
        config: BuildConfig,
        runner: Optional[Callable[..., ProcessResult]] = None,
    ):
        self.config = config
        self.runner = runner or run_tool

    def libraries(self, links: Iterable[str]) -> List[str]:
        """All libraries in link order: platform, required, collector."""
        return (
            platform_libraries(self.config.os_name, self.config.arch)
            + sorted(links)
            + self.config.gc.links
        )

    def command(
        self,
        app_objects: Sequence[Path],
        runtime_objects: Sequence[Path],
        links: Iterable[str],
    ) -> List[str]:
        link_flags = [f"-l{name}" for name in self.libraries(links)]
        flags = (
            ["-o", str(self.config.outpath)]
            + link_flags
            + list(self.config.linking_options)
            + ["-target", self.config.target_triple]
        )
        paths = [str(path) for path in app_objects] + [str(path) for path in runtime_objects]
        return [str(self.config.clangpp)] + flags + paths

    def link(
        self,
        app_objects: Sequence[Path],
        runtime_objects: Sequence[Path],
        links: Iterable[str],
    ) -> Path:
        """
        Link all objects into the executable.

        Args:
            app_objects: Compiled application units
            runtime_objects: Compiled runtime library sources
            links: Native library names required by reachable code

        Returns:
            Path to the executable

        Raises:
            LinkFailed: If clang++ exits non-zero
        """
        cmd = self.command(app_objects, runtime_objects, links)
        result = self.runner(cmd, cwd=self.config.workdir)
        if not result.success:
            raise LinkFailed("Failed to link native executable.", result)

        logger.info("Linked %s", self.config.outpath)
        return self.config.outpath
