"""Error taxonomy for nativebuild.

Every failure aborts the whole build. Errors carry a human-readable message
intended for direct display; there is no machine-readable code.
"""

from typing import TYPE_CHECKING, Iterable, List, Optional

if TYPE_CHECKING:
    from .build.process_runner import ProcessResult


class NativeBuildError(Exception):
    """Base exception for all build failures."""

    pass


class ProcessFailedError(NativeBuildError):
    """A build error caused by an external tool exiting non-zero.

    The captured ProcessResult is kept on the exception so callers can show
    the tool's own output.
    """

    def __init__(self, message: str, result: Optional["ProcessResult"] = None):
        self.result = result
        if result is not None and result.stderr.strip():
            message = f"{message}\n{result.stderr.rstrip()}"
        super().__init__(message)


class ToolchainNotFound(NativeBuildError):
    """No compiler binary found under any naming convention."""

    pass


class ToolchainProbeFailed(ProcessFailedError):
    """Target triple detection failed or produced unparseable output."""

    pass


class NativeLibNotFound(NativeBuildError):
    """The runtime-support archive is missing from the classpath."""

    pass


class NativeLibUnpackFailed(NativeBuildError):
    """The runtime-support archive could not be unpacked."""

    pass


class IRToolchainNotFound(NativeBuildError):
    """No IR link/optimize/codegen implementation is available."""

    pass


class LinkError(NativeBuildError):
    """Unresolved symbols remain after IR linking."""

    def __init__(self, unresolved: Iterable[str]):
        self.unresolved: List[str] = sorted(unresolved)
        super().__init__("unable to link: " + ", ".join(self.unresolved))


class RuntimeCompileFailed(ProcessFailedError):
    """A runtime-support source file failed to compile."""

    pass


class UnitCompileFailed(ProcessFailedError):
    """An application compilation unit failed to compile."""

    pass


class LinkFailed(ProcessFailedError):
    """The final native link invocation exited non-zero."""

    pass
