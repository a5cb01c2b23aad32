"""Error definitions for the build orchestrator.

Every error carries a stable code for programmatic handling and the process
exit code the CLI should terminate with. All of them are terminal for the
current invocation.
"""

from __future__ import annotations

INVALID_ARGUMENTS = "invalid_arguments"
UNSUPPORTED_ARCHITECTURE = "unsupported_architecture"
UNKNOWN_PLATFORM = "unknown_platform"
MISSING_DEPENDENCY = "missing_dependency"
EXTERNAL_TOOL_FAILURE = "external_tool_failure"
ARTIFACT_NOT_FOUND = "artifact_not_found"
FILE_OPERATION_FAILED = "file_operation_failed"


class BuildError(Exception):
    """Base class for orchestrator failures."""

    def __init__(self, message: str, code: str, exit_code: int = 1) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.exit_code = exit_code


class InvalidArgumentsError(BuildError):
    """Raised for unknown flags or conflicting flag combinations."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=INVALID_ARGUMENTS)


class UnsupportedArchitectureError(BuildError):
    """Raised when an architecture spelling is not in the alias table."""

    def __init__(self, arch: str) -> None:
        super().__init__(f"Unrecognized architecture: {arch}", code=UNSUPPORTED_ARCHITECTURE)
        self.arch = arch


class UnknownPlatformError(BuildError):
    """Raised when the toolchain identity matches no known platform."""

    def __init__(self, triple: str) -> None:
        super().__init__(f"Unrecognized platform: {triple}", code=UNKNOWN_PLATFORM)
        self.triple = triple


class MissingDependencyError(BuildError):
    """Raised when a required external tool or directory is not available."""

    def __init__(self, tool: str, hint: str | None = None) -> None:
        message = f"Missing dependency: {tool}"
        if hint:
            message = f"{message} ({hint})"
        super().__init__(message, code=MISSING_DEPENDENCY)
        self.tool = tool


class ExternalToolFailureError(BuildError):
    """Raised when an external tool exits non-zero.

    The tool's exit code is surfaced unchanged as the orchestrator's exit
    code. A child killed by signal N reports ``128 + N``, the shell
    convention.
    """

    def __init__(self, command: str, returncode: int) -> None:
        exit_code = returncode if returncode > 0 else 128 - returncode
        super().__init__(
            f"Command failed with exit code {returncode}: {command}",
            code=EXTERNAL_TOOL_FAILURE,
            exit_code=exit_code,
        )
        self.command = command
        self.returncode = returncode


class ArtifactNotFoundError(BuildError):
    """Raised when an expected build product is missing."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=ARTIFACT_NOT_FOUND)


class FileOperationError(BuildError):
    """Raised when a filesystem step (mkdir, copy, remove, archive) fails."""

    def __init__(self, operation: str, error: OSError) -> None:
        super().__init__(f"Failed to {operation}: {error}", code=FILE_OPERATION_FAILED)
        self.operation = operation


__all__ = [
    "ARTIFACT_NOT_FOUND",
    "EXTERNAL_TOOL_FAILURE",
    "FILE_OPERATION_FAILED",
    "INVALID_ARGUMENTS",
    "MISSING_DEPENDENCY",
    "UNKNOWN_PLATFORM",
    "UNSUPPORTED_ARCHITECTURE",
    "ArtifactNotFoundError",
    "BuildError",
    "ExternalToolFailureError",
    "FileOperationError",
    "InvalidArgumentsError",
    "MissingDependencyError",
    "UnknownPlatformError",
    "UnsupportedArchitectureError",
]
