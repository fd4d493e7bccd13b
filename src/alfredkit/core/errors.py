"""
Error taxonomy shared by every CLI.

Errors fall into two kinds: ``user`` (bad input, missing credentials, flag
conflicts; exit code 2) and ``runtime`` (upstream or local failures; exit
code 1). Each error carries a stable machine code from a closed set.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Error classification deciding the process exit code."""

    USER = "user"
    RUNTIME = "runtime"

    @property
    def exit_code(self) -> int:
        return 2 if self is ErrorKind.USER else 1


class ErrorCode(str, Enum):
    """Closed set of machine-readable error codes."""

    INVALID_INPUT = "user.invalid_input"
    MISSING_CREDENTIAL = "user.missing_credential"
    OUTPUT_MODE_CONFLICT = "user.output_mode_conflict"
    README_NOT_FOUND = "user.readme_not_found"
    REMOTE_IMAGE_NOT_ALLOWED = "user.remote_image_not_allowed"
    UPSTREAM_UNAVAILABLE = "runtime.upstream_unavailable"
    UPSTREAM_INVALID_RESPONSE = "runtime.upstream_invalid_response"
    STORAGE_FAILURE = "runtime.storage_failure"
    INTERNAL = "runtime.internal"

    @property
    def kind(self) -> ErrorKind:
        return ErrorKind.USER if self.value.startswith("user.") else ErrorKind.RUNTIME


@dataclass(eq=False)
class WorkflowError(Exception):
    """
    Classified error raised by services and mapped to output at the CLI edge.

    Attributes:
        code: Stable error code; also determines the error kind
        message: Human readable message
        retryable: Whether repeating the request may succeed
        details: Extra structured context (redacted before emission)
    """

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    @property
    def kind(self) -> ErrorKind:
        return self.code.kind

    @property
    def exit_code(self) -> int:
        return self.kind.exit_code


def user_error(
    message: str,
    code: ErrorCode = ErrorCode.INVALID_INPUT,
    details: Optional[dict[str, Any]] = None,
) -> WorkflowError:
    """Build a non-retryable user error."""
    if code.kind is not ErrorKind.USER:
        raise ValueError(f"{code.value} is not a user error code")
    return WorkflowError(code=code, message=message, details=details or {})


def runtime_error(
    message: str,
    code: ErrorCode = ErrorCode.UPSTREAM_UNAVAILABLE,
    retryable: bool = False,
    details: Optional[dict[str, Any]] = None,
) -> WorkflowError:
    """Build a runtime error."""
    if code.kind is not ErrorKind.RUNTIME:
        raise ValueError(f"{code.value} is not a runtime error code")
    return WorkflowError(code=code, message=message, retryable=retryable, details=details or {})


def internal_error(exc: BaseException) -> WorkflowError:
    """Wrap an unexpected exception as ``runtime.internal``."""
    return WorkflowError(
        code=ErrorCode.INTERNAL,
        message=f"internal error: {exc}",
        details={"exception": type(exc).__name__},
    )
