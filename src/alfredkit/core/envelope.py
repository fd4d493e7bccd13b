"""
Output modes and the machine-readable service envelope.

Every command reduces its flags to a single :class:`OutputMode` before
emitting anything. In JSON mode the command always writes exactly one
envelope to stdout, whether it succeeded or failed.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional

from alfredkit.core.errors import ErrorCode, WorkflowError, user_error
from alfredkit.core.redaction import redact_text, redact_value

ENVELOPE_SCHEMA_VERSION = "v1"


class OutputMode(str, Enum):
    """Supported output renderings."""

    HUMAN = "human"
    JSON = "json"
    ALFRED = "alfred-json"

    @classmethod
    def parse(cls, raw: str) -> "OutputMode":
        """
        Parse an output mode name, accepting common aliases.

        Raises:
            WorkflowError: ``user.invalid_input`` for unknown names
        """
        normalized = raw.strip().lower()
        aliases = {
            "human": cls.HUMAN,
            "text": cls.HUMAN,
            "json": cls.JSON,
            "service-json": cls.JSON,
            "service_json": cls.JSON,
            "alfred-json": cls.ALFRED,
            "alfred_json": cls.ALFRED,
            "alfred": cls.ALFRED,
        }
        if normalized not in aliases:
            raise user_error(
                f"invalid output mode: {raw} (expected human, json, or alfred-json)"
            )
        return aliases[normalized]


def select_output_mode(
    explicit: Optional[OutputMode],
    json_flag: bool,
    default: OutputMode,
) -> OutputMode:
    """
    Reduce ``--output`` and ``--json`` to a single mode.

    Args:
        explicit: Value of ``--output`` if given
        json_flag: Whether ``--json`` was given
        default: Mode used when neither flag is present

    Returns:
        The selected output mode

    Raises:
        WorkflowError: ``user.output_mode_conflict`` when ``--json`` is combined
            with a non-json ``--output``
    """
    if json_flag:
        if explicit is not None and explicit is not OutputMode.JSON:
            raise user_error(
                "conflicting output mode flags: --json requires --output json "
                f"(got {explicit.value})",
                code=ErrorCode.OUTPUT_MODE_CONFLICT,
            )
        return OutputMode.JSON
    if explicit is not None:
        return explicit
    return default


def hint_output_mode(
    explicit: Optional[OutputMode],
    json_flag: bool,
    default: OutputMode,
) -> OutputMode:
    """Mode used to report errors raised before a mode could be selected."""
    if json_flag:
        return OutputMode.JSON
    return explicit or default


@dataclass
class ErrorInfo:
    """Serializable error block of a failure envelope."""

    code: str
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_error(cls, error: WorkflowError, secrets: Iterable[str] = ()) -> "ErrorInfo":
        """
        Project a classified error into its emitted form.

        This is the single point where secrets are stripped from messages
        and details before they can reach an output stream.
        """
        secrets = list(secrets)
        details = redact_value(error.details, secrets)
        return cls(
            code=error.code.value,
            message=redact_text(error.message, secrets),
            retryable=error.retryable,
            details=details if isinstance(details, dict) else {},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


def success_envelope(command: str, result: Any) -> dict[str, Any]:
    """Build the envelope for a successful command."""
    return {
        "schema_version": ENVELOPE_SCHEMA_VERSION,
        "command": command,
        "ok": True,
        "result": result,
        "error": None,
    }


def error_envelope(command: str, error: ErrorInfo) -> dict[str, Any]:
    """Build the envelope for a failed command."""
    return {
        "schema_version": ENVELOPE_SCHEMA_VERSION,
        "command": command,
        "ok": False,
        "result": None,
        "error": error.to_dict(),
    }


def render_json(document: Any) -> str:
    """Serialize a document as compact JSON, keeping non-ASCII text."""
    return json.dumps(document, ensure_ascii=False, separators=(",", ":"))
