"""Core module for alfredkit - configuration, parsing, errors and output models."""

from .config import (
    BilibiliConfig,
    LoggingConfig,
    MarketConfig,
    ProjectConfig,
    WeatherConfig,
    YouTubeConfig,
    configure_logging,
)
from .envelope import (
    ENVELOPE_SCHEMA_VERSION,
    ErrorInfo,
    OutputMode,
    error_envelope,
    hint_output_mode,
    render_json,
    select_output_mode,
    success_envelope,
)
from .errors import ErrorCode, ErrorKind, WorkflowError, runtime_error, user_error
from .feedback import Feedback, Item, normalize_subtitle
from .list_parser import parse_ordered_list_with, split_ordered_list

__all__ = [
    # Config
    "BilibiliConfig",
    "LoggingConfig",
    "MarketConfig",
    "ProjectConfig",
    "WeatherConfig",
    "YouTubeConfig",
    "configure_logging",
    # Envelope
    "ENVELOPE_SCHEMA_VERSION",
    "ErrorInfo",
    "OutputMode",
    "error_envelope",
    "hint_output_mode",
    "render_json",
    "select_output_mode",
    "success_envelope",
    # Errors
    "ErrorCode",
    "ErrorKind",
    "WorkflowError",
    "runtime_error",
    "user_error",
    # Feedback
    "Feedback",
    "Item",
    "normalize_subtitle",
    # Parsing
    "parse_ordered_list_with",
    "split_ordered_list",
]
