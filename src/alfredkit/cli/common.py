"""
Shared CLI plumbing: output mode resolution, emission and error mapping.

Every command funnels through :func:`run_command`, which guarantees one
rendering per invocation and an exit code that reflects the error kind.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Optional

import typer
from rich.console import Console

from alfredkit.core.config import OUTPUT_MODE_ENV, LoggingConfig, configure_logging, non_empty
from alfredkit.core.envelope import (
    ErrorInfo,
    OutputMode,
    error_envelope,
    hint_output_mode,
    render_json,
    select_output_mode,
    success_envelope,
)
from alfredkit.core.errors import WorkflowError, internal_error
from alfredkit.core.feedback import Feedback
from alfredkit.core.redaction import configured_secrets
from alfredkit.services import ServicesContainer, create_services

logger = logging.getLogger(__name__)

console = Console(highlight=False, soft_wrap=True, emoji=False)
err_console = Console(stderr=True, highlight=False, soft_wrap=True, emoji=False)

OUTPUT_HELP = "Output mode: human, json or alfred-json"
JSON_HELP = "Shorthand for --output json"


@dataclass
class CommandOutput:
    """What a command produced, in every rendering it supports."""

    result: Any
    feedback: Optional[Feedback] = None
    human: Optional[list[str]] = None


def get_services() -> ServicesContainer:
    """Initialize the shared services for one invocation."""
    configure_logging(LoggingConfig.from_env())
    return create_services()


def default_output_mode(fallback: OutputMode) -> OutputMode:
    """Mode from ``WORKFLOW_OUTPUT_MODE``; unset or unknown values use ``fallback``."""
    raw = non_empty(os.environ.get(OUTPUT_MODE_ENV))
    if raw is None:
        return fallback
    try:
        return OutputMode.parse(raw)
    except WorkflowError:
        logger.warning(f"Ignoring invalid {OUTPUT_MODE_ENV}: {raw!r}")
        return fallback


def parse_mode_option(raw: Optional[str]) -> Optional[OutputMode]:
    raw = non_empty(raw)
    return OutputMode.parse(raw) if raw else None


def emit_success(command: str, mode: OutputMode, output: CommandOutput) -> None:
    if mode is OutputMode.JSON:
        typer.echo(render_json(success_envelope(command, output.result)))
    elif mode is OutputMode.ALFRED:
        feedback = output.feedback if output.feedback is not None else Feedback()
        typer.echo(render_json(feedback.to_dict()))
    else:
        for line in output.human or []:
            console.print(line, markup=False)


def emit_error(command: str, mode: OutputMode, error: WorkflowError) -> None:
    """Render a classified error; secrets are stripped in every mode."""
    info = ErrorInfo.from_error(error, configured_secrets(os.environ))
    if mode is OutputMode.JSON:
        typer.echo(render_json(error_envelope(command, info)))
    else:
        err_console.print(f"error: {info.message}", markup=False)


def run_command(
    command: str,
    action: Callable[[ServicesContainer], CommandOutput],
    *,
    output: Optional[str] = None,
    json_flag: bool = False,
    default_mode: OutputMode = OutputMode.HUMAN,
) -> None:
    """
    Resolve the output mode, run ``action`` and emit its result or error.

    Args:
        command: Stable command identifier placed in the envelope
        action: Builds the command output from the services container
        output: Raw ``--output``/``--mode`` value
        json_flag: Whether ``--json`` was given
        default_mode: Mode used when no flag or environment override is set

    Raises:
        typer.Exit: With code 2 for user errors and 1 for runtime errors
    """
    default = default_output_mode(default_mode)
    mode = hint_output_mode(None, json_flag, default)
    services: Optional[ServicesContainer] = None
    try:
        explicit = parse_mode_option(output)
        mode = hint_output_mode(explicit, json_flag, default)
        mode = select_output_mode(explicit, json_flag, default)
        services = get_services()
        result = action(services)
    except WorkflowError as e:
        logger.debug(f"{command} failed: {e.code.value}: {e.message}")
        emit_error(command, mode, e)
        raise typer.Exit(e.exit_code)
    except Exception as e:
        logger.exception(f"Unexpected error in {command}")
        error = internal_error(e)
        emit_error(command, mode, error)
        raise typer.Exit(error.exit_code)
    finally:
        if services is not None:
            services.close()

    emit_success(command, mode, result)
