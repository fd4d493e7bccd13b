"""``project`` commands: the open-project script filter and usage recording."""

from typing import Optional

import typer

from alfredkit.cli.common import JSON_HELP, OUTPUT_HELP, CommandOutput, run_command
from alfredkit.core.envelope import OutputMode
from alfredkit.services import ServicesContainer

app = typer.Typer(
    name="project",
    help="Git project index for the open-project workflow",
    add_completion=False,
)


@app.command("script-filter")
def script_filter(
    query: str = typer.Option("", "--query", "-q", help="Filter by project name"),
    output: Optional[str] = typer.Option(None, "--output", help=OUTPUT_HELP),
    json_flag: bool = typer.Option(False, "--json", help=JSON_HELP),
):
    """List git projects, most recently used first."""

    def action(services: ServicesContainer) -> CommandOutput:
        feedback = services.projects().script_filter(query)
        return CommandOutput(
            result=feedback.to_dict(),
            feedback=feedback,
            human=[f"{item.title}\t{item.arg or ''}" for item in feedback.items],
        )

    run_command(
        "workflow.script-filter",
        action,
        output=output,
        json_flag=json_flag,
        default_mode=OutputMode.ALFRED,
    )


@app.command("record-usage")
def record_usage(
    path: str = typer.Option(..., "--path", help="Project path that was opened"),
    output: Optional[str] = typer.Option(None, "--output", help=OUTPUT_HELP),
    json_flag: bool = typer.Option(False, "--json", help=JSON_HELP),
):
    """Record that a project was opened."""

    def action(services: ServicesContainer) -> CommandOutput:
        record = services.projects().record_usage(path)
        return CommandOutput(
            result=record.to_dict(),
            human=[f"recorded {record.path} at {record.timestamp}"],
        )

    run_command("workflow.record-usage", action, output=output, json_flag=json_flag)
