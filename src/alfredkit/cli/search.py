"""``bilibili`` and ``youtube`` commands: search suggestions for Alfred."""

from typing import Optional

import typer

from alfredkit.cli.common import CommandOutput, run_command
from alfredkit.core.envelope import OutputMode
from alfredkit.services import ServicesContainer

MODE_HELP = "Output mode: alfred or service-json"

bilibili_app = typer.Typer(
    name="bilibili",
    help="bilibili search suggestions",
    add_completion=False,
)
youtube_app = typer.Typer(
    name="youtube",
    help="YouTube video search",
    add_completion=False,
)


@youtube_app.callback()
def youtube_main():
    """YouTube video search."""


def _bilibili(query: str):
    def action(services: ServicesContainer) -> CommandOutput:
        feedback = services.bilibili().suggest(query)
        return CommandOutput(
            result=feedback.to_dict(),
            feedback=feedback,
            human=[item.title for item in feedback.items],
        )

    return action


def _youtube(query: str):
    def action(services: ServicesContainer) -> CommandOutput:
        feedback = services.youtube().search(query)
        return CommandOutput(
            result=feedback.to_dict(),
            feedback=feedback,
            human=[item.title for item in feedback.items],
        )

    return action


@bilibili_app.command()
def query(
    input_text: str = typer.Option(..., "--input", help="Text typed in Alfred"),
    mode: Optional[str] = typer.Option(None, "--mode", help=MODE_HELP),
):
    """Suggest bilibili searches for the typed text."""
    run_command("query", _bilibili(input_text), output=mode, default_mode=OutputMode.ALFRED)


@bilibili_app.command("search")
def bilibili_search(
    query: str = typer.Option(..., "--query", help="Search text"),
    mode: Optional[str] = typer.Option(None, "--mode", help=MODE_HELP),
):
    """Suggest bilibili searches for explicit query text."""
    run_command("search", _bilibili(query), output=mode, default_mode=OutputMode.ALFRED)


@youtube_app.command("search")
def youtube_search(
    query: str = typer.Option(..., "--query", help="Search text"),
    mode: Optional[str] = typer.Option(None, "--mode", help=MODE_HELP),
):
    """Search YouTube videos."""
    run_command("search", _youtube(query), output=mode, default_mode=OutputMode.ALFRED)
