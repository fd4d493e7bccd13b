"""
CLI for alfredkit.

One Typer application per workflow group, mounted together under the
``alfredkit`` command. Each group is also installed as its own console
script.
"""

import typer

from alfredkit.cli.market import app as market_app
from alfredkit.cli.project import app as project_app
from alfredkit.cli.search import bilibili_app, youtube_app
from alfredkit.cli.weather import app as weather_app

app = typer.Typer(
    name="alfredkit",
    help="Alfred workflow helpers: market, weather, search and projects",
    add_completion=False,
)

app.add_typer(market_app, name="market")
app.add_typer(weather_app, name="weather")
app.add_typer(bilibili_app, name="bilibili")
app.add_typer(youtube_app, name="youtube")
app.add_typer(project_app, name="project")

__all__ = [
    "app",
    "bilibili_app",
    "market_app",
    "project_app",
    "weather_app",
    "youtube_app",
]
