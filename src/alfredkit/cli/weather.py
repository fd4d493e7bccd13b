"""``weather`` commands: today's and the weekly forecast."""

from typing import Optional

import typer

from alfredkit.cli.common import JSON_HELP, OUTPUT_HELP, CommandOutput, run_command
from alfredkit.core.errors import user_error
from alfredkit.services import ForecastPeriod, ForecastRequest, ServicesContainer

app = typer.Typer(
    name="weather",
    help="Daily forecasts from Open-Meteo with MET Norway fallback",
    add_completion=False,
)

SUPPORTED_LANGS = ("zh", "en")


def _forecast(
    period: ForecastPeriod,
    city: Optional[str],
    lat: Optional[float],
    lon: Optional[float],
    lang: str,
):
    def action(services: ServicesContainer) -> CommandOutput:
        language = lang.strip().lower()
        if language not in SUPPORTED_LANGS:
            raise user_error(f"invalid lang: {lang} (expected zh or en)")
        request = ForecastRequest.parse(period, city, lat, lon)
        result = services.weather().resolve(request, lang=language)
        return CommandOutput(
            result=result.to_dict(),
            feedback=result.to_feedback(),
            human=result.to_human(),
        )

    return action


def _run(period: ForecastPeriod, city, lat, lon, lang, output, json_flag) -> None:
    run_command(
        f"weather.{period.value}",
        _forecast(period, city, lat, lon, lang),
        output=output,
        json_flag=json_flag,
    )


@app.command()
def today(
    city: Optional[str] = typer.Option(None, "--city", help="City name to geocode"),
    lat: Optional[float] = typer.Option(None, "--lat", help="Latitude (-90..90)"),
    lon: Optional[float] = typer.Option(None, "--lon", help="Longitude (-180..180)"),
    lang: str = typer.Option("zh", "--lang", help="Summary language: zh or en"),
    output: Optional[str] = typer.Option(None, "--output", help=OUTPUT_HELP),
    json_flag: bool = typer.Option(False, "--json", help=JSON_HELP),
):
    """Show today's forecast."""
    _run(ForecastPeriod.TODAY, city, lat, lon, lang, output, json_flag)


@app.command()
def week(
    city: Optional[str] = typer.Option(None, "--city", help="City name to geocode"),
    lat: Optional[float] = typer.Option(None, "--lat", help="Latitude (-90..90)"),
    lon: Optional[float] = typer.Option(None, "--lon", help="Longitude (-180..180)"),
    lang: str = typer.Option("zh", "--lang", help="Summary language: zh or en"),
    output: Optional[str] = typer.Option(None, "--output", help=OUTPUT_HELP),
    json_flag: bool = typer.Option(False, "--json", help=JSON_HELP),
):
    """Show the 7-day forecast."""
    _run(ForecastPeriod.WEEK, city, lat, lon, lang, output, json_flag)
