"""``market`` commands: FX and crypto conversion, and quote expressions."""

from typing import Optional

import typer

from alfredkit.cli.common import JSON_HELP, OUTPUT_HELP, CommandOutput, run_command
from alfredkit.core.envelope import OutputMode
from alfredkit.services import MarketKind, MarketRequest, ServicesContainer

app = typer.Typer(
    name="market",
    help="Currency and crypto conversion with cached quotes",
    add_completion=False,
)


def _quote(kind: MarketKind, base: str, quote: str, amount: str):
    def action(services: ServicesContainer) -> CommandOutput:
        request = MarketRequest.parse(kind, base, quote, amount)
        result = services.market().resolve(request)
        return CommandOutput(
            result=result.to_dict(),
            feedback=result.to_feedback(),
            human=result.to_human(),
        )

    return action


@app.command()
def fx(
    base: str = typer.Option(..., "--base", help="Base currency, e.g. USD"),
    quote: str = typer.Option(..., "--quote", help="Quote currency, e.g. TWD"),
    amount: str = typer.Option("1", "--amount", help="Amount of base currency"),
    output: Optional[str] = typer.Option(None, "--output", help=OUTPUT_HELP),
    json_flag: bool = typer.Option(False, "--json", help=JSON_HELP),
):
    """Convert between fiat currencies."""
    run_command(
        "market.fx",
        _quote(MarketKind.FX, base, quote, amount),
        output=output,
        json_flag=json_flag,
    )


@app.command()
def crypto(
    base: str = typer.Option(..., "--base", help="Crypto symbol, e.g. BTC"),
    quote: str = typer.Option("USD", "--quote", help="Quote symbol"),
    amount: str = typer.Option("1", "--amount", help="Amount of base asset"),
    output: Optional[str] = typer.Option(None, "--output", help=OUTPUT_HELP),
    json_flag: bool = typer.Option(False, "--json", help=JSON_HELP),
):
    """Convert a crypto asset at the current spot price."""
    run_command(
        "market.crypto",
        _quote(MarketKind.CRYPTO, base, quote, amount),
        output=output,
        json_flag=json_flag,
    )


def _expression(query: str, default_fiat: str):
    def action(services: ServicesContainer) -> CommandOutput:
        feedback = services.market_expression().evaluate(query, default_fiat)
        first = feedback.items[0]
        human = f"{first.title} | {first.subtitle}" if first.subtitle else first.title
        return CommandOutput(result=feedback.to_dict(), feedback=feedback, human=[human])

    return action


@app.command()
def expr(
    query: str = typer.Option(..., "--query", help="Expression, e.g. '1 btc + 3 eth to jpy'"),
    default_fiat: str = typer.Option(
        "USD", "--default-fiat", help="Target fiat when the query has no 'to' clause"
    ),
    output: Optional[str] = typer.Option(None, "--output", help=OUTPUT_HELP),
    json_flag: bool = typer.Option(False, "--json", help=JSON_HELP),
):
    """Evaluate arithmetic or a sum of priced assets for Alfred."""
    run_command(
        "market.expr",
        _expression(query, default_fiat),
        output=output,
        json_flag=json_flag,
        default_mode=OutputMode.ALFRED,
    )
