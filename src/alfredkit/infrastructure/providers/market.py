"""FX and crypto spot price providers (Frankfurter, Coinbase, Kraken)."""

from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from .errors import HttpError, InvalidResponseError, UnsupportedPairError, malformed_payload
from .http import get_json

FRANKFURTER_ENDPOINT = "https://api.frankfurter.dev/v1/latest"
COINBASE_ENDPOINT = "https://api.coinbase.com/v2/prices/{base}-{quote}/spot"
KRAKEN_ENDPOINT = "https://api.kraken.com/0/public/Ticker"

# Largest amount or price accepted, the range of a 96-bit decimal mantissa.
MAX_DECIMAL = Decimal(2**96 - 1)

# Kraken names bitcoin XBT; other assets use their common symbols.
KRAKEN_ASSET_ALIASES = {"BTC": "XBT"}


def to_decimal(value: Any, what: str) -> Decimal:
    """Convert a JSON number or numeric string into a positive, in-range Decimal."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise InvalidResponseError(f"invalid {what}: {value!r}")
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidResponseError(f"invalid {what}: {value!r}") from None
    if not number.is_finite() or number <= 0 or number > MAX_DECIMAL:
        raise InvalidResponseError(f"invalid {what}: {value!r}")
    return number


def parse_frankfurter_rate(data: Any, quote: str) -> Decimal:
    """Read ``rates[quote]`` from a Frankfurter ``latest`` response."""
    rates = data.get("rates") if isinstance(data, dict) else None
    if not isinstance(rates, dict):
        raise InvalidResponseError("missing rates object")
    if quote not in rates:
        raise InvalidResponseError(f"missing rate for {quote}")
    return to_decimal(rates[quote], f"rate for {quote}")


def parse_coinbase_spot(data: Any) -> Decimal:
    """Read ``data.amount`` from a Coinbase spot price response."""
    payload = data.get("data") if isinstance(data, dict) else None
    if not isinstance(payload, dict) or "amount" not in payload:
        raise InvalidResponseError("missing coinbase amount")
    return to_decimal(payload["amount"], "coinbase amount")


def kraken_pair(base: str, quote: str) -> str:
    """
    Build the Kraken pair name for ``base``/``quote``.

    Raises:
        UnsupportedPairError: If either symbol is not 2 to 10 ASCII alphanumerics
    """
    for symbol in (base, quote):
        if not (2 <= len(symbol) <= 10 and symbol.isascii() and symbol.isalnum()):
            raise UnsupportedPairError(f"{base}/{quote}")
    mapped_base = KRAKEN_ASSET_ALIASES.get(base, base)
    mapped_quote = KRAKEN_ASSET_ALIASES.get(quote, quote)
    return f"{mapped_base}{mapped_quote}"


def parse_kraken_ticker(data: Any) -> Decimal:
    """
    Read the last close price from a Kraken ticker response.

    Kraken reports failures inside a 2xx body through its ``error`` list.
    """
    if not isinstance(data, dict):
        raise InvalidResponseError("kraken response is not an object")
    errors = data.get("error") or []
    if errors:
        first_error = str(errors[0])
        if "unknown asset pair" in first_error.lower():
            raise UnsupportedPairError(first_error)
        raise HttpError(400, first_error)

    result = data.get("result")
    if not isinstance(result, dict) or not result:
        raise InvalidResponseError("missing kraken result")
    first_entry = next(iter(result.values()))
    close = first_entry.get("c") if isinstance(first_entry, dict) else None
    if not isinstance(close, list) or not close:
        raise InvalidResponseError("missing kraken close price")
    return to_decimal(close[0], "kraken close price")


class FrankfurterProvider:
    """ECB reference rates for fiat currency pairs."""

    name = "frankfurter"

    def __init__(self, client: httpx.Client, base: str, quote: str, timeout: float):
        self.client = client
        self.base = base
        self.quote = quote
        self.timeout = timeout

    def fetch_once(self) -> Decimal:
        data = get_json(
            self.client,
            FRANKFURTER_ENDPOINT,
            params={"base": self.base, "symbols": self.quote},
            timeout=self.timeout,
        )
        with malformed_payload(self.name):
            return parse_frankfurter_rate(data, self.quote)


class CoinbaseProvider:
    """Coinbase spot prices."""

    name = "coinbase"

    def __init__(self, client: httpx.Client, base: str, quote: str, timeout: float):
        self.client = client
        self.base = base
        self.quote = quote
        self.timeout = timeout

    def fetch_once(self) -> Decimal:
        url = COINBASE_ENDPOINT.format(base=self.base, quote=self.quote)
        data = get_json(self.client, url, timeout=self.timeout)
        with malformed_payload(self.name):
            return parse_coinbase_spot(data)


class KrakenProvider:
    """Kraken public ticker, used as the crypto fallback."""

    name = "kraken"

    def __init__(self, client: httpx.Client, base: str, quote: str, timeout: float):
        self.client = client
        self.base = base
        self.quote = quote
        self.timeout = timeout

    def fetch_once(self) -> Decimal:
        pair = kraken_pair(self.base, self.quote)
        data = get_json(self.client, KRAKEN_ENDPOINT, params={"pair": pair}, timeout=self.timeout)
        with malformed_payload(self.name):
            return parse_kraken_ticker(data)
