"""
FX and crypto quote service.

Validates the request, resolves the unit price through the cached provider
pipeline (Frankfurter for FX; Coinbase then Kraken for crypto) and converts
the requested amount.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation, localcontext
from enum import Enum
from typing import Any, Callable, Optional

import httpx

from alfredkit.core.config import MarketConfig
from alfredkit.core.errors import user_error
from alfredkit.core.feedback import Feedback, Item
from alfredkit.infrastructure.cache_store import cache_key, cache_path
from alfredkit.infrastructure.providers import Provider, RetryPolicy, Sleeper
from alfredkit.infrastructure.providers.market import (
    MAX_DECIMAL,
    CoinbaseProvider,
    FrankfurterProvider,
    KrakenProvider,
)
from alfredkit.services.cached_fetch import CacheMetadata, CachedFetcher

logger = logging.getLogger(__name__)

MARKET_TOOL_DIR = "market-cli"
CONVERTED_PLACES = Decimal("0.00000001")
# Wide enough for any in-range amount times any in-range price.
DECIMAL_CONTEXT = Context(prec=96, rounding=ROUND_HALF_UP)


class MarketKind(str, Enum):
    """Quote category; decides symbol rules, providers and TTL."""

    FX = "fx"
    CRYPTO = "crypto"


def format_decimal(value: Decimal) -> str:
    """Render a Decimal in plain notation without trailing zeros."""
    with localcontext(DECIMAL_CONTEXT):
        return format(value.normalize(), "f")


def normalize_fx_symbol(value: str, field_name: str) -> str:
    """Uppercase an ISO currency code, rejecting anything but 3 ASCII letters."""
    symbol = value.strip().upper()
    if len(symbol) != 3 or not (symbol.isascii() and symbol.isalpha()):
        raise user_error(
            f"invalid {field_name} symbol: {value} (expected 3-letter ISO currency code)"
        )
    return symbol


def normalize_crypto_symbol(value: str, field_name: str) -> str:
    """Uppercase a crypto symbol, rejecting anything but 2-10 ASCII alphanumerics."""
    symbol = value.strip().upper()
    if not (2 <= len(symbol) <= 10 and symbol.isascii() and symbol.isalnum()):
        raise user_error(
            f"invalid {field_name} symbol: {value} (expected 2-10 uppercase alphanumeric symbol)"
        )
    return symbol


def parse_amount(raw: str) -> Decimal:
    """Parse a positive decimal amount."""
    text = raw.strip()
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise user_error(f"invalid amount: {raw}") from None
    if not amount.is_finite():
        raise user_error(f"invalid amount: {raw}")
    if amount <= 0:
        raise user_error(f"amount must be positive: {raw}")
    if amount > MAX_DECIMAL:
        raise user_error(f"invalid amount: {raw} (too large)")
    return amount


@dataclass
class MarketRequest:
    """A validated quote request."""

    kind: MarketKind
    base: str
    quote: str
    amount: Decimal

    @classmethod
    def parse(cls, kind: MarketKind, base: str, quote: str, amount: str) -> "MarketRequest":
        """
        Validate raw CLI input.

        Raises:
            WorkflowError: ``user.invalid_input`` for bad symbols or amounts
        """
        normalize = normalize_fx_symbol if kind is MarketKind.FX else normalize_crypto_symbol
        return cls(
            kind=kind,
            base=normalize(base, "base"),
            quote=normalize(quote, "quote"),
            amount=parse_amount(amount),
        )

    @property
    def cache_key(self) -> str:
        return cache_key(self.kind.value, self.base, self.quote)


@dataclass
class MarketQuote:
    """Quote result emitted by the market commands."""

    kind: MarketKind
    base: str
    quote: str
    amount: Decimal
    unit_price: Decimal
    provider: str
    fetched_at: str
    cache: CacheMetadata
    provider_trace: list[str] = field(default_factory=list)

    @property
    def converted(self) -> Decimal:
        with localcontext(DECIMAL_CONTEXT):
            return (self.amount * self.unit_price).quantize(CONVERTED_PLACES)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "base": self.base,
            "quote": self.quote,
            "amount": format_decimal(self.amount),
            "unit_price": format_decimal(self.unit_price),
            "converted": format_decimal(self.converted),
            "provider": self.provider,
            "fetched_at": self.fetched_at,
            "cache": self.cache.to_dict(),
            "provider_trace": list(self.provider_trace),
        }

    def to_feedback(self) -> Feedback:
        converted = format_decimal(self.converted)
        return Feedback.single(
            Item(
                title=f"{format_decimal(self.amount)} {self.base} = {converted} {self.quote}",
                subtitle=(
                    f"price={format_decimal(self.unit_price)} provider={self.provider} "
                    f"cache={self.cache.status.value}"
                ),
                arg=converted,
                valid=False,
            )
        )

    def to_human(self) -> list[str]:
        return [
            f"{self.kind.value.upper()} {format_decimal(self.amount)} {self.base} -> "
            f"{format_decimal(self.converted)} {self.quote} "
            f"(price={format_decimal(self.unit_price)} provider={self.provider} "
            f"cache={self.cache.status.value})"
        ]


def _encode_price(unit_price: Decimal) -> dict[str, Any]:
    return {"unit_price": format_decimal(unit_price)}


def _decode_price(payload: dict[str, Any]) -> Decimal:
    price = Decimal(str(payload["unit_price"]))
    if not price.is_finite() or price <= 0 or price > MAX_DECIMAL:
        raise ValueError(f"invalid cached unit price: {payload['unit_price']}")
    return price


class MarketService:
    """Resolves FX and crypto quotes with caching and provider fallback."""

    def __init__(
        self,
        config: MarketConfig,
        client: httpx.Client,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        sleep: Sleeper = time.sleep,
    ):
        self.config = config
        self.client = client
        self.clock = clock
        self.sleep = sleep

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(self.config.max_attempts, self.config.base_backoff_ms)

    def ttl_for(self, kind: MarketKind) -> int:
        return self.config.fx_ttl_secs if kind is MarketKind.FX else self.config.crypto_ttl_secs

    def build_providers(self, request: MarketRequest) -> list[Provider[Decimal]]:
        """Providers in fallback order for the request kind."""
        args = (self.client, request.base, request.quote, self.config.timeout_secs)
        if request.kind is MarketKind.FX:
            return [FrankfurterProvider(*args)]
        return [CoinbaseProvider(*args), KrakenProvider(*args)]

    def resolve(
        self,
        request: MarketRequest,
        providers: Optional[list[Provider[Decimal]]] = None,
    ) -> MarketQuote:
        """
        Resolve a quote.

        Args:
            request: Validated request
            providers: Override for the default provider list

        Returns:
            The quote with cache metadata

        Raises:
            WorkflowError: When no provider succeeds and nothing is cached
        """
        key = request.cache_key
        fetcher = CachedFetcher(
            path=cache_path(self.config.cache_dir, MARKET_TOOL_DIR, key),
            key=key,
            ttl_secs=self.ttl_for(request.kind),
            encode=_encode_price,
            decode=_decode_price,
            retry_policy=self.retry_policy,
            sleep=self.sleep,
        )
        prefix = (
            "failed to fetch fx rate"
            if request.kind is MarketKind.FX
            else "failed to fetch crypto spot price"
        )
        result = fetcher.resolve(
            self.clock(),
            providers if providers is not None else self.build_providers(request),
            prefix,
        )
        return MarketQuote(
            kind=request.kind,
            base=request.base,
            quote=request.quote,
            amount=request.amount,
            unit_price=result.value,
            provider=result.provider,
            fetched_at=result.fetched_at,
            cache=result.cache,
            provider_trace=result.trace,
        )
