"""Tests for market expressions: parsing, numeric evaluation and asset sums."""

from collections import Counter
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from alfredkit.core.config import MarketConfig
from alfredkit.core.errors import ErrorCode, WorkflowError
from alfredkit.infrastructure.fakes import FixedClock, RecordingSleeper
from alfredkit.services.market_expression import (
    AssetTerm,
    ExpressionMode,
    MarketExpressionService,
    format_market_decimal,
    parse_expression,
)
from alfredkit.services.market_service import MarketService

FX_RATES = {("USD", "JPY"): 150, ("EUR", "JPY"): 160}
SPOT_PRICES = {
    ("BTC", "JPY"): "10000000",
    ("ETH", "JPY"): "350000",
    ("BTC", "USD"): "60000",
    ("ETH", "USD"): "3000",
    ("USDC", "USD"): "0.99987",
}


class FakeMarket:
    """Answers Frankfurter and Coinbase from fixed tables; Kraken is down."""

    def __init__(self):
        self.calls = Counter()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        self.calls[host] += 1
        if host == "api.frankfurter.dev":
            base, quote = request.url.params["base"], request.url.params["symbols"]
            rate = FX_RATES.get((base, quote))
            if rate is None:
                return httpx.Response(404, json={"message": "not found"})
            return httpx.Response(200, json={"rates": {quote: rate}})
        if host == "api.coinbase.com":
            base, quote = request.url.path.split("/")[-2].split("-")
            price = SPOT_PRICES.get((base, quote))
            if price is None:
                return httpx.Response(404, json={"message": "Invalid currency"})
            return httpx.Response(200, json={"data": {"amount": price}})
        return httpx.Response(503, json={"error": ["EService:Unavailable"]})


@pytest.fixture
def market():
    return FakeMarket()


@pytest.fixture
def service(tmp_path, market):
    clock = FixedClock(datetime(2026, 2, 10, 12, 5, tzinfo=timezone.utc))
    client = httpx.Client(transport=httpx.MockTransport(market))
    return MarketExpressionService(
        MarketService(MarketConfig(cache_dir=tmp_path), client, clock, RecordingSleeper())
    )


def titles(feedback) -> list[str]:
    return [item.title for item in feedback.items]


@pytest.mark.parametrize(
    "value,expected",
    [
        ("9.876", "9.88"),
        ("12.345", "12.35"),
        ("-12.345", "-12.35"),
        ("99.995", "100.00"),
        ("456.78", "456.8"),
        ("1234.56", "1235"),
        ("10000000", "10000000"),
        ("-0.001", "0.00"),
    ],
)
def test_format_market_decimal(value, expected):
    assert format_market_decimal(Decimal(value)) == expected


class TestParsing:
    def test_numeric_terms_and_default_target(self):
        parsed = parse_expression(" 8 / 2*3 ", "usd")
        assert parsed.mode is ExpressionMode.NUMERIC
        assert parsed.terms == [Decimal(8), Decimal(2), Decimal(3)]
        assert parsed.operators == ["/", "*"]
        assert parsed.target == "USD"

    def test_asset_terms_with_target_clause(self):
        parsed = parse_expression("0.5 btc - 2 usdc TO jpy", "USD")
        assert parsed.mode is ExpressionMode.ASSET
        assert parsed.terms == [AssetTerm(Decimal("0.5"), "BTC"), AssetTerm(Decimal(2), "USDC")]
        assert parsed.operators == ["-"]
        assert parsed.target == "JPY"

    def test_compact_terms(self):
        parsed = parse_expression("1btc+3eth", "USD")
        assert parsed.terms == [AssetTerm(Decimal(1), "BTC"), AssetTerm(Decimal(3), "ETH")]

    def test_signed_numbers(self):
        parsed = parse_expression("-1.5 - -2", "USD")
        assert parsed.terms == [Decimal("-1.5"), Decimal(-2)]

    @pytest.mark.parametrize(
        "query,message",
        [
            ("   ", "query must not be empty"),
            ("1 btc + 2 eth to", "incomplete to clause: expected a 3-letter fiat code"),
            ("to jpy", "expression must not be empty before to clause"),
            ("1 +", "expression cannot end with an operator"),
            ("1 % 2", "invalid token near `% 2`"),
            ("abc", "invalid number token near `abc`"),
            ("1.", "invalid number token: decimal point must be followed by digits"),
            ("1e2+3", "invalid asset token: e"),
            ("1 b", "invalid asset token: b"),
            ("2 btc + 5", "mixed numeric and asset terms are not supported"),
            (
                "1 btc * 2 eth",
                "unsupported operator in asset expression: only + and - are supported",
            ),
            ("100000000000000000000000000000 + 1", "invalid number token: 1000"),
            ("1 btc to jpyy", "invalid target symbol: jpyy"),
        ],
    )
    def test_rejected(self, query, message):
        with pytest.raises(WorkflowError) as exc_info:
            parse_expression(query, "USD")
        assert exc_info.value.message.startswith(message)
        assert exc_info.value.code is ErrorCode.INVALID_INPUT
        assert exc_info.value.exit_code == 2

    def test_invalid_default_fiat(self):
        with pytest.raises(WorkflowError) as exc_info:
            parse_expression("1+1", "dollars")
        assert exc_info.value.message.startswith("invalid default_fiat symbol: dollars")


class TestNumericMode:
    @pytest.mark.parametrize(
        "query,expected",
        [
            ("1+5", "6"),
            ("8/2*3", "12"),
            ("2+3*4", "20"),
            ("1/4", "0.25"),
            ("-1.5 + 0.5", "-1"),
            ("0*-1", "0"),
            ("1.50 + 1.50", "3"),
        ],
    )
    def test_left_to_right(self, service, market, query, expected):
        feedback = service.evaluate(query)

        assert feedback.to_dict() == {
            "items": [
                {"title": expected, "subtitle": "Numeric result", "arg": expected, "valid": True}
            ]
        }
        assert not market.calls

    def test_division_by_zero(self, service):
        with pytest.raises(WorkflowError) as exc_info:
            service.evaluate("10/0")
        assert exc_info.value.message == "division by zero is not allowed"
        assert exc_info.value.exit_code == 2


class TestAssetMode:
    def test_unit_rows_then_total(self, service, market):
        feedback = service.evaluate("1 btc + 3 eth to jpy")

        assert titles(feedback) == [
            "1 BTC = 10000000 JPY",
            "1 ETH = 350000 JPY",
            "Total = 11050000 JPY",
        ]
        rows = feedback.to_dict()["items"]
        assert rows[0]["subtitle"] == "provider: coinbase · freshness: live"
        assert rows[0]["arg"] == "10000000 JPY"
        assert rows[2]["subtitle"] == (
            "Formula: 1*10000000(BTC) + 3*350000(ETH) = 11050000 JPY"
        )
        assert rows[2]["arg"] == "11050000 JPY"
        assert all(row["valid"] is True for row in rows)
        assert market.calls == {"api.frankfurter.dev": 2, "api.coinbase.com": 2}

    def test_compact_terms(self, service):
        feedback = service.evaluate("1btc+3eth to jpy")
        assert titles(feedback)[-1] == "Total = 11050000 JPY"

    def test_repeated_symbol_is_priced_once(self, service, market):
        feedback = service.evaluate("1 btc + 3 btc", "USD")

        assert titles(feedback) == ["1 BTC = 60000 USD", "Total = 240000 USD"]
        assert market.calls["api.coinbase.com"] == 1

    def test_three_letter_symbol_tries_fx_then_crypto(self, service, market):
        service.evaluate("1 btc to usd")
        assert market.calls == {"api.frankfurter.dev": 1, "api.coinbase.com": 1}

    def test_fiat_symbol_priced_by_fx(self, service, market):
        feedback = service.evaluate("2 eur to jpy")

        assert titles(feedback) == ["1 EUR = 160.0 JPY", "Total = 320.0 JPY"]
        assert feedback.items[0].subtitle == "provider: frankfurter · freshness: live"
        assert market.calls == {"api.frankfurter.dev": 1}

    def test_longer_symbols_skip_fx_and_round_for_display(self, service, market):
        feedback = service.evaluate("10 usdc")

        assert titles(feedback) == ["1 USDC = 1.00 USD", "Total = 10.00 USD"]
        assert feedback.items[1].subtitle == "Formula: 10*1.00(USDC) = 10.00 USD"
        assert "api.frankfurter.dev" not in market.calls

    def test_subtraction_can_go_negative(self, service):
        feedback = service.evaluate("1 eth - 1 btc")
        assert titles(feedback)[-1] == "Total = -57000 USD"

    def test_second_evaluation_uses_cache(self, service, market):
        service.evaluate("1 eth")
        feedback = service.evaluate("1 eth")

        assert feedback.items[0].subtitle == "provider: coinbase · freshness: cache_hit"
        assert market.calls["api.coinbase.com"] == 1

    def test_unpriced_symbol_reports_both_attempts(self, service):
        with pytest.raises(WorkflowError) as exc_info:
            service.evaluate("1 zzz")

        error = exc_info.value
        assert error.code is ErrorCode.UPSTREAM_UNAVAILABLE
        assert error.exit_code == 1
        assert error.message.startswith("failed to resolve quote for ZZZ/USD (provider trace: fx: ")
        trace = error.details["provider_trace"]
        assert [entry.split(":")[0] for entry in trace] == ["fx", "crypto"]
