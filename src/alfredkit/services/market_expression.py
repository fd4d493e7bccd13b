"""
Market expressions typed into Alfred.

Two kinds of query are accepted:

- numeric arithmetic such as ``8/2*3``, evaluated strictly left to right
- asset sums such as ``1 btc + 3 eth to jpy``, where every symbol is priced in
  the target fiat through :class:`MarketService` and the rows are summed

Numeric and asset terms cannot be mixed; asset sums only support ``+`` and ``-``.
"""

import logging
import string
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext
from enum import Enum
from typing import Optional, Union

from alfredkit.core.errors import WorkflowError, runtime_error, user_error
from alfredkit.core.feedback import Feedback, Item
from alfredkit.infrastructure.providers.market import MAX_DECIMAL
from alfredkit.services.cached_fetch import format_trace_message
from alfredkit.services.market_service import (
    DECIMAL_CONTEXT,
    MarketKind,
    MarketQuote,
    MarketRequest,
    MarketService,
    format_decimal,
    normalize_fx_symbol,
)

logger = logging.getLogger(__name__)

OPERATORS = "+-*/"
ASSET_OPERATORS = "+-"
_WHITESPACE = " \t\n\r\f\v"
_FRAGMENT_CHARS = 16


class ExpressionMode(str, Enum):
    NUMERIC = "numeric"
    ASSET = "asset"


@dataclass(frozen=True)
class AssetTerm:
    """``amount`` units of ``symbol``."""

    amount: Decimal
    symbol: str


Term = Union[Decimal, AssetTerm]


@dataclass
class ParsedExpression:
    terms: list[Term]
    operators: list[str]
    target: str
    mode: ExpressionMode


def format_market_decimal(value: Decimal) -> str:
    """
    Round a price for display.

    Values below 100 keep two decimals, below 1000 one decimal, and larger
    values none. Ties round away from zero.
    """
    magnitude = abs(value)
    if magnitude < 100:
        places = 2
    elif magnitude < 1000:
        places = 1
    else:
        places = 0
    with localcontext(DECIMAL_CONTEXT):
        rounded = value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    if rounded.is_zero():
        rounded = abs(rounded)
    return format(rounded, "f")


def format_plain_decimal(value: Decimal) -> str:
    if value.is_zero():
        return "0"
    return format_decimal(value)


def split_target_clause(query: str, default_fiat: str) -> tuple[str, str]:
    """
    Split a trailing ``to XXX`` clause off the query.

    Returns:
        The expression text and the normalized target fiat code

    Raises:
        WorkflowError: For an incomplete clause or an invalid fiat code
    """
    tokens = query.split()
    if not tokens:
        raise user_error("query must not be empty")
    if tokens[-1].lower() == "to":
        raise user_error("incomplete to clause: expected a 3-letter fiat code")
    if len(tokens) >= 2 and tokens[-2].lower() == "to":
        if len(tokens) == 2:
            raise user_error("expression must not be empty before to clause")
        return " ".join(tokens[:-2]), normalize_fx_symbol(tokens[-1], "target")
    return query, normalize_fx_symbol(default_fiat, "default_fiat")


def _is_digit(ch: Optional[str]) -> bool:
    return ch is not None and ch in string.digits


def _is_letter(ch: Optional[str]) -> bool:
    return ch is not None and ch in string.ascii_letters


class ExpressionParser:
    """Cursor-based parser turning expression text into terms and operators."""

    def __init__(self, text: str):
        self.text = text
        self.cursor = 0

    def peek(self) -> Optional[str]:
        if self.cursor < len(self.text):
            return self.text[self.cursor]
        return None

    def skip_whitespace(self) -> int:
        start = self.cursor
        while self.peek() is not None and self.peek() in _WHITESPACE:
            self.cursor += 1
        return self.cursor - start

    def fragment(self) -> str:
        return self.text[self.cursor : self.cursor + _FRAGMENT_CHARS]

    def parse(self) -> tuple[list[Term], list[str]]:
        self.skip_whitespace()
        if self.peek() is None:
            raise user_error("expression must not be empty")

        terms = [self.parse_term()]
        operators: list[str] = []
        while True:
            self.skip_whitespace()
            token = self.peek()
            if token is None:
                break
            if token not in OPERATORS:
                raise user_error(f"invalid token near `{self.fragment()}`")
            self.cursor += 1
            operators.append(token)
            self.skip_whitespace()
            if self.peek() is None:
                raise user_error("expression cannot end with an operator")
            terms.append(self.parse_term())
        return terms, operators

    def parse_term(self) -> Term:
        amount = self.parse_number()
        spaces = self.skip_whitespace()
        token = self.peek()
        if spaces and (_is_letter(token) or _is_digit(token)):
            return AssetTerm(amount, self.parse_symbol(allow_digits=True))
        # "1btc" form; letters only so "1e2" is not read as an exponent.
        if not spaces and _is_letter(token):
            return AssetTerm(amount, self.parse_symbol(allow_digits=False))
        return amount

    def parse_number(self) -> Decimal:
        start = self.cursor
        if self.peek() is not None and self.peek() in "+-":
            self.cursor += 1

        integer_digits = 0
        while _is_digit(self.peek()):
            self.cursor += 1
            integer_digits += 1

        saw_dot = False
        fraction_digits = 0
        if self.peek() == ".":
            saw_dot = True
            self.cursor += 1
            while _is_digit(self.peek()):
                self.cursor += 1
                fraction_digits += 1

        if not integer_digits and not fraction_digits:
            raise user_error(f"invalid number token near `{self.fragment()}`")
        if saw_dot and not fraction_digits:
            raise user_error("invalid number token: decimal point must be followed by digits")

        token = self.text[start : self.cursor]
        number = Decimal(token)
        if abs(number) > MAX_DECIMAL:
            raise user_error(f"invalid number token: {token}")
        return number

    def parse_symbol(self, allow_digits: bool) -> str:
        start = self.cursor
        while _is_letter(self.peek()) or (allow_digits and _is_digit(self.peek())):
            self.cursor += 1
        symbol = self.text[start : self.cursor]
        if not 2 <= len(symbol) <= 10:
            raise user_error(f"invalid asset token: {symbol}")
        return symbol.upper()


def parse_expression(query: str, default_fiat: str) -> ParsedExpression:
    """
    Parse a query into terms, operators, a target fiat and a mode.

    Raises:
        WorkflowError: ``user.invalid_input`` for any syntax or mode error
    """
    query = query.strip()
    if not query:
        raise user_error("query must not be empty")
    source, target = split_target_clause(query, default_fiat)
    terms, operators = ExpressionParser(source).parse()

    has_asset = any(isinstance(term, AssetTerm) for term in terms)
    has_numeric = any(not isinstance(term, AssetTerm) for term in terms)
    if has_asset and has_numeric:
        raise user_error("mixed numeric and asset terms are not supported")
    mode = ExpressionMode.ASSET if has_asset else ExpressionMode.NUMERIC
    if mode is ExpressionMode.ASSET and any(op not in ASSET_OPERATORS for op in operators):
        raise user_error("unsupported operator in asset expression: only + and - are supported")
    return ParsedExpression(terms=terms, operators=operators, target=target, mode=mode)


def evaluate_numeric(terms: list[Decimal], operators: list[str]) -> Decimal:
    """Apply ``operators`` strictly left to right, without precedence."""
    total = terms[0]
    for operator, value in zip(operators, terms[1:]):
        if operator == "+":
            total += value
        elif operator == "-":
            total -= value
        elif operator == "*":
            total *= value
        else:
            if value.is_zero():
                raise user_error("division by zero is not allowed")
            total /= value
    return total


def looks_like_fiat(symbol: str) -> bool:
    return len(symbol) == 3 and symbol.isascii() and symbol.isalpha()


class MarketExpressionService:
    """Evaluates market expressions into Alfred feedback."""

    def __init__(self, market: MarketService):
        self.market = market

    def evaluate(self, query: str, default_fiat: str = "USD") -> Feedback:
        """
        Evaluate a query typed into Alfred.

        Args:
            query: Numeric or asset expression, optionally ending in ``to XXX``
            default_fiat: Target fiat when the query has no ``to`` clause

        Returns:
            One numeric result item, or one row per distinct asset followed by
            the total

        Raises:
            WorkflowError: ``user.invalid_input`` for bad queries, a runtime
                error when an asset cannot be priced
        """
        parsed = parse_expression(query, default_fiat)
        if parsed.mode is ExpressionMode.NUMERIC:
            return self.numeric_feedback(parsed)
        return self.asset_feedback(parsed)

    def numeric_feedback(self, parsed: ParsedExpression) -> Feedback:
        total = evaluate_numeric(parsed.terms, parsed.operators)
        rendered = format_plain_decimal(total)
        return Feedback.single(
            Item(title=rendered, subtitle="Numeric result", arg=rendered, valid=True)
        )

    def asset_feedback(self, parsed: ParsedExpression) -> Feedback:
        target = parsed.target
        quotes: dict[str, MarketQuote] = {}
        for term in parsed.terms:
            if term.symbol not in quotes:
                quotes[term.symbol] = self.resolve_asset(term.symbol, target)

        items = []
        for symbol, quote in quotes.items():
            price = format_market_decimal(quote.unit_price)
            items.append(
                Item(
                    title=f"1 {symbol} = {price} {target}",
                    subtitle=f"provider: {quote.provider} · freshness: {quote.cache.status.value}",
                    arg=f"{price} {target}",
                    valid=True,
                )
            )

        pieces = []
        with localcontext(DECIMAL_CONTEXT):
            values = []
            for term in parsed.terms:
                unit_price = quotes[term.symbol].unit_price
                values.append(term.amount * unit_price)
                pieces.append(
                    f"{format_plain_decimal(term.amount)}*"
                    f"{format_market_decimal(unit_price)}({term.symbol})"
                )
            total = values[0]
            formula = pieces[0]
            for operator, value, piece in zip(parsed.operators, values[1:], pieces[1:]):
                total = total + value if operator == "+" else total - value
                formula += f" {operator} {piece}"

        rendered = format_market_decimal(total)
        items.append(
            Item(
                title=f"Total = {rendered} {target}",
                subtitle=f"Formula: {formula} = {rendered} {target}",
                arg=f"{rendered} {target}",
                valid=True,
            )
        )
        return Feedback(items)

    def resolve_asset(self, symbol: str, target: str) -> MarketQuote:
        """
        Price one unit of ``symbol`` in ``target``.

        Three-letter alphabetic symbols are tried as fiat first and fall back
        to crypto; everything else is priced as crypto.
        """
        trace: list[str] = []
        if looks_like_fiat(symbol):
            request = MarketRequest.parse(MarketKind.FX, symbol, target, "1")
            try:
                return self.market.resolve(request)
            except WorkflowError as e:
                logger.debug(f"{symbol}/{target} is not a fiat pair: {e.message}")
                trace.append(f"fx: {e.message}")

        request = MarketRequest.parse(MarketKind.CRYPTO, symbol, target, "1")
        try:
            return self.market.resolve(request)
        except WorkflowError as e:
            trace.append(f"crypto: {e.message}")
            raise runtime_error(
                format_trace_message(f"failed to resolve quote for {symbol}/{target}", trace),
                code=e.code,
                retryable=e.retryable,
                details={"provider_trace": trace},
            ) from e
