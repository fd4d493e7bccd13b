"""
Fake implementations for testing.

Provides scripted providers, a recording sleeper and a fixed clock for use
in unit and integration tests without network access or real delays.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Iterable

from alfredkit.infrastructure.providers.errors import ProviderError


class ScriptedProvider:
    """
    Provider that replays a fixed sequence of outcomes.

    Each outcome is either a payload to return or a :class:`ProviderError`
    to raise. The last outcome repeats once the script is exhausted.
    """

    def __init__(self, name: str, outcomes: Iterable[Any]):
        self.name = name
        self._outcomes = list(outcomes)
        if not self._outcomes:
            raise ValueError("ScriptedProvider needs at least one outcome")
        self.calls = 0

    def fetch_once(self) -> Any:
        index = min(self.calls, len(self._outcomes) - 1)
        self.calls += 1
        outcome = self._outcomes[index]
        if isinstance(outcome, ProviderError):
            raise outcome
        return outcome


class RecordingSleeper:
    """Sleep replacement that records requested delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FixedClock:
    """Clock returning a controllable instant."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)
