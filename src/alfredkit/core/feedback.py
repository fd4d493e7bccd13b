"""
Alfred script-filter feedback model.

Alfred renders ``{"items": [...]}`` documents as a result list. Optional item
fields are omitted from the JSON rather than emitted as ``null``.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional

SUBTITLE_MAX_CHARS = 120

_ASCII_WHITESPACE = re.compile(r"[ \t\n\r\x0b\x0c]+")


def normalize_subtitle(text: str, max_chars: int = SUBTITLE_MAX_CHARS) -> str:
    """
    Collapse whitespace and truncate text for display in a subtitle.

    Runs of ASCII whitespace become a single space and the result is
    trimmed. Text longer than ``max_chars`` code points is cut so that the
    last three code points of the budget are ``...``. With a budget of three
    or less the result is just dots.

    Args:
        text: Raw text, possibly multi-line
        max_chars: Maximum length in code points

    Returns:
        Normalized single-line text of at most ``max_chars`` code points
    """
    collapsed = _ASCII_WHITESPACE.sub(" ", text).strip(" ")
    if len(collapsed) <= max_chars:
        return collapsed
    if max_chars <= 3:
        return "." * max(max_chars, 0)
    return collapsed[: max_chars - 3] + "..."


@dataclass
class Item:
    """A single Alfred result row."""

    title: str
    subtitle: Optional[str] = None
    arg: Optional[str] = None
    autocomplete: Optional[str] = None
    uid: Optional[str] = None
    valid: Optional[bool] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"title": self.title}
        if self.subtitle is not None:
            data["subtitle"] = normalize_subtitle(self.subtitle)
        for name in ("arg", "autocomplete", "uid", "valid"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data


@dataclass
class Feedback:
    """Alfred script-filter document."""

    items: list[Item] = field(default_factory=list)

    @classmethod
    def single(cls, item: Item) -> "Feedback":
        return cls(items=[item])

    def to_dict(self) -> dict[str, Any]:
        return {"items": [item.to_dict() for item in self.items]}
