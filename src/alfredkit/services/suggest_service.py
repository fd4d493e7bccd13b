"""bilibili search suggestions rendered as Alfred feedback."""

import logging
import time
from urllib.parse import urlencode

import httpx

from alfredkit.core.config import BilibiliConfig
from alfredkit.core.errors import user_error
from alfredkit.core.feedback import Feedback, Item
from alfredkit.infrastructure.providers import Provider, RetryPolicy, Sleeper
from alfredkit.infrastructure.providers.search import BilibiliSuggestProvider
from alfredkit.services.cached_fetch import fetch_uncached

logger = logging.getLogger(__name__)

BILIBILI_SEARCH_URL = "https://search.bilibili.com/all"
NO_SUGGESTIONS_TITLE = "No suggestions found"
NO_SUGGESTIONS_SUBTITLE = "Press Enter to search bilibili directly."
DIRECT_SEARCH_TITLE = "Search bilibili directly"


def bilibili_search_url(query: str) -> str:
    return f"{BILIBILI_SEARCH_URL}?{urlencode({'keyword': query})}"


def suggestions_to_feedback(query: str, suggestions: list[str]) -> Feedback:
    """
    Map suggestion terms to Alfred items.

    Without suggestions, returns a non-actionable notice plus an item that
    searches bilibili for the raw query.
    """
    items = [
        Item(
            title=term,
            subtitle=f"Search bilibili for {term}",
            arg=bilibili_search_url(term),
            autocomplete=term,
        )
        for term in (s.strip() for s in suggestions)
        if term
    ]
    if items:
        return Feedback(items=items)

    fallback_query = query.strip() or "bilibili"
    return Feedback(
        items=[
            Item(title=NO_SUGGESTIONS_TITLE, subtitle=NO_SUGGESTIONS_SUBTITLE, valid=False),
            Item(
                title=DIRECT_SEARCH_TITLE,
                subtitle=f"Open bilibili search for {fallback_query}",
                arg=bilibili_search_url(fallback_query),
            ),
        ]
    )


class SuggestService:
    """Fetches bilibili query suggestions."""

    def __init__(self, config: BilibiliConfig, client: httpx.Client, sleep: Sleeper = time.sleep):
        self.config = config
        self.client = client
        self.sleep = sleep

    def build_providers(self, query: str) -> list[Provider[list[str]]]:
        return [
            BilibiliSuggestProvider(
                self.client,
                query,
                max_results=self.config.max_results,
                timeout=self.config.timeout_ms / 1000,
                user_agent=self.config.user_agent,
                uid=self.config.uid,
            )
        ]

    def suggest(self, query: str) -> Feedback:
        """
        Return suggestion feedback for ``query``.

        Raises:
            WorkflowError: ``user.invalid_input`` for an empty query, or a
                runtime error when the upstream request fails
        """
        query = query.strip()
        if not query:
            raise user_error("query must not be empty")
        success = fetch_uncached(
            self.build_providers(query),
            RetryPolicy(max_attempts=1),
            "bilibili suggest request failed",
            self.sleep,
        )
        logger.debug(f"bilibili returned {len(success.payload)} suggestions for {query!r}")
        return suggestions_to_feedback(query, success.payload)
