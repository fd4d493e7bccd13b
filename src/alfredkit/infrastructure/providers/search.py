"""Search providers: bilibili query suggestions and YouTube video search."""

from dataclasses import dataclass
from typing import Any, Optional

import httpx

from .errors import HttpError, InvalidResponseError, malformed_payload
from .http import get_json

BILIBILI_SUGGEST_ENDPOINT = "https://s.search.bilibili.com/main/suggest"
YOUTUBE_SEARCH_ENDPOINT = "https://www.googleapis.com/youtube/v3/search"


@dataclass
class VideoResult:
    """A YouTube search hit."""

    video_id: str
    title: str
    description: str = ""


def parse_bilibili_suggestions(data: Any, max_results: int) -> list[str]:
    """
    Extract suggestion terms from ``result.tag[].value``.

    Terms are trimmed, deduplicated case-insensitively and limited to
    ``max_results``.

    Raises:
        HttpError: When the payload carries a non-zero ``code``
        InvalidResponseError: When the payload is not an object
    """
    if not isinstance(data, dict):
        raise InvalidResponseError("bilibili suggest payload is not an object")
    code = data.get("code", 0)
    if code != 0:
        raise HttpError(400, f"bilibili suggest code {code}")

    result = data.get("result")
    tags = result.get("tag") if isinstance(result, dict) else None
    limit = max(max_results, 1)
    seen: set[str] = set()
    terms: list[str] = []
    for row in tags or []:
        value = row.get("value") if isinstance(row, dict) else None
        if not isinstance(value, str) or not value.strip():
            continue
        value = value.strip()
        key = value.lower()
        if key in seen:
            continue
        seen.add(key)
        terms.append(value)
        if len(terms) >= limit:
            break
    return terms


def parse_youtube_results(data: Any) -> list[VideoResult]:
    """Keep search items that carry a video id and a title."""
    if not isinstance(data, dict):
        raise InvalidResponseError("youtube search payload is not an object")
    videos = []
    for item in data.get("items") or []:
        if not isinstance(item, dict):
            continue
        video_id = str((item.get("id") or {}).get("videoId") or "").strip()
        snippet = item.get("snippet") or {}
        title = str(snippet.get("title") or "").strip()
        if not video_id or not title:
            continue
        videos.append(
            VideoResult(
                video_id=video_id,
                title=title,
                description=str(snippet.get("description") or "").strip(),
            )
        )
    return videos


class BilibiliSuggestProvider:
    """Query-completion terms from bilibili's search box."""

    name = "bilibili"

    def __init__(
        self,
        client: httpx.Client,
        query: str,
        max_results: int,
        timeout: float,
        user_agent: str,
        uid: Optional[str] = None,
    ):
        self.client = client
        self.query = query
        self.max_results = max_results
        self.timeout = timeout
        self.user_agent = user_agent
        self.uid = uid

    def params(self) -> dict[str, str]:
        params = {"term": self.query.strip()}
        if self.uid:
            params["userid"] = self.uid
        return params

    def fetch_once(self) -> list[str]:
        data = get_json(
            self.client,
            BILIBILI_SUGGEST_ENDPOINT,
            params=self.params(),
            headers={"User-Agent": self.user_agent},
            timeout=self.timeout,
        )
        with malformed_payload(self.name):
            return parse_bilibili_suggestions(data, self.max_results)


class YouTubeSearchProvider:
    """YouTube Data API v3 video search."""

    name = "youtube"

    def __init__(
        self,
        client: httpx.Client,
        query: str,
        api_key: str,
        max_results: int,
        timeout: float,
        region_code: Optional[str] = None,
    ):
        self.client = client
        self.query = query
        self.api_key = api_key
        self.max_results = max_results
        self.timeout = timeout
        self.region_code = region_code

    def params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "part": "snippet",
            "type": "video",
            "q": self.query,
            "maxResults": self.max_results,
            "key": self.api_key,
        }
        if self.region_code:
            params["regionCode"] = self.region_code
        return params

    def fetch_once(self) -> list[VideoResult]:
        data = get_json(
            self.client, YOUTUBE_SEARCH_ENDPOINT, params=self.params(), timeout=self.timeout
        )
        with malformed_payload(self.name):
            return parse_youtube_results(data)
