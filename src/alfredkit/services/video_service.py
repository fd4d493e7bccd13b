"""YouTube video search rendered as Alfred feedback."""

import time

import httpx

from alfredkit.core.config import YouTubeConfig
from alfredkit.core.errors import user_error
from alfredkit.core.feedback import Feedback, Item
from alfredkit.infrastructure.providers import RetryPolicy, Sleeper
from alfredkit.infrastructure.providers.search import VideoResult, YouTubeSearchProvider
from alfredkit.services.cached_fetch import fetch_uncached

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"
NO_DESCRIPTION = "No description available"


def videos_to_feedback(videos: list[VideoResult]) -> Feedback:
    if not videos:
        return Feedback.single(
            Item(
                title="No videos found",
                subtitle="Try a different search term.",
                valid=False,
            )
        )
    return Feedback(
        items=[
            Item(
                title=video.title,
                subtitle=video.description or NO_DESCRIPTION,
                arg=WATCH_URL.format(video_id=video.video_id),
                uid=video.video_id,
            )
            for video in videos
        ]
    )


class VideoSearchService:
    """Searches YouTube through the Data API."""

    def __init__(self, config: YouTubeConfig, client: httpx.Client, sleep: Sleeper = time.sleep):
        self.config = config
        self.client = client
        self.sleep = sleep

    def search(self, query: str) -> Feedback:
        query = query.strip()
        if not query:
            raise user_error("query must not be empty")
        provider = YouTubeSearchProvider(
            self.client,
            query,
            api_key=self.config.api_key,
            max_results=self.config.max_results,
            timeout=self.config.timeout_secs,
            region_code=self.config.region_code,
        )
        success = fetch_uncached(
            [provider], RetryPolicy(max_attempts=1), "youtube search failed", self.sleep
        )
        return videos_to_feedback(success.payload)
