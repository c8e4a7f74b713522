"""Syndication feed fetching."""

from __future__ import annotations

import logging
from typing import Any, List

import feedparser

from .errors import ProviderUnavailable
from .parsers.feed_item import FeedItem
from .providers.http import ProviderHttpClient

LOGGER = logging.getLogger(__name__)


def entry_to_item(entry: Any) -> FeedItem | None:
    """Convert a feedparser entry; entries with neither title nor link are dropped."""
    title = (entry.get("title") or "").strip()
    link = (entry.get("link") or "").strip()
    if not title and not link:
        return None
    guid = (entry.get("id") or entry.get("guid") or link or title).strip()
    description = entry.get("summary") or entry.get("description")
    return FeedItem(
        title=title or link,
        link=link,
        guid=guid,
        published_at=entry.get("published") or entry.get("updated"),
        description=description,
    )


def parse_feed_document(content: bytes | str, *, url: str = "") -> List[FeedItem]:
    parsed = feedparser.parse(content)
    if parsed.get("bozo") and not parsed.entries:
        raise ProviderUnavailable(f"Feed {url} could not be parsed: {parsed.get('bozo_exception')}", provider="feed")
    items = []
    for entry in parsed.entries:
        item = entry_to_item(entry)
        if item is None:
            LOGGER.debug("Skipping feed entry without title or link in %s", url)
            continue
        items.append(item)
    return items


class FeedFetcher(ProviderHttpClient):
    provider_name = "feed"

    def __init__(self, *, timeout: float = 30.0, **kwargs) -> None:
        super().__init__(
            timeout=timeout,
            headers={"Accept": "application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.8"},
            **kwargs,
        )

    def fetch(self, url: str) -> List[FeedItem]:
        """Download and parse a feed.

        Raises:
            ProviderUnavailable: The feed could not be downloaded or parsed
        """
        response = self._request("GET", url)
        if response is None:
            raise ProviderUnavailable(f"Feed {url} not found (404)", provider=self.provider_name, status_code=404)
        items = parse_feed_document(response.content, url=url)
        LOGGER.debug("Fetched %d item(s) from %s", len(items), url)
        return items
