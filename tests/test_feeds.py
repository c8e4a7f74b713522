"""Tests for feed download and parsing."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from upgradarr.errors import ProviderUnavailable
from upgradarr.feeds import FeedFetcher, entry_to_item, parse_feed_document

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Tracker</title>
    <item>
      <title>Inception.2010.1080p.AMZN.WEB-DL.DDP5.1.x264</title>
      <link>https://tracker.example/t/1</link>
      <guid>tracker-1</guid>
      <pubDate>Mon, 06 Oct 2025 10:00:00 GMT</pubDate>
      <description>TMDB Link: https://www.themoviedb.org/movie/27205 Size: 3.5 GB</description>
    </item>
    <item>
      <title>Dune.2021.2160p.NF.WEB-DL.x265</title>
      <link>https://tracker.example/t/2</link>
    </item>
    <item>
      <description>entry without title or link</description>
    </item>
  </channel>
</rss>
"""


class TestParseFeedDocument:
    def test_items_are_extracted(self) -> None:
        items = parse_feed_document(RSS, url="https://tracker.example/rss")

        assert [item.title for item in items] == [
            "Inception.2010.1080p.AMZN.WEB-DL.DDP5.1.x264",
            "Dune.2021.2160p.NF.WEB-DL.x265",
        ]
        first = items[0]
        assert first.guid == "tracker-1"
        assert first.link == "https://tracker.example/t/1"
        assert first.published_at.startswith("Mon, 06 Oct 2025")
        assert "27205" in first.description

    def test_guid_falls_back_to_link(self) -> None:
        items = parse_feed_document(RSS)

        assert items[1].guid == "https://tracker.example/t/2"

    def test_unparseable_document(self) -> None:
        with pytest.raises(ProviderUnavailable):
            parse_feed_document(b"\x00 not a feed <<<", url="https://tracker.example/rss")

    def test_entry_to_item_uses_link_as_title(self) -> None:
        item = entry_to_item({"link": "https://tracker.example/t/3"})

        assert item.title == "https://tracker.example/t/3"
        assert entry_to_item({"summary": "nothing"}) is None


class TestFeedFetcher:
    @pytest.fixture
    def mock_httpx_client(self):
        with patch("upgradarr.providers.http.httpx.Client") as mock_class:
            mock_instance = MagicMock()
            mock_class.return_value = mock_instance
            yield mock_instance

    def test_fetch(self, mock_httpx_client) -> None:
        response = MagicMock()
        response.status_code = 200
        response.content = RSS.encode("utf-8")
        mock_httpx_client.request.return_value = response

        items = FeedFetcher(timeout=5).fetch("https://tracker.example/rss")

        assert len(items) == 2
        method, url = mock_httpx_client.request.call_args.args[:2]
        assert (method, url) == ("GET", "https://tracker.example/rss")

    def test_missing_feed(self, mock_httpx_client) -> None:
        response = MagicMock()
        response.status_code = 404
        mock_httpx_client.request.return_value = response

        with pytest.raises(ProviderUnavailable) as excinfo:
            FeedFetcher().fetch("https://tracker.example/gone")

        assert excinfo.value.status_code == 404
