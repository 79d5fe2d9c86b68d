# =============================================================================
# Unit Tests — News Service
# =============================================================================
#
# NewsAPI is replaced with an httpx.MockTransport, so these tests check the
# request we send and how the reply is filtered without network access.
# =============================================================================

from __future__ import annotations

import asyncio

import httpx
import pytest

from jurifly.config import settings
from jurifly.errors import ConfigurationError, NewsFeedError
from jurifly.services.news import (
    country_code,
    fetch_news,
    parse_articles,
    topics_for_region,
)


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _article(**overrides) -> dict:
    article = {
        "source": {"id": None, "name": "Mint"},
        "author": "Staff",
        "title": "SEBI tightens disclosure norms",
        "description": "New rules for listed companies.",
        "url": "https://example.com/sebi",
        "urlToImage": "https://example.com/sebi.jpg",
        "publishedAt": "2024-05-01T10:00:00Z",
        "content": None,
    }
    article.update(overrides)
    return article


@pytest.fixture
def news_key(monkeypatch):
    monkeypatch.setattr(settings, "news_api_key", "test-news-key")


class TestRegionMapping:
    """Tests for region → country and topic lookup."""

    def test_known_regions(self):
        assert country_code("India") == "in"
        assert country_code("UK") == "gb"

    def test_unknown_region_uses_us_feed(self):
        assert country_code("Atlantis") == "us"

    def test_topics_fall_back_to_india(self):
        assert topics_for_region("Singapore") == topics_for_region("India")
        assert topics_for_region("USA")[3] == ("SEC filings", "SEC")


class TestParseArticles:
    """Tests for per-article validation."""

    def test_invalid_articles_are_skipped(self):
        articles = parse_articles({"articles": [
            _article(),
            _article(title=None),
            _article(url="not a url"),
            "garbage",
        ]})
        assert len(articles) == 1
        assert articles[0].url_to_image is not None
        assert articles[0].published_at == "2024-05-01T10:00:00Z"

    def test_missing_articles_key(self):
        assert parse_articles({"status": "ok"}) == []


class TestFetchNews:
    """Tests for fetch_news()."""

    def test_missing_key_is_configuration_error(self, monkeypatch):
        monkeypatch.setattr(settings, "news_api_key", "")
        with pytest.raises(ConfigurationError) as exc_info:
            _run(fetch_news("taxation", "India"))
        assert exc_info.value.status_code == 503

    def test_request_parameters(self, news_key):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.url.params)
            return httpx.Response(200, json={"status": "ok", "articles": [_article()]})

        articles = _run(fetch_news(
            "SEBI regulations", "India", transport=httpx.MockTransport(handler),
        ))

        assert len(articles) == 1
        assert seen["country"] == "in"
        assert seen["q"] == "SEBI regulations"
        assert seen["category"] == "business"
        assert seen["pageSize"] == "12"
        assert seen["apiKey"] == "test-news-key"

    def test_api_error_message_is_surfaced(self, news_key):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"status": "error", "message": "Your API key is invalid."})

        with pytest.raises(NewsFeedError) as exc_info:
            _run(fetch_news("taxation", "India", transport=httpx.MockTransport(handler)))
        assert exc_info.value.status_code == 502
        assert "Your API key is invalid." in exc_info.value.message

    def test_network_failure(self, news_key):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NewsFeedError):
            _run(fetch_news("taxation", "India", transport=httpx.MockTransport(handler)))
