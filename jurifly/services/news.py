# =============================================================================
# News Service — Business Headlines from NewsAPI
# =============================================================================
#
# Server-side proxy for NewsAPI's top-headlines endpoint, so the API key
# never reaches the browser. No model call and no credits.
#
# The caller's legal region picks the country; the topic is a free-text
# query. Each region offers a short list of suggested topics, the first of
# which is the default.
#
# DESIGN DECISION: Articles are validated one by one. NewsAPI occasionally
# returns entries with a missing title or a malformed URL; those are
# skipped with a warning instead of failing the whole page.
# =============================================================================

from __future__ import annotations

import logging

import httpx
from pydantic import BaseModel, ConfigDict, Field, HttpUrl, ValidationError

from jurifly.config import settings
from jurifly.errors import ConfigurationError, NewsFeedError

logger = logging.getLogger(__name__)

PAGE_SIZE = 12
DEFAULT_COUNTRY = "us"

REGION_COUNTRY_CODES: dict[str, str] = {
    "India": "in",
    "USA": "us",
    "UK": "gb",
    "Singapore": "sg",
    "Australia": "au",
    "Canada": "ca",
}

# (query, label) pairs; regions without their own list use India's
NEWS_TOPICS: dict[str, list[tuple[str, str]]] = {
    "India": [
        ("corporate law", "Corporate Law"),
        ("taxation", "Taxation"),
        ("startup funding", "Startup Funding"),
        ("SEBI regulations", "SEBI"),
        ("RBI policy", "RBI"),
    ],
    "USA": [
        ("corporate law", "Corporate Law"),
        ("IRS tax", "Taxation"),
        ("startup funding", "Startup Funding"),
        ("SEC filings", "SEC"),
        ("federal reserve", "The Fed"),
    ],
}


class NewsSource(BaseModel):
    id: str | None = None
    name: str


class NewsArticle(BaseModel):
    """One headline. Accepts NewsAPI's camelCase keys on input."""

    model_config = ConfigDict(populate_by_name=True)

    source: NewsSource
    author: str | None = None
    title: str
    description: str | None = None
    url: HttpUrl
    url_to_image: HttpUrl | None = Field(default=None, alias="urlToImage")
    published_at: str = Field(..., alias="publishedAt")
    content: str | None = None


def topics_for_region(legal_region: str) -> list[tuple[str, str]]:
    return NEWS_TOPICS.get(legal_region, NEWS_TOPICS["India"])


def country_code(legal_region: str) -> str:
    return REGION_COUNTRY_CODES.get(legal_region, DEFAULT_COUNTRY)


def parse_articles(payload: dict) -> list[NewsArticle]:
    articles = []
    for raw in payload.get("articles") or []:
        try:
            articles.append(NewsArticle.model_validate(raw))
        except ValidationError as e:
            logger.warning(
                "Skipping invalid article from NewsAPI (%d errors): %s",
                e.error_count(), raw.get("title") if isinstance(raw, dict) else raw,
            )
    return articles


async def fetch_news(
    topic: str,
    legal_region: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[NewsArticle]:
    """
    Fetch up to PAGE_SIZE business headlines about `topic` for the region.

    Args:
        topic: Free-text query, e.g. "corporate law"
        legal_region: Profile region; unknown regions fall back to the US feed
        transport: Optional httpx transport (tests pass a MockTransport)

    Raises:
        ConfigurationError: NEWS_API_KEY is not set (503)
        NewsFeedError: NewsAPI answered with an error or was unreachable (502)
    """
    if not settings.news_api_key:
        logger.error("NEWS_API_KEY is not configured")
        raise ConfigurationError("News service is currently unavailable.")

    params = {
        "country": country_code(legal_region),
        "q": topic,
        "category": "business",
        "pageSize": PAGE_SIZE,
        "apiKey": settings.news_api_key,
    }

    try:
        async with httpx.AsyncClient(
            timeout=settings.news_timeout_seconds, transport=transport,
        ) as client:
            response = await client.get(settings.news_api_url, params=params)
    except httpx.HTTPError as e:
        logger.error("NewsAPI unreachable: %s", e)
        raise NewsFeedError(f"Could not fetch news: {e}") from e

    if response.is_error:
        try:
            reason = response.json().get("message") or response.reason_phrase
        except ValueError:
            reason = response.reason_phrase
        logger.error("NewsAPI returned %d: %s", response.status_code, reason)
        raise NewsFeedError(f"Could not fetch news: {reason}")

    articles = parse_articles(response.json())
    logger.debug(
        "Fetched %d articles for topic=%r country=%s",
        len(articles), topic, params["country"],
    )
    return articles
