# =============================================================================
# News API — Regional Business Headlines
# =============================================================================

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from jurifly.api.deps import require_feature
from jurifly.models.responses import ActionResponse, ok
from jurifly.services.news import fetch_news, topics_for_region
from jurifly.services.profile import ProfileSession

router = APIRouter(prefix="/news", tags=["News"])

_news = require_feature("latestNews")


@router.get("", response_model=ActionResponse, summary="Headlines for the caller's region")
async def latest_news(
    topic: str | None = Query(
        default=None, max_length=100,
        description="Search topic; defaults to the region's first suggested topic",
    ),
    session: ProfileSession = Depends(_news),
) -> ActionResponse:
    region = session.profile.legal_region
    query = topic or topics_for_region(region)[0][0]
    articles = await fetch_news(query, region)
    return ok(
        [article.model_dump(mode="json") for article in articles],
        message=f"{len(articles)} articles about {query}.",
    )


@router.get("/topics", response_model=ActionResponse, summary="Suggested topics for the region")
async def news_topics(session: ProfileSession = Depends(_news)) -> ActionResponse:
    return ok([
        {"topic": query, "label": label}
        for query, label in topics_for_region(session.profile.legal_region)
    ])
