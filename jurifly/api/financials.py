# =============================================================================
# Financials API — Cash Forecast
# =============================================================================
#
# The forecast is deterministic and free: no model call, no credits. It is
# gated by the "financials" feature like the rest of the financials page.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from jurifly.api.deps import require_feature
from jurifly.models.responses import ActionResponse, ok
from jurifly.services.forecast import ForecastInput, build_forecast
from jurifly.services.profile import ProfileSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/financials", tags=["Financials"])


@router.post("/forecast", response_model=ActionResponse, summary="12-month cash forecast")
async def forecast(
    body: ForecastInput,
    session: ProfileSession = Depends(require_feature("financials")),
) -> ActionResponse:
    result = build_forecast(body)
    logger.info(
        "Forecast for uid=%s: runway=%s profitable_month=%s",
        session.uid, result.runway_in_months, result.profitable_month,
    )
    return ok(result.model_dump(mode="json"), message=result.summary)
