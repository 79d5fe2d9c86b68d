# =============================================================================
# Flows API — Prompt-Flow Catalogue & Invocation
# =============================================================================
#
# POST /flows/{name} runs any registered flow. The checks run cheapest
# first, and nothing is charged until all of them pass:
#
#   unknown flow ─────────────→ 404
#   input fails its model ────→ 422
#   feature locked for role ──→ 403
#   plan expired ─────────────→ 402
#   over the rate limit ──────→ 429
#   credits don't cover cost ─→ 402
#   run ──(failure)──→ refund, 502 (503 when the provider isn't configured)
#
# Every charged run is recorded as a FlowRun with token usage and the
# estimated provider cost.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from jurifly.api.deps import get_llm, get_profile_session
from jurifly.errors import (
    FlowOutputError,
    InsufficientCreditsError,
    JuriflyError,
    PlanExpiredError,
)
from jurifly.flows.catalog import get_flow, list_flows
from jurifly.flows.runner import FlowDefinition, FlowResult, run_flow, validate_input
from jurifly.models.domain import FlowRun
from jurifly.models.requests import FlowRequest
from jurifly.models.responses import ActionResponse, FlowRunResult, FlowSummary, ok
from jurifly.services.capabilities import require_feature
from jurifly.services.llm import LLMProvider
from jurifly.services.pricing import estimate_cost
from jurifly.services.profile import ProfileSession
from jurifly.services.rate_limiter import check_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/flows", tags=["Flows"])


@router.get("", response_model=ActionResponse[list[FlowSummary]], summary="List all flows")
async def list_all_flows() -> ActionResponse:
    return ok([
        FlowSummary(
            name=flow.name,
            description=flow.description,
            credit_cost=flow.credit_cost,
            feature=flow.feature,
            input_schema=flow.input_model.model_json_schema(),
        )
        for flow in list_flows()
    ])


@router.post(
    "/{name}",
    response_model=ActionResponse[FlowRunResult],
    summary="Run a flow",
    description=(
        "Validates `input` against the flow's input model, charges the "
        "flow's credit cost, calls the model and returns validated output. "
        "Credits are refunded if the run fails."
    ),
)
async def invoke_flow(
    name: str,
    body: FlowRequest,
    request: Request,
    session: ProfileSession = Depends(get_profile_session),
    llm: LLMProvider = Depends(get_llm),
) -> ActionResponse:
    definition = get_flow(name)
    validate_input(definition, body.input)

    require_feature(session.profile, definition.feature)
    if not session.is_plan_active():
        raise PlanExpiredError(
            "Your plan has expired. Renew it to keep using AI tools."
        )

    api_key = getattr(request.state, "api_key", None)
    await check_rate_limit(session.uid, api_key.rate_limit_rpm if api_key else None)

    if not await session.deduct_credits(definition.credit_cost):
        raise InsufficientCreditsError(definition.credit_cost, session.profile.credits)

    try:
        result = await run_flow(definition, body.input, llm)
    except JuriflyError as e:
        await _refund(session, definition, llm, e.message)
        raise
    except Exception as e:
        logger.exception("Flow %s failed for uid=%s", definition.name, session.uid)
        if await _refund(session, definition, llm, str(e)):
            message = "The AI service is temporarily unavailable. Your credits have been refunded."
        else:
            message = "The AI service is temporarily unavailable."
        raise FlowOutputError(message) from e

    await _record_run(session, definition, llm, result=result)

    return ok(FlowRunResult(
        flow=definition.name,
        output=result.output.model_dump(mode="json"),
        model=result.model,
        input_tokens=result.input_tokens,
        output_tokens=result.output_tokens,
        credits_charged=definition.credit_cost,
        credits_remaining=session.profile.credits,
    ))


async def _refund(
    session: ProfileSession,
    definition: FlowDefinition,
    llm: LLMProvider,
    error: str,
) -> bool:
    """
    Give the run's credits back and record the failed run.

    A refund that cannot be written is logged with the original error; the
    run is then recorded as charged and the caller's error still surfaces.
    """
    refunded = False
    try:
        await session.add_credits(definition.credit_cost)
        refunded = True
        logger.info(
            "Refunded %d credits to uid=%s after %s failed",
            definition.credit_cost, session.uid, definition.name,
        )
    except Exception:
        logger.exception(
            "Could not refund %d credits to uid=%s after %s failed with: %s",
            definition.credit_cost, session.uid, definition.name, error,
        )

    await _record_run(
        session, definition, llm,
        error=error,
        credits_charged=0 if refunded else definition.credit_cost,
    )
    return refunded


async def _record_run(
    session: ProfileSession,
    definition: FlowDefinition,
    llm: LLMProvider,
    result: FlowResult | None = None,
    error: str | None = None,
    credits_charged: int | None = None,
) -> None:
    provider_type = getattr(llm, "provider_type", "unknown")
    if credits_charged is None:
        credits_charged = definition.credit_cost
    run = FlowRun(
        uid=session.uid,
        flow=definition.name,
        credits_charged=credits_charged,
        success=error is None,
        error=error[:500] if error is not None else None,
    )
    if result is not None:
        run.model = result.model
        run.input_tokens = result.input_tokens
        run.output_tokens = result.output_tokens
        run.latency_ms = result.latency_ms
        run.estimated_cost_usd = estimate_cost(
            provider_type, result.model, result.input_tokens, result.output_tokens,
        )
    try:
        await session.store.add_flow_run(run)
    except Exception as e:
        logger.warning("Failed to record flow run for %s: %s", definition.name, e)
