# =============================================================================
# Notifications API — The Caller's Notification Feed
# =============================================================================

from __future__ import annotations

from fastapi import APIRouter, Depends

from jurifly.api.deps import get_profile_session
from jurifly.errors import NotFoundError
from jurifly.models.responses import ActionResponse, ok
from jurifly.services.profile import ProfileSession

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=ActionResponse, summary="Most recent notifications, newest first")
async def list_notifications(
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    items = await session.list_notifications()
    return ok([n.model_dump(mode="json") for n in items])


@router.post("/{notification_id}/read", response_model=ActionResponse)
async def mark_notification_read(
    notification_id: str,
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    if not await session.mark_notification_read(notification_id):
        raise NotFoundError(f"Notification {notification_id} not found.")
    return ok(message="Notification marked as read.")


@router.post("/read-all", response_model=ActionResponse)
async def mark_all_notifications_read(
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    count = await session.mark_all_notifications_read()
    return ok({"updated": count}, message="All notifications marked as read.")
