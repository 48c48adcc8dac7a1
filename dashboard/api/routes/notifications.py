from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query

from dashboard.api.schemas.notifications import NotificationsResponse
from dashboard.core.security import get_session
from dashboard.core.session import SessionContext
from dashboard.services.notification_service import FetchOptions


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def list_notifications(
    session: SessionContext = Depends(get_session),
) -> NotificationsResponse:
    """Return the current notification set without contacting GitHub."""

    return NotificationsResponse.from_manager(session.notifications)


@router.post("/refresh")
async def refresh_notifications(
    full: bool = Query(default=False),
    all_threads: bool = Query(default=False, alias="all"),
    participating: bool = Query(default=False),
    session: SessionContext = Depends(get_session),
) -> NotificationsResponse:
    await session.notifications.fetch(
        FetchOptions(
            all_threads=all_threads,
            participating=participating,
            full_refresh=full,
        )
    )
    return NotificationsResponse.from_manager(session.notifications)


@router.post("/read")
async def mark_all_read(
    session: SessionContext = Depends(get_session),
) -> NotificationsResponse:
    await session.notifications.mark_all_as_read()
    return NotificationsResponse.from_manager(session.notifications)


@router.post("/{thread_id}/read")
async def mark_thread_read(
    thread_id: int,
    session: SessionContext = Depends(get_session),
) -> NotificationsResponse:
    await session.notifications.mark_as_read(thread_id)
    return NotificationsResponse.from_manager(session.notifications)


@router.post("/repos/{owner}/{name}/read")
async def mark_repository_read(
    owner: str,
    name: str,
    session: SessionContext = Depends(get_session),
) -> NotificationsResponse:
    await session.notifications.mark_repository_as_read(owner, name)
    return NotificationsResponse.from_manager(session.notifications)
