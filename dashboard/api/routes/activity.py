import logging

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import Path
from fastapi import Query

from dashboard.api.schemas.calendar import CalendarResponse
from dashboard.api.schemas.stats import StatsResponse
from dashboard.clients.github_client import InvalidGitHubTokenError
from dashboard.core.security import get_session
from dashboard.core.session import SessionContext
from dashboard.services.aggregation_service import AggregationUnavailableError
from dashboard.services.calendar_service import CalendarUnavailableError


logger = logging.getLogger(__name__)

router = APIRouter(tags=["activity"])


@router.get("/stats")
async def get_stats(
    repositories: list[str] | None = Query(default=None),
    session: SessionContext = Depends(get_session),
) -> StatsResponse:
    """Return aggregated commit, pull request, issue and review counts."""

    try:
        stats = await session.aggregation.aggregate(
            session.username, repositories=repositories
        )
    except InvalidGitHubTokenError as exc:
        raise HTTPException(status_code=401, detail="GitHub token is invalid") from exc
    except AggregationUnavailableError as exc:
        raise HTTPException(
            status_code=502, detail="Failed to load contribution data"
        ) from exc
    return StatsResponse.from_stats(session.username, stats)


@router.get("/calendar/{year}")
async def get_calendar(
    year: int = Path(ge=2008, le=9999),
    username: str | None = Query(default=None, min_length=1, max_length=100),
    session: SessionContext = Depends(get_session),
) -> CalendarResponse:
    """Return the contribution calendar of `username` (default: session user)."""

    target = username or session.username
    try:
        calendar = await session.calendar.synthesize(target, year)
    except InvalidGitHubTokenError as exc:
        raise HTTPException(status_code=401, detail="GitHub token is invalid") from exc
    except CalendarUnavailableError as exc:
        raise HTTPException(
            status_code=502, detail="Failed to load contribution data"
        ) from exc
    return CalendarResponse.from_calendar(target, calendar)
