import logging
from datetime import UTC
from datetime import datetime
from typing import Literal

from pydantic import BaseModel
from pydantic import Field
from pydantic import ValidationError
from sqlalchemy import delete
from sqlalchemy import select
from sqlalchemy.orm import Session

from dashboard.models import DashboardPreference
from dashboard.models import SearchHistoryEntry


logger = logging.getLogger(__name__)

DASHBOARD_CONFIG_KEY = "dashboard-config"
DEFAULT_SEARCH_HISTORY_LIMIT = 10


class DashboardConfig(BaseModel):
    """Display configuration of the dashboard widgets."""

    show_statistics: bool = True
    show_contribution_chart: bool = True
    show_contribution_heatmap: bool = True
    show_project_progress: bool = True
    show_activity_timeline: bool = True
    contribution_chart_type: Literal["bar", "pie"] = "pie"
    contribution_metric: Literal["commits", "pullRequests", "issues", "reviews"] = (
        "commits"
    )
    activity_limit: int = Field(default=5, ge=1, le=50)
    project_limit: int = Field(default=3, ge=1, le=50)


def get_dashboard_config(db: Session) -> DashboardConfig:
    preference = db.get(DashboardPreference, DASHBOARD_CONFIG_KEY)
    if preference is None:
        return DashboardConfig()

    try:
        return DashboardConfig.model_validate(preference.value)
    except ValidationError:
        logger.warning("Stored dashboard config is invalid, using defaults")
        return DashboardConfig()


def save_dashboard_config(db: Session, config: DashboardConfig) -> DashboardConfig:
    preference = db.get(DashboardPreference, DASHBOARD_CONFIG_KEY)
    if preference is None:
        db.add(DashboardPreference(key=DASHBOARD_CONFIG_KEY, value=config.model_dump()))
    else:
        preference.value = config.model_dump()
    db.commit()
    return config


def list_search_history(db: Session) -> list[SearchHistoryEntry]:
    """Return search history, most recent first."""

    return list(
        db.scalars(
            select(SearchHistoryEntry).order_by(
                SearchHistoryEntry.searched_at.desc(), SearchHistoryEntry.id.desc()
            )
        ).all()
    )


def record_search(
    db: Session,
    query: str,
    limit: int = DEFAULT_SEARCH_HISTORY_LIMIT,
    searched_at: datetime | None = None,
) -> list[SearchHistoryEntry]:
    """Record a query, refreshing the timestamp of an existing one.

    The history is trimmed to the `limit` most recent entries.
    """

    query = query.strip()
    if not query:
        raise ValueError("query cannot be empty")

    searched_at = searched_at or datetime.now(UTC)
    entry = db.scalar(select(SearchHistoryEntry).where(SearchHistoryEntry.query == query))
    if entry is None:
        db.add(SearchHistoryEntry(query=query, searched_at=searched_at))
    else:
        entry.searched_at = searched_at
    db.flush()

    history = list_search_history(db)
    stale_ids = [item.id for item in history[max(1, limit):]]
    if stale_ids:
        db.execute(delete(SearchHistoryEntry).where(SearchHistoryEntry.id.in_(stale_ids)))
    db.commit()
    return list_search_history(db)


def remove_search(db: Session, query: str) -> bool:
    query = query.strip()
    result = db.execute(delete(SearchHistoryEntry).where(SearchHistoryEntry.query == query))
    db.commit()
    return result.rowcount > 0


def clear_search_history(db: Session) -> None:
    db.execute(delete(SearchHistoryEntry))
    db.commit()
