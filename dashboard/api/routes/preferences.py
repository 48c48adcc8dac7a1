from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import Request
from sqlalchemy.orm import Session

from dashboard.api.schemas.preferences import SearchHistoryItem
from dashboard.api.schemas.preferences import SearchQueryCreate
from dashboard.db import get_db
from dashboard.services.preferences_service import DashboardConfig
from dashboard.services.preferences_service import clear_search_history
from dashboard.services.preferences_service import get_dashboard_config
from dashboard.services.preferences_service import list_search_history
from dashboard.services.preferences_service import record_search
from dashboard.services.preferences_service import remove_search
from dashboard.services.preferences_service import save_dashboard_config


router = APIRouter(prefix="/preferences", tags=["preferences"])


def _history_payload(entries) -> list[SearchHistoryItem]:
    return [
        SearchHistoryItem(query=entry.query, searched_at=entry.searched_at)
        for entry in entries
    ]


@router.get("/dashboard")
def read_dashboard_config(db: Session = Depends(get_db)) -> DashboardConfig:
    return get_dashboard_config(db)


@router.put("/dashboard")
def update_dashboard_config(
    payload: DashboardConfig, db: Session = Depends(get_db)
) -> DashboardConfig:
    return save_dashboard_config(db, payload)


@router.get("/search-history")
def read_search_history(db: Session = Depends(get_db)) -> list[SearchHistoryItem]:
    return _history_payload(list_search_history(db))


@router.post("/search-history")
def add_search_history(
    payload: SearchQueryCreate,
    request: Request,
    db: Session = Depends(get_db),
) -> list[SearchHistoryItem]:
    try:
        entries = record_search(
            db, payload.query, limit=request.app.state.settings.search_history_limit
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="query cannot be empty") from exc
    return _history_payload(entries)


@router.delete("/search-history", status_code=204)
def delete_search_history(db: Session = Depends(get_db)) -> None:
    clear_search_history(db)


@router.delete("/search-history/{query}", status_code=204)
def delete_search_query(query: str, db: Session = Depends(get_db)) -> None:
    if not remove_search(db, query):
        raise HTTPException(status_code=404, detail="query not found")
