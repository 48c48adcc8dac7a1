import logging

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import Request

from dashboard.clients.github_client import GitHubAPIError
from dashboard.clients.github_client import InvalidGitHubTokenError
from dashboard.core.security import get_bearer_token
from dashboard.core.security import get_session_registry
from dashboard.core.session import SessionContext
from dashboard.core.session import SessionRegistry


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/session", tags=["session"])


@router.post("", status_code=201)
async def open_session(
    request: Request,
    token: str = Depends(get_bearer_token),
    registry: SessionRegistry = Depends(get_session_registry),
) -> dict[str, str]:
    """Sign in with a GitHub token and start notification syncing."""

    client = request.app.state.client_factory(token)
    try:
        username = await client.fetch_authenticated_user()
    except InvalidGitHubTokenError as exc:
        await client.aclose()
        raise HTTPException(status_code=401, detail="GitHub token is invalid") from exc
    except GitHubAPIError as exc:
        await client.aclose()
        logger.error("Sign-in failed: %s", exc)
        raise HTTPException(status_code=502, detail="GitHub API request failed") from exc

    session = SessionContext.build(username, client, request.app.state.settings)
    await registry.open(token, session)
    session.notifications.start()
    return {"username": username}


@router.delete("", status_code=204)
async def close_session(
    token: str = Depends(get_bearer_token),
    registry: SessionRegistry = Depends(get_session_registry),
) -> None:
    """Sign out: cancel background refresh and drop session state."""

    if not await registry.close(token):
        raise HTTPException(status_code=404, detail="session not found")
