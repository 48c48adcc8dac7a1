from fastapi import HTTPException
from fastapi import Request
from fastapi import Security
from fastapi.security import HTTPAuthorizationCredentials
from fastapi.security import HTTPBearer

from dashboard.core.session import SessionContext
from dashboard.core.session import SessionRegistry


bearer_scheme = HTTPBearer(auto_error=False)


def extract_bearer_token(credentials: HTTPAuthorizationCredentials | None) -> str:
    """Extract and validate a Bearer token from authorization credentials.

    Raises:
        HTTPException: If credentials are missing, malformed, or empty.
    """

    if (
        credentials is None
        or credentials.scheme.lower() != "bearer"
        or not credentials.credentials.strip()
    ):
        raise HTTPException(
            status_code=401,
            detail="Authorization Bearer token is required",
        )

    return credentials.credentials.strip()


def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
) -> str:
    return extract_bearer_token(credentials)


def get_session_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_session(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
) -> SessionContext:
    """Resolve the open dashboard session for the request's bearer token."""

    token = extract_bearer_token(credentials)
    session = get_session_registry(request).get(token)
    if session is None:
        raise HTTPException(status_code=401, detail="No active session, sign in first")
    return session
