from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from dashboard import models  # noqa: F401  registers tables on Base.metadata
from dashboard.api.routes.activity import router as activity_router
from dashboard.api.routes.health import router as health_router
from dashboard.api.routes.notifications import router as notifications_router
from dashboard.api.routes.preferences import router as preferences_router
from dashboard.api.routes.session import router as session_router
from dashboard.clients.github_client import GitHubClient
from dashboard.core.middleware import FanOutRateLimitMiddleware
from dashboard.core.observability import configure_logging
from dashboard.core.observability import init_sentry
from dashboard.core.session import SessionRegistry
from dashboard.db import Base
from dashboard.db import engine
from dashboard.settings import Settings


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    await app.state.sessions.close_all()


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build the dashboard API with its own session registry."""

    app_settings = app_settings or Settings()
    configure_logging(app_settings)
    init_sentry(app_settings)

    app = FastAPI(title="GitHub activity dashboard", lifespan=lifespan)
    app.state.settings = app_settings
    app.state.sessions = SessionRegistry()
    app.state.client_factory = lambda token: GitHubClient.from_settings(
        token, app_settings
    )

    app.add_middleware(
        FanOutRateLimitMiddleware,
        requests_per_window=app_settings.rate_limit_per_minute,
        window_seconds=app_settings.rate_limit_window_seconds,
    )

    app.include_router(health_router)
    app.include_router(session_router)
    app.include_router(activity_router)
    app.include_router(notifications_router)
    app.include_router(preferences_router)
    return app


app = create_app()
