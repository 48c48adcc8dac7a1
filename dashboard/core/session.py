import asyncio
import hashlib
import logging
from dataclasses import dataclass

from dashboard.clients.github_client import GitHubClient
from dashboard.services.aggregation_service import AggregationEngine
from dashboard.services.calendar_service import CalendarSynthesizer
from dashboard.services.notification_service import NotificationSyncManager
from dashboard.settings import Settings


logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Everything one authenticated user works with, built at sign-in.

    Components get the client from here instead of a module-level
    singleton; `close` is the single teardown call at sign-out.
    """

    username: str
    client: GitHubClient
    aggregation: AggregationEngine
    calendar: CalendarSynthesizer
    notifications: NotificationSyncManager

    @classmethod
    def build(cls, username: str, client: GitHubClient, settings: Settings) -> "SessionContext":
        return cls(
            username=username,
            client=client,
            aggregation=AggregationEngine(
                client,
                max_repositories=settings.max_repositories,
                max_concurrency=settings.max_concurrent_requests,
            ),
            calendar=CalendarSynthesizer(
                client,
                max_repositories=settings.max_repositories,
                max_concurrency=settings.max_concurrent_requests,
                retry_delay_seconds=settings.stats_retry_delay_seconds,
            ),
            notifications=NotificationSyncManager(
                client,
                timeout_seconds=settings.notification_timeout_seconds,
                refresh_interval_seconds=settings.notification_refresh_seconds,
                page_size=settings.notification_page_size,
            ),
        )

    async def close(self) -> None:
        await self.notifications.close()
        await self.client.aclose()


def session_key(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class SessionRegistry:
    """Sessions keyed by a hash of their bearer token."""

    def __init__(self) -> None:
        self._sessions: dict[str, SessionContext] = {}
        self._lock = asyncio.Lock()

    def get(self, token: str) -> SessionContext | None:
        return self._sessions.get(session_key(token))

    def __len__(self) -> int:
        return len(self._sessions)

    async def open(self, token: str, session: SessionContext) -> SessionContext:
        async with self._lock:
            previous = self._sessions.pop(session_key(token), None)
            if previous is not None:
                await previous.close()
            self._sessions[session_key(token)] = session
        logger.info("Opened dashboard session for %s", session.username)
        return session

    async def close(self, token: str) -> bool:
        async with self._lock:
            session = self._sessions.pop(session_key(token), None)
        if session is None:
            return False
        await session.close()
        logger.info("Closed dashboard session for %s", session.username)
        return True

    async def close_all(self) -> None:
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            await session.close()
