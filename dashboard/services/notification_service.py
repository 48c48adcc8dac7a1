import asyncio
import logging
from collections.abc import Awaitable
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import replace
from datetime import UTC
from datetime import datetime
from enum import Enum

from dashboard.clients.github_client import GitHubClient
from dashboard.entities import NotificationThread
from dashboard.entities import SyncCursor


logger = logging.getLogger(__name__)

FETCH_ERROR_MESSAGE = "Failed to fetch notifications. Please try again later."


class SyncState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class FetchOptions:
    all_threads: bool = False
    participating: bool = False
    full_refresh: bool = False


class NotificationSyncManager:
    """Keep the session's notification threads in sync by polling.

    Every `fetch` takes a new request token; a response is applied only if
    its token is still the latest one and the manager is open. Read-state
    changes are applied locally before the remote call and are not rolled
    back when that call fails.
    """

    def __init__(
        self,
        client: GitHubClient,
        timeout_seconds: float = 10.0,
        refresh_interval_seconds: float = 300.0,
        page_size: int = 50,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.client = client
        self.timeout_seconds = timeout_seconds
        self.refresh_interval_seconds = refresh_interval_seconds
        self.page_size = page_size
        self._clock = clock or (lambda: datetime.now(UTC))

        self.state = SyncState.IDLE
        self.error: str | None = None
        self.cursor = SyncCursor()
        self._threads: list[NotificationThread] = []
        self._unread_count = 0
        self._request_token = 0
        self._closed = False
        self._refresh_task: asyncio.Task[None] | None = None
        self._inflight: asyncio.Task[None] | None = None

    @property
    def notifications(self) -> list[NotificationThread]:
        return list(self._threads)

    @property
    def unread_count(self) -> int:
        return self._unread_count

    @property
    def is_loading(self) -> bool:
        return self.state is SyncState.FETCHING

    @property
    def closed(self) -> bool:
        return self._closed

    async def fetch(self, options: FetchOptions | None = None) -> None:
        if self._closed:
            return

        options = options or FetchOptions()
        self._request_token += 1
        token = self._request_token
        since = None if options.full_refresh else self.cursor.last_fetch_time

        self.state = SyncState.FETCHING
        self.error = None
        try:
            threads = await asyncio.wait_for(
                self.client.list_notifications(
                    since=since,
                    all_threads=options.all_threads,
                    participating=options.participating,
                    per_page=self.page_size,
                ),
                timeout=self.timeout_seconds,
            )
        except Exception as exc:
            if not self._is_current(token):
                logger.debug("Discarding failure of superseded fetch #%d", token)
                return
            if isinstance(exc, TimeoutError):
                logger.error(
                    "Notification fetch timed out after %.1fs", self.timeout_seconds
                )
            else:
                logger.error("Error fetching notifications: %s", exc)
            self.state = SyncState.ERROR
            self.error = FETCH_ERROR_MESSAGE
            # An empty list keeps the UI responsive instead of stuck loading.
            self._threads = []
            self._unread_count = 0
            return

        if not self._is_current(token):
            logger.debug("Discarding response of superseded fetch #%d", token)
            return

        self._threads = list(threads)
        self._unread_count = sum(1 for thread in self._threads if thread.unread)
        self.cursor.advance(self._clock())
        self.state = SyncState.READY

    def _is_current(self, token: int) -> bool:
        return not self._closed and token == self._request_token

    async def mark_as_read(self, thread_id: int) -> None:
        await self._apply_read_mutation(
            lambda thread: thread.thread_id == thread_id,
            lambda: self.client.mark_thread_read(thread_id),
            f"thread {thread_id}",
        )

    async def mark_all_as_read(self) -> None:
        await self._apply_read_mutation(
            lambda thread: True,
            self.client.mark_all_read,
            "all threads",
        )

    async def mark_repository_as_read(self, owner: str, name: str) -> None:
        full_name = f"{owner}/{name}".lower()
        await self._apply_read_mutation(
            lambda thread: thread.repository.full_name.lower() == full_name,
            lambda: self.client.mark_repo_read(owner, name),
            f"repository {owner}/{name}",
        )

    async def _apply_read_mutation(
        self,
        matches: Callable[[NotificationThread], bool],
        remote_call: Callable[[], Awaitable[None]],
        description: str,
    ) -> None:
        """Flip matching threads to read locally, then tell the remote side.

        A failed remote call leaves the local state as is; the divergence is
        logged and surfaced through `error`.
        """

        if self._closed:
            return

        flipped = 0
        updated: list[NotificationThread] = []
        for thread in self._threads:
            if thread.unread and matches(thread):
                thread = replace(thread, unread=False)
                flipped += 1
            updated.append(thread)
        self._threads = updated
        self._unread_count = max(0, self._unread_count - flipped)

        try:
            await remote_call()
        except Exception as exc:
            logger.warning(
                "Marking %s as read failed remotely; local state kept: %s",
                description,
                exc,
            )
            if not self._closed:
                self.error = "Failed to mark notifications as read. Please try again later."

    def start(self) -> None:
        """Run an initial fetch and schedule the recurring refresh."""

        if self._closed or self._refresh_task is not None:
            return
        self._refresh_task = asyncio.create_task(self._refresh_loop())

    async def _refresh_loop(self) -> None:
        while not self._closed:
            self._launch_fetch()
            await asyncio.sleep(self.refresh_interval_seconds)

    def _launch_fetch(self) -> None:
        # A new tick supersedes whatever is still pending.
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._inflight = asyncio.create_task(self.fetch())

    async def close(self) -> None:
        """Cancel timers and in-flight work and reset to an empty state."""

        self._closed = True
        tasks = [task for task in (self._refresh_task, self._inflight) if task is not None]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._refresh_task = None
        self._inflight = None

        self._threads = []
        self._unread_count = 0
        self.cursor = SyncCursor()
        self.state = SyncState.IDLE
        self.error = None
