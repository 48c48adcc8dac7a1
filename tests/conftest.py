import asyncio
import os
from collections.abc import Callable
from datetime import UTC
from datetime import datetime

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from dashboard.clients.github_client import GitHubAPIError  # noqa: E402
from dashboard.entities import CommitActivityWeek  # noqa: E402
from dashboard.entities import CommitSummary  # noqa: E402
from dashboard.entities import IssueSummary  # noqa: E402
from dashboard.entities import NotificationThread  # noqa: E402
from dashboard.entities import PullRequestSummary  # noqa: E402
from dashboard.entities import RepositoryRef  # noqa: E402
from dashboard.entities import SubjectType  # noqa: E402


def utc(year: int, month: int, day: int, hour: int = 12) -> datetime:
    return datetime(year, month, day, hour, tzinfo=UTC)


def make_thread(
    thread_id: int,
    repository: str = "octocat/hello",
    unread: bool = True,
    subject_type: SubjectType = SubjectType.ISSUE,
) -> NotificationThread:
    owner, name = repository.split("/")
    return NotificationThread(
        id=str(thread_id),
        thread_id=thread_id,
        repository=RepositoryRef(owner=owner, name=name),
        subject_type=subject_type,
        subject_title=f"Thread {thread_id}",
        reason="mention",
        unread=unread,
        updated_at=utc(2026, 2, 20),
    )


class FakeGitHubClient:
    """In-process stand-in for `GitHubClient` driven by per-repository fixtures.

    Any configured value that is an exception instance is raised instead of
    returned. Commit activity takes a list of responses consumed in order.
    """

    def __init__(self, login: str = "octocat") -> None:
        self.login = login
        self.repositories: list[RepositoryRef] | Exception = []
        self.commits: dict[str, list[CommitSummary] | Exception] = {}
        self.pull_requests: dict[str, list[PullRequestSummary] | Exception] = {}
        self.issues: dict[str, list[IssueSummary] | Exception] = {}
        self.commit_activity: dict[str, list[list[CommitActivityWeek] | Exception]] = {}
        self.notification_handler: Callable[..., object] | None = None
        self.notification_calls: list[dict[str, object]] = []
        self.mutation_calls: list[tuple[object, ...]] = []
        self.mutation_error: Exception | None = None
        self.activity_calls: dict[str, int] = {}
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    def add_repository(self, full_name: str) -> RepositoryRef:
        owner, name = full_name.split("/")
        repo = RepositoryRef(owner=owner, name=name)
        if isinstance(self.repositories, list):
            self.repositories.append(repo)
        return repo

    @staticmethod
    def _resolve(value):
        if isinstance(value, Exception):
            raise value
        return value

    async def _track(self, value):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            return self._resolve(value)
        finally:
            self.in_flight -= 1

    async def fetch_authenticated_user(self) -> str:
        return self.login

    async def list_repositories(self, user: str) -> list[RepositoryRef]:
        return list(self._resolve(self.repositories))

    async def list_commits(self, owner: str, repo: str, author: str | None = None):
        return await self._track(self.commits.get(f"{owner}/{repo}", []))

    async def list_pull_requests(self, owner: str, repo: str):
        return await self._track(self.pull_requests.get(f"{owner}/{repo}", []))

    async def list_issues(self, owner: str, repo: str, creator: str | None = None):
        return await self._track(self.issues.get(f"{owner}/{repo}", []))

    async def list_commit_activity(self, owner: str, repo: str):
        full_name = f"{owner}/{repo}"
        self.activity_calls[full_name] = self.activity_calls.get(full_name, 0) + 1
        responses = self.commit_activity.get(full_name)
        if not responses:
            return []
        value = responses.pop(0) if len(responses) > 1 else responses[0]
        return await self._track(value)

    async def list_notifications(self, **kwargs):
        self.notification_calls.append(kwargs)
        if self.notification_handler is None:
            return []
        result = self.notification_handler(**kwargs)
        if asyncio.iscoroutine(result):
            result = await result
        return self._resolve(result)

    async def _mutate(self, *call: object) -> None:
        self.mutation_calls.append(call)
        if self.mutation_error is not None:
            raise self.mutation_error

    async def mark_thread_read(self, thread_id: int) -> None:
        await self._mutate("thread", thread_id)

    async def mark_all_read(self) -> None:
        await self._mutate("all")

    async def mark_repo_read(self, owner: str, repo: str) -> None:
        await self._mutate("repo", owner, repo)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_client() -> FakeGitHubClient:
    return FakeGitHubClient()


@pytest.fixture
def api_error() -> GitHubAPIError:
    return GitHubAPIError("boom")
