import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

import httpx

from dashboard.entities import CommitActivityWeek
from dashboard.entities import CommitSummary
from dashboard.entities import IssueSummary
from dashboard.entities import NotificationThread
from dashboard.entities import PullRequestSummary
from dashboard.entities import RepositoryRef
from dashboard.entities import SubjectType
from dashboard.settings import Settings


logger = logging.getLogger(__name__)


class GitHubAPIError(Exception):
    """Raised when GitHub requests fail for non-auth reasons."""


class InvalidGitHubTokenError(GitHubAPIError):
    """Raised when GitHub rejects the provided token."""


class StatsNotReadyError(GitHubAPIError):
    """Raised when GitHub is still computing repository statistics (HTTP 202)."""


def parse_github_datetime(raw_value: object) -> datetime | None:
    if not isinstance(raw_value, str) or not raw_value:
        return None
    try:
        return datetime.fromisoformat(raw_value.replace("Z", "+00:00"))
    except ValueError:
        return None


def decode_repository(item: Mapping[str, Any]) -> RepositoryRef | None:
    owner = item.get("owner")
    owner_login = owner.get("login") if isinstance(owner, Mapping) else None
    name = item.get("name")
    if not isinstance(owner_login, str) or not isinstance(name, str):
        full_name = item.get("full_name")
        if isinstance(full_name, str) and full_name.count("/") == 1:
            owner_login, name = full_name.split("/")
        else:
            return None
    return RepositoryRef(owner=owner_login, name=name)


def decode_commit(item: Mapping[str, Any]) -> CommitSummary | None:
    sha = item.get("sha")
    if not isinstance(sha, str):
        return None
    commit = item.get("commit")
    authored_at = None
    if isinstance(commit, Mapping):
        for role in ("author", "committer"):
            person = commit.get(role)
            if isinstance(person, Mapping):
                authored_at = parse_github_datetime(person.get("date"))
                if authored_at is not None:
                    break
    return CommitSummary(sha=sha, authored_at=authored_at)


def _login_of(item: Mapping[str, Any]) -> str | None:
    user = item.get("user")
    if isinstance(user, Mapping) and isinstance(user.get("login"), str):
        return user["login"]
    return None


def decode_pull_request(item: Mapping[str, Any]) -> PullRequestSummary | None:
    number = item.get("number")
    if not isinstance(number, int):
        return None
    return PullRequestSummary(
        number=number,
        author_login=_login_of(item),
        created_at=parse_github_datetime(item.get("created_at")),
    )


def decode_issue(item: Mapping[str, Any]) -> IssueSummary | None:
    number = item.get("number")
    if not isinstance(number, int):
        return None
    return IssueSummary(
        number=number,
        author_login=_login_of(item),
        created_at=parse_github_datetime(item.get("created_at")),
        is_pull_request=item.get("pull_request") is not None,
    )


def decode_commit_activity_week(item: Mapping[str, Any]) -> CommitActivityWeek | None:
    week_start = item.get("week")
    days = item.get("days")
    if not isinstance(week_start, int) or not isinstance(days, list):
        return None
    if len(days) != 7 or not all(isinstance(count, int) for count in days):
        return None
    week = CommitActivityWeek(week_start=week_start, daily_counts=tuple(days))
    if week.start_date is None:
        logger.debug("Skipping commit activity week with timestamp %s", week_start)
        return None
    return week


def decode_notification(item: Mapping[str, Any]) -> NotificationThread | None:
    """Decode one notification thread; the subject kind becomes a `SubjectType`."""

    raw_id = item.get("id")
    if not isinstance(raw_id, str | int):
        return None
    try:
        thread_id = int(raw_id)
    except ValueError:
        return None

    repository_data = item.get("repository")
    repository = (
        decode_repository(repository_data)
        if isinstance(repository_data, Mapping)
        else None
    )
    updated_at = parse_github_datetime(item.get("updated_at"))
    if repository is None or updated_at is None:
        return None

    subject = item.get("subject")
    subject = subject if isinstance(subject, Mapping) else {}
    title = subject.get("title")
    reason = item.get("reason")
    return NotificationThread(
        id=str(raw_id),
        thread_id=thread_id,
        repository=repository,
        subject_type=SubjectType.from_raw(subject.get("type")),
        subject_title=title if isinstance(title, str) else "",
        reason=reason if isinstance(reason, str) else "",
        unread=bool(item.get("unread")),
        updated_at=updated_at,
    )


class GitHubClient:
    """Async facade over the GitHub REST API used by the dashboard engine.

    List calls follow `Link: rel="next"` up to `max_pages` pages. Payloads are
    decoded into entities here so nothing downstream sees raw JSON.
    """

    def __init__(
        self,
        token: str,
        api_base_url: str = "https://api.github.com",
        timeout: float = 15.0,
        per_page: int = 100,
        max_pages: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.per_page = per_page
        self.max_pages = max(1, max_pages)
        self._client = httpx.AsyncClient(
            base_url=api_base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "User-Agent": "github-activity-dashboard",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, token: str, settings: Settings) -> "GitHubClient":
        return cls(
            token=token,
            api_base_url=settings.github_api_base_url,
            timeout=settings.github_request_timeout_seconds,
            per_page=settings.github_per_page,
            max_pages=settings.github_max_pages,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, url, params=params, json=json)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code in {401, 403}:
                raise InvalidGitHubTokenError(
                    f"GitHub rejected {method} {url}"
                ) from exc
            raise GitHubAPIError(
                f"GitHub returned {exc.response.status_code} for {method} {url}"
            ) from exc
        except httpx.HTTPError as exc:
            raise GitHubAPIError(f"GitHub request failed: {method} {url}") from exc
        return response

    @staticmethod
    def _decode_json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise GitHubAPIError(
                f"GitHub returned invalid JSON for {response.request.url}"
            ) from exc

    async def _paginate(
        self, url: str, params: Mapping[str, Any] | None = None
    ) -> list[Mapping[str, Any]]:
        items: list[Mapping[str, Any]] = []
        next_url: str | None = url
        next_params: dict[str, Any] | None = {"per_page": self.per_page, **(params or {})}
        pages = 0

        while next_url and pages < self.max_pages:
            response = await self._request("GET", next_url, params=next_params)
            payload = self._decode_json(response)
            if not isinstance(payload, list):
                raise GitHubAPIError(f"GitHub list response is invalid: {url}")
            items.extend(item for item in payload if isinstance(item, Mapping))

            pages += 1
            next_link = response.links.get("next")
            next_url = next_link.get("url") if next_link else None
            # The next link already carries the query string.
            next_params = None

        return items

    async def fetch_authenticated_user(self) -> str:
        """Return the login of the token owner."""

        response = await self._request("GET", "/user")
        payload = self._decode_json(response)
        if not isinstance(payload, Mapping):
            raise GitHubAPIError("GitHub user response is invalid")

        raw_login = payload.get("login")
        if not isinstance(raw_login, str) or not raw_login:
            raise GitHubAPIError("GitHub user response is missing required fields")
        return raw_login

    async def list_repositories(self, user: str) -> list[RepositoryRef]:
        items = await self._paginate(
            f"/users/{user}/repos", params={"sort": "updated", "direction": "desc"}
        )
        return [repo for repo in map(decode_repository, items) if repo is not None]

    async def list_commit_activity(self, owner: str, repo: str) -> list[CommitActivityWeek]:
        response = await self._request("GET", f"/repos/{owner}/{repo}/stats/commit_activity")
        if response.status_code == 202:
            raise StatsNotReadyError(f"statistics for {owner}/{repo} are being generated")
        if response.status_code == 204:
            # Empty repository: no statistics at all.
            return []

        payload = self._decode_json(response)
        if not isinstance(payload, list):
            raise GitHubAPIError(f"commit activity for {owner}/{repo} is invalid")
        weeks = [
            decode_commit_activity_week(item)
            for item in payload
            if isinstance(item, Mapping)
        ]
        return sorted(
            (week for week in weeks if week is not None),
            key=lambda week: week.week_start,
        )

    async def list_commits(
        self, owner: str, repo: str, author: str | None = None
    ) -> list[CommitSummary]:
        params = {"author": author} if author else None
        items = await self._paginate(f"/repos/{owner}/{repo}/commits", params=params)
        return [commit for commit in map(decode_commit, items) if commit is not None]

    async def list_pull_requests(self, owner: str, repo: str) -> list[PullRequestSummary]:
        items = await self._paginate(
            f"/repos/{owner}/{repo}/pulls", params={"state": "all"}
        )
        return [pr for pr in map(decode_pull_request, items) if pr is not None]

    async def list_issues(
        self, owner: str, repo: str, creator: str | None = None
    ) -> list[IssueSummary]:
        params: dict[str, Any] = {"state": "all"}
        if creator:
            params["creator"] = creator
        items = await self._paginate(f"/repos/{owner}/{repo}/issues", params=params)
        return [issue for issue in map(decode_issue, items) if issue is not None]

    async def list_notifications(
        self,
        since: datetime | None = None,
        all_threads: bool = False,
        participating: bool = False,
        per_page: int = 50,
    ) -> list[NotificationThread]:
        params: dict[str, Any] = {
            "all": str(all_threads).lower(),
            "participating": str(participating).lower(),
            "per_page": per_page,
        }
        if since is not None:
            params["since"] = since.isoformat().replace("+00:00", "Z")

        response = await self._request("GET", "/notifications", params=params)
        payload = self._decode_json(response)
        if not isinstance(payload, list):
            raise GitHubAPIError("GitHub notifications response is invalid")

        threads: list[NotificationThread] = []
        for item in payload:
            thread = decode_notification(item) if isinstance(item, Mapping) else None
            if thread is None:
                logger.debug("Skipping undecodable notification payload")
                continue
            threads.append(thread)
        return threads

    async def mark_thread_read(self, thread_id: int) -> None:
        await self._request("PATCH", f"/notifications/threads/{thread_id}")

    async def mark_all_read(self) -> None:
        await self._request("PUT", "/notifications", json={})

    async def mark_repo_read(self, owner: str, repo: str) -> None:
        await self._request("PUT", f"/repos/{owner}/{repo}/notifications", json={})
