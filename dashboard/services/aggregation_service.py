import asyncio
import logging
from collections.abc import Iterable
from datetime import date
from datetime import datetime

from dashboard.clients.github_client import GitHubAPIError
from dashboard.clients.github_client import GitHubClient
from dashboard.clients.github_client import InvalidGitHubTokenError
from dashboard.entities import AggregateStats
from dashboard.entities import ContributionTotals
from dashboard.entities import RepositoryRef


logger = logging.getLogger(__name__)

# Reviews cannot be listed in bulk; they are estimated from pull requests.
REVIEW_ESTIMATE_RATIO = 0.5
TRAILING_MONTHS = 12


class AggregationUnavailableError(Exception):
    """Raised when no repository data could be obtained at all."""


def month_key(moment: datetime | date) -> str:
    return f"{moment.year:04d}-{moment.month:02d}"


def trailing_month_keys(today: date, months: int = TRAILING_MONTHS) -> list[str]:
    """Return `YYYY-MM` keys for the last `months` months, newest first."""

    keys: list[str] = []
    year, month = today.year, today.month
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return keys


def estimate_reviews(pull_request_count: int) -> int:
    return int(pull_request_count * REVIEW_ESTIMATE_RATIO)


def select_repositories(
    repositories: list[RepositoryRef],
    limit: int,
    full_names: Iterable[str] | None = None,
) -> list[RepositoryRef]:
    """Apply the optional full-name filter, then keep the first `limit` repositories."""

    if full_names:
        wanted = {name.lower() for name in full_names}
        repositories = [repo for repo in repositories if repo.full_name.lower() in wanted]
    return repositories[: max(0, limit)]


class AggregationEngine:
    """Fan out per-repository activity requests and merge them into `AggregateStats`.

    Each repository issues three requests (commits, pull requests, issues). A
    failed request only removes its own field for that repository, so the
    remaining totals stay consistent with `by_repo`.
    """

    def __init__(
        self,
        client: GitHubClient,
        max_repositories: int = 10,
        max_concurrency: int = 4,
    ) -> None:
        self.client = client
        self.max_repositories = max_repositories
        self.max_concurrency = max(1, max_concurrency)

    async def aggregate(
        self,
        username: str,
        repositories: Iterable[str] | None = None,
        today: date | None = None,
    ) -> AggregateStats:
        try:
            all_repositories = await self.client.list_repositories(username)
        except InvalidGitHubTokenError:
            raise
        except GitHubAPIError as exc:
            logger.error("Could not list repositories for %s: %s", username, exc)
            raise AggregationUnavailableError(
                f"repositories for {username} are unavailable"
            ) from exc

        stats = AggregateStats(repository_count=len(all_repositories))
        for key in trailing_month_keys(today or date.today()):
            stats.by_month[key] = ContributionTotals()

        targets = select_repositories(all_repositories, self.max_repositories, repositories)
        if not targets:
            return stats

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(repo: RepositoryRef) -> tuple[RepositoryRef, list[object]]:
            async with semaphore:
                return repo, await self._fetch_repository(username, repo)

        results = await asyncio.gather(*(bounded(repo) for repo in targets))

        reachable = 0
        for repo, outcomes in results:
            reachable += self._merge_repository(stats, username, repo, outcomes)

        if reachable == 0:
            logger.error("No activity could be fetched for %s", username)
            raise AggregationUnavailableError(f"no repository data for {username}")

        return stats

    async def _fetch_repository(self, username: str, repo: RepositoryRef) -> list[object]:
        return await asyncio.gather(
            self.client.list_commits(repo.owner, repo.name, author=username),
            self.client.list_pull_requests(repo.owner, repo.name),
            self.client.list_issues(repo.owner, repo.name, creator=username),
            return_exceptions=True,
        )

    def _merge_repository(
        self,
        stats: AggregateStats,
        username: str,
        repo: RepositoryRef,
        outcomes: list[object],
    ) -> int:
        """Merge one repository's outcomes; return the number of successful requests."""

        commits, pull_requests, issues = outcomes
        totals = ContributionTotals()
        succeeded = 0
        login = username.lower()

        for label, outcome in zip(("commits", "pull requests", "issues"), outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.warning(
                    "Failed to fetch %s for %s: %s", label, repo.full_name, outcome
                )

        if not isinstance(commits, BaseException):
            succeeded += 1
            totals.commits = len(commits)
            for commit in commits:
                if commit.authored_at is not None:
                    self._bucket(stats, commit.authored_at).commits += 1

        if not isinstance(pull_requests, BaseException):
            succeeded += 1
            authored = [
                pr
                for pr in pull_requests
                if pr.author_login is not None and pr.author_login.lower() == login
            ]
            totals.pull_requests = len(authored)
            totals.reviews = estimate_reviews(len(authored))
            for pr in authored:
                if pr.created_at is not None:
                    self._bucket(stats, pr.created_at).pull_requests += 1

        if not isinstance(issues, BaseException):
            succeeded += 1
            # The issues endpoint also returns pull requests.
            actual_issues = [issue for issue in issues if not issue.is_pull_request]
            totals.issues = len(actual_issues)
            for issue in actual_issues:
                if issue.created_at is not None:
                    self._bucket(stats, issue.created_at).issues += 1

        if succeeded == 0:
            stats.failed_repositories.append(repo.full_name)
            return 0

        stats.by_repo[repo.full_name] = totals
        return succeeded

    @staticmethod
    def _bucket(stats: AggregateStats, moment: datetime) -> ContributionTotals:
        return stats.by_month.setdefault(month_key(moment), ContributionTotals())
