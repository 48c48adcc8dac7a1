import asyncio
import logging
from datetime import date

from dashboard.clients.github_client import GitHubAPIError
from dashboard.clients.github_client import GitHubClient
from dashboard.clients.github_client import InvalidGitHubTokenError
from dashboard.clients.github_client import StatsNotReadyError
from dashboard.entities import CommitActivityWeek
from dashboard.entities import ContributionCalendar
from dashboard.entities import ContributionDay
from dashboard.entities import ContributionWeek
from dashboard.entities import RepositoryRef


logger = logging.getLogger(__name__)


class CalendarUnavailableError(Exception):
    """Raised when no contribution data can be obtained for a calendar."""


def build_empty_calendar(year: int) -> ContributionCalendar:
    """Create Sunday-aligned weeks covering Jan 1 to Dec 31 of `year`.

    Slots in the first and last week that fall outside the year stay `None`.
    """

    first_ordinal = date(year, 1, 1).toordinal()
    last_ordinal = date(year, 12, 31).toordinal()

    # Pad by position only; dates outside the year may not exist (year 9999).
    leading = (date(year, 1, 1).weekday() + 1) % 7
    slots: list[ContributionDay | None] = [None] * leading
    slots.extend(
        ContributionDay(date=date.fromordinal(ordinal))
        for ordinal in range(first_ordinal, last_ordinal + 1)
    )
    slots.extend([None] * (-len(slots) % 7))

    weeks = [
        ContributionWeek(days=slots[index : index + 7])
        for index in range(0, len(slots), 7)
    ]
    return ContributionCalendar(year=year, weeks=weeks)


def accumulate_commit_activity(
    calendar: ContributionCalendar,
    activity: list[CommitActivityWeek],
) -> int:
    """Add weekly commit buckets into the calendar; return the count added."""

    days_by_ordinal = {day.date.toordinal(): day for day in calendar.days()}
    added = 0
    for bucket in activity:
        week_start = bucket.start_date
        if week_start is None:
            logger.warning("Skipping commit activity week %s", bucket.week_start)
            continue
        for offset, count in enumerate(bucket.daily_counts):
            day = days_by_ordinal.get(week_start.toordinal() + offset)
            if day is None or count <= 0:
                continue
            day.count += count
            added += count
    return added


def compute_streaks(days: list[ContributionDay]) -> tuple[int, int]:
    """Return `(current_streak, longest_streak)` over the days in date order."""

    ordered = sorted(days, key=lambda day: day.date)

    longest = 0
    running = 0
    for day in ordered:
        if day.count > 0:
            running += 1
            longest = max(longest, running)
        else:
            running = 0

    current = 0
    for day in reversed(ordered):
        if day.count <= 0:
            break
        current += 1

    return current, longest


def summarize_calendar(calendar: ContributionCalendar) -> ContributionCalendar:
    days = calendar.days()
    calendar.total_contributions = sum(day.count for day in days)
    calendar.max_contributions = max((day.count for day in days), default=0)
    calendar.current_streak, calendar.longest_streak = compute_streaks(days)
    return calendar


class CalendarSynthesizer:
    """Build a yearly contribution calendar from per-repository commit activity."""

    def __init__(
        self,
        client: GitHubClient,
        max_repositories: int = 10,
        max_concurrency: int = 4,
        retry_delay_seconds: float = 2.0,
    ) -> None:
        self.client = client
        self.max_repositories = max_repositories
        self.max_concurrency = max(1, max_concurrency)
        self.retry_delay_seconds = retry_delay_seconds

    async def synthesize(self, username: str, year: int) -> ContributionCalendar:
        try:
            repositories = await self.client.list_repositories(username)
        except InvalidGitHubTokenError:
            raise
        except GitHubAPIError as exc:
            logger.error("Could not list repositories for %s: %s", username, exc)
            raise CalendarUnavailableError(
                f"repositories for {username} are unavailable"
            ) from exc

        calendar = build_empty_calendar(year)
        targets = repositories[: max(0, self.max_repositories)]
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(repo: RepositoryRef) -> list[CommitActivityWeek] | None:
            async with semaphore:
                return await self._fetch_activity(repo)

        results = await asyncio.gather(*(bounded(repo) for repo in targets))

        failures = 0
        for activity in results:
            if activity is None:
                failures += 1
                continue
            accumulate_commit_activity(calendar, activity)

        if targets and failures == len(targets):
            raise CalendarUnavailableError(f"no commit activity for {username}")

        return summarize_calendar(calendar)

    async def _fetch_activity(self, repo: RepositoryRef) -> list[CommitActivityWeek] | None:
        """Fetch one repository's weekly activity.

        Statistics still being generated are retried once after a short delay
        and then counted as empty. Other failures return `None`.
        """

        for attempt in range(2):
            try:
                return await self.client.list_commit_activity(repo.owner, repo.name)
            except StatsNotReadyError:
                if attempt == 0:
                    logger.info(
                        "Statistics for %s not ready, retrying in %.1fs",
                        repo.full_name,
                        self.retry_delay_seconds,
                    )
                    await asyncio.sleep(self.retry_delay_seconds)
            except GitHubAPIError as exc:
                logger.warning(
                    "Failed to fetch commit activity for %s: %s", repo.full_name, exc
                )
                return None

        logger.warning("Statistics for %s still not ready, counting as zero", repo.full_name)
        return []
