from dataclasses import dataclass
from dataclasses import field
from datetime import UTC
from datetime import date
from datetime import datetime
from datetime import timedelta
from enum import Enum


@dataclass(frozen=True)
class RepositoryRef:
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class CommitSummary:
    sha: str
    authored_at: datetime | None


@dataclass(frozen=True)
class PullRequestSummary:
    number: int
    author_login: str | None
    created_at: datetime | None


@dataclass(frozen=True)
class IssueSummary:
    number: int
    author_login: str | None
    created_at: datetime | None
    is_pull_request: bool = False


@dataclass(frozen=True)
class CommitActivityWeek:
    """One weekly bucket of the commit-activity statistics endpoint.

    `week_start` is epoch seconds at the start of a Sunday (UTC) and
    `daily_counts` holds seven counts, Sunday first.
    """

    week_start: int
    daily_counts: tuple[int, ...]

    @property
    def start_date(self) -> date | None:
        """UTC date of `week_start`, or `None` when the timestamp is out of range."""

        try:
            return datetime.fromtimestamp(self.week_start, UTC).date()
        except (OverflowError, OSError, ValueError):
            return None


def contribution_level(count: int) -> int:
    """Map daily contribution count to a heatmap level in range 0..4."""

    if count <= 0:
        return 0
    if count <= 2:
        return 1
    if count <= 5:
        return 2
    if count <= 10:
        return 3
    return 4


@dataclass
class ContributionDay:
    date: date
    count: int = 0

    @property
    def level(self) -> int:
        return contribution_level(self.count)


@dataclass
class ContributionWeek:
    """Sunday-first week. Slots outside the calendar year are `None`."""

    days: list[ContributionDay | None]

    @property
    def week_start(self) -> date:
        for offset, day in enumerate(self.days):
            if day is not None:
                return day.date - timedelta(days=offset)
        raise ValueError("week has no days")


@dataclass
class ContributionCalendar:
    year: int
    weeks: list[ContributionWeek]
    total_contributions: int = 0
    max_contributions: int = 0
    current_streak: int = 0
    longest_streak: int = 0

    def days(self) -> list[ContributionDay]:
        return [day for week in self.weeks for day in week.days if day is not None]


@dataclass
class ContributionTotals:
    commits: int = 0
    pull_requests: int = 0
    issues: int = 0
    reviews: int = 0

    @property
    def total(self) -> int:
        return self.commits + self.pull_requests + self.issues + self.reviews

    def add(self, other: "ContributionTotals") -> None:
        self.commits += other.commits
        self.pull_requests += other.pull_requests
        self.issues += other.issues
        self.reviews += other.reviews


@dataclass
class AggregateStats:
    repository_count: int = 0
    by_repo: dict[str, ContributionTotals] = field(default_factory=dict)
    by_month: dict[str, ContributionTotals] = field(default_factory=dict)
    failed_repositories: list[str] = field(default_factory=list)
    # Reviews are derived from pull request counts, never read from the API.
    reviews_estimated: bool = True

    @property
    def totals(self) -> ContributionTotals:
        totals = ContributionTotals()
        for repo_totals in self.by_repo.values():
            totals.add(repo_totals)
        return totals

    @property
    def total_contributions(self) -> int:
        return self.totals.total


class SubjectType(str, Enum):
    ISSUE = "Issue"
    PULL_REQUEST = "PullRequest"
    DISCUSSION = "Discussion"
    RELEASE = "Release"
    OTHER = "Other"

    @classmethod
    def from_raw(cls, raw_value: object) -> "SubjectType":
        for member in cls:
            if member.value == raw_value:
                return member
        return cls.OTHER


@dataclass(frozen=True)
class NotificationThread:
    id: str
    thread_id: int
    repository: RepositoryRef
    subject_type: SubjectType
    subject_title: str
    reason: str
    unread: bool
    updated_at: datetime


@dataclass
class SyncCursor:
    last_fetch_time: datetime | None = None

    def advance(self, fetched_at: datetime) -> None:
        if self.last_fetch_time is None or fetched_at > self.last_fetch_time:
            self.last_fetch_time = fetched_at
