from pydantic import BaseModel

from dashboard.entities import AggregateStats
from dashboard.entities import ContributionTotals


class TotalsPayload(BaseModel):
    commits: int
    pull_requests: int
    issues: int
    reviews: int

    @classmethod
    def from_totals(cls, totals: ContributionTotals) -> "TotalsPayload":
        return cls(
            commits=totals.commits,
            pull_requests=totals.pull_requests,
            issues=totals.issues,
            reviews=totals.reviews,
        )


class StatsResponse(BaseModel):
    """Cross-repository contribution counts for the session user.

    `reviews` values are estimates derived from pull request counts.
    """

    username: str
    repository_count: int
    total_contributions: int
    totals: TotalsPayload
    reviews_estimated: bool
    by_repo: dict[str, TotalsPayload]
    by_month: dict[str, TotalsPayload]
    failed_repositories: list[str]

    @classmethod
    def from_stats(cls, username: str, stats: AggregateStats) -> "StatsResponse":
        return cls(
            username=username,
            repository_count=stats.repository_count,
            total_contributions=stats.total_contributions,
            totals=TotalsPayload.from_totals(stats.totals),
            reviews_estimated=stats.reviews_estimated,
            by_repo={
                name: TotalsPayload.from_totals(totals)
                for name, totals in stats.by_repo.items()
            },
            by_month={
                key: TotalsPayload.from_totals(stats.by_month[key])
                for key in sorted(stats.by_month)
            },
            failed_repositories=list(stats.failed_repositories),
        )
