import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from conftest import FakeGitHubClient
from conftest import make_thread
from conftest import utc
from dashboard.clients.github_client import GitHubAPIError
from dashboard.clients.github_client import InvalidGitHubTokenError
from dashboard.db import Base
from dashboard.db import get_db
from dashboard.entities import CommitSummary
from dashboard.entities import PullRequestSummary
from dashboard.main import create_app
from dashboard.settings import Settings


AUTH = {"Authorization": "Bearer test-token"}


class RejectingGitHubClient(FakeGitHubClient):
    async def fetch_authenticated_user(self) -> str:
        raise InvalidGitHubTokenError("bad token")


@pytest.fixture
def fake_github() -> FakeGitHubClient:
    client = FakeGitHubClient()
    client.add_repository("octocat/hello")
    client.add_repository("octocat/demo")
    client.commits["octocat/hello"] = [
        CommitSummary(sha="a", authored_at=utc(2026, 1, 4)),
        CommitSummary(sha="b", authored_at=utc(2026, 1, 5)),
        CommitSummary(sha="c", authored_at=utc(2026, 2, 1)),
    ]
    client.pull_requests["octocat/hello"] = [
        PullRequestSummary(number=1, author_login="octocat", created_at=utc(2026, 1, 9)),
        PullRequestSummary(number=2, author_login="octocat", created_at=utc(2026, 2, 9)),
    ]
    client.commits["octocat/demo"] = [
        CommitSummary(sha=f"d{index}", authored_at=utc(2026, 2, 3)) for index in range(5)
    ]
    client.pull_requests["octocat/demo"] = GitHubAPIError("rate limited")
    client.notification_handler = lambda **_: [
        make_thread(1),
        make_thread(2, repository="octocat/demo"),
        make_thread(3, unread=False),
    ]
    return client


@pytest.fixture
def api(fake_github: FakeGitHubClient) -> TestClient:
    test_engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(
        bind=test_engine,
        autoflush=False,
        autocommit=False,
    )
    Base.metadata.create_all(bind=test_engine)

    def override_get_db():
        db = testing_session_local()
        try:
            yield db
        finally:
            db.close()

    app = create_app(Settings(rate_limit_per_minute=100, stats_retry_delay_seconds=0))
    app.dependency_overrides[get_db] = override_get_db
    app.state.client_factory = lambda token: fake_github

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def signed_in(api: TestClient) -> TestClient:
    response = api.post("/session", headers=AUTH)
    assert response.status_code == 201
    return api


def test_read_root_returns_greeting(api: TestClient) -> None:
    response = api.get("/")

    assert response.status_code == 200
    assert response.json() == {"message": "GitHub activity dashboard"}


def test_health_live_returns_ok(api: TestClient) -> None:
    assert api.get("/health/live").json() == {"status": "ok"}


def test_settings_reads_values_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("MAX_REPOSITORIES", "5")
    monkeypatch.setenv("NOTIFICATION_TIMEOUT_SECONDS", "2.5")

    settings = Settings()

    assert settings.max_repositories == 5
    assert settings.notification_timeout_seconds == 2.5


def test_open_session_requires_bearer_token(api: TestClient) -> None:
    response = api.post("/session")

    assert response.status_code == 401
    assert response.json() == {"detail": "Authorization Bearer token is required"}


def test_open_session_returns_username(api: TestClient) -> None:
    response = api.post("/session", headers=AUTH)

    assert response.status_code == 201
    assert response.json() == {"username": "octocat"}


def test_open_session_rejects_invalid_token(api: TestClient) -> None:
    rejecting = RejectingGitHubClient()
    api.app.state.client_factory = lambda token: rejecting

    response = api.post("/session", headers=AUTH)

    assert response.status_code == 401
    assert response.json() == {"detail": "GitHub token is invalid"}
    assert rejecting.closed is True


def test_stats_requires_session(api: TestClient) -> None:
    response = api.get("/stats", headers=AUTH)

    assert response.status_code == 401
    assert response.json() == {"detail": "No active session, sign in first"}


def test_stats_tolerates_partial_failure(signed_in: TestClient) -> None:
    response = signed_in.get("/stats", headers=AUTH)

    assert response.status_code == 200
    body = response.json()
    assert body["username"] == "octocat"
    assert body["repository_count"] == 2
    assert body["totals"] == {"commits": 8, "pull_requests": 2, "issues": 0, "reviews": 1}
    assert body["reviews_estimated"] is True
    assert body["by_repo"]["octocat/demo"]["pull_requests"] == 0
    assert body["total_contributions"] == 11


def test_stats_filters_repositories(signed_in: TestClient) -> None:
    response = signed_in.get("/stats?repositories=octocat/hello", headers=AUTH)

    assert response.status_code == 200
    assert list(response.json()["by_repo"]) == ["octocat/hello"]


def test_stats_returns_502_when_repositories_unavailable(
    signed_in: TestClient, fake_github: FakeGitHubClient
) -> None:
    fake_github.repositories = GitHubAPIError("down")

    response = signed_in.get("/stats", headers=AUTH)

    assert response.status_code == 502
    assert response.json() == {"detail": "Failed to load contribution data"}


def test_activity_returns_401_when_token_revoked_after_sign_in(
    signed_in: TestClient, fake_github: FakeGitHubClient
) -> None:
    fake_github.repositories = InvalidGitHubTokenError("revoked")

    stats = signed_in.get("/stats", headers=AUTH)
    calendar = signed_in.get("/calendar/2026", headers=AUTH)

    assert stats.status_code == 401
    assert stats.json() == {"detail": "GitHub token is invalid"}
    assert calendar.status_code == 401
    assert calendar.json() == {"detail": "GitHub token is invalid"}


def test_calendar_returns_year_grid(signed_in: TestClient) -> None:
    response = signed_in.get("/calendar/2026", headers=AUTH)

    assert response.status_code == 200
    body = response.json()
    assert body["year"] == 2026
    assert body["total_contributions"] == 0
    assert body["weeks"][0]["week_start"] == "2025-12-28"
    assert body["weeks"][0]["days"][3] is None
    assert body["weeks"][0]["days"][4] == {"date": "2026-01-01", "count": 0, "level": 0}


def test_calendar_rejects_out_of_range_year(signed_in: TestClient) -> None:
    response = signed_in.get("/calendar/1999", headers=AUTH)

    assert response.status_code == 422


def test_calendar_accepts_last_supported_year(signed_in: TestClient) -> None:
    response = signed_in.get("/calendar/9999", headers=AUTH)

    assert response.status_code == 200
    last_week = response.json()["weeks"][-1]
    assert last_week["days"][5] == {"date": "9999-12-31", "count": 0, "level": 0}
    assert last_week["days"][6] is None


def test_notifications_refresh_and_mark_read(signed_in: TestClient) -> None:
    refreshed = signed_in.post("/notifications/refresh?full=true", headers=AUTH)

    assert refreshed.status_code == 200
    assert refreshed.json()["state"] == "ready"
    assert refreshed.json()["unread_count"] == 2

    marked = signed_in.post("/notifications/1/read", headers=AUTH)
    assert marked.json()["unread_count"] == 1

    repo_marked = signed_in.post("/notifications/repos/octocat/demo/read", headers=AUTH)
    assert repo_marked.json()["unread_count"] == 0
    assert all(not item["unread"] for item in repo_marked.json()["notifications"])


def test_mark_all_notifications_read(signed_in: TestClient) -> None:
    signed_in.post("/notifications/refresh", headers=AUTH)

    response = signed_in.post("/notifications/read", headers=AUTH)

    assert response.status_code == 200
    assert response.json()["unread_count"] == 0


def test_close_session_tears_down(
    signed_in: TestClient, fake_github: FakeGitHubClient
) -> None:
    response = signed_in.delete("/session", headers=AUTH)

    assert response.status_code == 204
    assert fake_github.closed is True
    assert signed_in.get("/notifications", headers=AUTH).status_code == 401
    assert signed_in.delete("/session", headers=AUTH).status_code == 404


def test_dashboard_preferences_round_trip(api: TestClient) -> None:
    default = api.get("/preferences/dashboard")
    updated = api.put(
        "/preferences/dashboard",
        json={"contribution_chart_type": "bar", "activity_limit": 7},
    )

    assert default.json()["contribution_chart_type"] == "pie"
    assert updated.status_code == 200
    assert api.get("/preferences/dashboard").json()["activity_limit"] == 7


def test_search_history_endpoints(api: TestClient) -> None:
    api.post("/preferences/search-history", json={"query": "fastapi"})
    api.post("/preferences/search-history", json={"query": "httpx"})
    history = api.post("/preferences/search-history", json={"query": "fastapi"})

    assert [item["query"] for item in history.json()] == ["fastapi", "httpx"]

    assert api.delete("/preferences/search-history/httpx").status_code == 204
    assert api.delete("/preferences/search-history/httpx").status_code == 404
    assert api.delete("/preferences/search-history").status_code == 204
    assert api.get("/preferences/search-history").json() == []


def test_search_history_rejects_blank_query(api: TestClient) -> None:
    response = api.post("/preferences/search-history", json={"query": "   "})

    assert response.status_code == 400


def test_search_history_delete_strips_query(api: TestClient) -> None:
    api.post("/preferences/search-history", json={"query": "fastapi"})

    response = api.delete("/preferences/search-history/%20fastapi")

    assert response.status_code == 204
    assert api.get("/preferences/search-history").json() == []
