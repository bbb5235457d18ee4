from datetime import date, timedelta

import pytest
import requests

from conftest import GITHUB_TOKEN_URL, FakeGitHubSession, FakeResponse
from devpulse.errors import RateLimited, UpstreamFailure, ValidationFailure
from devpulse.models import CONTRIBUTIONS_FROM_GITHUB, CONTRIBUTIONS_UNAVAILABLE, GitHubStats
from devpulse.services.github_service import (
    GitHubClient,
    connect_github,
    derive_activity_counts,
    disconnect_github,
    github_profile,
    sync_github_stats,
)

TODAY = date(2026, 10, 18)

EVENTS = [
    {"type": "PushEvent", "payload": {"commits": [{"sha": "a"}, {"sha": "b"}]}},
    {"type": "PushEvent", "payload": {"commits": []}},
    {"type": "PushEvent", "payload": {"commits": [{"sha": str(n)} for n in range(5)]}},
    {"type": "PullRequestEvent", "payload": {}},
    {"type": "IssuesEvent", "payload": {}},
    {"type": "IssuesEvent", "payload": {}},
    {"type": "WatchEvent", "payload": {}},
]

REPOS = [
    {"name": "api", "stargazers_count": 3, "language": "Python"},
    {"name": "web", "stargazers_count": 10, "language": "TypeScript"},
    {"name": "cli", "stargazers_count": 0, "language": "Python"},
]


def calendar(days):
    return FakeResponse(
        200,
        {"data": {"user": {"contributionsCollection": {"contributionCalendar": {"weeks": [{"contributionDays": days}]}}}}},
    )


def github_api(session=None):
    session = session or FakeGitHubSession()
    session.add("GET", "/user", FakeResponse(200, {"login": "octo", "avatar_url": "https://avatars.test/octo"}))
    session.add("GET", "/user/repos", FakeResponse(200, REPOS))
    session.add("GET", "/users/octo/events", FakeResponse(200, EVENTS))
    return session


def gh_client(session, **kwargs):
    kwargs.setdefault("sleep", lambda seconds: None)
    return GitHubClient("gho_token", session=session, **kwargs)


class TestRetries:
    def test_retries_429_honouring_retry_after(self):
        session = FakeGitHubSession().add(
            "GET", "/user", FakeResponse(429, headers={"Retry-After": "2"}), FakeResponse(200, {"login": "octo"})
        )
        sleeps = []
        client = gh_client(session, sleep=sleeps.append)

        assert client.get_user() == {"login": "octo"}
        assert sleeps == [2.0]
        assert len(session.calls) == 2

    def test_backoff_without_retry_after_is_bounded(self):
        session = FakeGitHubSession().add("GET", "/user", FakeResponse(429), FakeResponse(429), FakeResponse(200, {}))
        sleeps = []
        gh_client(session, sleep=sleeps.append, base_delay=1.0, max_delay=30.0).get_user()

        assert len(sleeps) == 2
        assert 0 <= sleeps[0] <= 1.0
        assert 0 <= sleeps[1] <= 2.0

    def test_exhausted_retries_raise_rate_limited(self):
        session = FakeGitHubSession().add("GET", "/user", FakeResponse(429))
        sleeps = []
        with pytest.raises(RateLimited):
            gh_client(session, sleep=sleeps.append, max_retries=2).get_user()
        assert len(session.calls) == 3
        assert len(sleeps) == 2

    def test_other_errors_are_not_retried(self):
        session = FakeGitHubSession().add("GET", "/user", FakeResponse(500))
        with pytest.raises(UpstreamFailure) as excinfo:
            gh_client(session).get_user()
        assert excinfo.value.upstream_status == 500
        assert len(session.calls) == 1

    def test_transport_errors_become_upstream_failures(self):
        class BrokenSession:
            def request(self, method, url, **kwargs):
                raise requests.ConnectionError("boom")

        with pytest.raises(UpstreamFailure) as excinfo:
            gh_client(BrokenSession()).get_user()
        assert excinfo.value.upstream_status is None

    def test_sends_token_and_user_agent(self):
        session = FakeGitHubSession().add("GET", "/user", FakeResponse(200, {}))
        gh_client(session).get_user()
        headers = session.calls[0][2]["headers"]
        assert headers["Authorization"] == "Bearer gho_token"
        assert headers["User-Agent"] == "DevPulse"


def test_activity_counts_from_events():
    counts = derive_activity_counts(EVENTS)
    assert (counts.total_commits, counts.total_prs, counts.total_issues) == (7, 1, 2)


class TestSync:
    @pytest.fixture()
    def user(self, make_user):
        user = make_user()
        user.connect_github("gho_token", "octo", None)
        return user

    def test_sync_stores_counts_and_calendar(self, user):
        session = github_api().add(
            "POST",
            "/graphql",
            calendar([{"date": "2026-10-17", "contributionCount": 1}, {"date": "2026-10-18", "contributionCount": 4}]),
        )
        stats = sync_github_stats(user, gh_client(session), today=TODAY)

        assert (stats.total_commits, stats.total_prs, stats.total_issues, stats.total_repos) == (7, 1, 2, 3)
        assert stats.contribution_source == CONTRIBUTIONS_FROM_GITHUB
        assert len(stats.contribution_data) == 365
        assert stats.contribution_data[0]["date"] == (TODAY - timedelta(days=364)).isoformat()
        assert stats.contribution_data[-1] == {"date": "2026-10-18", "count": 4}
        assert stats.contribution_data[-2] == {"date": "2026-10-17", "count": 1}
        assert stats.contribution_data[-3]["count"] == 0
        assert user.avatar == "https://avatars.test/octo"

    def test_calendar_failure_stores_unavailable_series(self, user):
        session = github_api().add("POST", "/graphql", FakeResponse(200, {"errors": [{"message": "nope"}]}))
        stats = sync_github_stats(user, gh_client(session), today=TODAY)

        assert stats.contribution_source == CONTRIBUTIONS_UNAVAILABLE
        assert len(stats.contribution_data) == 365
        assert {entry["count"] for entry in stats.contribution_data} == {None}
        assert stats.total_commits == 7

    def test_resync_overwrites_single_row(self, user):
        session = github_api().add("POST", "/graphql", calendar([]))
        sync_github_stats(user, gh_client(session), today=TODAY)
        session.routes[("GET", "/users/octo/events")] = [FakeResponse(200, [])]
        stats = sync_github_stats(user, gh_client(session), today=TODAY)

        assert GitHubStats.query.filter_by(user_id=user.id).count() == 1
        assert stats.total_commits == 0

    def test_profile_ranks_repos_and_languages(self, user):
        data = github_profile(user, gh_client(github_api()))
        assert [repo["name"] for repo in data["repos"]] == ["web", "api", "cli"]
        assert data["languages"][0] == {"name": "Python", "count": 2}
        assert data["profile"]["login"] == "octo"

    def test_disconnect_removes_snapshot(self, user):
        session = github_api().add("POST", "/graphql", calendar([]))
        sync_github_stats(user, gh_client(session), today=TODAY)
        disconnect_github(user)

        assert user.github_token is None
        assert user.github_username is None
        assert GitHubStats.query.filter_by(user_id=user.id).count() == 0


class TestConnect:
    def test_invalid_token(self, make_user):
        user = make_user()
        session = FakeGitHubSession().add("GET", "/user", FakeResponse(401, {"message": "Bad credentials"}))
        with pytest.raises(ValidationFailure) as excinfo:
            connect_github(user, "bad", gh_client(session))
        assert excinfo.value.message == "Invalid GitHub token"
        assert user.github_token is None

    def test_empty_token(self, make_user):
        with pytest.raises(ValidationFailure):
            connect_github(make_user(), "   ")

    def test_rate_limit_propagates(self, make_user):
        session = FakeGitHubSession().add("GET", "/user", FakeResponse(429))
        with pytest.raises(RateLimited):
            connect_github(make_user(), "tok", gh_client(session, max_retries=0))


class TestApi:
    def test_connect_sync_stats_and_disconnect(self, client, register, github_session):
        _, headers = register()
        assert client.get("/api/github/stats", headers=headers).get_json().get("data") is None

        resp = client.post("/api/github/sync", headers=headers)
        assert resp.status_code == 400

        github_api(github_session).add("POST", "/graphql", FakeResponse(502))
        resp = client.post("/api/github/connect", json={"accessToken": "gho_live"}, headers=headers)
        assert resp.get_json()["data"]["username"] == "octo"

        resp = client.post("/api/github/sync", headers=headers)
        assert resp.status_code == 200
        stats = resp.get_json()["data"]
        assert (stats["totalCommits"], stats["totalPRs"], stats["totalIssues"]) == (7, 1, 2)
        assert stats["contributionSource"] == "unavailable"
        assert github_session.calls_to("GET", "/user")[-1][2]["headers"]["Authorization"] == "Bearer gho_live"

        assert client.get("/api/github/stats", headers=headers).get_json()["data"]["totalRepos"] == 3

        client.delete("/api/github/disconnect", headers=headers)
        me = client.get("/api/auth/me", headers=headers).get_json()["data"]
        assert me["githubConnected"] is False
        assert client.get("/api/github/stats", headers=headers).get_json().get("data") is None

    def test_connect_with_rejected_token(self, client, register, github_session):
        _, headers = register()
        github_session.add("GET", "/user", FakeResponse(401))
        resp = client.post("/api/github/connect", json={"accessToken": "nope"}, headers=headers)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Invalid GitHub token"

    def test_config_check(self, client):
        data = client.get("/api/github/config/check").get_json()["data"]
        assert data["oauthReady"] is True


class TestOAuthCallback:
    def _token_ok(self, session):
        session.add("POST", GITHUB_TOKEN_URL, FakeResponse(200, {"access_token": "gho_oauth"}))
        session.add("GET", "/user", FakeResponse(200, {"login": "octo", "avatar_url": "https://avatars.test/octo"}))

    def test_links_user_from_state(self, client, register, github_session):
        user, headers = register()
        self._token_ok(github_session)

        resp = client.get(f"/api/github/callback?code=abc&state={user['id']}")
        assert resp.status_code == 302
        assert resp.headers["Location"] == "http://frontend.test/dashboard/github?connected=true"

        me = client.get("/api/auth/me", headers=headers).get_json()["data"]
        assert me["githubConnected"] is True
        assert me["githubUsername"] == "octo"
        assert github_session.calls_to("GET", "/user/emails") == []

    def test_missing_code(self, client):
        resp = client.get("/api/github/callback")
        assert resp.headers["Location"] == "http://frontend.test/dashboard/github?error=no_code"

    def test_token_exchange_error(self, client, github_session):
        github_session.add("POST", GITHUB_TOKEN_URL, FakeResponse(200, {"error": "bad_verification_code"}))
        resp = client.get("/api/github/callback?code=stale&state=1")
        assert resp.headers["Location"].endswith("error=oauth_failed")

    @pytest.mark.parametrize("state", ["not-a-user", "99999999999999999999999", "-4"])
    def test_falls_back_to_verified_primary_email(self, client, register, github_session, state):
        _, headers = register(email="octo@example.com")
        self._token_ok(github_session)
        github_session.add(
            "GET",
            "/user/emails",
            FakeResponse(
                200,
                [
                    {"email": "old@example.com", "primary": False, "verified": True},
                    {"email": "Octo@Example.com", "primary": True, "verified": True},
                ],
            ),
        )

        resp = client.get(f"/api/github/callback?code=abc&state={state}")
        assert resp.headers["Location"].endswith("connected=true")
        assert client.get("/api/auth/me", headers=headers).get_json()["data"]["githubConnected"] is True

    def test_email_fallback_can_be_disabled(self, app, client, register, github_session):
        app.config["GITHUB_OAUTH_EMAIL_FALLBACK"] = False
        _, headers = register(email="octo@example.com")
        self._token_ok(github_session)
        github_session.add(
            "GET", "/user/emails", FakeResponse(200, [{"email": "octo@example.com", "primary": True, "verified": True}])
        )

        resp = client.get("/api/github/callback?code=abc")
        assert resp.headers["Location"].endswith("error=user_not_found")
        assert client.get("/api/auth/me", headers=headers).get_json()["data"]["githubConnected"] is False

    def test_unknown_account(self, client, github_session):
        self._token_ok(github_session)
        github_session.add("GET", "/user/emails", FakeResponse(200, []))
        resp = client.get("/api/github/callback?code=abc&state=999")
        assert resp.headers["Location"].endswith("error=user_not_found")

    def test_missing_credentials(self, app, client):
        app.config["GITHUB_CLIENT_SECRET"] = ""
        resp = client.get("/api/github/callback?code=abc")
        assert resp.headers["Location"].endswith("error=config_error")
