"""GitHub integration: token validation, OAuth callback, stats sync."""
from __future__ import annotations

import random
import time
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, time as dt_time, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import requests
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import RateLimited, UpstreamFailure, ValidationFailure
from ..extensions import db
from ..models import (
    CONTRIBUTIONS_FROM_GITHUB,
    CONTRIBUTIONS_UNAVAILABLE,
    MAX_ROW_ID,
    GitHubStats,
    User,
    utcnow,
)

PAGE_SIZE = 100
CONTRIBUTION_DAYS = 365
TOP_REPOS = 6
TOP_LANGUAGES = 8

CONTRIBUTIONS_QUERY = """
query($login: String!, $from: DateTime!, $to: DateTime!) {
  user(login: $login) {
    contributionsCollection(from: $from, to: $to) {
      contributionCalendar {
        weeks { contributionDays { date contributionCount } }
      }
    }
  }
}
"""


class GitHubClient:
    """Thin wrapper over the GitHub REST/GraphQL APIs.

    Only HTTP 429 is retried: up to ``max_retries`` times, waiting for
    ``Retry-After`` when GitHub sends it and otherwise for an exponentially
    growing delay with full jitter. Any other non-2xx status raises
    :class:`UpstreamFailure` straight away.
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        session=None,
        api_url: str = "https://api.github.com",
        user_agent: str = "DevPulse",
        timeout: float = 10.0,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
        logger=None,
    ) -> None:
        self.token = token
        self.session = session or requests.Session()
        self.api_url = api_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_retries = max(max_retries, 0)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep
        self._logger = logger

    @classmethod
    def from_config(cls, token: str | None = None) -> "GitHubClient":
        cfg = current_app.config
        return cls(
            token,
            session=current_app.extensions.get("github_session"),
            api_url=cfg.get("GITHUB_API_URL", "https://api.github.com"),
            user_agent=cfg.get("GITHUB_USER_AGENT", "DevPulse"),
            timeout=cfg.get("GITHUB_REQUEST_TIMEOUT", 10.0),
            max_retries=cfg.get("GITHUB_MAX_RETRIES", 3),
            base_delay=cfg.get("GITHUB_RETRY_BASE_DELAY", 1.0),
            max_delay=cfg.get("GITHUB_RETRY_MAX_DELAY", 30.0),
            logger=current_app.logger,
        )

    def _log(self, level: str, message: str, *args) -> None:
        if self._logger is not None:
            getattr(self._logger, level)(message, *args)

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": self.user_agent,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _retry_delay(self, response, attempt: int) -> float:
        retry_after = (getattr(response, "headers", None) or {}).get("Retry-After")
        if retry_after:
            try:
                return min(float(retry_after), self.max_delay)
            except ValueError:
                pass
        ceiling = min(self.max_delay, self.base_delay * (2 ** attempt))
        return random.uniform(0, ceiling)

    def request(self, method: str, url: str, **kwargs):
        kwargs.setdefault("headers", self._headers())
        kwargs.setdefault("timeout", self.timeout)
        for attempt in range(self.max_retries + 1):
            try:
                response = self.session.request(method, url, **kwargs)
            except requests.RequestException as exc:
                self._log("error", "GitHub request %s %s failed: %s", method, url, exc)
                raise UpstreamFailure("GitHub is unreachable") from exc

            status = response.status_code
            if status == 429:
                if attempt < self.max_retries:
                    delay = self._retry_delay(response, attempt)
                    self._log("warning", "GitHub rate limited %s %s; retry %s in %.2fs", method, url, attempt + 1, delay)
                    self._sleep(delay)
                    continue
                self._log("error", "GitHub rate limit persisted after %s retries: %s %s", self.max_retries, method, url)
                raise RateLimited(status=status)
            if not 200 <= status < 300:
                self._log("error", "GitHub API error %s on %s %s", status, method, url)
                raise UpstreamFailure(f"GitHub API error ({status})", status=status)
            return response
        raise RateLimited(status=429)  # pragma: no cover - loop always returns or raises

    def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("GET", f"{self.api_url}{path}", params=params).json()

    def get_user(self) -> Dict[str, Any]:
        return self.get_json("/user")

    def get_emails(self) -> List[Dict[str, Any]]:
        data = self.get_json("/user/emails")
        return data if isinstance(data, list) else []

    def get_repos(self) -> List[Dict[str, Any]]:
        data = self.get_json("/user/repos", {"per_page": PAGE_SIZE, "sort": "updated"})
        return data if isinstance(data, list) else []

    def get_events(self, login: str) -> List[Dict[str, Any]]:
        data = self.get_json(f"/users/{login}/events", {"per_page": PAGE_SIZE})
        return data if isinstance(data, list) else []

    def get_contribution_days(self, login: str, start: date, end: date) -> List[Dict[str, Any]]:
        """Daily contribution counts from the GraphQL contribution calendar."""
        variables = {
            "login": login,
            "from": datetime.combine(start, dt_time.min).isoformat() + "Z",
            "to": datetime.combine(end, dt_time.max).replace(microsecond=0).isoformat() + "Z",
        }
        body = self.request(
            "POST",
            f"{self.api_url}/graphql",
            json={"query": CONTRIBUTIONS_QUERY, "variables": variables},
        ).json()
        if body.get("errors") or not (body.get("data") or {}).get("user"):
            raise UpstreamFailure("GitHub contribution calendar unavailable")
        weeks = body["data"]["user"]["contributionsCollection"]["contributionCalendar"]["weeks"]
        return [day for week in weeks for day in week.get("contributionDays", [])]

    def exchange_code(self, code: str, client_id: str, client_secret: str, token_url: str) -> str:
        response = self.request(
            "POST",
            token_url,
            headers={"Accept": "application/json", "User-Agent": self.user_agent},
            json={"client_id": client_id, "client_secret": client_secret, "code": code},
        )
        payload = response.json()
        if payload.get("error"):
            self._log("error", "GitHub OAuth token error: %s %s", payload.get("error"), payload.get("error_description"))
            raise UpstreamFailure("GitHub OAuth exchange failed")
        token = payload.get("access_token")
        if not token:
            raise UpstreamFailure("GitHub OAuth response carried no access token")
        return token


@dataclass(frozen=True)
class ActivityCounts:
    total_commits: int
    total_prs: int
    total_issues: int


def derive_activity_counts(events: Iterable[Dict[str, Any]]) -> ActivityCounts:
    """Commits come from PushEvent commit arrays; PRs and issues are event counts."""
    commits = prs = issues = 0
    for event in events:
        kind = event.get("type")
        if kind == "PushEvent":
            commits += len((event.get("payload") or {}).get("commits") or [])
        elif kind == "PullRequestEvent":
            prs += 1
        elif kind == "IssuesEvent":
            issues += 1
    return ActivityCounts(total_commits=commits, total_prs=prs, total_issues=issues)


def _series_window(today: date) -> List[date]:
    return [today - timedelta(days=offset) for offset in range(CONTRIBUTION_DAYS - 1, -1, -1)]


def build_contribution_series(days: Iterable[Dict[str, Any]], today: date) -> List[Dict[str, Any]]:
    """Normalize calendar days into exactly 365 entries ending ``today``."""
    counts = {str(day.get("date")): int(day.get("contributionCount") or 0) for day in days}
    return [{"date": day.isoformat(), "count": counts.get(day.isoformat(), 0)} for day in _series_window(today)]


def unavailable_contribution_series(today: date) -> List[Dict[str, Any]]:
    """365 entries with ``count: None``: the calendar could not be read."""
    return [{"date": day.isoformat(), "count": None} for day in _series_window(today)]


def _client_for(user: User, client: GitHubClient | None) -> GitHubClient:
    if client is not None:
        return client
    if not user.github_token:
        raise ValidationFailure("Connect your GitHub account first")
    return GitHubClient.from_config(user.github_token)


def connect_github(user: User, access_token: str, client: GitHubClient | None = None) -> Dict[str, Any]:
    """Validate a raw token against ``GET /user`` and store it on the user."""
    token = (access_token or "").strip()
    if not token:
        raise ValidationFailure.for_fields([{"field": "accessToken", "message": "Access token is required"}])
    client = client or GitHubClient.from_config(token)
    try:
        profile = client.get_user()
    except RateLimited:
        raise
    except UpstreamFailure as exc:
        if exc.upstream_status is None:
            raise
        raise ValidationFailure("Invalid GitHub token") from exc

    user.connect_github(token, profile.get("login"), profile.get("avatar_url"))
    db.session.commit()
    current_app.logger.info("GitHub account %s connected for user %s", user.github_username, user.id)
    return {"username": user.github_username, "avatar": user.avatar}


def sync_github_stats(user: User, client: GitHubClient | None = None, today: date | None = None) -> GitHubStats:
    """Pull profile, repos and events and overwrite the user's snapshot."""
    client = _client_for(user, client)
    today = today or utcnow().date()

    profile = client.get_user()
    login = profile.get("login") or user.github_username
    repos = client.get_repos()
    events = client.get_events(login)
    counts = derive_activity_counts(events)

    try:
        days = client.get_contribution_days(login, today - timedelta(days=CONTRIBUTION_DAYS - 1), today)
        series, source = build_contribution_series(days, today), CONTRIBUTIONS_FROM_GITHUB
    except RateLimited:
        raise
    except UpstreamFailure:
        current_app.logger.warning("Contribution calendar unavailable for %s; storing placeholder series", login)
        series, source = unavailable_contribution_series(today), CONTRIBUTIONS_UNAVAILABLE

    stats = GitHubStats.query.filter_by(user_id=user.id).first()
    if stats is None:
        stats = GitHubStats(user_id=user.id)
        db.session.add(stats)
    stats.total_commits = counts.total_commits
    stats.total_prs = counts.total_prs
    stats.total_issues = counts.total_issues
    stats.total_repos = len(repos)
    stats.contribution_data = series
    stats.contribution_source = source
    stats.last_sync_at = utcnow()

    user.github_username = login
    if profile.get("avatar_url"):
        user.avatar = profile["avatar_url"]
    db.session.commit()
    current_app.logger.info(
        "GitHub stats synced for user %s: %s commits, %s PRs, %s issues, %s repos",
        user.id,
        stats.total_commits,
        stats.total_prs,
        stats.total_issues,
        stats.total_repos,
    )
    return stats


def disconnect_github(user: User) -> None:
    user.disconnect_github()
    GitHubStats.query.filter_by(user_id=user.id).delete()
    db.session.commit()
    current_app.logger.info("GitHub disconnected for user %s", user.id)


def github_profile(user: User, client: GitHubClient | None = None) -> Dict[str, Any]:
    """Profile summary, most-starred repositories and language usage."""
    client = _client_for(user, client)
    profile = client.get_user()
    repos = client.get_repos()

    top_repos = sorted(repos, key=lambda repo: repo.get("stargazers_count") or 0, reverse=True)[:TOP_REPOS]
    languages = Counter(repo["language"] for repo in repos if repo.get("language"))

    return {
        "profile": {
            "login": profile.get("login"),
            "name": profile.get("name"),
            "avatar": profile.get("avatar_url"),
            "bio": profile.get("bio"),
            "company": profile.get("company"),
            "location": profile.get("location"),
            "email": profile.get("email"),
            "blog": profile.get("blog"),
            "followers": profile.get("followers"),
            "following": profile.get("following"),
            "publicRepos": profile.get("public_repos"),
            "createdAt": profile.get("created_at"),
        },
        "repos": [
            {
                "name": repo.get("name"),
                "description": repo.get("description"),
                "stars": repo.get("stargazers_count") or 0,
                "forks": repo.get("forks_count") or 0,
                "language": repo.get("language"),
                "url": repo.get("html_url"),
                "updatedAt": repo.get("updated_at"),
                "isPrivate": bool(repo.get("private")),
            }
            for repo in top_repos
        ],
        "languages": [{"name": name, "count": count} for name, count in languages.most_common(TOP_LANGUAGES)],
    }


def _user_from_state(state: str | None) -> User | None:
    if not state:
        return None
    try:
        user_id = int(state)
    except (TypeError, ValueError):
        current_app.logger.info("[GitHub OAuth] state %r is not a user id", state)
        return None
    if not 0 < user_id <= MAX_ROW_ID:
        current_app.logger.info("[GitHub OAuth] state %r is out of the user id range", state)
        return None
    return db.session.get(User, user_id)


def _primary_email(client: GitHubClient, profile: Dict[str, Any]) -> str | None:
    try:
        emails = client.get_emails()
    except UpstreamFailure:
        current_app.logger.warning("[GitHub OAuth] could not read account emails")
        emails = []
    primary = next((item.get("email") for item in emails if item.get("primary") and item.get("verified")), None)
    return primary or profile.get("email")


def resolve_oauth_user(
    state: str | None, client: GitHubClient, profile: Dict[str, Any]
) -> Tuple[User | None, str | None]:
    """Find the account an OAuth callback belongs to.

    Returns ``(user, "state")`` when ``state`` names an existing user,
    ``(user, "email")`` when the verified primary GitHub email matches an
    account and the email fallback is enabled, else ``(None, None)``.
    """
    user = _user_from_state(state)
    if user is not None:
        return user, "state"

    if not current_app.config.get("GITHUB_OAUTH_EMAIL_FALLBACK", True):
        return None, None

    email = _primary_email(client, profile)
    if not email:
        return None, None
    user = User.query.filter_by(email=email.strip().lower()).first()
    if user is None:
        return None, None
    current_app.logger.warning(
        "[GitHub OAuth] linking GitHub %s to user %s by email (state unusable)", profile.get("login"), user.id
    )
    return user, "email"


def complete_oauth_callback(code: str | None, state: str | None, client: GitHubClient | None = None) -> str | None:
    """Run the OAuth callback; returns ``None`` on success or an error reason."""
    logger = current_app.logger
    cfg = current_app.config
    logger.info("[GitHub OAuth] callback received (code=%s, state=%s)", bool(code), bool(state))

    if not code:
        return "no_code"
    if not cfg.get("GITHUB_CLIENT_ID") or not cfg.get("GITHUB_CLIENT_SECRET"):
        logger.error("[GitHub OAuth] client credentials are not configured")
        return "config_error"

    client = client or GitHubClient.from_config()
    try:
        token = client.exchange_code(
            code, cfg["GITHUB_CLIENT_ID"], cfg["GITHUB_CLIENT_SECRET"], cfg["GITHUB_OAUTH_TOKEN_URL"]
        )
    except UpstreamFailure:
        return "oauth_failed"

    client.token = token
    try:
        profile = client.get_user()
    except UpstreamFailure:
        return "github_api_error"

    user, matched_by = resolve_oauth_user(state, client, profile)
    if user is None:
        logger.info("[GitHub OAuth] no account matched GitHub user %s", profile.get("login"))
        return "user_not_found"

    try:
        user.connect_github(token, profile.get("login"), profile.get("avatar_url"))
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("[GitHub OAuth] failed to store token for user %s", user.id)
        return "database_error"

    logger.info("[GitHub OAuth] connected GitHub %s to user %s (matched by %s)", profile.get("login"), user.id, matched_by)
    return None
