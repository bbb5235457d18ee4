"""GitHub integration endpoints."""
from __future__ import annotations

from urllib.parse import urlencode

from flask import Blueprint, current_app, g, redirect, request

from ..models import GitHubStats
from ..services.github_service import (
    complete_oauth_callback,
    connect_github,
    disconnect_github,
    github_profile,
    sync_github_stats,
)
from ..utils.auth import login_required
from ..utils.responses import ok, request_json

github_bp = Blueprint("github", __name__, url_prefix="/api/github")

AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
OAUTH_SCOPES = "read:user user:email repo"


def _frontend_redirect(**params):
    base = (current_app.config.get("FRONTEND_URL") or "").rstrip("/")
    return redirect(f"{base}/dashboard/github?{urlencode(params)}")


@github_bp.route("/callback", methods=["GET"])
def oauth_callback():
    try:
        reason = complete_oauth_callback(request.args.get("code"), request.args.get("state"))
    except Exception:
        current_app.logger.exception("[GitHub OAuth] callback failed")
        reason = "server_error"
    if reason:
        return _frontend_redirect(error=reason)
    return _frontend_redirect(connected="true")


@github_bp.route("/config/check", methods=["GET"])
def config_check():
    cfg = current_app.config
    client_id = bool(cfg.get("GITHUB_CLIENT_ID"))
    client_secret = bool(cfg.get("GITHUB_CLIENT_SECRET"))
    return ok(
        {
            "clientIdConfigured": client_id,
            "clientSecretConfigured": client_secret,
            "oauthReady": client_id and client_secret,
            "frontendUrl": cfg.get("FRONTEND_URL"),
        }
    )


@github_bp.route("/oauth/url", methods=["GET"])
@login_required
def oauth_url():
    client_id = current_app.config.get("GITHUB_CLIENT_ID")
    if not client_id:
        return ok(None, "GitHub OAuth is not configured")
    query = urlencode({"client_id": client_id, "scope": OAUTH_SCOPES, "state": str(g.current_user.id)})
    return ok({"url": f"{AUTHORIZE_URL}?{query}"})


@github_bp.route("/connect", methods=["POST"])
@login_required
def connect():
    data = request_json()
    result = connect_github(g.current_user, str(data.get("accessToken") or ""))
    return ok(result, "GitHub connected successfully")


@github_bp.route("/sync", methods=["POST"])
@login_required
def sync():
    stats = sync_github_stats(g.current_user)
    return ok(stats.to_dict(), "GitHub stats synced successfully")


@github_bp.route("/stats", methods=["GET"])
@login_required
def stats():
    snapshot = GitHubStats.query.filter_by(user_id=g.current_user.id).first()
    if snapshot is None:
        return ok(None, "No GitHub stats yet. Connect GitHub and run a sync.")
    return ok(snapshot.to_dict())


@github_bp.route("/profile", methods=["GET"])
@login_required
def profile():
    return ok(github_profile(g.current_user))


@github_bp.route("/disconnect", methods=["DELETE", "POST"])
@login_required
def disconnect():
    disconnect_github(g.current_user)
    return ok(message="GitHub disconnected successfully")
