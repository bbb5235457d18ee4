import itertools

import pytest

from devpulse import create_app
from devpulse.config import TestingConfig
from devpulse.extensions import db
from devpulse.models import Client, User

GITHUB_API = "https://api.github.com"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"


class FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None):
        self.status_code = status_code
        self._payload = payload if payload is not None else {}
        self.headers = headers or {}

    def json(self):
        return self._payload


class FakeGitHubSession:
    """Stands in for ``requests.Session``; routes are keyed by method and path.

    Responses queued for a route are served in order and the last one repeats.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, method, path, *responses):
        self.routes.setdefault((method, path), []).extend(responses)
        return self

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        path = url[len(GITHUB_API):] if url.startswith(GITHUB_API) else url
        queue = self.routes.get((method, path))
        if not queue:
            return FakeResponse(404, {"message": "Not Found"})
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def calls_to(self, method, path):
        target = path if path.startswith("http") else f"{GITHUB_API}{path}"
        return [call for call in self.calls if call[0] == method and call[1] == target]


@pytest.fixture()
def app():
    app = create_app(TestingConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture()
def github_session(app):
    session = FakeGitHubSession()
    app.extensions["github_session"] = session
    return session


@pytest.fixture()
def register(client):
    """Register through the API; returns ``(user_payload, auth_headers)``."""
    counter = itertools.count(1)

    def _register(email=None, name="Dev User", password="secret123"):
        email = email or f"dev{next(counter)}@example.com"
        resp = client.post("/api/auth/register", json={"email": email, "name": name, "password": password})
        assert resp.status_code == 201, resp.get_json()
        data = resp.get_json()["data"]
        return data["user"], {"Authorization": f"Bearer {data['token']}"}

    return _register


@pytest.fixture()
def make_user(ctx):
    def _make(email="owner@example.com", name="Owner"):
        user = User(email=email, name=name)
        user.set_password("secret123")
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture()
def make_client(ctx):
    def _make(user, name="Acme", email="billing@acme.test", **fields):
        record = Client(user_id=user.id, name=name, email=email, **fields)
        db.session.add(record)
        db.session.commit()
        return record

    return _make
