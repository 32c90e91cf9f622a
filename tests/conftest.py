"""
Shared fixtures: a throwaway SQLite database, an in-memory object store
and a notifier whose calls can be inspected.
"""

import io
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from pebble_cms.app import create_app
from pebble_cms.auth import TokenService, hash_password
from pebble_cms.config import Settings
from pebble_cms.notifier import PublishNotifier

SECRET = "test-secret-that-is-long-enough-for-hs256"
ADMIN_PASSWORD = "correct horse battery staple"
EDITOR_PASSWORD = "editor-pass-123"
PUBLIC_BASE_URL = "https://cdn.example.com"


class MemoryStore:
    """ObjectStore that keeps objects in a dict."""

    def __init__(self):
        self.objects = {}

    def put(self, key, fileobj, content_type):
        self.objects[key] = (fileobj.read(), content_type)


@pytest.fixture(scope="session")
def password_hashes():
    return {"admin": hash_password(ADMIN_PASSWORD), "editor": hash_password(EDITOR_PASSWORD)}


@pytest.fixture
def settings(tmp_path, password_hashes):
    return Settings(
        _env_file=None,
        jwt_secret=SECRET,
        admin_username="admin",
        admin_password_hash=password_hashes["admin"],
        editor_username="editor",
        editor_password_hash=password_hashes["editor"],
        cors_origins="https://admin.example.com, https://blog.example.com",
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        public_base_url=PUBLIC_BASE_URL + "/",
        deploy_webhook_url="https://hooks.example.com/deploy",
    )


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def notifier():
    return Mock(spec=PublishNotifier)


@pytest.fixture
def app(settings, store, notifier):
    return create_app(settings, store=store, notifier=notifier)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def tokens():
    return TokenService(SECRET)


@pytest.fixture
def auth_headers(tokens):
    return {"Authorization": f"Bearer {tokens.issue('admin')}"}


@pytest.fixture
def make_post(client, auth_headers):
    """Create a post through the API and return its JSON."""
    def _make(title, content="<p>Body</p>", **fields):
        response = client.post("/api/posts", json={"title": title, "content": content, **fields},
                               headers=auth_headers)
        assert response.status_code == 201, response.text
        return response.json()
    return _make


def png_file(size):
    return io.BytesIO(b"\x89PNG\r\n\x1a\n" + b"\0" * (size - 8))
