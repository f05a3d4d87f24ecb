"""
Gastronomique - Pytest Configuration & Shared Fixtures

Provides reusable fixtures for:
- Injected admin ``Settings`` (no environment reads inside tests)
- A temporary SQLite database wired into the content store
- A FastAPI ``TestClient`` running the full application lifespan
- Helpers for building mock requests/responses and Basic auth headers
"""

import asyncio
import base64
from pathlib import Path
from typing import Dict, Optional
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from gastronomique.config import Settings

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "admin123"
TEST_SECRET = "test-signing-secret"

# A fixed "now" for deterministic expiry tests
FIXED_NOW = 1_700_000_000


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def basic_header(username: str, password: str) -> Dict[str, str]:
    """Build an Authorization header dict for HTTP Basic credentials."""
    raw = f"{username}:{password}".encode("utf-8")
    return {"Authorization": "Basic " + base64.b64encode(raw).decode("ascii")}


def make_request(
    headers: Optional[dict] = None,
    cookies: Optional[dict] = None,
    path: str = "/api/admin/recipes",
    method: str = "POST",
) -> MagicMock:
    """Create a mock FastAPI Request with optional headers, cookies and path."""
    request = MagicMock()
    request.headers = {k.lower(): v for k, v in (headers or {}).items()}
    request.cookies = cookies or {}
    request.method = method
    url_mock = MagicMock()
    url_mock.path = path
    request.url = url_mock
    return request


def make_response() -> MagicMock:
    """Create a mock Response with set_cookie and delete_cookie tracking."""
    response = MagicMock()
    response.set_cookie = MagicMock()
    response.delete_cookie = MagicMock()
    return response


def run(coro):
    """Run a coroutine from a synchronous test."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Settings fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    """Admin settings matching the documented defaults, with a test secret."""
    return Settings(
        admin_username=ADMIN_USERNAME,
        admin_password=ADMIN_PASSWORD,
        secret_key=TEST_SECRET,
    )


@pytest.fixture
def other_secret_settings(settings: Settings) -> Settings:
    """Same admin identity, different signing secret."""
    return Settings(
        admin_username=settings.admin_username,
        admin_password=settings.admin_password,
        secret_key="a-completely-different-secret",
    )


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db_path(tmp_path: Path, monkeypatch) -> Path:
    """Point the content store at a fresh temporary SQLite file."""
    path = tmp_path / "gastronomique-test.db"
    monkeypatch.setattr("gastronomique.database.DB_PATH", path)
    monkeypatch.setattr("gastronomique.routes.api.DB_PATH", path)
    return path


@pytest.fixture
def db(db_path: Path) -> Path:
    """Initialized temporary database."""
    from gastronomique.database import init_db

    init_db()
    return db_path


# ---------------------------------------------------------------------------
# Application fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def client(db_path: Path, settings: Settings):
    """A TestClient for a fresh app using the injected settings and temp DB."""
    from gastronomique.main import create_app

    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return basic_header(ADMIN_USERNAME, ADMIN_PASSWORD)
