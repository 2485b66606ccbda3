"""
Shared test fixtures for the Cookie Manager backend tests.
"""

import os

TEST_KEY = "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff"

# Settings are read at import time, so these must be set before any backend import
os.environ["ENCRYPTION_KEY"] = TEST_KEY
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_REFRESH_ENABLED"] = "false"

from typing import Optional  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from backend.automation.browser import BrowserSession  # noqa: E402
from backend.automation.cookies import CookieRecord  # noqa: E402
from backend.automation.driver import LoginResult, LoginState  # noqa: E402
from backend.automation.timing import Clock  # noqa: E402
from backend.database import Base, get_db  # noqa: E402
from backend.dependencies import get_driver, get_notifier  # noqa: E402
from backend.models import User, Store  # noqa: E402
from backend.services import vault  # noqa: E402
from backend.services.activity_service import ActivityNotifier  # noqa: E402

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClock(Clock):
    """Clock whose time only moves when something sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeBrowserSession(BrowserSession):
    """
    Scripted browser. By default: no challenge, login succeeds and lands on
    /dashboard, and the jar holds one session cookie plus one tracker.
    """

    def __init__(
        self,
        login_url: str = "https://kasirpintar.co.id/login",
        challenge: bool = False,
        solve_after_polls: Optional[int] = 0,
        login_accepted: bool = True,
        page_error: Optional[str] = None,
        start_error: Optional[Exception] = None,
        goto_error: Optional[Exception] = None,
        jar: Optional[list] = None,
        landing_url: Optional[str] = None,
    ):
        self.login_url = login_url
        self.landing_url = landing_url
        self.challenge = challenge
        self.solve_after_polls = solve_after_polls
        self.login_accepted = login_accepted
        self.page_error = page_error
        self.start_error = start_error
        self.goto_error = goto_error
        self.jar = jar if jar is not None else [
            {"name": "laravel_session", "value": "abc", "domain": ".kasirpintar.co.id",
             "path": "/", "expires": 1893456000, "httpOnly": True, "secure": True, "sameSite": "Lax"},
            {"name": "_ga", "value": "GA1.1", "domain": ".kasirpintar.co.id",
             "path": "/", "expires": 1893456000, "httpOnly": False, "secure": False, "sameSite": "Lax"},
        ]
        self._url = ""
        self.polls = 0
        self.typed = {}
        self.closed = False

    def start(self) -> None:
        if self.start_error:
            raise self.start_error

    @property
    def url(self) -> str:
        return self._url

    def goto(self, url: str, timeout: float) -> None:
        if self.goto_error:
            raise self.goto_error
        self._url = url

    def challenge_present(self, timeout: float) -> bool:
        return self.challenge

    def click_challenge(self) -> bool:
        return True

    def challenge_solved(self) -> bool:
        self.polls += 1
        return self.solve_after_polls is not None and self.polls > self.solve_after_polls

    def type_into(self, selector: str, text: str, delay_ms: int) -> None:
        self.typed[selector] = text

    def submit(self, selector: str, timeout: float) -> bool:
        if self.landing_url:
            self._url = self.landing_url
            return True
        if self.login_accepted:
            self._url = self.login_url.replace("/login", "/dashboard")
            return True
        return False

    def error_text(self) -> Optional[str]:
        return self.page_error

    def cookies(self) -> list[dict]:
        return list(self.jar)

    def close(self) -> None:
        self.closed = True


class FakeDriver:
    """Stands in for CookieLoginDriver; returns queued LoginResults."""

    def __init__(self, *results: LoginResult):
        self.results = list(results)
        self.calls = []

    def login_and_get_cookies(self, email, password, domain=None) -> LoginResult:
        self.calls.append((email, password, domain))
        if not self.results:
            return success_result()
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def success_result(*names: str) -> LoginResult:
    names = names or ("laravel_session", "XSRF-TOKEN")
    cookies = [
        CookieRecord(name=n, value=f"{n}-value", domain=".kasirpintar.co.id", expires=1893456000)
        for n in names
    ]
    return LoginResult(success=True, cookies=cookies, attempts=1)


def failure_result(error: str = "Turnstile timeout after 30 seconds") -> LoginResult:
    return LoginResult(success=False, error=error, failed_at=LoginState.CHALLENGE_WAIT, attempts=2)


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def test_engine():
    """In-memory SQLite engine, created fresh per test."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _fk_on(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def notifier(session_factory):
    return ActivityNotifier(session_factory=session_factory)


@pytest.fixture()
def user(db):
    user = User(username="owner", email="owner@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def store(db, user):
    store = Store(user_id=user.id, name="Toko Satu", domain="kasirpintar.co.id")
    db.add(store)
    db.commit()
    db.refresh(store)
    return store


@pytest.fixture()
def store_with_credentials(db, store):
    store.encrypted_email = vault.encrypt("owner@example.com")
    store.encrypted_password = vault.encrypt("s3cret")
    store.status = "active"
    db.commit()
    db.refresh(store)
    return store


# ---------------------------------------------------------------------------
# FastAPI app with overridden dependencies
# ---------------------------------------------------------------------------


@pytest.fixture()
def fake_driver():
    return FakeDriver()


@pytest.fixture()
def test_app(session_factory, notifier, fake_driver):
    """FastAPI application wired to the in-memory test database."""
    from backend.app import app  # local import to avoid side-effects at collection time

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_driver] = lambda: fake_driver
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield app
    app.dependency_overrides.clear()


@pytest.fixture()
async def async_client(test_app):
    """httpx AsyncClient bound to the test app."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture()
def auth_headers(user):
    return {"X-User-Id": str(user.id)}
