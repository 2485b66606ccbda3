"""
Automated login and cookie capture.

One LoginAttempt walks a fresh browser through:

    INIT -> LAUNCHED -> NAVIGATED -> CHALLENGE_WAIT -> FORM_FILLED
         -> SUBMITTED -> SUCCESS | FAILED

CookieLoginDriver composes attempts, retries transient failures, and turns
every outcome into a LoginResult. Nothing raises past
login_and_get_cookies(): the API handler and the refresh scheduler both
rely on getting a result back.
"""
import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional
from urllib.parse import urlparse

from backend.automation.browser import (
    BrowserSession,
    PlaywrightSession,
    EMAIL_FIELD,
    PASSWORD_FIELD,
    SUBMIT_BUTTON,
)
from backend.automation.cookies import CookieRecord, filter_session_cookies
from backend.automation.timing import Clock, poll_until
from backend.config import settings
from backend.errors import AutomationError, ChallengeTimeoutError, LoginRejectedError

logger = logging.getLogger("cookie_manager")

# Per-keystroke delay range, in milliseconds
TYPING_DELAY_MS = (30, 60)


class LoginState(str, Enum):
    INIT = "init"
    LAUNCHED = "launched"
    NAVIGATED = "navigated"
    CHALLENGE_WAIT = "challenge_wait"
    FORM_FILLED = "form_filled"
    SUBMITTED = "submitted"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class LoginResult:
    success: bool
    cookies: list[CookieRecord] = field(default_factory=list)
    error: Optional[str] = None
    failed_at: Optional[LoginState] = None
    attempts: int = 0
    timings: dict = field(default_factory=dict)  # step name -> milliseconds

    @property
    def message(self) -> str:
        if self.success:
            return f"Successfully generated {len(self.cookies)} cookies"
        return self.error or "Unknown error occurred"

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "cookies": [c.to_dict() for c in self.cookies],
            "error": self.error,
            "attempts": self.attempts,
            "timings": self.timings,
        }


class LoginAttempt:
    """
    A single pass through the login form with its own browser.
    Use as a context manager: the browser is closed on every exit path.
    """

    def __init__(
        self,
        session: BrowserSession,
        clock: Optional[Clock] = None,
        navigation_timeout: float = None,
        challenge_detect_timeout: float = None,
        challenge_timeout: float = None,
        submit_timeout: float = None,
    ):
        self.session = session
        self.clock = clock or Clock()
        self.navigation_timeout = navigation_timeout or settings.navigation_timeout
        self.challenge_detect_timeout = challenge_detect_timeout or settings.challenge_detect_timeout
        self.challenge_timeout = challenge_timeout or settings.challenge_timeout
        self.submit_timeout = submit_timeout or settings.submit_timeout
        self.state = LoginState.INIT
        self.failed_at: Optional[LoginState] = None
        self.login_url: Optional[str] = None
        self.timings: dict = {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self.failed_at = self.state
            self.state = LoginState.FAILED
        self.close()
        return False

    def _timed(self, step: str, started: float):
        self.timings[step] = int((self.clock.monotonic() - started) * 1000)

    # --- Steps ---

    def launch(self):
        started = self.clock.monotonic()
        self.session.start()
        self.state = LoginState.LAUNCHED
        self._timed("launch", started)

    def navigate(self, login_url: str):
        started = self.clock.monotonic()
        logger.info(f"Navigating to: {login_url}")
        self.session.goto(login_url, timeout=self.navigation_timeout)
        self.login_url = login_url
        self.state = LoginState.NAVIGATED
        self._timed("navigation", started)

    def await_challenge(self):
        """Wait out the challenge widget, if the page has one."""
        self.state = LoginState.CHALLENGE_WAIT
        started = self.clock.monotonic()

        if not self.session.challenge_present(timeout=self.challenge_detect_timeout):
            logger.info("No challenge widget detected.")
            self._timed("challenge", started)
            return

        logger.info("Challenge widget found.")
        if self.session.click_challenge():
            logger.debug("Challenge checkbox clicked.")
        else:
            logger.warning("Could not click challenge checkbox (might auto-solve).")

        def _progress(elapsed: float):
            if int(elapsed) % 5 == 0:
                logger.info(f"Still solving challenge... {int(elapsed)}s")

        solved = poll_until(
            self.session.challenge_solved,
            timeout=self.challenge_timeout,
            interval=1.0,
            clock=self.clock,
            on_tick=_progress,
        )
        self._timed("challenge", started)
        if not solved:
            raise ChallengeTimeoutError(
                f"Turnstile timeout after {self.challenge_timeout:.0f} seconds"
            )

        logger.info(f"Challenge solved in {self.timings['challenge']}ms.")
        # Small buffer so the page registers the token
        self.clock.sleep(1.0)

    def fill_and_submit(self, email: str, password: str):
        started = self.clock.monotonic()
        self.session.type_into(EMAIL_FIELD, email, delay_ms=random.randint(*TYPING_DELAY_MS))
        self.session.type_into(PASSWORD_FIELD, password, delay_ms=random.randint(*TYPING_DELAY_MS))
        self.state = LoginState.FORM_FILLED
        self._timed("form_fill", started)

        started = self.clock.monotonic()
        navigated = self.session.submit(SUBMIT_BUTTON, timeout=self.submit_timeout)
        self.state = LoginState.SUBMITTED
        self._timed("submit", started)

        if not navigated:
            logger.debug("No navigation after submit within timeout.")
        if self._still_on_login_page():
            raise LoginRejectedError(self.session.error_text())

        logger.info(f"Login successful. URL: {self.session.url}")

    def extract_cookies(self) -> list[CookieRecord]:
        started = self.clock.monotonic()
        cookies = filter_session_cookies(self.session.cookies())
        self.state = LoginState.SUCCESS
        self._timed("cookie_extract", started)
        return cookies

    def close(self):
        self.session.close()

    def _still_on_login_page(self) -> bool:
        # Path only: a rejected login may come back on another host (www., auth.)
        login_path = urlparse(self.login_url or "").path.rstrip("/").lower() or settings.login_path
        current_path = urlparse(self.session.url).path.lower()
        return login_path in current_path


class CookieLoginDriver:
    """Runs login attempts against a target site and returns its cookies."""

    def __init__(
        self,
        session_factory: Callable[[], BrowserSession] = PlaywrightSession,
        clock: Optional[Clock] = None,
        max_retries: Optional[int] = None,
        retry_backoff: Optional[float] = None,
        **attempt_options,
    ):
        self.session_factory = session_factory
        self.clock = clock or Clock()
        self.max_retries = settings.login_max_retries if max_retries is None else max_retries
        self.retry_backoff = settings.login_retry_backoff if retry_backoff is None else retry_backoff
        self.attempt_options = attempt_options

    def new_attempt(self) -> LoginAttempt:
        return LoginAttempt(self.session_factory(), clock=self.clock, **self.attempt_options)

    @staticmethod
    def _run_attempt(attempt: LoginAttempt, email: str, password: str, login_url: str) -> list[CookieRecord]:
        with attempt:
            attempt.launch()
            attempt.navigate(login_url)
            attempt.await_challenge()
            attempt.fill_and_submit(email, password)
            return attempt.extract_cookies()

    def login_and_get_cookies(self, email: str, password: str, domain: Optional[str] = None) -> LoginResult:
        login_url = settings.login_url(domain)
        started = time.monotonic()
        timings: dict = {}
        attempts = 0

        while True:
            attempts += 1
            attempt = None
            try:
                attempt = self.new_attempt()
                cookies = self._run_attempt(attempt, email, password, login_url)
            except AutomationError as e:
                failed_at = attempt.failed_at if attempt else LoginState.INIT
                if e.transient and attempts <= self.max_retries:
                    logger.warning(
                        f"Login attempt {attempts} failed at {failed_at.value}: {e}. "
                        f"Retrying in {self.retry_backoff:.0f}s..."
                    )
                    self.clock.sleep(self.retry_backoff)
                    continue
                error = str(e)
            except Exception as e:
                failed_at = attempt.failed_at if attempt else LoginState.INIT
                logger.exception("Unexpected error during automated login")
                error = str(e) or e.__class__.__name__
            else:
                timings.update(attempt.timings)
                timings["total"] = int((time.monotonic() - started) * 1000)
                logger.info(
                    f"Captured {len(cookies)} cookies in {timings['total']}ms "
                    f"({attempts} attempt{'s' if attempts > 1 else ''})."
                )
                return LoginResult(success=True, cookies=cookies, attempts=attempts, timings=timings)

            if attempt:
                timings.update(attempt.timings)
            timings["total"] = int((time.monotonic() - started) * 1000)
            logger.error(f"Login failed after {attempts} attempt(s) at {failed_at.value}: {error}")
            return LoginResult(
                success=False,
                error=error,
                failed_at=failed_at,
                attempts=attempts,
                timings=timings,
            )
