"""
Playwright browser launch and anti-detection configuration.

BrowserSession is the capability interface the login driver depends on.
PlaywrightSession is the only production backend; tests drive the login
flow through a scripted fake instead.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

from playwright.sync_api import (
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
    sync_playwright,
)

from backend.config import settings
from backend.errors import LaunchError, NavigationError

logger = logging.getLogger("cookie_manager")

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)

# --- Selectors ---
CHALLENGE_IFRAME = 'iframe[src*="challenges.cloudflare.com"]'
CHALLENGE_CHECKBOX = 'input[type="checkbox"]'
CHALLENGE_TOKEN_INPUT = 'input[name="cf-turnstile-response"]'
EMAIL_FIELD = 'input[name="email"], input[type="email"], #email'
PASSWORD_FIELD = 'input[name="password"], input[type="password"], #password'
SUBMIT_BUTTON = 'button[type="submit"], input[type="submit"], .btn-login'
ERROR_TEXT = '.alert-danger, .error-message, .error, [role="alert"], .text-red-500'

STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', {get: () => undefined});
window.chrome = { runtime: {} };
"""

CHALLENGE_SOLVED_SCRIPT = """([iframeSel, tokenSel]) => {
    const input = document.querySelector(tokenSel);
    if (input && input.value) return true;
    return !document.querySelector(iframeSel);
}"""


class BrowserSession(ABC):
    """Operations the login driver needs from a headless browser."""

    @abstractmethod
    def start(self) -> None:
        """Launch an isolated browser context. Raises LaunchError."""

    @property
    @abstractmethod
    def url(self) -> str:
        """Current page URL."""

    @abstractmethod
    def goto(self, url: str, timeout: float) -> None:
        """Load a page. Raises NavigationError."""

    @abstractmethod
    def challenge_present(self, timeout: float) -> bool:
        """Whether a challenge widget is attached to the page."""

    @abstractmethod
    def click_challenge(self) -> bool:
        """Try to trigger the challenge widget. Returns False if it could not be clicked."""

    @abstractmethod
    def challenge_solved(self) -> bool:
        """Solved-state signal: response token set, or widget gone."""

    @abstractmethod
    def type_into(self, selector: str, text: str, delay_ms: int) -> None:
        """Type text into the first matching field, one key at a time."""

    @abstractmethod
    def submit(self, selector: str, timeout: float) -> bool:
        """Click submit and wait for a navigation. Returns False on timeout."""

    @abstractmethod
    def error_text(self) -> Optional[str]:
        """Visible login error message, if any."""

    @abstractmethod
    def cookies(self) -> list[dict]:
        """All cookies of the browser context."""

    @abstractmethod
    def close(self) -> None:
        """Release every resource. Safe to call more than once."""


class PlaywrightSession(BrowserSession):
    """Chromium via Playwright's sync API. Must run off the event loop thread."""

    def __init__(self, headless: Optional[bool] = None, locale: str = "id-ID"):
        self.headless = settings.headless if headless is None else headless
        self.locale = locale
        self._pw = None
        self._browser = None
        self._context = None
        self._page = None

    def start(self) -> None:
        try:
            self._pw = sync_playwright().start()
            self._browser = self._pw.chromium.launch(
                headless=self.headless,
                timeout=30000,
                args=[
                    "--no-sandbox",
                    "--disable-setuid-sandbox",
                    "--disable-dev-shm-usage",
                    "--disable-blink-features=AutomationControlled",
                ],
            )
            self._context = self._browser.new_context(
                viewport={"width": 1920, "height": 1080},
                user_agent=USER_AGENT,
                locale=self.locale,
            )
            self._page = self._context.new_page()
            self._page.add_init_script(STEALTH_SCRIPT)
        except PlaywrightError as e:
            self.close()
            raise LaunchError(f"Browser launch failed: {e}") from e

        logger.info("Browser launched with anti-detection settings.")

    @property
    def url(self) -> str:
        return self._page.url if self._page else ""

    def goto(self, url: str, timeout: float) -> None:
        try:
            self._page.goto(url, wait_until="domcontentloaded", timeout=timeout * 1000)
        except PlaywrightTimeoutError as e:
            raise NavigationError(f"Timed out loading {url} after {timeout:.0f}s") from e
        except PlaywrightError as e:
            raise NavigationError(f"Failed to load {url}: {e}") from e

    def challenge_present(self, timeout: float) -> bool:
        try:
            self._page.wait_for_selector(CHALLENGE_IFRAME, state="attached", timeout=timeout * 1000)
            return True
        except PlaywrightTimeoutError:
            return False

    def click_challenge(self) -> bool:
        try:
            self._page.frame_locator(CHALLENGE_IFRAME).locator(CHALLENGE_CHECKBOX).click(
                timeout=5000, force=True
            )
            return True
        except PlaywrightError:
            return False

    def challenge_solved(self) -> bool:
        try:
            return bool(
                self._page.evaluate(CHALLENGE_SOLVED_SCRIPT, [CHALLENGE_IFRAME, CHALLENGE_TOKEN_INPUT])
            )
        except PlaywrightError:
            # Page navigated away mid-evaluate; the next poll will tell
            return False

    def type_into(self, selector: str, text: str, delay_ms: int) -> None:
        field = self._page.locator(selector).first
        field.wait_for(state="visible", timeout=10000)
        field.click()
        field.press_sequentially(text, delay=delay_ms)

    def submit(self, selector: str, timeout: float) -> bool:
        try:
            with self._page.expect_navigation(wait_until="domcontentloaded", timeout=timeout * 1000):
                self._page.locator(selector).first.click()
            return True
        except PlaywrightTimeoutError:
            return False

    def error_text(self) -> Optional[str]:
        try:
            el = self._page.locator(ERROR_TEXT).first
            if el.is_visible(timeout=2000):
                return el.inner_text().strip() or None
        except PlaywrightError:
            pass
        return None

    def cookies(self) -> list[dict]:
        return self._context.cookies()

    def close(self) -> None:
        try:
            if self._browser:
                self._browser.close()
        except PlaywrightError as e:
            logger.debug(f"Browser cleanup: {e}")
        finally:
            try:
                if self._pw:
                    self._pw.stop()
            except PlaywrightError as e:
                logger.debug(f"Playwright cleanup: {e}")
        self._pw = None
        self._browser = None
        self._context = None
        self._page = None
