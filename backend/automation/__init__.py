from backend.automation.driver import CookieLoginDriver, LoginResult, LoginState
from backend.automation.browser import BrowserSession, PlaywrightSession
from backend.automation.cookies import CookieRecord

__all__ = [
    "CookieLoginDriver",
    "LoginResult",
    "LoginState",
    "BrowserSession",
    "PlaywrightSession",
    "CookieRecord",
]
