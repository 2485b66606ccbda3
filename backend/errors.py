"""
Error taxonomy for the cookie lifecycle.

Configuration problems are fatal at startup. Everything raised by the
browser automation layer is recoverable: the driver converts it into a
failed LoginResult, and the scheduler logs it and moves on to the next store.
"""
from typing import Optional


class CookieManagerError(Exception):
    """Base class for all application errors."""


class ConfigurationError(CookieManagerError):
    """Missing or malformed process configuration (e.g. ENCRYPTION_KEY)."""


class DecryptionError(CookieManagerError):
    """Stored credential could not be decrypted."""


class PersistenceError(CookieManagerError):
    """A database read or write failed."""


class CookieFormatError(CookieManagerError):
    """User-supplied cookie payload could not be parsed."""


class AutomationError(CookieManagerError):
    """Base class for failures inside a login attempt."""

    # Transient failures are retried by the driver, permanent ones are not.
    transient = False


class LaunchError(AutomationError):
    transient = True


class NavigationError(AutomationError):
    transient = True


class ChallengeTimeoutError(AutomationError):
    transient = True


class LoginRejectedError(AutomationError):
    """The site kept us on the login page after submitting credentials."""

    def __init__(self, page_error: Optional[str] = None):
        self.page_error = page_error or "Unknown error"
        super().__init__(f"Login failed: {self.page_error}")
