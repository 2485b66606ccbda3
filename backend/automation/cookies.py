"""
Cookie records captured from a browser context or imported by a user.

Strategy:
  - After an automated login we read every cookie from the Playwright
    context, drop analytics/marketing trackers, and keep the rest.
  - Users can also paste cookies, either as a JSON array (browser extension
    export) or as a raw "name=value; name2=value2" header string.
  - Both paths produce CookieRecord objects, so the store adapter only has
    one shape to persist.
"""
import json
import logging
import time
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Iterable, Optional

from backend.errors import CookieFormatError
from backend.expiry import expiry_to_datetime

logger = logging.getLogger("cookie_manager")

# Non-essential tracking cookies, matched by name prefix
TRACKING_PREFIXES = ("_ga", "_gid", "_fbp", "_gat", "_gcl", "__")

SAME_SITE_VALUES = {"lax": "Lax", "strict": "Strict", "none": "None"}

# Imported cookie strings carry no expiry; assume 30 days like the dashboard does
IMPORTED_COOKIE_TTL = 30 * 24 * 60 * 60

SOURCE_BROWSER = "browser"
SOURCE_IMPORTED = "imported"


@dataclass
class CookieRecord:
    name: str
    value: str
    domain: str
    path: str = "/"
    expires: Optional[float] = None  # epoch seconds, None for session cookies
    http_only: bool = False
    secure: bool = False
    same_site: str = "Lax"
    source: str = field(default=SOURCE_BROWSER)

    @property
    def expiration_date(self) -> Optional[datetime]:
        return expiry_to_datetime(self.expires)

    @property
    def key(self) -> tuple:
        return (self.name, self.domain)

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("source")
        return data

    def __repr__(self) -> str:
        # Never let a cookie value end up in a log line
        return f"CookieRecord(name={self.name!r}, domain={self.domain!r}, source={self.source!r})"


def normalize_same_site(value: Any) -> str:
    if not value:
        return "Lax"
    return SAME_SITE_VALUES.get(str(value).strip().lower(), "Lax")


def is_tracking_cookie(name: str) -> bool:
    return name.startswith(TRACKING_PREFIXES)


def _epoch_seconds(value: Any) -> Optional[float]:
    expiration = expiry_to_datetime(value)
    if expiration is None:
        return None
    return (expiration - datetime(1970, 1, 1)).total_seconds()


def from_browser_cookie(raw: dict) -> CookieRecord:
    """Normalize one cookie dict as returned by BrowserContext.cookies()."""
    return CookieRecord(
        name=raw["name"],
        value=raw.get("value", ""),
        domain=raw.get("domain", ""),
        path=raw.get("path") or "/",
        expires=_epoch_seconds(raw.get("expires")),
        http_only=bool(raw.get("httpOnly", False)),
        secure=bool(raw.get("secure", False)),
        same_site=normalize_same_site(raw.get("sameSite")),
        source=SOURCE_BROWSER,
    )


def filter_session_cookies(raw_cookies: Iterable[dict]) -> list[CookieRecord]:
    """Drop tracking cookies and normalize the rest."""
    kept = []
    dropped = 0
    for raw in raw_cookies:
        if not raw.get("name") or is_tracking_cookie(raw["name"]):
            dropped += 1
            continue
        kept.append(from_browser_cookie(raw))
    logger.debug(f"Cookie filter: kept {len(kept)}, dropped {dropped} tracking cookies.")
    return kept


def dedupe_cookies(cookies: Iterable[CookieRecord]) -> list[CookieRecord]:
    """Keep the last occurrence of each (name, domain) pair, in first-seen order."""
    by_key: dict[tuple, CookieRecord] = {}
    for cookie in cookies:
        by_key[cookie.key] = cookie
    return list(by_key.values())


def from_import_dict(raw: dict, default_domain: str) -> CookieRecord:
    """Normalize a cookie from a JSON export (extension or our own API)."""
    if not isinstance(raw, dict) or not raw.get("name") or raw.get("value") in (None, ""):
        raise CookieFormatError("Each cookie needs a non-empty name and value")

    expires = raw.get("expirationDate", raw.get("expires"))
    return CookieRecord(
        name=str(raw["name"]),
        value=str(raw["value"]),
        domain=raw.get("domain") or default_domain,
        path=raw.get("path") or "/",
        expires=_epoch_seconds(expires),
        http_only=bool(raw.get("httpOnly", raw.get("http_only", False))),
        secure=bool(raw.get("secure", False)),
        same_site=normalize_same_site(raw.get("sameSite", raw.get("same_site"))),
        source=SOURCE_IMPORTED,
    )


def parse_cookie_string(text: str, default_domain: str) -> list[CookieRecord]:
    """
    Parse a raw Cookie header string:
      "_gcl_au=1.1.333; laravel_session=eyJpdiI6..."
    Malformed pairs are skipped. Raises CookieFormatError if nothing is left.
    """
    if not text or not isinstance(text, str):
        raise CookieFormatError("Cookie string is empty")

    expires = time.time() + IMPORTED_COOKIE_TTL
    cookies = []
    for pair in (p.strip() for p in text.split(";")):
        if not pair:
            continue
        name, sep, value = pair.partition("=")
        name, value = name.strip(), value.strip()
        if not sep or not name or not value:
            logger.warning(f"Skipping invalid cookie pair: {name or pair[:20]!r}")
            continue
        cookies.append(
            CookieRecord(
                name=name,
                value=value,
                domain=default_domain,
                expires=expires,
                secure=True,
                source=SOURCE_IMPORTED,
            )
        )

    if not cookies:
        raise CookieFormatError("No valid cookies found in cookie string")
    return cookies


def parse_cookie_payload(payload: Any, default_domain: str) -> list[CookieRecord]:
    """
    Accept a list of cookie dicts, a JSON string, or a raw cookie string,
    and return de-duplicated CookieRecords.
    """
    if isinstance(payload, str):
        text = payload.strip()
        if text.startswith("[") or text.startswith("{"):
            try:
                payload = json.loads(text)
            except json.JSONDecodeError as e:
                raise CookieFormatError(f"Invalid JSON: {e}") from e
        elif "=" in text:
            return dedupe_cookies(parse_cookie_string(text, default_domain))
        else:
            raise CookieFormatError("Unrecognized format. Use a cookie string or JSON.")

    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list) or not payload:
        raise CookieFormatError("Cookies must be a non-empty array")

    return dedupe_cookies(from_import_dict(raw, default_domain) for raw in payload)
