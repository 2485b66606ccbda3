"""
One login -> replace cookies -> health check -> notify cycle for a store.

Shared by the on-demand API (generate/sync) and the refresh scheduler so
both follow exactly the same ordering and failure rules.
"""
import logging
from dataclasses import dataclass, asdict
from typing import Optional

from sqlalchemy.orm import Session

from backend.automation.driver import CookieLoginDriver, LoginResult
from backend.models.store import Store
from backend.services import vault
from backend.services.activity_service import ActivityNotifier, notifier as default_notifier
from backend.services.cookie_store import locked_store, replace_cookies, touch_store
from backend.services.health_check import check_store_health

logger = logging.getLogger("cookie_manager")

# trigger -> (success action, failure action)
ACTIONS = {
    "generate": ("Cookies generated", "Cookies generation failed"),
    "sync": ("Cookies synced", "Cookies sync failed"),
    "refresh": ("Cookies refreshed", "Cookies refresh failed"),
}


@dataclass
class CycleOutcome:
    store_id: int
    store_name: str
    success: bool
    cookie_count: int = 0
    error: Optional[str] = None
    attempts: int = 0
    valid_cookies: Optional[int] = None
    expired_cookies: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)


def run_cookie_cycle(
    db: Session,
    store: Store,
    email: str,
    password: str,
    driver: CookieLoginDriver,
    notifier: Optional[ActivityNotifier] = None,
    trigger: str = "refresh",
    save_credentials: bool = False,
) -> CycleOutcome:
    """
    Log in with the given credentials and replace the store's cookies.

    Driver failures come back as a failed outcome with the driver's error
    text and no cookies written. PersistenceError propagates to the caller.
    The health check and activity notification are best-effort.
    """
    notifier = notifier or default_notifier
    success_action, failure_action = ACTIONS.get(trigger, ACTIONS["refresh"])
    store_id, store_name, user_id = store.id, store.name, store.user_id

    with locked_store(store_id):
        result: LoginResult = driver.login_and_get_cookies(email, password, store.domain)

        if not result.success:
            logger.error(f"[{store_name}] {failure_action}: {result.error}")
            notifier.notify(user_id, failure_action, "error", store_name, store_id, details=result.error)
            return CycleOutcome(store_id, store_name, False, error=result.error, attempts=result.attempts)

        if save_credentials:
            store.encrypted_email = vault.encrypt(email)
            store.encrypted_password = vault.encrypt(password)

        rows = replace_cookies(db, store_id, user_id, result.cookies, default_domain=store.domain)
        touch_store(db, store)

        outcome = CycleOutcome(
            store_id, store_name, True, cookie_count=len(rows), attempts=result.attempts
        )

        health = check_store_health(db, store_id, user_id)
        if health.success:
            outcome.valid_cookies = health.data.valid_cookies
            outcome.expired_cookies = health.data.expired_cookies
            logger.info(
                f"[{store_name}] Health check: {health.data.valid_cookies} valid, "
                f"{health.data.expired_cookies} expired (total: {health.data.total_cookies})"
            )
        else:
            logger.warning(f"[{store_name}] Health check failed: {health.error or health.message}")

    notifier.notify(
        user_id, success_action, "success", store_name, store_id,
        details=f"{outcome.cookie_count} cookies captured",
    )
    logger.info(f"[{store_name}] {success_action}: {outcome.cookie_count} cookies.")
    return outcome
