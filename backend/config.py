import os
from pathlib import Path
from dotenv import load_dotenv

from backend.errors import ConfigurationError

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent / ".env")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings loaded from environment variables."""

    # --- Paths ---
    base_dir: Path = Path(__file__).resolve().parent.parent
    database_url: str = os.getenv("DATABASE_URL", f"sqlite:///{base_dir / 'cookie_manager.db'}")
    logs_dir: Path = Path(os.getenv("LOGS_DIR", str(base_dir / "logs")))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # --- Credential Vault ---
    # 32 bytes, hex encoded (64 chars)
    encryption_key: str = os.getenv("ENCRYPTION_KEY", "")

    # --- Target site ---
    target_domain: str = os.getenv("TARGET_DOMAIN", "kasirpintar.co.id")
    login_path: str = os.getenv("LOGIN_PATH", "/login")

    # --- Browser ---
    headless: bool = _env_bool("HEADLESS", "true")
    navigation_timeout: float = float(os.getenv("NAVIGATION_TIMEOUT", "30"))
    challenge_detect_timeout: float = float(os.getenv("CHALLENGE_DETECT_TIMEOUT", "8"))
    challenge_timeout: float = float(os.getenv("CHALLENGE_TIMEOUT", "30"))
    submit_timeout: float = float(os.getenv("SUBMIT_TIMEOUT", "20"))
    login_max_retries: int = int(os.getenv("LOGIN_MAX_RETRIES", "1"))
    login_retry_backoff: float = float(os.getenv("LOGIN_RETRY_BACKOFF", "2"))

    # --- Auto refresh ---
    auto_refresh_enabled: bool = _env_bool("AUTO_REFRESH_ENABLED", "true")
    refresh_interval_minutes: int = int(os.getenv("REFRESH_INTERVAL_MINUTES", "90"))
    refresh_countdown_log_minutes: int = int(os.getenv("REFRESH_COUNTDOWN_LOG_MINUTES", "10"))

    def login_url(self, domain: str = None) -> str:
        return f"https://{domain or self.target_domain}{self.login_path}"

    def validate(self):
        if not self.encryption_key:
            raise ConfigurationError("ENCRYPTION_KEY is required in .env")
        if self.refresh_interval_minutes <= 0:
            raise ConfigurationError("REFRESH_INTERVAL_MINUTES must be positive")
        if self.login_max_retries < 0 or self.login_max_retries > 2:
            raise ConfigurationError("LOGIN_MAX_RETRIES must be between 0 and 2")


settings = Settings()
