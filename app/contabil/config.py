import os
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    app_timezone: str
    password_reset_max_age: int
    login_rate_limit: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer (got {raw!r}).")


def _getenv_timezone(name: str) -> str:
    raw = _getenv(name)
    if not raw:
        return ""
    try:
        ZoneInfo(raw)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        raise RuntimeError(f"{name} must be an IANA time zone such as America/Sao_Paulo (got {raw!r}).")
    return raw


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///contabil.db"),
        app_timezone=_getenv_timezone("APP_TIMEZONE"),
        password_reset_max_age=_getenv_int("PASSWORD_RESET_MAX_AGE", 3600),
        login_rate_limit=_getenv_int("LOGIN_RATE_LIMIT", 5),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        # empty = server local date
        "APP_TIMEZONE": s.app_timezone,
        "PASSWORD_RESET_MAX_AGE": s.password_reset_max_age,
        "LOGIN_RATE_LIMIT": s.login_rate_limit,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,
    }
