from __future__ import annotations

import re
from datetime import date, datetime, timezone

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def utcnow() -> datetime:
    """Naive UTC timestamp (columns are stored without tz)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def clean(value: str | None) -> str:
    return (value or "").strip()


def clean_or_none(value: str | None) -> str | None:
    return clean(value) or None


def normalize_email(value: str | None) -> str:
    return clean(value).lower()


def is_valid_email(value: str | None) -> bool:
    return bool(_EMAIL_RE.fullmatch(clean(value)))


def parse_date(s: str | None) -> date | None:
    """Parse YYYY-MM-DD; returns None for blank or malformed input."""
    s = clean(s)
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


def safe_next(nxt: str | None) -> str | None:
    """Only allow local paths as redirect targets (avoids open redirects)."""
    nxt = clean(nxt)
    if nxt.startswith("/") and not nxt.startswith("//"):
        return nxt
    return None
