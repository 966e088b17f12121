"""Time helpers so every component agrees on UTC."""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_today() -> date:
    return utc_now().date()


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps, as SQLite hands them back."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
