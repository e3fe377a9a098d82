from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC now; all TIMESTAMP columns hold naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=0)
