from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, the format every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    return utcnow().date()


def isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat() + "Z"
