from datetime import UTC, datetime, timedelta


def utcnow_naive():
    """Current UTC time as a naive datetime, matching the DB timestamp columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def naive_utc_in(**delta):
    return utcnow_naive() + timedelta(**delta)


def has_expired(expires_at):
    return expires_at is None or expires_at <= utcnow_naive()
