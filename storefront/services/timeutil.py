from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    # Keep naive UTC timestamps to match the DB column types/semantics.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def days_ago(days: int, *, now: datetime | None = None) -> datetime:
    return (now or utcnow()) - timedelta(days=days)


def months_ago(months: int, *, now: datetime | None = None) -> datetime:
    now = now or utcnow()
    month_index = now.year * 12 + (now.month - 1) - months
    year, month = divmod(month_index, 12)
    # Clamp the day so Mar 31 - 1 month lands on the last day of February.
    for day in (now.day, 30, 29, 28):
        try:
            return now.replace(year=year, month=month + 1, day=day)
        except ValueError:
            continue
    raise ValueError("cannot shift date")


def years_ago(years: int, *, now: datetime | None = None) -> datetime:
    return months_ago(12 * years, now=now)


def parse_when(value: str | None, *, end_of_day: bool = False) -> datetime | None:
    """Parse an ISO date or datetime query value into naive UTC.

    A bare date means the start of that day, or its last microsecond when
    ``end_of_day`` is set, so ``to=2024-06-30`` includes the whole day.
    Returns None for empty input; raises ValueError for anything else that
    does not parse.
    """
    if value is None or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    parsed = datetime.fromisoformat(raw)
    if end_of_day and len(raw) == 10:
        parsed = parsed + timedelta(days=1) - timedelta(microseconds=1)
    return to_naive_utc(parsed)
