import uuid
from datetime import datetime, timezone


def comma_string_to_list(s):
    if s is None or s.strip() == "":
        return []
    return [v.strip() for v in s.split(",") if v.strip()]


def utcnow():
    # Naive UTC, matching what SQLite DateTime columns round-trip
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def new_id():
    return uuid.uuid4().hex
