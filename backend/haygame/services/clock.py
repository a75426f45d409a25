"""Wall-clock helpers. Session timing is kept in epoch milliseconds."""

import time
from datetime import datetime, timezone


def now_ms() -> int:
    return int(time.time() * 1000)


def utcnow() -> datetime:
    return datetime.fromtimestamp(now_ms() / 1000.0, tz=timezone.utc)


def parse_iso(value: str) -> datetime:
    return datetime.fromisoformat(value)
