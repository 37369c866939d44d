from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    # Columns hold naive UTC datetimes
    return datetime.now(timezone.utc).replace(tzinfo=None)
