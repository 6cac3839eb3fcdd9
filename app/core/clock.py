from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

from app.core.config import settings

# Returns the current aware datetime in the operator's timezone.
Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now(ZoneInfo(settings.APP_TIMEZONE))


def fixed_clock(at: datetime) -> Clock:
    return lambda: at
