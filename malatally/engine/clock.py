"""Calendar-day source."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo


def previous_day(day: date) -> date:
    return day - timedelta(days=1)


class Clock:
    """Supplies the current calendar date in a fixed time zone."""

    def __init__(self, tz_name: str = "UTC"):
        # UTC needs no tz database
        self.tz = timezone.utc if tz_name.upper() == "UTC" else ZoneInfo(tz_name)

    def today(self) -> date:
        return datetime.now(self.tz).date()

    def yesterday(self) -> date:
        return previous_day(self.today())
