"""
Per-workspace schedule configuration.

Each workspace books in its own IANA timezone and within an allowed-hours
window [start_hour, end_hour) expressed in local wall-clock hours. The end
boundary is inclusive for bookings: a booking may end exactly at end_hour.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.errors import BadRequestError, require_string
from app.settings import settings

MINUTES_PER_DAY = 24 * 60


def validate_timezone(value: str | None) -> str:
    """Return the zone name if it exists in the IANA database, else BAD_REQUEST."""
    name = require_string(value, "timezone")
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise BadRequestError("timezone must be a valid IANA timezone") from None
    return name


def _require_hour(value: int, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 24:
        raise BadRequestError(f"{field_name} must be an integer between 0 and 24")
    return value


def resolve_schedule_hours(
    start_hour: int | None = None,
    end_hour: int | None = None,
) -> tuple[int, int]:
    """Validate a schedule window, filling unset bounds from the defaults."""
    start = (
        settings.default_schedule_start_hour
        if start_hour is None
        else _require_hour(start_hour, "scheduleStartHour")
    )
    end = (
        settings.default_schedule_end_hour
        if end_hour is None
        else _require_hour(end_hour, "scheduleEndHour")
    )
    if end <= start:
        raise BadRequestError("scheduleEndHour must be greater than scheduleStartHour")
    return start, end


@dataclass(frozen=True)
class ScheduleConfig:
    timezone: str
    start_hour: int
    end_hour: int

    @classmethod
    def for_workspace(cls, workspace) -> "ScheduleConfig":
        return cls(
            timezone=workspace.timezone,
            start_hour=workspace.schedule_start_hour,
            end_hour=workspace.schedule_end_hour,
        )

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def to_local(self, instant: datetime) -> datetime:
        return instant.astimezone(self.tz)

    def local_date(self, instant: datetime) -> date:
        return self.to_local(instant).date()

    def local_minutes(self, instant: datetime, round_up: bool = False) -> int:
        """Minutes since local midnight; partial minutes count fully when round_up."""
        local = self.to_local(instant)
        minutes = local.hour * 60 + local.minute
        if round_up and (local.second or local.microsecond):
            minutes += 1
        return minutes

    def local_end_date(self, instant: datetime) -> date:
        """Local date a booking ending at ``instant`` belongs to.

        An end exactly at local midnight is 24:00 of the previous day.
        """
        local = self.to_local(instant)
        if local.time() == time.min:
            return local.date() - timedelta(days=1)
        return local.date()

    def local_end_minutes(self, instant: datetime) -> int:
        if self.to_local(instant).time() == time.min:
            return MINUTES_PER_DAY
        return self.local_minutes(instant, round_up=True)

    def is_within_schedule(self, local_start_minutes: int, local_end_minutes: int) -> bool:
        return (
            self.start_hour * 60 <= local_start_minutes
            and local_end_minutes <= self.end_hour * 60
        )

    def today(self, now: datetime) -> date:
        return self.local_date(now)

    def start_of_local_day(self, day: date) -> datetime:
        """UTC instant of local midnight on the given date."""
        return datetime.combine(day, time.min, tzinfo=self.tz).astimezone(timezone.utc)
