"""Calendar rules for the booking widget.

Pure functions deciding which civil dates and times can be booked, and the
fixed daily slot grid. Every rule that depends on the current moment takes
``now`` explicitly; civil comparisons are made in the operating timezone.

Rules (must match the legacy widget):
- Weekdays only
- No past dates
- Same-day bookings close at 19:00 (inclusive)
- At most 60 days ahead (day 60 is still bookable)
- 30-minute slots covering 09:00 to 17:30, the last one starting 17:00
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from zoneinfo import ZoneInfo

OPERATING_TIMEZONE = "Europe/Madrid"

SLOT_MINUTES = 30
HOLD_MINUTES = 10
SLOT_DURATION = timedelta(minutes=SLOT_MINUTES)
HOLD_DURATION = timedelta(minutes=HOLD_MINUTES)

DAY_START = time(9, 0)
DAY_END = time(17, 30)
SAME_DAY_CUTOFF = time(19, 0)
BOOKING_HORIZON_DAYS = 60

# Saturday and Sunday in date.weekday() numbering
WEEKEND_DAYS = frozenset({5, 6})

_TZ = ZoneInfo(OPERATING_TIMEZONE)


class DateRejection(str, Enum):
    """Reason a date cannot be booked."""

    INVALID_DATE = "INVALID_DATE"
    DATE_IN_PAST = "DATE_IN_PAST"
    WEEKEND_NOT_ALLOWED = "WEEKEND_NOT_ALLOWED"
    CUTOFF_EXCEEDED = "CUTOFF_EXCEEDED"


@dataclass(frozen=True)
class DateCheck:
    """Outcome of validating a booking date.

    Attributes:
        valid: Whether the date can be booked
        reason: Rejection reason when not valid
    """

    valid: bool
    reason: DateRejection | None = None


@dataclass(frozen=True)
class Slot:
    """One slot of the daily grid, as civil times."""

    start: time
    end: time

    @property
    def start_label(self) -> str:
        return format_time(self.start)

    @property
    def end_label(self) -> str:
        return format_time(self.end)


def format_time(value: time) -> str:
    """Format a civil time as HH:MM."""
    return f"{value.hour:02d}:{value.minute:02d}"


def parse_iso_date(value: str) -> date | None:
    """Parse a strict YYYY-MM-DD string, rejecting impossible dates."""
    if len(value) != 10 or value[4] != "-" or value[7] != "-":
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def parse_slot_time(value: str) -> time | None:
    """Parse a strict HH:MM string."""
    if len(value) != 5 or value[2] != ":":
        return None
    hours, minutes = value[:2], value[3:]
    if not (hours.isdigit() and minutes.isdigit()):
        return None
    hour, minute = int(hours), int(minutes)
    if hour > 23 or minute > 59:
        return None
    return time(hour, minute)


def local_now(now: datetime) -> datetime:
    """Express an instant in the operating timezone."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(_TZ)


def is_weekend_day(day: date) -> bool:
    """True for Saturday and Sunday."""
    return day.weekday() in WEEKEND_DAYS


def is_past_date(day: date, now: datetime) -> bool:
    """True if ``day`` is strictly before today's civil date."""
    return day < local_now(now).date()


def is_after_same_day_cutoff(now: datetime) -> bool:
    """True once the local time of day reaches the cutoff (19:00 counts)."""
    return local_now(now).time() >= SAME_DAY_CUTOFF


def can_book_same_day(day: date, now: datetime) -> bool:
    """Same-day bookings close at the cutoff; other days are unaffected."""
    if day == local_now(now).date():
        return not is_after_same_day_cutoff(now)
    return True


def is_beyond_horizon(day: date, now: datetime) -> bool:
    """True if ``day`` is more than the horizon ahead of today."""
    return (day - local_now(now).date()).days > BOOKING_HORIZON_DAYS


def validate_booking_date(day: date | None, now: datetime) -> DateCheck:
    """Validate a date and report the first rule it breaks."""
    if day is None:
        return DateCheck(valid=False, reason=DateRejection.INVALID_DATE)

    if is_past_date(day, now):
        return DateCheck(valid=False, reason=DateRejection.DATE_IN_PAST)

    if is_weekend_day(day):
        return DateCheck(valid=False, reason=DateRejection.WEEKEND_NOT_ALLOWED)

    if not can_book_same_day(day, now):
        return DateCheck(valid=False, reason=DateRejection.CUTOFF_EXCEEDED)

    if is_beyond_horizon(day, now):
        return DateCheck(valid=False, reason=DateRejection.INVALID_DATE)

    return DateCheck(valid=True)


def is_date_bookable(day: date, now: datetime) -> bool:
    """Composite date rule."""
    return validate_booking_date(day, now).valid


def generate_daily_slots(day: date | None = None) -> list[Slot]:
    """Generate the fixed daily grid.

    The grid only depends on the grid constants; ``day`` is accepted so
    callers can pass the date they are rendering.
    """
    slots: list[Slot] = []
    anchor = datetime.combine(date(2000, 1, 3), DAY_START)
    end_of_day = datetime.combine(anchor.date(), DAY_END)

    current = anchor
    while current + SLOT_DURATION <= end_of_day:
        end = current + SLOT_DURATION
        slots.append(Slot(start=current.time(), end=end.time()))
        current = end

    return slots


def is_valid_slot_time(value: time) -> bool:
    """Check a start time lies on the daily grid."""
    return any(slot.start == value for slot in generate_daily_slots())


def slot_bounds(day: date, start: time) -> tuple[datetime, datetime]:
    """Absolute UTC instants of a slot given its civil date and start time."""
    local_start = datetime.combine(day, start, tzinfo=_TZ)
    start_at = local_start.astimezone(timezone.utc)
    return start_at, start_at + SLOT_DURATION


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Absolute UTC instants spanning a civil day in the operating timezone."""
    start = datetime.combine(day, time.min, tzinfo=_TZ).astimezone(timezone.utc)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=_TZ).astimezone(
        timezone.utc
    )
    return start, end
