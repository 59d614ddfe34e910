from datetime import date, datetime, time, timedelta, timezone

from fieldrent.errors import ValidationError
from fieldrent.models import Booking
from fieldrent.models.base import as_utc


def parse_timestamp(value, label):
    """Accept an aware/naive datetime or an ISO-8601 string and return it in UTC."""
    if isinstance(value, datetime):
        return as_utc(value)
    raw = (value or "").strip() if isinstance(value, str) else ""
    if not raw:
        raise ValidationError(f"{label} is required.")
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(f"{label} must be an ISO-8601 timestamp.") from exc
    return as_utc(parsed)


def parse_range(start_time, end_time):
    start = parse_timestamp(start_time, "start_time")
    end = parse_timestamp(end_time, "end_time")
    if end <= start:
        raise ValidationError("end_time must be after start_time.")
    return start, end


def ranges_overlap(start, end, other_start, other_end):
    # Half-open ranges: a slot ending at 10:00 leaves 10:00 free.
    return start < other_end and end > other_start


class AvailabilityService:
    def __init__(self, store):
        self.store = store

    def conflicting_bookings(self, field_id, start, end):
        return self.store.select(
            Booking,
            Booking.field_id == field_id,
            Booking.status != "cancelled",
            Booking.start_time < end,
            Booking.end_time > start,
            order_by=(Booking.start_time,),
        )

    def is_available(self, field_id, start_time, end_time):
        start, end = parse_range(start_time, end_time)
        return not self.conflicting_bookings(field_id, start, end)

    def busy_slots(self, field_id, day):
        if isinstance(day, str):
            try:
                day = date.fromisoformat(day.strip())
            except ValueError as exc:
                raise ValidationError("date must be formatted as YYYY-MM-DD.") from exc
        if not isinstance(day, date):
            raise ValidationError("date is required.")

        day_start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        day_end = day_start + timedelta(days=1)
        return [
            (booking.start_time, booking.end_time)
            for booking in self.conflicting_bookings(field_id, day_start, day_end)
        ]
