import logging
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.exc import IntegrityError

from fieldrent.errors import ConflictError, UnauthorizedError, ValidationError
from fieldrent.models import Booking
from fieldrent.models.booking import NO_OVERLAP_CONSTRAINT
from fieldrent.policy import Policy
from fieldrent.services.auth_service import resolve_caller
from fieldrent.services.availability_service import AvailabilityService, parse_range
from fieldrent.services.field_service import lock_field

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "Time slot already booked."
MAX_BOOKING_DURATION = timedelta(hours=24)
# Largest value a Numeric(12, 2) column holds.
MAX_TOTAL_PRICE = Decimal("9999999999.99")


def price_slot(price_per_hour, start, end):
    """Linear pricing: fractional hours are charged pro rata, rounded to cents."""
    seconds = Decimal(str((end - start).total_seconds()))
    if seconds <= 0:
        raise ValidationError("Booking duration must be positive.")
    total = Decimal(str(price_per_hour)) * seconds / Decimal(3600)
    total = total.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if total > MAX_TOTAL_PRICE:
        raise ValidationError("Booking total exceeds the maximum price.")
    return total


def _parse_field_id(field_id):
    try:
        value = int(field_id)
    except (TypeError, ValueError) as exc:
        raise ValidationError("field_id must reference a field.") from exc
    if value <= 0:
        raise ValidationError("field_id must reference a field.")
    return value


class BookingService:
    """Admission control for new bookings."""

    def __init__(self, store, policy=Policy):
        self.store = store
        self.policy = policy
        self.availability = AvailabilityService(store)

    def create_booking(self, user_id, field_id, start_time, end_time):
        user = resolve_caller(self.store, user_id)
        if not self.policy.can_create_booking(user):
            raise UnauthorizedError()
        start, end = parse_range(start_time, end_time)
        if end - start > MAX_BOOKING_DURATION:
            raise ValidationError("A booking can last at most 24 hours.")
        field_id = _parse_field_id(field_id)
        return self.store.run(self._admit, user, field_id, start, end)

    def _admit(self, user, field_id, start, end):
        # Taking the field's row lock first keeps check-and-insert atomic per field.
        field = lock_field(self.store, field_id)
        if field is None:
            raise ValidationError("Field not found.")
        if not field.is_active:
            raise ValidationError("Field is not accepting bookings.")

        total_price = price_slot(field.price_per_hour, start, end)

        conflicts = self.availability.conflicting_bookings(field.id, start, end)
        if conflicts:
            logger.info(
                "Booking rejected: field=%s range=%s/%s overlaps booking %s",
                field.id,
                start.isoformat(),
                end.isoformat(),
                conflicts[0].id,
            )
            raise ConflictError(SLOT_TAKEN_MESSAGE)

        booking = Booking(
            field_id=field.id,
            user_id=user.id,
            start_time=start,
            end_time=end,
            status="pending",
            total_price=total_price,
        )
        try:
            self.store.insert(booking)
            self.store.commit()
        except IntegrityError as exc:
            if NO_OVERLAP_CONSTRAINT in str(getattr(exc, "orig", exc)):
                raise ConflictError(SLOT_TAKEN_MESSAGE) from exc
            raise

        logger.info(
            "Booking %s created: field=%s user=%s total=%s",
            booking.id,
            booking.field_id,
            booking.user_id,
            booking.total_price,
        )
        return booking
