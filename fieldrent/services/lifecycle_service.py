import logging

from sqlalchemy.orm import joinedload

from fieldrent.errors import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from fieldrent.models import Booking, Field
from fieldrent.models.base import utcnow
from fieldrent.policy import Policy
from fieldrent.services.auth_service import resolve_caller

logger = logging.getLogger(__name__)

# Manual transitions only. "completed" is entered by complete_past_bookings.
BOOKING_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": set(),
    "cancelled": set(),
    "completed": set(),
}
MANUAL_STATUSES = {"confirmed", "cancelled"}


class LifecycleService:
    def __init__(self, store, policy=Policy):
        self.store = store
        self.policy = policy

    def _load_booking(self, booking_id, for_update=False):
        booking = self.store.get(Booking, booking_id, for_update=for_update)
        if booking is None:
            raise NotFoundError("Booking not found.")
        return booking

    def get_booking(self, booking_id, caller_id):
        caller = resolve_caller(self.store, caller_id)
        booking = self._load_booking(booking_id)
        if not self.policy.can_view_booking(caller, booking):
            raise ForbiddenError("You cannot view this booking.")
        return booking

    def check_can_attach_proof(self, booking_id, caller_id):
        """Run the attach guards up front so an upload is only stored for a permitted caller."""
        caller = resolve_caller(self.store, caller_id)
        booking = self._load_booking(booking_id)
        self._guard_proof(caller, booking)
        return booking

    def _guard_proof(self, caller, booking):
        if not self.policy.can_attach_proof(caller, booking):
            raise ForbiddenError("Only the renter can upload payment proof.")
        if booking.status != "pending":
            raise InvalidStateError("Payment proof can only be attached while the booking is pending.")

    def attach_payment_proof(self, booking_id, caller_id, file_ref):
        caller = resolve_caller(self.store, caller_id)
        file_ref = (file_ref or "").strip() if isinstance(file_ref, str) else ""
        if not file_ref:
            raise ValidationError("A payment proof file is required.")
        return self.store.run(self._attach_proof, caller, booking_id, file_ref)

    def _attach_proof(self, caller, booking_id, file_ref):
        booking = self._load_booking(booking_id, for_update=True)
        self._guard_proof(caller, booking)

        self.store.update(booking, {"proof_of_payment_url": file_ref})
        self.store.commit()
        logger.info("Payment proof attached to booking %s", booking.id)
        return booking

    def set_status(self, booking_id, caller_id, new_status):
        caller = resolve_caller(self.store, caller_id)
        new_status = (new_status or "").strip().lower() if isinstance(new_status, str) else ""
        if new_status not in MANUAL_STATUSES:
            raise ValidationError("Status must be 'confirmed' or 'cancelled'.")
        return self.store.run(self._transition, caller, booking_id, new_status)

    def _transition(self, caller, booking_id, new_status):
        booking = self._load_booking(booking_id, for_update=True)
        if not self.policy.can_manage_field(caller, booking.field):
            raise ForbiddenError("Only the field owner or an admin can change this booking.")

        current = booking.status
        if new_status not in BOOKING_TRANSITIONS.get(current, set()):
            raise InvalidStateError(f"Invalid status transition from {current} to {new_status}.")

        self.store.update(booking, {"status": new_status})
        self.store.commit()
        logger.info("Booking %s moved %s -> %s by user %s", booking.id, current, new_status, caller.id)
        return booking

    def list_for_renter(self, user_id):
        user = resolve_caller(self.store, user_id)
        return self.store.select(
            Booking,
            Booking.user_id == user.id,
            order_by=(Booking.created_at.desc(), Booking.id.desc()),
            options=(joinedload(Booking.field),),
        )

    def owned_fields(self, caller):
        if self.policy.sees_all_fields(caller):
            return self.store.select(Field, order_by=(Field.created_at.desc(), Field.id.desc()))
        return self.store.select(
            Field,
            Field.owner_id == caller.id,
            order_by=(Field.created_at.desc(), Field.id.desc()),
        )

    def list_for_owner(self, caller_id):
        caller = resolve_caller(self.store, caller_id)
        if not self.policy.can_view_dashboard(caller):
            raise ForbiddenError("Owner or admin access required.")
        return self._bookings_for(caller, self.owned_fields(caller))

    def owner_dashboard(self, caller_id):
        caller = resolve_caller(self.store, caller_id)
        if not self.policy.can_view_dashboard(caller):
            raise ForbiddenError("Owner or admin access required.")
        fields = self.owned_fields(caller)
        return caller, fields, self._bookings_for(caller, fields)

    def _bookings_for(self, caller, fields):
        options = (joinedload(Booking.field), joinedload(Booking.renter))
        order_by = (Booking.created_at.desc(), Booking.id.desc())
        if self.policy.sees_all_fields(caller):
            return self.store.select(Booking, order_by=order_by, options=options)

        field_ids = [field.id for field in fields]
        if not field_ids:
            return []
        return self.store.select(
            Booking,
            Booking.field_id.in_(field_ids),
            order_by=order_by,
            options=options,
        )

    def complete_past_bookings(self, now=None):
        """Mark confirmed bookings whose slot has ended as completed. Returns the count."""
        now = now or utcnow()
        return self.store.run(self._complete_past, now)

    def _complete_past(self, now):
        count = self.store.update_where(
            Booking,
            (Booking.status == "confirmed", Booking.end_time <= now),
            {Booking.status: "completed", Booking.updated_at: now},
        )
        self.store.commit()
        if count:
            logger.info("Marked %s past bookings completed", count)
        return count
