from decimal import Decimal, InvalidOperation

from sqlalchemy.orm import selectinload

from fieldrent.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from fieldrent.models import Booking, Field, FieldImage, User
from fieldrent.policy import Policy
from fieldrent.services.auth_service import resolve_caller

LIVE_STATUSES = ("pending", "confirmed")


def lock_field(store, field_id):
    """
    Take the per-field admission lock and return the locked field, or ``None``
    if it does not exist.

    Bumping ``booking_version`` row-locks the field on PostgreSQL and takes
    the write lock on SQLite. Either is held until the transaction ends.
    """
    locked = store.update_where(
        Field,
        (Field.id == field_id,),
        {Field.booking_version: Field.booking_version + 1},
    )
    if not locked:
        return None
    return store.get(Field, field_id, for_update=True)


class FieldService:
    EDITABLE_ATTRIBUTES = {"name", "description", "price_per_hour", "address", "lat", "lng", "is_active"}
    REQUIRED_TEXT = ("name", "description", "address")

    def __init__(self, store, policy=Policy):
        self.store = store
        self.policy = policy

    @staticmethod
    def _parse_price(value):
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError("Price per hour is required.")
        if isinstance(value, bool):
            raise ValidationError("Price per hour must be a non-negative number.")
        try:
            price = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValidationError("Price per hour must be a non-negative number.") from exc
        if not price.is_finite() or price < 0:
            raise ValidationError("Price per hour must be a non-negative number.")
        return price.quantize(Decimal("0.01"))

    @staticmethod
    def _parse_coordinate(value, label, limit):
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        try:
            coordinate = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValidationError(f"Invalid {label} value.") from exc
        if not coordinate.is_finite() or abs(coordinate) > limit:
            raise ValidationError(f"Invalid {label} value.")
        return coordinate

    @staticmethod
    def _parse_bool(value):
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in {"1", "true", "yes", "on"}

    def _clean(self, payload, partial):
        values = {}
        for key in self.REQUIRED_TEXT:
            if key not in payload and partial:
                continue
            text = (payload.get(key) or "").strip() if isinstance(payload.get(key), str) else ""
            if not text:
                raise ValidationError(f"Field {key} is required.")
            values[key] = text
        if "price_per_hour" in payload or not partial:
            values["price_per_hour"] = self._parse_price(payload.get("price_per_hour"))
        if "lat" in payload:
            values["lat"] = self._parse_coordinate(payload.get("lat"), "latitude", 90)
        if "lng" in payload:
            values["lng"] = self._parse_coordinate(payload.get("lng"), "longitude", 180)
        if "is_active" in payload:
            values["is_active"] = self._parse_bool(payload.get("is_active"))
        return values

    def list_active_fields(self):
        return self.store.select(
            Field,
            Field.is_active.is_(True),
            order_by=(Field.created_at.desc(), Field.id.desc()),
            options=(selectinload(Field.images),),
        )

    def list_managed_fields(self, caller_id):
        caller = resolve_caller(self.store, caller_id)
        if not self.policy.can_create_field(caller):
            raise ForbiddenError("Owner or admin access required.")
        criteria = () if self.policy.sees_all_fields(caller) else (Field.owner_id == caller.id,)
        return self.store.select(
            Field,
            *criteria,
            order_by=(Field.created_at.desc(), Field.id.desc()),
            options=(selectinload(Field.images),),
        )

    def get_field(self, field_id):
        field = self.store.get(Field, field_id)
        if field is None:
            raise NotFoundError("Field not found.")
        return field

    def visible_field(self, caller_id, field_id):
        """A field as seen by ``caller_id``: inactive fields exist only for those who manage them."""
        field = self.get_field(field_id)
        if field.is_active:
            return field
        caller = self.store.get(User, caller_id) if caller_id is not None else None
        if not self.policy.can_manage_field(caller, field):
            raise NotFoundError("Field not found.")
        return field

    def managed_field(self, caller_id, field_id):
        caller = resolve_caller(self.store, caller_id)
        field = self.get_field(field_id)
        if not self.policy.can_manage_field(caller, field):
            raise ForbiddenError("You do not manage this field.")
        return field

    def create_field(self, caller_id, payload):
        return self.store.run(self._create, caller_id, payload)

    def _create(self, caller_id, payload):
        caller = resolve_caller(self.store, caller_id)
        if not self.policy.can_create_field(caller):
            raise ForbiddenError("Only owners and admins can add fields.")
        values = self._clean(payload, partial=False)
        field = Field(owner_id=caller.id, **values)
        self.store.insert(field)
        self.store.commit()
        return field

    def update_field(self, caller_id, field_id, payload):
        unknown = set(payload) - self.EDITABLE_ATTRIBUTES
        if unknown:
            raise ValidationError(f"Cannot update: {', '.join(sorted(unknown))}.")
        return self.store.run(self._update, caller_id, field_id, payload)

    def _update(self, caller_id, field_id, payload):
        field = self.managed_field(caller_id, field_id)
        values = self._clean(payload, partial=True)
        self.store.update(field, values)
        self.store.commit()
        return field

    def delete_field(self, caller_id, field_id):
        """Delete a field with no live bookings. Returns the image paths that were attached."""
        return self.store.run(self._delete, caller_id, field_id)

    def _delete(self, caller_id, field_id):
        self.managed_field(caller_id, field_id)
        # Held until commit: admissions for this field wait for the delete.
        field = lock_field(self.store, field_id)
        if field is None:
            raise NotFoundError("Field not found.")
        if self.store.exists(Booking, Booking.field_id == field.id, Booking.status.in_(LIVE_STATUSES)):
            raise ConflictError("Field has pending or confirmed bookings.")

        image_paths = [image.file_path for image in field.images]
        for booking in self.store.select(Booking, Booking.field_id == field.id):
            self.store.delete(booking)
        self.store.delete(field)
        self.store.commit()
        return image_paths

    def add_field_image(self, caller_id, field_id, file_path, caption=None):
        if not file_path:
            raise ValidationError("An image file is required.")
        return self.store.run(self._add_image, caller_id, field_id, file_path, caption)

    def _add_image(self, caller_id, field_id, file_path, caption):
        field = self.managed_field(caller_id, field_id)
        image = FieldImage(
            field_id=field.id,
            file_path=file_path,
            caption=(caption or "").strip() or None,
        )
        self.store.insert(image)
        self.store.commit()
        return image
