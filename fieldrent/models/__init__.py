from fieldrent.models.booking import BOOKING_STATUSES, Booking
from fieldrent.models.field import Field
from fieldrent.models.field_image import FieldImage
from fieldrent.models.user import ROLES, User

__all__ = [
    "BOOKING_STATUSES",
    "ROLES",
    "User",
    "Field",
    "FieldImage",
    "Booking",
]
