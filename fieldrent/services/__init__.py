from fieldrent.services.auth_service import AuthService
from fieldrent.services.availability_service import AvailabilityService
from fieldrent.services.booking_service import BookingService
from fieldrent.services.field_service import FieldService
from fieldrent.services.file_service import FileService
from fieldrent.services.lifecycle_service import LifecycleService

__all__ = [
    "AuthService",
    "AvailabilityService",
    "BookingService",
    "FieldService",
    "FileService",
    "LifecycleService",
]
