import posixpath
from datetime import datetime, timezone
from uuid import uuid4

from PIL import Image
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from fieldrent.errors import ValidationError

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "webp"}
PAYMENT_PROOF_PREFIX = "payment-proofs"
FIELD_IMAGE_PREFIX = "field-images"


class FileService:
    def __init__(self, object_store):
        self.object_store = object_store

    @staticmethod
    def _is_allowed(filename):
        return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS

    def save_image(self, storage: FileStorage, prefix: str):
        if not storage or not storage.filename:
            raise ValidationError("An image file is required.")

        filename = secure_filename(storage.filename)
        if not filename or not self._is_allowed(filename):
            raise ValidationError("Unsupported image format.")

        # Verify actual image bytes to avoid extension spoofing.
        try:
            img = Image.open(storage.stream)
            img.verify()
            storage.stream.seek(0)
        except Exception as exc:
            raise ValidationError("Invalid image file.") from exc

        dated_folder = datetime.now(timezone.utc).strftime("%Y/%m/%d")
        extension = filename.rsplit(".", 1)[1].lower()
        path = f"{prefix}/{dated_folder}/{uuid4().hex}.{extension}"
        return self.object_store.put(path, storage.stream.read())

    def save_payment_proof(self, storage, booking_id):
        return self.save_image(storage, f"{PAYMENT_PROOF_PREFIX}/{booking_id}")

    def save_field_image(self, storage, field_id):
        return self.save_image(storage, f"{FIELD_IMAGE_PREFIX}/{field_id}")

    def stored_payment_proof(self, file_ref, booking_id):
        """Resolve a client-supplied reference to a proof already uploaded for this booking."""
        if not isinstance(file_ref, str) or not file_ref.strip():
            raise ValidationError("Upload a proof image or reference a stored file.")
        path = posixpath.normpath(file_ref.strip())
        if not path.startswith(f"{PAYMENT_PROOF_PREFIX}/{booking_id}/") or not self.object_store.exists(path):
            raise ValidationError("Referenced file is not a payment proof for this booking.")
        return path
