"""Object store for payment proofs and field photos."""

import time
from pathlib import Path

from itsdangerous import BadSignature, URLSafeTimedSerializer

from fieldrent.errors import ForbiddenError, NotFoundError, ValidationError


class LocalObjectStore:
    """
    Keeps objects on local disk under ``root`` and hands out signed,
    time-limited links that the media route resolves back to a path.
    """

    def __init__(self, root, secret_key, base_url="/api/v1/media"):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self._serializer = URLSafeTimedSerializer(secret_key, salt="fieldrent-media")

    def _absolute(self, path):
        candidate = (self.root / path).resolve()
        root = self.root.resolve()
        if candidate == root or root not in candidate.parents:
            raise ValidationError("Invalid object path.")
        return candidate

    def put(self, path, data):
        target = self._absolute(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return path

    def exists(self, path):
        return self._absolute(path).is_file()

    def open_path(self, path):
        target = self._absolute(path)
        if not target.is_file():
            raise NotFoundError("File not found.")
        return target

    def delete(self, path):
        target = self._absolute(path)
        if target.is_file():
            target.unlink()

    def signed_url(self, path, ttl):
        token = self._serializer.dumps({"path": path, "ttl": int(ttl)})
        return f"{self.base_url}/{token}"

    def resolve_token(self, token, now=None):
        try:
            payload, issued_at = self._serializer.loads(token, return_timestamp=True)
        except BadSignature as exc:
            raise NotFoundError("File not found.") from exc

        now = time.time() if now is None else now
        if now - issued_at.timestamp() > payload.get("ttl", 0):
            raise ForbiddenError("Link expired.")
        return payload["path"]
