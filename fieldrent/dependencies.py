"""Per-request collaborators for the route handlers."""

from flask import current_app
from flask_login import current_user

from fieldrent.extensions import db
from fieldrent.store import Store

OBJECT_STORE_KEY = "fieldrent.object_store"


def get_store():
    return Store(db.session, retry_backoff=current_app.config["STORE_RETRY_BACKOFF"])


def get_object_store():
    return current_app.extensions[OBJECT_STORE_KEY]


def current_user_id():
    """The caller's id, or ``None`` when the request carries no session."""
    if not current_user.is_authenticated:
        return None
    return current_user.id
