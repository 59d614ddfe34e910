from flask import Blueprint, send_file

from fieldrent.dependencies import get_object_store

api_media_bp = Blueprint("api_media", __name__)


@api_media_bp.get("/<token>")
def serve_media(token):
    object_store = get_object_store()
    path = object_store.resolve_token(token)
    response = send_file(object_store.open_path(path))
    response.headers["Cache-Control"] = "private, no-store"
    return response
