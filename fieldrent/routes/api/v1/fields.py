from flask import Blueprint, jsonify, request
from flask_login import login_required

from fieldrent.dependencies import current_user_id, get_object_store, get_store
from fieldrent.errors import AppError, UnauthorizedError, ValidationError
from fieldrent.extensions import cache
from fieldrent.routes.api.v1.payloads import field_payload, image_payload, sign_field_images
from fieldrent.services import AvailabilityService, FieldService, FileService

api_field_bp = Blueprint("api_field", __name__)

ACTIVE_FIELDS_CACHE_KEY = "fields:active"


def _invalidate_catalog():
    cache.delete(ACTIVE_FIELDS_CACHE_KEY)


@api_field_bp.get("")
def list_fields():
    active_only = request.args.get("active", "true").strip().lower() not in {"false", "0", "no"}
    service = FieldService(get_store())

    if not active_only:
        if current_user_id() is None:
            raise UnauthorizedError()
        return jsonify([field_payload(f) for f in service.list_managed_fields(current_user_id())])

    # Image links carry a short-lived signature, so they are added after the cache.
    items = cache.get(ACTIVE_FIELDS_CACHE_KEY)
    if items is None:
        items = [field_payload(f, signed=False) for f in service.list_active_fields()]
        cache.set(ACTIVE_FIELDS_CACHE_KEY, items)
    return jsonify([sign_field_images(item) for item in items])


@api_field_bp.get("/<int:field_id>")
def field_detail(field_id):
    field = FieldService(get_store()).visible_field(current_user_id(), field_id)
    return jsonify(field_payload(field))


@api_field_bp.get("/<int:field_id>/availability")
def field_availability(field_id):
    store = get_store()
    FieldService(store).visible_field(current_user_id(), field_id)
    slots = AvailabilityService(store).busy_slots(field_id, request.args.get("date", ""))
    return jsonify(
        {
            "field_id": field_id,
            "date": request.args.get("date"),
            "busy": [{"start_time": start.isoformat(), "end_time": end.isoformat()} for start, end in slots],
        }
    )


@api_field_bp.post("")
@login_required
def create_field():
    payload = request.get_json(silent=True) or {}
    field = FieldService(get_store()).create_field(current_user_id(), payload)
    _invalidate_catalog()
    return jsonify(field_payload(field)), 201


@api_field_bp.patch("/<int:field_id>")
@login_required
def update_field(field_id):
    payload = request.get_json(silent=True) or {}
    field = FieldService(get_store()).update_field(current_user_id(), field_id, payload)
    _invalidate_catalog()
    return jsonify(field_payload(field))


@api_field_bp.delete("/<int:field_id>")
@login_required
def delete_field(field_id):
    image_paths = FieldService(get_store()).delete_field(current_user_id(), field_id)
    object_store = get_object_store()
    for path in image_paths:
        object_store.delete(path)
    _invalidate_catalog()
    return jsonify({"success": True})


@api_field_bp.post("/<int:field_id>/images")
@login_required
def upload_field_image(field_id):
    service = FieldService(get_store())
    service.managed_field(current_user_id(), field_id)

    upload = request.files.get("image")
    if upload is None:
        raise ValidationError("An image file is required.")
    object_store = get_object_store()
    file_path = FileService(object_store).save_field_image(upload, field_id)
    try:
        image = service.add_field_image(current_user_id(), field_id, file_path, request.form.get("caption"))
    except AppError:
        object_store.delete(file_path)
        raise
    _invalidate_catalog()
    return jsonify(image_payload(image)), 201
