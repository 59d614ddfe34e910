from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from fieldrent.dependencies import current_user_id, get_object_store, get_store
from fieldrent.errors import AppError
from fieldrent.extensions import limiter
from fieldrent.routes.api.v1.payloads import booking_payload
from fieldrent.services import BookingService, FileService, LifecycleService

api_booking_bp = Blueprint("api_booking", __name__)


def _booking_rate_limit():
    return current_app.config["RATELIMIT_BOOKING"]


@api_booking_bp.post("")
@login_required
@limiter.limit(_booking_rate_limit)
def create_booking():
    payload = request.get_json(silent=True) or {}
    booking = BookingService(get_store()).create_booking(
        user_id=current_user_id(),
        field_id=payload.get("field_id"),
        start_time=payload.get("start_time"),
        end_time=payload.get("end_time"),
    )
    return jsonify(booking_payload(booking)), 201


@api_booking_bp.get("/mine")
@login_required
def my_bookings():
    rows = LifecycleService(get_store()).list_for_renter(current_user_id())
    return jsonify([booking_payload(b, field=True) for b in rows])


@api_booking_bp.get("/<int:booking_id>")
@login_required
def booking_detail(booking_id):
    booking = LifecycleService(get_store()).get_booking(booking_id, current_user_id())
    payload = booking_payload(booking, field=True, renter=True, proof_url=True)
    return jsonify(payload)


@api_booking_bp.patch("/<int:booking_id>/status")
@login_required
def update_status(booking_id):
    payload = request.get_json(silent=True) or {}
    booking = LifecycleService(get_store()).set_status(
        booking_id,
        current_user_id(),
        payload.get("status"),
    )
    return jsonify(booking_payload(booking))


@api_booking_bp.post("/<int:booking_id>/proof")
@login_required
def attach_proof(booking_id):
    lifecycle = LifecycleService(get_store())
    object_store = get_object_store()
    files = FileService(object_store)
    upload = request.files.get("proof")

    lifecycle.check_can_attach_proof(booking_id, current_user_id())
    if upload is None:
        payload = request.get_json(silent=True) or {}
        file_ref = files.stored_payment_proof(payload.get("file_ref"), booking_id)
        booking = lifecycle.attach_payment_proof(booking_id, current_user_id(), file_ref)
        return jsonify(booking_payload(booking, proof_url=True))

    file_ref = files.save_payment_proof(upload, booking_id)
    try:
        booking = lifecycle.attach_payment_proof(booking_id, current_user_id(), file_ref)
    except AppError:
        object_store.delete(file_ref)
        raise
    return jsonify(booking_payload(booking, proof_url=True))
