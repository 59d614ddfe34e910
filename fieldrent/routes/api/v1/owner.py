from flask import Blueprint, jsonify
from flask_login import login_required

from fieldrent.dependencies import current_user_id, get_store
from fieldrent.routes.api.v1.payloads import booking_payload, field_payload
from fieldrent.services import LifecycleService

api_owner_bp = Blueprint("api_owner", __name__)


@api_owner_bp.get("/dashboard")
@login_required
def owner_dashboard():
    caller, fields, bookings = LifecycleService(get_store()).owner_dashboard(current_user_id())
    return jsonify(
        {
            "role": caller.role,
            "fields": [field_payload(f) for f in fields],
            "bookings": [booking_payload(b, field=True, renter=True) for b in bookings],
        }
    )
