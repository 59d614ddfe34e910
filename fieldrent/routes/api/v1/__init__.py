from flask import Blueprint

from fieldrent.routes.api.v1.auth import api_auth_bp
from fieldrent.routes.api.v1.bookings import api_booking_bp
from fieldrent.routes.api.v1.fields import api_field_bp
from fieldrent.routes.api.v1.media import api_media_bp
from fieldrent.routes.api.v1.owner import api_owner_bp

api_v1_bp = Blueprint("api_v1", __name__)
api_v1_bp.register_blueprint(api_auth_bp, url_prefix="/auth")
api_v1_bp.register_blueprint(api_field_bp, url_prefix="/fields")
api_v1_bp.register_blueprint(api_booking_bp, url_prefix="/bookings")
api_v1_bp.register_blueprint(api_owner_bp, url_prefix="/owner")
api_v1_bp.register_blueprint(api_media_bp, url_prefix="/media")
