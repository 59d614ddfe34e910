from flask import current_app

from fieldrent.dependencies import get_object_store


def _iso(value):
    return value.isoformat() if value is not None else None


def _decimal(value):
    return str(value) if value is not None else None


def field_payload(field, signed=True):
    payload = {
        "id": field.id,
        "owner_id": field.owner_id,
        "name": field.name,
        "description": field.description,
        "price_per_hour": _decimal(field.price_per_hour),
        "address": field.address,
        "lat": float(field.lat) if field.lat is not None else None,
        "lng": float(field.lng) if field.lng is not None else None,
        "is_active": field.is_active,
        "created_at": _iso(field.created_at),
    }
    payload["field_images"] = [image_payload(image, signed=signed) for image in field.images]
    return payload


def _signed(path):
    return get_object_store().signed_url(path, current_app.config["SIGNED_URL_TTL"])


def image_payload(image, signed=True):
    payload = {
        "id": image.id,
        "file_path": image.file_path,
        "caption": image.caption,
    }
    if signed:
        payload["url"] = _signed(image.file_path)
    return payload


def sign_field_images(item):
    signed = dict(item)
    signed["field_images"] = [
        dict(image, url=_signed(image["file_path"])) for image in item.get("field_images", [])
    ]
    return signed


def booking_payload(booking, field=False, renter=False, proof_url=False):
    payload = {
        "id": booking.id,
        "field_id": booking.field_id,
        "user_id": booking.user_id,
        "start_time": _iso(booking.start_time),
        "end_time": _iso(booking.end_time),
        "status": booking.status,
        "total_price": _decimal(booking.total_price),
        "proof_of_payment_url": booking.proof_of_payment_url,
        "created_at": _iso(booking.created_at),
    }
    if field:
        payload["field"] = {
            "id": booking.field.id,
            "name": booking.field.name,
            "address": booking.field.address,
        }
    if renter:
        payload["user"] = {"name": booking.renter.name, "email": booking.renter.email}
    if proof_url:
        payload["proof_signed_url"] = None
        if booking.proof_of_payment_url:
            payload["proof_signed_url"] = _signed(booking.proof_of_payment_url)
    return payload


def user_payload(user):
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "avatar_url": user.avatar_url,
    }
