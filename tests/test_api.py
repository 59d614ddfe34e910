import io
from datetime import datetime, timezone

import pytest

from fieldrent.dependencies import OBJECT_STORE_KEY
from fieldrent.extensions import db
from fieldrent.models import Booking, Field


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def owner(make_user):
    return make_user("owner")


@pytest.fixture
def renter(make_user):
    return make_user()


@pytest.fixture
def field(owner, make_field):
    return make_field(owner, price_per_hour=100000)


def booking_body(field, start="2024-01-01T09:00:00Z", end="2024-01-01T11:00:00Z"):
    return {"field_id": field.id, "start_time": start, "end_time": end}


# Auth


def test_register_login_me_logout(client):
    response = client.post(
        "/api/v1/auth/register",
        json={"email": "Rina@Example.com", "password": "supersecret", "name": "Rina"},
    )
    assert response.status_code == 201
    assert response.get_json()["email"] == "rina@example.com"
    assert response.get_json()["role"] == "user"

    assert client.get("/api/v1/auth/me").get_json()["name"] == "Rina"
    assert client.post("/api/v1/auth/logout").status_code == 200
    assert client.get("/api/v1/auth/me").status_code == 401

    response = client.post("/api/v1/auth/login", json={"email": "rina@example.com", "password": "supersecret"})
    assert response.status_code == 200


def test_register_rejects_duplicates_and_weak_input(client, renter):
    response = client.post(
        "/api/v1/auth/register",
        json={"email": renter.email, "password": "supersecret", "name": "Again"},
    )
    assert response.status_code == 409

    response = client.post("/api/v1/auth/register", json={"email": "x@example.com", "password": "short", "name": "X"})
    assert response.status_code == 400

    response = client.post("/api/v1/auth/register", json={"email": "not-an-email", "password": "supersecret", "name": "X"})
    assert response.status_code == 400


def test_login_with_wrong_password(client, renter):
    response = client.post("/api/v1/auth/login", json={"email": renter.email, "password": "wrong-password"})
    assert response.status_code == 401
    assert response.get_json() == {"error": "Invalid credentials."}


# Bookings


def test_create_booking(client_for, renter, field):
    response = client_for(renter).post("/api/v1/bookings", json=booking_body(field))

    assert response.status_code == 201
    body = response.get_json()
    assert body["status"] == "pending"
    assert body["total_price"] == "200000.00"
    assert body["start_time"] == "2024-01-01T09:00:00+00:00"
    assert body["proof_of_payment_url"] is None


def test_client_supplied_price_is_ignored(client_for, renter, field):
    payload = dict(booking_body(field), total_price=1, status="confirmed")
    body = client_for(renter).post("/api/v1/bookings", json=payload).get_json()

    assert body["total_price"] == "200000.00"
    assert body["status"] == "pending"


def test_overlapping_booking_is_conflict(client_for, renter, make_user, field):
    client_for(renter).post("/api/v1/bookings", json=booking_body(field))

    response = client_for(make_user()).post(
        "/api/v1/bookings",
        json=booking_body(field, "2024-01-01T10:00:00Z", "2024-01-01T12:00:00Z"),
    )

    assert response.status_code == 409
    assert response.get_json() == {"error": "Time slot already booked."}


def test_booking_requires_login(client, field):
    response = client.post("/api/v1/bookings", json=booking_body(field))
    assert response.status_code == 401
    assert "error" in response.get_json()


@pytest.mark.parametrize(
    "overrides",
    [
        {"end_time": "2024-01-01T08:00:00Z"},
        {"start_time": "yesterday"},
        {"field_id": 999999},
        {"field_id": None},
    ],
)
def test_invalid_booking_request(client_for, renter, field, overrides):
    response = client_for(renter).post("/api/v1/bookings", json=dict(booking_body(field), **overrides))
    assert response.status_code == 400


def test_my_bookings_lists_only_mine(client_for, renter, make_user, field):
    mine = client_for(renter)
    mine.post("/api/v1/bookings", json=booking_body(field))
    client_for(make_user()).post(
        "/api/v1/bookings",
        json=booking_body(field, "2024-01-02T09:00:00Z", "2024-01-02T10:00:00Z"),
    )

    rows = mine.get("/api/v1/bookings/mine").get_json()

    assert len(rows) == 1
    assert rows[0]["field"]["name"] == field.name


def test_booking_detail_is_private(client_for, renter, owner, make_user, field, make_booking):
    booking = make_booking(field, renter, utc(2024, 1, 1, 9), utc(2024, 1, 1, 10))

    assert client_for(renter).get(f"/api/v1/bookings/{booking.id}").status_code == 200
    detail = client_for(owner).get(f"/api/v1/bookings/{booking.id}").get_json()
    assert detail["user"]["email"] == renter.email
    assert client_for(make_user()).get(f"/api/v1/bookings/{booking.id}").status_code == 403
    assert client_for(renter).get("/api/v1/bookings/999999").status_code == 404


def test_status_update_flow(client_for, renter, owner, field, make_booking):
    booking = make_booking(field, renter, utc(2024, 1, 1, 9), utc(2024, 1, 1, 10))
    url = f"/api/v1/bookings/{booking.id}/status"

    assert client_for(renter).patch(url, json={"status": "confirmed"}).status_code == 403

    owner_client = client_for(owner)
    response = owner_client.patch(url, json={"status": "confirmed"})
    assert response.status_code == 200
    assert response.get_json()["status"] == "confirmed"

    response = owner_client.patch(url, json={"status": "cancelled"})
    assert response.status_code == 409
    assert response.get_json() == {"error": "Invalid status transition from confirmed to cancelled."}

    assert owner_client.patch(url, json={"status": "completed"}).status_code == 400


def test_payment_proof_upload_and_signed_download(client_for, renter, owner, field, make_booking, png_bytes):
    booking = make_booking(field, renter, utc(2024, 1, 1, 9), utc(2024, 1, 1, 10))
    client = client_for(renter)

    response = client.post(
        f"/api/v1/bookings/{booking.id}/proof",
        data={"proof": (io.BytesIO(png_bytes), "transfer.png")},
        content_type="multipart/form-data",
    )

    assert response.status_code == 200
    body = response.get_json()
    assert body["proof_of_payment_url"].startswith(f"payment-proofs/{booking.id}/")
    assert body["proof_of_payment_url"].endswith(".png")

    media = client_for(owner).get(body["proof_signed_url"])
    assert media.status_code == 200
    assert media.data == png_bytes
    assert media.headers["Cache-Control"] == "private, no-store"


def test_payment_proof_rejects_non_images(client_for, renter, field, make_booking):
    booking = make_booking(field, renter, utc(2024, 1, 1, 9), utc(2024, 1, 1, 10))

    response = client_for(renter).post(
        f"/api/v1/bookings/{booking.id}/proof",
        data={"proof": (io.BytesIO(b"not really a png"), "transfer.png")},
        content_type="multipart/form-data",
    )

    assert response.status_code == 400


def test_payment_proof_by_reference(app, client_for, renter, field, make_booking):
    booking = make_booking(field, renter, utc(2024, 1, 1, 9), utc(2024, 1, 1, 10))
    url = f"/api/v1/bookings/{booking.id}/proof"
    client = client_for(renter)
    file_ref = f"payment-proofs/{booking.id}/uploaded.png"

    assert client.post(url, json={"file_ref": file_ref}).status_code == 400

    app.extensions[OBJECT_STORE_KEY].put(file_ref, b"png")
    response = client.post(url, json={"file_ref": file_ref})
    assert response.status_code == 200
    assert response.get_json()["proof_of_payment_url"] == file_ref


def test_payment_proof_reference_must_belong_to_the_booking(
    app, client_for, renter, make_user, field, make_booking
):
    booking = make_booking(field, renter, utc(2024, 1, 1, 9), utc(2024, 1, 1, 10))
    other = make_booking(field, make_user(), utc(2024, 1, 1, 11), utc(2024, 1, 1, 12))
    object_store = app.extensions[OBJECT_STORE_KEY]
    object_store.put(f"payment-proofs/{other.id}/theirs.png", b"png")
    object_store.put(f"field-images/{field.id}/court.png", b"png")
    client = client_for(renter)
    url = f"/api/v1/bookings/{booking.id}/proof"

    for file_ref in (
        f"payment-proofs/{other.id}/theirs.png",
        f"field-images/{field.id}/court.png",
        f"payment-proofs/{booking.id}/../{other.id}/theirs.png",
        "",
        42,
    ):
        response = client.post(url, json={"file_ref": file_ref})
        assert response.status_code == 400, file_ref

    db.session.expire_all()
    assert db.session.get(Booking, booking.id).proof_of_payment_url is None


def test_payment_proof_from_non_renter_is_forbidden(client_for, owner, renter, field, make_booking, png_bytes):
    booking = make_booking(field, renter, utc(2024, 1, 1, 9), utc(2024, 1, 1, 10))

    response = client_for(owner).post(
        f"/api/v1/bookings/{booking.id}/proof",
        data={"proof": (io.BytesIO(png_bytes), "transfer.png")},
        content_type="multipart/form-data",
    )

    assert response.status_code == 403


def test_bad_media_token(client):
    assert client.get("/api/v1/media/not-a-token").status_code == 404


# Fields


def test_public_field_catalog(client, owner, make_field):
    visible = make_field(owner, name="Visible")
    make_field(owner, name="Hidden", is_active=False)

    response = client.get("/api/v1/fields")

    assert response.status_code == 200
    assert [item["id"] for item in response.get_json()] == [visible.id]
    assert client.get(f"/api/v1/fields/{visible.id}").get_json()["price_per_hour"] == "100000.00"
    assert client.get("/api/v1/fields/999999").status_code == 404


def test_managed_catalog_requires_owner(client, client_for, owner, renter, make_field):
    make_field(owner, name="Hidden", is_active=False)

    assert client.get("/api/v1/fields?active=false").status_code == 401
    assert client_for(renter).get("/api/v1/fields?active=false").status_code == 403
    names = [item["name"] for item in client_for(owner).get("/api/v1/fields?active=false").get_json()]
    assert names == ["Hidden"]


def test_owner_manages_field(client_for, owner):
    client = client_for(owner)
    response = client.post(
        "/api/v1/fields",
        json={
            "name": "Lapangan Mini Soccer",
            "description": "Synthetic grass",
            "address": "Jl. Sudirman 5",
            "price_per_hour": "150000",
            "lat": "-6.2",
            "lng": "106.8",
        },
    )
    assert response.status_code == 201
    created = response.get_json()
    assert created["owner_id"] == owner.id
    assert created["lat"] == pytest.approx(-6.2)

    response = client.patch(f"/api/v1/fields/{created['id']}", json={"price_per_hour": 175000, "is_active": False})
    assert response.status_code == 200
    assert response.get_json()["price_per_hour"] == "175000.00"
    assert response.get_json()["is_active"] is False


def test_field_create_validation_and_roles(client_for, owner, renter):
    assert client_for(renter).post("/api/v1/fields", json={"name": "X"}).status_code == 403

    response = client_for(owner).post(
        "/api/v1/fields",
        json={"name": "X", "description": "Y", "address": "Z", "price_per_hour": "-5"},
    )
    assert response.status_code == 400


def test_field_update_rejects_unknown_attributes(client_for, owner, field):
    response = client_for(owner).patch(f"/api/v1/fields/{field.id}", json={"owner_id": 1, "name": "New"})

    assert response.status_code == 400
    assert "owner_id" in response.get_json()["error"]


def test_field_update_by_other_owner_is_forbidden(client_for, make_user, field):
    response = client_for(make_user("owner")).patch(f"/api/v1/fields/{field.id}", json={"name": "Mine now"})
    assert response.status_code == 403


def test_field_delete_blocked_by_live_bookings(app, client_for, owner, renter, field, make_booking):
    booking = make_booking(field, renter, utc(2024, 1, 1, 9), utc(2024, 1, 1, 10))
    field_id = field.id
    client = client_for(owner)

    assert client.delete(f"/api/v1/fields/{field_id}").status_code == 409

    booking.status = "cancelled"
    make_booking(field, renter, utc(2024, 1, 2, 9), utc(2024, 1, 2, 10), status="completed")

    assert client.delete(f"/api/v1/fields/{field_id}").status_code == 200
    assert db.session.get(Field, field_id) is None
    assert db.session.query(Booking).filter(Booking.field_id == field_id).count() == 0


def test_field_image_upload(client_for, client, owner, renter, field, png_bytes):
    response = client_for(owner).post(
        f"/api/v1/fields/{field.id}/images",
        data={"image": (io.BytesIO(png_bytes), "court.png"), "caption": "Main court"},
        content_type="multipart/form-data",
    )
    assert response.status_code == 201
    image = response.get_json()
    assert image["caption"] == "Main court"
    assert image["file_path"].startswith(f"field-images/{field.id}/")

    listed = client.get("/api/v1/fields").get_json()
    assert listed[0]["field_images"][0]["id"] == image["id"]
    assert client.get(listed[0]["field_images"][0]["url"]).data == png_bytes

    response = client_for(renter).post(
        f"/api/v1/fields/{field.id}/images",
        data={"image": (io.BytesIO(png_bytes), "court.png")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 403


def test_field_availability(client, renter, field, make_booking):
    make_booking(field, renter, utc(2024, 1, 1, 9), utc(2024, 1, 1, 10))
    make_booking(field, renter, utc(2024, 1, 1, 12), utc(2024, 1, 1, 13), status="cancelled")

    body = client.get(f"/api/v1/fields/{field.id}/availability?date=2024-01-01").get_json()

    assert body["busy"] == [{"start_time": "2024-01-01T09:00:00+00:00", "end_time": "2024-01-01T10:00:00+00:00"}]
    assert client.get(f"/api/v1/fields/{field.id}/availability?date=soon").status_code == 400
    assert client.get("/api/v1/fields/999999/availability?date=2024-01-01").status_code == 404


def test_inactive_field_is_hidden_from_everyone_but_its_managers(
    client, client_for, owner, renter, make_user, make_field
):
    hidden = make_field(owner, name="Hidden", is_active=False)
    detail = f"/api/v1/fields/{hidden.id}"
    availability = f"/api/v1/fields/{hidden.id}/availability?date=2024-01-01"

    for viewer in (client, client_for(renter), client_for(make_user("owner"))):
        assert viewer.get(detail).status_code == 404
        assert viewer.get(availability).status_code == 404

    for manager in (client_for(owner), client_for(make_user("admin"))):
        assert manager.get(detail).get_json()["name"] == "Hidden"
        assert manager.get(availability).status_code == 200


# Owner dashboard


def test_owner_dashboard(client_for, owner, renter, make_user, field, make_booking):
    make_booking(field, renter, utc(2024, 1, 1, 9), utc(2024, 1, 1, 10))

    body = client_for(owner).get("/api/v1/owner/dashboard").get_json()

    assert body["role"] == "owner"
    assert [item["id"] for item in body["fields"]] == [field.id]
    assert body["bookings"][0]["user"]["name"] == renter.name
    assert client_for(renter).get("/api/v1/owner/dashboard").status_code == 403

    admin_body = client_for(make_user("admin")).get("/api/v1/owner/dashboard").get_json()
    assert admin_body["role"] == "admin"
    assert len(admin_body["bookings"]) == 1
