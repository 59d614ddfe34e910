import io
from decimal import Decimal

import pytest
from flask import g
from PIL import Image

from fieldrent import create_app
from fieldrent.extensions import bcrypt, db
from fieldrent.models import Booking, Field, User
from fieldrent.store import Store

PASSWORD = "correct-horse-battery"


@pytest.fixture
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("FLASK_ENV", "testing")
    app = create_app({"UPLOAD_DIR": str(tmp_path / "uploads")})

    # Test requests reuse the fixture's app context, so ``g`` outlives a request.
    @app.before_request
    def _forget_cached_login():
        g.pop("_login_user", None)

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return Store(db.session, retry_backoff=0)


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make_user(role="user", email=None, name=None):
        counter["n"] += 1
        user = User(
            email=email or f"{role}{counter['n']}@example.com",
            name=name or f"{role.title()} {counter['n']}",
            role=role,
            password_hash=bcrypt.generate_password_hash(PASSWORD).decode("utf-8"),
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def make_field(app):
    def _make_field(owner, price_per_hour=100000, is_active=True, name="Lapangan Futsal A"):
        field = Field(
            owner_id=owner.id,
            name=name,
            description="Indoor futsal court",
            price_per_hour=Decimal(str(price_per_hour)),
            address="Jl. Merdeka 1",
            is_active=is_active,
        )
        db.session.add(field)
        db.session.commit()
        return field

    return _make_field


@pytest.fixture
def make_booking(app):
    def _make_booking(field, user, start, end, status="pending", total_price=0):
        booking = Booking(
            field_id=field.id,
            user_id=user.id,
            start_time=start,
            end_time=end,
            status=status,
            total_price=Decimal(str(total_price)),
        )
        db.session.add(booking)
        db.session.commit()
        return booking

    return _make_booking


@pytest.fixture
def login(client):
    def _login(user):
        response = client.post("/api/v1/auth/login", json={"email": user.email, "password": PASSWORD})
        assert response.status_code == 200
        return response

    return _login


@pytest.fixture
def png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color=(0, 128, 0)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def client_for(app):
    """A fresh test client logged in as ``user``, for tests with several actors."""

    def _client_for(user):
        client = app.test_client()
        response = client.post("/api/v1/auth/login", json={"email": user.email, "password": PASSWORD})
        assert response.status_code == 200
        return client

    return _client_for
