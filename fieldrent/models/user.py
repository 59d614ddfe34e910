from flask_login import UserMixin

from fieldrent.extensions import db
from fieldrent.models.base import PKType, TimestampMixin

ROLES = ("user", "owner", "admin")


class User(UserMixin, TimestampMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    name = db.Column(db.String(120), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(16), nullable=False, default="user", index=True)
    avatar_url = db.Column(db.String(500), nullable=True)

    fields = db.relationship("Field", back_populates="owner", lazy="dynamic")
    bookings = db.relationship("Booking", back_populates="renter", lazy="dynamic")

    __table_args__ = (
        db.CheckConstraint("role IN ('user', 'owner', 'admin')", name="ck_users_role"),
    )
