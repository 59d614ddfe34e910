from fieldrent.extensions import db
from fieldrent.models.base import PKType, TimestampMixin


class Field(TimestampMixin, db.Model):
    __tablename__ = "fields"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    owner_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(140), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    price_per_hour = db.Column(db.Numeric(12, 2), nullable=False)
    address = db.Column(db.String(255), nullable=False, default="")
    lat = db.Column(db.Numeric(10, 7), nullable=True)
    lng = db.Column(db.Numeric(10, 7), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    # Bumped by every booking admission; the UPDATE is what serializes admissions per field.
    booking_version = db.Column(db.Integer, nullable=False, default=0)

    owner = db.relationship("User", back_populates="fields")
    images = db.relationship(
        "FieldImage",
        back_populates="field",
        cascade="all, delete-orphan",
        order_by="FieldImage.id",
    )
    bookings = db.relationship("Booking", back_populates="field", lazy="dynamic", passive_deletes=True)

    __table_args__ = (
        db.Index("ix_fields_active_created", "is_active", "created_at"),
        db.CheckConstraint("price_per_hour >= 0", name="ck_fields_price_non_negative"),
    )
