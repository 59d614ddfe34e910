from sqlalchemy import DDL, event

from fieldrent.extensions import db
from fieldrent.models.base import PKType, TimestampMixin, UTCDateTime

BOOKING_STATUSES = ("pending", "confirmed", "cancelled", "completed")
NO_OVERLAP_CONSTRAINT = "bookings_no_overlap_per_field"


class Booking(TimestampMixin, db.Model):
    __tablename__ = "bookings"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    field_id = db.Column(PKType, db.ForeignKey("fields.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    start_time = db.Column(UTCDateTime(), nullable=False)
    end_time = db.Column(UTCDateTime(), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)
    proof_of_payment_url = db.Column(db.String(500), nullable=True)

    field = db.relationship("Field", back_populates="bookings")
    renter = db.relationship("User", back_populates="bookings")

    __table_args__ = (
        db.Index("ix_bookings_field_status", "field_id", "status"),
        db.Index("ix_bookings_field_range", "field_id", "start_time", "end_time"),
        db.Index("ix_bookings_user_created", "user_id", "created_at"),
        db.CheckConstraint("end_time > start_time", name="ck_bookings_range_positive"),
        db.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="ck_bookings_status",
        ),
        db.CheckConstraint("total_price >= 0", name="ck_bookings_price_non_negative"),
    )


# PostgreSQL only: live bookings on one field never overlap, whoever writes them.
event.listen(
    Booking.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        f"ALTER TABLE bookings ADD CONSTRAINT {NO_OVERLAP_CONSTRAINT} "
        "EXCLUDE USING gist ("
        "field_id WITH =, "
        "tstzrange(start_time, end_time, '[)') WITH &&"
        ") WHERE (status <> 'cancelled')"
    ).execute_if(dialect="postgresql"),
)
