"""Initial schema: users, fields, field images and bookings

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

NO_OVERLAP_CONSTRAINT = "bookings_no_overlap_per_field"

# BIGINT on PostgreSQL, INTEGER on SQLite so rowid autoincrement works.
PK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _is_postgres():
    bind = op.get_bind()
    return bind is not None and bind.dialect.name == "postgresql"


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", PK, primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("role IN ('user', 'owner', 'admin')", name="ck_users_role"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "fields",
        sa.Column("id", PK, primary_key=True, autoincrement=True),
        sa.Column("owner_id", PK, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(140), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("price_per_hour", sa.Numeric(12, 2), nullable=False),
        sa.Column("address", sa.String(255), nullable=False),
        sa.Column("lat", sa.Numeric(10, 7), nullable=True),
        sa.Column("lng", sa.Numeric(10, 7), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("booking_version", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("price_per_hour >= 0", name="ck_fields_price_non_negative"),
    )
    op.create_index("ix_fields_owner_id", "fields", ["owner_id"])
    op.create_index("ix_fields_is_active", "fields", ["is_active"])
    op.create_index("ix_fields_active_created", "fields", ["is_active", "created_at"])

    op.create_table(
        "field_images",
        sa.Column("id", PK, primary_key=True, autoincrement=True),
        sa.Column("field_id", PK, sa.ForeignKey("fields.id", ondelete="CASCADE"), nullable=False),
        sa.Column("file_path", sa.String(500), nullable=False),
        sa.Column("caption", sa.String(255), nullable=True),
    )
    op.create_index("ix_field_images_field_id", "field_images", ["field_id"])

    op.create_table(
        "bookings",
        sa.Column("id", PK, primary_key=True, autoincrement=True),
        sa.Column("field_id", PK, sa.ForeignKey("fields.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", PK, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("proof_of_payment_url", sa.String(500), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("end_time > start_time", name="ck_bookings_range_positive"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="ck_bookings_status",
        ),
        sa.CheckConstraint("total_price >= 0", name="ck_bookings_price_non_negative"),
    )
    op.create_index("ix_bookings_field_id", "bookings", ["field_id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_field_status", "bookings", ["field_id", "status"])
    op.create_index("ix_bookings_field_range", "bookings", ["field_id", "start_time", "end_time"])
    op.create_index("ix_bookings_user_created", "bookings", ["user_id", "created_at"])

    if _is_postgres():
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(
            f"""
            ALTER TABLE bookings
              ADD CONSTRAINT {NO_OVERLAP_CONSTRAINT}
              EXCLUDE USING gist (
                field_id WITH =,
                tstzrange(start_time, end_time, '[)') WITH &&
              )
              WHERE (status <> 'cancelled')
            """
        )


def downgrade():
    if _is_postgres():
        op.execute(f"ALTER TABLE bookings DROP CONSTRAINT IF EXISTS {NO_OVERLAP_CONSTRAINT}")

    op.drop_table("bookings")
    op.drop_table("field_images")
    op.drop_table("fields")
    op.drop_table("users")
