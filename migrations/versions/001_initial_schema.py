"""Initial schema with PostGIS extension and all core tables.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

ENUMS = {
    "user_role": ("user", "driver", "admin"),
    "account_status": ("active", "suspended", "banned"),
    "address_type": ("home", "work", "other"),
    "payment_method_type": ("card", "cash", "paypal", "apple_pay", "google_pay"),
    "booking_payment_method": ("card", "cash", "paypal", "apple_pay", "google_pay"),
    "vehicle_type": ("standard", "premium", "suv", "luxury"),
    "booking_status": (
        "pending",
        "confirmed",
        "driver_assigned",
        "driver_en_route",
        "arrived",
        "in_progress",
        "completed",
        "cancelled",
        "no_show",
    ),
    "payment_status": ("pending", "completed", "failed", "refunded"),
    "cancelled_by": ("user", "driver", "system"),
    "notification_type": (
        "booking_confirmed",
        "payment_required",
        "driver_assigned",
        "ride_completed",
        "booking_cancelled",
        "promotion",
        "system",
    ),
    "transaction_type": ("payment", "refund"),
    "transaction_status": ("pending", "completed", "failed"),
}


def _enum(name: str) -> sa.Enum:
    return sa.Enum(*ENUMS[name], name=name)


def _timestamps(*, updated: bool = False) -> list[sa.Column]:
    cols = [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        )
    ]
    if updated:
        cols.append(
            sa.Column(
                "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()
            )
        )
    return cols


def _geography_index(name: str, table: str, lat: str, lng: str) -> None:
    # must match the expression built by the repositories for the planner to use it
    op.execute(
        f"CREATE INDEX {name} ON {table} USING gist "
        f"((CAST(ST_SetSRID(ST_MakePoint({lng}, {lat}), 4326) AS geography(GEOMETRY,4326))))"
    )


def upgrade() -> None:
    # Enable PostGIS extension
    op.execute("CREATE EXTENSION IF NOT EXISTS postgis")

    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("phone", sa.String(20), unique=True, nullable=False),
        sa.Column("password_hash", sa.String(128), nullable=False),
        sa.Column("avatar", sa.String(500), nullable=True),
        sa.Column("role", _enum("user_role"), nullable=False, server_default="user"),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("verification_token_hash", sa.String(64), nullable=True),
        sa.Column("verification_expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reset_token_hash", sa.String(64), nullable=True),
        sa.Column("reset_expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notify_email", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("notify_sms", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("notify_push", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("language", sa.String(5), nullable=False, server_default="en"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("theme", sa.String(10), nullable=False, server_default="light"),
        sa.Column("total_rides", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_spent", sa.Float, nullable=False, server_default="0"),
        sa.Column("average_rating", sa.Float, nullable=False, server_default="0"),
        sa.Column("member_since", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("emergency_contact", sa.JSON, nullable=True),
        sa.Column("documents", sa.JSON, nullable=True),
        sa.Column("vehicle", sa.JSON, nullable=True),
        sa.Column("current_lat", sa.Float, nullable=True),
        sa.Column("current_lng", sa.Float, nullable=True),
        sa.Column("location_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", _enum("account_status"), nullable=False, server_default="active"),
        sa.Column("banned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("login_attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("lock_until", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=True),
    )
    op.create_index("idx_users_role_status", "users", ["role", "status"])
    _geography_index("idx_users_location", "users", "current_lat", "current_lng")

    # ── addresses ─────────────────────────────────────────────────────
    op.create_table(
        "addresses",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", _enum("address_type"), nullable=False, server_default="other"),
        sa.Column("label", sa.String(50), nullable=False),
        sa.Column("address", sa.String(200), nullable=False),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("state", sa.String(100), nullable=True),
        sa.Column("zip_code", sa.String(20), nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("lat", sa.Float, nullable=True),
        sa.Column("lng", sa.Float, nullable=True),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("idx_addresses_user", "addresses", ["user_id"])

    # ── payment_methods ───────────────────────────────────────────────
    op.create_table(
        "payment_methods",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", _enum("payment_method_type"), nullable=False),
        sa.Column("last4", sa.String(4), nullable=True),
        sa.Column("brand", sa.String(30), nullable=True),
        sa.Column("expiry_month", sa.Integer, nullable=True),
        sa.Column("expiry_year", sa.Integer, nullable=True),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("gateway_token", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_payment_methods_user", "payment_methods", ["user_id"])

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("rider_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("pickup_address", sa.String(200), nullable=False),
        sa.Column("pickup_city", sa.String(100), nullable=True),
        sa.Column("pickup_lat", sa.Float, nullable=False),
        sa.Column("pickup_lng", sa.Float, nullable=False),
        sa.Column("pickup_instructions", sa.String(500), nullable=True),
        sa.Column("destination_address", sa.String(200), nullable=False),
        sa.Column("destination_city", sa.String(100), nullable=True),
        sa.Column("destination_lat", sa.Float, nullable=False),
        sa.Column("destination_lng", sa.Float, nullable=False),
        sa.Column("destination_instructions", sa.String(500), nullable=True),
        sa.Column("scheduled_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("vehicle_type", _enum("vehicle_type"), nullable=False, server_default="standard"),
        sa.Column("passengers", sa.Integer, nullable=False, server_default="1"),
        sa.Column("special_requests", sa.Text, nullable=True),
        sa.Column("status", _enum("booking_status"), nullable=False, server_default="pending"),
        sa.Column("base_fare", sa.Float, nullable=False),
        sa.Column("distance_km", sa.Float, nullable=False),
        sa.Column("estimated_duration", sa.Float, nullable=True),
        sa.Column("vehicle_multiplier", sa.Float, nullable=False, server_default="1"),
        sa.Column("surge_multiplier", sa.Float, nullable=False, server_default="1"),
        sa.Column("subtotal", sa.Float, nullable=False),
        sa.Column("taxes", sa.Float, nullable=False),
        sa.Column("total", sa.Float, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("payment_method", _enum("booking_payment_method"), nullable=False),
        sa.Column("payment_status", _enum("payment_status"), nullable=False, server_default="pending"),
        sa.Column("transaction_id", sa.String(100), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_distance", sa.Float, nullable=True),
        sa.Column("actual_duration", sa.Float, nullable=True),
        sa.Column("route", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("rider_rating", sa.Integer, nullable=True),
        sa.Column("rider_comment", sa.String(500), nullable=True),
        sa.Column("rider_rated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("driver_rating", sa.Integer, nullable=True),
        sa.Column("driver_comment", sa.String(500), nullable=True),
        sa.Column("driver_rated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_reason", sa.String(200), nullable=True),
        sa.Column("cancelled_by", _enum("cancelled_by"), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_amount", sa.Float, nullable=True),
        sa.Column("client_metadata", sa.JSON, nullable=True),
        sa.CheckConstraint("passengers BETWEEN 1 AND 6", name="ck_bookings_passengers"),
        sa.CheckConstraint("rider_rating BETWEEN 1 AND 5", name="ck_bookings_rider_rating"),
        sa.CheckConstraint("driver_rating BETWEEN 1 AND 5", name="ck_bookings_driver_rating"),
        *_timestamps(updated=True),
    )
    op.create_index("idx_bookings_rider", "bookings", ["rider_id", "created_at"])
    op.create_index("idx_bookings_driver", "bookings", ["driver_id", "created_at"])
    op.create_index("idx_bookings_status", "bookings", ["status"])
    op.create_index("idx_bookings_scheduled", "bookings", ["scheduled_time"])
    _geography_index("idx_bookings_pickup", "bookings", "pickup_lat", "pickup_lng")

    # ── notifications ─────────────────────────────────────────────────
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", _enum("notification_type"), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("message", sa.String(500), nullable=False),
        sa.Column("data", sa.JSON, nullable=True),
        sa.Column("is_read", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("idx_notifications_user", "notifications", ["user_id", "is_read"])

    # ── transactions ──────────────────────────────────────────────────
    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("booking_id", sa.Integer, sa.ForeignKey("bookings.id"), nullable=True),
        sa.Column("type", _enum("transaction_type"), nullable=False),
        sa.Column("amount", sa.Float, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("status", _enum("transaction_status"), nullable=False),
        sa.Column("description", sa.String(200), nullable=True),
        sa.Column("gateway_reference", sa.String(100), nullable=True),
        sa.Column("payment_method_label", sa.String(100), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_transactions_user", "transactions", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_table("transactions")
    op.drop_table("notifications")
    op.drop_table("bookings")
    op.drop_table("payment_methods")
    op.drop_table("addresses")
    op.drop_table("users")
    for name in ENUMS:
        op.execute(f"DROP TYPE IF EXISTS {name}")
