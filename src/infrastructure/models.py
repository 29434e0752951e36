"""
SQLAlchemy ORM models  (maps to PostgreSQL + PostGIS).

Tables
------
* ``users``            -- riders, drivers and admins
* ``addresses``        -- a user's saved places
* ``payment_methods``  -- a user's saved payment instruments
* ``bookings``         -- ride requests and their lifecycle
* ``notifications``    -- in-app notifications
* ``transactions``     -- payment / refund ledger

Coordinates are stored as plain floats.  Proximity queries build PostGIS
geography values from them on the fly, backed by GIST expression indexes
created in the migration, so the same models also run on SQLite in tests.

Indexes
-------
* **B-Tree** on ``status``, ``rider_id``, ``driver_id``, ``scheduled_time``
  and the user foreign keys used by the API.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)

from .database import Base
from src.domain.entities import BookingLifecycle, utcnow
from src.domain.enums import (
    AccountStatus,
    AddressType,
    BookingStatus,
    CancelledBy,
    NotificationType,
    PaymentMethod,
    PaymentStatus,
    TransactionStatus,
    TransactionType,
    UserRole,
    VehicleType,
)


def _enum(enum_cls, name: str) -> Enum:
    # persist the lower-case values, not the member names
    return Enum(enum_cls, name=name, values_callable=lambda e: [m.value for m in e])


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(20), unique=True, nullable=False)
    password_hash = Column(String(128), nullable=False)
    avatar = Column(String(500), nullable=True)
    role = Column(_enum(UserRole, "user_role"), default=UserRole.USER, nullable=False)

    is_verified = Column(Boolean, default=False, nullable=False)
    verification_token_hash = Column(String(64), nullable=True)
    verification_expires = Column(DateTime(timezone=True), nullable=True)
    reset_token_hash = Column(String(64), nullable=True)
    reset_expires = Column(DateTime(timezone=True), nullable=True)

    # Preferences
    notify_email = Column(Boolean, default=True, nullable=False)
    notify_sms = Column(Boolean, default=True, nullable=False)
    notify_push = Column(Boolean, default=True, nullable=False)
    language = Column(String(5), default="en", nullable=False)
    currency = Column(String(3), default="USD", nullable=False)
    theme = Column(String(10), default="light", nullable=False)

    # Stats
    total_rides = Column(Integer, default=0, nullable=False)
    total_spent = Column(Float, default=0.0, nullable=False)
    average_rating = Column(Float, default=0.0, nullable=False)
    member_since = Column(DateTime(timezone=True), default=utcnow)

    emergency_contact = Column(JSON, nullable=True)
    documents = Column(JSON, nullable=True)

    # Driver-only
    vehicle = Column(JSON, nullable=True)
    current_lat = Column(Float, nullable=True)
    current_lng = Column(Float, nullable=True)
    location_updated_at = Column(DateTime(timezone=True), nullable=True)

    status = Column(
        _enum(AccountStatus, "account_status"), default=AccountStatus.ACTIVE, nullable=False
    )
    banned_at = Column(DateTime(timezone=True), nullable=True)
    last_login = Column(DateTime(timezone=True), nullable=True)
    login_attempts = Column(Integer, default=0, nullable=False)
    lock_until = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_users_role_status", "role", "status"),
    )


class AddressModel(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    type = Column(_enum(AddressType, "address_type"), default=AddressType.OTHER, nullable=False)
    label = Column(String(50), nullable=False)
    address = Column(String(200), nullable=False)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    zip_code = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("idx_addresses_user", "user_id"),)


class PaymentMethodModel(Base):
    __tablename__ = "payment_methods"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    type = Column(_enum(PaymentMethod, "payment_method_type"), nullable=False)
    last4 = Column(String(4), nullable=True)
    brand = Column(String(30), nullable=True)
    expiry_month = Column(Integer, nullable=True)
    expiry_year = Column(Integer, nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    gateway_token = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("idx_payment_methods_user", "user_id"),)

    @property
    def label(self) -> str:
        if self.brand and self.last4:
            return f"{self.brand.title()} ending in {self.last4}"
        return PaymentMethod(self.type).value


class BookingModel(BookingLifecycle, Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rider_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    pickup_address = Column(String(200), nullable=False)
    pickup_city = Column(String(100), nullable=True)
    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    pickup_instructions = Column(String(500), nullable=True)

    destination_address = Column(String(200), nullable=False)
    destination_city = Column(String(100), nullable=True)
    destination_lat = Column(Float, nullable=False)
    destination_lng = Column(Float, nullable=False)
    destination_instructions = Column(String(500), nullable=True)

    scheduled_time = Column(DateTime(timezone=True), nullable=False)
    vehicle_type = Column(
        _enum(VehicleType, "vehicle_type"), default=VehicleType.STANDARD, nullable=False
    )
    passengers = Column(Integer, default=1, nullable=False)
    special_requests = Column(Text, nullable=True)
    status = Column(
        _enum(BookingStatus, "booking_status"), default=BookingStatus.PENDING, nullable=False
    )

    # Pricing breakdown
    base_fare = Column(Float, nullable=False)
    distance_km = Column(Float, nullable=False)
    estimated_duration = Column(Float, nullable=True)
    vehicle_multiplier = Column(Float, default=1.0, nullable=False)
    surge_multiplier = Column(Float, default=1.0, nullable=False)
    subtotal = Column(Float, nullable=False)
    taxes = Column(Float, nullable=False)
    total = Column(Float, nullable=False)
    currency = Column(String(3), default="USD", nullable=False)

    # Payment
    payment_method = Column(_enum(PaymentMethod, "booking_payment_method"), nullable=False)
    payment_status = Column(
        _enum(PaymentStatus, "payment_status"), default=PaymentStatus.PENDING, nullable=False
    )
    transaction_id = Column(String(100), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    # Ride execution
    started_at = Column(DateTime(timezone=True), nullable=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    actual_distance = Column(Float, nullable=True)
    actual_duration = Column(Float, nullable=True)
    route = Column(JSON, default=list, nullable=False)

    # Ratings: rider -> driver, driver -> rider
    rider_rating = Column(Integer, nullable=True)
    rider_comment = Column(String(500), nullable=True)
    rider_rated_at = Column(DateTime(timezone=True), nullable=True)
    driver_rating = Column(Integer, nullable=True)
    driver_comment = Column(String(500), nullable=True)
    driver_rated_at = Column(DateTime(timezone=True), nullable=True)

    # Cancellation
    cancel_reason = Column(String(200), nullable=True)
    cancelled_by = Column(_enum(CancelledBy, "cancelled_by"), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    refund_amount = Column(Float, nullable=True)

    client_metadata = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_bookings_rider", "rider_id", "created_at"),
        Index("idx_bookings_driver", "driver_id", "created_at"),
        Index("idx_bookings_status", "status"),
        Index("idx_bookings_scheduled", "scheduled_time"),
    )


class NotificationModel(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    type = Column(_enum(NotificationType, "notification_type"), nullable=False)
    title = Column(String(100), nullable=False)
    message = Column(String(500), nullable=False)
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("idx_notifications_user", "user_id", "is_read"),)


class TransactionModel(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True)
    type = Column(_enum(TransactionType, "transaction_type"), nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), default="USD", nullable=False)
    status = Column(_enum(TransactionStatus, "transaction_status"), nullable=False)
    description = Column(String(200), nullable=True)
    gateway_reference = Column(String(100), nullable=True)
    payment_method_label = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("idx_transactions_user", "user_id", "created_at"),)
