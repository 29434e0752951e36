"""Domain enumerations and state-transition rules."""

import enum


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DRIVER_ASSIGNED = "driver_assigned"
    DRIVER_EN_ROUTE = "driver_en_route"
    ARRIVED = "arrived"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


TERMINAL_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
)

ACTIVE_STATUSES: frozenset[BookingStatus] = frozenset(
    {
        BookingStatus.DRIVER_ASSIGNED,
        BookingStatus.DRIVER_EN_ROUTE,
        BookingStatus.ARRIVED,
        BookingStatus.IN_PROGRESS,
    }
)

_FORWARD = [
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.DRIVER_ASSIGNED,
    BookingStatus.DRIVER_EN_ROUTE,
    BookingStatus.ARRIVED,
    BookingStatus.IN_PROGRESS,
    BookingStatus.COMPLETED,
]

# State machine: maps current status -> set of valid next statuses
BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    status: {_FORWARD[i + 1], BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
    for i, status in enumerate(_FORWARD[:-1])
}
BOOKING_TRANSITIONS.update({status: set() for status in TERMINAL_STATUSES})


class VehicleType(str, enum.Enum):
    STANDARD = "standard"
    PREMIUM = "premium"
    SUV = "suv"
    LUXURY = "luxury"


VEHICLE_MULTIPLIERS: dict[VehicleType, float] = {
    VehicleType.STANDARD: 1.0,
    VehicleType.PREMIUM: 1.5,
    VehicleType.SUV: 1.8,
    VehicleType.LUXURY: 2.5,
}


class PaymentMethod(str, enum.Enum):
    CARD = "card"
    CASH = "cash"
    PAYPAL = "paypal"
    APPLE_PAY = "apple_pay"
    GOOGLE_PAY = "google_pay"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class CancelledBy(str, enum.Enum):
    USER = "user"
    DRIVER = "driver"
    SYSTEM = "system"


class UserRole(str, enum.Enum):
    USER = "user"
    DRIVER = "driver"
    ADMIN = "admin"


class AccountStatus(str, enum.Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    BANNED = "banned"


class AddressType(str, enum.Enum):
    HOME = "home"
    WORK = "work"
    OTHER = "other"


class NotificationType(str, enum.Enum):
    BOOKING_CONFIRMED = "booking_confirmed"
    PAYMENT_REQUIRED = "payment_required"
    DRIVER_ASSIGNED = "driver_assigned"
    RIDE_COMPLETED = "ride_completed"
    BOOKING_CANCELLED = "booking_cancelled"
    PROMOTION = "promotion"
    SYSTEM = "system"


class TransactionType(str, enum.Enum):
    PAYMENT = "payment"
    REFUND = "refund"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
