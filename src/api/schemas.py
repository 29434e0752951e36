"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from src.domain.entities import as_utc
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
from src.domain.rating import MAX_SCORE, MIN_SCORE

PHONE_PATTERN = r"^\+?[1-9]\d{0,15}$"


class _Request(BaseModel):
    model_config = {"str_strip_whitespace": True}


# ── Requests: bookings ────────────────────────────────────────────────


class LocationIn(_Request):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class PlaceIn(LocationIn):
    address: str = Field(..., min_length=5, max_length=200)
    city: Optional[str] = Field(None, max_length=100)
    instructions: Optional[str] = Field(None, max_length=500)


class ClientMetadata(_Request):
    app_version: Optional[str] = Field(None, max_length=20)
    platform: Optional[str] = Field(None, max_length=20)
    device_info: Optional[str] = Field(None, max_length=200)
    ip_address: Optional[str] = Field(None, max_length=45)


class BookingCreateRequest(_Request):
    pickup: PlaceIn
    destination: PlaceIn
    scheduled_time: datetime
    vehicle_type: VehicleType = VehicleType.STANDARD
    passengers: int = Field(1, ge=1, le=6)
    special_requests: Optional[str] = Field(None, max_length=500)
    payment_method: PaymentMethod
    metadata: Optional[ClientMetadata] = None


class StatusUpdateRequest(_Request):
    status: BookingStatus
    reason: Optional[str] = Field(None, min_length=1, max_length=200)
    location: Optional[LocationIn] = None


class DriverStatusUpdateRequest(_Request):
    status: Literal["driver_en_route", "arrived"]
    location: Optional[LocationIn] = None


class CompleteRideRequest(_Request):
    actual_distance: Optional[float] = Field(None, ge=0.1)
    actual_duration: Optional[float] = Field(None, ge=0.1)


class CancelRequest(_Request):
    reason: str = Field(..., min_length=1, max_length=200)


class RatingRequest(_Request):
    rating: int = Field(..., ge=MIN_SCORE, le=MAX_SCORE)
    comment: Optional[str] = Field(None, min_length=1, max_length=500)


class SurgeUpdateRequest(_Request):
    surge_multiplier: float = Field(..., gt=0, le=10)


# ── Requests: accounts ────────────────────────────────────────────────


class SignupRequest(_Request):
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    phone: str = Field(..., pattern=PHONE_PATTERN)
    password: str = Field(..., min_length=6, max_length=128)
    role: Literal["user", "driver"] = "user"


class LoginRequest(_Request):
    email: EmailStr
    password: str = Field(..., min_length=1)


class TokenRequest(_Request):
    token: str = Field(..., min_length=10)


class ForgotPasswordRequest(_Request):
    email: EmailStr


class ResetPasswordRequest(TokenRequest):
    new_password: str = Field(..., min_length=6, max_length=128)


class EmergencyContact(_Request):
    name: str = Field(..., min_length=1, max_length=50)
    phone: str = Field(..., pattern=PHONE_PATTERN)
    relationship: Optional[str] = Field(None, max_length=50)


class ProfileUpdateRequest(_Request):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    emergency_contact: Optional[EmergencyContact] = None


class AvatarUpdateRequest(_Request):
    avatar_url: str = Field(..., min_length=1, max_length=500)


class NotificationPreferences(_Request):
    email: Optional[bool] = None
    sms: Optional[bool] = None
    push: Optional[bool] = None


class PreferencesUpdateRequest(_Request):
    notifications: Optional[NotificationPreferences] = None
    language: Optional[Literal["en", "es", "fr", "de", "zh"]] = None
    currency: Optional[Literal["USD", "EUR", "GBP", "CAD", "AUD"]] = None
    theme: Optional[Literal["light", "dark", "auto"]] = None


class PasswordChangeRequest(_Request):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


class AccountDeleteRequest(_Request):
    password: str = Field(..., min_length=1)


class AddressCreateRequest(_Request):
    type: AddressType = AddressType.OTHER
    label: str = Field(..., min_length=1, max_length=50)
    address: str = Field(..., min_length=5, max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    zip_code: str = Field(..., min_length=3, max_length=20)
    country: str = Field(..., min_length=1, max_length=100)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    is_default: bool = False


class AddressUpdateRequest(_Request):
    type: Optional[AddressType] = None
    label: Optional[str] = Field(None, min_length=1, max_length=50)
    address: Optional[str] = Field(None, min_length=5, max_length=200)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[str] = Field(None, min_length=1, max_length=100)
    zip_code: Optional[str] = Field(None, min_length=3, max_length=20)
    country: Optional[str] = Field(None, min_length=1, max_length=100)
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    is_default: Optional[bool] = None


class VehicleIn(_Request):
    make: Optional[str] = Field(None, min_length=1, max_length=50)
    model: Optional[str] = Field(None, min_length=1, max_length=50)
    year: Optional[int] = Field(None, ge=1900, le=date.today().year + 1)
    color: Optional[str] = Field(None, min_length=1, max_length=30)
    license_plate: Optional[str] = Field(None, min_length=1, max_length=20)
    insurance: Optional[str] = Field(None, min_length=1, max_length=100)


class DriverDocumentsIn(_Request):
    license_number: Optional[str] = Field(None, min_length=1, max_length=50)
    license_expiry: Optional[date] = None
    vehicle_registration: Optional[str] = Field(None, min_length=1, max_length=100)


class DriverProfileUpdateRequest(_Request):
    vehicle: Optional[VehicleIn] = None
    documents: Optional[DriverDocumentsIn] = None


# ── Requests: payments / notifications ────────────────────────────────


class PaymentMethodCreateRequest(_Request):
    type: Literal["card", "paypal", "apple_pay", "google_pay"]
    gateway_token: Optional[str] = Field(None, max_length=255)
    is_default: bool = False


class PaymentMethodUpdateRequest(_Request):
    is_default: bool


class ProcessPaymentRequest(_Request):
    booking_id: int
    payment_method_id: int
    amount: float = Field(..., ge=0.01)


class RefundRequest(_Request):
    booking_id: int
    amount: float = Field(..., ge=0.01)
    reason: str = Field(..., min_length=1, max_length=200)


class NotificationSendRequest(_Request):
    user_id: int
    type: NotificationType
    title: str = Field(..., min_length=1, max_length=100)
    message: str = Field(..., min_length=1, max_length=500)
    data: Optional[dict[str, Any]] = None


# ── Responses ─────────────────────────────────────────────────────────


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    return as_utc(value) if value is not None else None


class PlaceOut(BaseModel):
    address: str
    city: Optional[str] = None
    lat: float
    lng: float
    instructions: Optional[str] = None


class PricingOut(BaseModel):
    base_fare: float
    distance: float
    duration: Optional[float] = None
    vehicle_multiplier: float
    surge_multiplier: float
    subtotal: float
    taxes: float
    total: float
    currency: str


class PaymentOut(BaseModel):
    method: str
    status: str
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None


class RideDetailsOut(BaseModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    actual_distance: Optional[float] = None
    actual_duration: Optional[float] = None
    route: list[dict[str, Any]] = []


class RatingOut(BaseModel):
    rating: int
    comment: Optional[str] = None
    rated_at: Optional[datetime] = None


class RatingsOut(BaseModel):
    rider_rating: Optional[RatingOut] = None
    driver_rating: Optional[RatingOut] = None


class CancellationOut(BaseModel):
    reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    refund_amount: Optional[float] = None


class BookingResponse(BaseModel):
    id: int
    rider_id: int
    driver_id: Optional[int] = None
    pickup: PlaceOut
    destination: PlaceOut
    scheduled_time: datetime
    vehicle_type: str
    passengers: int
    special_requests: Optional[str] = None
    status: str
    pricing: PricingOut
    payment: PaymentOut
    ride_details: RideDetailsOut
    rating: RatingsOut
    cancellation: Optional[CancellationOut] = None
    metadata: Optional[dict[str, Any]] = None
    is_upcoming: bool
    is_active: bool
    ride_duration: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, b) -> "BookingResponse":
        def rating(score, comment, at):
            if score is None:
                return None
            return RatingOut(rating=score, comment=comment, rated_at=_utc(at))

        cancellation = None
        if b.cancelled_at is not None:
            cancellation = CancellationOut(
                reason=b.cancel_reason,
                cancelled_by=CancelledBy(b.cancelled_by).value if b.cancelled_by else None,
                cancelled_at=_utc(b.cancelled_at),
                refund_amount=b.refund_amount,
            )

        return cls(
            id=b.id,
            rider_id=b.rider_id,
            driver_id=b.driver_id,
            pickup=PlaceOut(
                address=b.pickup_address,
                city=b.pickup_city,
                lat=b.pickup_lat,
                lng=b.pickup_lng,
                instructions=b.pickup_instructions,
            ),
            destination=PlaceOut(
                address=b.destination_address,
                city=b.destination_city,
                lat=b.destination_lat,
                lng=b.destination_lng,
                instructions=b.destination_instructions,
            ),
            scheduled_time=as_utc(b.scheduled_time),
            vehicle_type=VehicleType(b.vehicle_type).value,
            passengers=b.passengers,
            special_requests=b.special_requests,
            status=BookingStatus(b.status).value,
            pricing=PricingOut(
                base_fare=b.base_fare,
                distance=b.distance_km,
                duration=b.estimated_duration,
                vehicle_multiplier=b.vehicle_multiplier,
                surge_multiplier=b.surge_multiplier,
                subtotal=b.subtotal,
                taxes=b.taxes,
                total=b.total,
                currency=b.currency,
            ),
            payment=PaymentOut(
                method=PaymentMethod(b.payment_method).value,
                status=PaymentStatus(b.payment_status).value,
                transaction_id=b.transaction_id,
                paid_at=_utc(b.paid_at),
            ),
            ride_details=RideDetailsOut(
                start_time=_utc(b.started_at),
                end_time=_utc(b.ended_at),
                actual_distance=b.actual_distance,
                actual_duration=b.actual_duration,
                route=b.route or [],
            ),
            rating=RatingsOut(
                rider_rating=rating(b.rider_rating, b.rider_comment, b.rider_rated_at),
                driver_rating=rating(b.driver_rating, b.driver_comment, b.driver_rated_at),
            ),
            cancellation=cancellation,
            metadata=b.client_metadata,
            is_upcoming=b.is_upcoming(),
            is_active=b.is_active,
            ride_duration=b.ride_duration_minutes,
            created_at=_utc(b.created_at),
            updated_at=_utc(b.updated_at),
        )


class Page(BaseModel):
    total: int
    page: int
    limit: int
    pages: int

    @staticmethod
    def count_pages(total: int, limit: int) -> int:
        return math.ceil(total / limit) if limit else 0


class BookingPage(Page):
    items: list[BookingResponse]


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: str
    avatar: Optional[str] = None
    role: UserRole
    is_verified: bool
    status: AccountStatus
    total_rides: int
    total_spent: float
    average_rating: float
    member_since: Optional[datetime] = None
    emergency_contact: Optional[dict[str, Any]] = None
    vehicle: Optional[dict[str, Any]] = None
    documents: Optional[dict[str, Any]] = None

    model_config = {"from_attributes": True}


class DriverSummary(BaseModel):
    id: int
    name: str
    phone: str
    avatar: Optional[str] = None
    vehicle: Optional[dict[str, Any]] = None
    average_rating: float
    lat: Optional[float] = None
    lng: Optional[float] = None

    @classmethod
    def from_model(cls, u) -> "DriverSummary":
        return cls(
            id=u.id,
            name=u.name,
            phone=u.phone,
            avatar=u.avatar,
            vehicle=u.vehicle,
            average_rating=u.average_rating,
            lat=u.current_lat,
            lng=u.current_lng,
        )


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class PreferencesResponse(BaseModel):
    notifications: NotificationPreferences
    language: str
    currency: str
    theme: str

    @classmethod
    def from_model(cls, u) -> "PreferencesResponse":
        return cls(
            notifications=NotificationPreferences(
                email=u.notify_email, sms=u.notify_sms, push=u.notify_push
            ),
            language=u.language,
            currency=u.currency,
            theme=u.theme,
        )


class StatsResponse(BaseModel):
    total_rides: int
    total_spent: float
    average_rating: float
    member_since: Optional[datetime] = None
    member_duration_days: int
    bookings: dict[str, Any]


class AddressResponse(BaseModel):
    id: int
    type: AddressType
    label: str
    address: str
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    is_default: bool

    model_config = {"from_attributes": True}


class PaymentMethodResponse(BaseModel):
    id: int
    type: PaymentMethod
    last4: Optional[str] = None
    brand: Optional[str] = None
    expiry_month: Optional[int] = None
    expiry_year: Optional[int] = None
    is_default: bool

    model_config = {"from_attributes": True}


class PaymentResultResponse(BaseModel):
    success: bool
    transaction_id: Optional[str] = None
    amount: float
    status: str
    error: Optional[str] = None


class TransactionResponse(BaseModel):
    id: int
    booking_id: Optional[int] = None
    type: TransactionType
    amount: float
    currency: str
    status: TransactionStatus
    description: Optional[str] = None
    gateway_reference: Optional[str] = None
    payment_method_label: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TransactionPage(Page):
    items: list[TransactionResponse]


class NotificationResponse(BaseModel):
    id: int
    type: NotificationType
    title: str
    message: str
    data: Optional[dict[str, Any]] = None
    is_read: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class NotificationPage(Page):
    items: list[NotificationResponse]
    unread_count: int


class EarningsResponse(BaseModel):
    period: str
    start_date: datetime
    end_date: datetime
    total_earnings: float
    total_rides: int
    average_earning: float


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: str = "ok"
