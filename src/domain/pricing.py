"""
Fare Calculator
===============

Formula
-------
Subtotal = Base_Fare + Distance x Price_Per_KM
Taxes    = Subtotal x Tax_Rate
Total    = (Subtotal + Taxes) x Vehicle_Multiplier x Surge_Multiplier

* **Vehicle_Multiplier**: standard 1.0, premium 1.5, suv 1.8, luxury 2.5
* **Surge_Multiplier**: set externally (admin / demand signal), default 1.0

Money is rounded half-up to cents only on output; the total is computed
from the unrounded subtotal and taxes.

Complexity: O(1) per price calculation.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from .distance import trip_distance_km
from .enums import VEHICLE_MULTIPLIERS, VehicleType

BASE_FARE = 25.0
PRICE_PER_KM = 2.5
TAX_RATE = 0.10


def round_half_up(value: float, places: int = 2) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class FareBreakdown:
    base_fare: float
    distance_km: float
    vehicle_multiplier: float
    surge_multiplier: float
    subtotal: float
    taxes: float
    total: float
    currency: str = "USD"


def calculate_fare(
    distance_km: float,
    vehicle_type: VehicleType | str = VehicleType.STANDARD,
    surge_multiplier: float = 1.0,
    *,
    base_fare: float = BASE_FARE,
    price_per_km: float = PRICE_PER_KM,
    tax_rate: float = TAX_RATE,
    currency: str = "USD",
) -> FareBreakdown:
    """Pure fare computation.  Same inputs always give the same breakdown."""
    if distance_km < 0:
        raise ValueError("distance_km must be non-negative")
    if surge_multiplier <= 0:
        raise ValueError("surge_multiplier must be positive")

    multiplier = VEHICLE_MULTIPLIERS[VehicleType(vehicle_type)]
    subtotal = base_fare + distance_km * price_per_km
    taxes = subtotal * tax_rate
    total = (subtotal + taxes) * multiplier * surge_multiplier

    return FareBreakdown(
        base_fare=base_fare,
        distance_km=distance_km,
        vehicle_multiplier=multiplier,
        surge_multiplier=surge_multiplier,
        subtotal=round_half_up(subtotal),
        taxes=round_half_up(taxes),
        total=round_half_up(total),
        currency=currency,
    )


# ── Engine facade ─────────────────────────────────────────────────────


class PricingEngine:
    """High-level API used by the booking service and admin surge updates."""

    def __init__(
        self,
        base_fare: float = BASE_FARE,
        price_per_km: float = PRICE_PER_KM,
        tax_rate: float = TAX_RATE,
        currency: str = "USD",
    ):
        self.base_fare = base_fare
        self.price_per_km = price_per_km
        self.tax_rate = tax_rate
        self.currency = currency

    def price(
        self,
        distance_km: float,
        vehicle_type: VehicleType | str,
        surge_multiplier: float = 1.0,
    ) -> FareBreakdown:
        return calculate_fare(
            distance_km,
            vehicle_type,
            surge_multiplier,
            base_fare=self.base_fare,
            price_per_km=self.price_per_km,
            tax_rate=self.tax_rate,
            currency=self.currency,
        )

    def quote(
        self,
        pickup_lat: float,
        pickup_lng: float,
        dropoff_lat: float,
        dropoff_lng: float,
        vehicle_type: VehicleType | str = VehicleType.STANDARD,
        surge_multiplier: float = 1.0,
    ) -> FareBreakdown:
        distance = trip_distance_km(pickup_lat, pickup_lng, dropoff_lat, dropoff_lng)
        return self.price(distance, vehicle_type, surge_multiplier)
