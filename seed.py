"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 1 admin, 6 riders and 5 drivers (password ``password123`` for all)
  - a saved home address and a payment method per rider
  - 8 sample bookings around Manhattan (mix of pending, confirmed,
    driver_assigned, completed and cancelled)
"""

import asyncio
from datetime import timedelta

from sqlalchemy import text

from src.domain.entities import utcnow
from src.domain.enums import (
    BookingStatus,
    CancelledBy,
    PaymentMethod,
    PaymentStatus,
    UserRole,
    VehicleType,
)
from src.domain.pricing import PricingEngine
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.models import (
    AddressModel,
    BookingModel,
    PaymentMethodModel,
    UserModel,
)
from src.infrastructure.security import hash_password

# Lower Manhattan (approx)
CITY_LAT, CITY_LNG = 40.7128, -74.0060
PASSWORD = "password123"

ADMIN = {"name": "Ops Admin", "email": "admin@example.com", "phone": "+15550000001"}

RIDERS = [
    {"name": "Ava Thompson", "email": "ava@example.com", "phone": "+15550000101"},
    {"name": "Liam Chen", "email": "liam@example.com", "phone": "+15550000102"},
    {"name": "Noah Garcia", "email": "noah@example.com", "phone": "+15550000103"},
    {"name": "Mia Patel", "email": "mia@example.com", "phone": "+15550000104"},
    {"name": "Ethan Brooks", "email": "ethan@example.com", "phone": "+15550000105"},
    {"name": "Zoe Kim", "email": "zoe@example.com", "phone": "+15550000106"},
]

DRIVERS = [
    {"name": "Carlos Ruiz", "email": "carlos@example.com", "phone": "+15550000201",
     "lat": 40.7138, "lng": -74.0050, "vehicle": {"make": "Toyota", "model": "Camry", "year": 2022, "color": "Silver", "license_plate": "NYC-1001"}},
    {"name": "Hannah Lee", "email": "hannah@example.com", "phone": "+15550000202",
     "lat": 40.7200, "lng": -74.0000, "vehicle": {"make": "Honda", "model": "Accord", "year": 2021, "color": "Black", "license_plate": "NYC-1002"}},
    {"name": "Omar Haddad", "email": "omar@example.com", "phone": "+15550000203",
     "lat": 40.7306, "lng": -73.9352, "vehicle": {"make": "Ford", "model": "Explorer", "year": 2023, "color": "White", "license_plate": "NYC-1003"}},
    {"name": "Grace Park", "email": "grace@example.com", "phone": "+15550000204",
     "lat": 40.7580, "lng": -73.9855, "vehicle": {"make": "Tesla", "model": "Model S", "year": 2024, "color": "Blue", "license_plate": "NYC-1004"}},
    {"name": "Ivan Petrov", "email": "ivan@example.com", "phone": "+15550000205",
     "lat": 40.6413, "lng": -73.7781, "vehicle": {"make": "Cadillac", "model": "Escalade", "year": 2023, "color": "Black", "license_plate": "NYC-1005"}},
]

PLACES = {
    "downtown": ("1 Centre St, New York", 40.7128, -74.0060),
    "williamsburg": ("200 Kent Ave, Brooklyn", 40.7306, -73.9352),
    "midtown": ("Times Square, New York", 40.7580, -73.9855),
    "jfk": ("JFK Airport Terminal 4", 40.6413, -73.7781),
    "uptown": ("Central Park North, New York", 40.7990, -73.9540),
}


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        password_hash = hash_password(PASSWORD)
        now = utcnow()

        # ── Users ─────────────────────────────────────────────────────
        admin = UserModel(**ADMIN, password_hash=password_hash, role=UserRole.ADMIN, is_verified=True)
        riders = [
            UserModel(**r, password_hash=password_hash, is_verified=True) for r in RIDERS
        ]
        drivers = [
            UserModel(
                name=d["name"],
                email=d["email"],
                phone=d["phone"],
                password_hash=password_hash,
                role=UserRole.DRIVER,
                is_verified=True,
                vehicle=d["vehicle"],
                current_lat=d["lat"],
                current_lng=d["lng"],
                location_updated_at=now,
            )
            for d in DRIVERS
        ]
        session.add_all([admin, *riders, *drivers])
        await session.flush()
        print(f"  Created 1 admin, {len(riders)} riders, {len(drivers)} drivers")

        # ── Addresses / payment methods ───────────────────────────────
        for rider in riders:
            session.add(
                AddressModel(
                    user_id=rider.id,
                    label="Home",
                    address=PLACES["downtown"][0],
                    city="New York",
                    state="NY",
                    zip_code="10007",
                    country="US",
                    lat=PLACES["downtown"][1],
                    lng=PLACES["downtown"][2],
                    is_default=True,
                )
            )
            session.add(
                PaymentMethodModel(
                    user_id=rider.id,
                    type=PaymentMethod.CARD,
                    brand="visa",
                    last4="4242",
                    expiry_month=12,
                    expiry_year=now.year + 2,
                    is_default=True,
                )
            )
        await session.flush()
        print(f"  Created {len(riders)} addresses and payment methods")

        # ── Bookings ──────────────────────────────────────────────────
        pricing = PricingEngine()
        bookings_data = [
            # Waiting for payment
            {"rider": riders[0], "from": "downtown", "to": "williamsburg", "in_hours": 5,
             "vehicle": VehicleType.STANDARD, "payment": PaymentMethod.CARD,
             "status": BookingStatus.PENDING},
            # Confirmed and open to drivers
            {"rider": riders[1], "from": "downtown", "to": "midtown", "in_hours": 3,
             "vehicle": VehicleType.PREMIUM, "payment": PaymentMethod.CASH,
             "status": BookingStatus.CONFIRMED},
            {"rider": riders[2], "from": "williamsburg", "to": "jfk", "in_hours": 6,
             "vehicle": VehicleType.SUV, "payment": PaymentMethod.CASH,
             "status": BookingStatus.CONFIRMED},
            {"rider": riders[3], "from": "midtown", "to": "uptown", "in_hours": 1,
             "vehicle": VehicleType.STANDARD, "payment": PaymentMethod.CASH,
             "status": BookingStatus.CONFIRMED},
            # Accepted
            {"rider": riders[4], "from": "downtown", "to": "jfk", "in_hours": 2,
             "vehicle": VehicleType.LUXURY, "payment": PaymentMethod.CASH,
             "status": BookingStatus.DRIVER_ASSIGNED, "driver": drivers[0]},
            # Completed and rated
            {"rider": riders[5], "from": "uptown", "to": "downtown", "in_hours": -24,
             "vehicle": VehicleType.STANDARD, "payment": PaymentMethod.CASH,
             "status": BookingStatus.COMPLETED, "driver": drivers[1], "rating": 5},
            {"rider": riders[0], "from": "midtown", "to": "williamsburg", "in_hours": -48,
             "vehicle": VehicleType.STANDARD, "payment": PaymentMethod.CASH,
             "status": BookingStatus.COMPLETED, "driver": drivers[1], "rating": 4},
            # Cancelled by the rider well ahead of time
            {"rider": riders[1], "from": "jfk", "to": "downtown", "in_hours": 10,
             "vehicle": VehicleType.STANDARD, "payment": PaymentMethod.CASH,
             "status": BookingStatus.CANCELLED},
        ]

        for b in bookings_data:
            origin, destination = PLACES[b["from"]], PLACES[b["to"]]
            fare = pricing.quote(origin[1], origin[2], destination[1], destination[2], b["vehicle"])
            scheduled = now + timedelta(hours=b["in_hours"])
            booking = BookingModel(
                rider_id=b["rider"].id,
                driver_id=b["driver"].id if "driver" in b else None,
                pickup_address=origin[0],
                pickup_city="New York",
                pickup_lat=origin[1],
                pickup_lng=origin[2],
                destination_address=destination[0],
                destination_city="New York",
                destination_lat=destination[1],
                destination_lng=destination[2],
                scheduled_time=scheduled,
                vehicle_type=b["vehicle"],
                passengers=1,
                status=b["status"],
                base_fare=fare.base_fare,
                distance_km=fare.distance_km,
                vehicle_multiplier=fare.vehicle_multiplier,
                surge_multiplier=fare.surge_multiplier,
                subtotal=fare.subtotal,
                taxes=fare.taxes,
                total=fare.total,
                currency=fare.currency,
                payment_method=b["payment"],
                payment_status=PaymentStatus.PENDING,
                route=[],
            )
            if b["status"] == BookingStatus.COMPLETED:
                booking.started_at = scheduled
                booking.ended_at = scheduled + timedelta(minutes=25)
                booking.payment_status = PaymentStatus.COMPLETED
                booking.paid_at = booking.ended_at
                booking.rider_rating = b["rating"]
                booking.rider_rated_at = booking.ended_at
                b["rider"].total_rides += 1
                b["rider"].total_spent += fare.total
            elif b["status"] == BookingStatus.CANCELLED:
                booking.cancel_reason = "Plans changed"
                booking.cancelled_by = CancelledBy.USER
                booking.cancelled_at = now
                booking.refund_amount = 0.0
            session.add(booking)
        await session.flush()
        # matches the two completed rides above
        drivers[1].average_rating = 4.5
        print(f"  Created {len(bookings_data)} bookings")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
