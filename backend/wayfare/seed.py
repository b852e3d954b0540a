"""Seed script for the Wayfare development catalog."""

import asyncio

from sqlalchemy import select

from wayfare.database import async_session_factory
from wayfare.models.catalog import Activity, City, Destination, InternationalAirportCity, MarkupSettings

# ── International gateways ─────────────────────────────────────────────────────

AIRPORTS = [
    # name, iata, country
    ("Bangkok", "BKK", "Thailand"),
    ("Phuket", "HKT", "Thailand"),
    ("Denpasar", "DPS", "Indonesia"),
    ("Singapore", "SIN", "Singapore"),
]

# ── Destinations and cities ────────────────────────────────────────────────────

DESTINATIONS = [
    # name, currency, markup %
    ("Thailand", "INR", 5),
    ("Bali", "INR", 5),
    ("Singapore", "INR", 0),
]

CITIES = [
    # name, iata, lat, lon, destination, nearest gateway iata
    ("Bangkok", "BKK", 13.7563, 100.5018, "Thailand", "BKK"),
    ("Phuket", "HKT", 7.8804, 98.3923, "Thailand", "HKT"),
    ("Krabi", "KBV", 8.0863, 98.9063, "Thailand", "HKT"),
    ("Koh Phi Phi", None, 7.7407, 98.7784, "Thailand", "HKT"),
    ("Ubud", None, -8.5069, 115.2625, "Bali", "DPS"),
    ("Seminyak", None, -8.6913, 115.1683, "Bali", "DPS"),
    ("Nusa Penida", None, -8.7275, 115.5444, "Bali", "DPS"),
    ("Singapore", "SIN", 1.3521, 103.8198, "Singapore", "SIN"),
]

ACTIVITIES = [
    # city, name, category, minutes, opens, closes, price per person
    ("Bangkok", "Grand Palace", "Sightseeing", 180, "08:30", "15:30", 1400),
    ("Bangkok", "Wat Arun", "Sightseeing", 90, "08:00", "18:00", 250),
    ("Bangkok", "Chao Phraya Dinner Cruise", "Cruise", 150, "18:00", "22:00", 3200),
    ("Bangkok", "Chatuchak Weekend Market", "Shopping", 180, "09:00", "18:00", 0),
    ("Phuket", "Phi Phi Islands Speedboat Tour", "Tour", 480, "07:30", "17:00", 4500),
    ("Phuket", "Big Buddha", "Sightseeing", 90, "08:00", "19:30", 0),
    ("Phuket", "Simon Cabaret", "Show", 90, "18:00", "22:00", 1800),
    ("Krabi", "Four Islands Tour", "Tour", 420, "08:00", "17:00", 2900),
    ("Krabi", "Tiger Cave Temple", "Sightseeing", 180, "06:00", "18:00", 0),
    ("Koh Phi Phi", "Maya Bay Snorkelling", "Adventure", 240, "08:00", "16:00", 2400),
    ("Ubud", "Tegallalang Rice Terraces", "Sightseeing", 120, "08:00", "18:00", 400),
    ("Ubud", "Sacred Monkey Forest", "Sightseeing", 90, "09:00", "18:00", 450),
    ("Ubud", "Mount Batur Sunrise Trek", "Adventure", 360, "02:00", "12:00", 3500),
    ("Seminyak", "Tanah Lot Sunset", "Sightseeing", 150, "15:00", "19:30", 350),
    ("Seminyak", "Surf Lesson", "Adventure", 120, "08:00", "16:00", 2200),
    ("Nusa Penida", "Kelingking Beach Day Trip", "Tour", 540, "07:00", "18:00", 3800),
    ("Singapore", "Gardens by the Bay", "Sightseeing", 180, "09:00", "21:00", 1700),
    ("Singapore", "Universal Studios", "Theme Park", 480, "10:00", "19:00", 5200),
    ("Singapore", "Night Safari", "Wildlife", 180, "19:15", "23:59", 3400),
]


async def seed():
    async with async_session_factory() as db:
        # Check if already seeded
        result = await db.execute(select(Destination).limit(1))
        if result.scalar_one_or_none():
            print("Catalog already seeded. Skipping.")
            return

        # ── Gateways ──
        gateways = {}
        for name, iata, country in AIRPORTS:
            gateways[iata] = InternationalAirportCity(name=name, iata_code=iata, country=country)
            db.add(gateways[iata])

        # ── Destinations ──
        destinations = {}
        for name, currency, markup in DESTINATIONS:
            destinations[name] = Destination(name=name, currency=currency, markup=markup, active=True)
            db.add(destinations[name])
        await db.flush()
        print(f"Created {len(DESTINATIONS)} destinations and {len(AIRPORTS)} gateways")

        # ── Cities ──
        cities = {}
        for name, iata, lat, lon, destination, gateway in CITIES:
            cities[name] = City(
                name=name,
                iata_code=iata,
                latitude=lat,
                longitude=lon,
                destination_id=destinations[destination].id,
                nearest_airport_id=gateways[gateway].id,
            )
            db.add(cities[name])
        await db.flush()
        print(f"Created {len(CITIES)} cities")

        # ── Activities ──
        for city, name, category, minutes, opens, closes, price in ACTIVITIES:
            db.add(Activity(
                city_id=cities[city].id,
                name=name,
                category=category,
                duration=minutes,
                opens_at=opens,
                closes_at=closes,
                price=price,
            ))
        print(f"Created {len(ACTIVITIES)} activities")

        db.add(MarkupSettings(flight_markup=15, taxi_markup=10, ferry_markup=10, stay_markup=10, service_fee=499))

        await db.commit()
        print("Seed complete.")


if __name__ == "__main__":
    asyncio.run(seed())
