"""Hotel supplier — coordinate-based hotel search on the RapidAPI booking endpoint."""

import hashlib
import logging
import random
from datetime import date, timedelta
from decimal import Decimal

import httpx

from wayfare.config import settings
from wayfare.services.suppliers.base import Offer, Party, Place, SupplierAdapter

logger = logging.getLogger(__name__)

# Hotel chains for mocking
HOTEL_CHAINS = [
    ("Taj", ["Taj Palace", "Vivanta", "SeleQtions", "Ginger"]),
    ("Marriott", ["Courtyard by Marriott", "Fairfield Inn", "JW Marriott", "Four Points"]),
    ("Hilton", ["Hilton Garden Inn", "DoubleTree by Hilton", "Conrad"]),
    ("IHG", ["Holiday Inn Express", "Holiday Inn", "Crowne Plaza"]),
    ("Oberoi", ["Trident", "The Oberoi"]),
    ("Independent", ["City Center Hotel", "The Heritage Haveli", "Lake View Resort", "Park View Hotel"]),
]

ROOM_TYPES = ["Standard Double", "Deluxe King", "Superior Twin", "Family Suite"]


class HotelSupplier(SupplierAdapter):
    """Hotel offers for a stay; `origin` is the city, `travel_date`/`end_date` arrival and departure."""

    category = "hotel"

    def __init__(self):
        self._client: httpx.AsyncClient | None = None
        self._use_mock = not settings.rapidapi_key

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"https://{settings.rapidapi_host}",
                timeout=settings.supplier_timeout_seconds,
                headers={
                    "x-rapidapi-key": settings.rapidapi_key,
                    "x-rapidapi-host": settings.rapidapi_host,
                },
            )
        return self._client

    async def search(
        self,
        origin: Place,
        destination: Place,
        travel_date: date,
        party: Party,
        *,
        end_date: date | None = None,
    ) -> list[Offer]:
        check_in = travel_date
        check_out = end_date if end_date and end_date > travel_date else travel_date + timedelta(days=1)

        if self._use_mock or origin.latitude is None or origin.longitude is None:
            return self._generate_mock_hotels(origin.name, check_in, check_out, party)

        client = await self._get_client()
        params = {
            "latitude": origin.latitude,
            "longitude": origin.longitude,
            "arrival_date": check_in.isoformat(),
            "departure_date": check_out.isoformat(),
            "radius": "10",
            "adults": str(party.adults),
            "children_age": ",".join(str(a) for a in party.children_ages) or "0",
            "room_qty": "1",
            "units": "metric",
            "page_number": "1",
            "languagecode": "en-us",
            "currency_code": "USD",
        }
        resp = await client.get("/api/v1/hotels/searchHotelsByCoordinates", params=params)
        resp.raise_for_status()
        results = (resp.json().get("data") or {}).get("result") or []

        offers = []
        for hotel in results:
            try:
                price = Decimal(str(hotel["min_total_price"]))
            except (KeyError, TypeError, ValueError):
                continue
            offers.append(Offer(
                price=price,
                currency=hotel.get("currencycode", "USD"),
                vendor_metadata={
                    "name": hotel.get("hotel_name"),
                    "address": hotel.get("city_in_trans") or "Unknown Address",
                    "rating": hotel.get("review_score"),
                    "image": hotel.get("main_photo_url"),
                    "room_type": hotel.get("unit_configuration_label") or "Unknown Room Type",
                    "refundable": hotel.get("is_free_cancellable") == 1,
                    "check_in": check_in.isoformat(),
                    "check_out": check_out.isoformat(),
                },
            ))

        if not offers:
            logger.warning(f"No hotels found near {origin.name} for {check_in} - {check_out}")
        return offers

    def _generate_mock_hotels(
        self, city: str, check_in: date, check_out: date, party: Party
    ) -> list[Offer]:
        """Generate realistic mock hotel data, seeded for consistency."""
        seed_str = f"{city}{check_in.isoformat()}{check_out.isoformat()}"
        seed = int(hashlib.md5(seed_str.encode()).hexdigest()[:8], 16)
        rng = random.Random(seed)

        nights = max((check_out - check_in).days, 1)
        # Extra occupants in a room push the rate up
        occupancy_factor = 1 + 0.15 * max(party.adults + party.children - 2 * party.room_count, 0)

        offers = []
        for _ in range(rng.randint(4, 10)):
            chain, brands = rng.choice(HOTEL_CHAINS)
            stars = rng.choice([3, 3.5, 4, 4.5, 5])
            nightly = round(rng.uniform(2500, 4500) * (stars / 3) * occupancy_factor, 2)
            offers.append(Offer(
                price=Decimal(str(round(nightly * nights, 2))),
                currency=settings.base_currency,
                vendor_metadata={
                    "name": f"{rng.choice(brands)} {city}",
                    "chain": chain,
                    "star_rating": stars,
                    "rating": round(rng.uniform(7.0, 9.6), 1),
                    "nightly_rate": nightly,
                    "room_type": rng.choice(ROOM_TYPES),
                    "refundable": rng.random() < 0.6,
                    "check_in": check_in.isoformat(),
                    "check_out": check_out.isoformat(),
                    "mock": True,
                },
            ))

        return sorted(offers, key=lambda o: o.price)

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None
