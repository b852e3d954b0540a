"""Taxi supplier — place lookup + taxi search, guarded by a per-instance token bucket."""

import asyncio
import hashlib
import logging
import random
from datetime import date, datetime, timedelta
from decimal import Decimal

import httpx

from wayfare.config import settings
from wayfare.services.suppliers.base import Offer, Party, Place, SupplierAdapter
from wayfare.services.suppliers.rate_limiter import TokenBucketRateLimiter

logger = logging.getLogger(__name__)

PICKUP_TIME = "10:00"

VEHICLES = [
    ("Sedan", 3, 1.0),
    ("SUV", 6, 1.4),
    ("Tempo Traveller", 12, 2.1),
]


class TaxiSupplier(SupplierAdapter):
    category = "taxi"

    def __init__(self, rate_limiter: TokenBucketRateLimiter | None = None):
        self.rate_limiter = rate_limiter or TokenBucketRateLimiter(
            capacity=settings.taxi_rate_limit_requests,
            window_seconds=settings.taxi_rate_limit_window_seconds,
        )
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

    async def _get(self, path: str, params: dict) -> dict:
        """Rate-limited GET with exponential backoff on 429."""
        client = await self._get_client()
        delay = 1.0
        for attempt in range(4):
            await self.rate_limiter.acquire()
            resp = await client.get(path, params=params)
            if resp.status_code == 429 and attempt < 3:
                logger.warning(f"Taxi supplier rate limited, retrying in {delay:.0f}s")
                await asyncio.sleep(delay)
                delay *= 2
                continue
            resp.raise_for_status()
            return resp.json()
        return {}

    async def _search_location(self, query: str) -> str | None:
        data = await self._get("/api/v1/taxi/searchLocation", {"query": query})
        results = data.get("data") or []
        if not results:
            return None
        return results[0].get("googlePlaceId")

    async def search(
        self,
        origin: Place,
        destination: Place,
        travel_date: date,
        party: Party,
        *,
        end_date: date | None = None,
    ) -> list[Offer]:
        if self._use_mock:
            await self.rate_limiter.acquire()
            return self._generate_mock_taxis(origin.name, destination.name, travel_date, party)

        pickup_id = await self._search_location(origin.name)
        dropoff_id = await self._search_location(destination.name)
        if not pickup_id or not dropoff_id:
            logger.warning(f"Unable to find taxi locations for {origin.name} -> {destination.name}")
            return []

        data = await self._get(
            "/api/v1/taxi/searchTaxi",
            {
                "pick_up_place_id": pickup_id,
                "drop_off_place_id": dropoff_id,
                "pick_up_date": travel_date.isoformat(),
                "pick_up_time": PICKUP_TIME,
                "currency_code": settings.base_currency,
            },
        )

        offers = []
        for result in (data.get("data") or {}).get("results") or data.get("results") or []:
            capacity = result.get("passengerCapacity") or 0
            if capacity and capacity < party.travellers:
                continue
            price = result.get("price") or {}
            try:
                amount = Decimal(str(price["amount"]))
            except (KeyError, TypeError, ValueError):
                continue
            offers.append(Offer(
                price=amount,
                currency=price.get("currencyCode", settings.base_currency),
                vendor_metadata={
                    "transfer_id": result.get("resultId"),
                    "pickup_location": (result.get("pickupLocation") or {}).get("description", "Unknown"),
                    "dropoff_location": (result.get("dropOffLocation") or {}).get("description", "Unknown"),
                    "departure_time": result.get("departureTime"),
                    "duration_minutes": result.get("duration") or 0,
                    "vehicle_type": result.get("vehicleType") or "Unknown",
                    "passenger_capacity": capacity,
                    "bags": result.get("bags") or 0,
                },
            ))
        return offers

    def _generate_mock_taxis(
        self, origin: str, destination: str, pickup_date: date, party: Party
    ) -> list[Offer]:
        seed_str = f"{origin}{destination}{pickup_date.isoformat()}taxi"
        seed = int(hashlib.md5(seed_str.encode()).hexdigest()[:8], 16)
        rng = random.Random(seed)

        distance_km = rng.randint(60, 450)
        pickup = datetime.combine(pickup_date, datetime.strptime(PICKUP_TIME, "%H:%M").time())
        offers = []
        for vehicle, capacity, factor in VEHICLES:
            if capacity < party.travellers:
                continue
            fare = round(distance_km * rng.uniform(11, 16) * factor, 2)
            duration = int(distance_km / rng.uniform(40, 55) * 60)
            offers.append(Offer(
                price=Decimal(str(fare)),
                currency=settings.base_currency,
                vendor_metadata={
                    "vehicle_type": vehicle,
                    "passenger_capacity": capacity,
                    "distance_km": distance_km,
                    "departure_time": pickup.isoformat(),
                    "arrival_time": (pickup + timedelta(minutes=duration)).isoformat(),
                    "duration_minutes": duration,
                    "mock": True,
                },
            ))
        return offers

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None
