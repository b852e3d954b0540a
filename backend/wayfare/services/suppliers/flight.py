"""Flight supplier — Amadeus-style flight offer search with OAuth2 and retries."""

import asyncio
import hashlib
import logging
import random
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import httpx

from wayfare.config import settings
from wayfare.services.suppliers.base import Offer, Party, Place, SupplierAdapter

logger = logging.getLogger(__name__)

# Airline name lookup (common carriers on the served routes)
AIRLINE_NAMES = {
    "AI": "Air India", "6E": "IndiGo", "UK": "Vistara", "SG": "SpiceJet",
    "QP": "Akasa Air", "IX": "Air India Express", "EK": "Emirates",
    "QR": "Qatar Airways", "SQ": "Singapore Airlines", "TG": "Thai Airways",
    "MH": "Malaysia Airlines", "UL": "SriLankan Airlines", "FZ": "flydubai",
    "G9": "Air Arabia", "TK": "Turkish Airlines", "GA": "Garuda Indonesia",
}

DOMESTIC_CARRIERS = ["6E", "AI", "UK", "SG", "QP", "IX"]
INTERNATIONAL_CARRIERS = ["AI", "6E", "EK", "QR", "SQ", "TG", "MH", "UL", "FZ", "G9", "TK"]


class FlightSupplier(SupplierAdapter):
    """Flight offers for a single one-way segment."""

    category = "flight"

    def __init__(self, international: bool = False):
        self.international = international
        self._token: str | None = None
        self._token_expires: datetime | None = None
        self._semaphore = asyncio.Semaphore(10)
        self._client: httpx.AsyncClient | None = None
        self._use_mock = not settings.flight_client_id

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=settings.flight_base_url,
                timeout=settings.supplier_timeout_seconds,
            )
        return self._client

    async def _ensure_token(self):
        """Get or refresh OAuth2 token."""
        if self._token and self._token_expires and datetime.now(timezone.utc) < self._token_expires:
            return

        client = await self._get_client()
        for attempt in range(3):
            try:
                resp = await client.post(
                    "/v1/security/oauth2/token",
                    data={
                        "grant_type": "client_credentials",
                        "client_id": settings.flight_client_id,
                        "client_secret": settings.flight_client_secret,
                    },
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
                resp.raise_for_status()
                data = resp.json()
                self._token = data["access_token"]
                self._token_expires = datetime.now(timezone.utc) + timedelta(
                    seconds=data.get("expires_in", 1799) - 60
                )
                logger.info("Flight supplier token refreshed")
                return
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 429 and attempt < 2:
                    await asyncio.sleep(2 ** attempt)
                    continue
                raise
            except httpx.RequestError:
                if attempt < 2:
                    await asyncio.sleep(2 ** attempt)
                    continue
                raise

    async def search(
        self,
        origin: Place,
        destination: Place,
        travel_date: date,
        party: Party,
        *,
        end_date: date | None = None,
    ) -> list[Offer]:
        origin_code = origin.iata_code or origin.name
        dest_code = destination.iata_code or destination.name
        if self._use_mock:
            return self._generate_mock_offers(origin_code, dest_code, travel_date, party)

        async with self._semaphore:
            await self._ensure_token()
            client = await self._get_client()

            params = {
                "originLocationCode": origin_code,
                "destinationLocationCode": dest_code,
                "departureDate": travel_date.isoformat(),
                "adults": party.adults,
                "max": 20,
                "currencyCode": settings.base_currency,
            }
            if party.children:
                params["children"] = party.children

            for attempt in range(3):
                try:
                    resp = await client.get(
                        "/v2/shopping/flight-offers",
                        params=params,
                        headers={"Authorization": f"Bearer {self._token}"},
                    )
                    if resp.status_code == 429:
                        await asyncio.sleep(2 ** attempt)
                        continue
                    resp.raise_for_status()
                    data = resp.json()
                    offers = [self._parse_offer(o) for o in data.get("data", [])]
                    return [o for o in offers if o is not None]
                except httpx.RequestError as e:
                    logger.error(f"Flight request error {origin_code}->{dest_code}: {e}")
                    if attempt == 2:
                        raise
                    await asyncio.sleep(2 ** attempt)

        return []

    def _parse_offer(self, offer: dict) -> Offer | None:
        """Parse an Amadeus offer JSON into an Offer."""
        price = offer.get("price", {})
        itineraries = offer.get("itineraries", [{}])
        segments = itineraries[0].get("segments", []) if itineraries else []
        if not segments or "grandTotal" not in price:
            return None

        first_seg = segments[0]
        last_seg = segments[-1]
        airline_code = first_seg.get("carrierCode", "")
        return Offer(
            price=Decimal(str(price["grandTotal"])),
            currency=price.get("currency", settings.base_currency),
            vendor_metadata={
                "airline_code": airline_code,
                "airline_name": AIRLINE_NAMES.get(airline_code, airline_code),
                "flight_numbers": ", ".join(f"{s['carrierCode']}{s['number']}" for s in segments),
                "origin_airport": first_seg["departure"]["iataCode"],
                "destination_airport": last_seg["arrival"]["iataCode"],
                "departure_time": first_seg["departure"]["at"],
                "arrival_time": last_seg["arrival"]["at"],
                "duration_minutes": self._parse_duration(itineraries[0].get("duration", "")),
                "stops": len(segments) - 1,
            },
        )

    @staticmethod
    def _parse_duration(duration_str: str) -> int:
        """Parse ISO 8601 duration (PT2H30M) to minutes."""
        if not duration_str or not duration_str.startswith("PT"):
            return 0
        duration_str = duration_str[2:]
        hours = 0
        minutes = 0
        if "H" in duration_str:
            h_part, duration_str = duration_str.split("H")
            hours = int(h_part)
        if "M" in duration_str:
            m_part = duration_str.replace("M", "")
            if m_part:
                minutes = int(m_part)
        return hours * 60 + minutes

    # --- Mock data generation for demo mode ---

    def _generate_mock_offers(
        self, origin: str, destination: str, departure_date: date, party: Party
    ) -> list[Offer]:
        """Deterministic offers seeded by route and date."""
        seed_str = f"{origin}{destination}{departure_date.isoformat()}{self.international}"
        seed = int(hashlib.md5(seed_str.encode()).hexdigest()[:8], 16)
        rng = random.Random(seed)

        base_fare = 32000 if self.international else 4500
        carriers = INTERNATIONAL_CARRIERS if self.international else DOMESTIC_CARRIERS
        # Children fly at 75% of the adult fare
        pax_factor = party.adults + 0.75 * party.children

        offers = []
        for _ in range(rng.randint(3, 8)):
            airline = rng.choice(carriers)
            fare = round(base_fare * rng.uniform(0.8, 1.6) * pax_factor, 2)
            dep_hour = rng.randint(5, 22)
            dep_minute = rng.choice([0, 15, 30, 45])
            duration = (240 if self.international else 110) + rng.choice([0, 0, 60, 120])
            offers.append(Offer(
                price=Decimal(str(fare)),
                currency=settings.base_currency,
                vendor_metadata={
                    "airline_code": airline,
                    "airline_name": AIRLINE_NAMES.get(airline, airline),
                    "flight_numbers": f"{airline}{rng.randint(100, 9999)}",
                    "origin_airport": origin,
                    "destination_airport": destination,
                    "departure_time": f"{departure_date.isoformat()}T{dep_hour:02d}:{dep_minute:02d}:00",
                    "duration_minutes": duration,
                    "stops": 0 if duration < 200 else 1,
                    "mock": True,
                },
            ))

        return sorted(offers, key=lambda o: o.price)

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None
