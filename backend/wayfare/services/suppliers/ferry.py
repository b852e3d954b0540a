"""Ferry supplier — deterministic schedule; no live ferry inventory is integrated."""

import hashlib
import logging
import random
from datetime import date
from decimal import Decimal

from wayfare.config import settings
from wayfare.services.suppliers.base import Offer, Party, Place, SupplierAdapter

logger = logging.getLogger(__name__)

OPERATORS = ["Makruzz", "Green Ocean", "Nautika", "ITT Majestic", "Coastal Cruises"]
DEPARTURES = ["06:15", "08:00", "09:30", "12:45", "15:00"]


class FerrySupplier(SupplierAdapter):
    category = "ferry"

    async def search(
        self,
        origin: Place,
        destination: Place,
        travel_date: date,
        party: Party,
        *,
        end_date: date | None = None,
    ) -> list[Offer]:
        seed_str = f"{origin.name}{destination.name}{travel_date.isoformat()}ferry"
        seed = int(hashlib.md5(seed_str.encode()).hexdigest()[:8], 16)
        rng = random.Random(seed)

        offers = []
        for departure in rng.sample(DEPARTURES, rng.randint(1, 3)):
            seat_fare = rng.uniform(900, 2400)
            # Children travel at half fare
            fare = round(seat_fare * (party.adults + 0.5 * party.children), 2)
            offers.append(Offer(
                price=Decimal(str(fare)),
                currency=settings.base_currency,
                vendor_metadata={
                    "operator": rng.choice(OPERATORS),
                    "departure_time": f"{travel_date.isoformat()}T{departure}:00",
                    "duration_minutes": rng.choice([90, 120, 150, 180]),
                    "class": rng.choice(["Premium", "Deluxe", "Economy"]),
                },
            ))
        return offers
