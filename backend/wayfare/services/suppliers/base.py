"""Supplier adapter contract — every pricing supplier returns a list of Offers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from wayfare.config import settings
from wayfare.data.currency import convert


@dataclass
class Place:
    name: str
    iata_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None


@dataclass
class Party:
    adults: int = 1
    children: int = 0
    children_ages: list[int] = field(default_factory=list)
    room_count: int = 1

    @property
    def travellers(self) -> int:
        return self.adults + self.children

    @classmethod
    def from_rooms(cls, rooms: list[dict]) -> "Party":
        rooms = rooms or [{"adults": 1}]
        ages: list[int] = []
        for room in rooms:
            ages.extend(room.get("children_ages") or [])
        return cls(
            adults=sum(int(room.get("adults", 1)) for room in rooms),
            children=sum(int(room.get("children", 0)) for room in rooms),
            children_ages=ages,
            room_count=len(rooms),
        )

    def cache_key(self) -> str:
        return f"{self.adults}a{self.children}c{self.room_count}r"


@dataclass
class Offer:
    price: Decimal
    currency: str
    vendor_metadata: dict = field(default_factory=dict)

    def in_base_currency(self) -> Decimal:
        return convert(self.price, self.currency, settings.base_currency)


def cheapest(offers: list[Offer]) -> Offer | None:
    """Lowest-priced offer after conversion to the base currency."""
    if not offers:
        return None
    return min(offers, key=lambda o: o.in_base_currency())


class SupplierAdapter(ABC):
    """Search contract shared by the flight, hotel, taxi and ferry suppliers.

    Returns an empty list when there are no offers; raises only on
    transport-level failure.
    """

    category: str = ""

    @abstractmethod
    async def search(
        self,
        origin: Place,
        destination: Place,
        travel_date: date,
        party: Party,
        *,
        end_date: date | None = None,
    ) -> list[Offer]:
        ...

    async def close(self):
        pass
