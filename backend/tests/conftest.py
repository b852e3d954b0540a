"""Shared pytest fixtures for all test suites."""

import os

# Offline configuration; must be in place before wayfare.config is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["REDIS_URL"] = ""
os.environ["SCHEDULER_ENABLED"] = "false"
for _key in ("FLIGHT_CLIENT_ID", "FLIGHT_CLIENT_SECRET", "RAPIDAPI_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY"):
    os.environ[_key] = ""

import uuid
from collections.abc import AsyncGenerator
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from wayfare.database import Base
from wayfare.models import Activity, City, Destination, InternationalAirportCity, MarkupSettings
from wayfare.schemas.itinerary import CreateItineraryRequest, Room
from wayfare.services.cost_engine import CostEngine
from wayfare.services.discount_engine import DiscountEngine
from wayfare.services.draft_generator import DraftGenerator
from wayfare.services.itinerary_mutator import ItineraryMutator
from wayfare.services.itinerary_pipeline import ItineraryPipeline
from wayfare.services.itinerary_store import ItineraryStore
from wayfare.services.resource_refresh import ResourceRefreshCoordinator
from wayfare.services.suppliers import Offer, SupplierAdapter

START = date(2026, 12, 1)
USER_ID = uuid.UUID("7c9e6679-7425-40de-944b-e07fc1f90ae7")
OTHER_USER_ID = uuid.UUID("b1a4c2d8-3f6e-4a9b-8c7d-5e2f1a0b9c3d")


class FakeSupplier(SupplierAdapter):
    """Deterministic supplier that records every search."""

    def __init__(self, category: str, price: str, currency: str = "INR"):
        self.category = category
        self.price = Decimal(price)
        self.currency = currency
        self.calls = []
        self.fail = False
        self.empty = False

    async def search(self, origin, destination, travel_date, party, *, end_date=None):
        self.calls.append((origin.name, destination.name, travel_date, end_date))
        if self.fail:
            raise httpx.ConnectError("supplier unreachable")
        if self.empty:
            return []
        return [
            Offer(price=self.price + 100, currency=self.currency, vendor_metadata={"rank": 2}),
            Offer(price=self.price, currency=self.currency, vendor_metadata={"rank": 1}),
        ]


class OfflineLLM:
    available = False

    async def complete(self, *args, **kwargs):
        raise RuntimeError("No LLM configured")


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def catalog(db: AsyncSession) -> SimpleNamespace:
    """Thailand with three cities, priced activities and a known markup row."""
    bkk = InternationalAirportCity(name="Bangkok", iata_code="BKK", country="Thailand")
    hkt = InternationalAirportCity(name="Phuket", iata_code="HKT", country="Thailand")
    thailand = Destination(name="Thailand", currency="INR", markup=0, active=True)
    db.add_all([bkk, hkt, thailand])
    await db.flush()

    bangkok = City(name="Bangkok", iata_code="BKK", latitude=13.75, longitude=100.5,
                   destination_id=thailand.id, nearest_airport_id=bkk.id)
    phuket = City(name="Phuket", iata_code="HKT", latitude=7.88, longitude=98.39,
                  destination_id=thailand.id, nearest_airport_id=hkt.id)
    krabi = City(name="Krabi", iata_code="KBV", latitude=8.08, longitude=98.9,
                 destination_id=thailand.id, nearest_airport_id=hkt.id)
    db.add_all([bangkok, phuket, krabi])
    await db.flush()

    activities = {
        "Grand Palace": Activity(name="Grand Palace", city_id=bangkok.id, category="Sightseeing",
                                 duration=180, opens_at="08:30", closes_at="15:30", price=1000),
        "Wat Arun": Activity(name="Wat Arun", city_id=bangkok.id, category="Sightseeing",
                             duration=90, opens_at="08:00", closes_at="18:00", price=200),
        "Dinner Cruise": Activity(name="Dinner Cruise", city_id=bangkok.id, category="Cruise",
                                  duration=150, opens_at="18:00", closes_at="22:00", price=3000),
        "Big Buddha": Activity(name="Big Buddha", city_id=phuket.id, category="Sightseeing",
                               duration=90, opens_at="08:00", closes_at="19:30", price=0),
        "Phi Phi Tour": Activity(name="Phi Phi Tour", city_id=phuket.id, category="Tour",
                                 duration=480, opens_at="07:30", closes_at="17:00", price=4000),
        "Four Islands": Activity(name="Four Islands", city_id=krabi.id, category="Tour",
                                 duration=420, opens_at="08:00", closes_at="17:00", price=2500),
    }
    db.add_all(activities.values())
    db.add(MarkupSettings(flight_markup=10, taxi_markup=0, ferry_markup=0, stay_markup=10, service_fee=50))
    await db.commit()

    return SimpleNamespace(
        destination=thailand,
        bangkok=bangkok,
        phuket=phuket,
        krabi=krabi,
        activities=activities,
    )


@pytest.fixture
def suppliers() -> SimpleNamespace:
    return SimpleNamespace(
        flight=FakeSupplier("flight", "5000"),
        hotel=FakeSupplier("hotel", "3000"),
        taxi=FakeSupplier("taxi", "1500"),
        ferry=FakeSupplier("ferry", "1200"),
        international=FakeSupplier("flight", "30000"),
    )


@pytest.fixture
def pipeline(suppliers) -> ItineraryPipeline:
    discounts = DiscountEngine()
    return ItineraryPipeline(
        mutator=ItineraryMutator(generator=DraftGenerator(client=OfflineLLM())),
        refresher=ResourceRefreshCoordinator(
            flight=suppliers.flight,
            hotel=suppliers.hotel,
            taxi=suppliers.taxi,
            ferry=suppliers.ferry,
            international_flight=suppliers.international,
            cache=None,
        ),
        costs=CostEngine(discounts),
        store=ItineraryStore(),
        discounts=discounts,
    )


@pytest.fixture
def make_itinerary(db, catalog, pipeline):
    """Create an itinerary through the pipeline; defaults to Bangkok -> Phuket for two adults."""

    async def _make(
        cities=None,
        activities=("Grand Palace", "Big Buddha"),
        rooms=None,
        departure_city=None,
        user_id=USER_ID,
        start_date=START,
    ):
        cities = cities or [catalog.bangkok, catalog.phuket]
        req = CreateItineraryRequest(
            start_date=start_date,
            destination_id=catalog.destination.id,
            cities=[c.id for c in cities],
            activities=[catalog.activities[name].id for name in activities or ()],
            rooms=rooms or [Room(adults=2)],
            departure_city=departure_city,
        )
        return await pipeline.create(db, user_id, req)

    return _make
