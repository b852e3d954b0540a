"""Resource Refresh Coordinator — keeps priced sub-resources in step with the tree.

After a mutation it:
1. deletes sub-resources that no slot references any more (removed legs,
   replaced transports),
2. deletes sub-resources whose context (route, dates, party) no longer
   matches their slot, and nulls the reference,
3. fetches every missing transport, hotel and international flight
   concurrently, then persists the cheapest offer per slot in leg order.

A failed or empty supplier search leaves the slot null; the pipeline
carries on.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from wayfare.config import settings
from wayfare.models.catalog import City, InternationalAirportCity
from wayfare.models.itinerary import Itinerary
from wayfare.models.pricing import Ferry, Flight, Hotel, Taxi
from wayfare.schemas.itinerary import ItineraryTree
from wayfare.services.cache_service import CacheService, cache_service
from wayfare.services.itinerary_dates import first_date, last_date
from wayfare.services.suppliers import (
    FerrySupplier,
    FlightSupplier,
    HotelSupplier,
    Offer,
    Party,
    Place,
    SupplierAdapter,
    TaxiSupplier,
    cheapest,
)

logger = logging.getLogger(__name__)

MODEL_BY_MODE = {"Flight": Flight, "Car": Taxi, "Ferry": Ferry}


@dataclass
class FetchTask:
    slot: str  # transport | hotel | international
    leg_index: int
    supplier: SupplierAdapter
    origin: Place
    destination: Place
    travel_date: date
    end_date: date | None = None
    mode: str | None = None


class ResourceRefreshCoordinator:
    def __init__(
        self,
        flight: SupplierAdapter | None = None,
        hotel: SupplierAdapter | None = None,
        taxi: SupplierAdapter | None = None,
        ferry: SupplierAdapter | None = None,
        international_flight: SupplierAdapter | None = None,
        cache: CacheService | None = cache_service,
    ):
        self.suppliers: dict[str, SupplierAdapter] = {
            "Flight": flight or FlightSupplier(),
            "Car": taxi or TaxiSupplier(),
            "Ferry": ferry or FerrySupplier(),
        }
        self.hotel = hotel or HotelSupplier()
        self.international_flight = international_flight or FlightSupplier(international=True)
        self.cache = cache

    async def refresh(
        self,
        db: AsyncSession,
        itinerary: Itinerary,
        previous: ItineraryTree | None,
        tree: ItineraryTree,
        *,
        force: bool = False,
    ) -> ItineraryTree:
        """Bring every priced slot of `tree` up to date. Mutates and returns `tree`."""
        party = Party.from_rooms(itinerary.rooms or [])
        cities = await self._load_cities(db, tree)

        # 1. Orphans: referenced before, not referenced now
        if previous is not None:
            await self._delete_orphans(db, itinerary, previous, tree)

        # 2. Stale references
        await self._invalidate_transports(db, itinerary, tree, party, force)
        await self._invalidate_hotels(db, itinerary, tree, party, force)
        wanted_international = await self._international_slots(db, itinerary, tree, cities)
        missing_international = await self._invalidate_international(
            db, itinerary, wanted_international, party, force
        )

        # 3. Fetch what is missing
        tasks = self._collect_tasks(tree, cities, missing_international)
        if not tasks:
            return tree

        semaphore = asyncio.Semaphore(settings.supplier_concurrency)

        async def _run(task: FetchTask) -> list[Offer]:
            async with semaphore:
                return await asyncio.wait_for(
                    self._search(task, party), timeout=settings.supplier_timeout_seconds
                )

        results = await asyncio.gather(*(_run(t) for t in tasks), return_exceptions=True)

        # Persist sequentially, in leg order
        for task, result in zip(tasks, results):
            if isinstance(result, BaseException):
                logger.warning(
                    f"Itinerary {itinerary.id}: {task.supplier.category} search "
                    f"{task.origin.name}->{task.destination.name} on {task.travel_date} failed: {result!r}"
                )
                continue
            offer = cheapest(result)
            if offer is None:
                logger.info(
                    f"Itinerary {itinerary.id}: no {task.supplier.category} offers for "
                    f"{task.origin.name}->{task.destination.name} on {task.travel_date}"
                )
                continue
            self._persist(db, itinerary, tree, task, offer, party)

        await db.flush()
        return tree

    # --- Lookups ---

    async def _load_cities(self, db: AsyncSession, tree: ItineraryTree) -> dict[uuid.UUID, City]:
        ids = {leg.city for leg in tree.legs}
        if not ids:
            return {}
        result = await db.execute(select(City).where(City.id.in_(ids)))
        return {c.id: c for c in result.scalars().all()}

    async def _airport_place(self, db: AsyncSession, city: City | None) -> Place | None:
        if city is None:
            return None
        if city.nearest_airport_id:
            airport = await db.get(InternationalAirportCity, city.nearest_airport_id)
            if airport:
                return Place(name=airport.name, iata_code=airport.iata_code)
        if city.iata_code:
            return Place(name=city.name, iata_code=city.iata_code)
        return None

    @staticmethod
    def _place(city: City | None, fallback_name: str) -> Place:
        if city is None:
            return Place(name=fallback_name)
        return Place(name=city.name, iata_code=city.iata_code, latitude=city.latitude, longitude=city.longitude)

    # --- Invalidation ---

    @staticmethod
    def _refs(tree: ItineraryTree) -> set[tuple[str, uuid.UUID]]:
        refs = set()
        for leg in tree.legs:
            if leg.transport is not None and leg.transport.mode_details is not None:
                refs.add((leg.transport.mode, leg.transport.mode_details))
            if leg.hotel_details is not None:
                refs.add(("Hotel", leg.hotel_details))
        return refs

    async def _delete(self, db: AsyncSession, itinerary: Itinerary, kind: str, ref: uuid.UUID, reason: str):
        model = Hotel if kind == "Hotel" else MODEL_BY_MODE[kind]
        await db.execute(delete(model).where(model.id == ref))
        logger.info(f"Itinerary {itinerary.id}: deleted {model.__tablename__} {ref} ({reason})")

    async def _delete_orphans(
        self, db: AsyncSession, itinerary: Itinerary, previous: ItineraryTree, tree: ItineraryTree
    ):
        for kind, ref in self._refs(previous) - self._refs(tree):
            await self._delete(db, itinerary, kind, ref, "no longer referenced")

    async def _invalidate_transports(
        self, db: AsyncSession, itinerary: Itinerary, tree: ItineraryTree, party: Party, force: bool
    ):
        for i, leg in enumerate(tree.legs):
            transport = leg.transport
            if transport is None or transport.mode_details is None:
                continue
            if i == len(tree.legs) - 1:
                await self._delete(db, itinerary, transport.mode, transport.mode_details, "last city has no transfer")
                leg.transport = None
                continue

            model = MODEL_BY_MODE[transport.mode]
            row = await db.get(model, transport.mode_details)
            expected = self._transport_signature(
                transport.mode, leg.city_name, tree.legs[i + 1].city_name, first_date(tree.legs[i + 1]), party
            )
            if row is not None and not force and self._row_transport_signature(transport.mode, row) == expected:
                continue
            if row is not None:
                await self._delete(db, itinerary, transport.mode, row.id, "forced" if force else "context changed")
            transport.mode_details = None

    async def _invalidate_hotels(
        self, db: AsyncSession, itinerary: Itinerary, tree: ItineraryTree, party: Party, force: bool
    ):
        for leg in tree.legs:
            if leg.hotel_details is None:
                continue
            row = await db.get(Hotel, leg.hotel_details)
            expected = (leg.city_name, first_date(leg), last_date(leg), party.adults, party.children)
            if row is not None and not force and (
                row.city, row.check_in, row.check_out, row.adults, row.children
            ) == expected:
                continue
            if row is not None:
                await self._delete(db, itinerary, "Hotel", row.id, "forced" if force else "context changed")
            leg.hotel_details = None

    async def _international_slots(
        self, db: AsyncSession, itinerary: Itinerary, tree: ItineraryTree, cities: dict[uuid.UUID, City]
    ) -> list[tuple[Place, Place, date]]:
        """Outbound on the first day and return on the last day, via the nearest international airports."""
        if not itinerary.departure_city or not tree.legs:
            return []
        home = Place(name=itinerary.departure_city, iata_code=itinerary.departure_city)
        first_leg, last_leg = tree.legs[0], tree.legs[-1]
        arrival = await self._airport_place(db, cities.get(first_leg.city))
        departure = await self._airport_place(db, cities.get(last_leg.city))

        slots = []
        if arrival is not None:
            slots.append((home, arrival, first_date(first_leg)))
        else:
            logger.warning(f"Itinerary {itinerary.id}: no international airport for {first_leg.city_name}")
        if departure is not None:
            slots.append((departure, home, last_date(last_leg)))
        else:
            logger.warning(f"Itinerary {itinerary.id}: no international airport for {last_leg.city_name}")
        return slots

    async def _invalidate_international(
        self,
        db: AsyncSession,
        itinerary: Itinerary,
        wanted: list[tuple[Place, Place, date]],
        party: Party,
        force: bool,
    ) -> list[tuple[Place, Place, date]]:
        """Drop international flights that match no wanted slot; return the slots still missing."""
        ids = [uuid.UUID(str(ref)) for ref in itinerary.international_flights or []]
        rows = []
        if ids:
            result = await db.execute(select(Flight).where(Flight.id.in_(ids)))
            rows = list(result.scalars().all())

        missing = list(wanted)
        kept = []
        for row in rows:
            signature = (row.origin, row.destination, row.departure_date, row.adults, row.children)
            match = next(
                (
                    slot for slot in missing
                    if (slot[0].iata_code, slot[1].iata_code, slot[2], party.adults, party.children) == signature
                ),
                None,
            )
            if match is not None and not force:
                missing.remove(match)
                kept.append(str(row.id))
                continue
            reason = "forced" if force else "international context changed"
            await self._delete(db, itinerary, "Flight", row.id, reason)
        itinerary.international_flights = kept
        return missing

    # --- Fetching ---

    def _collect_tasks(
        self,
        tree: ItineraryTree,
        cities: dict[uuid.UUID, City],
        missing_international: list[tuple[Place, Place, date]],
    ) -> list[FetchTask]:
        tasks = []
        for i, leg in enumerate(tree.legs):
            city = cities.get(leg.city)
            if leg.transport is not None and leg.transport.mode_details is None and i + 1 < len(tree.legs):
                nxt = tree.legs[i + 1]
                tasks.append(FetchTask(
                    slot="transport",
                    leg_index=i,
                    supplier=self.suppliers[leg.transport.mode],
                    origin=self._place(city, leg.city_name),
                    destination=self._place(cities.get(nxt.city), nxt.city_name),
                    travel_date=first_date(nxt),
                    mode=leg.transport.mode,
                ))
            if leg.hotel_details is None:
                place = self._place(city, leg.city_name)
                tasks.append(FetchTask(
                    slot="hotel",
                    leg_index=i,
                    supplier=self.hotel,
                    origin=place,
                    destination=place,
                    travel_date=first_date(leg),
                    end_date=last_date(leg),
                ))

        for k, (origin, destination, day) in enumerate(missing_international):
            tasks.append(FetchTask(
                slot="international",
                leg_index=k,
                supplier=self.international_flight,
                origin=origin,
                destination=destination,
                travel_date=day,
            ))
        return tasks

    async def _search(self, task: FetchTask, party: Party) -> list[Offer]:
        key = None
        if self.cache is not None:
            key = self.cache.offers_key(
                f"{task.supplier.category}{'-intl' if task.slot == 'international' else ''}",
                task.origin.iata_code or task.origin.name,
                task.destination.iata_code or task.destination.name,
                task.travel_date,
                task.end_date,
                party.cache_key(),
            )
            cached = await self.cache.get_offers(key)
            if cached is not None:
                return [
                    Offer(price=Decimal(str(o["price"])), currency=o["currency"], vendor_metadata=o.get("vendor_metadata") or {})
                    for o in cached
                ]

        offers = await task.supplier.search(
            task.origin, task.destination, task.travel_date, party, end_date=task.end_date
        )
        if self.cache is not None and offers:
            await self.cache.set_offers(
                key,
                [{"price": str(o.price), "currency": o.currency, "vendor_metadata": o.vendor_metadata} for o in offers],
            )
        return offers

    def _persist(
        self, db: AsyncSession, itinerary: Itinerary, tree: ItineraryTree, task: FetchTask, offer: Offer, party: Party
    ):
        price = offer.in_base_currency()
        common = {
            "id": uuid.uuid4(),
            "itinerary_id": itinerary.id,
            "price": price,
            "currency": settings.base_currency,
            "supplier_price": offer.price,
            "supplier_currency": offer.currency,
            "vendor_metadata": offer.vendor_metadata,
        }
        leg = tree.legs[task.leg_index] if task.slot != "international" else None

        if task.slot == "hotel":
            row = Hotel(
                city=leg.city_name,
                check_in=task.travel_date,
                check_out=task.end_date,
                adults=party.adults,
                children=party.children,
                **common,
            )
            leg.hotel_details = row.id
        elif task.slot == "international":
            row = Flight(
                origin=task.origin.iata_code,
                destination=task.destination.iata_code,
                departure_date=task.travel_date,
                adults=party.adults,
                children=party.children,
                is_international=True,
                **common,
            )
            itinerary.international_flights = [*(itinerary.international_flights or []), str(row.id)]
        elif task.mode == "Flight":
            row = Flight(
                origin=task.origin.name,
                destination=task.destination.name,
                departure_date=task.travel_date,
                adults=party.adults,
                children=party.children,
                **common,
            )
            leg.transport.mode_details = row.id
        elif task.mode == "Car":
            row = Taxi(
                origin=task.origin.name,
                destination=task.destination.name,
                pickup_date=task.travel_date,
                passengers=party.travellers,
                **common,
            )
            leg.transport.mode_details = row.id
        else:
            row = Ferry(
                origin=task.origin.name,
                destination=task.destination.name,
                departure_date=task.travel_date,
                passengers=party.travellers,
                **common,
            )
            leg.transport.mode_details = row.id

        db.add(row)
        logger.info(
            f"Itinerary {itinerary.id}: priced {row.__tablename__} {row.id} "
            f"{task.origin.name}->{task.destination.name} {task.travel_date} = {price} {settings.base_currency}"
        )

    # --- Signatures ---

    @staticmethod
    def _transport_signature(mode: str, origin: str, destination: str, day: date, party: Party) -> tuple:
        if mode == "Flight":
            return (origin, destination, day, party.adults, party.children)
        return (origin, destination, day, party.travellers)

    @staticmethod
    def _row_transport_signature(mode: str, row) -> tuple:
        if mode == "Flight":
            return (row.origin, row.destination, row.departure_date, row.adults, row.children)
        if mode == "Car":
            return (row.origin, row.destination, row.pickup_date, row.passengers)
        return (row.origin, row.destination, row.departure_date, row.passengers)

    async def close(self):
        for supplier in {*self.suppliers.values(), self.hotel, self.international_flight}:
            await supplier.close()


resource_refresh = ResourceRefreshCoordinator()
