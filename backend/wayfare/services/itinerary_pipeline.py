"""Itinerary pipeline — load -> mutate -> refresh -> cost -> save with history.

Each public method is one request's worth of work inside a single
transaction: the tree is mutated in memory, suppliers are called, totals are
recomputed and the aggregate is written once with its history row. Any error
rolls the whole transaction back.
"""

import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from wayfare.config import settings
from wayfare.data.currency import format_price
from wayfare.errors import ItineraryError, StaleItineraryError
from wayfare.models.catalog import Activity, City, Destination
from wayfare.models.itinerary import Itinerary
from wayfare.schemas.itinerary import (
    TRANSPORT_MODES,
    CreateItineraryRequest,
    ItineraryTree,
    Room,
    transport_for_mode,
)
from wayfare.services.cost_engine import CostEngine, cost_engine
from wayfare.services.discount_engine import DiscountEngine, discount_engine
from wayfare.services.itinerary_dates import recalculate
from wayfare.services.itinerary_mutator import ItineraryMutator, itinerary_mutator
from wayfare.services.itinerary_store import ItineraryStore, itinerary_store
from wayfare.services.resource_refresh import ResourceRefreshCoordinator, resource_refresh

logger = logging.getLogger(__name__)

Mutation = Callable[[Itinerary, ItineraryTree], Awaitable[ItineraryTree]]


class ItineraryPipeline:
    def __init__(
        self,
        mutator: ItineraryMutator | None = None,
        refresher: ResourceRefreshCoordinator | None = None,
        costs: CostEngine | None = None,
        store: ItineraryStore | None = None,
        discounts: DiscountEngine | None = None,
    ):
        self.mutator = mutator or itinerary_mutator
        self.refresher = refresher or resource_refresh
        self.costs = costs or cost_engine
        self.store = store or itinerary_store
        self.discounts = discounts or discount_engine

    async def run(
        self,
        db: AsyncSession,
        itinerary_id: uuid.UUID,
        user_id: uuid.UUID | None,
        mutate: Mutation,
        comment: str,
        *,
        force_refresh: bool = False,
    ) -> Itinerary:
        try:
            # 1. Load
            itinerary = await self.store.load(db, itinerary_id, user_id)
            previous = self.store.tree_of(itinerary)

            # 2. Mutate in memory
            tree = await mutate(itinerary, previous.model_copy(deep=True))

            # 3. Refresh priced sub-resources
            tree = await self.refresher.refresh(db, itinerary, previous, tree, force=force_refresh)
            await self.store.delete_dropped_activities(db, itinerary, tree)

            # 4. Cost
            await self.costs.calculate(db, itinerary, tree)

            # 5. Persist
            await self.store.save_with_history(db, itinerary, previous, tree, user_id, comment)
            await db.commit()
        except StaleDataError as e:
            await db.rollback()
            raise StaleItineraryError("Itinerary was modified by another request; reload and retry") from e
        except Exception:
            await db.rollback()
            raise

        return itinerary

    # --- Creation ---

    async def create(self, db: AsyncSession, user_id: uuid.UUID, req: CreateItineraryRequest) -> Itinerary:
        try:
            # 1. Validate catalog references
            destination = await db.get(Destination, req.destination_id)
            if destination is None or not destination.active:
                raise ItineraryError(f"Unknown destination {req.destination_id}")

            result = await db.execute(select(City).where(City.id.in_(req.cities)))
            cities_by_id = {c.id: c for c in result.scalars().all()}
            missing = [str(c) for c in req.cities if c not in cities_by_id]
            if missing:
                raise ItineraryError(f"Unknown cities: {', '.join(missing)}")
            cities = [cities_by_id[c] for c in dict.fromkeys(req.cities)]

            catalog: dict[uuid.UUID, list[Activity]] = {}
            if req.activities:
                result = await db.execute(select(Activity).where(Activity.id.in_(req.activities)))
                chosen = list(result.scalars().all())
                missing = {str(a) for a in req.activities} - {str(a.id) for a in chosen}
                if missing:
                    raise ItineraryError(f"Unknown activities: {', '.join(sorted(missing))}")
                order = {a: k for k, a in enumerate(req.activities)}
                for activity in sorted(chosen, key=lambda a: order[a.id]):
                    catalog.setdefault(activity.city_id, []).append(activity)
            for city in cities:
                if city.id not in catalog:
                    catalog[city.id] = await self.mutator.catalog_activities(db, city.id)

            # 2. Draft
            by_name = {c.name: c for c in cities}
            draft = await self.mutator.generator.generate(
                [c.name for c in cities],
                {c.name: [a.name for a in catalog[c.id]] for c in cities},
            )

            itinerary = Itinerary(
                id=uuid.uuid4(),
                user_id=user_id,
                destination_id=destination.id,
                title=draft.title,
                start_date=req.start_date,
                travelling_with=req.travelling_with,
                rooms=[room.model_dump() for room in req.rooms],
                departure_city=req.departure_city.upper() if req.departure_city else None,
                international_flights=[],
                discounts=[],
                currency=settings.base_currency,
            )

            legs = []
            for draft_leg in draft.legs:
                city = by_name[draft_leg.city]
                leg = await self.mutator.build_leg(db, itinerary.id, city, draft_leg, catalog[city.id])
                mode = draft_leg.transport_mode if draft_leg.transport_mode in TRANSPORT_MODES else "Flight"
                leg.transport = transport_for_mode(mode)
                legs.append(leg)
            legs[-1].transport = None

            # 3. Normalize
            tree = recalculate(
                ItineraryTree(
                    title=draft.title,
                    subtitle=draft.subtitle,
                    destination=destination.id,
                    legs=legs,
                ),
                req.start_date,
            )

            # 4. Refresh, cost, persist
            tree = await self.refresher.refresh(db, itinerary, None, tree)
            await self.costs.calculate(db, itinerary, tree)
            await self.store.save_with_history(db, itinerary, None, tree, user_id, "created")
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            f"Itinerary {itinerary.id} created for user {user_id} with {len(tree.legs)} cities, "
            f"grand total {format_price(float(itinerary.grand_total), itinerary.currency)}"
        )
        return itinerary

    # --- Mutations ---

    async def add_city(self, db, itinerary_id, user_id, new_city: str, position: int) -> Itinerary:
        async def mutate(itinerary, tree):
            return await self.mutator.add_city(db, itinerary, tree, position, new_city)

        return await self.run(db, itinerary_id, user_id, mutate, f"add city {new_city} at {position}")

    async def delete_city(self, db, itinerary_id, user_id, index: int) -> Itinerary:
        async def mutate(itinerary, tree):
            return await self.mutator.delete_city(itinerary, tree, index)

        return await self.run(db, itinerary_id, user_id, mutate, f"delete city {index}")

    async def replace_city(self, db, itinerary_id, user_id, index: int, new_city: str) -> Itinerary:
        async def mutate(itinerary, tree):
            return await self.mutator.replace_city(db, itinerary, tree, index, new_city)

        return await self.run(db, itinerary_id, user_id, mutate, f"replace city {index} with {new_city}")

    async def add_days(self, db, itinerary_id, user_id, index: int, count: int) -> Itinerary:
        async def mutate(itinerary, tree):
            return await self.mutator.add_days(db, itinerary, tree, index, count)

        return await self.run(db, itinerary_id, user_id, mutate, f"add {count} day(s) to city {index}")

    async def delete_days(self, db, itinerary_id, user_id, index: int, count: int) -> Itinerary:
        async def mutate(itinerary, tree):
            return await self.mutator.delete_days(itinerary, tree, index, count)

        return await self.run(db, itinerary_id, user_id, mutate, f"delete {count} day(s) from city {index}")

    async def change_transport_mode(self, db, itinerary_id, user_id, index: int, new_mode: str) -> Itinerary:
        async def mutate(itinerary, tree):
            return await self.mutator.change_transport_mode(itinerary, tree, index, new_mode)

        return await self.run(db, itinerary_id, user_id, mutate, f"transport of city {index} -> {new_mode}")

    async def replace_activity(
        self, db, itinerary_id, user_id, scheduled_activity_id: uuid.UUID, new_activity_id: uuid.UUID
    ) -> Itinerary:
        async def mutate(itinerary, tree):
            return await self.mutator.replace_activity(db, itinerary, tree, scheduled_activity_id, new_activity_id)

        return await self.run(db, itinerary_id, user_id, mutate, f"replace activity {scheduled_activity_id}")

    async def replace_with_leisure(self, db, itinerary_id, user_id, scheduled_activity_id: uuid.UUID) -> Itinerary:
        async def mutate(itinerary, tree):
            return await self.mutator.replace_with_leisure(db, itinerary, tree, scheduled_activity_id)

        return await self.run(db, itinerary_id, user_id, mutate, f"leisure for activity {scheduled_activity_id}")

    async def update_details(
        self,
        db,
        itinerary_id,
        user_id,
        new_start_date: date | None = None,
        travelling_with: str | None = None,
        rooms: list[Room] | None = None,
    ) -> Itinerary:
        async def mutate(itinerary, tree):
            return await self.mutator.update_details(itinerary, tree, new_start_date, travelling_with, rooms)

        return await self.run(db, itinerary_id, user_id, mutate, "update details")

    async def add_coupon(self, db, itinerary_id, user_id, discount_id: uuid.UUID) -> Itinerary:
        """Validate a general discount, record it on the itinerary and recompute."""

        async def mutate(itinerary, tree):
            discount = await self.discounts.validate_coupon(db, itinerary, discount_id, user_id)
            itinerary.discounts = [*(itinerary.discounts or []), str(discount.id)]
            return tree

        return await self.run(db, itinerary_id, user_id, mutate, f"add coupon {discount_id}")

    async def reprice(self, db, itinerary_id: uuid.UUID) -> Itinerary:
        """Drop and refetch every priced sub-resource, then recompute."""

        async def mutate(itinerary, tree):
            return tree

        return await self.run(db, itinerary_id, None, mutate, "nightly repricing", force_refresh=True)

    async def delete(self, db: AsyncSession, itinerary_id: uuid.UUID, user_id: uuid.UUID):
        try:
            itinerary = await self.store.load(db, itinerary_id, user_id)
            await self.store.delete(db, itinerary)
            await db.commit()
        except Exception:
            await db.rollback()
            raise


itinerary_pipeline = ItineraryPipeline()
