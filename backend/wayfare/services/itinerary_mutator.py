"""Tree Mutation Engine — structural edits of an itinerary tree.

Every operation validates its input before touching anything, works on a
copy of the tree and returns a normalized tree (day numbers, dates,
next-city pointers). No supplier is called here; priced sub-resources
whose context changed are picked up by the refresh coordinator.
"""

import logging
import uuid
from datetime import date, datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from wayfare.errors import (
    ActivityNotFound,
    CatalogActivityNotFound,
    CityNotFound,
    InsufficientDays,
    InvalidDayCount,
    InvalidIndex,
    InvalidMode,
    InvalidPosition,
    LastLegError,
)
from wayfare.models.catalog import Activity, City
from wayfare.models.itinerary import Itinerary, ScheduledActivity
from wayfare.schemas.itinerary import (
    TRANSPORT_MODES,
    CityLeg,
    Day,
    DraftLeg,
    ItineraryTree,
    Room,
    transport_for_mode,
)
from wayfare.services.draft_generator import DraftGenerator, draft_generator
from wayfare.services.itinerary_dates import recalculate

logger = logging.getLogger(__name__)

LEISURE = "Leisure"
DAY_START = "09:00"
GAP_MINUTES = 30


def _add_minutes(hhmm: str, minutes: int) -> str:
    t = datetime.strptime(hhmm, "%H:%M") + timedelta(minutes=minutes)
    return t.strftime("%H:%M")


class ItineraryMutator:
    def __init__(self, generator: DraftGenerator | None = None):
        self.generator = generator or draft_generator

    # --- Catalog helpers ---

    async def find_city(self, db: AsyncSession, name: str, destination_id: uuid.UUID | None = None) -> City:
        """Look up a city by name, preferring the itinerary's destination."""
        query = select(City).where(func.lower(City.name) == name.strip().lower())
        result = await db.execute(query)
        cities = list(result.scalars().all())
        if not cities:
            raise CityNotFound(f"City '{name}' not found")
        for city in cities:
            if city.destination_id == destination_id:
                return city
        return cities[0]

    async def catalog_activities(self, db: AsyncSession, city_id: uuid.UUID) -> list[Activity]:
        result = await db.execute(
            select(Activity)
            .where(Activity.city_id == city_id, Activity.category != LEISURE)
            .order_by(Activity.name)
        )
        return list(result.scalars().all())

    async def get_leisure(self, db: AsyncSession, city_id: uuid.UUID) -> ScheduledActivity:
        """Get-or-create the shared Leisure placeholder for a city."""
        result = await db.execute(
            select(ScheduledActivity).where(
                ScheduledActivity.city_id == city_id,
                ScheduledActivity.category == LEISURE,
                ScheduledActivity.itinerary_id.is_(None),
            ).limit(1)
        )
        leisure = result.scalar_one_or_none()
        if leisure:
            return leisure

        leisure = ScheduledActivity(
            id=uuid.uuid4(),
            itinerary_id=None,
            city_id=city_id,
            name=LEISURE,
            category=LEISURE,
            duration=0,
        )
        db.add(leisure)
        await db.flush()
        logger.info(f"Created Leisure placeholder for city {city_id}")
        return leisure

    # --- Leg construction ---

    async def build_leg(
        self,
        db: AsyncSession,
        itinerary_id: uuid.UUID,
        city: City,
        draft: DraftLeg,
        catalog: list[Activity],
    ) -> CityLeg:
        """Materialize a drafted leg: one ScheduledActivity row per drafted activity."""
        by_name = {a.name.lower(): a for a in catalog}
        days = []
        for draft_day in draft.days:
            ids = []
            clock = DAY_START
            for name in draft_day.activities:
                activity = by_name.get(name.lower())
                if activity is None:
                    continue
                if activity.opens_at and activity.opens_at > clock:
                    clock = activity.opens_at
                scheduled = ScheduledActivity(
                    id=uuid.uuid4(),
                    itinerary_id=itinerary_id,
                    city_id=city.id,
                    activity_id=activity.id,
                    name=activity.name,
                    category=activity.category,
                    duration=activity.duration,
                    start_time=clock,
                    end_time=_add_minutes(clock, activity.duration),
                )
                db.add(scheduled)
                ids.append(scheduled.id)
                clock = _add_minutes(clock, activity.duration + GAP_MINUTES)
            if not ids:
                ids.append((await self.get_leisure(db, city.id)).id)
            days.append(Day(day_number=len(days) + 1, date=date.min, activities=ids))

        if not days:
            days.append(Day(day_number=1, date=date.min, activities=[(await self.get_leisure(db, city.id)).id]))

        return CityLeg(city=city.id, city_name=city.name, stay_days=len(days), days=days)

    async def _draft_leg(
        self, db: AsyncSession, itinerary: Itinerary, city: City, max_days: int | None = None
    ) -> CityLeg:
        catalog = await self.catalog_activities(db, city.id)
        draft = await self.generator.generate([city.name], {city.name: [a.name for a in catalog]})
        draft_leg = draft.legs[0]
        if max_days is not None:
            draft_leg.days = draft_leg.days[:max_days]
        return await self.build_leg(db, itinerary.id, city, draft_leg, catalog)

    async def _leisure_days(self, db: AsyncSession, city_id: uuid.UUID, count: int) -> list[Day]:
        leisure = await self.get_leisure(db, city_id)
        return [Day(day_number=1, date=date.min, activities=[leisure.id]) for _ in range(count)]

    @staticmethod
    def _check_index(tree: ItineraryTree, index: int):
        if index < 0 or index >= len(tree.legs):
            raise InvalidIndex(f"City index {index} is out of range (0-{len(tree.legs) - 1})")

    @staticmethod
    def _check_count(count: int):
        if count < 1:
            raise InvalidDayCount("Number of days must be at least 1")

    @staticmethod
    def _fix_transports(tree: ItineraryTree):
        """Every leg but the last travels onward; the last leg has no transfer."""
        for i, leg in enumerate(tree.legs):
            if i == len(tree.legs) - 1:
                leg.transport = None
            elif leg.transport is None:
                leg.transport = transport_for_mode("Flight")

    # --- Operations ---

    async def add_city(
        self, db: AsyncSession, itinerary: Itinerary, tree: ItineraryTree, position: int, new_city: str
    ) -> ItineraryTree:
        if position < 0 or position > len(tree.legs):
            raise InvalidPosition(f"Position {position} is out of range (0-{len(tree.legs)})")
        city = await self.find_city(db, new_city, itinerary.destination_id)

        tree = tree.model_copy(deep=True)
        leg = await self._draft_leg(db, itinerary, city)
        tree.legs.insert(position, leg)
        self._fix_transports(tree)
        logger.info(f"Itinerary {itinerary.id}: added {city.name} at position {position}")
        return recalculate(tree, itinerary.start_date)

    async def delete_city(self, itinerary: Itinerary, tree: ItineraryTree, index: int) -> ItineraryTree:
        self._check_index(tree, index)
        if len(tree.legs) <= 1:
            raise LastLegError("Cannot delete the only city of an itinerary")

        tree = tree.model_copy(deep=True)
        removed = tree.legs.pop(index)
        self._fix_transports(tree)
        logger.info(f"Itinerary {itinerary.id}: deleted {removed.city_name} at index {index}")
        return recalculate(tree, itinerary.start_date)

    async def replace_city(
        self, db: AsyncSession, itinerary: Itinerary, tree: ItineraryTree, index: int, new_city: str
    ) -> ItineraryTree:
        self._check_index(tree, index)
        city = await self.find_city(db, new_city, itinerary.destination_id)

        tree = tree.model_copy(deep=True)
        old = tree.legs[index]
        leg = await self._draft_leg(db, itinerary, city, max_days=old.stay_days)

        # Keep the trip length
        if len(leg.days) < old.stay_days:
            leg.days.extend(await self._leisure_days(db, city.id, old.stay_days - len(leg.days)))
        if old.transport is not None:
            leg.transport = transport_for_mode(old.transport.mode)

        tree.legs[index] = leg
        self._fix_transports(tree)
        logger.info(f"Itinerary {itinerary.id}: replaced {old.city_name} with {city.name}")
        return recalculate(tree, itinerary.start_date)

    async def add_days(
        self, db: AsyncSession, itinerary: Itinerary, tree: ItineraryTree, leg_index: int, count: int
    ) -> ItineraryTree:
        self._check_count(count)
        self._check_index(tree, leg_index)

        tree = tree.model_copy(deep=True)
        leg = tree.legs[leg_index]
        leg.days.extend(await self._leisure_days(db, leg.city, count))
        return recalculate(tree, itinerary.start_date)

    async def delete_days(
        self, itinerary: Itinerary, tree: ItineraryTree, leg_index: int, count: int
    ) -> ItineraryTree:
        self._check_count(count)
        self._check_index(tree, leg_index)
        leg = tree.legs[leg_index]
        if len(leg.days) - count < 1:
            raise InsufficientDays(
                f"{leg.city_name} has {len(leg.days)} day(s); cannot delete {count}"
            )

        tree = tree.model_copy(deep=True)
        del tree.legs[leg_index].days[-count:]
        return recalculate(tree, itinerary.start_date)

    async def replace_activity(
        self,
        db: AsyncSession,
        itinerary: Itinerary,
        tree: ItineraryTree,
        scheduled_activity_id: uuid.UUID,
        new_activity_id: uuid.UUID,
    ) -> ItineraryTree:
        leg_index, day_index = self._locate(tree, scheduled_activity_id)
        scheduled = await db.get(ScheduledActivity, scheduled_activity_id)
        if scheduled is None:
            raise ActivityNotFound(f"Scheduled activity {scheduled_activity_id} not found")
        activity = await db.get(Activity, new_activity_id)
        if activity is None:
            raise CatalogActivityNotFound(f"Activity {new_activity_id} not found")

        tree = tree.model_copy(deep=True)
        if scheduled.itinerary_id is None:
            # Shared Leisure placeholder: give this slot its own row
            replacement = ScheduledActivity(
                id=uuid.uuid4(),
                itinerary_id=itinerary.id,
                city_id=activity.city_id,
                activity_id=activity.id,
                name=activity.name,
                category=activity.category,
                duration=activity.duration,
                start_time=activity.opens_at or DAY_START,
                end_time=_add_minutes(activity.opens_at or DAY_START, activity.duration),
            )
            db.add(replacement)
            day = tree.legs[leg_index].days[day_index]
            day.activities = [replacement.id if a == scheduled_activity_id else a for a in day.activities]
        else:
            scheduled.activity_id = activity.id
            scheduled.name = activity.name
            scheduled.category = activity.category
            scheduled.duration = activity.duration
            if scheduled.start_time:
                scheduled.end_time = _add_minutes(scheduled.start_time, activity.duration)
        return tree

    async def replace_with_leisure(
        self, db: AsyncSession, itinerary: Itinerary, tree: ItineraryTree, scheduled_activity_id: uuid.UUID
    ) -> ItineraryTree:
        leg_index, day_index = self._locate(tree, scheduled_activity_id)

        tree = tree.model_copy(deep=True)
        leg = tree.legs[leg_index]
        leisure = await self.get_leisure(db, leg.city)
        day = leg.days[day_index]
        activities = []
        for activity_id in day.activities:
            new_id = leisure.id if activity_id == scheduled_activity_id else activity_id
            if new_id == leisure.id and leisure.id in activities:
                continue
            activities.append(new_id)
        day.activities = activities
        return tree

    async def change_transport_mode(
        self, itinerary: Itinerary, tree: ItineraryTree, leg_index: int, new_mode: str
    ) -> ItineraryTree:
        if new_mode not in TRANSPORT_MODES:
            raise InvalidMode(f"Invalid transport mode '{new_mode}'. Use one of: {', '.join(TRANSPORT_MODES)}")
        self._check_index(tree, leg_index)
        if leg_index == len(tree.legs) - 1:
            raise InvalidIndex("The last city has no onward transport")

        tree = tree.model_copy(deep=True)
        tree.legs[leg_index].transport = transport_for_mode(new_mode)
        return tree

    async def update_details(
        self,
        itinerary: Itinerary,
        tree: ItineraryTree,
        new_start_date: date | None = None,
        travelling_with: str | None = None,
        rooms: list[Room] | None = None,
    ) -> ItineraryTree:
        if new_start_date is not None:
            itinerary.start_date = new_start_date
        if travelling_with is not None:
            itinerary.travelling_with = travelling_with
        if rooms is not None:
            itinerary.rooms = [room.model_dump() for room in rooms]

        tree = tree.model_copy(deep=True)
        return recalculate(tree, itinerary.start_date)

    @staticmethod
    def _locate(tree: ItineraryTree, scheduled_activity_id: uuid.UUID) -> tuple[int, int]:
        for i, leg in enumerate(tree.legs):
            for k, day in enumerate(leg.days):
                if scheduled_activity_id in day.activities:
                    return i, k
        raise ActivityNotFound(f"Scheduled activity {scheduled_activity_id} is not part of this itinerary")


itinerary_mutator = ItineraryMutator()
