"""Itinerary Store — load, save-with-history and cascading delete of the aggregate."""

import logging
import uuid

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from wayfare.database import utcnow
from wayfare.errors import ItineraryNotFound, StaleItineraryError
from wayfare.models.itinerary import PRICE_FIELDS, Itinerary, ItineraryVersion, ScheduledActivity
from wayfare.models.pricing import Ferry, Flight, Hotel, Taxi
from wayfare.schemas.itinerary import ItineraryTree

logger = logging.getLogger(__name__)


def activity_ids(tree: ItineraryTree) -> set[uuid.UUID]:
    return {a for leg in tree.legs for day in leg.days for a in day.activities}


class ItineraryStore:
    async def load(self, db: AsyncSession, itinerary_id: uuid.UUID, user_id: uuid.UUID | None = None) -> Itinerary:
        itinerary = await db.get(Itinerary, itinerary_id)
        if itinerary is None or (user_id is not None and itinerary.user_id != user_id):
            raise ItineraryNotFound(f"Itinerary {itinerary_id} not found")
        return itinerary

    @staticmethod
    def tree_of(itinerary: Itinerary) -> ItineraryTree:
        return ItineraryTree.model_validate(itinerary.tree)

    async def save_with_history(
        self,
        db: AsyncSession,
        itinerary: Itinerary,
        previous_tree: ItineraryTree | None,
        next_tree: ItineraryTree,
        changed_by: uuid.UUID | None,
        comment: str | None = None,
    ) -> ItineraryVersion:
        """Write the aggregate and its history row in the current transaction.

        Raises StaleItineraryError when another writer saved the itinerary
        since it was loaded.
        """
        is_new = previous_tree is None
        version_number = 1 if is_new else itinerary.version + 1

        itinerary.tree = next_tree.model_dump(mode="json")
        itinerary.version = version_number
        itinerary.updated_at = utcnow()
        if is_new:
            db.add(itinerary)

        history = ItineraryVersion(
            itinerary_id=itinerary.id,
            version_number=version_number,
            previous_tree=previous_tree.model_dump(mode="json") if previous_tree is not None else None,
            tree=itinerary.tree,
            prices={field: str(getattr(itinerary, field)) for field in PRICE_FIELDS},
            changed_by=changed_by,
            comment=comment,
        )
        db.add(history)

        try:
            await db.flush()
        except StaleDataError as e:
            raise StaleItineraryError(
                "Itinerary was modified by another request; reload and retry"
            ) from e

        logger.info(f"Itinerary {itinerary.id}: saved version {version_number} ({comment})")
        return history

    async def delete_dropped_activities(self, db: AsyncSession, itinerary: Itinerary, tree: ItineraryTree):
        """Delete the itinerary's scheduled activities that the tree no longer references."""
        keep = activity_ids(tree)
        query = delete(ScheduledActivity).where(ScheduledActivity.itinerary_id == itinerary.id)
        if keep:
            query = query.where(ScheduledActivity.id.not_in(keep))
        await db.execute(query)

    async def delete(self, db: AsyncSession, itinerary: Itinerary):
        """Remove the itinerary and everything it owns."""
        for model in (Flight, Hotel, Taxi, Ferry):
            await db.execute(delete(model).where(model.itinerary_id == itinerary.id))
        await db.execute(delete(ScheduledActivity).where(ScheduledActivity.itinerary_id == itinerary.id))
        await db.execute(delete(ItineraryVersion).where(ItineraryVersion.itinerary_id == itinerary.id))
        await db.delete(itinerary)
        await db.flush()
        logger.info(f"Itinerary {itinerary.id} deleted with all priced sub-resources")

    async def list_versions(self, db: AsyncSession, itinerary_id: uuid.UUID) -> list[ItineraryVersion]:
        result = await db.execute(
            select(ItineraryVersion)
            .where(ItineraryVersion.itinerary_id == itinerary_id)
            .order_by(ItineraryVersion.version_number.desc())
        )
        return list(result.scalars().all())


itinerary_store = ItineraryStore()
