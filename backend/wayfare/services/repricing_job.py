"""Nightly repricing — refetch supplier prices for recently touched itineraries.

Runs the same refresh + cost + save path as the interactive endpoints, with
the refresh forced so every priced sub-resource is dropped and fetched again.
"""

import logging
from datetime import timedelta

from sqlalchemy import or_, select

from wayfare.config import settings
from wayfare.database import async_session_factory, utcnow
from wayfare.models.itinerary import Itinerary
from wayfare.services.itinerary_pipeline import ItineraryPipeline, itinerary_pipeline

logger = logging.getLogger(__name__)


class RepricingJob:
    def __init__(self, pipeline: ItineraryPipeline | None = None, session_factory=None):
        self.pipeline = pipeline or itinerary_pipeline
        self.session_factory = session_factory or async_session_factory

    async def due_itineraries(self) -> list:
        cutoff = utcnow() - timedelta(days=settings.repricing_lookback_days)
        async with self.session_factory() as db:
            result = await db.execute(
                select(Itinerary.id)
                .where(or_(Itinerary.created_at >= cutoff, Itinerary.updated_at >= cutoff))
                .order_by(Itinerary.created_at)
            )
            return list(result.scalars().all())

    async def run_once(self) -> dict:
        """Reprice every due itinerary, each in its own session and transaction."""
        ids = await self.due_itineraries()
        repriced, failed = 0, 0
        for itinerary_id in ids:
            async with self.session_factory() as db:
                try:
                    await self.pipeline.reprice(db, itinerary_id)
                    repriced += 1
                except Exception as e:
                    failed += 1
                    logger.error(f"Repricing failed for itinerary {itinerary_id}: {e}")

        logger.info(f"Repricing run: {repriced} repriced, {failed} failed, {len(ids)} due")
        return {"due": len(ids), "repriced": repriced, "failed": failed}


repricing_job = RepricingJob()
