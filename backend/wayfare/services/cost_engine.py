"""Cost Aggregation Engine — category subtotals, markups, couponless discount, tax and fees.

The couponless discount never reduces the taxable base: tax and the service
fee are charged on the undiscounted shadow total and the discount is taken
off once at the end.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wayfare.config import settings
from wayfare.data.currency import quantize
from wayfare.errors import DiscountNotFound, DiscountRejected
from wayfare.models.catalog import Activity, Destination, MarkupSettings
from wayfare.models.discount import Discount
from wayfare.models.itinerary import Itinerary, ScheduledActivity
from wayfare.models.pricing import Ferry, Flight, Hotel, Taxi
from wayfare.schemas.itinerary import ItineraryTree
from wayfare.services.discount_engine import DiscountEngine, UsageCheck, discount_engine
from wayfare.services.suppliers import Party

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
LEISURE = "Leisure"


@dataclass
class Markups:
    flight: Decimal
    taxi: Decimal
    ferry: Decimal
    stay: Decimal
    destination: Decimal
    service_fee: Decimal

    def for_mode(self, mode: str) -> Decimal:
        return {"Flight": self.flight, "Car": self.taxi, "Ferry": self.ferry}[mode]


def _pct(value: Decimal) -> Decimal:
    return Decimal("1") + value / HUNDRED


class CostEngine:
    def __init__(self, discounts: DiscountEngine | None = None):
        self.discounts = discounts or discount_engine

    async def load_markups(self, db: AsyncSession, destination_id: uuid.UUID) -> Markups:
        """Most recent markup settings row, config defaults otherwise."""
        result = await db.execute(select(MarkupSettings).order_by(MarkupSettings.created_at.desc()).limit(1))
        row = result.scalar_one_or_none()
        destination = await db.get(Destination, destination_id)
        destination_markup = Decimal(str(destination.markup or 0)) if destination else ZERO

        if row is None:
            return Markups(
                flight=Decimal(str(settings.default_flight_markup)),
                taxi=Decimal(str(settings.default_taxi_markup)),
                ferry=Decimal(str(settings.default_ferry_markup)),
                stay=Decimal(str(settings.default_stay_markup)),
                destination=destination_markup,
                service_fee=Decimal(str(settings.default_service_fee)),
            )
        return Markups(
            flight=Decimal(str(row.flight_markup or 0)),
            taxi=Decimal(str(row.taxi_markup or 0)),
            ferry=Decimal(str(row.ferry_markup or 0)),
            stay=Decimal(str(row.stay_markup or 0)),
            destination=destination_markup,
            service_fee=Decimal(str(row.service_fee or 0)),
        )

    async def _couponless(self, db: AsyncSession, itinerary: Itinerary):
        discount = await self.discounts.find_couponless(db, itinerary.destination_id, date.today())
        if discount is None:
            return None, None
        existing = await self.discounts.find_usage(db, discount, itinerary.user_id, itinerary.id)
        if existing is not None:
            return discount, UsageCheck(allowed=True, existing=existing)
        try:
            await self.discounts.check_eligibility(db, discount, itinerary.user_id, itinerary.id)
        except DiscountRejected as e:
            logger.info(f"Itinerary {itinerary.id}: couponless discount {discount.id} skipped: {e.message}")
            return None, None
        usage = await self.discounts.check_usage(db, discount, itinerary.user_id, itinerary.id)
        if not usage.allowed:
            logger.info(f"Itinerary {itinerary.id}: couponless discount {discount.id} skipped: {usage.reason}")
            return None, None
        return discount, usage

    async def _activity_unit_prices(self, db: AsyncSession, tree: ItineraryTree) -> list[Decimal]:
        ids = [a for leg in tree.legs for day in leg.days for a in day.activities]
        if not ids:
            return []
        result = await db.execute(
            select(ScheduledActivity.id, ScheduledActivity.category, Activity.price)
            .outerjoin(Activity, Activity.id == ScheduledActivity.activity_id)
            .where(ScheduledActivity.id.in_(set(ids)))
        )
        rows = {row.id: row for row in result.all()}
        prices = []
        for scheduled_id in ids:
            row = rows.get(scheduled_id)
            if row is None or row.category == LEISURE or row.price is None:
                continue
            prices.append(Decimal(str(row.price)))
        return prices

    async def calculate(self, db: AsyncSession, itinerary: Itinerary, tree: ItineraryTree) -> Itinerary:
        """Recompute and store every price field of `itinerary` from `tree`."""
        markups = await self.load_markups(db, itinerary.destination_id)
        couponless, usage = await self._couponless(db, itinerary)
        applies = (couponless.applicable_on or {}) if couponless else {}
        party = Party.from_rooms(itinerary.rooms or [])

        # 1. International flights, no markup
        international = ZERO
        for ref in itinerary.international_flights or []:
            flight = await db.get(Flight, uuid.UUID(str(ref)))
            if flight is not None:
                international += Decimal(str(flight.price))
        total = international
        shadow = international

        # 2. Domestic transport with category markup
        subtotals = {"Flight": ZERO, "Car": ZERO, "Ferry": ZERO}
        for leg in tree.legs:
            transport = leg.transport
            if transport is None or transport.mode_details is None:
                continue
            model = {"Flight": Flight, "Car": Taxi, "Ferry": Ferry}[transport.mode]
            row = await db.get(model, transport.mode_details)
            if row is None:
                continue
            price = Decimal(str(row.price)) * _pct(markups.for_mode(transport.mode))
            subtotals[transport.mode] += price
            total += price
            shadow += price

        # 3. Couponless discount on all flights, once
        if couponless and applies.get("flights"):
            total -= self.discounts.compute(couponless, international + subtotals["Flight"])

        # 4. Hotels, per leg
        rooms = Decimal(party.room_count)
        hotels = ZERO
        for leg in tree.legs:
            if leg.hotel_details is None:
                continue
            hotel = await db.get(Hotel, leg.hotel_details)
            if hotel is None:
                continue
            price = Decimal(str(hotel.price)) * rooms * _pct(markups.stay)
            hotels += price
            shadow += price
            if couponless and applies.get("hotels"):
                price -= self.discounts.compute(couponless, price)
            total += price

        # 5. Activities, priced per traveller
        travellers = Decimal(party.travellers)
        activities = sum((p * travellers for p in await self._activity_unit_prices(db, tree)), ZERO)
        total += activities
        shadow += activities
        if couponless and applies.get("activities"):
            total -= self.discounts.compute(couponless, activities)

        # 6. Destination markup on the whole trip
        total *= _pct(markups.destination)
        shadow *= _pct(markups.destination)

        # 7. Couponless discount on the package
        if couponless and applies.get("package"):
            total -= self.discounts.compute(couponless, total)

        # 8. Tax and fee on the undiscounted total, discount taken off at the end
        couponless_discount = quantize(shadow) - quantize(total)
        grand_total = quantize(shadow)
        tax = quantize(grand_total * Decimal(str(settings.tax_rate)))
        grand_total += tax + markups.service_fee
        grand_total -= couponless_discount

        # 9. Persist
        itinerary.international_flights_price = quantize(international)
        itinerary.flights_price = quantize(subtotals["Flight"])
        itinerary.taxis_price = quantize(subtotals["Car"])
        itinerary.ferries_price = quantize(subtotals["Ferry"])
        itinerary.hotels_price = quantize(hotels)
        itinerary.activities_price = quantize(activities)
        itinerary.price_without_coupon = quantize(shadow)
        itinerary.total_price = quantize(total)
        itinerary.tax = tax
        itinerary.service_fee = quantize(markups.service_fee)
        itinerary.grand_total = quantize(grand_total)
        itinerary.couponless_discount = couponless_discount
        itinerary.general_discount = ZERO
        itinerary.current_total_price = itinerary.grand_total

        if couponless and (couponless_discount > 0 or usage.existing is not None):
            await self.discounts.record(
                db, couponless, itinerary.user_id, couponless_discount, itinerary.id, usage.existing
            )

        # 10. Replay general discounts against the fresh totals
        await self.apply_general_discounts(db, itinerary)

        logger.info(
            f"Itinerary {itinerary.id}: total={itinerary.total_price} tax={itinerary.tax} "
            f"grand_total={itinerary.grand_total} couponless={itinerary.couponless_discount} "
            f"general={itinerary.general_discount}"
        )
        return itinerary

    async def apply_general_discounts(self, db: AsyncSession, itinerary: Itinerary):
        for discount_id in itinerary.discounts or []:
            discount = await db.get(Discount, uuid.UUID(str(discount_id)))
            if discount is None:
                logger.warning(f"Itinerary {itinerary.id}: applied discount {discount_id} no longer exists")
                continue
            try:
                await self.discounts.apply_general(db, itinerary, discount, itinerary.user_id)
            except (DiscountRejected, DiscountNotFound) as e:
                logger.info(f"Itinerary {itinerary.id}: general discount {discount_id} not reapplied: {e.message}")


cost_engine = CostEngine()
