"""Discount Engine — eligibility, usage caps, amount computation and the usage ledger."""

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import distinct, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from wayfare.config import settings
from wayfare.data.currency import quantize
from wayfare.errors import DiscountAlreadyApplied, DiscountNotFound, DiscountRejected
from wayfare.models.discount import Discount, DiscountUsage
from wayfare.models.itinerary import Itinerary

logger = logging.getLogger(__name__)

# General discounts go to the first flagged category, in this order
GENERAL_PRIORITY = ("flights", "hotels", "activities", "package")


@dataclass
class UsageCheck:
    allowed: bool
    reason: str | None = None
    existing: DiscountUsage | None = None


class DiscountEngine:
    async def get(self, db: AsyncSession, discount_id: uuid.UUID) -> Discount:
        discount = await db.get(Discount, discount_id)
        if discount is None:
            raise DiscountNotFound(f"Discount {discount_id} not found")
        return discount

    async def check_eligibility(
        self,
        db: AsyncSession,
        discount: Discount,
        user_id: uuid.UUID,
        itinerary_id: uuid.UUID | None = None,
    ):
        """Raise DiscountRejected when the user's type does not match the discount."""
        if discount.user_type == "all":
            return

        query = select(func.count(Itinerary.id)).where(Itinerary.user_id == user_id)
        if itinerary_id is not None:
            query = query.where(Itinerary.id != itinerary_id)
        prior = (await db.execute(query)).scalar_one()

        if discount.user_type == "new" and prior > 0:
            raise DiscountRejected("This discount is only available to new users")
        if discount.user_type == "old" and prior == 0:
            raise DiscountRejected("This discount is only available to returning users")

    async def find_usage(
        self, db: AsyncSession, discount: Discount, user_id: uuid.UUID, itinerary_id: uuid.UUID
    ) -> DiscountUsage | None:
        """The ledger row already written for this discount on this itinerary, if any."""
        result = await db.execute(
            select(DiscountUsage).where(
                DiscountUsage.discount_id == discount.id,
                DiscountUsage.user_id == user_id,
                DiscountUsage.itinerary_id == itinerary_id,
            ).limit(1)
        )
        return result.scalar_one_or_none()

    async def check_usage(
        self,
        db: AsyncSession,
        discount: Discount,
        user_id: uuid.UUID,
        itinerary_id: uuid.UUID | None = None,
    ) -> UsageCheck:
        """Apply the global and per-user caps.

        A usage already recorded for this itinerary is always allowed so that
        recomputing an itinerary never counts the discount twice.
        """
        if itinerary_id is not None:
            existing = await self.find_usage(db, discount, user_id, itinerary_id)
            if existing is not None:
                return UsageCheck(allowed=True, existing=existing)

        total_users = (await db.execute(
            select(func.count(distinct(DiscountUsage.user_id))).where(DiscountUsage.discount_id == discount.id)
        )).scalar_one()
        user_uses = (await db.execute(
            select(func.count(DiscountUsage.id)).where(
                DiscountUsage.discount_id == discount.id,
                DiscountUsage.user_id == user_id,
            )
        )).scalar_one()

        if total_users >= discount.no_of_users_total and user_uses == 0:
            return UsageCheck(allowed=False, reason="Discount usage limit reached")
        if user_uses >= discount.no_of_uses_per_user:
            return UsageCheck(allowed=False, reason="You have already used this discount the maximum number of times")
        return UsageCheck(allowed=True)

    def compute(self, discount: Discount, amount: Decimal) -> Decimal:
        """amount x percentage / 100, capped at max_discount unless no_limit."""
        if amount <= 0:
            return Decimal("0")
        value = Decimal(str(amount)) * Decimal(str(discount.discount_percentage)) / Decimal("100")
        if not discount.no_limit and discount.max_discount is not None:
            value = min(value, Decimal(str(discount.max_discount)))
        return quantize(value)

    async def record(
        self,
        db: AsyncSession,
        discount: Discount,
        user_id: uuid.UUID,
        amount: Decimal,
        itinerary_id: uuid.UUID | None = None,
        existing: DiscountUsage | None = None,
    ) -> DiscountUsage:
        """Write a ledger row, or update the itinerary's existing row with the latest amount."""
        amount = quantize(Decimal(str(amount)))
        previous = Decimal(str(existing.amount)) if existing is not None else Decimal("0")
        if existing is not None:
            existing.amount = amount
            usage = existing
        else:
            usage = DiscountUsage(
                discount_id=discount.id, user_id=user_id, itinerary_id=itinerary_id, amount=amount
            )
            db.add(usage)
            discount.total_discount_usage_count = (discount.total_discount_usage_count or 0) + 1
        discount.total_discount_value = (
            Decimal(str(discount.total_discount_value or 0)) - previous + amount
        )
        await db.flush()
        return usage

    async def apply(
        self,
        db: AsyncSession,
        discount: Discount,
        user_id: uuid.UUID,
        amount: Decimal,
        itinerary_id: uuid.UUID | None = None,
    ) -> Decimal:
        """Eligibility -> caps -> amount -> ledger. Returns 0 when a cap is reached.

        Raises DiscountRejected for an ineligible user. Once a usage row exists for
        the itinerary the discount was already granted, so only the amount is
        recomputed and the row rewritten.
        """
        existing = None
        if itinerary_id is not None:
            existing = await self.find_usage(db, discount, user_id, itinerary_id)
        if existing is None:
            await self.check_eligibility(db, discount, user_id, itinerary_id)
            usage = await self.check_usage(db, discount, user_id, itinerary_id)
            if not usage.allowed:
                logger.info(f"Discount {discount.id} yields 0 for user {user_id}: {usage.reason}")
                return Decimal("0")

        value = self.compute(discount, Decimal(str(amount)))
        await self.record(db, discount, user_id, value, itinerary_id, existing)
        return value

    async def redeem(
        self, db: AsyncSession, discount_id: uuid.UUID, user_id: uuid.UUID, amount: Decimal
    ) -> tuple[Decimal, str]:
        """Standalone application outside an itinerary. Returns (amount, message)."""
        discount = await self.get(db, discount_id)
        if not self.is_live(discount, date.today()):
            return Decimal("0"), "This discount is not active"
        try:
            await self.check_eligibility(db, discount, user_id)
        except DiscountRejected as e:
            return Decimal("0"), e.message

        usage = await self.check_usage(db, discount, user_id)
        if not usage.allowed:
            return Decimal("0"), usage.reason

        value = self.compute(discount, Decimal(str(amount)))
        await self.record(db, discount, user_id, value)
        return value, "Discount applied"

    # --- Catalog lookups ---

    @staticmethod
    def is_live(discount: Discount, today: date) -> bool:
        if not discount.active or discount.archived:
            return False
        if discount.start_date and today < discount.start_date:
            return False
        if discount.end_date and today > discount.end_date:
            return False
        return True

    async def find_couponless(
        self, db: AsyncSession, destination_id: uuid.UUID, today: date | None = None
    ) -> Discount | None:
        """Most recently created live couponless discount covering the destination."""
        today = today or date.today()
        result = await db.execute(
            select(Discount)
            .where(
                Discount.discount_type == "couponless",
                Discount.active.is_(True),
                Discount.archived.is_(False),
                or_(Discount.start_date.is_(None), Discount.start_date <= today),
                or_(Discount.end_date.is_(None), Discount.end_date >= today),
            )
            .order_by(Discount.created_at.desc())
        )
        for discount in result.scalars().all():
            destinations = [str(d) for d in (discount.destinations or [])]
            if not destinations or str(destination_id) in destinations:
                return discount
        return None

    # --- General discounts on an itinerary ---

    @staticmethod
    def general_category(discount: Discount) -> str | None:
        flags = discount.applicable_on or {}
        for category in GENERAL_PRIORITY:
            if flags.get(category):
                return category
        return None

    @staticmethod
    def category_amount(itinerary: Itinerary, category: str) -> Decimal:
        if category == "flights":
            return Decimal(str(itinerary.flights_price)) + Decimal(str(itinerary.international_flights_price))
        if category == "hotels":
            return Decimal(str(itinerary.hotels_price))
        if category == "activities":
            return Decimal(str(itinerary.activities_price))
        return Decimal(str(itinerary.total_price))

    async def validate_coupon(
        self, db: AsyncSession, itinerary: Itinerary, discount_id: uuid.UUID, user_id: uuid.UUID
    ) -> Discount:
        """Checks for the explicit add-coupon action. Raises instead of returning 0."""
        discount = await self.get(db, discount_id)
        if discount.discount_type != "general":
            raise DiscountRejected("Only general discounts can be applied as a coupon")
        if not self.is_live(discount, date.today()):
            raise DiscountRejected("This discount is not active")
        if str(discount.id) in [str(d) for d in itinerary.discounts or []]:
            raise DiscountAlreadyApplied("This discount is already applied to the itinerary")
        if self.general_category(discount) is None:
            raise DiscountRejected("This discount does not apply to itineraries")

        await self.check_eligibility(db, discount, user_id, itinerary.id)
        usage = await self.check_usage(db, discount, user_id, itinerary.id)
        if not usage.allowed:
            raise DiscountRejected(usage.reason)
        return discount

    async def apply_general(
        self, db: AsyncSession, itinerary: Itinerary, discount: Discount, user_id: uuid.UUID
    ) -> Decimal:
        """Apply a general discount to the freshly computed totals of an itinerary."""
        category = self.general_category(discount)
        if category is None:
            return Decimal("0")

        value = await self.apply(db, discount, user_id, self.category_amount(itinerary, category), itinerary.id)
        if value <= 0:
            return value

        tax_rate = Decimal(str(settings.tax_rate))
        total = Decimal(str(itinerary.total_price)) - value
        itinerary.total_price = quantize(total)
        itinerary.general_discount = quantize(Decimal(str(itinerary.general_discount or 0)) + value)
        itinerary.current_total_price = quantize(
            total * (Decimal("1") + tax_rate) + Decimal(str(itinerary.service_fee or 0))
        )
        logger.info(f"Itinerary {itinerary.id}: general discount {discount.id} on {category} = {value}")
        return value


discount_engine = DiscountEngine()
