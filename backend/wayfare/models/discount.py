import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from wayfare.database import Base, JSONType, utcnow

DISCOUNT_CATEGORIES = ("package", "flights", "hotels", "activities", "predefined_packages")


def default_applicable_on() -> dict:
    return {category: category == "package" for category in DISCOUNT_CATEGORIES}


class Discount(Base):
    __tablename__ = "discounts"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[str | None] = mapped_column(String(50), index=True)
    applicable_on: Mapped[dict] = mapped_column(JSONType, default=default_applicable_on)
    discount_type: Mapped[str] = mapped_column(String(20), default="general")  # general | couponless
    user_type: Mapped[str] = mapped_column(String(20), default="all")  # all | new | old
    discount_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    max_discount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    no_limit: Mapped[bool] = mapped_column(Boolean, default=False)
    no_of_uses_per_user: Mapped[int] = mapped_column(Integer, default=1)
    no_of_users_total: Mapped[int] = mapped_column(Integer, default=100)
    destinations: Mapped[list] = mapped_column(JSONType, default=list)  # empty = all
    start_date: Mapped[date | None] = mapped_column(Date)
    end_date: Mapped[date | None] = mapped_column(Date)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    archived: Mapped[bool] = mapped_column(Boolean, default=False)
    total_discount_usage_count: Mapped[int] = mapped_column(Integer, default=0)
    total_discount_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


class DiscountUsage(Base):
    """Ledger row — one per application of a discount by a user."""

    __tablename__ = "discount_usages"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    discount_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("discounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    itinerary_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    used_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
