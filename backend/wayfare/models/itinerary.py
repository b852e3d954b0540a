import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from wayfare.database import Base, JSONType, utcnow

PRICE_FIELDS = (
    "flights_price",
    "taxis_price",
    "ferries_price",
    "hotels_price",
    "activities_price",
    "international_flights_price",
    "price_without_coupon",
    "total_price",
    "tax",
    "service_fee",
    "grand_total",
    "couponless_discount",
    "general_discount",
    "current_total_price",
)


class Itinerary(Base):
    __tablename__ = "itineraries"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    destination_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("destinations.id"), nullable=False
    )
    title: Mapped[str | None] = mapped_column(String(255))
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    travelling_with: Mapped[str | None] = mapped_column(String(50))
    rooms: Mapped[list] = mapped_column(JSONType, default=list)
    departure_city: Mapped[str | None] = mapped_column(String(3))  # home IATA code
    tree: Mapped[dict] = mapped_column(JSONType, nullable=False)
    international_flights: Mapped[list] = mapped_column(JSONType, default=list)
    discounts: Mapped[list] = mapped_column(JSONType, default=list)
    currency: Mapped[str] = mapped_column(String(3), default="INR")

    # Computed prices
    flights_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    taxis_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    ferries_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    hotels_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    activities_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    international_flights_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    price_without_coupon: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    service_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    grand_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    couponless_discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    general_discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    current_total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    # Bumped once per save; earlier autoflushes are still checked against the loaded version
    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}


class ItineraryVersion(Base):
    """Append-only history row written by every save of an itinerary."""

    __tablename__ = "itinerary_versions"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    itinerary_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("itineraries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_tree: Mapped[dict | None] = mapped_column(JSONType)
    tree: Mapped[dict] = mapped_column(JSONType, nullable=False)
    prices: Mapped[dict] = mapped_column(JSONType, default=dict)
    changed_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    comment: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


class ScheduledActivity(Base):
    """A dated placement of a catalog activity inside an itinerary.

    Leisure placeholders have no itinerary_id and are shared per city.
    """

    __tablename__ = "scheduled_activities"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    itinerary_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), index=True)
    city_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("cities.id"), nullable=False, index=True
    )
    activity_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("activities.id")
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(50), default="Sightseeing")
    duration: Mapped[int] = mapped_column(Integer, default=120)
    start_time: Mapped[str | None] = mapped_column(String(5))
    end_time: Mapped[str | None] = mapped_column(String(5))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
