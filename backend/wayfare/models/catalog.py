"""Catalog models — destinations, cities, activities and markup settings.

References point one way only: Activity -> City -> Destination.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from wayfare.database import Base, utcnow


class Destination(Base):
    __tablename__ = "destinations"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    currency: Mapped[str] = mapped_column(String(3), default="INR")
    markup: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=0)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


class InternationalAirportCity(Base):
    __tablename__ = "international_airport_cities"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    iata_code: Mapped[str] = mapped_column(String(3), nullable=False, unique=True)
    country: Mapped[str | None] = mapped_column(String(100))


class City(Base):
    __tablename__ = "cities"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    iata_code: Mapped[str | None] = mapped_column(String(3))
    latitude: Mapped[float | None] = mapped_column(Float)
    longitude: Mapped[float | None] = mapped_column(Float)
    destination_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("destinations.id"), nullable=False, index=True
    )
    nearest_airport_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("international_airport_cities.id")
    )


class Activity(Base):
    __tablename__ = "activities"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    city_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("cities.id"), nullable=False, index=True
    )
    category: Mapped[str] = mapped_column(String(50), default="Sightseeing")
    duration: Mapped[int] = mapped_column(Integer, default=120)  # minutes
    opens_at: Mapped[str | None] = mapped_column(String(5))  # "HH:MM"
    closes_at: Mapped[str | None] = mapped_column(String(5))
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    currency: Mapped[str] = mapped_column(String(3), default="INR")


class MarkupSettings(Base):
    __tablename__ = "markup_settings"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    flight_markup: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=0)
    taxi_markup: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=0)
    ferry_markup: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=0)
    stay_markup: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=0)
    service_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
