"""Catalog, itineraries, priced sub-resources and discount ledger

Revision ID: wayfare_001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision = "wayfare_001"
down_revision = None
branch_labels = None
depends_on = None


def _priced_columns():
    return [
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), server_default="INR"),
        sa.Column("supplier_price", sa.Numeric(12, 2)),
        sa.Column("supplier_currency", sa.String(3)),
        sa.Column("vendor_metadata", JSONB),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # --- catalog ---
    op.create_table(
        "destinations",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("currency", sa.String(3), server_default="INR"),
        sa.Column("markup", sa.Numeric(5, 2), server_default="0"),
        sa.Column("active", sa.Boolean, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "international_airport_cities",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("iata_code", sa.String(3), nullable=False, unique=True),
        sa.Column("country", sa.String(100)),
    )

    op.create_table(
        "cities",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("iata_code", sa.String(3)),
        sa.Column("latitude", sa.Float),
        sa.Column("longitude", sa.Float),
        sa.Column("destination_id", UUID(as_uuid=True), sa.ForeignKey("destinations.id"), nullable=False),
        sa.Column("nearest_airport_id", UUID(as_uuid=True), sa.ForeignKey("international_airport_cities.id")),
    )
    op.create_index("ix_cities_name", "cities", ["name"])
    op.create_index("ix_cities_destination_id", "cities", ["destination_id"])

    op.create_table(
        "activities",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("city_id", UUID(as_uuid=True), sa.ForeignKey("cities.id"), nullable=False),
        sa.Column("category", sa.String(50), server_default="Sightseeing"),
        sa.Column("duration", sa.Integer, server_default="120"),
        sa.Column("opens_at", sa.String(5)),
        sa.Column("closes_at", sa.String(5)),
        sa.Column("price", sa.Numeric(12, 2), server_default="0"),
        sa.Column("currency", sa.String(3), server_default="INR"),
    )
    op.create_index("ix_activities_city_id", "activities", ["city_id"])

    op.create_table(
        "markup_settings",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("flight_markup", sa.Numeric(5, 2), server_default="0"),
        sa.Column("taxi_markup", sa.Numeric(5, 2), server_default="0"),
        sa.Column("ferry_markup", sa.Numeric(5, 2), server_default="0"),
        sa.Column("stay_markup", sa.Numeric(5, 2), server_default="0"),
        sa.Column("service_fee", sa.Numeric(12, 2), server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- itineraries ---
    price_columns = [
        sa.Column(name, sa.Numeric(12, 2), server_default="0")
        for name in (
            "flights_price", "taxis_price", "ferries_price", "hotels_price", "activities_price",
            "international_flights_price", "price_without_coupon", "total_price", "tax",
            "service_fee", "grand_total", "couponless_discount", "general_discount",
            "current_total_price",
        )
    ]
    op.create_table(
        "itineraries",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column("destination_id", UUID(as_uuid=True), sa.ForeignKey("destinations.id"), nullable=False),
        sa.Column("title", sa.String(255)),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("travelling_with", sa.String(50)),
        sa.Column("rooms", JSONB, server_default="[]"),
        sa.Column("departure_city", sa.String(3)),
        sa.Column("tree", JSONB, nullable=False),
        sa.Column("international_flights", JSONB, server_default="[]"),
        sa.Column("discounts", JSONB, server_default="[]"),
        sa.Column("currency", sa.String(3), server_default="INR"),
        *price_columns,
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_itineraries_user_id", "itineraries", ["user_id"])
    op.create_index("idx_itineraries_updated", "itineraries", ["updated_at"])

    op.create_table(
        "itinerary_versions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("itinerary_id", UUID(as_uuid=True), sa.ForeignKey("itineraries.id", ondelete="CASCADE"), nullable=False),
        sa.Column("version_number", sa.Integer, nullable=False),
        sa.Column("previous_tree", JSONB),
        sa.Column("tree", JSONB, nullable=False),
        sa.Column("prices", JSONB, server_default="{}"),
        sa.Column("changed_by", UUID(as_uuid=True)),
        sa.Column("comment", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_itinerary_versions_itinerary_id", "itinerary_versions", ["itinerary_id"])

    op.create_table(
        "scheduled_activities",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("itinerary_id", UUID(as_uuid=True)),
        sa.Column("city_id", UUID(as_uuid=True), sa.ForeignKey("cities.id"), nullable=False),
        sa.Column("activity_id", UUID(as_uuid=True), sa.ForeignKey("activities.id")),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("category", sa.String(50), server_default="Sightseeing"),
        sa.Column("duration", sa.Integer, server_default="120"),
        sa.Column("start_time", sa.String(5)),
        sa.Column("end_time", sa.String(5)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_scheduled_activities_itinerary_id", "scheduled_activities", ["itinerary_id"])
    op.create_index("ix_scheduled_activities_city_id", "scheduled_activities", ["city_id"])

    # --- priced sub-resources ---
    op.create_table(
        "flights",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("itinerary_id", UUID(as_uuid=True), nullable=False),
        sa.Column("origin", sa.String(100), nullable=False),
        sa.Column("destination", sa.String(100), nullable=False),
        sa.Column("departure_date", sa.Date, nullable=False),
        sa.Column("adults", sa.Integer, server_default="1"),
        sa.Column("children", sa.Integer, server_default="0"),
        sa.Column("is_international", sa.Boolean, server_default="false"),
        *_priced_columns(),
    )
    op.create_table(
        "hotels",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("itinerary_id", UUID(as_uuid=True), nullable=False),
        sa.Column("city", sa.String(100), nullable=False),
        sa.Column("check_in", sa.Date, nullable=False),
        sa.Column("check_out", sa.Date, nullable=False),
        sa.Column("adults", sa.Integer, server_default="1"),
        sa.Column("children", sa.Integer, server_default="0"),
        *_priced_columns(),
    )
    op.create_table(
        "taxis",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("itinerary_id", UUID(as_uuid=True), nullable=False),
        sa.Column("origin", sa.String(100), nullable=False),
        sa.Column("destination", sa.String(100), nullable=False),
        sa.Column("pickup_date", sa.Date, nullable=False),
        sa.Column("passengers", sa.Integer, server_default="1"),
        *_priced_columns(),
    )
    op.create_table(
        "ferries",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("itinerary_id", UUID(as_uuid=True), nullable=False),
        sa.Column("origin", sa.String(100), nullable=False),
        sa.Column("destination", sa.String(100), nullable=False),
        sa.Column("departure_date", sa.Date, nullable=False),
        sa.Column("passengers", sa.Integer, server_default="1"),
        *_priced_columns(),
    )
    for table in ("flights", "hotels", "taxis", "ferries"):
        op.create_index(f"ix_{table}_itinerary_id", table, ["itinerary_id"])

    # --- discounts ---
    op.create_table(
        "discounts",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("code", sa.String(50)),
        sa.Column("applicable_on", JSONB),
        sa.Column("discount_type", sa.String(20), server_default="general"),
        sa.Column("user_type", sa.String(20), server_default="all"),
        sa.Column("discount_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("max_discount", sa.Numeric(12, 2)),
        sa.Column("no_limit", sa.Boolean, server_default="false"),
        sa.Column("no_of_uses_per_user", sa.Integer, server_default="1"),
        sa.Column("no_of_users_total", sa.Integer, server_default="100"),
        sa.Column("destinations", JSONB, server_default="[]"),
        sa.Column("start_date", sa.Date),
        sa.Column("end_date", sa.Date),
        sa.Column("active", sa.Boolean, server_default="true"),
        sa.Column("archived", sa.Boolean, server_default="false"),
        sa.Column("total_discount_usage_count", sa.Integer, server_default="0"),
        sa.Column("total_discount_value", sa.Numeric(12, 2), server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_discounts_code", "discounts", ["code"])

    op.create_table(
        "discount_usages",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("discount_id", UUID(as_uuid=True), sa.ForeignKey("discounts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column("itinerary_id", UUID(as_uuid=True)),
        sa.Column("amount", sa.Numeric(12, 2), server_default="0"),
        sa.Column("used_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_discount_usages_discount_id", "discount_usages", ["discount_id"])
    op.create_index("ix_discount_usages_user_id", "discount_usages", ["user_id"])
    op.create_index("ix_discount_usages_itinerary_id", "discount_usages", ["itinerary_id"])


def downgrade() -> None:
    for table in (
        "discount_usages", "discounts", "ferries", "taxis", "hotels", "flights",
        "scheduled_activities", "itinerary_versions", "itineraries", "markup_settings",
        "activities", "cities", "international_airport_cities", "destinations",
    ):
        op.drop_table(table)
