"""Creating an itinerary: drafting, date normalization, pricing and the first history row."""

import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from tests.conftest import START, USER_ID
from wayfare.errors import ItineraryError
from wayfare.models import Flight, Hotel, ItineraryVersion, ScheduledActivity
from wayfare.schemas.itinerary import CreateItineraryRequest, ItineraryTree
from wayfare.services.itinerary_dates import is_contiguous


@pytest.mark.asyncio
async def test_create_builds_contiguous_priced_tree(make_itinerary, suppliers) -> None:
    itinerary = await make_itinerary()
    tree = ItineraryTree.model_validate(itinerary.tree)

    assert itinerary.version == 1
    assert [leg.city_name for leg in tree.legs] == ["Bangkok", "Phuket"]
    assert is_contiguous(tree)
    assert [day.date for leg in tree.legs for day in leg.days] == [START, START + timedelta(days=1)]
    assert (tree.total_days, tree.total_nights) == (2, 1)
    assert tree.legs[0].next_city == tree.legs[1].city
    assert tree.legs[1].next_city is None

    assert tree.legs[0].transport.mode == "Flight"
    assert tree.legs[0].transport.mode_details is not None
    assert tree.legs[1].transport is None
    assert all(leg.hotel_details is not None for leg in tree.legs)

    # Transport of a leg is priced on the first day of the next leg
    assert suppliers.flight.calls == [("Bangkok", "Phuket", date(2026, 12, 2), None)]
    assert sorted(suppliers.hotel.calls) == [
        ("Bangkok", "Bangkok", date(2026, 12, 1), date(2026, 12, 1)),
        ("Phuket", "Phuket", date(2026, 12, 2), date(2026, 12, 2)),
    ]
    assert suppliers.international.calls == []


@pytest.mark.asyncio
async def test_create_keeps_cheapest_offer(db, make_itinerary) -> None:
    itinerary = await make_itinerary()
    tree = ItineraryTree.model_validate(itinerary.tree)

    flight = await db.get(Flight, tree.legs[0].transport.mode_details)
    hotel = await db.get(Hotel, tree.legs[0].hotel_details)

    assert flight.itinerary_id == itinerary.id
    assert flight.price == Decimal("5000")
    assert (flight.adults, flight.children) == (2, 0)
    assert hotel.price == Decimal("3000")
    assert hotel.vendor_metadata == {"rank": 1}


@pytest.mark.asyncio
async def test_create_writes_first_history_row(db, make_itinerary) -> None:
    itinerary = await make_itinerary()

    result = await db.execute(select(ItineraryVersion).where(ItineraryVersion.itinerary_id == itinerary.id))
    versions = result.scalars().all()

    assert len(versions) == 1
    assert versions[0].version_number == 1
    assert versions[0].previous_tree is None
    assert versions[0].comment == "created"
    assert versions[0].changed_by == USER_ID
    assert versions[0].prices["grand_total"] == str(itinerary.grand_total)


@pytest.mark.asyncio
async def test_create_schedules_chosen_activities_only(db, make_itinerary, catalog) -> None:
    itinerary = await make_itinerary()
    tree = ItineraryTree.model_validate(itinerary.tree)

    ids = [a for leg in tree.legs for day in leg.days for a in day.activities]
    rows = (await db.execute(select(ScheduledActivity).where(ScheduledActivity.id.in_(ids)))).scalars().all()

    assert sorted(r.name for r in rows) == ["Big Buddha", "Grand Palace"]
    assert all(r.itinerary_id == itinerary.id for r in rows)
    grand_palace = next(r for r in rows if r.name == "Grand Palace")
    assert grand_palace.start_time == "09:00"
    assert grand_palace.end_time == "12:00"


@pytest.mark.asyncio
async def test_create_without_activities_uses_whole_catalog(make_itinerary, suppliers) -> None:
    itinerary = await make_itinerary(activities=None)
    tree = ItineraryTree.model_validate(itinerary.tree)

    # Three Bangkok activities at two per day
    assert [leg.stay_days for leg in tree.legs] == [2, 1]
    assert suppliers.flight.calls == [("Bangkok", "Phuket", date(2026, 12, 3), None)]


@pytest.mark.asyncio
async def test_create_prices_international_flights(db, make_itinerary, suppliers) -> None:
    itinerary = await make_itinerary(activities=None, departure_city="del")

    assert itinerary.departure_city == "DEL"
    assert sorted(suppliers.international.calls) == [
        ("DEL", "Bangkok", date(2026, 12, 1), None),
        ("Phuket", "DEL", date(2026, 12, 3), None),
    ]
    assert len(itinerary.international_flights) == 2
    assert itinerary.international_flights_price == Decimal("60000.00")

    rows = (await db.execute(select(Flight).where(Flight.is_international.is_(True)))).scalars().all()
    assert {(r.origin, r.destination) for r in rows} == {("DEL", "BKK"), ("HKT", "DEL")}


@pytest.mark.asyncio
async def test_create_rejects_unknown_city(db, catalog, pipeline) -> None:
    req = CreateItineraryRequest(
        start_date=START,
        destination_id=catalog.destination.id,
        cities=[catalog.bangkok.id, uuid.uuid4()],
    )

    with pytest.raises(ItineraryError) as exc:
        await pipeline.create(db, USER_ID, req)

    assert exc.value.status_code == 400
    assert (await db.execute(select(func.count(ItineraryVersion.id)))).scalar_one() == 0


@pytest.mark.asyncio
async def test_create_rejects_unknown_destination(db, catalog, pipeline) -> None:
    req = CreateItineraryRequest(start_date=START, destination_id=uuid.uuid4(), cities=[catalog.bangkok.id])

    with pytest.raises(ItineraryError):
        await pipeline.create(db, USER_ID, req)


@pytest.mark.asyncio
async def test_supplier_failure_leaves_slot_empty(make_itinerary, suppliers) -> None:
    suppliers.flight.fail = True
    suppliers.hotel.empty = True

    itinerary = await make_itinerary()
    tree = ItineraryTree.model_validate(itinerary.tree)

    assert tree.legs[0].transport.mode == "Flight"
    assert tree.legs[0].transport.mode_details is None
    assert all(leg.hotel_details is None for leg in tree.legs)
    assert itinerary.flights_price == Decimal("0")
    assert itinerary.hotels_price == Decimal("0")
    assert itinerary.activities_price == Decimal("2000.00")
