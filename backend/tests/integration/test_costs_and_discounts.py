"""Price aggregation, couponless discounts, coupons and the usage ledger."""

import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from tests.conftest import OTHER_USER_ID, USER_ID
from wayfare.errors import DiscountAlreadyApplied, DiscountNotFound, DiscountRejected
from wayfare.models import Discount, DiscountUsage, Itinerary, MarkupSettings
from wayfare.schemas.itinerary import ItineraryTree, Room
from wayfare.services.discount_engine import DiscountEngine


async def _discount(db, **values) -> Discount:
    values.setdefault("name", "Test Discount")
    values.setdefault("discount_percentage", Decimal("10"))
    discount = Discount(**values)
    db.add(discount)
    await db.commit()
    return discount


async def _usages(db, discount_id) -> list[DiscountUsage]:
    result = await db.execute(select(DiscountUsage).where(DiscountUsage.discount_id == discount_id))
    return list(result.scalars().all())


# --- Aggregation ---

@pytest.mark.asyncio
async def test_totals_with_markups_tax_and_fee(make_itinerary) -> None:
    itinerary = await make_itinerary()

    # Flight 5000 + 10%, two hotels 3000 + 10% for one room, Grand Palace for two adults
    assert itinerary.flights_price == Decimal("5500.00")
    assert itinerary.hotels_price == Decimal("6600.00")
    assert itinerary.activities_price == Decimal("2000.00")
    assert itinerary.price_without_coupon == Decimal("14100.00")
    assert itinerary.total_price == Decimal("14100.00")
    assert itinerary.tax == Decimal("2538.00")
    assert itinerary.service_fee == Decimal("50.00")
    assert itinerary.grand_total == Decimal("16688.00")
    assert itinerary.current_total_price == itinerary.grand_total
    assert itinerary.couponless_discount == Decimal("0")


@pytest.mark.asyncio
async def test_destination_markup_applies_to_whole_trip(db, make_itinerary, catalog) -> None:
    catalog.destination.markup = Decimal("10")
    await db.commit()

    itinerary = await make_itinerary()

    assert itinerary.price_without_coupon == Decimal("15510.00")
    assert itinerary.tax == Decimal("2791.80")
    assert itinerary.grand_total == Decimal("18351.80")


@pytest.mark.asyncio
async def test_latest_markup_settings_win(db, make_itinerary) -> None:
    db.add(MarkupSettings(flight_markup=20, taxi_markup=0, ferry_markup=0, stay_markup=0, service_fee=0))
    await db.commit()

    itinerary = await make_itinerary()

    assert itinerary.flights_price == Decimal("6000.00")
    assert itinerary.hotels_price == Decimal("6000.00")
    assert itinerary.service_fee == Decimal("0.00")


@pytest.mark.asyncio
async def test_international_flights_carry_no_markup(make_itinerary) -> None:
    itinerary = await make_itinerary(departure_city="DEL")

    assert itinerary.international_flights_price == Decimal("60000.00")
    assert itinerary.price_without_coupon == Decimal("74100.00")


# --- Couponless discounts ---

@pytest.mark.asyncio
async def test_couponless_package_discount_is_taken_after_tax(db, make_itinerary) -> None:
    discount = await _discount(db, discount_type="couponless", no_limit=True)

    itinerary = await make_itinerary()

    assert itinerary.total_price == Decimal("12690.00")
    assert itinerary.couponless_discount == Decimal("1410.00")
    # Tax stays on the undiscounted total
    assert itinerary.tax == Decimal("2538.00")
    assert itinerary.grand_total == Decimal("15278.00")

    usages = await _usages(db, discount.id)
    assert len(usages) == 1
    assert usages[0].itinerary_id == itinerary.id
    assert usages[0].amount == Decimal("1410.00")


@pytest.mark.asyncio
async def test_couponless_flight_discount(db, make_itinerary) -> None:
    await _discount(
        db,
        discount_type="couponless",
        no_limit=True,
        applicable_on={"package": False, "flights": True},
    )

    itinerary = await make_itinerary()

    assert itinerary.couponless_discount == Decimal("550.00")
    assert itinerary.grand_total == Decimal("16138.00")


@pytest.mark.asyncio
async def test_couponless_usage_is_updated_not_duplicated(db, make_itinerary, pipeline) -> None:
    discount = await _discount(db, discount_type="couponless", no_limit=True)
    itinerary = await make_itinerary()

    itinerary = await pipeline.change_transport_mode(db, itinerary.id, USER_ID, 0, "Car")

    usages = await _usages(db, discount.id)
    assert len(usages) == 1
    assert usages[0].amount == itinerary.couponless_discount
    await db.refresh(discount)
    assert discount.total_discount_usage_count == 1
    assert discount.total_discount_value == itinerary.couponless_discount


@pytest.mark.asyncio
async def test_couponless_respects_destination_scope(db, make_itinerary) -> None:
    await _discount(db, discount_type="couponless", destinations=[str(uuid.uuid4())])

    itinerary = await make_itinerary()

    assert itinerary.couponless_discount == Decimal("0")


@pytest.mark.asyncio
async def test_couponless_outside_window_is_ignored(db, make_itinerary) -> None:
    await _discount(db, discount_type="couponless", end_date=date(2020, 1, 1))

    itinerary = await make_itinerary()

    assert itinerary.couponless_discount == Decimal("0")


@pytest.mark.asyncio
async def test_new_user_couponless_only_on_first_itinerary(db, make_itinerary) -> None:
    await _discount(db, discount_type="couponless", user_type="new", no_limit=True, no_of_uses_per_user=5)

    first = await make_itinerary()
    second = await make_itinerary()

    assert first.couponless_discount == Decimal("1410.00")
    assert second.couponless_discount == Decimal("0")


# --- Coupons on an itinerary ---

@pytest.mark.asyncio
async def test_add_coupon_discounts_hotels_up_to_cap(db, make_itinerary, pipeline) -> None:
    discount = await _discount(
        db, applicable_on={"package": True, "hotels": True}, max_discount=Decimal("500")
    )
    itinerary = await make_itinerary()

    itinerary = await pipeline.add_coupon(db, itinerary.id, USER_ID, discount.id)

    assert itinerary.discounts == [str(discount.id)]
    assert itinerary.general_discount == Decimal("500.00")
    assert itinerary.total_price == Decimal("13600.00")
    assert itinerary.current_total_price == Decimal("16098.00")
    assert itinerary.grand_total == Decimal("16688.00")


@pytest.mark.asyncio
async def test_coupon_is_replayed_once_per_save(db, make_itinerary, pipeline) -> None:
    discount = await _discount(
        db, applicable_on={"package": True, "hotels": True}, max_discount=Decimal("500")
    )
    itinerary = await make_itinerary()
    await pipeline.add_coupon(db, itinerary.id, USER_ID, discount.id)

    itinerary = await pipeline.add_days(db, itinerary.id, USER_ID, 0, 1)

    assert itinerary.general_discount == Decimal("500.00")
    assert itinerary.current_total_price == Decimal("16098.00")
    usages = await _usages(db, discount.id)
    assert len(usages) == 1
    assert usages[0].itinerary_id == itinerary.id


@pytest.mark.asyncio
async def test_same_coupon_twice_conflicts(db, session_factory, make_itinerary, pipeline) -> None:
    discount = await _discount(db, no_of_uses_per_user=3)
    itinerary = await make_itinerary()
    itinerary_id, discount_id = itinerary.id, discount.id
    await pipeline.add_coupon(db, itinerary_id, USER_ID, discount_id)

    with pytest.raises(DiscountAlreadyApplied) as exc:
        await pipeline.add_coupon(db, itinerary_id, USER_ID, discount_id)

    assert exc.value.status_code == 409
    async with session_factory() as session:
        stored = await session.get(Itinerary, itinerary_id)
        assert stored.version == 2


@pytest.mark.asyncio
async def test_add_coupon_rejections(db, make_itinerary, pipeline) -> None:
    couponless = await _discount(db, discount_type="couponless", active=False)
    inactive = await _discount(db, active=False)
    catalog_only = await _discount(db, applicable_on={"package": False, "predefined_packages": True})
    returning_only = await _discount(db, user_type="old")
    itinerary = await make_itinerary()
    # Each rejection rolls the session back and expires loaded objects
    itinerary_id = itinerary.id
    discount_ids = [d.id for d in (couponless, inactive, catalog_only, returning_only)]

    for discount_id in discount_ids:
        with pytest.raises(DiscountRejected):
            await pipeline.add_coupon(db, itinerary_id, USER_ID, discount_id)
    with pytest.raises(DiscountNotFound):
        await pipeline.add_coupon(db, itinerary_id, USER_ID, uuid.uuid4())


@pytest.mark.asyncio
async def test_coupon_per_user_cap(db, make_itinerary, pipeline) -> None:
    discount = await _discount(db, no_of_uses_per_user=1)
    first = await make_itinerary()
    second = await make_itinerary()
    await pipeline.add_coupon(db, first.id, USER_ID, discount.id)

    with pytest.raises(DiscountRejected):
        await pipeline.add_coupon(db, second.id, USER_ID, discount.id)


# --- Standalone redemption ---

@pytest.mark.asyncio
async def test_redeem_stops_at_per_user_cap(db) -> None:
    engine = DiscountEngine()
    discount = await _discount(db, no_of_uses_per_user=2, max_discount=Decimal("150"))

    results = []
    for _ in range(3):
        results.append(await engine.redeem(db, discount.id, USER_ID, Decimal("2000")))
        await db.commit()

    assert [amount for amount, _ in results] == [Decimal("150.00"), Decimal("150.00"), Decimal("0")]
    assert results[2][1] == "You have already used this discount the maximum number of times"
    assert len(await _usages(db, discount.id)) == 2


@pytest.mark.asyncio
async def test_redeem_stops_at_total_users_cap(db) -> None:
    engine = DiscountEngine()
    discount = await _discount(db, no_of_users_total=1, no_of_uses_per_user=5)

    assert (await engine.redeem(db, discount.id, USER_ID, Decimal("1000")))[0] == Decimal("100.00")
    amount, message = await engine.redeem(db, discount.id, OTHER_USER_ID, Decimal("1000"))

    assert amount == Decimal("0")
    assert message == "Discount usage limit reached"
    # The existing user may keep using it
    assert (await engine.redeem(db, discount.id, USER_ID, Decimal("1000")))[0] == Decimal("100.00")


@pytest.mark.asyncio
async def test_redeem_inactive_or_ineligible(db, make_itinerary) -> None:
    engine = DiscountEngine()
    archived = await _discount(db, archived=True)
    new_only = await _discount(db, user_type="new")
    await make_itinerary()

    assert await engine.redeem(db, archived.id, USER_ID, Decimal("1000")) == (
        Decimal("0"), "This discount is not active"
    )
    amount, message = await engine.redeem(db, new_only.id, USER_ID, Decimal("1000"))
    assert amount == Decimal("0")
    assert message == "This discount is only available to new users"
    assert (await engine.redeem(db, new_only.id, OTHER_USER_ID, Decimal("1000")))[0] == Decimal("100.00")
    count = (await db.execute(select(func.count(DiscountUsage.id)))).scalar_one()
    assert count == 1


@pytest.mark.asyncio
async def test_tax_is_charged_before_couponless_discount(db, make_itinerary, catalog, suppliers) -> None:
    await _discount(db, discount_type="couponless", no_limit=True)
    suppliers.hotel.empty = True

    itinerary = await make_itinerary(cities=[catalog.bangkok], activities=["Grand Palace"], rooms=[Room(adults=1)])

    assert itinerary.price_without_coupon == Decimal("1000.00")
    assert itinerary.couponless_discount == Decimal("100.00")
    assert itinerary.tax == Decimal("180.00")
    assert itinerary.grand_total == Decimal("1130.00")


# --- Replay on recompute ---

def _first_activity(itinerary):
    return ItineraryTree.model_validate(itinerary.tree).legs[0].days[0].activities[0]


@pytest.mark.asyncio
async def test_new_user_coupon_survives_a_later_itinerary(db, make_itinerary, pipeline) -> None:
    discount = await _discount(db, user_type="new", no_limit=True, no_of_uses_per_user=5)
    first = await make_itinerary()
    first = await pipeline.add_coupon(db, first.id, USER_ID, discount.id)
    assert first.general_discount == Decimal("1410.00")
    await make_itinerary()

    first = await pipeline.update_details(db, first.id, USER_ID, travelling_with="Solo")

    assert first.discounts == [str(discount.id)]
    assert first.general_discount == Decimal("1410.00")
    assert first.total_price == Decimal("12690.00")
    assert [u.amount for u in await _usages(db, discount.id)] == [Decimal("1410.00")]
    await db.refresh(discount)
    assert discount.total_discount_usage_count == 1
    assert discount.total_discount_value == Decimal("1410.00")


@pytest.mark.asyncio
async def test_coupon_worth_nothing_after_edit_zeroes_its_usage(db, make_itinerary, pipeline) -> None:
    discount = await _discount(db, applicable_on={"package": False, "activities": True}, no_limit=True)
    itinerary = await make_itinerary()
    itinerary = await pipeline.add_coupon(db, itinerary.id, USER_ID, discount.id)
    assert itinerary.general_discount == Decimal("200.00")

    itinerary = await pipeline.replace_with_leisure(db, itinerary.id, USER_ID, _first_activity(itinerary))

    assert itinerary.activities_price == Decimal("0")
    assert itinerary.general_discount == Decimal("0")
    assert [u.amount for u in await _usages(db, discount.id)] == [Decimal("0")]
    await db.refresh(discount)
    assert discount.total_discount_usage_count == 1
    assert discount.total_discount_value == Decimal("0")


@pytest.mark.asyncio
async def test_couponless_worth_nothing_after_edit_zeroes_its_usage(db, make_itinerary, pipeline) -> None:
    discount = await _discount(
        db,
        discount_type="couponless",
        no_limit=True,
        applicable_on={"package": False, "activities": True},
    )
    itinerary = await make_itinerary()
    assert itinerary.couponless_discount == Decimal("200.00")

    itinerary = await pipeline.replace_with_leisure(db, itinerary.id, USER_ID, _first_activity(itinerary))

    assert itinerary.couponless_discount == Decimal("0")
    assert [u.amount for u in await _usages(db, discount.id)] == [Decimal("0")]
    await db.refresh(discount)
    assert discount.total_discount_value == Decimal("0")
