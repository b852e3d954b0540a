"""Tests for day numbering and date recalculation."""

import uuid
from datetime import date

from wayfare.schemas.itinerary import CityLeg, Day, ItineraryTree
from wayfare.services.itinerary_dates import end_date, is_contiguous, recalculate


def _leg(name: str, days: int) -> CityLeg:
    return CityLeg(
        city=uuid.uuid4(),
        city_name=name,
        days=[Day(day_number=99, date=date(2000, 1, 1), activities=[uuid.uuid4()]) for _ in range(days)],
    )


def _tree(*legs: CityLeg) -> ItineraryTree:
    return ItineraryTree(legs=list(legs))


def test_recalculate_numbers_days_per_leg() -> None:
    tree = recalculate(_tree(_leg("Bangkok", 3), _leg("Phuket", 2)), date(2026, 12, 1))

    assert [d.day_number for d in tree.legs[0].days] == [1, 2, 3]
    assert [d.day_number for d in tree.legs[1].days] == [1, 2]


def test_recalculate_assigns_contiguous_dates_across_legs() -> None:
    tree = recalculate(_tree(_leg("Bangkok", 2), _leg("Phuket", 2), _leg("Krabi", 1)), date(2026, 12, 30))

    dates = [d.date for leg in tree.legs for d in leg.days]
    assert dates == [
        date(2026, 12, 30),
        date(2026, 12, 31),
        date(2027, 1, 1),
        date(2027, 1, 2),
        date(2027, 1, 3),
    ]
    assert is_contiguous(tree)
    assert end_date(tree) == date(2027, 1, 3)


def test_recalculate_sets_stay_days_and_next_city() -> None:
    first, second = _leg("Bangkok", 2), _leg("Phuket", 1)
    first.stay_days = 7

    tree = recalculate(_tree(first, second), date(2026, 12, 1))

    assert tree.legs[0].stay_days == 2
    assert tree.legs[0].next_city == second.city
    assert tree.legs[1].next_city is None
    assert tree.total_days == 3
    assert tree.total_nights == 2


def test_is_contiguous_detects_gap() -> None:
    tree = recalculate(_tree(_leg("Bangkok", 2), _leg("Phuket", 1)), date(2026, 12, 1))
    tree.legs[1].days[0].date = date(2026, 12, 5)

    assert not is_contiguous(tree)


def test_is_contiguous_detects_bad_numbering() -> None:
    tree = recalculate(_tree(_leg("Bangkok", 2)), date(2026, 12, 1))
    tree.legs[0].days[1].day_number = 3

    assert not is_contiguous(tree)


def test_end_date_of_empty_tree_is_none() -> None:
    assert end_date(ItineraryTree()) is None
