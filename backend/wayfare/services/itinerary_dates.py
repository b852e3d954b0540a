"""Date and day-number normalization for itinerary trees."""

from datetime import date, timedelta

from wayfare.schemas.itinerary import CityLeg, ItineraryTree


def recalculate(tree: ItineraryTree, start_date: date) -> ItineraryTree:
    """Renumber days and reassign dates from `start_date`, in place.

    Walks legs in order: each day gets the cursor date and the cursor
    advances one day. Also refreshes stay_days, next_city pointers and
    the trip day/night counts.
    """
    cursor = start_date
    for i, leg in enumerate(tree.legs):
        for k, day in enumerate(leg.days):
            day.day_number = k + 1
            day.date = cursor
            cursor += timedelta(days=1)
        leg.stay_days = len(leg.days)
        leg.next_city = tree.legs[i + 1].city if i + 1 < len(tree.legs) else None

    tree.total_days = sum(len(leg.days) for leg in tree.legs)
    tree.total_nights = max(tree.total_days - 1, 0)
    return tree


def first_date(leg: CityLeg) -> date:
    return leg.days[0].date


def last_date(leg: CityLeg) -> date:
    return leg.days[-1].date


def end_date(tree: ItineraryTree) -> date | None:
    if not tree.legs or not tree.legs[-1].days:
        return None
    return last_date(tree.legs[-1])


def is_contiguous(tree: ItineraryTree) -> bool:
    """True when every leg's days are consecutive and legs follow each other without gaps."""
    previous: date | None = None
    for leg in tree.legs:
        for k, day in enumerate(leg.days):
            if day.day_number != k + 1:
                return False
            if previous is not None and day.date != previous + timedelta(days=1):
                return False
            previous = day.date
    return True
