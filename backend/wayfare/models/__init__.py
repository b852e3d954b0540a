from wayfare.models.catalog import Activity, City, Destination, InternationalAirportCity, MarkupSettings
from wayfare.models.itinerary import Itinerary, ItineraryVersion, ScheduledActivity
from wayfare.models.pricing import Ferry, Flight, Hotel, Taxi
from wayfare.models.discount import Discount, DiscountUsage

__all__ = [
    "Activity",
    "City",
    "Destination",
    "Discount",
    "DiscountUsage",
    "Ferry",
    "Flight",
    "Hotel",
    "InternationalAirportCity",
    "Itinerary",
    "ItineraryVersion",
    "MarkupSettings",
    "ScheduledActivity",
    "Taxi",
]
