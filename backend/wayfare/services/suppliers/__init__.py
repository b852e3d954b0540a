from wayfare.services.suppliers.base import Offer, Party, Place, SupplierAdapter, cheapest
from wayfare.services.suppliers.ferry import FerrySupplier
from wayfare.services.suppliers.flight import FlightSupplier
from wayfare.services.suppliers.hotel import HotelSupplier
from wayfare.services.suppliers.rate_limiter import RateLimitExceeded, TokenBucketRateLimiter
from wayfare.services.suppliers.taxi import TaxiSupplier

__all__ = [
    "FerrySupplier",
    "FlightSupplier",
    "HotelSupplier",
    "Offer",
    "Party",
    "Place",
    "RateLimitExceeded",
    "SupplierAdapter",
    "TaxiSupplier",
    "TokenBucketRateLimiter",
    "cheapest",
]
