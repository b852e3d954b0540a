"""Domain errors raised by the itinerary services.

Each error carries the HTTP status the routers translate it to.
"""


class ItineraryError(ValueError):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# --- Validation (400) ---

class InvalidPosition(ItineraryError):
    pass


class InvalidIndex(ItineraryError):
    pass


class LastLegError(ItineraryError):
    pass


class InsufficientDays(ItineraryError):
    pass


class InvalidDayCount(ItineraryError):
    pass


class InvalidMode(ItineraryError):
    pass


class DiscountRejected(ItineraryError):
    pass


# --- Not found (404) ---

class ItineraryNotFound(ItineraryError):
    status_code = 404


class ActivityNotFound(ItineraryError):
    status_code = 404


class CatalogActivityNotFound(ItineraryError):
    status_code = 404


class CityNotFound(ItineraryError):
    status_code = 404


class DiscountNotFound(ItineraryError):
    status_code = 404


# --- Conflicts (409) ---

class DiscountAlreadyApplied(ItineraryError):
    status_code = 409


class StaleItineraryError(ItineraryError):
    status_code = 409
