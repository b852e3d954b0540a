import uuid
from datetime import date, datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

TRANSPORT_MODES = ("Flight", "Car", "Ferry")


# --- Itinerary tree ---

class FlightTransport(BaseModel):
    mode: Literal["Flight"] = "Flight"
    mode_details: uuid.UUID | None = None  # -> flights.id


class CarTransport(BaseModel):
    mode: Literal["Car"] = "Car"
    mode_details: uuid.UUID | None = None  # -> taxis.id


class FerryTransport(BaseModel):
    mode: Literal["Ferry"] = "Ferry"
    mode_details: uuid.UUID | None = None  # -> ferries.id


Transport = Annotated[FlightTransport | CarTransport | FerryTransport, Field(discriminator="mode")]

_TRANSPORT_BY_MODE = {
    "Flight": FlightTransport,
    "Car": CarTransport,
    "Ferry": FerryTransport,
}


def transport_for_mode(mode: str) -> FlightTransport | CarTransport | FerryTransport:
    """Build an unfetched transport slot for a mode. Raises KeyError for unknown modes."""
    return _TRANSPORT_BY_MODE[mode]()


class Day(BaseModel):
    day_number: int
    date: date
    activities: list[uuid.UUID] = []


class CityLeg(BaseModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    city: uuid.UUID
    city_name: str
    stay_days: int = 0
    next_city: uuid.UUID | None = None
    transport: Transport | None = None
    hotel_details: uuid.UUID | None = None  # -> hotels.id
    days: list[Day] = []


class ItineraryTree(BaseModel):
    title: str | None = None
    subtitle: str | None = None
    destination: uuid.UUID | None = None
    legs: list[CityLeg] = []
    total_days: int = 0
    total_nights: int = 0


class Room(BaseModel):
    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)
    children_ages: list[int] = []


# --- Draft generator output ---

class DraftDay(BaseModel):
    activities: list[str] = []


class DraftLeg(BaseModel):
    city: str
    days: list[DraftDay] = []
    transport_mode: str | None = None


class DraftTree(BaseModel):
    title: str | None = None
    subtitle: str | None = None
    legs: list[DraftLeg]


# --- Requests ---

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateItineraryRequest(CamelModel):
    start_date: date
    destination_id: uuid.UUID
    cities: list[uuid.UUID] = Field(min_length=1)
    activities: list[uuid.UUID] = []
    rooms: list[Room] = Field(default_factory=lambda: [Room()], min_length=1)
    travelling_with: str | None = None
    departure_city: str | None = None


class AddCityRequest(CamelModel):
    new_city: str
    position: int


class ReplaceCityRequest(CamelModel):
    new_city: str


class AddDaysRequest(CamelModel):
    additional_days: int


class DeleteDaysRequest(CamelModel):
    days_to_delete: int


class TransportModeRequest(CamelModel):
    new_mode: str


class ReplaceActivityRequest(CamelModel):
    new_activity_id: uuid.UUID


class UpdateDetailsRequest(CamelModel):
    new_start_date: date | None = None
    travelling_with: str | None = None
    rooms: list[Room] | None = Field(default=None, min_length=1)


# --- Responses ---

class ItineraryResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    destination_id: uuid.UUID
    title: str | None
    start_date: date
    travelling_with: str | None
    rooms: list[Room]
    departure_city: str | None
    tree: ItineraryTree
    international_flights: list[uuid.UUID]
    discounts: list[uuid.UUID]
    currency: str
    flights_price: float
    taxis_price: float
    ferries_price: float
    hotels_price: float
    activities_price: float
    international_flights_price: float
    total_price: float
    tax: float
    service_fee: float
    grand_total: float
    couponless_discount: float
    general_discount: float
    current_total_price: float
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ScheduledActivityResponse(BaseModel):
    id: uuid.UUID
    city_id: uuid.UUID
    activity_id: uuid.UUID | None
    name: str
    category: str
    duration: int
    start_time: str | None
    end_time: str | None
    price: float = 0
    leg_index: int | None = None
    day_number: int | None = None
    day_date: date | None = None

    model_config = {"from_attributes": True}


class ItineraryVersionResponse(BaseModel):
    id: uuid.UUID
    version_number: int
    changed_by: uuid.UUID | None
    comment: str | None
    prices: dict
    created_at: datetime

    model_config = {"from_attributes": True}
