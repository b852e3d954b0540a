import uuid
from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApplicableOn(BaseModel):
    package: bool = True
    flights: bool = False
    hotels: bool = False
    activities: bool = False
    predefined_packages: bool = False


class DiscountCreate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str
    code: str | None = None
    applicable_on: ApplicableOn = Field(default_factory=ApplicableOn)
    discount_type: Literal["general", "couponless"] = "general"
    user_type: Literal["all", "new", "old"] = "all"
    discount_percentage: float = Field(gt=0, le=100)
    max_discount: float | None = Field(default=None, ge=0)
    no_limit: bool = False
    no_of_uses_per_user: int = Field(default=1, ge=1)
    no_of_users_total: int = Field(default=100, ge=1)
    destinations: list[uuid.UUID] = []
    start_date: date | None = None
    end_date: date | None = None
    active: bool = True


class DiscountUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    destinations: list[uuid.UUID] | None = None
    active: bool | None = None
    archived: bool | None = None


class DiscountResponse(BaseModel):
    id: uuid.UUID
    name: str
    code: str | None
    applicable_on: dict
    discount_type: str
    user_type: str
    discount_percentage: float
    max_discount: float | None
    no_limit: bool
    no_of_uses_per_user: int
    no_of_users_total: int
    destinations: list[uuid.UUID]
    start_date: date | None
    end_date: date | None
    active: bool
    archived: bool
    total_discount_usage_count: int
    total_discount_value: float
    created_at: datetime

    model_config = {"from_attributes": True}


class ApplyDiscountRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    discount_id: uuid.UUID
    total_amount: float = Field(ge=0)


class ApplyDiscountResponse(BaseModel):
    discount_id: uuid.UUID
    amount: float
    applied: bool
    message: str
