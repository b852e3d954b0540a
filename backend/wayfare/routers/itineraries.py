import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wayfare.database import get_db
from wayfare.dependencies import get_current_user_id, get_pipeline
from wayfare.errors import ItineraryError
from wayfare.models.catalog import Activity
from wayfare.models.itinerary import ScheduledActivity
from wayfare.schemas.itinerary import (
    AddCityRequest,
    AddDaysRequest,
    CreateItineraryRequest,
    DeleteDaysRequest,
    ItineraryResponse,
    ItineraryVersionResponse,
    ReplaceActivityRequest,
    ReplaceCityRequest,
    ScheduledActivityResponse,
    TransportModeRequest,
    UpdateDetailsRequest,
)
from wayfare.services.itinerary_pipeline import ItineraryPipeline

router = APIRouter()


def _http_error(e: ItineraryError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


@router.post("", status_code=201, response_model=ItineraryResponse)
async def create_itinerary(
    req: CreateItineraryRequest,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: ItineraryPipeline = Depends(get_pipeline),
):
    """Draft, price and store a new itinerary."""
    try:
        return await pipeline.create(db, user_id, req)
    except ItineraryError as e:
        raise _http_error(e)


@router.get("/{itinerary_id}", response_model=ItineraryResponse)
async def get_itinerary(
    itinerary_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: ItineraryPipeline = Depends(get_pipeline),
):
    try:
        return await pipeline.store.load(db, itinerary_id, user_id)
    except ItineraryError as e:
        raise _http_error(e)


@router.get("/{itinerary_id}/activities", response_model=list[ScheduledActivityResponse])
async def list_activities(
    itinerary_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: ItineraryPipeline = Depends(get_pipeline),
):
    """Every scheduled activity of the itinerary, in tree order, with its catalog price."""
    try:
        itinerary = await pipeline.store.load(db, itinerary_id, user_id)
    except ItineraryError as e:
        raise _http_error(e)

    tree = pipeline.store.tree_of(itinerary)
    ids = {a for leg in tree.legs for day in leg.days for a in day.activities}
    if not ids:
        return []

    result = await db.execute(
        select(ScheduledActivity, Activity.price)
        .outerjoin(Activity, Activity.id == ScheduledActivity.activity_id)
        .where(ScheduledActivity.id.in_(ids))
    )
    rows = {sa.id: (sa, price) for sa, price in result.all()}

    activities = []
    for leg_index, leg in enumerate(tree.legs):
        for day in leg.days:
            for scheduled_id in day.activities:
                if scheduled_id not in rows:
                    continue
                sa, price = rows[scheduled_id]
                item = ScheduledActivityResponse.model_validate(sa)
                item.price = float(price or 0)
                item.leg_index = leg_index
                item.day_number = day.day_number
                item.day_date = day.date
                activities.append(item)
    return activities


@router.get("/{itinerary_id}/versions", response_model=list[ItineraryVersionResponse])
async def list_versions(
    itinerary_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: ItineraryPipeline = Depends(get_pipeline),
):
    try:
        await pipeline.store.load(db, itinerary_id, user_id)
    except ItineraryError as e:
        raise _http_error(e)
    return await pipeline.store.list_versions(db, itinerary_id)


# --- Cities ---

@router.patch("/{itinerary_id}/cities/add-city", response_model=ItineraryResponse)
async def add_city(
    itinerary_id: uuid.UUID,
    req: AddCityRequest,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: ItineraryPipeline = Depends(get_pipeline),
):
    try:
        return await pipeline.add_city(db, itinerary_id, user_id, req.new_city, req.position)
    except ItineraryError as e:
        raise _http_error(e)


@router.patch("/{itinerary_id}/cities/{index}/delete-city", response_model=ItineraryResponse)
async def delete_city(
    itinerary_id: uuid.UUID,
    index: int,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: ItineraryPipeline = Depends(get_pipeline),
):
    try:
        return await pipeline.delete_city(db, itinerary_id, user_id, index)
    except ItineraryError as e:
        raise _http_error(e)


@router.patch("/{itinerary_id}/cities/{index}/replace-city", response_model=ItineraryResponse)
async def replace_city(
    itinerary_id: uuid.UUID,
    index: int,
    req: ReplaceCityRequest,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: ItineraryPipeline = Depends(get_pipeline),
):
    try:
        return await pipeline.replace_city(db, itinerary_id, user_id, index, req.new_city)
    except ItineraryError as e:
        raise _http_error(e)


@router.patch("/{itinerary_id}/cities/{index}/add-days", response_model=ItineraryResponse)
async def add_days(
    itinerary_id: uuid.UUID,
    index: int,
    req: AddDaysRequest,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: ItineraryPipeline = Depends(get_pipeline),
):
    try:
        return await pipeline.add_days(db, itinerary_id, user_id, index, req.additional_days)
    except ItineraryError as e:
        raise _http_error(e)


@router.patch("/{itinerary_id}/cities/{index}/delete-days", response_model=ItineraryResponse)
async def delete_days(
    itinerary_id: uuid.UUID,
    index: int,
    req: DeleteDaysRequest,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: ItineraryPipeline = Depends(get_pipeline),
):
    try:
        return await pipeline.delete_days(db, itinerary_id, user_id, index, req.days_to_delete)
    except ItineraryError as e:
        raise _http_error(e)


@router.patch("/{itinerary_id}/cities/{index}/transport-mode", response_model=ItineraryResponse)
async def change_transport_mode(
    itinerary_id: uuid.UUID,
    index: int,
    req: TransportModeRequest,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: ItineraryPipeline = Depends(get_pipeline),
):
    try:
        return await pipeline.change_transport_mode(db, itinerary_id, user_id, index, req.new_mode)
    except ItineraryError as e:
        raise _http_error(e)


# --- Activities ---

@router.patch("/{itinerary_id}/activity/{scheduled_activity_id}/replace", response_model=ItineraryResponse)
async def replace_activity(
    itinerary_id: uuid.UUID,
    scheduled_activity_id: uuid.UUID,
    req: ReplaceActivityRequest,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: ItineraryPipeline = Depends(get_pipeline),
):
    try:
        return await pipeline.replace_activity(
            db, itinerary_id, user_id, scheduled_activity_id, req.new_activity_id
        )
    except ItineraryError as e:
        raise _http_error(e)


@router.patch("/{itinerary_id}/activity/{scheduled_activity_id}/replaceLeisure", response_model=ItineraryResponse)
async def replace_with_leisure(
    itinerary_id: uuid.UUID,
    scheduled_activity_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: ItineraryPipeline = Depends(get_pipeline),
):
    try:
        return await pipeline.replace_with_leisure(db, itinerary_id, user_id, scheduled_activity_id)
    except ItineraryError as e:
        raise _http_error(e)


# --- Details & coupons ---

@router.patch("/{itinerary_id}/update-details", response_model=ItineraryResponse)
async def update_details(
    itinerary_id: uuid.UUID,
    req: UpdateDetailsRequest,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: ItineraryPipeline = Depends(get_pipeline),
):
    try:
        return await pipeline.update_details(
            db,
            itinerary_id,
            user_id,
            new_start_date=req.new_start_date,
            travelling_with=req.travelling_with,
            rooms=req.rooms,
        )
    except ItineraryError as e:
        raise _http_error(e)


@router.patch("/{itinerary_id}/addCoupon/{discount_id}", response_model=ItineraryResponse)
async def add_coupon(
    itinerary_id: uuid.UUID,
    discount_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: ItineraryPipeline = Depends(get_pipeline),
):
    try:
        return await pipeline.add_coupon(db, itinerary_id, user_id, discount_id)
    except ItineraryError as e:
        raise _http_error(e)


@router.delete("/{itinerary_id}", status_code=204)
async def delete_itinerary(
    itinerary_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: ItineraryPipeline = Depends(get_pipeline),
):
    """Delete the itinerary and every priced sub-resource it owns."""
    try:
        await pipeline.delete(db, itinerary_id, user_id)
    except ItineraryError as e:
        raise _http_error(e)
