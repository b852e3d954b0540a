import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wayfare.database import get_db
from wayfare.dependencies import get_current_user_id
from wayfare.errors import ItineraryError
from wayfare.models.discount import Discount
from wayfare.schemas.discount import (
    ApplyDiscountRequest,
    ApplyDiscountResponse,
    DiscountCreate,
    DiscountResponse,
    DiscountUpdate,
)
from wayfare.services.discount_engine import discount_engine

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", status_code=201, response_model=DiscountResponse)
async def create_discount(
    req: DiscountCreate,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    if req.start_date and req.end_date and req.end_date < req.start_date:
        raise HTTPException(status_code=400, detail="end_date must not be before start_date")

    discount = Discount(
        name=req.name,
        code=req.code,
        applicable_on=req.applicable_on.model_dump(),
        discount_type=req.discount_type,
        user_type=req.user_type,
        discount_percentage=req.discount_percentage,
        max_discount=req.max_discount,
        no_limit=req.no_limit,
        no_of_uses_per_user=req.no_of_uses_per_user,
        no_of_users_total=req.no_of_users_total,
        destinations=[str(d) for d in req.destinations],
        start_date=req.start_date,
        end_date=req.end_date,
        active=req.active,
        archived=False,
        total_discount_usage_count=0,
        total_discount_value=0,
    )
    db.add(discount)
    await db.commit()
    await db.refresh(discount)
    logger.info(f"Discount {discount.id} ({discount.discount_type}) created by {user_id}")
    return discount


@router.get("", response_model=list[DiscountResponse])
async def list_discounts(
    active: bool | None = Query(None),
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    query = select(Discount).where(Discount.archived == False).order_by(Discount.created_at.desc())
    if active is not None:
        query = query.where(Discount.active == active)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{discount_id}", response_model=DiscountResponse)
async def get_discount(
    discount_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    discount = await db.get(Discount, discount_id)
    if not discount:
        raise HTTPException(status_code=404, detail="Discount not found")
    return discount


@router.patch("/{discount_id}", response_model=DiscountResponse)
async def update_discount(
    discount_id: uuid.UUID,
    req: DiscountUpdate,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    discount = await db.get(Discount, discount_id)
    if not discount:
        raise HTTPException(status_code=404, detail="Discount not found")

    if req.destinations is not None:
        discount.destinations = [str(d) for d in req.destinations]
    if req.active is not None:
        discount.active = req.active
    if req.archived is not None:
        discount.archived = req.archived

    await db.commit()
    await db.refresh(discount)
    return discount


@router.post("/apply", response_model=ApplyDiscountResponse)
async def apply_discount(
    req: ApplyDiscountRequest,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    """Apply a discount to an amount for the current user, outside any itinerary."""
    try:
        amount, message = await discount_engine.redeem(db, req.discount_id, user_id, req.total_amount)
    except ItineraryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    await db.commit()

    return ApplyDiscountResponse(
        discount_id=req.discount_id,
        amount=float(amount),
        applied=amount > 0,
        message=message,
    )
