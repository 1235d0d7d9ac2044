"""Oil stock out: usage records against batches."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from oilstock.api.auth import RequireStockOut, UserInfo
from oilstock.api.common import usage_to_response
from oilstock.core.database import get_db
from oilstock.core.logging_config import get_logger
from oilstock.schemas.stock import StockOutResponse, UsageCreate, UsageResponse, UsageUpdate
from oilstock.services import ledger

logger = get_logger(__name__)
router = APIRouter(prefix="/usage", tags=["usage"])


@router.get("", response_model=List[UsageResponse])
async def list_usage(
    batch_id: Optional[int] = Query(None),
    airline_id: Optional[int] = Query(None),
    aircraft_registration: Optional[str] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireStockOut),
):
    """Usage history, most recent first."""
    records = await ledger.list_usage(
        db,
        batch_id=batch_id,
        airline_id=airline_id,
        aircraft_registration=aircraft_registration,
        limit=limit,
    )
    return await usage_to_response(db, records)


@router.post("", response_model=StockOutResponse)
async def record_usage(
    body: UsageCreate,
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(RequireStockOut),
):
    """Record a stock out; may span several batches, oldest first."""
    records = await ledger.record_usage(
        db,
        oil_type_id=body.oil_type_id,
        owner=body.owner,
        owner_airline_id=body.owner_airline_id,
        airline_id=body.airline_id,
        aircraft_registration=body.aircraft_registration,
        quantity_used=body.quantity_used,
        staff_id=body.staff_id if body.staff_id is not None else user.id,
        notes=body.notes,
        usage_at=body.usage_at,
    )
    await db.commit()
    return StockOutResponse(
        quantity_used=sum(r.quantity_used for r in records),
        records=await usage_to_response(db, records),
    )


@router.patch("/{usage_id}", response_model=UsageResponse)
async def edit_usage(
    usage_id: int,
    body: UsageUpdate,
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireStockOut),
):
    """Edit a usage record; a new quantity re-debits its batch."""
    changes = body.model_dump(exclude_unset=True)
    record = await ledger.edit_usage(db, usage_id, **changes)
    await db.commit()
    return (await usage_to_response(db, [record]))[0]


@router.delete("/{usage_id}")
async def delete_usage(
    usage_id: int,
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireStockOut),
):
    """Delete a usage record and return its quantity to the batch."""
    await ledger.delete_usage(db, usage_id)
    await db.commit()
    return {"ok": True}
