"""Oil stock in: batches, availability, FIFO preview and ledger checks."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from oilstock.api.auth import (
    RequireAnyAuth,
    RequireOilManagement,
    RequireStockIn,
    RequireStockOut,
    RequireStockView,
    UserInfo,
)
from oilstock.api.common import batches_to_response
from oilstock.core.database import get_db
from oilstock.models import StockOwner
from oilstock.schemas.stock import (
    AvailabilityResponse,
    BatchCreate,
    BatchResponse,
    DiscrepancyResponse,
    ReconcileResponse,
    StockLevelResponse,
)
from oilstock.services import ledger

router = APIRouter(prefix="/stock", tags=["stock"])


@router.get("/batches", response_model=List[BatchResponse])
async def list_batches(
    oil_type_id: Optional[int] = Query(None),
    owner: Optional[StockOwner] = Query(None),
    owner_airline_id: Optional[int] = Query(None),
    available: bool = Query(False, description="Only batches with stock left, FIFO order"),
    limit: int = Query(200, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireStockView),
):
    """Stock-in history, newest first."""
    batches = await ledger.list_batches(
        db,
        oil_type_id=oil_type_id,
        owner=owner,
        owner_airline_id=owner_airline_id,
        only_available=available,
        limit=limit,
    )
    return await batches_to_response(db, batches)


@router.post("/batches", response_model=BatchResponse)
async def receive_stock(
    body: BatchCreate,
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(RequireStockIn),
):
    """Record a received batch on behalf of the logged-in staff member."""
    batch = await ledger.receive_stock(
        db,
        oil_type_id=body.oil_type_id,
        owner=body.owner,
        owner_airline_id=body.owner_airline_id,
        batch_number=body.batch_number,
        quantity_received=body.quantity_received,
        staff_id=user.id,
        received_at=body.received_at,
    )
    await db.commit()
    return (await batches_to_response(db, [batch]))[0]


@router.delete("/batches/{batch_id}")
async def delete_batch(
    batch_id: int,
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireStockIn),
):
    """Delete a batch nobody has drawn from yet."""
    await ledger.delete_batch(db, batch_id)
    await db.commit()
    return {"ok": True}


@router.get("/available", response_model=AvailabilityResponse)
async def get_available(
    oil_type_id: int = Query(...),
    owner: StockOwner = Query(...),
    owner_airline_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireStockOut),
):
    """Total available for a scope and its batches in the order they will be drawn."""
    batches = await ledger.available_batches(
        db, oil_type_id=oil_type_id, owner=owner, owner_airline_id=owner_airline_id,
    )
    total = await ledger.available_quantity(
        db, oil_type_id=oil_type_id, owner=owner, owner_airline_id=owner_airline_id,
    )
    return AvailabilityResponse(
        oil_type_id=oil_type_id,
        owner=owner.value,
        owner_airline_id=owner_airline_id if owner == StockOwner.EXTERNAL else None,
        available=total,
        batches=await batches_to_response(db, batches),
    )


@router.get("/next-batch", response_model=BatchResponse)
async def get_next_batch(
    oil_type_id: int = Query(...),
    owner: StockOwner = Query(...),
    owner_airline_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireStockOut),
):
    """Batch the next stock-out would draw from (FIFO)."""
    batch = await ledger.select_debit_batch(
        db, oil_type_id=oil_type_id, owner=owner, owner_airline_id=owner_airline_id,
    )
    return (await batches_to_response(db, [batch]))[0]


@router.get("/summary", response_model=List[StockLevelResponse])
async def get_summary(
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireAnyAuth),
):
    """Received and remaining per oil type and owner."""
    levels = await ledger.stock_summary(db)
    return [
        StockLevelResponse(
            oil_type_id=lv.oil_type_id,
            owner=lv.owner.value,
            owner_airline_id=lv.owner_airline_id,
            batches_in_stock=lv.batches_in_stock,
            quantity_received=lv.quantity_received,
            quantity_remaining=lv.quantity_remaining,
        )
        for lv in levels
    ]


@router.get("/reconcile", response_model=ReconcileResponse)
async def reconcile(
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireOilManagement),
):
    """Check every batch against its usage records."""
    found = await ledger.reconcile_batches(db)
    return ReconcileResponse(
        balanced=not found,
        discrepancies=[DiscrepancyResponse(**d.__dict__) for d in found],
    )
