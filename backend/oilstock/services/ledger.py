"""
Stock ledger: stock-in, FIFO stock-out, usage edits and deletes.

Invariant kept by every operation here:
    quantity_remaining = quantity_received - sum(quantity_used of the batch's usage records)

Functions flush but never commit; the caller owns the transaction. Usage
operations lock the batch rows they read (SELECT ... FOR UPDATE) so two
concurrent debits cannot both pass the availability check.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence, Tuple

from sqlalchemy import Select, select, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from oilstock.core.exceptions import (
    InsufficientStock,
    InvalidQuantity,
    MissingOwnerParty,
    NotFound,
    ReferentialConflict,
)
from oilstock.core.logging_config import get_logger
from oilstock.models import Airline, OilType, Staff, StockBatch, StockOwner, UsageRecord

logger = get_logger(__name__)

_UNSET: Any = object()


@dataclass(frozen=True)
class BatchDiscrepancy:
    """A batch whose stored remaining quantity disagrees with its usage records."""
    batch_id: int
    batch_number: str
    quantity_received: int
    quantity_remaining: int
    quantity_used: int
    expected_remaining: int


@dataclass(frozen=True)
class StockLevel:
    """Stock totals for one (oil type, owner, owner airline) scope."""
    oil_type_id: int
    owner: StockOwner
    owner_airline_id: Optional[int]
    batches_in_stock: int
    quantity_received: int
    quantity_remaining: int


def _require_quantity(value: Any, field: str) -> int:
    # bool is an int subclass; True is not a quantity
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidQuantity(value, field)
    return value


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC; offset-aware input is converted first."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _scope_owner_airline(owner: StockOwner, owner_airline_id: Optional[int]) -> Optional[int]:
    """Owner airline that belongs in the scope: required for external, dropped for internal."""
    owner = StockOwner(owner)
    if owner == StockOwner.EXTERNAL:
        if owner_airline_id is None:
            raise MissingOwnerParty()
        return owner_airline_id
    return None


def _normalize_registration(registration: str) -> str:
    return (registration or "").strip().upper()


async def _get(db: AsyncSession, model, entity_id: Optional[int], entity: str):
    if entity_id is None:
        raise NotFound(entity)
    row = await db.get(model, entity_id)
    if row is None:
        raise NotFound(entity, entity_id)
    return row


def fifo_order(query: Select) -> Select:
    """Oldest received first; ties by creation time, then id."""
    return query.order_by(StockBatch.received_at, StockBatch.created_at, StockBatch.id)


def _scope_query(oil_type_id: int, owner: StockOwner, owner_airline_id: Optional[int]) -> Select:
    q = select(StockBatch).where(
        StockBatch.oil_type_id == oil_type_id,
        StockBatch.owner == owner,
    )
    if owner_airline_id is not None:
        q = q.where(StockBatch.owner_airline_id == owner_airline_id)
    return q


def plan_fifo_debits(batches: Sequence[StockBatch], quantity: int) -> List[Tuple[StockBatch, int]]:
    """
    Split quantity over batches already in FIFO order.

    Returns (batch, amount) pairs; each amount is at most the batch's remaining
    quantity. Raises InsufficientStock when the batches together hold less
    than quantity.
    """
    quantity = _require_quantity(quantity, "quantity_used")
    available = sum(max(b.quantity_remaining, 0) for b in batches)
    if available < quantity:
        raise InsufficientStock(available=available, requested=quantity)
    plan = []
    left = quantity
    for batch in batches:
        if left == 0:
            break
        take = min(batch.quantity_remaining, left)
        if take <= 0:
            continue
        plan.append((batch, take))
        left -= take
    return plan


async def receive_stock(
    db: AsyncSession,
    *,
    oil_type_id: int,
    owner: StockOwner,
    batch_number: str,
    quantity_received: int,
    staff_id: int,
    owner_airline_id: Optional[int] = None,
    received_at: Optional[datetime] = None,
) -> StockBatch:
    """Record an incoming batch. The new batch starts with everything remaining."""
    quantity_received = _require_quantity(quantity_received, "quantity_received")
    owner = StockOwner(owner)
    owner_airline_id = _scope_owner_airline(owner, owner_airline_id)
    await _get(db, OilType, oil_type_id, "Oil type")
    if owner_airline_id is not None:
        await _get(db, Airline, owner_airline_id, "Airline")
    await _get(db, Staff, staff_id, "Staff")

    now = datetime.utcnow()
    batch = StockBatch(
        oil_type_id=oil_type_id,
        owner=owner,
        owner_airline_id=owner_airline_id,
        batch_number=batch_number.strip(),
        quantity_received=quantity_received,
        quantity_remaining=quantity_received,
        received_at=_naive_utc(received_at) or now,
        created_at=now,
        created_by=staff_id,
    )
    db.add(batch)
    await db.flush()
    logger.info(
        "Stock in: batch id=%s number=%s oil_type=%s owner=%s qty=%s",
        batch.id, batch.batch_number, oil_type_id, owner.value, quantity_received,
    )
    return batch


async def available_quantity(
    db: AsyncSession,
    *,
    oil_type_id: int,
    owner: StockOwner,
    owner_airline_id: Optional[int] = None,
) -> int:
    """Total remaining over the scope."""
    owner = StockOwner(owner)
    q = select(func.coalesce(func.sum(StockBatch.quantity_remaining), 0)).where(
        StockBatch.oil_type_id == oil_type_id,
        StockBatch.owner == owner,
    )
    if owner == StockOwner.EXTERNAL and owner_airline_id is not None:
        q = q.where(StockBatch.owner_airline_id == owner_airline_id)
    return int((await db.execute(q)).scalar_one() or 0)


async def available_batches(
    db: AsyncSession,
    *,
    oil_type_id: int,
    owner: StockOwner,
    owner_airline_id: Optional[int] = None,
    lock: bool = False,
) -> List[StockBatch]:
    """Batches with stock left in the scope, in FIFO order."""
    owner = StockOwner(owner)
    if owner == StockOwner.INTERNAL:
        owner_airline_id = None
    q = fifo_order(
        _scope_query(oil_type_id, owner, owner_airline_id).where(StockBatch.quantity_remaining > 0)
    )
    if lock:
        q = q.with_for_update().execution_options(populate_existing=True)
    return list((await db.execute(q)).scalars().all())


async def select_debit_batch(
    db: AsyncSession,
    *,
    oil_type_id: int,
    owner: StockOwner,
    owner_airline_id: Optional[int] = None,
) -> StockBatch:
    """The batch the next debit would draw from. Read only."""
    batches = await available_batches(
        db, oil_type_id=oil_type_id, owner=owner, owner_airline_id=owner_airline_id,
    )
    if not batches:
        raise NotFound("Batch with available stock")
    return batches[0]


async def record_usage(
    db: AsyncSession,
    *,
    oil_type_id: int,
    owner: StockOwner,
    airline_id: int,
    aircraft_registration: str,
    quantity_used: int,
    staff_id: int,
    owner_airline_id: Optional[int] = None,
    notes: Optional[str] = None,
    usage_at: Optional[datetime] = None,
) -> List[UsageRecord]:
    """
    Withdraw oil for an aircraft.

    Draws the batches of the scope down oldest first until quantity_used is
    covered and writes one usage record per batch touched. Nothing changes
    when the scope holds less than quantity_used.
    """
    quantity_used = _require_quantity(quantity_used, "quantity_used")
    owner = StockOwner(owner)
    owner_airline_id = _scope_owner_airline(owner, owner_airline_id)
    await _get(db, OilType, oil_type_id, "Oil type")
    await _get(db, Airline, airline_id, "Airline")
    await _get(db, Staff, staff_id, "Staff")

    batches = await available_batches(
        db, oil_type_id=oil_type_id, owner=owner, owner_airline_id=owner_airline_id, lock=True,
    )
    plan = plan_fifo_debits(batches, quantity_used)

    registration = _normalize_registration(aircraft_registration)
    when = _naive_utc(usage_at) or datetime.utcnow()
    records = []
    for batch, amount in plan:
        batch.quantity_remaining -= amount
        record = UsageRecord(
            batch_id=batch.id,
            airline_id=airline_id,
            aircraft_registration=registration,
            quantity_used=amount,
            staff_id=staff_id,
            notes=notes,
            usage_at=when,
        )
        db.add(record)
        records.append(record)
    await db.flush()
    logger.info(
        "Stock out: %s units for %s from batches %s",
        quantity_used, registration, [(b.id, amount) for b, amount in plan],
    )
    return records


async def _lock_usage(db: AsyncSession, usage_id: int) -> UsageRecord:
    q = (
        select(UsageRecord)
        .where(UsageRecord.id == usage_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    record = (await db.execute(q)).scalar_one_or_none()
    if record is None:
        raise NotFound("Usage record", usage_id)
    return record


async def _lock_batch(db: AsyncSession, batch_id: int) -> StockBatch:
    q = (
        select(StockBatch)
        .where(StockBatch.id == batch_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    batch = (await db.execute(q)).scalar_one_or_none()
    if batch is None:
        raise NotFound("Batch", batch_id)
    return batch


async def edit_usage(
    db: AsyncSession,
    usage_id: int,
    *,
    quantity_used: Optional[int] = None,
    airline_id: Optional[int] = None,
    aircraft_registration: Optional[str] = None,
    staff_id: Optional[int] = None,
    notes: Any = _UNSET,
    usage_at: Optional[datetime] = None,
) -> UsageRecord:
    """
    Change a usage record. A new quantity re-debits its batch:
    remaining + old quantity - new quantity, which must not go below zero.
    """
    record = await _lock_usage(db, usage_id)
    if quantity_used is not None:
        quantity_used = _require_quantity(quantity_used, "quantity_used")
    if airline_id is not None:
        await _get(db, Airline, airline_id, "Airline")
    if staff_id is not None:
        await _get(db, Staff, staff_id, "Staff")

    if quantity_used is not None and quantity_used != record.quantity_used:
        batch = await _lock_batch(db, record.batch_id)
        restored = batch.quantity_remaining + record.quantity_used
        if restored - quantity_used < 0:
            raise InsufficientStock(available=restored, requested=quantity_used)
        logger.info(
            "Usage id=%s quantity %s -> %s, batch id=%s remaining %s -> %s",
            record.id, record.quantity_used, quantity_used,
            batch.id, batch.quantity_remaining, restored - quantity_used,
        )
        batch.quantity_remaining = restored - quantity_used
        record.quantity_used = quantity_used

    if airline_id is not None:
        record.airline_id = airline_id
    if aircraft_registration is not None:
        record.aircraft_registration = _normalize_registration(aircraft_registration)
    if staff_id is not None:
        record.staff_id = staff_id
    if notes is not _UNSET:
        record.notes = notes
    if usage_at is not None:
        record.usage_at = _naive_utc(usage_at)
    await db.flush()
    return record


async def delete_usage(db: AsyncSession, usage_id: int) -> None:
    """Remove a usage record and credit its quantity back to the batch."""
    record = await _lock_usage(db, usage_id)
    batch = await _lock_batch(db, record.batch_id)
    batch.quantity_remaining += record.quantity_used
    await db.delete(record)
    await db.flush()
    logger.info(
        "Usage id=%s deleted, batch id=%s credited %s (remaining %s)",
        usage_id, batch.id, record.quantity_used, batch.quantity_remaining,
    )


async def delete_batch(db: AsyncSession, batch_id: int) -> None:
    """Delete a batch that no usage record points at."""
    batch = await _lock_batch(db, batch_id)
    q = select(func.count(UsageRecord.id)).where(UsageRecord.batch_id == batch_id)
    used = int((await db.execute(q)).scalar_one() or 0)
    if used:
        raise ReferentialConflict("Batch", batch_id, f"{used} usage record(s)")
    await db.delete(batch)
    await db.flush()
    logger.info("Batch id=%s (%s) deleted", batch_id, batch.batch_number)


async def list_batches(
    db: AsyncSession,
    *,
    oil_type_id: Optional[int] = None,
    owner: Optional[StockOwner] = None,
    owner_airline_id: Optional[int] = None,
    only_available: bool = False,
    limit: Optional[int] = None,
) -> List[StockBatch]:
    """Stock-in history, newest first; FIFO order when only batches with stock are asked for."""
    q = select(StockBatch)
    if oil_type_id is not None:
        q = q.where(StockBatch.oil_type_id == oil_type_id)
    if owner is not None:
        q = q.where(StockBatch.owner == StockOwner(owner))
    if owner_airline_id is not None:
        q = q.where(StockBatch.owner_airline_id == owner_airline_id)
    if only_available:
        q = fifo_order(q.where(StockBatch.quantity_remaining > 0))
    else:
        q = q.order_by(StockBatch.created_at.desc(), StockBatch.id.desc())
    if limit is not None:
        q = q.limit(limit)
    return list((await db.execute(q)).scalars().all())


async def list_usage(
    db: AsyncSession,
    *,
    batch_id: Optional[int] = None,
    airline_id: Optional[int] = None,
    aircraft_registration: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[UsageRecord]:
    """Stock-out history, most recent usage first."""
    q = select(UsageRecord)
    if batch_id is not None:
        q = q.where(UsageRecord.batch_id == batch_id)
    if airline_id is not None:
        q = q.where(UsageRecord.airline_id == airline_id)
    if aircraft_registration:
        q = q.where(UsageRecord.aircraft_registration == _normalize_registration(aircraft_registration))
    q = q.order_by(UsageRecord.usage_at.desc(), UsageRecord.id.desc())
    if limit is not None:
        q = q.limit(limit)
    return list((await db.execute(q)).scalars().all())


async def stock_summary(db: AsyncSession) -> List[StockLevel]:
    """Received and remaining totals per scope."""
    q = (
        select(
            StockBatch.oil_type_id,
            StockBatch.owner,
            StockBatch.owner_airline_id,
            func.sum(case((StockBatch.quantity_remaining > 0, 1), else_=0)),
            func.coalesce(func.sum(StockBatch.quantity_received), 0),
            func.coalesce(func.sum(StockBatch.quantity_remaining), 0),
        )
        .group_by(StockBatch.oil_type_id, StockBatch.owner, StockBatch.owner_airline_id)
        .order_by(StockBatch.oil_type_id, StockBatch.owner, StockBatch.owner_airline_id)
    )
    rows = (await db.execute(q)).all()
    return [
        StockLevel(
            oil_type_id=r[0],
            owner=r[1],
            owner_airline_id=r[2],
            batches_in_stock=int(r[3] or 0),
            quantity_received=int(r[4]),
            quantity_remaining=int(r[5]),
        )
        for r in rows
    ]


async def reconcile_batches(
    db: AsyncSession, batch_ids: Optional[Sequence[int]] = None
) -> List[BatchDiscrepancy]:
    """Batches whose remaining quantity does not match received minus usage."""
    used = (
        select(UsageRecord.batch_id, func.sum(UsageRecord.quantity_used).label("used"))
        .group_by(UsageRecord.batch_id)
        .subquery()
    )
    q = (
        select(StockBatch, func.coalesce(used.c.used, 0))
        .outerjoin(used, used.c.batch_id == StockBatch.id)
        .order_by(StockBatch.id)
    )
    if batch_ids is not None:
        q = q.where(StockBatch.id.in_(list(batch_ids)))
    out = []
    for batch, total_used in (await db.execute(q)).all():
        total_used = int(total_used)
        expected = batch.quantity_received - total_used
        in_range = 0 <= batch.quantity_remaining <= batch.quantity_received
        if expected != batch.quantity_remaining or not in_range:
            out.append(BatchDiscrepancy(
                batch_id=batch.id,
                batch_number=batch.batch_number,
                quantity_received=batch.quantity_received,
                quantity_remaining=batch.quantity_remaining,
                quantity_used=total_used,
                expected_remaining=expected,
            ))
    if out:
        logger.warning("Ledger check: %s batch(es) out of balance", len(out))
    return out
