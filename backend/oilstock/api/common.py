"""Helpers shared by the routers: id → display name lookups and response builders."""
from typing import Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from oilstock.models import Airline, OilType, Staff, StockBatch, UsageRecord
from oilstock.schemas.stock import BatchResponse, UsageResponse


def _iso(value) -> str:
    return value.isoformat() if value else ""


async def name_map(db: AsyncSession, column, ids: Iterable[Optional[int]]) -> Dict[int, str]:
    """{id: value} for the rows of column's table with the given ids."""
    wanted = {i for i in ids if i is not None}
    if not wanted:
        return {}
    model_id = column.class_.id
    r = await db.execute(select(model_id, column).where(model_id.in_(wanted)))
    return {row[0]: row[1] for row in r.all()}


async def batches_to_response(db: AsyncSession, batches: Iterable[StockBatch]) -> list:
    batches = list(batches)
    oil_names = await name_map(db, OilType.name, (b.oil_type_id for b in batches))
    airline_names = await name_map(db, Airline.name, (b.owner_airline_id for b in batches))
    return [
        BatchResponse(
            id=b.id,
            oil_type_id=b.oil_type_id,
            oil_type_name=oil_names.get(b.oil_type_id),
            owner=b.owner.value,
            owner_airline_id=b.owner_airline_id,
            owner_airline_name=airline_names.get(b.owner_airline_id),
            batch_number=b.batch_number,
            quantity_received=b.quantity_received,
            quantity_remaining=b.quantity_remaining,
            received_at=_iso(b.received_at),
            created_at=_iso(b.created_at),
            created_by=b.created_by,
        )
        for b in batches
    ]


async def usage_to_response(db: AsyncSession, records: Iterable[UsageRecord]) -> list:
    records = list(records)
    batch_numbers = await name_map(db, StockBatch.batch_number, (u.batch_id for u in records))
    batch_oil = await name_map(db, StockBatch.oil_type_id, (u.batch_id for u in records))
    oil_names = await name_map(db, OilType.name, batch_oil.values())
    airline_names = await name_map(db, Airline.name, (u.airline_id for u in records))
    staff_names = await name_map(db, Staff.name, (u.staff_id for u in records))
    return [
        UsageResponse(
            id=u.id,
            batch_id=u.batch_id,
            batch_number=batch_numbers.get(u.batch_id),
            oil_type_name=oil_names.get(batch_oil.get(u.batch_id)),
            airline_id=u.airline_id,
            airline_name=airline_names.get(u.airline_id),
            aircraft_registration=u.aircraft_registration,
            quantity_used=u.quantity_used,
            staff_id=u.staff_id,
            staff_name=staff_names.get(u.staff_id),
            notes=u.notes,
            usage_at=_iso(u.usage_at),
        )
        for u in records
    ]
