"""Airlines and oil types."""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from oilstock.api.auth import RequireAnyAuth, RequireOilManagement, UserInfo
from oilstock.api.common import name_map
from oilstock.core.database import get_db
from oilstock.core.exceptions import NotFound, ReferentialConflict
from oilstock.core.logging_config import get_logger
from oilstock.models import Airline, OilType, StockBatch, UsageRecord
from oilstock.schemas.reference import (
    AirlineCreate,
    AirlineResponse,
    AirlineUpdate,
    OilTypeCreate,
    OilTypeResponse,
    OilTypeUpdate,
)

logger = get_logger(__name__)
router = APIRouter(tags=["reference"])


def _code(code):
    code = (code or "").strip().upper()
    return code or None


def _airline_to_response(a: Airline) -> AirlineResponse:
    return AirlineResponse(
        id=a.id,
        name=a.name,
        code=a.code,
        created_at=a.created_at.isoformat() if a.created_at else "",
    )


def _oil_type_to_response(o: OilType, owner_name=None) -> OilTypeResponse:
    return OilTypeResponse(
        id=o.id,
        name=o.name,
        owner_id=o.owner_id,
        owner_name=owner_name,
        specifications=o.specifications,
        created_at=o.created_at.isoformat() if o.created_at else "",
    )


async def _count(db: AsyncSession, column, value) -> int:
    r = await db.execute(select(func.count()).where(column == value))
    return int(r.scalar_one() or 0)


async def _get_airline(db: AsyncSession, airline_id: int) -> Airline:
    airline = await db.get(Airline, airline_id)
    if not airline:
        raise NotFound("Airline", airline_id)
    return airline


async def _get_oil_type(db: AsyncSession, oil_type_id: int) -> OilType:
    oil_type = await db.get(OilType, oil_type_id)
    if not oil_type:
        raise NotFound("Oil type", oil_type_id)
    return oil_type


@router.get("/airlines", response_model=List[AirlineResponse], tags=["airlines"])
async def list_airlines(
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireAnyAuth),
):
    r = await db.execute(select(Airline).order_by(Airline.name))
    return [_airline_to_response(a) for a in r.scalars().all()]


@router.post("/airlines", response_model=AirlineResponse, tags=["airlines"])
async def create_airline(
    body: AirlineCreate,
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireOilManagement),
):
    airline = Airline(name=body.name.strip(), code=_code(body.code))
    db.add(airline)
    await db.commit()
    logger.info("Airline added id=%s %s", airline.id, airline.name)
    return _airline_to_response(airline)


@router.patch("/airlines/{airline_id}", response_model=AirlineResponse, tags=["airlines"])
async def update_airline(
    airline_id: int,
    body: AirlineUpdate,
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireOilManagement),
):
    airline = await _get_airline(db, airline_id)
    if body.name is not None:
        airline.name = body.name.strip()
    if body.code is not None:
        airline.code = _code(body.code)
    await db.commit()
    return _airline_to_response(airline)


@router.delete("/airlines/{airline_id}", tags=["airlines"])
async def delete_airline(
    airline_id: int,
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireOilManagement),
):
    """Delete an airline no oil type, batch or usage record points at."""
    airline = await _get_airline(db, airline_id)
    dependents = [
        ("oil type(s)", await _count(db, OilType.owner_id, airline_id)),
        ("batch(es)", await _count(db, StockBatch.owner_airline_id, airline_id)),
        ("usage record(s)", await _count(db, UsageRecord.airline_id, airline_id)),
    ]
    used = [f"{n} {label}" for label, n in dependents if n]
    if used:
        raise ReferentialConflict("Airline", airline_id, ", ".join(used))
    await db.delete(airline)
    await db.commit()
    logger.info("Airline deleted id=%s", airline_id)
    return {"ok": True}


@router.get("/oil-types", response_model=List[OilTypeResponse], tags=["oil-types"])
async def list_oil_types(
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireAnyAuth),
):
    r = await db.execute(select(OilType).order_by(OilType.name))
    oil_types = r.scalars().all()
    owners = await name_map(db, Airline.name, (o.owner_id for o in oil_types))
    return [_oil_type_to_response(o, owners.get(o.owner_id)) for o in oil_types]


@router.post("/oil-types", response_model=OilTypeResponse, tags=["oil-types"])
async def create_oil_type(
    body: OilTypeCreate,
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireOilManagement),
):
    """Add an oil grade, for general use or dedicated to one airline."""
    owner = await _get_airline(db, body.owner_id) if body.owner_id is not None else None
    oil_type = OilType(
        name=body.name.strip(),
        owner_id=body.owner_id,
        specifications=body.specifications,
    )
    db.add(oil_type)
    await db.commit()
    logger.info("Oil type added id=%s %s", oil_type.id, oil_type.name)
    return _oil_type_to_response(oil_type, owner.name if owner else None)


@router.patch("/oil-types/{oil_type_id}", response_model=OilTypeResponse, tags=["oil-types"])
async def update_oil_type(
    oil_type_id: int,
    body: OilTypeUpdate,
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireOilManagement),
):
    oil_type = await _get_oil_type(db, oil_type_id)
    changes = body.model_dump(exclude_unset=True)
    if "name" in changes and changes["name"] is not None:
        oil_type.name = changes["name"].strip()
    if "owner_id" in changes:
        if changes["owner_id"] is not None:
            await _get_airline(db, changes["owner_id"])
        oil_type.owner_id = changes["owner_id"]
    if "specifications" in changes:
        oil_type.specifications = changes["specifications"]
    await db.commit()
    owners = await name_map(db, Airline.name, [oil_type.owner_id])
    return _oil_type_to_response(oil_type, owners.get(oil_type.owner_id))


@router.delete("/oil-types/{oil_type_id}", tags=["oil-types"])
async def delete_oil_type(
    oil_type_id: int,
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireOilManagement),
):
    """Delete an oil type that has no batches."""
    oil_type = await _get_oil_type(db, oil_type_id)
    batches = await _count(db, StockBatch.oil_type_id, oil_type_id)
    if batches:
        raise ReferentialConflict("Oil type", oil_type_id, f"{batches} batch(es)")
    await db.delete(oil_type)
    await db.commit()
    logger.info("Oil type deleted id=%s", oil_type_id)
    return {"ok": True}
