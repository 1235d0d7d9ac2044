from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from oilstock.api.auth import RequireStaffManagement, UserInfo
from oilstock.core.database import get_db
from oilstock.core.logging_config import get_logger
from oilstock.core.permissions import DEFAULT_CAPABILITIES, apply_capabilities, staff_capabilities
from oilstock.models import Staff
from oilstock.models.staff import StaffRole
from oilstock.schemas.staff import StaffCreate, StaffResponse, StaffUpdate
from oilstock.services.auth_service import hash_password

logger = get_logger(__name__)
router = APIRouter(prefix="/staff", tags=["staff"])


def _staff_to_response(s: Staff) -> StaffResponse:
    return StaffResponse(
        id=s.id,
        name=s.name,
        role=s.role.value,
        login=s.login,
        capabilities=sorted(staff_capabilities(s), key=lambda c: c.value),
        is_active=s.is_active,
    )


def _clean_login(login: Optional[str]) -> Optional[str]:
    login = (login or "").strip().lower()
    return login or None


async def _ensure_login_free(db: AsyncSession, login: str, staff_id: Optional[int] = None) -> None:
    q = select(Staff.id).where(func.lower(Staff.login) == login)
    if staff_id is not None:
        q = q.where(Staff.id != staff_id)
    r = await db.execute(q)
    if r.first() is not None:
        raise HTTPException(status_code=400, detail="Login is already taken")


@router.get("", response_model=list[StaffResponse])
async def list_staff(
    all_staff: bool = Query(False, alias="all", description="Include inactive accounts (admin only)"),
    db: AsyncSession = Depends(get_db),
    current_user: UserInfo = Depends(RequireStaffManagement),
):
    if all_staff and current_user.role == StaffRole.ADMIN.value:
        result = await db.execute(select(Staff).order_by(Staff.name))
    else:
        result = await db.execute(
            select(Staff).where(Staff.is_active == True).order_by(Staff.name)
        )
    return [_staff_to_response(s) for s in result.scalars().all()]


@router.post("", response_model=StaffResponse)
async def create_staff(
    data: StaffCreate,
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireStaffManagement),
):
    login = _clean_login(data.login)
    if login:
        await _ensure_login_free(db, login)
    staff = Staff(
        name=data.name.strip(),
        role=data.role,
        login=login,
        password_hash=hash_password(data.password) if data.password else None,
        is_active=True,
    )
    apply_capabilities(
        staff, DEFAULT_CAPABILITIES if data.capabilities is None else data.capabilities
    )
    db.add(staff)
    await db.commit()
    logger.info("Staff added id=%s role=%s", staff.id, staff.role.value)
    return _staff_to_response(staff)


@router.patch("/{staff_id}", response_model=StaffResponse)
async def update_staff(
    staff_id: int,
    data: StaffUpdate,
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireStaffManagement),
):
    staff = await db.get(Staff, staff_id)
    if not staff:
        raise HTTPException(status_code=404, detail="Staff member not found")
    if data.name is not None:
        staff.name = data.name.strip()
    if data.role is not None:
        staff.role = data.role
    if data.login is not None:
        login = _clean_login(data.login)
        if login:
            await _ensure_login_free(db, login, staff_id)
        staff.login = login
    if data.password is not None and data.password.strip():
        staff.password_hash = hash_password(data.password)
    if data.capabilities is not None:
        apply_capabilities(staff, data.capabilities)
    if data.is_active is not None:
        staff.is_active = data.is_active
    await db.commit()
    return _staff_to_response(staff)
