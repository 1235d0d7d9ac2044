"""Staff login: login + password, JWT bearer, capability checks."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer, OAuth2PasswordRequestForm
from pydantic import BaseModel
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from oilstock.core.database import get_db
from oilstock.core.logging_config import get_logger
from oilstock.core.permissions import Capability, get_menu_items, staff_capabilities
from oilstock.models import Staff
from oilstock.services.auth_service import (
    create_access_token,
    hash_password,
    staff_id_from_token,
    verify_password,
)

router = APIRouter(prefix="/auth", tags=["auth"])
security = HTTPBearer(auto_error=False)
logger = get_logger(__name__)


class UserInfo(BaseModel):
    id: int
    name: str
    role: str
    login: str
    capabilities: List[Capability] = []


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserInfo


def _user_info(staff: Staff) -> UserInfo:
    return UserInfo(
        id=staff.id,
        name=staff.name,
        role=staff.role.value,
        login=staff.login or "",
        capabilities=sorted(staff_capabilities(staff), key=lambda c: c.value),
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Optional[UserInfo]:
    """Staff member behind the bearer token, with capabilities read from the staff row."""
    has_header = credentials is not None and credentials.scheme.lower() == "bearer"
    if not has_header:
        return None
    staff_id = staff_id_from_token(credentials.credentials)
    if staff_id is None:
        logger.warning("auth: token rejected (invalid or expired)")
        return None
    staff = await db.get(Staff, staff_id)
    if staff is None or not staff.is_active:
        logger.warning("auth: staff id=%s missing or inactive", staff_id)
        return None
    return _user_info(staff)


async def RequireAnyAuth(
    current_user: Optional[UserInfo] = Depends(get_current_user),
) -> UserInfo:
    if not current_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user


def require_capability(*allowed: Capability):
    """Dependency: the caller must hold at least one of the given capabilities."""
    async def _check(current_user: UserInfo = Depends(RequireAnyAuth)) -> UserInfo:
        if not set(allowed) & set(current_user.capabilities):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Required permission: " + ", ".join(c.value for c in allowed),
            )
        return current_user
    return _check


RequireStockIn = require_capability(Capability.RECEIVE_STOCK)
RequireStockOut = require_capability(Capability.RECORD_USAGE)
RequireStockView = require_capability(Capability.RECEIVE_STOCK, Capability.RECORD_USAGE)
RequireOilManagement = require_capability(Capability.MANAGE_OIL_TYPES)
RequireStaffManagement = require_capability(Capability.MANAGE_STAFF)


@router.post("/login", response_model=LoginResponse)
async def login(
    form: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    username = (form.username or "").strip().lower()
    if not username:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid login or password")
    result = await db.execute(
        select(Staff).where(
            func.lower(Staff.login) == username,
            Staff.is_active == True,
        )
    )
    staff = result.scalar_one_or_none()
    if not staff or not staff.password_hash:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid login or password",
        )
    if not verify_password(form.password, staff.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid login or password",
        )
    token = create_access_token(staff.id)
    logger.info("Login: staff id=%s", staff.id)
    return LoginResponse(access_token=token, user=_user_info(staff))


class MenuItem(BaseModel):
    id: str
    label: str
    href: str
    group: Optional[str] = None
    divider: Optional[bool] = None
    action: Optional[str] = None


class MeResponse(BaseModel):
    id: int
    name: str
    role: str
    login: str
    capabilities: List[Capability]
    menu_items: List[MenuItem]


@router.get("/me", response_model=MeResponse)
async def me(current_user: UserInfo = Depends(RequireAnyAuth)):
    """Current staff member, capabilities and the menu they unlock."""
    menu = get_menu_items(current_user.capabilities)
    return MeResponse(
        id=current_user.id,
        name=current_user.name,
        role=current_user.role,
        login=current_user.login,
        capabilities=current_user.capabilities,
        menu_items=[MenuItem(**m) for m in menu],
    )


class ChangePasswordBody(BaseModel):
    old_password: str
    new_password: str


@router.post("/change-password")
async def change_password(
    body: ChangePasswordBody,
    current_user: UserInfo = Depends(RequireAnyAuth),
    db: AsyncSession = Depends(get_db),
):
    """Change the current staff member's password (old password required)."""
    if not body.new_password or len(body.new_password) < 6:
        raise HTTPException(status_code=400, detail="New password must be at least 6 characters")
    staff = await db.get(Staff, current_user.id)
    if not staff or not staff.password_hash:
        raise HTTPException(status_code=404, detail="Staff member not found")
    if not verify_password(body.old_password, staff.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    staff.password_hash = hash_password(body.new_password)
    await db.commit()
    return {"ok": True}
