from typing import List, Optional

from pydantic import BaseModel, Field

from oilstock.core.permissions import Capability
from oilstock.models import StaffRole


class StaffResponse(BaseModel):
    id: int
    name: str
    role: str
    login: Optional[str] = None
    capabilities: List[Capability]
    is_active: bool

    class Config:
        from_attributes = True


class StaffCreate(BaseModel):
    name: str = Field(..., min_length=1)
    role: StaffRole = StaffRole.STAFF
    login: Optional[str] = None
    password: Optional[str] = None
    # None means the defaults: stock in and stock out
    capabilities: Optional[List[Capability]] = None


class StaffUpdate(BaseModel):
    name: Optional[str] = None
    role: Optional[StaffRole] = None
    login: Optional[str] = None
    password: Optional[str] = None
    capabilities: Optional[List[Capability]] = None
    is_active: Optional[bool] = None
