"""Airlines and oil types."""
from typing import Optional

from pydantic import BaseModel, Field


class AirlineCreate(BaseModel):
    name: str = Field(..., min_length=1)
    code: Optional[str] = Field(default=None, max_length=3)


class AirlineUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    code: Optional[str] = Field(default=None, max_length=3)


class AirlineResponse(BaseModel):
    id: int
    name: str
    code: Optional[str] = None
    created_at: str


class OilTypeCreate(BaseModel):
    name: str = Field(..., min_length=1)
    owner_id: Optional[int] = Field(default=None, description="Airline the grade is dedicated to; empty for general use")
    specifications: Optional[dict] = None


class OilTypeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    owner_id: Optional[int] = None
    specifications: Optional[dict] = None


class OilTypeResponse(BaseModel):
    id: int
    name: str
    owner_id: Optional[int] = None
    owner_name: Optional[str] = None
    specifications: Optional[dict] = None
    created_at: str
