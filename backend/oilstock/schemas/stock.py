"""Stock in, stock out and ledger reports."""
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from oilstock.models import StockOwner


class BatchCreate(BaseModel):
    """Stock-in form."""
    class Config:
        str_strip_whitespace = True

    oil_type_id: int
    owner: StockOwner
    owner_airline_id: Optional[int] = Field(default=None, description="Required when owner is external")
    batch_number: str = Field(..., min_length=1, max_length=64)
    # Type and range are checked by the ledger so the caller gets invalid_quantity
    quantity_received: Any
    received_at: Optional[datetime] = None


class BatchResponse(BaseModel):
    id: int
    oil_type_id: int
    oil_type_name: Optional[str] = None
    owner: str
    owner_airline_id: Optional[int] = None
    owner_airline_name: Optional[str] = None
    batch_number: str
    quantity_received: int
    quantity_remaining: int
    received_at: str
    created_at: str
    created_by: Optional[int] = None


class AvailabilityResponse(BaseModel):
    oil_type_id: int
    owner: str
    owner_airline_id: Optional[int] = None
    available: int
    batches: List[BatchResponse]


class UsageCreate(BaseModel):
    """Stock-out form."""
    oil_type_id: int
    owner: StockOwner
    owner_airline_id: Optional[int] = None
    airline_id: int = Field(..., description="Airline the aircraft belongs to")
    aircraft_registration: str = Field(..., min_length=1, max_length=32)
    quantity_used: Any
    # Defaults to the logged-in staff member
    staff_id: Optional[int] = None
    notes: Optional[str] = None
    usage_at: Optional[datetime] = None


class UsageUpdate(BaseModel):
    quantity_used: Optional[Any] = None
    airline_id: Optional[int] = None
    aircraft_registration: Optional[str] = Field(default=None, min_length=1, max_length=32)
    staff_id: Optional[int] = None
    notes: Optional[str] = None
    usage_at: Optional[datetime] = None


class UsageResponse(BaseModel):
    id: int
    batch_id: int
    batch_number: Optional[str] = None
    oil_type_name: Optional[str] = None
    airline_id: int
    airline_name: Optional[str] = None
    aircraft_registration: str
    quantity_used: int
    staff_id: int
    staff_name: Optional[str] = None
    notes: Optional[str] = None
    usage_at: str


class StockOutResponse(BaseModel):
    """Usage records written by one stock-out, oldest batch first."""
    quantity_used: int
    records: List[UsageResponse]


class StockLevelResponse(BaseModel):
    oil_type_id: int
    owner: str
    owner_airline_id: Optional[int] = None
    batches_in_stock: int
    quantity_received: int
    quantity_remaining: int


class DiscrepancyResponse(BaseModel):
    batch_id: int
    batch_number: str
    quantity_received: int
    quantity_remaining: int
    quantity_used: int
    expected_remaining: int


class ReconcileResponse(BaseModel):
    balanced: bool
    discrepancies: List[DiscrepancyResponse]
