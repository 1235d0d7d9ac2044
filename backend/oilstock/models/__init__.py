from oilstock.core.database import Base
from oilstock.models.airline import Airline
from oilstock.models.oil_type import OilType
from oilstock.models.staff import Staff, StaffRole
from oilstock.models.stock_batch import StockBatch, StockOwner
from oilstock.models.usage_record import UsageRecord

__all__ = [
    "Base",
    "Airline",
    "OilType",
    "Staff",
    "StaffRole",
    "StockBatch",
    "StockOwner",
    "UsageRecord",
]
