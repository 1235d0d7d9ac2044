"""Ledger errors. Every violated invariant has its own class and a stable code."""
from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base class for ledger failures surfaced to the caller."""

    code = "ledger_error"
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def extra(self) -> Dict[str, Any]:
        """Machine-readable fields added to the error response."""
        return {}


class InvalidQuantity(LedgerError):
    code = "invalid_quantity"

    def __init__(self, quantity: Any, field: str = "quantity"):
        super().__init__(f"{field} must be a positive integer, got {quantity!r}")
        self.quantity = quantity
        self.field = field

    def extra(self) -> Dict[str, Any]:
        return {"field": self.field}


class MissingOwnerParty(LedgerError):
    code = "missing_owner_party"

    def __init__(self):
        super().__init__("owner_airline_id is required for externally owned stock")


class InsufficientStock(LedgerError):
    code = "insufficient_stock"
    status_code = 409

    def __init__(self, available: int, requested: int):
        super().__init__(f"Insufficient stock! Available: {available}, Requested: {requested}")
        self.available = available
        self.requested = requested

    def extra(self) -> Dict[str, Any]:
        return {"available": self.available, "requested": self.requested}


class NotFound(LedgerError):
    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Optional[Any] = None):
        if entity_id is None:
            detail = f"{entity} not found"
        else:
            detail = f"{entity} {entity_id} not found"
        super().__init__(detail)
        self.entity = entity
        self.entity_id = entity_id

    def extra(self) -> Dict[str, Any]:
        return {"entity": self.entity}


class ReferentialConflict(LedgerError):
    code = "referential_conflict"
    status_code = 409

    def __init__(self, entity: str, entity_id: Any, dependents: str):
        super().__init__(f"{entity} {entity_id} is still referenced by {dependents}")
        self.entity = entity
        self.entity_id = entity_id
        self.dependents = dependents

    def extra(self) -> Dict[str, Any]:
        return {"entity": self.entity, "dependents": self.dependents}
