"""
Access control: role × capability.
Capabilities are a closed set; admins hold all of them, everyone else holds
exactly the flags stored on their staff row.
"""
from enum import Enum
from typing import Iterable, List, Mapping, Optional, Set

from oilstock.models.staff import StaffRole


class Capability(str, Enum):
    """Actions a staff member can be allowed to perform."""
    RECEIVE_STOCK = "oil_stock_in"        # record incoming batches
    RECORD_USAGE = "oil_stock_out"        # record, edit and delete usage
    MANAGE_OIL_TYPES = "oil_management"   # airlines, oil types, ledger checks
    MANAGE_STAFF = "staff_management"     # staff accounts


# Capability → Staff column holding the flag
CAPABILITY_COLUMNS = {
    Capability.RECEIVE_STOCK: "can_receive_stock",
    Capability.RECORD_USAGE: "can_record_usage",
    Capability.MANAGE_OIL_TYPES: "can_manage_oil_types",
    Capability.MANAGE_STAFF: "can_manage_staff",
}

# Flags given to a new staff member when none are specified
DEFAULT_CAPABILITIES = frozenset((Capability.RECEIVE_STOCK, Capability.RECORD_USAGE))


def _parse_role(role: str) -> Optional[StaffRole]:
    try:
        return StaffRole(role)
    except ValueError:
        return None


def capabilities_for(role: str, flags: Mapping[Capability, bool]) -> Set[Capability]:
    """Effective capabilities for a role and its stored flags."""
    r = _parse_role(role)
    if r is None:
        return set()
    if r == StaffRole.ADMIN:
        return set(Capability)
    return {c for c in Capability if flags.get(c)}


def staff_capabilities(staff) -> Set[Capability]:
    """Effective capabilities of a Staff row."""
    flags = {c: bool(getattr(staff, col)) for c, col in CAPABILITY_COLUMNS.items()}
    return capabilities_for(staff.role.value, flags)


def apply_capabilities(staff, capabilities: Iterable[Capability]) -> None:
    """Store the given capability set as flags on a Staff row."""
    wanted = set(capabilities)
    for c, col in CAPABILITY_COLUMNS.items():
        setattr(staff, col, c in wanted)


def get_menu_items(capabilities: Iterable[Capability]) -> List[dict]:
    """
    Navigation entries for the given capabilities. Each item: id, label, href,
    group (optional), action, divider.
    """
    caps = set(capabilities)
    items = []

    if Capability.RECEIVE_STOCK in caps:
        items.append({
            "id": "oil_stock_in",
            "label": "Oil Stock In",
            "href": "oil-stock-in",
            "group": "Oil",
        })
    if Capability.RECORD_USAGE in caps:
        items.append({
            "id": "oil_stock_out",
            "label": "Oil Stock Out",
            "href": "oil-stock-out",
            "group": "Oil",
        })
    if Capability.MANAGE_OIL_TYPES in caps:
        items.append({
            "id": "oil_management",
            "label": "Oil Management",
            "href": "oil-management",
            "group": "Oil",
        })
    if Capability.MANAGE_STAFF in caps:
        items.append({
            "id": "staff_management",
            "label": "Staff Management",
            "href": "management",
            "group": "Management",
        })

    items.append({"id": "_div", "label": "", "href": "", "divider": True})

    items.append({
        "id": "password",
        "label": "Change password",
        "href": "#",
        "action": "change_password",
    })
    items.append({
        "id": "logout",
        "label": "Log out",
        "href": "login",
        "action": "logout",
    })
    return items
