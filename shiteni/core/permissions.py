"""
Permission System (RBAC)

Access is expressed as dashboard modules rather than fine-grained
permissions. A role maps to a set of module names per service type:

- super_admin sees every platform admin module, and every module of a
  service type when acting inside a vendor
- admin without a vendor is a platform admin; admin or manager inside a
  vendor sees all of that vendor's modules
- staff roles see a fixed subset, and only for the service types the
  role belongs to (a receptionist attached to a store sees nothing)
- customers see no vendor modules

The API layer maps endpoints to modules in api/deps.py (require_module).
"""
from typing import Dict, FrozenSet, List, Optional, Union

from shiteni.models.user import UserRole
from shiteni.models.vendor import ServiceType

PLATFORM_ADMIN_MODULES: List[str] = [
    "admin", "vendors", "users", "staffs", "subscription", "statistics", "settings", "inbox",
]

SERVICE_MODULES: Dict[ServiceType, List[str]] = {
    ServiceType.HOTEL: [
        "bookings", "room-management", "in-house", "staff", "customers", "payments",
        "inbox", "analytics", "reports", "subscription", "settings",
    ],
    ServiceType.STORE: [
        "products", "orders", "customers", "inventory", "inbox", "payments", "staffs",
        "subscription", "analytics", "settings",
    ],
    ServiceType.PHARMACY: [
        "medicines", "orders", "patients", "inbox", "insurance", "compliance", "staffs",
        "subscription", "settings",
    ],
    ServiceType.BUS: [
        "routes", "stops", "fares", "schedule-trip", "bookings", "ticketing", "inbox", "fleet",
        "staffs", "passengers", "sending", "payments", "analytics", "subscription", "settings",
    ],
}

# Staff role -> (service type, modules). CASHIER is resolved per service below.
_STAFF_MODULES: Dict[UserRole, Dict[ServiceType, FrozenSet[str]]] = {
    UserRole.RECEPTIONIST: {ServiceType.HOTEL: frozenset({"bookings", "customers", "in-house"})},
    UserRole.HOUSEKEEPING: {ServiceType.HOTEL: frozenset({"room-management", "in-house"})},
    UserRole.CASHIER: {
        ServiceType.STORE: frozenset({"orders", "customers"}),
        ServiceType.PHARMACY: frozenset({"orders", "patients", "inbox"}),
    },
    UserRole.INVENTORY_MANAGER: {ServiceType.STORE: frozenset({"products", "inventory"})},
    UserRole.SALES_ASSOCIATE: {ServiceType.STORE: frozenset({"products", "orders", "customers"})},
    UserRole.PHARMACIST: {
        ServiceType.PHARMACY: frozenset({"medicines", "orders", "patients", "inbox", "insurance", "compliance"}),
    },
    UserRole.TECHNICIAN: {
        ServiceType.PHARMACY: frozenset({"medicines", "orders", "patients", "inbox", "insurance"}),
    },
    UserRole.DRIVER: {ServiceType.BUS: frozenset({"routes", "schedule-trip", "passengers", "inbox"})},
    UserRole.CONDUCTOR: {
        ServiceType.BUS: frozenset({"bookings", "ticketing", "passengers", "sending", "inbox"}),
    },
    UserRole.DISPATCHER: {
        ServiceType.BUS: frozenset({"routes", "stops", "schedule-trip", "fleet", "inbox"}),
    },
    UserRole.TICKET_SELLER: {ServiceType.BUS: frozenset({"bookings", "ticketing", "passengers", "inbox"})},
    UserRole.MAINTENANCE: {ServiceType.BUS: frozenset({"fleet", "inbox"})},
}

ROLE_DISPLAY_NAMES: Dict[UserRole, str] = {
    UserRole.CUSTOMER: "Customer",
    UserRole.SUPER_ADMIN: "Super Administrator",
    UserRole.ADMIN: "Administrator",
    UserRole.MANAGER: "Manager",
    UserRole.RECEPTIONIST: "Receptionist",
    UserRole.HOUSEKEEPING: "Housekeeping",
    UserRole.CASHIER: "Cashier",
    UserRole.INVENTORY_MANAGER: "Inventory Manager",
    UserRole.SALES_ASSOCIATE: "Sales Associate",
    UserRole.PHARMACIST: "Pharmacist",
    UserRole.TECHNICIAN: "Pharmacy Technician",
    UserRole.DRIVER: "Driver",
    UserRole.CONDUCTOR: "Conductor",
    UserRole.TICKET_SELLER: "Ticket Seller",
    UserRole.DISPATCHER: "Dispatcher",
    UserRole.MAINTENANCE: "Maintenance",
}

# Roles that run a whole vendor
VENDOR_MANAGER_ROLES = frozenset({UserRole.MANAGER, UserRole.ADMIN})


def _coerce_service(service_type: Union[ServiceType, str, None]) -> Optional[ServiceType]:
    if service_type is None or service_type == "":
        return None
    return ServiceType(service_type)


def allowed_modules(role: Union[UserRole, str], service_type: Union[ServiceType, str, None] = None) -> List[str]:
    """
    Modules a role can open, in dashboard display order.

    Unknown service types raise ValueError.
    """
    role = UserRole(role)
    service = _coerce_service(service_type)

    if role == UserRole.SUPER_ADMIN:
        return list(SERVICE_MODULES[service]) if service else list(PLATFORM_ADMIN_MODULES)

    if role == UserRole.ADMIN and service is None:
        return list(PLATFORM_ADMIN_MODULES)

    if role in VENDOR_MANAGER_ROLES:
        return list(SERVICE_MODULES[service]) if service else []

    per_service = _STAFF_MODULES.get(role)
    if not per_service or service is None:
        return []
    granted = per_service.get(service, frozenset())
    return [module for module in SERVICE_MODULES[service] if module in granted]


def can_access_module(
    role: Union[UserRole, str],
    module: str,
    service_type: Union[ServiceType, str, None] = None
) -> bool:
    return module in allowed_modules(role, service_type)


def roles_for_service(service_type: Union[ServiceType, str]) -> List[UserRole]:
    """Staff roles a manager may assign inside a vendor of this type."""
    service = ServiceType(service_type)
    return [role for role, services in _STAFF_MODULES.items() if service in services]


def is_valid_staff_role(role: Union[UserRole, str], service_type: Union[ServiceType, str]) -> bool:
    role = UserRole(role)
    return role == UserRole.MANAGER or role in roles_for_service(service_type)


def role_display_name(role: Union[UserRole, str]) -> str:
    try:
        return ROLE_DISPLAY_NAMES[UserRole(role)]
    except ValueError:
        return str(role)


def is_platform_admin(user) -> bool:
    """super_admin anywhere, or admin without a vendor."""
    if user.role == UserRole.SUPER_ADMIN:
        return True
    return user.role == UserRole.ADMIN and user.vendor_id is None


def can_manage_staff(user) -> bool:
    return user.role == UserRole.SUPER_ADMIN or (
        user.role in VENDOR_MANAGER_ROLES and user.vendor_id is not None
    )
