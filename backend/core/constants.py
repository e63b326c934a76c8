"""Constants and enums for the factory RBAC backend."""

from enum import Enum


class Module(str, Enum):
    """Functional area of the system a permission applies to."""

    DASHBOARD = "dashboard"
    USERS = "users"
    ROLES = "roles"
    PRODUCTS = "products"
    INVENTORY = "inventory"
    STOCK = "stock"
    PRODUCTION = "production"
    SALES_ORDERS = "sales_orders"
    CUSTOMERS = "customers"
    SUPPLIERS = "suppliers"
    REPORTS = "reports"
    SETTINGS = "settings"
    QC = "qc"


class Action(str, Enum):
    """Operation type within a module."""

    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    EXECUTE = "execute"
    VIEW = "view"
    PERFORM = "perform"


class AuditAction(str, Enum):
    """Role audit trail event type."""

    ROLE_CREATED = "role_created"
    ROLE_UPDATED = "role_updated"
    ROLE_DELETED = "role_deleted"
    ROLE_CLONED = "role_cloned"
    PERMISSIONS_REPLACED = "permissions_replaced"
    USER_ASSIGNED = "user_assigned"
    USER_REMOVED = "user_removed"


# Built-in role names, highest privilege first. Login reports the first
# one a user holds as their primary role.
ROLE_ADMIN = "Admin"
ROLE_MANAGER = "Manager"
ROLE_VIEWER = "Viewer"
PRIMARY_ROLE_PRIORITY = (ROLE_ADMIN, ROLE_MANAGER, ROLE_VIEWER)
