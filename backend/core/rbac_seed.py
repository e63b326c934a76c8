"""Declarative RBAC fixtures: the permission catalog and the built-in roles.

``apply_seed`` is idempotent. Existing permissions are left alone and
existing roles keep their permission sets unless ``sync=True``, which
resets each built-in role to its declared set.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.constants import ROLE_ADMIN, ROLE_MANAGER, ROLE_VIEWER, Action, Module
from db.models.role import Role
from db.models.user import User
from services.permission_service import PermissionService
from services.role_service import RoleService
from services.user_role_service import UserRoleService
from services.user_service import UserService

logger = logging.getLogger(__name__)

A = Action

# module -> [(action, resource, description)]; a None resource is a wildcard.
PERMISSION_CATALOG: dict[Module, list[tuple[Action, Optional[str], str]]] = {
    Module.DASHBOARD: [
        (A.READ, None, "View all dashboards"),
        (A.READ, "overview", "View dashboard overview"),
        (A.READ, "production", "View production dashboard"),
        (A.READ, "inventory", "View inventory dashboard"),
        (A.READ, "sales", "View sales dashboard"),
    ],
    Module.USERS: [
        (A.READ, "list", "List users"),
        (A.READ, "detail", "View user details"),
        (A.READ, "user", "View a user"),
        (A.READ, "roles", "View user roles"),
        (A.READ, "permissions", "View user effective permissions"),
        (A.CREATE, "user", "Create users"),
        (A.UPDATE, "user", "Edit users"),
        (A.UPDATE, "status", "Activate or deactivate users"),
        (A.UPDATE, "roles", "Assign and revoke user roles"),
        (A.DELETE, "user", "Delete users"),
    ],
    Module.ROLES: [
        (A.READ, "list", "List roles"),
        (A.READ, "role", "View role details"),
        (A.READ, "permissions", "View the permission catalog"),
        (A.CREATE, "role", "Create roles"),
        (A.CREATE, "permission", "Add permissions to the catalog"),
        (A.UPDATE, "role", "Edit roles"),
        (A.UPDATE, "permissions", "Change role permissions"),
        (A.DELETE, "role", "Delete roles"),
        (A.EXECUTE, "clone", "Clone roles"),
    ],
    Module.PRODUCTS: [
        (A.READ, "list", "List products"),
        (A.READ, "bom", "View bills of materials"),
        (A.CREATE, "product", "Create products"),
        (A.CREATE, "bom", "Create bills of materials"),
        (A.UPDATE, "product", "Edit products"),
        (A.DELETE, "product", "Delete products"),
        (A.DELETE, "bom", "Delete bills of materials"),
    ],
    Module.INVENTORY: [
        (A.READ, "list", "List materials"),
        (A.READ, "material", "View materials"),
        (A.READ, "stock_level", "View stock levels"),
        (A.CREATE, "material", "Create materials"),
        (A.UPDATE, "material", "Edit materials"),
        (A.DELETE, "material", "Delete materials"),
    ],
    Module.STOCK: [
        (A.READ, "movements", "View stock movements"),
        (A.EXECUTE, "stock_in", "Record stock in"),
        (A.EXECUTE, "stock_out", "Record stock out"),
    ],
    Module.PRODUCTION: [
        (A.READ, "list", "List work orders"),
        (A.READ, "work_order", "View work orders"),
        (A.CREATE, "work_order", "Create work orders"),
        (A.UPDATE, "work_order", "Edit work orders"),
        (A.DELETE, "work_order", "Delete work orders"),
        (A.EXECUTE, "start_production", "Start production"),
        (A.EXECUTE, "complete_production", "Complete production"),
    ],
    Module.SALES_ORDERS: [
        (A.READ, "list", "List sales orders"),
        (A.READ, "order", "View sales orders"),
        (A.CREATE, "order", "Create sales orders"),
        (A.UPDATE, "order", "Edit sales orders"),
        (A.EXECUTE, "confirm", "Confirm sales orders"),
        (A.EXECUTE, "ship", "Ship sales orders"),
        (A.EXECUTE, "cancel", "Cancel sales orders"),
    ],
    Module.CUSTOMERS: [
        (A.READ, "list", "List customers"),
        (A.READ, "customer", "View customers"),
        (A.CREATE, "customer", "Create customers"),
        (A.UPDATE, "customer", "Edit customers"),
        (A.DELETE, "customer", "Delete customers"),
    ],
    Module.SUPPLIERS: [
        (A.READ, "list", "List suppliers"),
        (A.READ, "supplier", "View suppliers"),
        (A.CREATE, "supplier", "Create suppliers"),
        (A.UPDATE, "supplier", "Edit suppliers"),
        (A.DELETE, "supplier", "Delete suppliers"),
    ],
    Module.REPORTS: [
        (A.READ, "sales_report", "View sales report"),
        (A.READ, "inventory_report", "View inventory report"),
        (A.READ, "production_report", "View production report"),
    ],
    Module.SETTINGS: [
        (A.READ, "audit_log", "View the role audit log"),
    ],
    Module.QC: [
        (A.VIEW, "dashboard", "View QC dashboard"),
        (A.VIEW, "inspections", "View QC inspections"),
        (A.PERFORM, "inspection", "Perform QC inspections"),
    ],
}

PermissionKey = tuple[str, str, Optional[str]]


def catalog_keys() -> list[PermissionKey]:
    return [
        (module.value, action.value, resource)
        for module, entries in PERMISSION_CATALOG.items()
        for action, resource, _ in entries
    ]


def _manager_grants(key: PermissionKey) -> bool:
    module, action, _ = key
    if module == Module.USERS.value:
        return False
    return not (module == Module.ROLES.value and action == Action.DELETE.value)


def _viewer_grants(key: PermissionKey) -> bool:
    module, action, _ = key
    hidden = {Module.USERS.value, Module.ROLES.value, Module.SETTINGS.value}
    return action == Action.READ.value and module not in hidden


@dataclass(frozen=True)
class RoleDefinition:
    name: str
    description: str
    grants: Callable[[PermissionKey], bool]


ROLE_DEFINITIONS: tuple[RoleDefinition, ...] = (
    RoleDefinition(ROLE_ADMIN, "Full access to every module", lambda key: True),
    RoleDefinition(
        ROLE_MANAGER,
        "Manages operations; no user administration or role deletion",
        _manager_grants,
    ),
    RoleDefinition(ROLE_VIEWER, "Read-only access to operational modules", _viewer_grants),
)


@dataclass
class SeedReport:
    permissions_created: int = 0
    roles_created: list[str] = field(default_factory=list)
    roles_synced: list[str] = field(default_factory=list)


async def apply_seed(db: AsyncSession, sync: bool = False) -> SeedReport:
    """Insert missing catalog permissions and built-in roles.

    A newly created role receives its declared permission set; an existing
    one is only reset to it when ``sync`` is true.
    """
    report = SeedReport()
    permission_service = PermissionService(db)
    role_service = RoleService(db)

    ids_by_key: dict[PermissionKey, str] = {}
    for module, entries in PERMISSION_CATALOG.items():
        for action, resource, description in entries:
            permission, created = await permission_service.ensure(
                module.value, action.value, resource, description
            )
            ids_by_key[(module.value, action.value, resource)] = permission.id
            report.permissions_created += int(created)

    for definition in ROLE_DEFINITIONS:
        target = [pid for key, pid in ids_by_key.items() if definition.grants(key)]
        role = await role_service.get_by_name(definition.name)

        if role is None:
            role = Role(name=definition.name, description=definition.description, is_system=True)
            db.add(role)
            await db.flush()
            report.roles_created.append(definition.name)
        elif sync:
            role.is_system = True
            role.is_active = True
            report.roles_synced.append(definition.name)
        else:
            continue

        await role_service.replace_permissions(role.id, target)

    logger.info(
        "RBAC seed applied: %d permissions created, roles created=%s synced=%s",
        report.permissions_created,
        report.roles_created,
        report.roles_synced,
    )
    return report


async def ensure_admin_user(
    db: AsyncSession,
    username: str,
    email: str,
    password: str,
    full_name: str = "Administrator",
) -> tuple[User, bool]:
    """Create the initial administrator if missing and grant the Admin role.

    Returns:
        (user, created)
    """
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    created = user is None
    if created:
        user = await UserService(db).create_user(username, email, password, full_name)

    admin_role = await RoleService(db).get_by_name(ROLE_ADMIN)
    if admin_role is None:
        raise RuntimeError("Admin role missing; run apply_seed first")

    held = {grant.role_id for grant in await UserRoleService(db).list_user_roles(user.id)}
    if admin_role.id not in held:
        await UserRoleService(db).assign_role(user.id, admin_role.id)
    return user, created

