"""Permission registry, role capability templates and admin-section gating.

Permission keys are "<verb>:<resource>" strings drawn from a closed registry.
Unknown keys are rejected at the boundary.

Resolution: union of role templates, then per-user overrides replace
individual keys. The admin role and the manage:all key bypass every check.
"""

from dataclasses import dataclass
from enum import Enum

from backoffice.db.enums import AdminSection, Role


WILDCARD_PERMISSION = "manage:all"


class PermissionCategory(str, Enum):
    """Permission categories for UI grouping."""
    SYSTEM = "Система"
    USERS = "Пользователи"
    BRANCHES = "Филиалы"
    EDUCATION = "Учебные единицы"
    CLIENTS = "Клиенты"
    FINANCE = "Финансы"
    CONTENT = "Материалы"
    INTEGRATIONS = "Интеграции"


@dataclass(frozen=True)
class PermissionDef:
    """Permission definition with metadata."""
    verb: str
    resource: str
    label: str
    category: PermissionCategory

    @property
    def key(self) -> str:
        return f"{self.verb}:{self.resource}"


def _perm(verb: str, resource: str, label: str, category: PermissionCategory) -> tuple[str, PermissionDef]:
    definition = PermissionDef(verb, resource, label, category)
    return definition.key, definition


# =============================================================================
# Permission Registry
# =============================================================================

PERMISSION_REGISTRY: dict[str, PermissionDef] = dict([
    _perm("manage", "all", "Полный доступ", PermissionCategory.SYSTEM),
    _perm("view", "audit", "Просмотр журнала аудита", PermissionCategory.SYSTEM),
    _perm("manage", "settings", "Системные настройки", PermissionCategory.SYSTEM),

    _perm("view", "users", "Просмотр пользователей", PermissionCategory.USERS),
    _perm("manage", "users", "Управление пользователями", PermissionCategory.USERS),
    _perm("manage", "roles", "Управление ролями", PermissionCategory.USERS),
    _perm("manage", "permissions", "Управление разрешениями", PermissionCategory.USERS),

    _perm("view", "branches", "Просмотр филиалов", PermissionCategory.BRANCHES),
    _perm("manage", "branches", "Управление филиалами", PermissionCategory.BRANCHES),

    _perm("view", "teachers", "Просмотр преподавателей", PermissionCategory.EDUCATION),
    _perm("manage", "teachers", "Управление преподавателями", PermissionCategory.EDUCATION),
    _perm("manage", "groups", "Управление группами", PermissionCategory.EDUCATION),
    _perm("manage", "schedules", "Изменение расписаний", PermissionCategory.EDUCATION),
    _perm("view", "schedules", "Просмотр расписаний", PermissionCategory.EDUCATION),

    _perm("view", "clients", "Просмотр клиентов", PermissionCategory.CLIENTS),
    _perm("manage", "clients", "Управление клиентами", PermissionCategory.CLIENTS),
    _perm("view", "students", "Просмотр учеников", PermissionCategory.CLIENTS),
    _perm("manage", "students", "Управление учениками", PermissionCategory.CLIENTS),
    _perm("manage", "family_groups", "Обслуживание семейных групп", PermissionCategory.CLIENTS),

    _perm("view", "reports", "Просмотр отчётов", PermissionCategory.FINANCE),
    _perm("view", "finances", "Просмотр финансов", PermissionCategory.FINANCE),
    _perm("manage", "finances", "Управление финансами", PermissionCategory.FINANCE),
    _perm("manage", "pricing", "Управление прайс-листами", PermissionCategory.FINANCE),

    _perm("view", "textbooks", "Просмотр учебников", PermissionCategory.CONTENT),
    _perm("manage", "textbooks", "Управление учебниками", PermissionCategory.CONTENT),

    _perm("manage", "integrations", "Мессенджеры и телефония", PermissionCategory.INTEGRATIONS),
])

PERMISSION_VERBS = frozenset(p.verb for p in PERMISSION_REGISTRY.values())
PERMISSION_RESOURCES = frozenset(p.resource for p in PERMISSION_REGISTRY.values())


# =============================================================================
# Default Role Capabilities
# =============================================================================

@dataclass(frozen=True)
class Capability:
    """One role-template row: a permission key plus CRUD flags."""
    permission: str
    resource: str
    can_create: bool = False
    can_read: bool = True
    can_update: bool = False
    can_delete: bool = False

    @property
    def key(self) -> str:
        return f"{self.permission}:{self.resource}"


def _full(permission: str, resource: str) -> Capability:
    return Capability(permission, resource, True, True, True, True)


def _read(permission: str, resource: str) -> Capability:
    return Capability(permission, resource)


ROLE_DEFAULTS: dict[Role, list[Capability]] = {
    Role.ADMIN: [_full("manage", "all")],
    Role.BRANCH_MANAGER: [
        _read("view", "branches"),
        _read("view", "users"),
        _full("manage", "teachers"),
        _full("manage", "groups"),
        _full("manage", "schedules"),
        _full("manage", "clients"),
        _full("manage", "students"),
        _full("manage", "family_groups"),
        _read("view", "reports"),
        _read("view", "finances"),
        _read("view", "textbooks"),
    ],
    Role.MANAGER: [
        _read("view", "teachers"),
        _full("manage", "clients"),
        _full("manage", "students"),
        _full("manage", "groups"),
        _read("view", "schedules"),
        _read("view", "reports"),
        _read("view", "textbooks"),
    ],
    Role.METHODIST: [
        _full("manage", "teachers"),
        _full("manage", "groups"),
        _full("manage", "schedules"),
        _read("view", "students"),
        _full("manage", "textbooks"),
        _read("view", "textbooks"),
    ],
    Role.HEAD_TEACHER: [
        _read("view", "teachers"),
        _read("view", "students"),
        _read("view", "schedules"),
        _full("manage", "textbooks"),
        _read("view", "textbooks"),
    ],
    Role.SALES_MANAGER: [
        _full("manage", "clients"),
        _read("view", "students"),
        _read("view", "schedules"),
        _read("view", "reports"),
    ],
    Role.MARKETING_MANAGER: [
        _read("view", "clients"),
        _read("view", "reports"),
    ],
    Role.ACCOUNTANT: [
        _read("view", "clients"),
        _read("view", "students"),
        _full("manage", "finances"),
        _full("manage", "pricing"),
        _read("view", "reports"),
    ],
    Role.RECEPTIONIST: [
        _read("view", "clients"),
        _read("view", "students"),
        _read("view", "schedules"),
    ],
    Role.TEACHER: [
        _read("view", "schedules"),
        _read("view", "students"),
        _read("view", "textbooks"),
    ],
    Role.STUDENT: [
        _read("view", "textbooks"),
    ],
}


# =============================================================================
# Admin Section Gating
# =============================================================================

_MANAGEMENT = frozenset({Role.BRANCH_MANAGER, Role.MANAGER})
_CURRICULUM = frozenset({Role.METHODIST, Role.HEAD_TEACHER})

ADMIN_SECTION_ROLES: dict[AdminSection, frozenset[Role]] = {
    AdminSection.FAQ: _MANAGEMENT | _CURRICULUM,
    AdminSection.SCHEDULE: _MANAGEMENT | {Role.METHODIST},
    AdminSection.PRICING: frozenset({Role.ACCOUNTANT, Role.BRANCH_MANAGER}),
    AdminSection.MESSENGERS: frozenset(),
    AdminSection.TELEPHONY: frozenset(),
    AdminSection.TEXTBOOKS: _CURRICULUM,
    AdminSection.REFERENCES: _MANAGEMENT | {Role.METHODIST},
    AdminSection.AUDIT: frozenset(),
    AdminSection.ROLES: frozenset(),
    AdminSection.PERMISSIONS: frozenset(),
    AdminSection.USER_BRANCHES: frozenset({Role.BRANCH_MANAGER}),
    AdminSection.TEACHERS: frozenset({Role.BRANCH_MANAGER, Role.METHODIST}),
    AdminSection.FAMILY_CLEANUP: frozenset({Role.BRANCH_MANAGER}),
    AdminSection.FAMILY_MEMBERS: frozenset({Role.BRANCH_MANAGER}),
    AdminSection.FAMILY_SPLITTER: frozenset(),
    AdminSection.FAMILY_RESTORER: frozenset(),
    AdminSection.FAMILY_REORGANIZER: frozenset(),
    AdminSection.SYSTEM_MONITOR: frozenset(),
}


# =============================================================================
# Helper Functions
# =============================================================================

def permission_key(verb: str, resource: str) -> str:
    """Build a permission key from its parts."""
    return f"{verb}:{resource}"


def is_valid_permission(key: str) -> bool:
    """Check if permission key exists."""
    return key in PERMISSION_REGISTRY


def get_permission(key: str) -> PermissionDef | None:
    """Get permission by key."""
    return PERMISSION_REGISTRY.get(key)


def get_all_permissions() -> list[PermissionDef]:
    """Get all permissions sorted by category."""
    return sorted(PERMISSION_REGISTRY.values(), key=lambda p: (p.category.value, p.key))


def get_role_capabilities(role: Role | str) -> list[Capability]:
    """Get the default capability template for a role."""
    if isinstance(role, str):
        if not Role.has_value(role):
            return []
        role = Role(role)
    return list(ROLE_DEFAULTS.get(role, []))


def get_section_roles(section: AdminSection) -> frozenset[Role]:
    """Roles (besides admin) allowed to open an admin section."""
    return ADMIN_SECTION_ROLES.get(section, frozenset())
