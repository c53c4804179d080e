"""
Closed role set and the capabilities each role grants.

Handlers never compare role names directly; they ask for a capability via
``has_capability`` (or the ``require_capability`` dependency).
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum


class RoleName(str, Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"


ROLE_DESCRIPTIONS: dict[RoleName, str] = {
    RoleName.ADMIN: "Full system access",
    RoleName.MANAGER: "Manages a team, decides leave requests, views reports",
    RoleName.EMPLOYEE: "Regular employee",
}


class Capability(str, Enum):
    MANAGE_USERS = "manage_users"
    MANAGE_ORGANISATION = "manage_organisation"
    VIEW_ALL_RECORDS = "view_all_records"
    VIEW_TEAM = "view_team"
    DECIDE_LEAVE = "decide_leave"
    NOTIFY_DEPARTMENT = "notify_department"
    NOTIFY_ALL = "notify_all"
    VIEW_REPORTS = "view_reports"


_MANAGER_CAPABILITIES = frozenset(
    {
        Capability.VIEW_TEAM,
        Capability.DECIDE_LEAVE,
        Capability.NOTIFY_DEPARTMENT,
        Capability.VIEW_REPORTS,
    }
)

ROLE_CAPABILITIES: dict[RoleName, frozenset[Capability]] = {
    RoleName.EMPLOYEE: frozenset(),
    RoleName.MANAGER: _MANAGER_CAPABILITIES,
    RoleName.ADMIN: frozenset(Capability),
}


def normalise_roles(names: Iterable[str]) -> list[RoleName]:
    """Map stored role names onto the enum; unknown names are ignored.

    A user without any role rows is an EMPLOYEE.
    """
    roles: list[RoleName] = []
    for name in names:
        try:
            role = RoleName(name.upper())
        except ValueError:
            continue
        if role not in roles:
            roles.append(role)
    return roles or [RoleName.EMPLOYEE]


def capabilities_for(roles: Iterable[RoleName]) -> frozenset[Capability]:
    caps: set[Capability] = set()
    for role in roles:
        caps |= ROLE_CAPABILITIES[role]
    return frozenset(caps)


def has_capability(roles: Iterable[RoleName], capability: Capability) -> bool:
    return capability in capabilities_for(roles)
