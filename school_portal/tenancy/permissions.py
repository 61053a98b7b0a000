# school_portal/tenancy/permissions.py - Static role -> action permission table
from typing import Dict, FrozenSet, Iterable, Optional

ROLES = ("admin", "teacher", "student", "parent")

PERMISSIONS: Dict[str, FrozenSet[str]] = {
    "admin": frozenset({
        "manage:tenant",
        "manage:users",
        "manage:classes",
        "manage:subjects",
        "manage:exams",
        "manage:fees",
        "manage:library",
        "manage:inventory",
        "manage:transport",
        "manage:payroll",
        "view:reports",
        "broadcast:notify",
        "create:assignments",
        "grade:submissions",
        "mark:attendance",
    }),
    "teacher": frozenset({
        "manage:classes",
        "create:assignments",
        "grade:submissions",
        "mark:attendance",
        "notify:class",
        "view:students",
        "manage:library",
    }),
    "student": frozenset({
        "submit:assignments",
        "view:self",
        "view:results",
        "view:timetable",
        "view:attendance",
        "view:fees",
    }),
    "parent": frozenset({
        "view:child",
        "view:child:results",
        "view:child:attendance",
        "view:child:fees",
        "message:teacher",
    }),
}


def can(role: Optional[str], action: str) -> bool:
    """Return True when ``role`` is granted ``action``; unknown or missing roles never are."""
    if not role:
        return False
    return action in PERMISSIONS.get(role, frozenset())


def has_any_role(role: Optional[str], allowed: Iterable[str]) -> bool:
    return bool(role) and role in set(allowed)


def permissions_for(role: Optional[str]) -> list:
    """Sorted action list for a role, used by /auth/me"""
    if not role:
        return []
    return sorted(PERMISSIONS.get(role, frozenset()))


__all__ = ["ROLES", "PERMISSIONS", "can", "has_any_role", "permissions_for"]
