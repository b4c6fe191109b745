"""
Role and permission resolution for wallet addresses.

The admin allow-list is held as an immutable snapshot (a read-only mapping of
active entries keyed by wallet address). reload() validates a new list and
publishes it with a single reference swap, so concurrent resolve() calls see
either the old or the new list, never a half-updated one.

Canonical role -> default permission mapping:
    SUPER_ADMIN  approve, reject, review, manage_users, view_stats
    ADMIN        approve, reject, review, view_stats
    VALIDATOR    approve, reject, review
    OPERATOR     (none)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from types import MappingProxyType
from typing import Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional

from wallet_auth.core.exceptions import AllowListError

logger = logging.getLogger(__name__)


class Role(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    VALIDATOR = "VALIDATOR"
    OPERATOR = "OPERATOR"


class Permission(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    REVIEW = "review"
    MANAGE_USERS = "manage_users"
    VIEW_STATS = "view_stats"


ADMIN_ROLES: FrozenSet[Role] = frozenset({Role.SUPER_ADMIN, Role.ADMIN, Role.VALIDATOR})

ROLE_PERMISSIONS: Dict[Role, FrozenSet[str]] = {
    Role.SUPER_ADMIN: frozenset(p.value for p in Permission),
    Role.ADMIN: frozenset({"approve", "reject", "review", "view_stats"}),
    Role.VALIDATOR: frozenset({"approve", "reject", "review"}),
    Role.OPERATOR: frozenset(),
}


def parse_role(value: str | Role) -> Role:
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value).strip().upper())
    except ValueError:
        raise AllowListError(f"Unknown role: {value}")


@dataclass(frozen=True)
class AdminEntry:
    """One row of the admin allow-list."""

    wallet_address: str
    display_name: str
    role: Role
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    is_active: bool = True

    @classmethod
    def create(
        cls,
        wallet_address: str,
        display_name: str,
        role: str | Role,
        permissions: Optional[Iterable[str]] = None,
        is_active: bool = True,
    ) -> "AdminEntry":
        """Build an entry, taking the role's default permissions when none are given."""
        role = parse_role(role)
        if permissions is None:
            perms = ROLE_PERMISSIONS[role]
        else:
            perms = frozenset(str(p) for p in permissions)
        return cls(
            wallet_address=wallet_address.strip(),
            display_name=display_name,
            role=role,
            permissions=perms,
            is_active=bool(is_active),
        )


@dataclass(frozen=True)
class ResolvedRole:
    wallet_address: str
    role: Role
    permissions: FrozenSet[str]
    entry: Optional[AdminEntry] = None

    @property
    def is_listed(self) -> bool:
        return self.entry is not None


class RoleResolver:
    """
    Resolve wallet addresses to a role and permission set.

    Lookups are exact and case sensitive. Wallets that are absent from the
    allow-list (or present but inactive) get the default role and the
    default permission set.
    """

    def __init__(
        self,
        entries: Iterable[AdminEntry] = (),
        default_role: Role = Role.OPERATOR,
        default_permissions: Optional[Iterable[str]] = None,
    ):
        self.default_role = parse_role(default_role)
        if default_permissions is None:
            self.default_permissions = ROLE_PERMISSIONS[self.default_role]
        else:
            self.default_permissions = frozenset(default_permissions)
        self._write_lock = Lock()
        self._snapshot: Mapping[str, AdminEntry] = MappingProxyType({})
        self.reload(entries)

    @staticmethod
    def _build_snapshot(entries: Iterable[AdminEntry]) -> Mapping[str, AdminEntry]:
        active: Dict[str, AdminEntry] = {}
        for entry in entries:
            if not entry.is_active:
                continue
            if entry.wallet_address in active:
                raise AllowListError(
                    f"Duplicate active allow-list address: {entry.wallet_address}"
                )
            active[entry.wallet_address] = entry
        return MappingProxyType(active)

    def reload(self, entries: Iterable[AdminEntry]) -> int:
        """Replace the allow-list. Returns the number of active entries."""
        entries = list(entries)
        return self.reload_from(lambda: entries)

    def reload_from(self, loader: Callable[[], Iterable[AdminEntry]]) -> int:
        """
        Read the allow-list with ``loader`` and publish it.

        Loading and publishing happen under one lock, so concurrent reloads
        publish in the order they read and a stale read never replaces a
        newer one.
        """
        with self._write_lock:
            snapshot = self._build_snapshot(loader())
            self._snapshot = snapshot
        logger.info("Admin allow-list loaded with %d active wallets", len(snapshot))
        return len(snapshot)

    def resolve(self, wallet_address: str) -> ResolvedRole:
        entry = self._snapshot.get(wallet_address)
        if entry is None:
            return ResolvedRole(
                wallet_address=wallet_address,
                role=self.default_role,
                permissions=self.default_permissions,
            )
        return ResolvedRole(
            wallet_address=wallet_address,
            role=entry.role,
            permissions=entry.permissions,
            entry=entry,
        )

    def is_admin(self, wallet_address: str) -> bool:
        return self.resolve(wallet_address).role in ADMIN_ROLES

    def has_permission(self, wallet_address: str, permission: str) -> bool:
        return permission in self.resolve(wallet_address).permissions

    def active_entries(self) -> List[AdminEntry]:
        return list(self._snapshot.values())

    def entries_by_role(self, role: str | Role) -> List[AdminEntry]:
        role = parse_role(role)
        return [entry for entry in self._snapshot.values() if entry.role == role]

    def stats(self) -> Dict[str, int]:
        """Counts of active allow-list wallets, in total and per role."""
        snapshot = self._snapshot
        counts = {role.value: 0 for role in Role}
        for entry in snapshot.values():
            counts[entry.role.value] += 1
        counts["total"] = len(snapshot)
        return counts
