"""
Admin allow-list persistence.

The allow-list lives in the ``admin_wallets`` table. A YAML file (ADMIN_WALLETS_FILE)
seeds it at start-up with the wallets the table does not hold yet; after that,
admins are managed through the API and the RoleResolver is reloaded from the
table after every change.

YAML layout:

    admin_wallets:
      - address: GAAKZ5PTQ7YLHTWQJQWEPAFOHEYFADEPB4DCBE4JWT63JCYJTCGULCAC
        name: Forecast
        role: SUPER_ADMIN
        permissions: [approve, reject, review, manage_users, view_stats]
        is_active: true
"""

import logging
import time
from pathlib import Path
from typing import Any, List, Optional

import yaml
from sqlalchemy.orm import Session

from wallet_auth.core.exceptions import AllowListError
from wallet_auth.core.roles import AdminEntry, RoleResolver
from wallet_auth.models.auth import AdminWallet

logger = logging.getLogger(__name__)


def _entry_from_mapping(item: Any) -> AdminEntry:
    if not isinstance(item, dict):
        raise AllowListError("each admin wallet entry must be a mapping")
    address = item.get("address")
    if not isinstance(address, str) or not address.strip():
        raise AllowListError("admin wallet entry must include an address")
    if "role" not in item:
        raise AllowListError(f"admin wallet {address} must include a role")
    return AdminEntry.create(
        wallet_address=address,
        display_name=str(item.get("name", "")),
        role=item["role"],
        permissions=item.get("permissions"),
        is_active=item.get("is_active", True),
    )


def load_admin_wallets_file(path: str | Path) -> List[AdminEntry]:
    path = Path(path)
    if not path.exists():
        raise AllowListError(f"admin wallets file not found: {path}")
    try:
        with open(path, "r") as file:
            data = yaml.safe_load(file) or {}
    except yaml.YAMLError as exc:
        raise AllowListError(f"failed to parse admin wallets file: {exc}") from exc

    wallets = data.get("admin_wallets") if isinstance(data, dict) else None
    if not isinstance(wallets, list):
        raise AllowListError("admin wallets file must contain an 'admin_wallets' list")
    return [_entry_from_mapping(item) for item in wallets]


def _to_entry(row: AdminWallet) -> AdminEntry:
    permissions = [p for p in (row.permissions or "").split(",") if p]
    return AdminEntry.create(
        wallet_address=row.wallet_address,
        display_name=row.display_name or "",
        role=row.role,
        permissions=permissions,
        is_active=row.is_active,
    )


class AdminWalletRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_entries(self, include_inactive: bool = True) -> List[AdminEntry]:
        query = self.db.query(AdminWallet)
        if not include_inactive:
            query = query.filter(AdminWallet.is_active.is_(True))
        return [_to_entry(row) for row in query.order_by(AdminWallet.created_at).all()]

    def get(self, wallet_address: str) -> Optional[AdminEntry]:
        row = self.db.get(AdminWallet, wallet_address)
        return _to_entry(row) if row else None

    def upsert(self, entry: AdminEntry, commit: bool = True) -> AdminEntry:
        now = int(time.time())
        row = self.db.get(AdminWallet, entry.wallet_address)
        is_new = row is None
        if is_new:
            row = AdminWallet(wallet_address=entry.wallet_address, created_at=now)
        row.display_name = entry.display_name
        row.role = entry.role.value
        row.permissions = ",".join(sorted(entry.permissions))
        row.is_active = entry.is_active
        row.updated_at = now
        if is_new:
            self.db.add(row)
            self.db.flush()
        if commit:
            self.db.commit()
        return entry

    def deactivate(self, wallet_address: str) -> bool:
        row = self.db.get(AdminWallet, wallet_address)
        if row is None:
            return False
        row.is_active = False
        row.updated_at = int(time.time())
        self.db.commit()
        return True


def seed_admin_wallets(db: Session, entries: List[AdminEntry]) -> int:
    """
    Insert allow-list entries (e.g. from the YAML file) that are not in the table yet.

    Existing rows are left untouched: changes made through the API, such as a
    deactivation, survive a restart. Returns the number of rows inserted.
    """
    repository = AdminWalletRepository(db)
    inserted = 0
    for entry in entries:
        if repository.get(entry.wallet_address) is not None:
            continue
        repository.upsert(entry, commit=False)
        inserted += 1
    db.commit()
    logger.info("Seeded %d of %d admin wallets", inserted, len(entries))
    return inserted


def reload_resolver(db: Session, resolver: RoleResolver) -> int:
    return resolver.reload_from(AdminWalletRepository(db).list_entries)

