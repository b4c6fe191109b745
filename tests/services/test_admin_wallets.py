from pathlib import Path

import pytest
from sqlalchemy.orm import sessionmaker

from wallet_auth.core.exceptions import AllowListError
from wallet_auth.core.roles import ROLE_PERMISSIONS, AdminEntry, Role, RoleResolver
from wallet_auth.models.auth import WalletUser
from wallet_auth.services.admin_wallets import (
    AdminWalletRepository,
    load_admin_wallets_file,
    reload_resolver,
    seed_admin_wallets,
)
from wallet_auth.services.wallet_users import SqlUserDirectory

BUNDLED_ALLOW_LIST = Path(__file__).resolve().parents[2] / "config" / "admin_wallets.yaml"

ADMIN_YAML = """
admin_wallets:
  - address: G_FORECAST
    name: Forecast
    role: SUPER_ADMIN
    permissions: [approve, reject, review, manage_users, view_stats]
  - address: G_WHITELIST
    name: Whitelist 1
    role: validator
  - address: G_OLD
    name: Old
    role: ADMIN
    is_active: false
"""


class TestLoadAdminWalletsFile:
    def test_load(self, tmp_path):
        path = tmp_path / "admin_wallets.yaml"
        path.write_text(ADMIN_YAML)

        entries = load_admin_wallets_file(path)

        assert [e.wallet_address for e in entries] == ["G_FORECAST", "G_WHITELIST", "G_OLD"]
        assert entries[0].role is Role.SUPER_ADMIN
        assert entries[1].permissions == ROLE_PERMISSIONS[Role.VALIDATOR]
        assert entries[2].is_active is False

    def test_bundled_allow_list(self):
        entries = load_admin_wallets_file(BUNDLED_ALLOW_LIST)

        assert len(entries) == 6
        assert len({e.wallet_address for e in entries}) == 6
        assert [e.display_name for e in entries if e.role is Role.SUPER_ADMIN] == ["Forecast", "Current User"]
        assert all(e.is_active for e in entries)

    def test_missing_file(self, tmp_path):
        with pytest.raises(AllowListError):
            load_admin_wallets_file(tmp_path / "nope.yaml")

    @pytest.mark.parametrize(
        "content",
        [
            "admin_wallets: [",
            "something_else: []",
            "admin_wallets:\n  - name: no address\n    role: ADMIN\n",
            "admin_wallets:\n  - address: G_X\n",
            "admin_wallets:\n  - address: G_X\n    role: REVIEWER\n",
        ],
    )
    def test_invalid_files(self, tmp_path, content):
        path = tmp_path / "admin_wallets.yaml"
        path.write_text(content)
        with pytest.raises(AllowListError):
            load_admin_wallets_file(path)


class TestAdminWalletRepository:
    def test_seed_and_list(self, db_session, tmp_path):
        path = tmp_path / "admin_wallets.yaml"
        path.write_text(ADMIN_YAML)
        seed_admin_wallets(db_session, load_admin_wallets_file(path))

        repository = AdminWalletRepository(db_session)
        assert len(repository.list_entries()) == 3
        assert len(repository.list_entries(include_inactive=False)) == 2
        assert repository.get("G_FORECAST").permissions == ROLE_PERMISSIONS[Role.SUPER_ADMIN]
        assert repository.get("G_UNKNOWN") is None

    def test_seed_is_idempotent(self, db_session):
        entries = [AdminEntry.create("G_A", "A", Role.ADMIN)]
        assert seed_admin_wallets(db_session, entries) == 1
        assert seed_admin_wallets(db_session, entries) == 0
        assert len(AdminWalletRepository(db_session).list_entries()) == 1

    def test_deactivated_wallet_stays_inactive_after_reseed(self, db_session):
        entries = [AdminEntry.create("G_A", "A", Role.ADMIN), AdminEntry.create("G_B", "B", Role.VALIDATOR)]
        seed_admin_wallets(db_session, entries)
        repository = AdminWalletRepository(db_session)
        repository.deactivate("G_A")

        # next start-up seeds from the same file
        seed_admin_wallets(db_session, entries)
        resolver = RoleResolver()
        reload_resolver(db_session, resolver)

        assert repository.get("G_A").is_active is False
        assert not resolver.is_admin("G_A")
        assert resolver.is_admin("G_B")

    def test_seed_keeps_role_edits(self, db_session):
        seed_admin_wallets(db_session, [AdminEntry.create("G_A", "A", Role.VALIDATOR)])
        AdminWalletRepository(db_session).upsert(AdminEntry.create("G_A", "A", Role.ADMIN))

        seed_admin_wallets(db_session, [AdminEntry.create("G_A", "A", Role.VALIDATOR)])

        assert AdminWalletRepository(db_session).get("G_A").role is Role.ADMIN

    def test_upsert_updates_role(self, db_session):
        repository = AdminWalletRepository(db_session)
        repository.upsert(AdminEntry.create("G_A", "A", Role.VALIDATOR))
        repository.upsert(AdminEntry.create("G_A", "A", Role.ADMIN, ["view_stats"]))

        entry = repository.get("G_A")
        assert entry.role is Role.ADMIN
        assert entry.permissions == {"view_stats"}

    def test_explicit_empty_permissions_survive_storage(self, db_session):
        repository = AdminWalletRepository(db_session)
        repository.upsert(AdminEntry.create("G_A", "A", Role.VALIDATOR, []))
        assert repository.get("G_A").permissions == frozenset()

    def test_deactivate_and_reload(self, db_session):
        repository = AdminWalletRepository(db_session)
        repository.upsert(AdminEntry.create("G_A", "A", Role.ADMIN))
        resolver = RoleResolver()
        assert reload_resolver(db_session, resolver) == 1
        assert resolver.is_admin("G_A")

        assert repository.deactivate("G_A")
        assert not repository.deactivate("G_MISSING")
        assert reload_resolver(db_session, resolver) == 0
        assert not resolver.is_admin("G_A")


class TestSqlUserDirectory:
    def test_record_login(self, db_session, clock):
        directory = SqlUserDirectory(sessionmaker(bind=db_session.get_bind()), clock=clock)
        user_id = directory.record_login("G_USER")
        clock.advance(60)
        assert directory.record_login("G_USER") == user_id

        user = db_session.query(WalletUser).filter(WalletUser.wallet_address == "G_USER").one()
        assert user.created_at == int(clock.now) - 60
        assert user.last_login == int(clock.now)
