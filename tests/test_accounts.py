from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from newsroom.accounts import AccountDirectory, AccountFile, edit_distance
from newsroom.models import Permission

PASSWORD = "correct horse battery"


@pytest.fixture()
def account_file(tmp_path: Path) -> AccountFile:
    return AccountFile(tmp_path / "accounts.json")


@pytest.fixture()
def directory(account_file: AccountFile) -> AccountDirectory:
    accounts = AccountDirectory(account_file)
    accounts.load()
    return accounts


def test_missing_file_is_created_empty(account_file: AccountFile, directory: AccountDirectory) -> None:
    assert account_file.path.exists()
    assert json.loads(account_file.path.read_text(encoding="utf-8")) == []
    assert len(directory) == 0


def test_create_and_authenticate(directory: AccountDirectory) -> None:
    account = directory.create("alice", "Alice@Example.com", PASSWORD)

    assert account.email == "alice@example.com"
    assert account.permission is Permission.USER
    assert account.password_hash != PASSWORD

    assert directory.authenticate("alice@example.com", PASSWORD).username == "alice"
    assert directory.authenticate("ALICE@example.com ", PASSWORD) is not None
    assert directory.authenticate("alice@example.com", "wrong password") is None
    assert directory.authenticate("nobody@example.com", PASSWORD) is None


def test_duplicate_username_or_email_is_rejected(directory: AccountDirectory) -> None:
    directory.create("alice", "alice@example.com", PASSWORD)

    with pytest.raises(ValueError, match="already exists"):
        directory.create("alice", "other@example.com", PASSWORD)
    with pytest.raises(ValueError, match="already exists"):
        directory.create("alice2", "ALICE@example.com", PASSWORD)
    assert len(directory) == 1


@pytest.mark.parametrize(
    "username, email, password",
    [
        ("", "a@example.com", PASSWORD),
        ("has space", "a@example.com", PASSWORD),
        ("brace{", "a@example.com", PASSWORD),
        ("alice", "not-an-email", PASSWORD),
        ("alice", "a@example.com", "short"),
    ],
)
def test_invalid_account_details_are_rejected(
    directory: AccountDirectory, username: str, email: str, password: str
) -> None:
    with pytest.raises(ValueError):
        directory.create(username, email, password)


def test_mutations_are_persisted(account_file: AccountFile, directory: AccountDirectory) -> None:
    directory.create("alice", "alice@example.com", PASSWORD)
    directory.create("bob", "bob@example.com", PASSWORD, permission=Permission.EDITOR)
    directory.set_permission("alice", Permission.ADMIN)
    directory.delete("bob")

    reloaded = AccountDirectory(account_file)
    reloaded.load()
    assert [account.username for account in reloaded.list_accounts()] == ["alice"]
    assert reloaded.permission_of("alice") is Permission.ADMIN
    assert reloaded.permission_of("bob") is None


def test_unknown_accounts_raise_key_error(directory: AccountDirectory) -> None:
    with pytest.raises(KeyError):
        directory.set_permission("ghost", Permission.ADMIN)
    with pytest.raises(KeyError):
        directory.delete("ghost")


def test_corrupt_file_is_reported(account_file: AccountFile) -> None:
    account_file.path.write_text(json.dumps({"not": "a list"}), encoding="utf-8")
    with pytest.raises(ValueError):
        AccountDirectory(account_file).load()

    account_file.path.write_text(json.dumps([{"username": "x"}]), encoding="utf-8")
    with pytest.raises(ValueError):
        AccountDirectory(account_file).load()


def test_search_orders_closest_first(directory: AccountDirectory) -> None:
    for name in ("margaret", "marge", "zed", "mary"):
        directory.create(name, f"{name}@example.com", PASSWORD)

    results = [account.username for account in directory.search("marg")]
    assert results[0] == "marge"
    assert results[-1] == "zed"
    assert len(directory.search("marg", limit=2)) == 2


def test_edit_distance_is_case_insensitive() -> None:
    assert edit_distance("Kitten", "sitting") == 3
    assert edit_distance("ABC", "abc") == 0
    assert edit_distance("", "abc") == 3


def _fail_writes(monkeypatch: pytest.MonkeyPatch, account_file: AccountFile) -> None:
    def save_all(accounts) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(account_file, "save_all", save_all)


def test_failed_save_rolls_back_create(
    monkeypatch: pytest.MonkeyPatch, account_file: AccountFile, directory: AccountDirectory
) -> None:
    _fail_writes(monkeypatch, account_file)

    with pytest.raises(OSError):
        directory.create("ghost", "ghost@example.com", PASSWORD)

    assert directory.get("ghost") is None
    assert directory.find_by_email("ghost@example.com") is None
    assert len(directory) == 0


def test_failed_save_rolls_back_permission_change_and_delete(
    monkeypatch: pytest.MonkeyPatch, account_file: AccountFile, directory: AccountDirectory
) -> None:
    directory.create("alice", "alice@example.com", PASSWORD)
    _fail_writes(monkeypatch, account_file)

    with pytest.raises(OSError):
        directory.set_permission("alice", Permission.ADMIN)
    assert directory.permission_of("alice") is Permission.USER

    with pytest.raises(OSError):
        directory.delete("alice")
    assert directory.get("alice") is not None

    monkeypatch.undo()
    reloaded = AccountDirectory(account_file)
    reloaded.load()
    assert reloaded.permission_of("alice") is Permission.USER
