"""Account directory backed by a flat JSON file."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from contextlib import suppress
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from passlib.context import CryptContext
from pydantic import ValidationError

from .models import Account, Permission, utcnow

logger = logging.getLogger("newsroom.accounts")

ACCOUNTS_FILE_NAME = "accounts.json"
PASSWORD_MIN_LENGTH = 8

# hex_sha256 covers accounts created before passwords were salted; they are
# rehashed with pbkdf2 on the next successful login.
_pwd_context = CryptContext(
    schemes=["pbkdf2_sha256", "hex_sha256"],
    deprecated=["hex_sha256"],
)


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    try:
        return _pwd_context.verify(password, hashed)
    except ValueError:
        return False


def _normalise_username(username: str) -> str:
    value = username.strip()
    if not value:
        raise ValueError("Username must not be empty")
    if len(value) > 64:
        raise ValueError("Username is too long")
    if any(char.isspace() or char in "/?#{}<>" for char in value):
        raise ValueError("Username may not contain spaces or the characters / ? # { } < >")
    return value


def _normalise_email(email: str) -> str:
    value = email.strip().lower()
    if "@" not in value or value.startswith("@") or value.endswith("@"):
        raise ValueError("A valid email address is required")
    return value


def edit_distance(a: str, b: str) -> int:
    """Case-insensitive Levenshtein distance between ``a`` and ``b``."""

    a = a.lower()
    b = b.lower()
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(
                min(
                    previous[j - 1] + (char_a != char_b),
                    previous[j] + 1,
                    current[j - 1] + 1,
                )
            )
        previous = current
    return previous[-1]


class AccountFile:
    """Load and save the full account list as a JSON document."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load_all(self) -> List[Account]:
        if not self._path.exists():
            self.save_all([])
            return []
        with self._path.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
        if not isinstance(raw, list):
            raise ValueError(f"Account file {self._path} must contain a JSON list")
        try:
            return [Account.model_validate(item) for item in raw]
        except ValidationError as exc:
            raise ValueError(f"Account file {self._path} is corrupt: {exc}") from exc

    def save_all(self, accounts: Iterable[Account]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = [account.model_dump(mode="json") for account in accounts]
        fd, temp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".accounts-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
            os.replace(temp_name, self._path)
        except BaseException:
            with suppress(FileNotFoundError):
                os.unlink(temp_name)
            raise


class AccountDirectory:
    """Thread-safe in-memory mirror of the persisted accounts.

    The collection lock is only held while the dictionary is read or
    mutated. Writing the file happens outside it, serialised by a second
    lock so that saves land in the order their snapshots were taken.
    """

    def __init__(self, store: AccountFile) -> None:
        self._store = store
        self._accounts: Dict[str, Account] = {}
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()

    def load(self) -> None:
        accounts = self._store.load_all()
        with self._lock:
            self._accounts = {account.username: account for account in accounts}
        logger.info("Loaded %d account(s) from %s", len(accounts), self._store.path)

    def save(self) -> None:
        with self._write_lock:
            snapshot = self.list_accounts()
            try:
                self._store.save_all(snapshot)
            except OSError:
                logger.exception("Failed to write accounts to %s", self._store.path)
                raise

    def _commit(self, username: str, previous: Optional[Account], current: Optional[Account]) -> None:
        """Persist a change to ``username``, undoing it in memory if the write fails."""

        try:
            self.save()
        except OSError:
            with self._lock:
                if self._accounts.get(username) is current:
                    if previous is None:
                        self._accounts.pop(username, None)
                    else:
                        self._accounts[username] = previous
            logger.warning("Rolled back unsaved change to account %s", username)
            raise

    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)

    def get(self, username: str) -> Optional[Account]:
        with self._lock:
            return self._accounts.get(username)

    def permission_of(self, username: str) -> Optional[Permission]:
        """Return the permission level of ``username`` or ``None`` if unknown."""

        with self._lock:
            account = self._accounts.get(username)
            return account.permission if account is not None else None

    def find_by_email(self, email: str) -> Optional[Account]:
        normalized = email.strip().lower()
        with self._lock:
            for account in self._accounts.values():
                if account.email == normalized:
                    return account
        return None

    def list_accounts(self) -> List[Account]:
        with self._lock:
            accounts = list(self._accounts.values())
        return sorted(accounts, key=lambda account: account.username.lower())

    def search(self, term: str, *, limit: int = 10) -> List[Account]:
        accounts = self.list_accounts()
        ranked = sorted(accounts, key=lambda account: edit_distance(account.username, term))
        return ranked[:limit]

    def authenticate(self, email: str, password: str) -> Optional[Account]:
        account = self.find_by_email(email)
        if account is None or not verify_password(password, account.password_hash):
            return None

        if _pwd_context.needs_update(account.password_hash):
            upgraded = account.model_copy(update={"password_hash": hash_password(password)})
            with self._lock:
                if self._accounts.get(account.username) is account:
                    self._accounts[account.username] = upgraded
            self._commit(account.username, account, upgraded)
            logger.info("Upgraded password hash for %s", account.username)
            return upgraded
        return account

    def create(
        self,
        username: str,
        email: str,
        password: str,
        *,
        permission: Permission = Permission.USER,
    ) -> Account:
        """Register a new account and persist the directory."""

        normalized_username = _normalise_username(username)
        normalized_email = _normalise_email(email)
        if len(password) < PASSWORD_MIN_LENGTH:
            raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")

        account = Account(
            username=normalized_username,
            email=normalized_email,
            permission=permission,
            password_hash=hash_password(password),
            created_at=utcnow(),
        )
        with self._lock:
            for existing in self._accounts.values():
                if existing.username == normalized_username or existing.email == normalized_email:
                    raise ValueError("Account with that username/email already exists!")
            self._accounts[normalized_username] = account

        self._commit(normalized_username, None, account)
        logger.info("Created account %s (%s)", account.username, account.permission.value)
        return account

    def set_permission(self, username: str, permission: Permission) -> Account:
        with self._lock:
            account = self._accounts.get(username)
            if account is None:
                raise KeyError(username)
            updated = account.model_copy(update={"permission": permission})
            self._accounts[username] = updated

        self._commit(username, account, updated)
        logger.info("Changed permission of %s to %s", username, permission.value)
        return updated

    def delete(self, username: str) -> Account:
        with self._lock:
            account = self._accounts.pop(username, None)
        if account is None:
            raise KeyError(username)

        self._commit(username, account, None)
        logger.info("Deleted account %s", username)
        return account


__all__ = [
    "ACCOUNTS_FILE_NAME",
    "AccountDirectory",
    "AccountFile",
    "PASSWORD_MIN_LENGTH",
    "edit_distance",
    "hash_password",
    "verify_password",
]
