"""Persistent multi-account storage"""

import copy
import datetime
import json
import logging
import os
import platform
import threading
import uuid
from pathlib import Path
from typing import Any, ContextManager, Dict, List, Optional, Protocol

import filelock

from codex_oauth.constants import DEFAULT_EXPIRES_IN
from codex_oauth.expiry import format_timestamp, utc_now
from codex_oauth.jwt_utils import parse_user_info
from codex_oauth.token_exchange import TokenResponse

from .models import Account

logger = logging.getLogger(__name__)

STORE_VERSION = 1


class AccountStoreProtocol(Protocol):
    """Interface the refresh scheduler needs from an account store.

    All access goes through ``lock``; it is only ever held inside
    synchronous blocks, never across an await. ``sync()`` picks up changes
    other processes wrote to the backing storage and is called under the
    lock before reading or mutating.
    """

    lock: ContextManager[Any]

    def sync(self) -> bool:
        ...

    def list(self) -> List[Account]:
        ...

    def get(self, account_id: str) -> Optional[Account]:
        ...

    def get_mut(self, account_id: str) -> Optional[Account]:
        ...

    def save(self) -> None:
        ...


class StoreLock:
    """Re-entrant thread lock paired with a lock file shared across processes.

    A CLI ``login`` or ``remove`` and the refresh daemon run in different
    processes against the same accounts file; both sides take this lock
    around every read-modify-write.
    """

    def __init__(self, lock_path: Path):
        self._thread_lock = threading.RLock()
        self._file_lock = filelock.FileLock(str(lock_path))

    def acquire(self, timeout: float = -1) -> bool:
        if not self._thread_lock.acquire(timeout=timeout):
            return False
        try:
            self._file_lock.acquire(timeout=timeout)
        except filelock.Timeout:
            self._thread_lock.release()
            return False
        except BaseException:
            self._thread_lock.release()
            raise
        return True

    def release(self) -> None:
        self._file_lock.release()
        self._thread_lock.release()

    def __enter__(self) -> "StoreLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.release()


class AccountStore:
    """Accounts persisted as one JSON file with owner-only permissions"""

    def __init__(self, accounts_file: Optional[Path] = None):
        """Initialize account storage

        Args:
            accounts_file: Path to accounts file (default: ~/.codex-accounts/accounts.json)
        """
        if accounts_file is None:
            accounts_file = Path.home() / ".codex-accounts" / "accounts.json"

        self.accounts_file = Path(accounts_file)
        self._ensure_directory()
        self.lock = StoreLock(self.accounts_file.with_name(self.accounts_file.name + ".lock"))
        self._accounts: Dict[str, Account] = {}
        # File content as last read or written; None when there is no file
        self._disk_text: Optional[str] = None
        self.load()

    def _ensure_directory(self) -> None:
        parent_dir = self.accounts_file.parent
        if not parent_dir.exists():
            parent_dir.mkdir(parents=True, exist_ok=True)
            if platform.system() != "Windows":
                os.chmod(parent_dir, 0o700)

    def _read_disk(self) -> Optional[str]:
        try:
            return self.accounts_file.read_text()
        except FileNotFoundError:
            return None

    def load(self) -> None:
        """Load accounts from disk, replacing the in-memory set"""
        with self.lock:
            self._accounts = {}
            try:
                text = self._read_disk()
            except OSError as e:
                logger.error(f"Failed to read accounts from {self.accounts_file}: {e}")
                return

            self._disk_text = text
            if text is None:
                logger.debug(f"No accounts file at {self.accounts_file}")
                return

            try:
                data = json.loads(text)
            except json.JSONDecodeError as e:
                logger.error(f"Failed to load accounts from {self.accounts_file}: {e}")
                return

            for idx, raw in enumerate(data.get("accounts", [])):
                try:
                    account = Account.from_dict(raw)
                except (KeyError, TypeError, AttributeError) as e:
                    logger.warning(f"Skipping invalid account at index {idx}: {e}")
                    continue
                self._accounts[account.id] = account

            logger.debug(f"Loaded {len(self._accounts)} account(s) from {self.accounts_file}")

    def sync(self) -> bool:
        """
        Reload if another process changed the file since we last read or wrote it.

        Unsaved in-memory changes are dropped when a reload happens, so call
        this under ``lock`` before mutating.

        Returns:
            True if the accounts were reloaded
        """
        with self.lock:
            try:
                text = self._read_disk()
            except OSError as e:
                logger.error(f"Failed to read accounts from {self.accounts_file}: {e}")
                return False
            if text == self._disk_text:
                return False
            logger.debug(f"{self.accounts_file} changed on disk, reloading")
            self.load()
            return True

    def save(self) -> None:
        """
        Write all accounts to disk.

        Raises:
            OSError: If the file cannot be written
        """
        with self.lock:
            self._ensure_directory()
            payload = {
                "version": STORE_VERSION,
                "accounts": [account.to_dict() for account in self._accounts.values()],
            }
            text = json.dumps(payload, indent=2)

            tmp_path = self.accounts_file.with_suffix(self.accounts_file.suffix + ".tmp")
            tmp_path.write_text(text)
            if platform.system() != "Windows":
                os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self.accounts_file)
            self._disk_text = text

            logger.debug(f"Saved {len(self._accounts)} account(s) to {self.accounts_file}")

    def list(self) -> List[Account]:
        """Copies of all accounts"""
        with self.lock:
            return [copy.deepcopy(account) for account in self._accounts.values()]

    def get(self, account_id: str) -> Optional[Account]:
        """Copy of one account, or None"""
        with self.lock:
            account = self._accounts.get(account_id)
            return copy.deepcopy(account) if account else None

    def get_mut(self, account_id: str) -> Optional[Account]:
        """Live account object; mutate it only while holding ``lock``"""
        with self.lock:
            return self._accounts.get(account_id)

    def find(self, query: str) -> Optional[Account]:
        """Look an account up by ID, name or email"""
        with self.lock:
            if query in self._accounts:
                return copy.deepcopy(self._accounts[query])
            for account in self._accounts.values():
                if query in (account.name, account.email):
                    return copy.deepcopy(account)
        return None

    def upsert(self, account: Account) -> None:
        with self.lock:
            self._accounts[account.id] = copy.deepcopy(account)

    def remove(self, account_id: str) -> bool:
        with self.lock:
            return self._accounts.pop(account_id, None) is not None

    def add_from_tokens(self, tokens: TokenResponse, name: Optional[str] = None) -> Account:
        """
        Create or update an account from a completed login and save.

        An existing account with the same ChatGPT account ID (or email) is
        updated in place instead of duplicated.

        Returns:
            Copy of the stored account
        """
        user = parse_user_info(tokens.id_token) if tokens.id_token else None
        now = utc_now()
        expires_in = tokens.expires_in or DEFAULT_EXPIRES_IN

        token_record: Dict[str, Any] = {
            "id_token": tokens.id_token,
            "access_token": tokens.access_token,
            "refresh_token": tokens.refresh_token,
            "account_id": user.account_id if user else None,
            "expires_at": format_timestamp(now + datetime.timedelta(seconds=expires_in)),
        }

        with self.lock:
            self.sync()
            existing = None
            if user:
                for account in self._accounts.values():
                    if (user.account_id and account.account_id == user.account_id) or (
                        not user.account_id and account.email == user.email
                    ):
                        existing = account
                        break

            if existing is not None:
                auth_json = dict(existing.auth_json)
                auth_json["tokens"] = {**auth_json.get("tokens", {}), **token_record}
                auth_json["last_refresh"] = format_timestamp(now)
                existing.auth_json = auth_json
                existing.refresh_token = tokens.refresh_token or existing.refresh_token
                existing.last_refresh = format_timestamp(now)
                if name:
                    existing.name = name
                account = existing
                logger.info(f"Updated tokens for existing account {account.name}")
            else:
                account = Account(
                    id=uuid.uuid4().hex,
                    name=name or (user.email if user else f"account-{len(self._accounts) + 1}"),
                    refresh_token=tokens.refresh_token,
                    auth_json={
                        "OPENAI_API_KEY": None,
                        "tokens": token_record,
                        "last_refresh": format_timestamp(now),
                    },
                    email=user.email if user else None,
                    account_id=user.account_id if user else None,
                    created_at=format_timestamp(now),
                    last_refresh=format_timestamp(now),
                )
                self._accounts[account.id] = account
                logger.info(f"Added account {account.name}")

            self.save()
            return copy.deepcopy(account)
