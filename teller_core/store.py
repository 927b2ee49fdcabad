"""
Account Store Module

The persistence capability the core consumes (AccountStore) and a reference
implementation over a document StorageInterface. Backend failures surface as
StorageFaultError so the core never sees driver exceptions.
"""

import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from .audit import AuditEntry
from .exceptions import StorageFaultError
from .logging_config import get_logger
from .models import Account, Credential, Role, User
from .storage import StorageInterface


class AccountStore(ABC):
    """Persistence capabilities used by the account manager, authentication and history"""

    @abstractmethod
    def find_account_by_id(self, account_id: int) -> Optional[Account]:
        """Return a fresh copy of the account, or None"""
        pass

    @abstractmethod
    def update_account_state(self, account: Account) -> bool:
        """Persist the account balance; False if the account is unknown"""
        pass

    @abstractmethod
    def find_user_by_name(self, name: str) -> Optional[User]:
        pass

    @abstractmethod
    def find_credential_for_user(self, user: User) -> Optional[Credential]:
        pass

    @abstractmethod
    def append_audit(self, entry: AuditEntry) -> AuditEntry:
        """Chain and append one audit entry; returns the stored entry"""
        pass

    @abstractmethod
    def list_accounts(self) -> List[Account]:
        pass

    @abstractmethod
    def audit_entries(self) -> List[AuditEntry]:
        """All audit entries in append order"""
        pass


class RecordAccountStore(AccountStore):
    """AccountStore over a StorageInterface backend"""

    ROLES = "roles"
    USERS = "users"
    CREDENTIALS = "credentials"
    ACCOUNTS = "accounts"
    AUDIT = "audit_entries"

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.logger = get_logger("teller.store")
        self._write_lock = threading.Lock()
        self._audit_lock = threading.Lock()
        self._last_hash: Optional[str] = None
        self._last_hash_loaded = False

    @contextmanager
    def _storage_call(self, action: str):
        """Translate backend failures into StorageFaultError"""
        try:
            yield
        except (sqlite3.Error, OSError) as e:
            self.logger.error(f"Storage failure during {action}: {e}")
            raise StorageFaultError(f"Storage failure during {action}: {e}") from e

    # Provisioning

    def add_role(self, role: Role) -> Role:
        with self._storage_call("add_role"):
            self.storage.save(self.ROLES, str(role.id), role.to_dict())
        return role

    def add_user(self, user: User) -> User:
        with self._storage_call("add_user"):
            if user.role is not None and self.storage.load(self.ROLES, str(user.role.id)) is None:
                self.storage.save(self.ROLES, str(user.role.id), user.role.to_dict())
            self.storage.save(self.USERS, str(user.id), user.to_dict())
        return user

    def set_credential(self, credential: Credential) -> Credential:
        with self._storage_call("set_credential"):
            self.storage.save(self.CREDENTIALS, str(credential.user_id), credential.to_dict())
        return credential

    def add_account(self, account: Account) -> Account:
        with self._storage_call("add_account"):
            self.storage.save(self.ACCOUNTS, str(account.id), account.to_dict())
        return account

    # Lookups

    def find_user_by_name(self, name: str) -> Optional[User]:
        with self._storage_call("find_user_by_name"):
            matches = self.storage.find(self.USERS, {'name': name})
            return self._user_from_dict(matches[0]) if matches else None

    def find_credential_for_user(self, user: User) -> Optional[Credential]:
        with self._storage_call("find_credential_for_user"):
            data = self.storage.load(self.CREDENTIALS, str(user.id))
            return Credential.from_dict(data) if data else None

    def find_account_by_id(self, account_id: int) -> Optional[Account]:
        with self._storage_call("find_account_by_id"):
            data = self.storage.load(self.ACCOUNTS, str(account_id))
            return self._account_from_dict(data) if data else None

    def list_accounts(self) -> List[Account]:
        with self._storage_call("list_accounts"):
            return [self._account_from_dict(data) for data in self.storage.load_all(self.ACCOUNTS)]

    # Writes

    def update_account_state(self, account: Account) -> bool:
        with self._write_lock, self._storage_call("update_account_state"):
            existing = self.storage.load(self.ACCOUNTS, str(account.id))
            if existing is None:
                return False
            existing['balance'] = str(account.balance)
            self.storage.save(self.ACCOUNTS, str(account.id), existing)
            return True

    def append_audit(self, entry: AuditEntry) -> AuditEntry:
        with self._audit_lock, self._storage_call("append_audit"):
            if not self._last_hash_loaded:
                self._load_last_hash()

            entry.previous_hash = self._last_hash or ""
            entry.current_hash = entry.calculate_hash()
            self.storage.save(self.AUDIT, entry.id, entry.to_dict())

            self._last_hash = entry.current_hash
            return entry

    # Audit trail

    def audit_entries(self) -> List[AuditEntry]:
        with self._storage_call("audit_entries"):
            return [AuditEntry.from_dict(data) for data in self.storage.load_all(self.AUDIT)]

    def verify_audit_integrity(self) -> Dict[str, Any]:
        """
        Verify the integrity of the entire audit chain

        Returns:
            Dictionary with integrity check results
        """
        result = {
            'valid': True,
            'total_entries': 0,
            'hash_errors': [],
            'chain_breaks': [],
        }

        entries = self.audit_entries()
        result['total_entries'] = len(entries)

        previous_hash = ""
        for position, entry in enumerate(entries):
            if not entry.verify_hash():
                result['valid'] = False
                result['hash_errors'].append({
                    'entry_id': entry.id,
                    'position': position,
                    'expected_hash': entry.calculate_hash(),
                    'actual_hash': entry.current_hash
                })
            if entry.previous_hash != previous_hash:
                result['valid'] = False
                result['chain_breaks'].append({
                    'entry_id': entry.id,
                    'position': position,
                    'expected_previous_hash': previous_hash,
                    'actual_previous_hash': entry.previous_hash
                })
            previous_hash = entry.current_hash

        return result

    # Private helpers

    def _load_last_hash(self) -> None:
        records = self.storage.load_all(self.AUDIT)
        self._last_hash = records[-1].get('current_hash') if records else None
        self._last_hash_loaded = True

    def _user_from_dict(self, data: Dict[str, Any]) -> User:
        role = None
        if data.get('role_id') is not None:
            role_data = self.storage.load(self.ROLES, str(data['role_id']))
            if role_data:
                role = Role.from_dict(role_data)
        return User(id=data['id'], name=data['name'], role=role)

    def _account_from_dict(self, data: Dict[str, Any]) -> Account:
        owner = None
        if data.get('owner_id') is not None:
            owner_data = self.storage.load(self.USERS, str(data['owner_id']))
            if owner_data:
                owner = self._user_from_dict(owner_data)
        return Account(id=data['id'], balance=data['balance'], owner=owner)
