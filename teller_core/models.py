"""
Domain Models Module

Users, roles, credentials and accounts as plain values. The store creates
and persists them; the core only reads them and writes account balances back.
All monetary values are Decimal, never float.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Union


Amount = Union[Decimal, int, float, str]


def to_decimal(value: Amount) -> Decimal:
    """Convert an amount to Decimal, going through str so floats keep their printed value"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass
class Role:
    """Named capability tier, e.g. "Admin" or "User" """
    id: int
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Role':
        return cls(id=data['id'], name=data['name'])


@dataclass
class User:
    """Person or system identity acting on accounts"""
    id: int
    name: str
    role: Optional[Role] = None

    def has_role(self, role_name: str) -> bool:
        return self.role is not None and self.role.name == role_name

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'role_id': self.role.id if self.role else None,
        }


@dataclass
class Credential:
    """Stored password digest for one user"""
    user_id: int
    password_hash: str
    salt: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'password_hash': self.password_hash,
            'salt': self.salt,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Credential':
        return cls(
            user_id=data['user_id'],
            password_hash=data['password_hash'],
            salt=data['salt'],
        )


@dataclass
class Account:
    """
    Balance-bearing account owned by a user.

    credit() and debit() only change the in-memory value. Nothing is durable
    until the store reports a successful update; an Account whose update
    failed must be discarded, not reused.
    """
    id: int
    balance: Decimal = Decimal('0')
    owner: Optional[User] = None

    def __post_init__(self):
        self.balance = to_decimal(self.balance)
        if self.balance < 0:
            raise ValueError("Account balance cannot be negative")

    def credit(self, amount: Amount) -> bool:
        """Add amount to the balance"""
        self.balance += to_decimal(amount)
        return True

    def debit(self, amount: Amount) -> bool:
        """Subtract amount if the balance covers it; otherwise leave it untouched"""
        amount = to_decimal(amount)
        if amount > self.balance:
            return False
        self.balance -= amount
        return True

    @property
    def owner_id(self) -> Optional[int]:
        return self.owner.id if self.owner else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'balance': str(self.balance),
            'owner_id': self.owner_id,
        }
