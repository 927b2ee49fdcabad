"""
Operations Module

An Operation is an immutable record of one attempted action. It exists only
to be authorized and written to the audit trail; it is never stored as
account state.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from .models import Account, Amount, User, to_decimal


class OperationKind(Enum):
    """Kinds of audited operations"""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER_OUT = "transfer_out"    # Debit leg of an internal transfer
    TRANSFER_IN = "transfer_in"      # Credit leg of an internal transfer
    LOGIN = "login"
    LOGOUT = "logout"
    INTEREST = "interest"


OUTBOUND_KINDS = frozenset({OperationKind.WITHDRAWAL, OperationKind.TRANSFER_OUT})


@dataclass(frozen=True)
class Operation:
    """Audited operation"""
    kind: OperationKind
    actor: Optional[User]
    description: str
    amount: Optional[Decimal] = None
    account: Optional[Account] = None
    account_id: Optional[int] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if self.amount is not None:
            object.__setattr__(self, 'amount', to_decimal(self.amount))
        # Keep the requested id even when the account itself was not found
        if self.account_id is None and self.account is not None:
            object.__setattr__(self, 'account_id', self.account.id)

    @property
    def is_outbound(self) -> bool:
        """Money leaves the target account"""
        return self.kind in OUTBOUND_KINDS

    @property
    def actor_id(self) -> Optional[int]:
        return self.actor.id if self.actor else None


def deposit_operation(actor: User, amount: Amount, description: str,
                      account: Optional[Account], account_id: int) -> Operation:
    return Operation(OperationKind.DEPOSIT, actor, description, to_decimal(amount),
                     account, account_id)


def withdrawal_operation(actor: User, amount: Amount, description: str,
                         account: Account) -> Operation:
    return Operation(OperationKind.WITHDRAWAL, actor, description, to_decimal(amount), account)


def transfer_out_operation(actor: User, amount: Amount, description: str,
                           account: Account) -> Operation:
    return Operation(OperationKind.TRANSFER_OUT, actor, description, to_decimal(amount), account)


def transfer_in_operation(actor: User, amount: Amount, description: str,
                          account: Account) -> Operation:
    return Operation(OperationKind.TRANSFER_IN, actor, description, to_decimal(amount), account)


def interest_operation(actor: User, amount: Amount, description: str,
                       account: Account) -> Operation:
    return Operation(OperationKind.INTEREST, actor, description, to_decimal(amount), account)


def login_operation(actor: Optional[User], description: str) -> Operation:
    return Operation(OperationKind.LOGIN, actor, description)


def logout_operation(actor: User, description: str) -> Operation:
    return Operation(OperationKind.LOGOUT, actor, description)
