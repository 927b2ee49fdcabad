"""
Account Manager Module

Deposits, withdrawals and internal transfers. Money leaving an account is
authorized first; every attempt that gets past argument validation and the
account lookup ends in the audit trail, whatever its outcome.

Accounts are fetched fresh for each call and written back explicitly. A
balance is checked, changed and persisted while the account's lock is held.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, TYPE_CHECKING

from .auth import AuthenticationManager
from .exceptions import InvalidArgumentError, UnauthorizedOperationError
from .history import BankHistory
from .locking import AccountLocks
from .logging_config import get_logger, log_action
from .models import Amount, User, to_decimal
from .operations import (
    deposit_operation, withdrawal_operation,
    transfer_out_operation, transfer_in_operation,
)
from .store import AccountStore

if TYPE_CHECKING:
    from .interest import InterestOperator


class AccountManager:
    """Orchestrates money movement between callers, storage, authorization and audit"""

    def __init__(
        self,
        store: AccountStore,
        auth: AuthenticationManager,
        history: BankHistory,
        locks: Optional[AccountLocks] = None
    ):
        self.store = store
        self.auth = auth
        self.history = history
        self.locks = locks or AccountLocks()
        self.interest_operator: Optional['InterestOperator'] = None
        self.logger = get_logger("teller.accounts")

    def deposit(self, actor: User, amount: Amount, description: str, account_id: int) -> bool:
        """
        Credit an account.

        Anyone may deposit into any account. A missing account is not an
        error: the attempt is audited with success=False and False is returned.

        Returns:
            Whether the new balance was persisted

        Raises:
            InvalidArgumentError: negative amount or no actor
            StorageFaultError: storage failed
        """
        amount = self._validate(actor, amount)

        with self.locks.hold(account_id):
            account = self.store.find_account_by_id(account_id)
            operation = deposit_operation(actor, amount, description, account, account_id)
            success = False
            if account is not None:
                account.credit(amount)
                success = self.store.update_account_state(account)
            self.history.record(operation, success)

        self._log_outcome("deposit", success, actor, amount, account_id)
        return success

    def withdraw(self, actor: User, amount: Amount, description: str, account_id: int) -> bool:
        """
        Debit an account owned by actor (or any account, for an admin).

        Returns:
            False on insufficient funds (nothing is persisted) or when the
            store rejects the update; True otherwise

        Raises:
            InvalidArgumentError: negative amount, no actor, or unknown account
            UnauthorizedOperationError: actor may not withdraw from this account
            StorageFaultError: storage failed
        """
        amount = self._validate(actor, amount)

        with self.locks.hold(account_id):
            account = self.store.find_account_by_id(account_id)
            if account is None:
                raise InvalidArgumentError(f"Account {account_id} does not exist")

            operation = withdrawal_operation(actor, amount, description, account)
            if not self.auth.can_invoke_operation(operation, actor):
                self.history.record_unauthorized(operation, False)
                self._log_denied("withdraw", actor, amount, account_id)
                raise UnauthorizedOperationError(
                    f"User {actor.id} may not withdraw from account {account_id}"
                )

            success = account.debit(amount)
            if success:
                success = self.store.update_account_state(account)
            self.history.record(operation, success)

        self._log_outcome("withdraw", success, actor, amount, account_id)
        return success

    def transfer(self, actor: User, amount: Amount, description: str,
                 source_id: int, dest_id: int) -> bool:
        """
        Move money between two accounts.

        Authorization is checked once, against the debit leg. The returned
        value reflects only whether the source account was persisted: if the
        source update succeeds and the destination update then fails, this
        still returns True. Both legs are audited with that same value.

        Raises:
            InvalidArgumentError: negative amount, no actor, same account on
                both sides, or either account unknown
            UnauthorizedOperationError: actor may not debit the source
            StorageFaultError: storage failed
        """
        amount = self._validate(actor, amount)
        if source_id == dest_id:
            raise InvalidArgumentError("Source and destination accounts must differ")

        with self.locks.hold(source_id, dest_id):
            source = self.store.find_account_by_id(source_id)
            dest = self.store.find_account_by_id(dest_id)
            if source is None or dest is None:
                raise InvalidArgumentError("Source or destination account does not exist")

            debit_leg = transfer_out_operation(actor, amount, description, source)
            credit_leg = transfer_in_operation(actor, amount, description, dest)
            if not self.auth.can_invoke_operation(debit_leg, actor):
                self.history.record_unauthorized(debit_leg, False)
                self._log_denied("transfer", actor, amount, source_id)
                raise UnauthorizedOperationError(
                    f"User {actor.id} may not transfer from account {source_id}"
                )

            success = source.debit(amount)
            success = success and dest.credit(amount)
            if success:
                success = self.store.update_account_state(source)
                if success:
                    # Destination outcome does not change success
                    dest_persisted = self.store.update_account_state(dest)
                    if not dest_persisted:
                        log_action(
                            self.logger, "error", "Transfer destination not persisted",
                            user_id=actor.id, action="transfer", resource=f"account:{dest_id}",
                            extra={"source_id": source_id, "amount": str(amount)}
                        )
            self.history.record(debit_leg, success)
            self.history.record(credit_leg, success)

        self._log_outcome("transfer", success, actor, amount, source_id, dest_id=dest_id)
        return success

    def login(self, username: str, secret: str) -> User:
        """Authenticate; the returned User is the identity to pass to later calls"""
        return self.auth.login(username, secret)

    def logout(self, user: User) -> bool:
        return self.auth.logout(user)

    def _validate(self, actor: Optional[User], amount: Amount) -> Decimal:
        if amount is None:
            raise InvalidArgumentError("Amount is required")
        try:
            value = to_decimal(amount)
        except InvalidOperation:
            raise InvalidArgumentError(f"Amount is not a number: {amount!r}")
        if not value.is_finite():
            raise InvalidArgumentError(f"Amount must be finite: {amount!r}")
        if value < 0:
            raise InvalidArgumentError("Amount cannot be negative")
        if actor is None:
            raise InvalidArgumentError("User should not be null")
        return value

    def _log_outcome(self, action: str, success: bool, actor: User, amount: Decimal,
                     account_id: int, **extra) -> None:
        log_action(
            self.logger, "info" if success else "warning",
            f"{action.capitalize()} {'succeeded' if success else 'failed'}",
            user_id=actor.id, action=action, resource=f"account:{account_id}",
            extra={"amount": str(amount), "success": success, **extra}
        )

    def _log_denied(self, action: str, actor: User, amount: Decimal, account_id: int) -> None:
        log_action(
            self.logger, "warning", f"{action.capitalize()} denied",
            user_id=actor.id, action=action, resource=f"account:{account_id}",
            extra={"amount": str(amount)}
        )
