"""
Bank History Module

Append-only audit logger. Every attempted money movement and every login or
logout becomes exactly one AuditEntry in the store; nothing here updates or
removes an entry.
"""

from typing import Optional

from .audit import AuditEntry
from .exceptions import UnsupportedOperationError
from .logging_config import get_logger, log_action
from .models import Account, Amount, User
from .operations import Operation, login_operation, logout_operation
from .store import AccountStore


LOGIN_SUCCESS_DESCRIPTION = "Login"
LOGOUT_DESCRIPTION = "Logout"
DEFAULT_DENIAL_REASON = "Operation not permitted for actor"


class BankHistory:
    """Audit trail writer"""

    def __init__(self, store: AccountStore):
        self.store = store
        self.logger = get_logger("teller.history")

    def record(self, operation: Operation, success: bool) -> AuditEntry:
        """Record an executed (or failed) operation"""
        entry = self.store.append_audit(AuditEntry.from_operation(operation, success))
        self._log(entry)
        return entry

    def record_unauthorized(self, operation: Operation, success: bool = False,
                            reason: str = DEFAULT_DENIAL_REASON) -> AuditEntry:
        """Record an operation refused by authorization"""
        entry = self.store.append_audit(
            AuditEntry.from_operation(operation, success, denied=True, denial_reason=reason)
        )
        self._log(entry)
        return entry

    def record_login_success(self, user: User) -> AuditEntry:
        return self.record(login_operation(user, LOGIN_SUCCESS_DESCRIPTION), True)

    def record_login_failure(self, user: Optional[User], reason: str) -> AuditEntry:
        """user is None when the username did not resolve"""
        return self.record(login_operation(user, reason), False)

    def record_logout(self, user: User) -> AuditEntry:
        return self.record(logout_operation(user, LOGOUT_DESCRIPTION), True)

    def record_deposit_legacy(self, account: Account, amount: Amount, success: bool) -> None:
        raise UnsupportedOperationError("record_deposit_legacy is retired; use record()")

    def record_withdrawal_legacy(self, account: Account, amount: Amount, success: bool) -> None:
        raise UnsupportedOperationError("record_withdrawal_legacy is retired; use record()")

    def _log(self, entry: AuditEntry) -> None:
        log_action(
            self.logger, "debug", f"Audit entry appended: {entry.kind.value}",
            user_id=entry.actor_id, action=entry.kind.value,
            resource=f"account:{entry.account_id}" if entry.account_id is not None else None,
            extra={
                "entry_id": entry.id,
                "success": entry.success,
                "denied": entry.denied,
            }
        )
