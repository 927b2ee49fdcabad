"""
Interest Operator Module

Periodic interest accrual. Interest is credited through the ordinary deposit
path, acting as a configured system user, and then recorded a second time as
an interest entry so the trail shows both the deposit and why it happened.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

from .accounts import AccountManager
from .config import TellerConfig, get_config
from .exceptions import InterestAuthorityMissingError
from .history import BankHistory
from .logging_config import get_logger, log_action
from .models import Account, Amount, User, to_decimal
from .operations import interest_operation
from .store import AccountStore


CENT = Decimal('0.01')


class InterestOperator:
    """Accrues interest into accounts"""

    def __init__(
        self,
        store: AccountStore,
        account_manager: AccountManager,
        history: Optional[BankHistory] = None,
        rate: Optional[Amount] = None,
        authority_name: Optional[str] = None,
        description: Optional[str] = None,
        config: Optional[TellerConfig] = None
    ):
        config = config or get_config()
        self.store = store
        self.account_manager = account_manager
        self.history = history or BankHistory(store)
        self.rate = to_decimal(rate) if rate is not None else config.interest_rate_decimal
        self.authority_name = authority_name or config.interest_authority_name
        self.description = description or config.interest_description
        self.logger = get_logger("teller.interest")

        if self.rate < 0:
            raise ValueError("Interest rate cannot be negative")

    def calculate_interest(self, account: Account) -> Decimal:
        """Interest due on the account's balance, rounded to cents"""
        return (account.balance * self.rate).quantize(CENT, rounding=ROUND_HALF_UP)

    def accrue(self, account: Account) -> bool:
        """
        Credit one period of interest to account

        Interest is computed from account as passed in, not from a fresh
        read under the account lock. A balance change committed between the
        caller's read and this call is not reflected in the interest; the
        deposit itself is applied to the current stored balance.

        Returns:
            The success flag of the underlying deposit

        Raises:
            InterestAuthorityMissingError: the interest authority user does not exist
            StorageFaultError: storage failed
        """
        authority = self._resolve_authority()
        interest = self.calculate_interest(account)

        success = self.account_manager.deposit(authority, interest, self.description, account.id)
        self.history.record(
            interest_operation(authority, interest, self.description, account), success
        )

        log_action(
            self.logger, "info" if success else "warning",
            f"Interest accrual {'posted' if success else 'failed'}",
            user_id=authority.id, action="accrue_interest", resource=f"account:{account.id}",
            extra={"interest": str(interest), "rate": str(self.rate), "success": success}
        )
        return success

    def run_batch(self) -> Dict[str, int]:
        """
        Accrue interest for every account in the store

        Returns:
            Counts of accounts processed, credited and failed
        """
        results = {'accounts_processed': 0, 'credited': 0, 'failed': 0}

        for account in self.store.list_accounts():
            if self.accrue(account):
                results['credited'] += 1
            else:
                results['failed'] += 1
            results['accounts_processed'] += 1

        log_action(self.logger, "info", "Interest batch completed",
                   action="accrue_interest_batch", extra=results)
        return results

    def _resolve_authority(self) -> User:
        authority = self.store.find_user_by_name(self.authority_name)
        if authority is None:
            raise InterestAuthorityMissingError(
                f"Interest authority user '{self.authority_name}' not found"
            )
        return authority
