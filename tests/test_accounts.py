"""
Test suite for the account manager

Interaction tests verify what is persisted and audited against mocked
collaborators; integration tests run the same flows against a real store.
"""

import logging
import threading
from decimal import Decimal
from unittest.mock import Mock

import pytest

from teller_core.accounts import AccountManager
from teller_core.auth import AuthenticationManager
from teller_core.exceptions import (
    InvalidArgumentError, StorageFaultError, UnauthorizedOperationError,
    UnknownUserOrBadPasswordError,
)
from teller_core.history import BankHistory
from teller_core.models import Account, User
from teller_core.operations import OperationKind
from teller_core.store import AccountStore


class TestAccountManagerInteractions:
    """Account manager against mocked store, authentication and history"""

    def setup_method(self):
        """Set up test fixtures"""
        self.store = Mock(spec=AccountStore)
        self.history = Mock(spec=BankHistory)
        self.auth = Mock(spec=AuthenticationManager)
        self.manager = AccountManager(self.store, self.auth, self.history)

        self.user = User(id=1, name="TestUser")
        self.account = Account(id=1, balance=Decimal("1000"), owner=self.user)
        self.dest = Account(id=2, balance=Decimal("500"), owner=self.user)
        self.store.find_account_by_id.side_effect = {1: self.account, 2: self.dest}.get
        self.store.update_account_state.return_value = True
        self.auth.can_invoke_operation.return_value = True

    def recorded(self):
        """(kind, success) for every history.record call"""
        return [(call.args[0].kind, call.args[1]) for call in self.history.record.call_args_list]

    # Deposit

    def test_deposit_success(self):
        """Test deposit credits the account and audits one success"""
        result = self.manager.deposit(self.user, 100, "Deposit", 1)

        assert result is True
        assert self.account.balance == Decimal("1100")
        self.store.update_account_state.assert_called_once_with(self.account)
        assert self.recorded() == [(OperationKind.DEPOSIT, True)]

    def test_deposit_is_not_authorized(self):
        """Test deposits never consult authorization"""
        self.manager.deposit(self.user, 100, "Deposit", 1)

        self.auth.can_invoke_operation.assert_not_called()

    def test_deposit_account_not_found(self):
        """Test deposit into a missing account returns False and is still audited"""
        result = self.manager.deposit(self.user, 100, "Deposit", 7)

        assert result is False
        self.store.update_account_state.assert_not_called()
        assert self.recorded() == [(OperationKind.DEPOSIT, False)]
        operation = self.history.record.call_args.args[0]
        assert operation.account is None
        assert operation.account_id == 7

    def test_deposit_persist_failure(self):
        """Test deposit result follows the persistence outcome"""
        self.store.update_account_state.return_value = False

        assert self.manager.deposit(self.user, 100, "Deposit", 1) is False
        assert self.recorded() == [(OperationKind.DEPOSIT, False)]

    @pytest.mark.parametrize("amount", [-1, Decimal("-0.01"), "NaN", None])
    def test_deposit_invalid_amount(self, amount):
        """Test invalid amounts are rejected before any lookup or audit"""
        with pytest.raises(InvalidArgumentError):
            self.manager.deposit(self.user, amount, "Deposit", 1)

        self.store.find_account_by_id.assert_not_called()
        self.history.record.assert_not_called()

    def test_deposit_requires_actor(self):
        """Test a missing actor is rejected"""
        with pytest.raises(InvalidArgumentError, match="User should not be null"):
            self.manager.deposit(None, 100, "Deposit", 1)

        self.history.record.assert_not_called()

    def test_invalid_argument_is_value_error(self):
        """Test callers catching ValueError also catch argument errors"""
        with pytest.raises(ValueError):
            self.manager.deposit(self.user, -5, "Deposit", 1)

    def test_deposit_zero_amount_allowed(self):
        """Test zero is a valid amount"""
        assert self.manager.deposit(self.user, 0, "Deposit", 1) is True
        assert self.account.balance == Decimal("1000")

    def test_deposit_storage_fault_on_lookup(self):
        """Test a storage fault during lookup propagates without an audit entry"""
        self.store.find_account_by_id.side_effect = StorageFaultError("disk gone")

        with pytest.raises(StorageFaultError):
            self.manager.deposit(self.user, 100, "Deposit", 1)

        self.history.record.assert_not_called()

    # Withdraw

    def test_withdraw_success(self):
        """Test authorized withdrawal debits and audits one success"""
        result = self.manager.withdraw(self.user, 100, "Withdraw", 1)

        assert result is True
        assert self.account.balance == Decimal("900")
        self.store.update_account_state.assert_called_once_with(self.account)
        assert self.recorded() == [(OperationKind.WITHDRAWAL, True)]

    def test_withdraw_unauthorized(self):
        """Test denied withdrawal raises and writes one denial entry"""
        self.auth.can_invoke_operation.return_value = False

        with pytest.raises(UnauthorizedOperationError):
            self.manager.withdraw(self.user, 100, "Withdraw", 1)

        self.history.record_unauthorized.assert_called_once()
        operation, success = self.history.record_unauthorized.call_args.args
        assert operation.kind == OperationKind.WITHDRAWAL
        assert success is False
        self.history.record.assert_not_called()
        self.store.update_account_state.assert_not_called()
        assert self.account.balance == Decimal("1000")

    def test_withdraw_account_not_found(self):
        """Test withdrawal from a missing account is an argument error with no audit"""
        with pytest.raises(InvalidArgumentError, match="does not exist"):
            self.manager.withdraw(self.user, 100, "Withdraw", 7)

        self.auth.can_invoke_operation.assert_not_called()
        self.history.record.assert_not_called()
        self.history.record_unauthorized.assert_not_called()

    def test_withdraw_insufficient_funds(self):
        """Test overdraft is refused without touching storage"""
        self.account.balance = Decimal("50")

        result = self.manager.withdraw(self.user, 100, "Withdraw", 1)

        assert result is False
        assert self.account.balance == Decimal("50")
        self.store.update_account_state.assert_not_called()
        assert self.recorded() == [(OperationKind.WITHDRAWAL, False)]

    def test_withdraw_exact_balance(self):
        """Test withdrawing the whole balance is allowed"""
        assert self.manager.withdraw(self.user, 1000, "Withdraw", 1) is True
        assert self.account.balance == Decimal("0")

    def test_withdraw_persist_failure(self):
        """Test withdrawal result follows the persistence outcome"""
        self.store.update_account_state.return_value = False

        assert self.manager.withdraw(self.user, 100, "Withdraw", 1) is False
        assert self.recorded() == [(OperationKind.WITHDRAWAL, False)]

    def test_withdraw_negative_amount(self):
        """Test negative withdrawal is rejected before anything happens"""
        with pytest.raises(InvalidArgumentError):
            self.manager.withdraw(self.user, -100, "Negative Withdraw", 1)

        self.store.find_account_by_id.assert_not_called()
        self.store.update_account_state.assert_not_called()
        self.history.record.assert_not_called()

    def test_withdraw_storage_fault_on_lookup(self):
        """Test a storage fault during lookup propagates without an audit entry"""
        self.store.find_account_by_id.side_effect = StorageFaultError("disk gone")

        with pytest.raises(StorageFaultError):
            self.manager.withdraw(self.user, 100, "Withdraw", 1)

        self.history.record.assert_not_called()
        self.history.record_unauthorized.assert_not_called()

    # Transfer

    def test_transfer_success(self):
        """Test transfer moves money and audits both legs"""
        result = self.manager.transfer(self.user, 100, "Transfer", 1, 2)

        assert result is True
        assert self.account.balance == Decimal("900")
        assert self.dest.balance == Decimal("600")
        assert [c.args[0] for c in self.store.update_account_state.call_args_list] == [self.account, self.dest]
        assert self.recorded() == [(OperationKind.TRANSFER_OUT, True), (OperationKind.TRANSFER_IN, True)]

    def test_transfer_authorizes_debit_leg_only(self):
        """Test authorization is asked once, for the outgoing leg"""
        self.manager.transfer(self.user, 100, "Transfer", 1, 2)

        self.auth.can_invoke_operation.assert_called_once()
        operation, actor = self.auth.can_invoke_operation.call_args.args
        assert operation.kind == OperationKind.TRANSFER_OUT
        assert operation.account is self.account
        assert actor is self.user

    def test_transfer_unauthorized(self):
        """Test denied transfer logs only the debit leg and never touches the destination"""
        self.auth.can_invoke_operation.return_value = False

        with pytest.raises(UnauthorizedOperationError):
            self.manager.transfer(self.user, 100, "Transfer", 1, 2)

        self.history.record_unauthorized.assert_called_once()
        assert self.history.record_unauthorized.call_args.args[0].kind == OperationKind.TRANSFER_OUT
        self.history.record.assert_not_called()
        self.store.update_account_state.assert_not_called()
        assert self.dest.balance == Decimal("500")

    def test_transfer_insufficient_funds(self):
        """Test failed debit leaves destination untouched and logs both legs as failed"""
        self.account.balance = Decimal("50")

        result = self.manager.transfer(self.user, 100, "Transfer", 1, 2)

        assert result is False
        assert self.dest.balance == Decimal("500")
        self.store.update_account_state.assert_not_called()
        assert self.recorded() == [(OperationKind.TRANSFER_OUT, False), (OperationKind.TRANSFER_IN, False)]

    def test_transfer_source_account_not_found(self):
        """Test missing source is an argument error with no audit"""
        self.store.find_account_by_id.side_effect = {2: self.dest}.get

        with pytest.raises(InvalidArgumentError):
            self.manager.transfer(self.user, 100, "Transfer", 1, 2)

        self.history.record.assert_not_called()
        self.history.record_unauthorized.assert_not_called()

    def test_transfer_destination_account_not_found(self):
        """Test missing destination is an argument error with no audit"""
        self.store.find_account_by_id.side_effect = {1: self.account}.get

        with pytest.raises(InvalidArgumentError):
            self.manager.transfer(self.user, 100, "Transfer", 1, 2)

        self.history.record.assert_not_called()
        self.history.record_unauthorized.assert_not_called()

    def test_transfer_same_account_rejected(self):
        """Test a transfer onto the same account is refused before lookup"""
        with pytest.raises(InvalidArgumentError, match="must differ"):
            self.manager.transfer(self.user, 100, "Transfer", 1, 1)

        self.store.find_account_by_id.assert_not_called()

    def test_transfer_source_persist_failure_skips_destination(self):
        """Test destination is not persisted when the source update fails"""
        self.store.update_account_state.return_value = False

        result = self.manager.transfer(self.user, 100, "Transfer", 1, 2)

        assert result is False
        self.store.update_account_state.assert_called_once_with(self.account)
        assert self.recorded() == [(OperationKind.TRANSFER_OUT, False), (OperationKind.TRANSFER_IN, False)]

    def test_transfer_ignores_destination_persist_failure(self):
        """
        Known inconsistency: the result reflects only the source update.
        A failed destination update still reports success for both legs.
        """
        self.store.update_account_state.side_effect = lambda account: account.id == 1

        result = self.manager.transfer(self.user, 100, "Transfer", 1, 2)

        assert result is True
        assert self.store.update_account_state.call_count == 2
        assert self.recorded() == [(OperationKind.TRANSFER_OUT, True), (OperationKind.TRANSFER_IN, True)]

    def test_transfer_storage_fault_on_lookup(self):
        """Test a storage fault during lookup propagates without an audit entry"""
        self.store.find_account_by_id.side_effect = StorageFaultError("disk gone")

        with pytest.raises(StorageFaultError):
            self.manager.transfer(self.user, 100, "Transfer", 1, 2)

        self.history.record.assert_not_called()

    # Login / logout

    def test_login_delegates(self):
        """Test login returns the authenticated user"""
        self.auth.login.return_value = self.user

        assert self.manager.login("TestUser", "pass") is self.user
        self.auth.login.assert_called_once_with("TestUser", "pass")

    def test_login_failure_propagates(self):
        """Test login failure surfaces unchanged"""
        self.auth.login.side_effect = UnknownUserOrBadPasswordError("")

        with pytest.raises(UnknownUserOrBadPasswordError):
            self.manager.login("TestUser", "pass")

    def test_logout_delegates(self):
        """Test logout returns the authentication result"""
        self.auth.logout.return_value = True

        assert self.manager.logout(self.user) is True
        self.auth.logout.assert_called_once_with(self.user)


class TestAccountManagerIntegration:
    """End-to-end flows against the in-memory store"""

    def test_deposit_scenario(self, bank, owner, balance):
        """Test deposit of 100 into 1000 persists 1100 with one audit entry"""
        assert bank.deposit(owner, 100, "Deposit", 1) is True

        assert balance(1) == Decimal("1100")
        entries = bank.store.audit_entries()
        assert len(entries) == 1
        assert entries[0].kind == OperationKind.DEPOSIT
        assert entries[0].success is True
        assert entries[0].amount == "100"

    def test_deposits_are_not_deduplicated(self, bank, owner, balance):
        """Test identical deposits both apply and both audit"""
        bank.deposit(owner, 100, "Deposit", 1)
        bank.deposit(owner, 100, "Deposit", 1)

        assert balance(1) == Decimal("1200")
        entries = bank.store.audit_entries()
        assert len(entries) == 2
        assert entries[0].id != entries[1].id

    def test_anyone_can_deposit_into_any_account(self, bank, other_user, balance):
        """Test deposits carry no ownership check"""
        assert bank.deposit(other_user, 50, "Gift", 1) is True
        assert balance(1) == Decimal("1050")

    def test_non_owner_withdraw_denied(self, bank, other_user, balance):
        """Test non-owner withdrawal is denied, audited as a denial, and balance unchanged"""
        with pytest.raises(UnauthorizedOperationError):
            bank.withdraw(other_user, 100, "Withdraw", 1)

        assert balance(1) == Decimal("1000")
        entries = bank.store.audit_entries()
        assert len(entries) == 1
        assert entries[0].kind == OperationKind.WITHDRAWAL
        assert entries[0].denied is True
        assert entries[0].success is False
        assert entries[0].actor_id == other_user.id

    def test_admin_withdraws_from_any_account(self, bank, admin, balance):
        """Test admins bypass the ownership check"""
        assert bank.withdraw(admin, 100, "Withdraw", 1) is True
        assert balance(1) == Decimal("900")

    def test_owner_withdraw_insufficient_funds(self, bank, owner, balance):
        """Test overdraft attempt fails, is audited, and changes nothing"""
        assert bank.withdraw(owner, Decimal("1000.01"), "Withdraw", 1) is False

        assert balance(1) == Decimal("1000")
        entries = bank.store.audit_entries()
        assert [(e.kind, e.success, e.denied) for e in entries] == [(OperationKind.WITHDRAWAL, False, False)]

    def test_transfer_scenario(self, bank, owner, balance):
        """Test transfer of 100 from 1000 to 500 gives 900 / 600 with two successful legs"""
        assert bank.transfer(owner, 100, "Transfer", 1, 2) is True

        assert balance(1) == Decimal("900")
        assert balance(2) == Decimal("600")
        entries = bank.store.audit_entries()
        assert [(e.kind, e.success) for e in entries] == [
            (OperationKind.TRANSFER_OUT, True), (OperationKind.TRANSFER_IN, True)
        ]
        assert [e.account_id for e in entries] == [1, 2]

    def test_transfer_exceeding_balance(self, bank, owner, balance):
        """Test oversized transfer persists neither account and logs both legs as failed"""
        assert bank.transfer(owner, 5000, "Transfer", 1, 2) is False

        assert balance(1) == Decimal("1000")
        assert balance(2) == Decimal("500")
        assert [e.success for e in bank.store.audit_entries()] == [False, False]

    def test_transfer_denied_logs_single_leg(self, bank, other_user, balance):
        """Test a denied transfer logs only the debit leg"""
        with pytest.raises(UnauthorizedOperationError):
            bank.transfer(other_user, 100, "Transfer", 1, 2)

        entries = bank.store.audit_entries()
        assert len(entries) == 1
        assert entries[0].kind == OperationKind.TRANSFER_OUT
        assert entries[0].denied is True
        assert balance(2) == Decimal("500")

    def test_argument_errors_leave_no_audit(self, bank, owner):
        """Test precondition failures never reach the audit trail"""
        with pytest.raises(InvalidArgumentError):
            bank.withdraw(owner, 100, "Withdraw", 42)
        with pytest.raises(InvalidArgumentError):
            bank.transfer(owner, 100, "Transfer", 1, 42)
        with pytest.raises(InvalidArgumentError):
            bank.deposit(owner, -1, "Deposit", 1)

        assert bank.store.audit_entries() == []

    def test_audit_chain_valid_after_mixed_operations(self, bank, owner, other_user):
        """Test the audit chain verifies after a mix of outcomes"""
        bank.login("TestUser", "pass")
        bank.deposit(owner, 10, "Deposit", 1)
        bank.withdraw(owner, 5, "Withdraw", 1)
        with pytest.raises(UnauthorizedOperationError):
            bank.withdraw(other_user, 5, "Withdraw", 1)
        bank.transfer(owner, 1, "Transfer", 1, 2)
        bank.logout(owner)

        report = bank.store.verify_audit_integrity()
        assert report['valid'] is True
        assert report['total_entries'] == 7

    def test_denial_logged_as_warning(self, bank, other_user, caplog):
        """Test denials are visible in the operational log"""
        caplog.set_level(logging.INFO, logger="teller")

        with pytest.raises(UnauthorizedOperationError):
            bank.withdraw(other_user, 100, "Withdraw", 1)

        denied = [r for r in caplog.records if r.name == "teller.accounts" and r.levelno == logging.WARNING]
        assert len(denied) == 1
        assert denied[0].action == "withdraw"
        assert denied[0].resource == "account:1"


class TestConcurrency:
    """Per-account locking under concurrent callers"""

    def test_concurrent_withdrawals_never_overdraw(self, bank, owner, balance):
        """Test ten concurrent 100 withdrawals from 500 succeed exactly five times"""
        results = []
        results_lock = threading.Lock()

        def worker():
            ok = bank.withdraw(owner, 100, "Withdraw", 2)
            with results_lock:
                results.append(ok)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert results.count(True) == 5
        assert results.count(False) == 5
        assert balance(2) == Decimal("0")

    def test_opposite_transfers_do_not_deadlock(self, bank, owner, balance):
        """Test transfers in both directions complete and conserve the total"""
        def forward():
            for _ in range(20):
                bank.transfer(owner, 1, "Forward", 1, 2)

        def backward():
            for _ in range(20):
                bank.transfer(owner, 1, "Backward", 2, 1)

        threads = [threading.Thread(target=forward), threading.Thread(target=backward)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert not any(thread.is_alive() for thread in threads)
        assert balance(1) + balance(2) == Decimal("1500")
        assert balance(1) == Decimal("1000")
        assert bank.store.verify_audit_integrity()['valid'] is True
        assert bank.locks._locks == {}

    def test_deposits_to_missing_accounts_leave_no_locks(self, bank, owner):
        """Test locks taken for unknown account ids are released and dropped"""
        for account_id in range(1000, 1500):
            assert bank.deposit(owner, 1, "Deposit", account_id) is False

        assert bank.locks._locks == {}
        assert len(bank.store.audit_entries()) == 500
