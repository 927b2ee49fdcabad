#!/usr/bin/env python3
"""
Example: Teller core walkthrough

Provisions two users and two accounts on an in-memory store, runs the
authorized operations, accrues interest and prints the audit trail.
"""

import os
import sys
from decimal import Decimal

# Add the teller core module to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from teller_core.bank import build_bank
from teller_core.config import TellerConfig
from teller_core.exceptions import UnauthorizedOperationError, UnknownUserOrBadPasswordError
from teller_core.models import Account, Role, User
from teller_core.storage import InMemoryStorage


def main():
    print("🏦 Teller Core - Basic Usage Example")
    print("=" * 60)

    # 1. Assembly
    print("\n1. 🔧 Assembly")
    config = TellerConfig(interest_rate="0.02", log_level="WARNING")
    bank = build_bank(config, InMemoryStorage(), configure_logging=True)
    print(f"   Interest rate: {config.interest_rate_decimal}")

    # 2. Provisioning
    print("\n2. 👥 Provisioning")
    user_role = Role(id=2, name="User")
    alice = bank.store.add_user(User(id=1, name="alice", role=user_role))
    bob = bank.store.add_user(User(id=2, name="bob", role=user_role))
    bank.store.add_user(User(id=99, name=config.interest_authority_name, role=user_role))
    for user, secret in ((alice, "alice-pw"), (bob, "bob-pw")):
        bank.store.set_credential(bank.auth.make_credential(user, secret))
    bank.store.add_account(Account(id=1, balance=Decimal("1000.00"), owner=alice))
    bank.store.add_account(Account(id=2, balance=Decimal("250.00"), owner=bob))
    print("   Created alice (account 1) and bob (account 2)")

    # 3. Login
    print("\n3. 🔑 Login")
    try:
        bank.login("alice", "wrong")
    except UnknownUserOrBadPasswordError as e:
        print(f"   Rejected: {e}")
    alice = bank.login("alice", "alice-pw")
    print(f"   Logged in as {alice.name}")

    # 4. Operations
    print("\n4. 💰 Operations")
    print(f"   Deposit 50 into bob's account: {bank.deposit(alice, Decimal('50'), 'Gift', 2)}")
    print(f"   Withdraw 100 from own account: {bank.withdraw(alice, Decimal('100'), 'ATM', 1)}")
    try:
        bank.withdraw(alice, Decimal("10"), "ATM", 2)
    except UnauthorizedOperationError as e:
        print(f"   Withdraw 10 from bob's account refused: {e}")
    print(f"   Transfer 200 to bob: {bank.transfer(alice, Decimal('200'), 'Rent', 1, 2)}")

    # 5. Interest
    print("\n5. 📈 Interest")
    results = bank.interest_operator.run_batch()
    print(f"   Accounts processed: {results['accounts_processed']}, credited: {results['credited']}")
    for account in bank.store.list_accounts():
        print(f"   Account {account.id}: {account.balance}")

    bank.logout(alice)

    # 6. Audit trail
    print("\n6. 📋 Audit Trail")
    for entry in bank.store.audit_entries():
        flag = "DENIED" if entry.denied else ("ok" if entry.success else "failed")
        print(f"   {entry.kind.value:<13} {flag:<7} actor={entry.actor_name} "
              f"account={entry.account_id} amount={entry.amount}")

    integrity = bank.store.verify_audit_integrity()
    print(f"\n   Chain valid: {integrity['valid']} ({integrity['total_entries']} entries)")


if __name__ == "__main__":
    main()
