"""
Shared fixtures: an in-memory bank with an owner, a second customer, an
admin and the interest authority, plus two accounts owned by the owner.
"""

from decimal import Decimal

import pytest

from teller_core.bank import build_bank
from teller_core.config import TellerConfig
from teller_core.models import Account, Role, User
from teller_core.storage import InMemoryStorage


PASSWORD = "pass"


@pytest.fixture
def config():
    """Cheap scrypt cost and the 0.2 accrual rate used throughout the tests"""
    return TellerConfig(password_scrypt_n=1024, interest_rate="0.2")


@pytest.fixture
def admin_role():
    return Role(id=1, name="Admin")


@pytest.fixture
def user_role():
    return Role(id=2, name="User")


@pytest.fixture
def owner(user_role):
    return User(id=1, name="TestUser", role=user_role)


@pytest.fixture
def other_user(user_role):
    return User(id=2, name="OtherUser", role=user_role)


@pytest.fixture
def admin(admin_role):
    return User(id=3, name="Teller", role=admin_role)


@pytest.fixture
def interest_authority(user_role):
    return User(id=99, name="InterestOperator", role=user_role)


@pytest.fixture
def bank(config, owner, other_user, admin, interest_authority):
    """AccountManager over in-memory storage, accounts 1 (1000) and 2 (500) owned by owner"""
    manager = build_bank(config, InMemoryStorage())
    store = manager.store
    for user in (owner, other_user, admin, interest_authority):
        store.add_user(user)
        store.set_credential(manager.auth.make_credential(user, PASSWORD))
    store.add_account(Account(id=1, balance=Decimal("1000"), owner=owner))
    store.add_account(Account(id=2, balance=Decimal("500"), owner=owner))
    return manager


@pytest.fixture
def balance(bank):
    """Persisted balance of an account"""
    return lambda account_id: bank.store.find_account_by_id(account_id).balance
