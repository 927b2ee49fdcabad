"""
Bank assembly.

Wires storage, store, history, authentication, account manager and interest
operator from configuration.
"""

from typing import Optional

from .accounts import AccountManager
from .auth import AuthenticationManager
from .config import TellerConfig, get_config
from .history import BankHistory
from .interest import InterestOperator
from .logging_config import get_logger, setup_logging
from .storage import SQLiteStorage, StorageInterface
from .store import RecordAccountStore


def build_bank(config: Optional[TellerConfig] = None,
               storage: Optional[StorageInterface] = None,
               configure_logging: bool = False) -> AccountManager:
    """
    Build a fully wired AccountManager.

    Args:
        config: Configuration; the global one when omitted
        storage: Storage backend; SQLite at config.database_path when omitted
        configure_logging: Install the "teller" log handler from config

    Returns:
        AccountManager with its interest_operator attached
    """
    config = config or get_config()
    if configure_logging:
        setup_logging(config.log_level, "teller", config.log_format)

    storage = storage or SQLiteStorage(config.database_path)
    store = RecordAccountStore(storage)
    history = BankHistory(store)
    auth = AuthenticationManager(store, history, config)
    account_manager = AccountManager(store, auth, history)
    account_manager.interest_operator = InterestOperator(
        store, account_manager, history, config=config
    )

    get_logger("teller").debug(f"Bank assembled on {type(storage).__name__}")
    return account_manager
