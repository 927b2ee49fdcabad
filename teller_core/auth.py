"""
Authentication & Authorization Module

Password login/logout with audit logging, and the role/ownership check that
gates money leaving an account. The manager keeps no session state: login
returns the authenticated User and callers pass it into each operation.
"""

import hashlib
import hmac
import secrets
from typing import Optional

from .config import TellerConfig, get_config
from .exceptions import UnknownUserOrBadPasswordError
from .history import BankHistory
from .logging_config import get_logger, log_action
from .models import Credential, User
from .operations import Operation
from .store import AccountStore


def generate_salt() -> str:
    """Generate random salt for password hashing"""
    return secrets.token_hex(16)


def hash_password(secret: str, salt: str, n: int = 16384, r: int = 8, p: int = 1) -> str:
    """Hash password with salt using scrypt; deterministic for a given salt and cost"""
    return hashlib.scrypt(
        secret.encode(),
        salt=salt.encode(),
        n=n, r=r, p=p
    ).hex()


class AuthenticationManager:
    """Login, logout and operation authorization"""

    def __init__(self, store: AccountStore, history: BankHistory,
                 config: Optional[TellerConfig] = None):
        self.store = store
        self.history = history
        self.config = config or get_config()
        self.logger = get_logger("teller.auth")

    def hash_password(self, secret: str, salt: str) -> str:
        """Hash with the configured scrypt cost; used for both enrolment and login"""
        return hash_password(
            secret, salt,
            n=self.config.password_scrypt_n,
            r=self.config.password_scrypt_r,
            p=self.config.password_scrypt_p,
        )

    def make_credential(self, user: User, secret: str) -> Credential:
        """Build a stored credential for user"""
        salt = generate_salt()
        return Credential(user_id=user.id, password_hash=self.hash_password(secret, salt), salt=salt)

    def login(self, username: str, secret: str) -> User:
        """
        Authenticate a user by name and password

        Raises:
            UnknownUserOrBadPasswordError: unknown user or wrong password
        """
        user = self.store.find_user_by_name(username)
        if user is None:
            self.history.record_login_failure(None, f"Unknown user: {username}")
            log_action(self.logger, "warning", "Login failed", action="login",
                       extra={"reason": "user_not_found"})
            raise UnknownUserOrBadPasswordError("Unknown user or bad password")

        credential = self.store.find_credential_for_user(user)
        if credential is None or not self._verify(credential, secret):
            self.history.record_login_failure(user, f"Bad password for user: {username}")
            log_action(self.logger, "warning", "Login failed", user_id=user.id, action="login",
                       extra={"reason": "invalid_password"})
            raise UnknownUserOrBadPasswordError("Unknown user or bad password")

        self.history.record_login_success(user)
        log_action(self.logger, "info", "Login succeeded", user_id=user.id, action="login")
        return user

    def logout(self, user: User) -> bool:
        self.history.record_logout(user)
        log_action(self.logger, "info", "Logout", user_id=user.id, action="logout")
        return True

    def can_invoke_operation(self, operation: Operation, actor: Optional[User]) -> bool:
        """
        Decide whether actor may execute operation.

        Admins may do anything. Other actors may put money into any account
        but may only take money out of accounts they own.
        """
        if actor is not None and actor.has_role(self.config.admin_role_name):
            return True

        if not operation.is_outbound:
            return True
        if actor is None or operation.account is None:
            return False
        return operation.account.owner_id == actor.id

    def _verify(self, credential: Credential, secret: str) -> bool:
        expected = self.hash_password(secret, credential.salt)
        return hmac.compare_digest(expected, credential.password_hash)
