"""
Teller exception hierarchy.

Callers can tell apart a request they must fix (InvalidArgumentError), an
authorization outcome they must accept (UnauthorizedOperationError), a failed
login, and a storage fault the operations layer may decide to retry.
"""


class TellerError(Exception):
    """Base class for all teller errors"""


class InvalidArgumentError(TellerError, ValueError):
    """
    Raised before any side effect when a request is malformed: negative
    amount, missing actor, or an account that must exist but does not.
    Never written to the audit trail.
    """


class UnauthorizedOperationError(TellerError):
    """Raised when the actor may not move money out of the target account."""


class UnknownUserOrBadPasswordError(TellerError):
    """
    Raised for both an unknown username and a password mismatch. The audit
    trail records which case occurred; callers cannot tell.
    """


class StorageFaultError(TellerError):
    """Raised when the persistence layer fails during a lookup or a write."""


class InterestAuthorityMissingError(StorageFaultError):
    """Raised when the system user that credits interest cannot be resolved."""


class UnsupportedOperationError(TellerError, NotImplementedError):
    """Raised by retired audit entry points."""
