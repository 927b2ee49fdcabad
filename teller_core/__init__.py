"""
Teller Core

Account operations for a bank back office: deposits, withdrawals and
internal transfers gated by role-based authorization, a hash-chained audit
trail of every attempt, and periodic interest accrual.
"""

__version__ = "1.0.0"
