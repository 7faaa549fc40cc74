"""
Errors Module

Typed errors raised by the ledger. Every failure is reported synchronously
to the caller; nothing is retried or silently corrected.

    LedgerError
    ├── ValidationError  (also a ValueError) - bad input, split-sum mismatch,
    │                                          empty giver/taker set, bad settlement
    ├── NotFoundError    (also a LookupError) - unknown expense/settlement/person id
    └── ConflictError                         - rollover already applied
"""


class LedgerError(Exception):
    """Base class for all ledger errors."""


class ValidationError(LedgerError, ValueError):
    """Input rejected before anything was written."""


class NotFoundError(LedgerError, LookupError):
    """A referenced record does not exist."""


class ConflictError(LedgerError):
    """The operation was already applied and must not be applied again."""
