"""
errors.py - error kinds raised by the ledger engine and the tracker

None of these are fatal: the UI shows the message and the store is left as it
was before the failed operation.
"""


class PettyCashError(Exception):
    """Base class for petty cash failures that are reported to the user."""


class ValidationError(PettyCashError):
    """Transaction input is invalid (missing description, bad amounts, wrong month...)."""


class EmptyExportError(PettyCashError):
    """Export requested for a month with no transactions."""


class NotFoundError(PettyCashError):
    """A transaction or snapshot id no longer exists."""


class LoadError(PettyCashError):
    """Saved data could not be turned back into a store."""
