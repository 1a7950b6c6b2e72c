"""
Exception hierarchy for the loan-tape toolkit.

Catalog defects are fatal and surface at import time. Workbook writer faults
are kept separate from generation so callers can retry assembly with the
records they already have.
"""


class LoanTapeError(Exception):
    """Base class for every error raised by loantape."""


class CatalogConfigError(LoanTapeError, ValueError):
    """A portfolio profile in the catalog violates its invariants."""


class AssemblyError(LoanTapeError):
    """The spreadsheet writer failed while packaging generated records."""
