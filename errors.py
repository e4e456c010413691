"""
Exceptions raised by the ClubLedger core
"""
from __future__ import annotations


class ClubError(Exception):
    """Base class for ledger errors"""


class NotFoundError(ClubError):
    """A record id does not exist in the store"""

    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} not found: {record_id}")
        self.kind = kind
        self.record_id = record_id


class ValidationError(ClubError, ValueError):
    """Rejected input; raised before any state is touched"""


class LedgerFileError(ClubError):
    """A saved ledger could not be read back"""
