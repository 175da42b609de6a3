from casework.platform.ledger.models import JournalEntry, JournalLine, LedgerAccount
from casework.platform.ledger.schemas import (
    JournalEntryPostRequest,
    JournalEntryRead,
    JournalEntryReverseRequest,
    JournalLineRead,
    LedgerAccountCreate,
    LedgerAccountRead,
)
from casework.platform.ledger.service import LedgerService, ledger_service

__all__ = [
    "LedgerAccount",
    "JournalEntry",
    "JournalLine",
    "LedgerAccountCreate",
    "LedgerAccountRead",
    "JournalEntryPostRequest",
    "JournalEntryRead",
    "JournalEntryReverseRequest",
    "JournalLineRead",
    "LedgerService",
    "ledger_service",
]
