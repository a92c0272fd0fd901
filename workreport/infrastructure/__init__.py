"""Infrastructure layer exports."""

from .http_ledger import HttpLedgerClient
from .ledger import CommitResult, Ledger, LedgerError, classify_error, configure_ledger, get_ledger, user_message
from .master_data import (
    HttpMasterDataProvider,
    MasterDataError,
    MasterDataProvider,
    StaticMasterDataProvider,
    configure_master_data_provider,
    get_master_data_provider,
)
from .reviews import InMemoryReviewRepository, ReviewRepository
from .workbook import WorkbookLedger

__all__ = [
    "CommitResult",
    "HttpLedgerClient",
    "HttpMasterDataProvider",
    "InMemoryReviewRepository",
    "Ledger",
    "LedgerError",
    "MasterDataError",
    "MasterDataProvider",
    "ReviewRepository",
    "StaticMasterDataProvider",
    "WorkbookLedger",
    "classify_error",
    "configure_ledger",
    "configure_master_data_provider",
    "get_ledger",
    "get_master_data_provider",
    "user_message",
]
