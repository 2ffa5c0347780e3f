"""Domain models."""

from .trade import Trade, TradeDirection, TradeStatus, BROKER_FIELDS, ANNOTATION_FIELDS
from .annotation import AnnotationRecord
from .transaction import (
    Transaction,
    OrderFillTransaction,
    EntryOrderTransaction,
    StopLossOrderTransaction,
    OtherTransaction,
    EntryOrderType,
    parse_transaction,
)
from .enrichment import EnrichmentResult, InitialStop, StopLossResolution, ExitReason
from .strategy import Strategy
from .sync_status import SyncStatus
from .backup import BackupSnapshot, BACKUP_VERSION
from .candle import Candle

__all__ = [
    "Trade",
    "TradeDirection",
    "TradeStatus",
    "BROKER_FIELDS",
    "ANNOTATION_FIELDS",
    "AnnotationRecord",
    "Transaction",
    "OrderFillTransaction",
    "EntryOrderTransaction",
    "StopLossOrderTransaction",
    "OtherTransaction",
    "EntryOrderType",
    "parse_transaction",
    "EnrichmentResult",
    "InitialStop",
    "StopLossResolution",
    "ExitReason",
    "Strategy",
    "SyncStatus",
    "BackupSnapshot",
    "BACKUP_VERSION",
    "Candle",
]
