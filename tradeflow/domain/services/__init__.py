"""Journal engine services: historical reconstruction, merging and lazy enrichment."""

from .transaction_log_walker import TransactionLogWalker, validate_stop, DEFAULT_SCAN_WINDOW
from .reconciliation_merger import ReconciliationMerger, apply_annotation
from .enrichment_scheduler import LazyEnrichmentScheduler

__all__ = [
    "TransactionLogWalker",
    "validate_stop",
    "DEFAULT_SCAN_WINDOW",
    "ReconciliationMerger",
    "apply_annotation",
    "LazyEnrichmentScheduler",
]
