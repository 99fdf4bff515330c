"""Giveaway draw lifecycle, winner selection, and entry ledger."""

from .answers import evaluate_correctness, normalize_answer
from .ledger import SyncSummary, list_eligible_entries, sync_entries
from .lifecycle import (
    TRANSITIONS,
    DrawEvent,
    advance,
    ensure_editable,
    inputs_locked,
    is_editable,
    next_status,
)
from .selector import (
    DrawAudit,
    Pick,
    SelectionResult,
    compute_hash_after,
    compute_hash_before,
    select_winners,
)

__all__ = [
    "DrawAudit",
    "DrawEvent",
    "Pick",
    "SelectionResult",
    "SyncSummary",
    "TRANSITIONS",
    "advance",
    "compute_hash_after",
    "compute_hash_before",
    "ensure_editable",
    "evaluate_correctness",
    "inputs_locked",
    "is_editable",
    "list_eligible_entries",
    "next_status",
    "normalize_answer",
    "select_winners",
    "sync_entries",
]
