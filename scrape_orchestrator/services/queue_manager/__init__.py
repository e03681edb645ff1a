"""
Queue Manager - filas de trabalho de scraping.

- Filas pending (sorted set) e failed (lista) por namespace
- Tiers de prioridade usados na seleção dos próximos itens
- Lista compartilhada de reenqueue
"""

from .orchestrator import QueueOrchestrator, scan_list, scan_pending
from .priority import (
    PriorityTier,
    compare_entries,
    is_selectable,
    priority_label,
    selection_rank,
    tier_of,
)
from .reenqueue import ReenqueueManager

__all__ = [
    # Orchestrator
    "QueueOrchestrator",
    "scan_pending",
    "scan_list",
    # Priority
    "PriorityTier",
    "tier_of",
    "is_selectable",
    "priority_label",
    "selection_rank",
    "compare_entries",
    # Reenqueue
    "ReenqueueManager",
]
