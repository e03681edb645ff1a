"""
Priority Tiers - classes de prioridade das filas pending.

O score do sorted set não é ordenado numericamente para a seleção:
getNext considera apenas os tiers SEED (primeiro) e NORMAL (depois).
REQUEUED e MANUAL_PRIORITY ficam na fila mas não são oferecidos por getNext.
"""
from enum import IntEnum
from typing import Optional, Tuple

from scrape_orchestrator.core.constants import QUEUE_FAILED
from scrape_orchestrator.schemas.work_item import ScannedEntry


class PriorityTier(IntEnum):
    """Scores usados no sorted set pending."""
    NORMAL = 0             # Fluxo normal (score ausente conta como 0)
    SEED = 1               # Alta prioridade (seed manual / watchlist)
    REQUEUED = 3           # Reinserção failed -> pending
    MANUAL_PRIORITY = 100  # Restauração manual via reenqueue


# Ordem de seleção de getNext (menor = antes)
_SELECTION_ORDER = {
    PriorityTier.SEED: 0,
    PriorityTier.NORMAL: 1,
}

_LABELS = {
    PriorityTier.SEED: "high",
    PriorityTier.NORMAL: "normal",
    PriorityTier.REQUEUED: "requeued",
    PriorityTier.MANUAL_PRIORITY: "manual",
}


def tier_of(score: Optional[float]) -> Optional[PriorityTier]:
    """Retorna o tier de um score, ou None para scores fora dos tiers."""
    if score is None:
        return PriorityTier.NORMAL
    try:
        return PriorityTier(int(score)) if float(score).is_integer() else None
    except ValueError:
        return None


def is_selectable(score: Optional[float]) -> bool:
    return tier_of(score) in _SELECTION_ORDER


def priority_label(tier: Optional[PriorityTier], source: str = "pending") -> str:
    """Rótulo legível: high, normal, requeued, manual ou failed."""
    if source == QUEUE_FAILED:
        return "failed"
    if tier is None:
        return "custom"
    return _LABELS[tier]


def selection_rank(entry: ScannedEntry) -> Optional[int]:
    """Posição do tier na ordem de seleção, ou None se não selecionável."""
    return _SELECTION_ORDER.get(tier_of(entry.score))


def sort_key(entry: ScannedEntry, position: int) -> Tuple[int, float, int]:
    """Tier antes de score, score antes da posição armazenada."""
    rank = selection_rank(entry)
    return (
        rank if rank is not None else len(_SELECTION_ORDER),
        entry.score if entry.score is not None else 0.0,
        position,
    )


def compare_entries(a: Tuple[ScannedEntry, int], b: Tuple[ScannedEntry, int]) -> int:
    """
    Comparador explícito para (entrada, posição armazenada).

    Returns:
        -1 se a vem antes de b, 1 se depois, 0 se equivalentes
    """
    key_a = sort_key(*a)
    key_b = sort_key(*b)
    return (key_a > key_b) - (key_a < key_b)
