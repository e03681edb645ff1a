"""
Enriquecimento de entradas das filas com dados do catálogo (nome e status).
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from scrape_orchestrator.core.errors import UPSTREAM_EXCEPTIONS
from scrape_orchestrator.schemas.work_item import ScannedEntry
from scrape_orchestrator.services.catalog import BrandCatalog, BrandRecord

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"


async def lookup_page_ids(
    catalog: BrandCatalog,
    page_ids: Iterable[Optional[str]],
) -> Dict[str, BrandRecord]:
    """
    Busca marcas por page_id para exibição.

    Falhas do catálogo não interrompem a listagem: são registradas e as
    entradas ficam com nome/status 'Unknown'.
    """
    wanted = [p for p in page_ids if p]
    if not wanted:
        return {}
    try:
        return await catalog.find_by_page_ids(wanted)
    except UPSTREAM_EXCEPTIONS as e:
        logger.error(f"[Enrichment] ❌ Erro ao buscar marcas no catálogo: {e}")
        return {}


def entry_view(
    entry: ScannedEntry,
    position: int,
    brands: Dict[str, BrandRecord],
) -> Dict[str, Any]:
    brand = brands.get(entry.item.page_id) if entry.item.page_id else None
    return {
        "queue_id": entry.item.id,
        "page_id": entry.item.page_id,
        "brand_name": brand.name if brand else UNKNOWN,
        "status": (brand.status or UNKNOWN) if brand else UNKNOWN,
        "score": entry.score,
        "queue_position": position,
    }


def matches_search(view: Dict[str, Any], term: str) -> bool:
    """Busca por nome (case-insensitive), queue_id ou page_id."""
    term = term.lower()
    return (
        term in (view.get("brand_name") or "").lower()
        or term in str(view.get("queue_id") or "")
        or term in str(view.get("page_id") or "")
    )


async def enrich(
    catalog: BrandCatalog,
    positioned: List[Tuple[ScannedEntry, int]],
) -> List[Dict[str, Any]]:
    """Monta a visão de cada (entrada, posição 1-based) com uma única consulta ao catálogo."""
    brands = await lookup_page_ids(catalog, (entry.item.page_id for entry, _ in positioned))
    return [entry_view(entry, position, brands) for entry, position in positioned]
