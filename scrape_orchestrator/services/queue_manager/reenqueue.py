"""
Reenqueue Manager - lista compartilhada de itens retirados do fluxo normal.

Formato do elemento (store global):
    {"id":"7245","page_id":"1234567890","coverage":"45/50","namespace":"watchlist"}

Itens são identificados pelo par (id, namespace). Ao voltar para pending
recebem score MANUAL_PRIORITY (100).
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from redis.asyncio import Redis

from scrape_orchestrator.core.constants import normalize_namespace
from scrape_orchestrator.core.errors import UPSTREAM_EXCEPTIONS, NotFoundError, upstream_guard
from scrape_orchestrator.core.pagination import PageRequest
from scrape_orchestrator.core.store import StoreHandles
from scrape_orchestrator.schemas.work_item import ScannedEntry, WorkItem, decode_entry
from scrape_orchestrator.services.catalog import CatalogDirectory
from scrape_orchestrator.services.queue_manager.enrichment import UNKNOWN, lookup_page_ids
from scrape_orchestrator.services.queue_manager.priority import PriorityTier

logger = logging.getLogger(__name__)


class ReenqueueManager:
    """Listagem, requeue e descarte de itens da lista de reenqueue."""

    def __init__(self, store: StoreHandles, catalogs: CatalogDirectory):
        self._store = store
        self._catalogs = catalogs

    def _reenqueue(self, env: str) -> Tuple[Redis, str]:
        return self._store.global_client(env), self._store.keys(env).reenqueue

    def _pending(self, env: str, namespace: str) -> Tuple[Redis, str]:
        return (
            self._store.queue_client(env, namespace),
            self._store.keys(env).pending[namespace],
        )

    async def _scan(self, env: str) -> Tuple[List[ScannedEntry], int]:
        client, key = self._reenqueue(env)
        raw_elements = await client.lrange(key, 0, -1)
        entries = [entry for entry in map(decode_entry, raw_elements) if entry is not None]
        return entries, len(raw_elements) - len(entries)

    @upstream_guard
    async def list(
        self,
        env: str,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        namespace: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Lista os itens com page_id resolvido e nome da marca.

        Falhas do catálogo apenas deixam page_id/nome sem resolver.
        """
        window = PageRequest(page, limit)
        entries, _ = await self._scan(env)
        if namespace:
            wanted = normalize_namespace(namespace)
            entries = [e for e in entries if e.item.namespace == wanted]

        catalog = self._catalogs.get(env)
        missing_ids = [e.item.id for e in entries if not e.item.page_id]
        resolved: Dict[str, str] = {}
        if missing_ids:
            try:
                found = await catalog.find_by_ids(missing_ids)
                resolved = {brand_id: brand.page_id for brand_id, brand in found.items() if brand.page_id}
            except UPSTREAM_EXCEPTIONS as e:
                logger.error(f"[ReenqueueManager] ❌ Erro ao resolver page_ids: {e}")

        items = []
        for entry in entries:
            item = entry.item
            items.append({
                "id": item.id,
                "page_id": item.page_id or resolved.get(item.id),
                "coverage": item.coverage,
                "namespace": item.namespace or "unknown",
                "brand_name": UNKNOWN,
            })

        brands = await lookup_page_ids(catalog, (i["page_id"] for i in items))
        for view in items:
            brand = brands.get(view["page_id"]) if view["page_id"] else None
            if brand:
                view["brand_name"] = brand.name

        if search and search.strip():
            term = search.strip().lower()
            items = [
                i for i in items
                if term in i["id"]
                or term in (i["page_id"] or "")
                or term in i["brand_name"].lower()
            ]

        return {"items": window.slice(items), "pagination": window.meta(len(items))}

    async def _resolve_page_id(self, env: str, item: WorkItem) -> WorkItem:
        if item.page_id:
            return item
        found = await self._catalogs.get(env).find_by_ids([item.id])
        brand = found.get(item.id)
        if brand is None or not brand.page_id:
            logger.warning(f"[ReenqueueManager] ⚠️ page_id não encontrado para id={item.id}")
            return item
        return item.with_page_id(brand.page_id)

    @upstream_guard
    async def requeue_one(self, env: str, item_id: str, namespace: str) -> Dict[str, Any]:
        """
        Devolve um item para pending do seu namespace com score 100.

        Raises:
            NotFoundError: (id, namespace) ausente da lista
            UpstreamError: falha no store ou no catálogo (o item permanece na lista)
        """
        namespace = normalize_namespace(namespace)
        entries, _ = await self._scan(env)
        entry = next(
            (e for e in entries if e.item.id == str(item_id) and e.item.namespace == namespace),
            None,
        )
        if entry is None:
            raise NotFoundError(f"Item {item_id} ({namespace}) não encontrado no reenqueue")

        item = await self._resolve_page_id(env, entry.item)
        pending_client, pending_key = self._pending(env, namespace)
        pending_member = WorkItem(id=item.id, page_id=item.page_id).to_member()

        # ZADD primeiro: repetir após falha não duplica o membro
        await pending_client.zadd(pending_key, {pending_member: float(PriorityTier.MANUAL_PRIORITY)})
        client, key = self._reenqueue(env)
        await client.lrem(key, 1, entry.raw)

        logger.info(f"[ReenqueueManager] 🔁 id={item.id} devolvido para pending ({namespace}, score=100)")
        return {
            "id": item.id,
            "page_id": item.page_id,
            "queue_type": namespace,
            "score": int(PriorityTier.MANUAL_PRIORITY),
        }

    @upstream_guard
    async def requeue_all(self, env: str, namespace: str) -> Dict[str, Any]:
        """
        Devolve todos os itens do namespace para pending.

        Itens cuja consulta ao catálogo falha são pulados (ficam na lista) e
        contados em `skipped`; entradas ilegíveis são contadas em `invalid`.
        """
        namespace = normalize_namespace(namespace)
        entries, invalid = await self._scan(env)
        matching = [e for e in entries if e.item.namespace == namespace]

        to_requeue: List[Tuple[ScannedEntry, WorkItem]] = []
        skipped = 0
        for entry in matching:
            try:
                item = await self._resolve_page_id(env, entry.item)
            except UPSTREAM_EXCEPTIONS as e:
                logger.error(f"[ReenqueueManager] ❌ Falha ao resolver id={entry.item.id}: {e}")
                skipped += 1
                continue
            to_requeue.append((entry, item))

        if to_requeue:
            pending_client, pending_key = self._pending(env, namespace)
            async with pending_client.pipeline(transaction=True) as pipe:
                pipe.zadd(pending_key, {
                    WorkItem(id=item.id, page_id=item.page_id).to_member(): float(PriorityTier.MANUAL_PRIORITY)
                    for _, item in to_requeue
                })
                await pipe.execute()

            client, key = self._reenqueue(env)
            async with client.pipeline(transaction=True) as pipe:
                for entry, _ in to_requeue:
                    pipe.lrem(key, 1, entry.raw)
                await pipe.execute()

        logger.info(
            f"[ReenqueueManager] 📦 requeue_all ({namespace}): requeued={len(to_requeue)} "
            f"skipped={skipped} invalid={invalid}"
        )
        return {
            "requeued": len(to_requeue),
            "skipped": skipped,
            "invalid": invalid,
            "queue_type": namespace,
        }

    @upstream_guard
    async def delete_one(self, env: str, item_id: str, namespace: str) -> Dict[str, Any]:
        """
        Raises:
            NotFoundError: (id, namespace) ausente da lista
        """
        namespace = normalize_namespace(namespace)
        entries, _ = await self._scan(env)
        entry = next(
            (e for e in entries if e.item.id == str(item_id) and e.item.namespace == namespace),
            None,
        )
        client, key = self._reenqueue(env)
        if entry is None or not await client.lrem(key, 1, entry.raw):
            raise NotFoundError(f"Item {item_id} ({namespace}) não encontrado no reenqueue")
        logger.info(f"[ReenqueueManager] 🗑️ id={item_id} removido do reenqueue ({namespace})")
        return {"deleted": {"id": entry.item.id, "namespace": namespace}}

    @upstream_guard
    async def delete_all(self, env: str, namespace: str) -> Dict[str, Any]:
        namespace = normalize_namespace(namespace)
        entries, _ = await self._scan(env)
        matching = [e for e in entries if e.item.namespace == namespace]
        if not matching:
            return {"count": 0}

        client, key = self._reenqueue(env)
        async with client.pipeline(transaction=True) as pipe:
            for entry in matching:
                pipe.lrem(key, 1, entry.raw)
            results = await pipe.execute()

        deleted = sum(1 for removed in results if removed)
        logger.info(f"[ReenqueueManager] 🗑️ {deleted} itens removidos do reenqueue ({namespace})")
        return {"count": deleted}
