"""
Queue Orchestrator - filas pending (sorted set) e failed (lista) por namespace.

Cada namespace (regular / watchlist) tem sua conexão própria por ambiente.
Operações de busca por id varrem a estrutura inteira no cliente; sob
concorrência o snapshot pode estar desatualizado, então NotFound pode ser
transitório e o chamador pode repetir.

Invariante: um item está em no máximo uma das filas (pending ou failed)
de um namespace. Movimentos removem da origem antes de gravar no destino.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from redis.asyncio import Redis

from scrape_orchestrator.core.constants import (
    DEFAULT_NEXT_COUNT,
    NAMESPACE_WATCHLIST,
    NAMESPACES,
    QUEUE_FAILED,
    QUEUE_PENDING,
    normalize_namespace,
    normalize_queue_type,
)
from scrape_orchestrator.core.errors import (
    InvalidArgumentError,
    NotFoundError,
    UnavailableError,
    upstream_guard,
)
from scrape_orchestrator.core.pagination import PageRequest
from scrape_orchestrator.core.store import StoreHandles
from scrape_orchestrator.schemas.work_item import ScannedEntry, WorkItem, decode_entry
from scrape_orchestrator.services.catalog import CatalogDirectory
from scrape_orchestrator.services.queue_manager.enrichment import UNKNOWN, enrich, matches_search
from scrape_orchestrator.services.queue_manager.priority import (
    PriorityTier,
    is_selectable,
    priority_label,
    sort_key,
    tier_of,
)

logger = logging.getLogger(__name__)

WATCHLIST_COMPLETED = "completed"
INACTIVE_BRAND_STATUS = "Inactive"


async def scan_pending(client: Redis, key: str) -> List[ScannedEntry]:
    """Lê o sorted set inteiro (ordem armazenada), pulando entradas malformadas."""
    members = await client.zrange(key, 0, -1, withscores=True)
    entries = []
    for raw, score in members:
        entry = decode_entry(raw, score)
        if entry is not None:
            entries.append(entry)
    return entries


async def scan_list(client: Redis, key: str) -> List[ScannedEntry]:
    """Lê a lista inteira (cabeça primeiro), pulando entradas malformadas."""
    elements = await client.lrange(key, 0, -1)
    return [entry for entry in map(decode_entry, elements) if entry is not None]


def _find(entries: List[ScannedEntry], item_id: str) -> Optional[Tuple[int, ScannedEntry]]:
    for index, entry in enumerate(entries):
        if entry.item.id == item_id:
            return index, entry
    return None


def _brand_dict(item: WorkItem) -> Dict[str, Any]:
    return {"id": item.id, "page_id": item.page_id}


def _parse_score(value: Union[int, float, str]) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"Score inválido: {value}")


def _parse_position(value: Union[int, float, str]) -> int:
    try:
        position = int(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidArgumentError("Posição deve ser um número válido a partir de 1")
    if position < 1:
        raise InvalidArgumentError("Posição deve ser um número válido a partir de 1")
    return position


class QueueOrchestrator:
    """
    Gerencia as filas pending/failed de cada (ambiente, namespace).

    Uso típico:
    1. enqueue() insere em pending com um tier de prioridade
    2. get_next() mostra os próximos itens que o scraper vai consumir
    3. move_to_failed() / move_to_pending() movem itens entre as filas
    """

    def __init__(self, store: StoreHandles, catalogs: CatalogDirectory):
        self._store = store
        self._catalogs = catalogs

    def _queue(self, env: str, namespace: str) -> Tuple[Redis, str, str]:
        namespace = normalize_namespace(namespace)
        keys = self._store.keys(env)
        return (
            self._store.queue_client(env, namespace),
            keys.pending[namespace],
            keys.failed[namespace],
        )

    # ------------------------------------------------------------------
    # Inserção e movimentos unitários
    # ------------------------------------------------------------------

    @upstream_guard
    async def enqueue(
        self,
        env: str,
        namespace: str,
        item: WorkItem,
        score: Union[int, float] = PriorityTier.NORMAL,
    ) -> Dict[str, Any]:
        """
        Insere um item em pending.

        Payload idêntico sobrescreve o mesmo membro (apenas atualiza o score).
        """
        client, pending_key, _ = self._queue(env, namespace)
        score = _parse_score(score)
        added = await client.zadd(pending_key, {item.to_member(): score})
        logger.info(
            f"[QueueOrchestrator] ➕ Enfileirado id={item.id} page_id={item.page_id} "
            f"score={score} queue={pending_key} novo={bool(added)}"
        )
        return {"id": item.id, "page_id": item.page_id, "score": score, "added": bool(added)}

    @upstream_guard
    async def move_to_failed(self, env: str, namespace: str, item_id: str) -> Dict[str, Any]:
        """
        Move um item de pending para a cabeça da lista failed.

        Raises:
            NotFoundError: item não está em pending
        """
        client, pending_key, failed_key = self._queue(env, namespace)
        found = _find(await scan_pending(client, pending_key), str(item_id))
        if found is None:
            raise NotFoundError(f"Item {item_id} não encontrado na fila pending")
        _, entry = found

        # ZREM decide quem move em caso de concorrência
        if not await client.zrem(pending_key, entry.raw):
            raise NotFoundError(f"Item {item_id} não encontrado na fila pending")
        failed_item = WorkItem(id=entry.item.id, page_id=entry.item.page_id)
        await client.lpush(failed_key, failed_item.to_member())

        logger.info(f"[QueueOrchestrator] ❌ id={item_id} movido pending -> failed ({namespace})")
        return {"moved": _brand_dict(failed_item), "from": QUEUE_PENDING, "to": QUEUE_FAILED}

    @upstream_guard
    async def move_to_pending(self, env: str, namespace: str, item_id: str) -> Dict[str, Any]:
        """
        Move um item de failed para pending com score REQUEUED (3).

        Raises:
            NotFoundError: item não está em failed
        """
        client, pending_key, failed_key = self._queue(env, namespace)
        found = _find(await scan_list(client, failed_key), str(item_id))
        if found is None:
            raise NotFoundError(f"Item {item_id} não encontrado na fila failed")
        _, entry = found

        if not await client.lrem(failed_key, 1, entry.raw):
            raise NotFoundError(f"Item {item_id} não encontrado na fila failed")
        pending_item = WorkItem(id=entry.item.id, page_id=entry.item.page_id)
        await client.zadd(pending_key, {pending_item.to_member(): float(PriorityTier.REQUEUED)})

        logger.info(f"[QueueOrchestrator] 🔁 id={item_id} movido failed -> pending ({namespace})")
        return {
            "moved": _brand_dict(pending_item),
            "from": QUEUE_FAILED,
            "to": QUEUE_PENDING,
            "score": int(PriorityTier.REQUEUED),
        }

    @upstream_guard
    async def remove(self, env: str, namespace: str, queue_type: str, item_id: str) -> Dict[str, Any]:
        """
        Remove um item sem movê-lo. Repetir a chamada é seguro (NotFound).

        Raises:
            NotFoundError: item ausente
        """
        queue_type = normalize_queue_type(queue_type)
        client, pending_key, failed_key = self._queue(env, namespace)

        if queue_type == QUEUE_PENDING:
            found = _find(await scan_pending(client, pending_key), str(item_id))
            removed = found is not None and await client.zrem(pending_key, found[1].raw)
        else:
            found = _find(await scan_list(client, failed_key), str(item_id))
            removed = found is not None and await client.lrem(failed_key, 1, found[1].raw)

        if not removed:
            raise NotFoundError(f"Item {item_id} não encontrado na fila {queue_type}")

        logger.info(f"[QueueOrchestrator] 🗑️ id={item_id} removido de {queue_type} ({namespace})")
        return {"removed": _brand_dict(found[1].item), "queue_type": queue_type}

    # ------------------------------------------------------------------
    # Movimentos em lote
    # ------------------------------------------------------------------

    @upstream_guard
    async def move_all_pending_to_failed(self, env: str, namespace: str) -> Dict[str, Any]:
        """
        Move todo o pending para a cabeça de failed e apaga o sorted set.

        Leitura e escrita não são atômicas entre si: um enqueue concorrente
        entre a leitura e o DEL pode ser perdido.
        """
        client, pending_key, failed_key = self._queue(env, namespace)
        raw_members = await client.zrange(pending_key, 0, -1)

        moved: List[WorkItem] = []
        invalid = 0
        for raw in raw_members:
            entry = decode_entry(raw)
            if entry is None:
                invalid += 1
                continue
            moved.append(WorkItem(id=entry.item.id, page_id=entry.item.page_id))

        if not raw_members:
            return {"moved_count": 0, "invalid_count": 0, "moved_brands": []}

        async with client.pipeline(transaction=True) as pipe:
            if moved:
                # LPUSH invertido: a cabeça de failed fica na ordem do sorted set
                pipe.lpush(failed_key, *[item.to_member() for item in reversed(moved)])
            pipe.delete(pending_key)
            await pipe.execute()

        logger.info(
            f"[QueueOrchestrator] 📦 {len(moved)} itens movidos pending -> failed "
            f"({namespace}, inválidos={invalid})"
        )
        return {
            "moved_count": len(moved),
            "invalid_count": invalid,
            "moved_brands": [_brand_dict(item) for item in moved],
        }

    @upstream_guard
    async def move_all_failed_to_pending(self, env: str, namespace: str) -> Dict[str, Any]:
        """Move todo o failed para pending com score REQUEUED e apaga a lista."""
        client, pending_key, failed_key = self._queue(env, namespace)
        raw_elements = await client.lrange(failed_key, 0, -1)

        mapping: Dict[str, float] = {}
        moved: List[WorkItem] = []
        invalid = 0
        for raw in raw_elements:
            entry = decode_entry(raw)
            if entry is None:
                invalid += 1
                continue
            item = WorkItem(id=entry.item.id, page_id=entry.item.page_id)
            mapping[item.to_member()] = float(PriorityTier.REQUEUED)
            moved.append(item)

        if not raw_elements:
            return {"moved_count": 0, "invalid_count": 0, "moved_brands": []}

        async with client.pipeline(transaction=True) as pipe:
            if mapping:
                pipe.zadd(pending_key, mapping)
            pipe.delete(failed_key)
            await pipe.execute()

        logger.info(
            f"[QueueOrchestrator] 📦 {len(moved)} itens movidos failed -> pending "
            f"({namespace}, inválidos={invalid})"
        )
        return {
            "moved_count": len(moved),
            "invalid_count": invalid,
            "moved_brands": [_brand_dict(item) for item in moved],
        }

    @upstream_guard
    async def move_failed_to_pending_matching(self, env: str, namespace: str) -> Dict[str, Any]:
        """
        Move para pending (score REQUEUED) apenas os itens de failed cujo
        page_id pertence à watchlist do catálogo.
        """
        client, pending_key, failed_key = self._queue(env, namespace)
        watchlist = await self._catalogs.get(env).list_watchlist()
        watch_page_ids = {brand.page_id for brand in watchlist if brand.page_id}
        if not watch_page_ids:
            return {"moved_count": 0, "moved_brands": [], "message": "Nenhuma marca na watchlist"}

        matching = [
            entry for entry in await scan_list(client, failed_key)
            if entry.item.page_id in watch_page_ids
        ]
        if not matching:
            return {"moved_count": 0, "moved_brands": [], "message": "Nenhuma marca da watchlist em failed"}

        moved = [WorkItem(id=e.item.id, page_id=e.item.page_id) for e in matching]
        async with client.pipeline(transaction=True) as pipe:
            pipe.zadd(pending_key, {item.to_member(): float(PriorityTier.REQUEUED) for item in moved})
            for entry in matching:
                pipe.lrem(failed_key, 0, entry.raw)
            await pipe.execute()

        logger.info(f"[QueueOrchestrator] 📦 {len(moved)} itens da watchlist movidos failed -> pending")
        return {
            "moved_count": len(moved),
            "moved_brands": [_brand_dict(item) for item in moved],
            "message": f"{len(moved)} itens movidos para pending",
        }

    @upstream_guard
    async def seed_watchlist(self, env: str) -> Dict[str, Any]:
        """
        Insere todas as marcas da watchlist em pending (tier SEED),
        pulando page_ids que já estão pendentes.
        """
        client, pending_key, _ = self._queue(env, NAMESPACE_WATCHLIST)
        watchlist = await self._catalogs.get(env).list_watchlist()
        if not watchlist:
            return {"moved_count": 0, "moved_brands": [], "message": "Nenhuma marca na watchlist"}

        existing = {entry.item.page_id for entry in await scan_pending(client, pending_key)}
        to_add = [
            WorkItem(id=brand.id, page_id=brand.page_id)
            for brand in watchlist
            if brand.page_id and brand.page_id not in existing
        ]
        if not to_add:
            return {"moved_count": 0, "moved_brands": [], "message": "Watchlist já está em pending"}

        await client.zadd(pending_key, {item.to_member(): float(PriorityTier.SEED) for item in to_add})
        logger.info(f"[QueueOrchestrator] 🌱 {len(to_add)} marcas da watchlist enfileiradas (score=1)")
        return {
            "moved_count": len(to_add),
            "moved_brands": [_brand_dict(item) for item in to_add],
            "message": f"{len(to_add)} marcas adicionadas com prioridade",
        }

    @upstream_guard
    async def watchlist_status(
        self,
        env: str,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Status do scraper para cada marca da watchlist, derivado das filas.

        - em pending -> 'pending'
        - fora de pending mas em failed -> 'failed'
        - fora das duas -> 'completed'

        O resumo conta todas as marcas (antes da busca); marcas com status
        'Inactive' no catálogo não entram em completed_count.
        """
        window = PageRequest(page, limit)
        client, pending_key, failed_key = self._queue(env, NAMESPACE_WATCHLIST)
        watchlist = await self._catalogs.get(env).list_watchlist()

        pending_by_page = {
            entry.item.page_id: entry
            for entry in await scan_pending(client, pending_key)
            if entry.item.page_id
        }
        failed_pages = {
            entry.item.page_id for entry in await scan_list(client, failed_key) if entry.item.page_id
        }

        views = []
        for brand in watchlist:
            queued = pending_by_page.get(brand.page_id)
            if queued is not None:
                scraper_status = QUEUE_PENDING
            elif brand.page_id in failed_pages:
                scraper_status = QUEUE_FAILED
            else:
                scraper_status = WATCHLIST_COMPLETED
            views.append({
                "queue_id": queued.item.id if queued else None,
                "page_id": brand.page_id,
                "brand_id": brand.id,
                "brand_name": brand.name,
                "status": brand.status or UNKNOWN,
                "is_watchlist": True,
                "scraper_status": scraper_status,
            })

        summary = {
            "total": len(views),
            "pending_count": sum(1 for v in views if v["scraper_status"] == QUEUE_PENDING),
            "failed_count": sum(1 for v in views if v["scraper_status"] == QUEUE_FAILED),
            "completed_count": sum(
                1 for v in views
                if v["scraper_status"] == WATCHLIST_COMPLETED and v["status"] != INACTIVE_BRAND_STATUS
            ),
        }

        if search and search.strip():
            term = search.strip().lower()
            views = [v for v in views if matches_search(v, term) or term in v["brand_id"]]

        return {
            "brands": window.slice(views),
            "pagination": window.meta(len(views)),
            "summary": summary,
        }

    # ------------------------------------------------------------------
    # Prioridade
    # ------------------------------------------------------------------

    async def _locate(
        self,
        env: str,
        entries: List[ScannedEntry],
        identifier: str,
    ) -> Optional[Tuple[int, ScannedEntry]]:
        """Procura por id, depois por page_id, depois por nome no catálogo."""
        identifier = str(identifier).strip()
        for index, entry in enumerate(entries):
            if entry.item.id == identifier:
                return index, entry
        for index, entry in enumerate(entries):
            if entry.item.page_id == identifier:
                return index, entry

        brands = await self._catalogs.get(env).find_by_ids(e.item.id for e in entries)
        wanted = identifier.lower()
        for index, entry in enumerate(entries):
            brand = brands.get(entry.item.id)
            if brand and brand.name.lower() == wanted:
                return index, entry
        return None

    @upstream_guard
    async def change_priority(
        self,
        env: str,
        namespace: str,
        queue_type: str,
        identifier: str,
        new_score: Union[int, float, str],
    ) -> Dict[str, Any]:
        """
        Altera a prioridade de um item.

        Args:
            queue_type: 'pending' (novo score) ou 'failed' (nova posição 1-based)
            identifier: id, page_id ou nome da marca
            new_score: score para pending, posição para failed

        Raises:
            InvalidArgumentError: score/posição inválidos
            NotFoundError: item não encontrado
        """
        queue_type = normalize_queue_type(queue_type)
        client, pending_key, failed_key = self._queue(env, namespace)

        if queue_type == QUEUE_PENDING:
            score = _parse_score(new_score)
            found = await self._locate(env, await scan_pending(client, pending_key), identifier)
            if found is None:
                raise NotFoundError(f"Item '{identifier}' não encontrado na fila pending")
            entry = found[1]
            async with client.pipeline(transaction=True) as pipe:
                pipe.zrem(pending_key, entry.raw)
                pipe.zadd(pending_key, {entry.raw: score})
                await pipe.execute()
            logger.info(f"[QueueOrchestrator] ⚖️ id={entry.item.id} novo score={score} ({namespace})")
            return {"id": entry.item.id, "queue_type": queue_type, "new_score": score}

        position = _parse_position(new_score)
        raw_elements = await client.lrange(failed_key, 0, -1)
        entries = [decode_entry(raw) for raw in raw_elements]
        valid = [e for e in entries if e is not None]
        found = await self._locate(env, valid, identifier)
        if found is None:
            raise NotFoundError(f"Item '{identifier}' não encontrado na fila failed")
        entry = found[1]
        current_index = raw_elements.index(entry.raw)

        new_index = position - 1
        if new_index >= len(raw_elements):
            raise InvalidArgumentError(
                f"Posição {position} fora do intervalo. Fila tem {len(raw_elements)} itens"
            )
        if new_index == current_index:
            return {
                "id": entry.item.id,
                "queue_type": queue_type,
                "new_position": position,
                "message": f"Item já está na posição {position}",
            }

        # LREM decide quem move em caso de concorrência
        if not await client.lrem(failed_key, 1, entry.raw):
            raise NotFoundError(f"Item '{identifier}' não encontrado na fila failed")
        if new_index == 0:
            await client.lpush(failed_key, entry.raw)
        else:
            remaining = await client.lrange(failed_key, 0, -1)
            if new_index - 1 >= len(remaining):
                await client.rpush(failed_key, entry.raw)
            elif await client.linsert(failed_key, "AFTER", remaining[new_index - 1], entry.raw) == -1:
                # pivô removido por outro worker: item vai para a cauda, nunca se perde
                logger.warning(f"[QueueOrchestrator] ⚠️ pivô ausente, id={entry.item.id} vai para a cauda ({namespace})")
                await client.rpush(failed_key, entry.raw)

        logger.info(f"[QueueOrchestrator] ↕️ id={entry.item.id} movido para posição {position} ({namespace})")
        return {"id": entry.item.id, "queue_type": queue_type, "new_position": position}

    # ------------------------------------------------------------------
    # Leitura
    # ------------------------------------------------------------------

    @upstream_guard
    async def get_page(
        self,
        env: str,
        namespace: str,
        queue_type: str,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Retorna uma página enriquecida da fila.

        Com busca, a fila inteira é lida, enriquecida e filtrada antes de
        paginar, para que total_items reflita o resultado filtrado.
        """
        queue_type = normalize_queue_type(queue_type)
        window = PageRequest(page, limit)
        client, pending_key, failed_key = self._queue(env, namespace)
        catalog = self._catalogs.get(env)

        if search and search.strip():
            if queue_type == QUEUE_PENDING:
                entries = await scan_pending(client, pending_key)
            else:
                entries = await scan_list(client, failed_key)
            views = await enrich(catalog, [(e, i + 1) for i, e in enumerate(entries)])
            matching = [v for v in views if matches_search(v, search.strip())]
            return {"brands": window.slice(matching), "pagination": window.meta(len(matching))}

        if queue_type == QUEUE_PENDING:
            total = await client.zcard(pending_key)
            rows = await client.zrange(pending_key, window.start, window.stop - 1, withscores=True)
        else:
            total = await client.llen(failed_key)
            rows = [(raw, None) for raw in await client.lrange(failed_key, window.start, window.stop - 1)]

        positioned = []
        for offset, (raw, score) in enumerate(rows):
            entry = decode_entry(raw, score)
            if entry is not None:
                positioned.append((entry, window.start + offset + 1))
        return {"brands": await enrich(catalog, positioned), "pagination": window.meta(total)}

    @upstream_guard
    async def get_next(self, env: str, namespace: str, count: int = DEFAULT_NEXT_COUNT) -> List[Dict[str, Any]]:
        """
        Próximos itens na ordem de consumo do scraper.

        Ordem: tier SEED (1) na ordem armazenada, depois NORMAL (0). Somente
        quando nenhum dos dois tiers tem itens, a cabeça de failed é oferecida.

        Raises:
            UnavailableError: nenhum item disponível
        """
        if count < 1:
            raise InvalidArgumentError("count deve ser >= 1")
        client, pending_key, failed_key = self._queue(env, namespace)

        entries = await scan_pending(client, pending_key)
        selectable = [(e, i) for i, e in enumerate(entries) if is_selectable(e.score)]
        tier_counts = {
            tier: sum(1 for e, _ in selectable if tier_of(e.score) == tier)
            for tier in (PriorityTier.SEED, PriorityTier.NORMAL)
        }
        chosen = [e for e, _ in sorted(selectable, key=lambda pair: sort_key(*pair))[:count]]
        sources = [(e, QUEUE_PENDING) for e in chosen]

        if not selectable:
            failed = await client.lrange(failed_key, 0, count - 1)
            sources.extend(
                (entry, QUEUE_FAILED) for entry in map(decode_entry, failed) if entry is not None
            )

        if not sources:
            raise UnavailableError(f"Nenhum item disponível na fila {namespace}")

        brands_views = await enrich(
            self._catalogs.get(env),
            [(entry, position) for position, (entry, _) in enumerate(sources, start=1)],
        )
        result = []
        for view, (entry, source) in zip(brands_views, sources):
            tier = tier_of(entry.score) if source == QUEUE_PENDING else None
            label = priority_label(tier, source)
            position = view["queue_position"]
            if source == QUEUE_FAILED:
                note = f"Item failed #{position} (após esvaziar pending)"
            elif tier == PriorityTier.SEED:
                note = f"Item prioritário #{position} ({tier_counts[PriorityTier.SEED]} prioritários na fila)"
            else:
                note = f"Item regular #{position} ({tier_counts[PriorityTier.NORMAL]} regulares na fila)"
            view.update({
                "queue_type": source,
                "priority": label,
                "is_next": position == 1,
                "note": note,
            })
            result.append(view)
        return result

    @upstream_guard
    async def stats(self, env: str) -> Dict[str, Any]:
        """Contagem das filas de ambos os namespaces e do reenqueue."""
        result: Dict[str, Any] = {}
        total = 0
        for namespace in NAMESPACES:
            client, pending_key, failed_key = self._queue(env, namespace)
            pending = await client.zcard(pending_key)
            failed = await client.llen(failed_key)
            result[namespace] = {"pending_count": pending, "failed_count": failed}
            total += pending + failed

        reenqueue = await self._store.global_client(env).llen(self._store.keys(env).reenqueue)
        result["reenqueue_count"] = reenqueue
        result["total_count"] = total + reenqueue
        result["timestamp"] = datetime.now(timezone.utc).isoformat()
        return result

    # ------------------------------------------------------------------
    # Limpeza
    # ------------------------------------------------------------------

    @upstream_guard
    async def clear_pending(self, env: str, namespace: str) -> Dict[str, Any]:
        client, pending_key, _ = self._queue(env, namespace)
        count = await client.zcard(pending_key)
        await client.delete(pending_key)
        logger.info(f"[QueueOrchestrator] 🧹 pending limpo ({namespace}): {count} itens")
        return {"cleared_count": count}

    @upstream_guard
    async def clear_failed(self, env: str, namespace: str) -> Dict[str, Any]:
        client, _, failed_key = self._queue(env, namespace)
        count = await client.llen(failed_key)
        await client.delete(failed_key)
        logger.info(f"[QueueOrchestrator] 🧹 failed limpo ({namespace}): {count} itens")
        return {"cleared_count": count}

    @upstream_guard
    async def clear_all(self, env: str, namespace: str) -> Dict[str, Any]:
        pending = (await self.clear_pending(env, namespace))["cleared_count"]
        failed = (await self.clear_failed(env, namespace))["cleared_count"]
        return {
            "cleared_pending": pending,
            "cleared_failed": failed,
            "total_cleared": pending + failed,
        }
