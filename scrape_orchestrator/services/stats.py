"""
Stats Aggregator - leitura de contadores diários e estatísticas por IP.

Somente leitura (exceto delete_ip_stats). Os contadores são gravados pelo
scraper:
- stats:YYYY-MM-DD (store do namespace): brands_scrapped, brands_processed,
  brands_scrapped_failed, ads_processed
- ip_stats:{ip} (store global): totalBrands, totalAds, completed, failed, total
"""
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from scrape_orchestrator.core.constants import normalize_namespace
from scrape_orchestrator.core.errors import InvalidArgumentError, NotFoundError, upstream_guard
from scrape_orchestrator.core.pagination import PageRequest
from scrape_orchestrator.core.store import StoreHandles

logger = logging.getLogger(__name__)

# campo no store -> campo na resposta
DAY_FIELDS = {
    "brands_scrapped": "brands_scraped",
    "brands_processed": "brands_processed",
    "brands_scrapped_failed": "brands_scrapped_failed",
    "ads_processed": "ads_processed",
}
IP_FIELDS = ("totalBrands", "totalAds", "completed", "failed", "total")
MAX_DAYS = 90


def _to_int(data: Dict[str, str], field: str, key: str) -> int:
    value = data.get(field)
    if value in (None, ""):
        return 0
    try:
        return int(value)
    except ValueError:
        logger.warning(f"[StatsAggregator] ⚠️ Valor não inteiro {field}={value!r} em {key}, usando 0")
        return 0


def _parse_date(value: Optional[str]) -> date:
    if not value:
        return datetime.now(timezone.utc).date()
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise InvalidArgumentError(f"Data inválida: {value}. Use YYYY-MM-DD")


class StatsAggregator:
    def __init__(self, store: StoreHandles):
        self._store = store

    @upstream_guard
    async def day(self, env: str, target_date: Optional[str] = None, namespace: str = "regular") -> Dict[str, Any]:
        """Contadores de um dia (hoje em UTC por padrão)."""
        namespace = normalize_namespace(namespace)
        day = _parse_date(target_date)
        key = f"{self._store.keys(env).stats_prefix}{day.isoformat()}"
        data = await self._store.queue_client(env, namespace).hgetall(key)

        result: Dict[str, Any] = {"date": day.isoformat(), "namespace": namespace}
        for stored, exposed in DAY_FIELDS.items():
            result[exposed] = _to_int(data, stored, key)
        return result

    @upstream_guard
    async def last_days(self, env: str, days: int = 7, namespace: str = "regular") -> Dict[str, Any]:
        """Últimos N dias, do mais antigo para o mais recente."""
        if days < 1 or days > MAX_DAYS:
            raise InvalidArgumentError(f"days deve estar entre 1 e {MAX_DAYS}")
        today = datetime.now(timezone.utc).date()
        stats = []
        for offset in range(days - 1, -1, -1):
            stats.append(await self.day(env, (today - timedelta(days=offset)).isoformat(), namespace))
        return {"period": f"Last {days} days", "stats": stats}

    # ------------------------------------------------------------------
    # Estatísticas por IP
    # ------------------------------------------------------------------

    def _ip_key(self, env: str, ip: str) -> str:
        return f"{self._store.keys(env).ip_stats_prefix}:{ip}"

    def _ip_view(self, ip: str, key: str, data: Dict[str, str]) -> Dict[str, Any]:
        view: Dict[str, Any] = {"ip": ip}
        for field in IP_FIELDS:
            view[field] = _to_int(data, field, key)
        return view

    async def _all_ip_stats(self, env: str) -> List[Dict[str, Any]]:
        client = self._store.global_client(env)
        prefix = f"{self._store.keys(env).ip_stats_prefix}:"
        keys = sorted({
            k async for k in client.scan_iter(match=f"{prefix}*", count=500)
            if not k.endswith(":brands")
        })
        if not keys:
            return []
        async with client.pipeline(transaction=False) as pipe:
            for key in keys:
                pipe.hgetall(key)
            hashes = await pipe.execute()
        return [
            self._ip_view(key[len(prefix):], key, data)
            for key, data in zip(keys, hashes)
            if data
        ]

    @upstream_guard
    async def ip_stats(self, env: str, ip: str) -> Dict[str, Any]:
        """
        Raises:
            NotFoundError: sem estatísticas para o IP
        """
        key = self._ip_key(env, ip)
        data = await self._store.global_client(env).hgetall(key)
        if not data:
            raise NotFoundError(f"Sem estatísticas para o IP {ip}")
        return self._ip_view(ip, key, data)

    @upstream_guard
    async def ip_stats_list(
        self,
        env: str,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        sort_by: str = "totalAds",
        order: str = "desc",
    ) -> Dict[str, Any]:
        window = PageRequest(page, limit)
        if sort_by not in IP_FIELDS:
            raise InvalidArgumentError(f"sort_by inválido: {sort_by}. Use um de {', '.join(IP_FIELDS)}")
        if order not in ("asc", "desc"):
            raise InvalidArgumentError("order deve ser 'asc' ou 'desc'")

        rows = await self._all_ip_stats(env)
        if search and search.strip():
            rows = [r for r in rows if search.strip() in r["ip"]]
        rows.sort(key=lambda r: r[sort_by], reverse=order == "desc")
        return {"data": window.slice(rows), "pagination": window.meta(len(rows))}

    @upstream_guard
    async def ip_stats_summary(self, env: str) -> Dict[str, Any]:
        rows = await self._all_ip_stats(env)
        return {
            "totalIps": len(rows),
            "totalBrands": sum(r["totalBrands"] for r in rows),
            "totalAds": sum(r["totalAds"] for r in rows),
            "totalCompleted": sum(r["completed"] for r in rows),
            "totalFailed": sum(r["failed"] for r in rows),
            "totalScrapingAttempts": sum(r["total"] for r in rows),
        }

    @upstream_guard
    async def delete_ip_stats(self, env: str, ip: str) -> Dict[str, Any]:
        key = self._ip_key(env, ip)
        deleted = await self._store.global_client(env).delete(key, f"{key}:brands")
        logger.info(f"[StatsAggregator] 🗑️ Estatísticas do IP {ip} removidas ({deleted} chaves)")
        return {"ip": ip, "deleted_keys": deleted}
