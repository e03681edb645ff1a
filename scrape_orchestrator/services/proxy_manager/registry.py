"""
Proxy Registry - CRUD e bookkeeping de saúde dos proxies no store global.

Contadores failCount/successCount só crescem (HINCRBY). Relatos do scraper
para chaves inexistentes retornam NotFound e nunca criam registros.
"""
import ipaddress
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from redis.asyncio import Redis
from redis.exceptions import RedisError

from scrape_orchestrator.core.config import KeySpace, settings
from scrape_orchestrator.core.errors import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    upstream_guard,
)
from scrape_orchestrator.core.pagination import PageRequest
from scrape_orchestrator.core.store import StoreHandles
from scrape_orchestrator.schemas.proxy import ProxyKey, ProxyRecord, format_worker_name

logger = logging.getLogger(__name__)

PROXY_TYPES = ("http", "https", "socks4", "socks5")
PROXY_NAMESPACES = ("watchlist", "non-watchlist")
IP_VERSIONS = ("ipv4", "ipv6")
UPDATABLE_FIELDS = ("country", "type", "namespace", "userAgent", "viewport")
LIST_FILTERS = ("all", "working", "failed")

MANUAL_DEACTIVATION = "manual deactive"
DEFAULT_FAILURE_REASON = "Scraping failed"

_VIEWPORT_RE = re.compile(r"^(\d+),(\d+)$")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _now_ms() -> str:
    return str(int(datetime.now(timezone.utc).timestamp() * 1000))


def detect_ip_version(ip: str) -> str:
    """
    Valida um literal IPv4/IPv6.

    Raises:
        InvalidArgumentError: IP malformado
    """
    try:
        address = ipaddress.ip_address((ip or "").strip())
    except ValueError:
        raise InvalidArgumentError(f"Formato de IP inválido: {ip}")
    return f"ipv{address.version}"


def _validate_port(port: Any) -> str:
    try:
        value = int(str(port).strip())
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"Porta inválida: {port}")
    if not 1 <= value <= 65535:
        raise InvalidArgumentError(f"Porta fora do intervalo 1-65535: {port}")
    return str(value)


def _validate_choice(field: str, value: str, choices: Tuple[str, ...]) -> str:
    if value not in choices:
        raise InvalidArgumentError(f"{field} inválido: {value}. Use um de {', '.join(choices)}")
    return value


def _validate_viewport(viewport: str) -> str:
    match = _VIEWPORT_RE.match((viewport or "").strip())
    if not match or int(match.group(1)) <= 0 or int(match.group(2)) <= 0:
        raise InvalidArgumentError(f"Viewport inválido: {viewport}. Use 'largura,altura'")
    return viewport.strip()


def _validate_credential(field: str, value: Optional[str]) -> str:
    value = (value or "").strip()
    if not value:
        raise InvalidArgumentError(f"{field} é obrigatório")
    if ":" in value:
        raise InvalidArgumentError(f"{field} não pode conter ':'")
    return value


def _validate_update(field: str, value: Any) -> str:
    value = str(value)
    if field == "type":
        return _validate_choice("type", value, PROXY_TYPES)
    if field == "namespace":
        return _validate_choice("namespace", value, PROXY_NAMESPACES)
    if field == "viewport":
        return _validate_viewport(value)
    return value


class ProxyRegistry:
    """
    Registro de proxies por ambiente.

    Todas as operações usam a conexão global do ambiente.
    """

    def __init__(self, store: StoreHandles, lock_ttl: Optional[int] = None):
        self._store = store
        self._lock_ttl = lock_ttl if lock_ttl is not None else settings.PROXY_LOCK_TTL

    def _ctx(self, env: str) -> Tuple[Redis, KeySpace]:
        return self._store.global_client(env), self._store.keys(env)

    def parse_key(self, env: str, key: str) -> ProxyKey:
        return ProxyKey.parse(key, self._store.keys(env).proxy_prefix)

    # ------------------------------------------------------------------
    # Leitura
    # ------------------------------------------------------------------

    async def _load(self, client: Redis, keys: KeySpace, key: str) -> ProxyRecord:
        ProxyKey.parse(key, keys.proxy_prefix)
        data = await client.hgetall(key)
        if not data:
            raise NotFoundError(f"Proxy não encontrado: {key}")
        return ProxyRecord.from_hash(key, data, keys.proxy_prefix)

    @upstream_guard
    async def get(self, env: str, key: str) -> ProxyRecord:
        """
        Raises:
            NotFoundError: proxy inexistente
        """
        client, keys = self._ctx(env)
        return await self._load(client, keys, key)

    @upstream_guard
    async def all_records(self, env: str, with_locks: bool = False) -> List[ProxyRecord]:
        """Todos os proxies (SCAN ips:*), ordenados pela chave."""
        client, keys = self._ctx(env)
        proxy_keys = sorted({k async for k in client.scan_iter(match=f"{keys.proxy_prefix}:*", count=500)})
        if not proxy_keys:
            return []

        async with client.pipeline(transaction=False) as pipe:
            for key in proxy_keys:
                pipe.hgetall(key)
            hashes = await pipe.execute()

        records = []
        for key, data in zip(proxy_keys, hashes):
            if not data:
                continue
            try:
                records.append(ProxyRecord.from_hash(key, data, keys.proxy_prefix))
            except InvalidArgumentError as e:
                logger.warning(f"[ProxyRegistry] ⚠️ Chave de proxy ignorada: {e.message}")

        if with_locks and records:
            lock_keys = [ProxyKey.parse(r.key, keys.proxy_prefix).key(keys.lock_prefix) for r in records]
            holders = await client.mget(lock_keys)
            for record, lock_key, holder in zip(records, lock_keys, holders):
                record.is_locked = bool(holder)
                record.lock_worker = format_worker_name(holder)
                record.lock_key = lock_key if holder else None
        return records

    @upstream_guard
    async def list(
        self,
        env: str,
        page: int = 1,
        limit: int = 10,
        filter: str = "all",
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Lista paginada com filtro (all/working/failed), busca e informação de lock."""
        window = PageRequest(page, limit)
        _validate_choice("filter", filter, LIST_FILTERS)
        records = await self.all_records(env, with_locks=True)

        if search and search.strip():
            term = search.strip().lower()
            records = [
                r for r in records
                if term in r.ip.lower()
                or term in r.port
                or term in r.username.lower()
                or term in r.password.lower()
                or term in r.country.lower()
            ]
        if filter == "working":
            records = [r for r in records if r.active]
        elif filter == "failed":
            records = [r for r in records if not r.active]

        return {
            "proxies": [r.to_dict() for r in window.slice(records)],
            "pagination": window.meta(len(records)),
            "filter": filter,
            "search": search or "",
        }

    @upstream_guard
    async def available(self, env: str) -> Dict[str, Any]:
        """Proxies ativos, do menos usado para o mais usado."""
        active = sorted(
            (r for r in await self.all_records(env) if r.active),
            key=lambda r: (r.usage, r.key),
        )
        return {"count": len(active), "proxies": [r.to_dict() for r in active]}

    @upstream_guard
    async def stats(self, env: str) -> Dict[str, Any]:
        records = await self.all_records(env)
        active = sum(1 for r in records if r.active)
        total_usage = sum(r.usage for r in records)
        return {
            "total_proxies": len(records),
            "active_proxies": active,
            "working_proxies": active,
            "total_usage": total_usage,
            "average_usage": round(total_usage / len(records)) if records else 0,
        }

    @upstream_guard
    async def management_stats(self, env: str) -> Dict[str, Any]:
        client, keys = self._ctx(env)
        data = await client.hgetall(keys.proxy_stats)
        added = int(data.get("added") or 0)
        removed = int(data.get("removed") or 0)
        return {
            "total_added": added,
            "total_removed": removed,
            "last_updated": data.get("last_updated"),
            "net_change": added - removed,
        }

    async def _bump_management(self, client: Redis, keys: KeySpace, field: str) -> None:
        # Contadores de gestão são best-effort: falha não desfaz a operação
        try:
            async with client.pipeline(transaction=True) as pipe:
                pipe.hincrby(keys.proxy_stats, field, 1)
                pipe.hset(keys.proxy_stats, "last_updated", _now_iso())
                await pipe.execute()
        except (RedisError, OSError) as e:
            logger.error(f"[ProxyRegistry] ❌ Erro ao atualizar {keys.proxy_stats}: {e}")

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    @upstream_guard
    async def add(
        self,
        env: str,
        ip: str,
        port: Any,
        username: str,
        password: str,
        type: str = "http",
        namespace: str = "non-watchlist",
        user_agent: str = "",
        viewport: str = "",
        version: Optional[str] = None,
        country: Optional[str] = None,
    ) -> ProxyRecord:
        """
        Adiciona um proxy com contadores zerados e active=true.

        Raises:
            InvalidArgumentError: IP, porta, tipo, namespace, versão ou viewport inválidos
            ConflictError: já existe proxy com o mesmo (ip, port, username, password)
        """
        ip = (ip or "").strip()
        detected = detect_ip_version(ip)
        if version is not None:
            _validate_choice("version", version, IP_VERSIONS)
            if version != detected:
                raise InvalidArgumentError(f"version={version} não corresponde ao IP {ip} ({detected})")
        proxy_key = ProxyKey(
            ip=ip,
            port=_validate_port(port),
            username=_validate_credential("username", username),
            password=_validate_credential("password", password),
        )
        _validate_choice("type", type, PROXY_TYPES)
        _validate_choice("namespace", namespace, PROXY_NAMESPACES)
        if viewport:
            viewport = _validate_viewport(viewport)

        client, keys = self._ctx(env)
        key = proxy_key.key(keys.proxy_prefix)

        # HSETNX é o ponto atômico de unicidade da chave composta
        if not await client.hsetnx(key, "proxy_url", proxy_key.suffix):
            raise ConflictError(f"Proxy já existe: {key}", data={"id": key})

        fields = {
            "ip": proxy_key.ip,
            "port": proxy_key.port,
            "username": proxy_key.username,
            "password": proxy_key.password,
            "failCount": "0",
            "successCount": "0",
            "active": "true",
            "disabledAt": "",
            "failure_reason": "",
            "country": country or "Unknown",
            "type": type,
            "namespace": namespace,
            "userAgent": user_agent or "",
            "viewport": viewport or "",
            "version": detected,
            "created_at": _now_iso(),
        }
        try:
            await client.hset(key, mapping=fields)
        except (RedisError, OSError):
            # hash só com proxy_url bloquearia novos cadastros com Conflict
            await client.delete(key)
            raise
        await self._bump_management(client, keys, "added")

        logger.info(f"[ProxyRegistry] ✅ Proxy adicionado: {proxy_key.ip}:{proxy_key.port} ({fields['country']})")
        return await self._load(client, keys, key)

    @upstream_guard
    async def update(self, env: str, key: str, changes: Dict[str, Any]) -> ProxyRecord:
        """
        Atualiza apenas country, type, namespace, userAgent e viewport.

        Raises:
            NotFoundError: proxy inexistente
            InvalidArgumentError: valor inválido
        """
        client, keys = self._ctx(env)
        await self._load(client, keys, key)

        fields = {
            field: _validate_update(field, changes[field])
            for field in UPDATABLE_FIELDS
            if changes.get(field) is not None
        }
        if fields:
            await client.hset(key, mapping=fields)
            logger.info(f"[ProxyRegistry] ✏️ Proxy atualizado: {key} campos={sorted(fields)}")
        return await self._load(client, keys, key)

    @upstream_guard
    async def remove(self, env: str, key: str) -> ProxyRecord:
        """
        Remove o proxy e, em best-effort, as estatísticas por IP associadas.

        Raises:
            NotFoundError: proxy inexistente
        """
        client, keys = self._ctx(env)
        record = await self._load(client, keys, key)
        if not await client.delete(key):
            raise NotFoundError(f"Proxy não encontrado: {key}")
        await self._bump_management(client, keys, "removed")

        ip_key = f"{keys.ip_stats_prefix}:{record.ip}"
        try:
            await client.delete(ip_key, f"{ip_key}:brands")
        except (RedisError, OSError) as e:
            logger.error(f"[ProxyRegistry] ❌ Erro ao limpar {ip_key}: {e}")

        logger.info(f"[ProxyRegistry] 🗑️ Proxy removido: {key}")
        return record

    @upstream_guard
    async def clear_all(self, env: str) -> Dict[str, Any]:
        client, keys = self._ctx(env)
        proxy_keys = [k async for k in client.scan_iter(match=f"{keys.proxy_prefix}:*", count=500)]
        if proxy_keys:
            await client.delete(*proxy_keys)
        await client.delete(keys.proxy_stats)
        logger.info(f"[ProxyRegistry] 🧹 {len(proxy_keys)} proxies removidos")
        return {"cleared_count": len(proxy_keys)}

    # ------------------------------------------------------------------
    # Status e relatos do scraper
    # ------------------------------------------------------------------

    async def _require(self, client: Redis, key: str) -> None:
        if not await client.exists(key):
            raise NotFoundError(f"Proxy não encontrado: {key}")

    @upstream_guard
    async def set_active(self, env: str, key: str, active: bool) -> None:
        """Apenas altera o flag active (usado na troca automática de proxy)."""
        client, keys = self._ctx(env)
        ProxyKey.parse(key, keys.proxy_prefix)
        await self._require(client, key)
        await client.hset(key, "active", "true" if active else "false")

    @upstream_guard
    async def set_status(self, env: str, key: str, active: bool) -> ProxyRecord:
        """
        (Des)ativação manual. Ao desativar grava failure_reason='manual deactive'
        e disabledAt; ao ativar limpa ambos.
        """
        client, keys = self._ctx(env)
        await self._load(client, keys, key)
        if active:
            fields = {"active": "true", "failure_reason": "", "disabledAt": ""}
        else:
            fields = {"active": "false", "failure_reason": MANUAL_DEACTIVATION, "disabledAt": _now_ms()}
        await client.hset(key, mapping=fields)
        logger.info(f"[ProxyRegistry] 🔀 Proxy {key} -> {'active' if active else 'inactive'}")
        return await self._load(client, keys, key)

    async def bulk_set_status(self, env: str, updates: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Aplica set_status em lote; proxies inexistentes entram como falha no resultado."""
        results = []
        for update in updates:
            proxy_id = update.get("proxy_id") or update.get("proxyId")
            active = bool(update.get("is_working", update.get("isWorking")))
            try:
                await self.set_status(env, proxy_id, active)
                results.append({"proxy_id": proxy_id, "success": True, "active": active})
            except (NotFoundError, InvalidArgumentError) as e:
                results.append({"proxy_id": proxy_id, "success": False, "message": e.message})
        successful = sum(1 for r in results if r["success"])
        return {
            "total_updates": len(updates),
            "successful_updates": successful,
            "failed_updates": len(updates) - successful,
            "results": results,
        }

    async def _report(self, client: Redis, key: str, counter: str, fields: Dict[str, str]) -> None:
        # WATCH na chave: um DEL concorrente força nova tentativa, que então
        # encontra a chave ausente e nunca recria o hash
        async def apply(pipe) -> None:
            if not await pipe.exists(key):
                raise NotFoundError(f"Proxy não encontrado: {key}")
            pipe.multi()
            pipe.hincrby(key, counter, 1)
            pipe.hset(key, mapping=fields)

        await client.transaction(apply, key)

    @upstream_guard
    async def mark_failed(self, env: str, key: str, reason: Optional[str] = None) -> ProxyRecord:
        """
        Relato de falha do scraper: failCount += 1 e active=false.

        Raises:
            NotFoundError: proxy inexistente (nunca cria registro)
        """
        client, keys = self._ctx(env)
        ProxyKey.parse(key, keys.proxy_prefix)
        reason = reason or DEFAULT_FAILURE_REASON
        await self._report(client, key, "failCount", {
            "active": "false",
            "failure_reason": reason,
            "disabledAt": _now_ms(),
        })
        logger.warning(f"[ProxyRegistry] ⚠️ Proxy {key} marcado como failed: {reason}")
        return await self._load(client, keys, key)

    @upstream_guard
    async def mark_working(self, env: str, key: str) -> ProxyRecord:
        """
        Relato de sucesso do scraper: successCount += 1 e active=true.

        Raises:
            NotFoundError: proxy inexistente (nunca cria registro)
        """
        client, keys = self._ctx(env)
        ProxyKey.parse(key, keys.proxy_prefix)
        await self._report(client, key, "successCount", {
            "active": "true",
            "failure_reason": "",
            "disabledAt": "",
        })
        return await self._load(client, keys, key)

    @upstream_guard
    async def record_allocation(self, env: str, key: str) -> ProxyRecord:
        """Registra uma alocação (successCount += 1) sem alterar o status."""
        client, keys = self._ctx(env)
        await self._require(client, key)
        await client.hincrby(key, "successCount", 1)
        return await self._load(client, keys, key)

    # ------------------------------------------------------------------
    # Locks
    # ------------------------------------------------------------------

    @upstream_guard
    async def lock(self, env: str, key: str, holder: str) -> Dict[str, Any]:
        """
        Lock exclusivo: SET proxy:lock:{ip}:{port}:{user}:{pass} holder NX.

        Raises:
            InvalidArgumentError: chave ou holder inválidos
            ConflictError: lock já adquirido (data traz o holder atual)
        """
        client, keys = self._ctx(env)
        proxy_key = ProxyKey.parse(key, keys.proxy_prefix)
        if not holder or not holder.strip():
            raise InvalidArgumentError("identifier é obrigatório para lock")
        lock_key = proxy_key.key(keys.lock_prefix)

        if not await client.set(lock_key, holder.strip(), nx=True, ex=self._lock_ttl):
            current = await client.get(lock_key)
            raise ConflictError(
                "Proxy já está travado",
                data={"lock_key": lock_key, "current_worker": current},
            )
        logger.info(f"[ProxyRegistry] 🔒 Lock adquirido: {lock_key} por {holder.strip()}")
        return {"lock_key": lock_key, "lock_value": holder.strip(), "proxy_id": key}

    @upstream_guard
    async def unlock(self, env: str, lock_key: str, holder: Optional[str] = None) -> Dict[str, Any]:
        """
        Libera um lock. Sem holder, qualquer chamador pode liberar; com holder,
        o lock só é liberado se pertencer a ele.

        Raises:
            NotFoundError: lock inexistente
            ConflictError: holder informado diferente do atual
        """
        client, keys = self._ctx(env)
        ProxyKey.parse(lock_key, keys.lock_prefix)
        current = await client.get(lock_key)
        if current is None:
            raise NotFoundError(f"Lock não encontrado: {lock_key}")
        if holder is not None and holder != current:
            raise ConflictError(
                "Lock pertence a outro worker",
                data={"lock_key": lock_key, "current_worker": current},
            )
        await client.delete(lock_key)
        logger.info(f"[ProxyRegistry] 🔓 Lock liberado: {lock_key} (era de {current})")
        return {"lock_key": lock_key, "previous_worker": current}
