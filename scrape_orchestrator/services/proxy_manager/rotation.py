"""
Proxy Rotation Engine - seleção e diagnóstico de saúde dos proxies.

Duas políticas de seleção convivem:
- least-usage: menor failCount + successCount entre os ativos (pedidos gerais)
- scored: maior score de rotação (troca automática após falha)

Seleções concorrentes podem escolher o mesmo proxy antes de qualquer
incremento; proxies são recurso compartilhado, então isso só gera uso extra.
Exclusividade usa os locks do ProxyRegistry.
"""
import logging
from typing import Any, Dict, List, Optional

from scrape_orchestrator.core.errors import InvalidArgumentError, UnavailableError, upstream_guard
from scrape_orchestrator.schemas.proxy import ProxyRecord
from scrape_orchestrator.services.proxy_manager.registry import ProxyRegistry

logger = logging.getLogger(__name__)

CRITICAL_HEALTH = 30
WARNING_HEALTH = 60


def rotation_score(fail_count: int, success_count: int) -> int:
    """
    Score de rotação (maior = melhor).

    100 - penalidade de uso (acima de 500 e de 1000 usos)
        - penalidade de falha (taxa de falha acima de 30%)
        + bônus de 10 para proxies com menos de 100 usos
    """
    usage = fail_count + success_count
    score = 100
    if usage > 1000:
        score -= min(30, usage // 100)
    elif usage > 500:
        score -= min(20, usage // 50)
    if usage < 100:
        score += 10
    if usage > 0:
        failure_rate = fail_count / usage
        if failure_rate > 0.3:
            score -= min(25, int(failure_rate * 50))
    return max(0, score)


def health_score(fail_count: int, success_count: int, active: bool) -> int:
    """Score de saúde 0-100 (diagnóstico, não usado na seleção)."""
    score = 100
    if not active:
        score -= 50
    usage = fail_count + success_count
    if usage > 0:
        failure_rate = fail_count / usage
        if failure_rate > 0.5:
            score -= min(30, int(failure_rate * 60))
    if usage > 1000:
        score -= min(20, usage // 100)
    return max(0, score)


def overall_status(active_count: int, inactive_count: int, average_health: float) -> str:
    if active_count == 0 and inactive_count == 0:
        return "no_proxies"
    if inactive_count == 0:
        return "excellent"
    if average_health >= 80:
        return "good"
    if average_health >= 60:
        return "fair"
    if average_health >= 40:
        return "poor"
    return "critical"


def usage_bucket(usage: int) -> str:
    if usage <= 100:
        return "low"
    if usage <= 500:
        return "medium"
    if usage <= 1000:
        return "high"
    return "very_high"


def pick_least_used(records: List[ProxyRecord]) -> Optional[ProxyRecord]:
    active = [r for r in records if r.active]
    if not active:
        return None
    return min(active, key=lambda r: (r.usage, r.key))


def pick_best_scored(records: List[ProxyRecord]) -> Optional[ProxyRecord]:
    active = [r for r in records if r.active]
    if not active:
        return None
    return min(active, key=lambda r: (-rotation_score(r.fail_count, r.success_count), r.usage, r.key))


def _health_view(record: ProxyRecord) -> Dict[str, Any]:
    return {
        "id": record.key,
        "failCount": record.fail_count,
        "successCount": record.success_count,
        "usage_count": record.usage,
        "active": record.active,
        "health_score": health_score(record.fail_count, record.success_count, record.active),
    }


class ProxyRotation:
    """Políticas de seleção e relatórios de saúde sobre o ProxyRegistry."""

    def __init__(self, registry: ProxyRegistry):
        self._registry = registry

    @upstream_guard
    async def select_next(self, env: str) -> ProxyRecord:
        """
        Least-usage, somente leitura (chamada next-working do scraper).

        Raises:
            UnavailableError: nenhum proxy ativo
        """
        record = pick_least_used(await self._registry.all_records(env))
        if record is None:
            raise UnavailableError("Nenhum proxy ativo disponível")
        return record

    @upstream_guard
    async def acquire_next(self, env: str) -> ProxyRecord:
        """
        Least-usage registrando a alocação (successCount += 1).

        Raises:
            UnavailableError: nenhum proxy ativo
        """
        record = await self.select_next(env)
        allocated = await self._registry.record_allocation(env, record.key)
        logger.info(f"[ProxyRotation] 🎯 Proxy alocado (least-usage): {record.key} uso={allocated.usage}")
        return allocated

    @upstream_guard
    async def select_best(self, env: str) -> ProxyRecord:
        """
        Seleção por score de rotação, registrando a alocação.

        Raises:
            UnavailableError: nenhum proxy ativo
        """
        record = pick_best_scored(await self._registry.all_records(env))
        if record is None:
            raise UnavailableError("Nenhum proxy ativo disponível")
        allocated = await self._registry.record_allocation(env, record.key)
        logger.info(
            f"[ProxyRotation] 🎯 Proxy alocado (scored): {record.key} "
            f"score={rotation_score(record.fail_count, record.success_count)}"
        )
        return allocated

    @upstream_guard
    async def switch_on_failure(self, env: str, failed_key: str) -> Dict[str, Any]:
        """
        Desativa o proxy que falhou e seleciona o próximo por score.

        Raises:
            NotFoundError: proxy que falhou não existe
            UnavailableError: nenhum outro proxy ativo
        """
        await self._registry.set_active(env, failed_key, False)
        logger.warning(f"[ProxyRotation] 🔄 Proxy {failed_key} desativado, trocando")
        current = await self.select_best(env)
        return {"previous_proxy_id": failed_key, "current_proxy": current.to_dict()}

    @upstream_guard
    async def force_rotate(self, env: str, target_key: str) -> ProxyRecord:
        """
        Força o uso de um proxy específico (precisa existir e estar ativo).

        Raises:
            NotFoundError: proxy inexistente
            InvalidArgumentError: proxy inativo
        """
        target = await self._registry.get(env, target_key)
        if not target.active:
            raise InvalidArgumentError(f"Proxy alvo não está ativo: {target_key}")
        return await self._registry.record_allocation(env, target_key)

    @upstream_guard
    async def rotation_history(self, env: str) -> Dict[str, Any]:
        """Todos os proxies, do mais usado para o menos usado."""
        records = sorted(await self._registry.all_records(env), key=lambda r: (-r.usage, r.key))
        return {"total_rotations": len(records), "history": [r.to_dict() for r in records]}

    @upstream_guard
    async def failover_recommendations(self, env: str) -> Dict[str, Any]:
        groups: Dict[str, List[Dict[str, Any]]] = {"critical": [], "warning": [], "healthy": []}
        for record in await self._registry.all_records(env):
            score = health_score(record.fail_count, record.success_count, record.active)
            view = {
                "id": record.key,
                "ip": record.ip,
                "port": record.port,
                "country": record.country,
                "health_score": score,
            }
            if score < CRITICAL_HEALTH:
                groups["critical"].append({**view, "reason": "Very low health score"})
            elif score < WARNING_HEALTH:
                groups["warning"].append({**view, "reason": "Low health score"})
            else:
                groups["healthy"].append(view)
        return {
            "critical_count": len(groups["critical"]),
            "warning_count": len(groups["warning"]),
            "healthy_count": len(groups["healthy"]),
            "recommendations": groups,
        }

    @upstream_guard
    async def proxy_health(self, env: str, key: str) -> Dict[str, Any]:
        return _health_view(await self._registry.get(env, key))

    @upstream_guard
    async def system_health(self, env: str) -> Dict[str, Any]:
        records = await self._registry.all_records(env)
        if not records:
            return {
                "total_proxies": 0,
                "active_proxies": 0,
                "inactive_proxies": 0,
                "health_score": 0,
                "status": "no_proxies",
                "details": [],
            }

        details = [_health_view(r) for r in records]
        active = sum(1 for r in records if r.active)
        inactive = len(records) - active
        average = round(sum(d["health_score"] for d in details) / len(details))
        return {
            "total_proxies": len(records),
            "active_proxies": active,
            "inactive_proxies": inactive,
            "health_score": average,
            "status": overall_status(active, inactive, average),
            "details": details,
        }

    @upstream_guard
    async def performance_metrics(self, env: str) -> Dict[str, Any]:
        records = await self._registry.all_records(env)
        buckets = {"low": 0, "medium": 0, "high": 0, "very_high": 0}
        for record in records:
            buckets[usage_bucket(record.usage)] += 1
        active = sum(1 for r in records if r.active)
        return {
            "total_proxies": len(records),
            "performance_by_usage": buckets,
            "active_vs_inactive": {"active": active, "inactive": len(records) - active},
        }
