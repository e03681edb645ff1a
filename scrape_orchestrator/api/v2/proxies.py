"""
Endpoints de proxies v2 - cadastro, rotação, locks e relatos do scraper.

Rotas de leitura e de relato do scraper são abertas; rotas que alteram o
cadastro exigem X-API-Key.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from scrape_orchestrator.api.deps import get_environment, get_services
from scrape_orchestrator.core.constants import DEFAULT_LIMIT, DEFAULT_PAGE, MAX_LIMIT
from scrape_orchestrator.core.security import get_api_key
from scrape_orchestrator.schemas.v2.common import ApiResponse, ok
from scrape_orchestrator.schemas.v2.proxies import (
    BulkStatusRequest,
    ProxyCreateRequest,
    ProxyFailedRequest,
    ProxyKeyRequest,
    ProxyLockRequest,
    ProxyStatusRequest,
    ProxyUnlockRequest,
    ProxyUpdateRequest,
)
from scrape_orchestrator.services.container import ServiceContainer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/proxies")
admin = [Depends(get_api_key)]


# ----------------------------------------------------------------------
# Leitura
# ----------------------------------------------------------------------

@router.get("", response_model=ApiResponse)
async def list_proxies(
    page: int = Query(DEFAULT_PAGE, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    filter: str = Query("all", description="all, working ou failed"),
    search: Optional[str] = Query(None),
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    result = await services.proxies.list(env, page, limit, filter, search)
    return ok(result, "Proxies retrieved successfully")


@router.get("/stats", response_model=ApiResponse)
async def proxy_stats(env: str = Depends(get_environment), services: ServiceContainer = Depends(get_services)):
    return ok(await services.proxies.stats(env))


@router.get("/management-stats", response_model=ApiResponse)
async def management_stats(env: str = Depends(get_environment), services: ServiceContainer = Depends(get_services)):
    return ok(await services.proxies.management_stats(env))


@router.get("/available", response_model=ApiResponse)
async def available_proxies(env: str = Depends(get_environment), services: ServiceContainer = Depends(get_services)):
    return ok(await services.proxies.available(env))


@router.get("/health", response_model=ApiResponse)
async def system_health(env: str = Depends(get_environment), services: ServiceContainer = Depends(get_services)):
    return ok(await services.rotation.system_health(env))


@router.get("/health/proxy", response_model=ApiResponse)
async def proxy_health(
    key: str = Query(..., description="Chave do proxy"),
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    return ok(await services.rotation.proxy_health(env, key))


@router.get("/performance", response_model=ApiResponse)
async def performance(env: str = Depends(get_environment), services: ServiceContainer = Depends(get_services)):
    return ok(await services.rotation.performance_metrics(env))


@router.get("/history", response_model=ApiResponse)
async def rotation_history(env: str = Depends(get_environment), services: ServiceContainer = Depends(get_services)):
    return ok(await services.rotation.rotation_history(env))


@router.get("/recommendations", response_model=ApiResponse)
async def recommendations(env: str = Depends(get_environment), services: ServiceContainer = Depends(get_services)):
    return ok(await services.rotation.failover_recommendations(env))


@router.get("/next", response_model=ApiResponse)
async def next_proxy(env: str = Depends(get_environment), services: ServiceContainer = Depends(get_services)):
    """Próximo proxy por menor uso; registra a alocação."""
    record = await services.rotation.acquire_next(env)
    return ok(record.to_dict(), "Next proxy allocated")


# ----------------------------------------------------------------------
# Relatos do scraper
# ----------------------------------------------------------------------

@router.post("/scraper/failed", response_model=ApiResponse)
async def scraper_failed(
    request: ProxyFailedRequest,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    record = await services.proxies.mark_failed(env, request.key, request.reason)
    return ok(record.to_dict(), "Proxy marked as failed")


@router.post("/scraper/working", response_model=ApiResponse)
async def scraper_working(
    request: ProxyKeyRequest,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    record = await services.proxies.mark_working(env, request.key)
    return ok(record.to_dict(), "Proxy marked as working")


@router.get("/scraper/next-working", response_model=ApiResponse)
async def scraper_next_working(env: str = Depends(get_environment), services: ServiceContainer = Depends(get_services)):
    """Próximo proxy ativo de menor uso, sem registrar alocação."""
    record = await services.rotation.select_next(env)
    return ok(record.to_dict())


@router.post("/switch", response_model=ApiResponse)
async def switch_proxy(
    request: ProxyKeyRequest,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    """Desativa o proxy com falha e retorna o melhor substituto."""
    return ok(await services.rotation.switch_on_failure(env, request.key), "Proxy switched")


# ----------------------------------------------------------------------
# Administração
# ----------------------------------------------------------------------

@router.post("", response_model=ApiResponse, status_code=201, dependencies=admin)
async def add_proxy(
    request: ProxyCreateRequest,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    record = await services.proxies.add(
        env,
        ip=request.ip,
        port=request.port,
        username=request.username,
        password=request.password,
        type=request.type,
        namespace=request.namespace,
        user_agent=request.userAgent,
        viewport=request.viewport,
        version=request.version,
        country=request.country,
    )
    return ok(record.to_dict(), "Proxy added successfully")


@router.put("", response_model=ApiResponse, dependencies=admin)
async def update_proxy(
    request: ProxyUpdateRequest,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    changes = request.model_dump(exclude={"key"}, exclude_none=True)
    record = await services.proxies.update(env, request.key, changes)
    return ok(record.to_dict(), "Proxy updated successfully")


@router.delete("", response_model=ApiResponse, dependencies=admin)
async def remove_proxy(
    key: str = Query(..., description="Chave do proxy"),
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    record = await services.proxies.remove(env, key)
    return ok(record.to_dict(), "Proxy removed successfully")


@router.delete("/clear", response_model=ApiResponse, dependencies=admin)
async def clear_proxies(env: str = Depends(get_environment), services: ServiceContainer = Depends(get_services)):
    return ok(await services.proxies.clear_all(env), "All proxies removed")


@router.put("/status", response_model=ApiResponse, dependencies=admin)
async def set_status(
    request: ProxyStatusRequest,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    record = await services.proxies.set_status(env, request.key, request.is_working)
    return ok(record.to_dict(), "Proxy status updated")


@router.put("/status/bulk", response_model=ApiResponse, dependencies=admin)
async def bulk_status(
    request: BulkStatusRequest,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    updates = [u.model_dump() for u in request.updates]
    return ok(await services.proxies.bulk_set_status(env, updates))


@router.post("/lock", response_model=ApiResponse, dependencies=admin)
async def lock_proxy(
    request: ProxyLockRequest,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    return ok(await services.proxies.lock(env, request.key, request.identifier), "Proxy locked")


@router.post("/unlock", response_model=ApiResponse, dependencies=admin)
async def unlock_proxy(
    request: ProxyUnlockRequest,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    return ok(await services.proxies.unlock(env, request.lock_key, request.identifier), "Proxy unlocked")


@router.post("/force-rotate", response_model=ApiResponse, dependencies=admin)
async def force_rotate(
    request: ProxyKeyRequest,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    record = await services.rotation.force_rotate(env, request.key)
    logger.info(f"[Proxies API] 🔄 Rotação forçada para {record.key}")
    return ok(record.to_dict(), "Rotation forced")
