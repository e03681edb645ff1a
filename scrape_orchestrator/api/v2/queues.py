"""
Endpoints de filas v2 - pending (sorted set) e failed (lista) por namespace.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from scrape_orchestrator.api.deps import get_environment, get_services
from scrape_orchestrator.core.constants import (
    DEFAULT_LIMIT,
    DEFAULT_NEXT_COUNT,
    DEFAULT_PAGE,
    MAX_LIMIT,
    QUEUE_FAILED,
    QUEUE_PENDING,
    normalize_queue_type,
)
from scrape_orchestrator.core.security import get_api_key
from scrape_orchestrator.schemas.v2.common import ApiResponse, ok
from scrape_orchestrator.schemas.v2.queues import EnqueueRequest, ItemIdRequest, PriorityRequest
from scrape_orchestrator.schemas.work_item import normalize_work_item
from scrape_orchestrator.services.container import ServiceContainer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/queues")
admin = [Depends(get_api_key)]


@router.get("/stats", response_model=ApiResponse)
async def queue_stats(env: str = Depends(get_environment), services: ServiceContainer = Depends(get_services)):
    return ok(await services.queues.stats(env))


@router.post("/seed-watchlist", response_model=ApiResponse, dependencies=admin)
async def seed_watchlist(env: str = Depends(get_environment), services: ServiceContainer = Depends(get_services)):
    """Enfileira as marcas da watchlist do catálogo com prioridade alta."""
    return ok(await services.queues.seed_watchlist(env), "Watchlist seeded")


@router.get("/watchlist/status", response_model=ApiResponse)
async def watchlist_status(
    page: int = Query(DEFAULT_PAGE, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    search: Optional[str] = Query(None),
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    """Status do scraper (pending / failed / completed) de cada marca da watchlist."""
    return ok(await services.queues.watchlist_status(env, page, limit, search))


@router.get("/{namespace}/pending", response_model=ApiResponse)
async def pending_page(
    namespace: str,
    page: int = Query(DEFAULT_PAGE, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    search: Optional[str] = Query(None),
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    return ok(await services.queues.get_page(env, namespace, QUEUE_PENDING, page, limit, search))


@router.get("/{namespace}/failed", response_model=ApiResponse)
async def failed_page(
    namespace: str,
    page: int = Query(DEFAULT_PAGE, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    search: Optional[str] = Query(None),
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    return ok(await services.queues.get_page(env, namespace, QUEUE_FAILED, page, limit, search))


@router.get("/{namespace}/next", response_model=ApiResponse)
async def next_items(
    namespace: str,
    count: int = Query(DEFAULT_NEXT_COUNT, ge=1, le=MAX_LIMIT),
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    """Próximos itens a processar, sem removê-los da fila."""
    return ok(await services.queues.get_next(env, namespace, count))


@router.post("/{namespace}/enqueue", response_model=ApiResponse, status_code=201, dependencies=admin)
async def enqueue(
    namespace: str,
    request: EnqueueRequest,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    item = normalize_work_item(request.item)
    return ok(await services.queues.enqueue(env, namespace, item, request.score), "Item enqueued")


@router.post("/{namespace}/move/to-failed", response_model=ApiResponse, dependencies=admin)
async def move_to_failed(
    namespace: str,
    request: ItemIdRequest,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    return ok(await services.queues.move_to_failed(env, namespace, request.id), "Item moved to failed")


@router.post("/{namespace}/move/to-pending", response_model=ApiResponse, dependencies=admin)
async def move_to_pending(
    namespace: str,
    request: ItemIdRequest,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    return ok(await services.queues.move_to_pending(env, namespace, request.id), "Item moved to pending")


@router.post("/{namespace}/move/all-to-failed", response_model=ApiResponse, dependencies=admin)
async def move_all_to_failed(
    namespace: str,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    return ok(await services.queues.move_all_pending_to_failed(env, namespace))


@router.post("/{namespace}/move/all-to-pending", response_model=ApiResponse, dependencies=admin)
async def move_all_to_pending(
    namespace: str,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    return ok(await services.queues.move_all_failed_to_pending(env, namespace))


@router.post("/{namespace}/move/watchlist-failed-to-pending", response_model=ApiResponse, dependencies=admin)
async def move_watchlist_failed_to_pending(
    namespace: str,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    """Move de failed para pending apenas as marcas presentes na watchlist."""
    return ok(await services.queues.move_failed_to_pending_matching(env, namespace))


@router.put("/{namespace}/priority", response_model=ApiResponse, dependencies=admin)
async def change_priority(
    namespace: str,
    request: PriorityRequest,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    result = await services.queues.change_priority(
        env, namespace, request.queue_type, request.identifier, request.new_score
    )
    return ok(result, "Priority updated")


@router.delete("/{namespace}/clear", response_model=ApiResponse, dependencies=admin)
async def clear_queue(
    namespace: str,
    queue_type: Optional[str] = Query(None, description="pending, failed ou vazio para ambas"),
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    if queue_type is None:
        return ok(await services.queues.clear_all(env, namespace))
    if normalize_queue_type(queue_type) == QUEUE_PENDING:
        return ok(await services.queues.clear_pending(env, namespace))
    return ok(await services.queues.clear_failed(env, namespace))


@router.delete("/{namespace}/{queue_type}/{item_id}", response_model=ApiResponse, dependencies=admin)
async def remove_item(
    namespace: str,
    queue_type: str,
    item_id: str,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    return ok(await services.queues.remove(env, namespace, queue_type, item_id), "Item removed")
