"""
Endpoints do reenqueue v2 - itens aguardando devolução manual para pending.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from scrape_orchestrator.api.deps import get_environment, get_services
from scrape_orchestrator.core.constants import DEFAULT_LIMIT, DEFAULT_PAGE, MAX_LIMIT
from scrape_orchestrator.core.security import get_api_key
from scrape_orchestrator.schemas.v2.common import ApiResponse, ok
from scrape_orchestrator.schemas.v2.queues import NamespaceRequest, RequeueRequest
from scrape_orchestrator.services.container import ServiceContainer

router = APIRouter(prefix="/reenqueue")
admin = [Depends(get_api_key)]


@router.get("", response_model=ApiResponse)
async def list_reenqueue(
    page: int = Query(DEFAULT_PAGE, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    search: Optional[str] = Query(None),
    namespace: Optional[str] = Query(None),
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    return ok(await services.reenqueue.list(env, page, limit, search, namespace))


@router.post("/requeue", response_model=ApiResponse, dependencies=admin)
async def requeue_one(
    request: RequeueRequest,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    result = await services.reenqueue.requeue_one(env, request.id, request.namespace)
    return ok(result, "Item requeued")


@router.post("/requeue-all", response_model=ApiResponse, dependencies=admin)
async def requeue_all(
    request: NamespaceRequest,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    return ok(await services.reenqueue.requeue_all(env, request.namespace))


@router.delete("/all", response_model=ApiResponse, dependencies=admin)
async def delete_all(
    namespace: str = Query(...),
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    return ok(await services.reenqueue.delete_all(env, namespace))


@router.delete("", response_model=ApiResponse, dependencies=admin)
async def delete_one(
    id: str = Query(...),
    namespace: str = Query(...),
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    return ok(await services.reenqueue.delete_one(env, id, namespace), "Item deleted")
