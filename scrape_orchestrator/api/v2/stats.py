"""
Endpoints de estatísticas v2 - contadores diários e estatísticas por IP.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from scrape_orchestrator.api.deps import get_environment, get_services
from scrape_orchestrator.core.constants import DEFAULT_LIMIT, DEFAULT_PAGE, MAX_LIMIT, NAMESPACE_REGULAR
from scrape_orchestrator.core.security import get_api_key
from scrape_orchestrator.schemas.v2.common import ApiResponse, ok
from scrape_orchestrator.services.container import ServiceContainer

router = APIRouter(prefix="/stats")


@router.get("/day", response_model=ApiResponse)
async def day_stats(
    date: Optional[str] = Query(None, description="YYYY-MM-DD (hoje por padrão)"),
    namespace: str = Query(NAMESPACE_REGULAR),
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    return ok(await services.stats.day(env, date, namespace))


@router.get("/days", response_model=ApiResponse)
async def last_days(
    days: int = Query(7),
    namespace: str = Query(NAMESPACE_REGULAR),
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    return ok(await services.stats.last_days(env, days, namespace))


@router.get("/ips", response_model=ApiResponse)
async def ip_stats_list(
    page: int = Query(DEFAULT_PAGE, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    search: Optional[str] = Query(None),
    sort_by: str = Query("totalAds"),
    order: str = Query("desc"),
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    return ok(await services.stats.ip_stats_list(env, page, limit, search, sort_by, order))


@router.get("/ips/summary", response_model=ApiResponse)
async def ip_stats_summary(env: str = Depends(get_environment), services: ServiceContainer = Depends(get_services)):
    return ok(await services.stats.ip_stats_summary(env))


@router.get("/ips/{ip}", response_model=ApiResponse)
async def ip_stats(ip: str, env: str = Depends(get_environment), services: ServiceContainer = Depends(get_services)):
    return ok(await services.stats.ip_stats(env, ip))


@router.delete("/ips/{ip}", response_model=ApiResponse, dependencies=[Depends(get_api_key)])
async def delete_ip_stats(
    ip: str,
    env: str = Depends(get_environment),
    services: ServiceContainer = Depends(get_services),
):
    return ok(await services.stats.delete_ip_stats(env, ip), "IP stats deleted")
