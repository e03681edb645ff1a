"""
Router principal para API v2.
Agrupa todos os endpoints v2 em um único router.
"""
from fastapi import APIRouter

from scrape_orchestrator.api.v2 import proxies, queues, reenqueue, stats

# Criar router principal
router = APIRouter()


@router.get("/")
async def v2_root():
    """Endpoint raiz da API v2 - lista endpoints disponíveis"""
    return {
        "version": "v2",
        "status": "ok",
        "endpoints": {
            "proxies": "GET /v2/proxies",
            "proxies_next": "GET /v2/proxies/next",
            "proxies_scraper_failed": "POST /v2/proxies/scraper/failed",
            "proxies_scraper_working": "POST /v2/proxies/scraper/working",
            "proxies_scraper_next_working": "GET /v2/proxies/scraper/next-working",
            "queues_stats": "GET /v2/queues/stats",
            "queues_pending": "GET /v2/queues/{namespace}/pending",
            "queues_failed": "GET /v2/queues/{namespace}/failed",
            "queues_next": "GET /v2/queues/{namespace}/next",
            "queues_watchlist_status": "GET /v2/queues/watchlist/status",
            "reenqueue": "GET /v2/reenqueue",
            "stats_day": "GET /v2/stats/day",
            "stats_ips": "GET /v2/stats/ips",
        },
        "docs": "/docs",
    }


# Incluir todos os routers v2
router.include_router(proxies.router, tags=["v2-proxies"])
router.include_router(queues.router, tags=["v2-queues"])
router.include_router(reenqueue.router, tags=["v2-reenqueue"])
router.include_router(stats.router, tags=["v2-stats"])

__all__ = ["router"]
