import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from scrape_orchestrator.api.deps import get_environment, get_services
from scrape_orchestrator.api.v2.router import router as v2_router
from scrape_orchestrator.core.config import settings
from scrape_orchestrator.core.errors import OrchestratorError
from scrape_orchestrator.core.logging_utils import setup_logging
from scrape_orchestrator.services.container import ServiceContainer

# Configurar Logging (JSON Structured)
setup_logging()
logger = logging.getLogger(__name__)

SERVICE_NAME = "Scrape Orchestrator"


def create_app(services: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Cria a aplicação FastAPI.

    Sem container informado, o lifespan constrói um a partir das settings
    e o fecha no shutdown. Um container externo (testes) não é fechado aqui.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = services is None
        app.state.services = ServiceContainer.from_settings(settings) if owned else services
        logger.info(f"🚀 {SERVICE_NAME} inicializado (ambientes: {settings.available_environments()})")
        try:
            yield
        finally:
            if owned:
                await app.state.services.close()

    app = FastAPI(title=SERVICE_NAME, lifespan=lifespan)
    if services is not None:
        app.state.services = services

    # --- Global Exception Handlers ---

    @app.exception_handler(OrchestratorError)
    async def orchestrator_exception_handler(request: Request, exc: OrchestratorError):
        if exc.status_code >= 500:
            logger.error(f"[{exc.kind}] {request.method} {request.url.path}: {exc.message}")
        else:
            logger.warning(f"[{exc.kind}] {request.method} {request.url.path}: {exc.message}")
        content = {"success": False, "error": exc.kind, "detail": exc.message}
        if exc.data is not None:
            content["data"] = exc.data
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "detail": exc.detail}
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Global Error: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"success": False, "detail": "Internal Server Error", "error": str(exc)}
        )

    @app.get("/")
    async def root():
        return {"status": "ok", "service": SERVICE_NAME}

    @app.get("/health")
    async def health(
        env: str = Depends(get_environment),
        container: ServiceContainer = Depends(get_services),
    ):
        """Ping em cada conexão do ambiente (global, regular, watchlist)."""
        stores = await container.store.ping(env)
        healthy = all(stores.values())
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={
                "status": "healthy" if healthy else "degraded",
                "environment": env,
                "stores": stores,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    app.include_router(v2_router, prefix="/v2")
    return app


app = create_app()
