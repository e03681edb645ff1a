"""
Catálogo de marcas (banco relacional).

Usado para enriquecer entradas das filas (nome, status) e para resolver
page_id ausente. O orquestrador só depende do protocolo BrandCatalog.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol

import asyncpg

from scrape_orchestrator.core.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BrandRecord:
    """Marca como vista pelo orquestrador."""
    id: str
    page_id: Optional[str]
    name: str
    status: Optional[str] = None


class BrandCatalog(Protocol):
    async def find_by_ids(self, ids: Iterable[str]) -> Dict[str, BrandRecord]:
        ...

    async def find_by_page_ids(self, page_ids: Iterable[str]) -> Dict[str, BrandRecord]:
        ...

    async def list_watchlist(self) -> List[BrandRecord]:
        ...

    async def close(self) -> None:
        ...


class NullCatalog:
    """Catálogo vazio, usado quando nenhum banco está configurado."""

    async def find_by_ids(self, ids: Iterable[str]) -> Dict[str, BrandRecord]:
        return {}

    async def find_by_page_ids(self, page_ids: Iterable[str]) -> Dict[str, BrandRecord]:
        return {}

    async def list_watchlist(self) -> List[BrandRecord]:
        return []

    async def close(self) -> None:
        return None


def _record(row) -> BrandRecord:
    return BrandRecord(
        id=str(row["id"]),
        page_id=str(row["page_id"]) if row["page_id"] is not None else None,
        name=row["actual_name"] or row["name"] or "Unknown",
        status=row["status"],
    )


class PostgresCatalog:
    """Catálogo sobre as tabelas brands e watch_lists via asyncpg."""

    def __init__(self, database_url: str, min_size: int = 1, max_size: int = 10):
        self._database_url = database_url
        self._min_size = min_size
        self._max_size = max_size
        self._pool: Optional[asyncpg.Pool] = None

    async def _get_pool(self) -> asyncpg.Pool:
        """
        Retorna pool de conexões, criando na primeira chamada.

        Raises:
            asyncpg.PostgresError / OSError: se não conseguir criar o pool
        """
        if self._pool is None:
            try:
                self._pool = await asyncpg.create_pool(
                    self._database_url,
                    min_size=self._min_size,
                    max_size=self._max_size,
                    command_timeout=60,
                )
                logger.info(
                    f"[PostgresCatalog] ✅ Pool asyncpg criado (min={self._min_size}, max={self._max_size})"
                )
            except (asyncpg.PostgresError, OSError) as e:
                logger.error(f"[PostgresCatalog] ❌ Erro ao criar pool asyncpg: {e}")
                raise
        return self._pool

    async def find_by_ids(self, ids: Iterable[str]) -> Dict[str, BrandRecord]:
        # ids das marcas são inteiros no banco
        numeric = sorted({int(i) for i in ids if str(i).isdigit()})
        if not numeric:
            return {}
        pool = await self._get_pool()
        rows = await pool.fetch(
            "SELECT id, page_id, name, actual_name, status FROM brands WHERE id = ANY($1::int[])",
            numeric,
        )
        return {str(row["id"]): _record(row) for row in rows}

    async def find_by_page_ids(self, page_ids: Iterable[str]) -> Dict[str, BrandRecord]:
        wanted = sorted({str(p) for p in page_ids if p})
        if not wanted:
            return {}
        pool = await self._get_pool()
        rows = await pool.fetch(
            "SELECT id, page_id, name, actual_name, status FROM brands WHERE page_id = ANY($1::text[])",
            wanted,
        )
        return {str(row["page_id"]): _record(row) for row in rows}

    async def list_watchlist(self) -> List[BrandRecord]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            """
            SELECT DISTINCT b.id, b.page_id, b.name, b.actual_name, b.status
            FROM watch_lists w
            JOIN brands b ON b.id = w.brand_id
            ORDER BY b.id
            """
        )
        return [_record(row) for row in rows]

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("[PostgresCatalog] 🔌 Pool asyncpg fechado")


class CatalogDirectory:
    """Um catálogo por ambiente; ambientes sem banco usam NullCatalog."""

    def __init__(self, catalogs: Optional[Dict[str, BrandCatalog]] = None):
        self._catalogs: Dict[str, BrandCatalog] = dict(catalogs or {})
        self._null = NullCatalog()

    @classmethod
    def from_settings(cls, settings: Settings) -> "CatalogDirectory":
        catalogs: Dict[str, BrandCatalog] = {}
        for env in settings.available_environments():
            url = settings.for_environment(env).database_url
            if url:
                catalogs[env] = PostgresCatalog(
                    url,
                    min_size=settings.DATABASE_POOL_MIN_SIZE,
                    max_size=settings.DATABASE_POOL_MAX_SIZE,
                )
            else:
                logger.warning(f"[CatalogDirectory] ⚠️ Sem DATABASE_URL para env={env}, usando catálogo vazio")
        return cls(catalogs)

    def get(self, env: str) -> BrandCatalog:
        return self._catalogs.get(env, self._null)

    async def close(self) -> None:
        for catalog in self._catalogs.values():
            await catalog.close()
