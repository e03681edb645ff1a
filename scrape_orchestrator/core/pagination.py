from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from scrape_orchestrator.core.constants import DEFAULT_LIMIT, DEFAULT_PAGE, MAX_LIMIT
from scrape_orchestrator.core.errors import InvalidArgumentError


@dataclass(frozen=True)
class PageRequest:
    """Janela de paginação (page >= 1, 1 <= limit <= MAX_LIMIT)."""
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    def __post_init__(self):
        if self.page < 1:
            raise InvalidArgumentError("page deve ser >= 1")
        if self.limit < 1 or self.limit > MAX_LIMIT:
            raise InvalidArgumentError(f"limit deve estar entre 1 e {MAX_LIMIT}")

    @property
    def start(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def stop(self) -> int:
        """Índice final exclusivo."""
        return self.start + self.limit

    def slice(self, items: Sequence[Any]) -> List[Any]:
        return list(items[self.start:self.stop])

    def meta(self, total_items: int) -> Dict[str, int]:
        return {
            "current_page": self.page,
            "per_page": self.limit,
            "total_items": total_items,
            "total_pages": (total_items + self.limit - 1) // self.limit,
        }
