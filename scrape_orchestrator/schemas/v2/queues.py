"""
Schemas Pydantic para os endpoints de filas e reenqueue v2.
"""
from typing import Any, Dict, Union

from pydantic import BaseModel, ConfigDict, Field


class EnqueueRequest(BaseModel):
    """
    Request schema para enfileirar um item em pending.

    Campos:
        item: Objeto com id (ou brand_id/queue_id) e page_id
        score: Score no sorted set (0 normal, 1 alta prioridade)
    """
    item: Dict[str, Any] = Field(..., description="Item com id e page_id")
    score: float = Field(default=0, description="Score de prioridade")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"item": {"id": 7245, "page_id": "1234567890"}, "score": 1}
        }
    )


class ItemIdRequest(BaseModel):
    id: str = Field(..., description="Id do item na fila")


class PriorityRequest(BaseModel):
    """
    Alteração de prioridade.

    Para pending, new_score é o novo score; para failed, é a nova posição (1-based).
    """
    queue_type: str = Field(..., description="pending ou failed")
    identifier: str = Field(..., description="id, page_id ou nome da marca")
    new_score: Union[int, float, str] = Field(..., description="Score (pending) ou posição (failed)")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"queue_type": "failed", "identifier": "7245", "new_score": 1}
        }
    )


class RequeueRequest(BaseModel):
    id: str = Field(..., description="Id do item no reenqueue")
    namespace: str = Field(..., description="watchlist ou non-watchlist")


class NamespaceRequest(BaseModel):
    namespace: str = Field(..., description="watchlist ou non-watchlist")
