"""
Schemas Pydantic comuns da API v2.
"""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ApiResponse(BaseModel):
    """
    Envelope padrão das respostas.

    Campos:
        success: Indica se a operação foi concluída
        message: Mensagem legível
        data: Resultado da operação
    """
    success: bool = Field(default=True, description="Indica se a operação foi concluída")
    message: str = Field(default="", description="Mensagem legível")
    data: Optional[Any] = Field(default=None, description="Resultado da operação")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "message": "Proxy retrieved successfully",
                "data": {"id": "ips:1.2.3.4:8080:user:pass"},
            }
        }
    )


class ErrorResponse(BaseModel):
    """Formato de erro retornado pelos exception handlers."""
    success: bool = Field(default=False)
    error: str = Field(..., description="Tipo do erro: invalid_argument, not_found, conflict, unavailable, upstream")
    detail: str = Field(..., description="Descrição do erro")
    data: Optional[Any] = Field(default=None, description="Contexto adicional (ex.: holder atual de um lock)")


def ok(data: Any = None, message: str = "") -> ApiResponse:
    return ApiResponse(success=True, message=message, data=data)
