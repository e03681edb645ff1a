"""
Schemas Pydantic para os endpoints de proxies v2.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProxyCreateRequest(BaseModel):
    """
    Request schema para adicionar proxy.

    Campos:
        ip: IPv4 ou IPv6
        port: Porta (1-65535)
        username / password: Credenciais (obrigatórias)
        type: http, https, socks4 ou socks5
        namespace: watchlist ou non-watchlist
        userAgent: User-Agent usado pelo scraper com este proxy
        viewport: 'largura,altura'
        version: ipv4 ou ipv6 (detectado do IP quando omitido)
    """
    ip: str = Field(..., description="Endereço IPv4 ou IPv6")
    port: int = Field(..., ge=1, le=65535, description="Porta do proxy")
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    type: str = Field(default="http", description="http, https, socks4 ou socks5")
    namespace: str = Field(default="non-watchlist", description="watchlist ou non-watchlist")
    userAgent: str = Field(default="", description="User-Agent associado")
    viewport: str = Field(default="", description="Viewport no formato 'largura,altura'")
    version: Optional[str] = Field(default=None, description="ipv4 ou ipv6")
    country: Optional[str] = Field(default=None, description="País do proxy")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "ip": "1.2.3.4",
                "port": 8080,
                "username": "user",
                "password": "pass",
                "type": "http",
                "namespace": "non-watchlist",
                "userAgent": "Mozilla/5.0",
                "viewport": "1366,768",
                "version": "ipv4",
            }
        }
    )


class ProxyUpdateRequest(BaseModel):
    """Campos atualizáveis de um proxy existente."""
    key: str = Field(..., description="Chave do proxy (ips:IP:PORT:USER:PASS)")
    country: Optional[str] = None
    type: Optional[str] = None
    namespace: Optional[str] = None
    userAgent: Optional[str] = None
    viewport: Optional[str] = None


class ProxyKeyRequest(BaseModel):
    key: str = Field(..., description="Chave do proxy (ips:IP:PORT:USER:PASS)")


class ProxyStatusRequest(BaseModel):
    key: str = Field(..., description="Chave do proxy")
    is_working: bool = Field(..., description="true ativa, false desativa manualmente")


class ProxyStatusItem(BaseModel):
    proxy_id: str
    is_working: bool


class BulkStatusRequest(BaseModel):
    updates: List[ProxyStatusItem] = Field(..., min_length=1)


class ProxyFailedRequest(BaseModel):
    """Relato de falha enviado pelo scraper."""
    key: str = Field(..., description="Chave do proxy")
    reason: Optional[str] = Field(default=None, description="Motivo da falha")


class ProxyLockRequest(BaseModel):
    key: str = Field(..., description="Chave do proxy")
    identifier: str = Field(..., min_length=1, description="Holder do lock (ex.: watchlist-1)")


class ProxyUnlockRequest(BaseModel):
    lock_key: str = Field(..., description="Chave do lock (proxy:lock:IP:PORT:USER:PASS)")
    identifier: Optional[str] = Field(
        default=None,
        description="Quando informado, só libera se o lock pertencer a este holder",
    )
