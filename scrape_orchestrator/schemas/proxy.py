"""
ProxyRecord - proxy armazenado como hash no store global.

Chave: {prefix}:{ip}:{port}:{username}:{password}
A chave é lida da direita para a esquerda para suportar IPv6 (que contém ':').
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from scrape_orchestrator.core.errors import InvalidArgumentError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProxyKey:
    ip: str
    port: str
    username: str
    password: str

    @classmethod
    def parse(cls, key: str, prefix: str) -> "ProxyKey":
        """
        Interpreta uma chave de proxy (ou de lock) com o prefixo informado.

        Raises:
            InvalidArgumentError: formato inválido
        """
        head = f"{prefix}:"
        if not key or not key.startswith(head):
            raise InvalidArgumentError(
                f"Chave de proxy inválida: {key}. Formato esperado {prefix}:IP:PORT:USERNAME:PASSWORD"
            )
        parts = key[len(head):].rsplit(":", 3)
        if len(parts) != 4 or not all(parts[:2]):
            raise InvalidArgumentError(
                f"Chave de proxy inválida: {key}. Formato esperado {prefix}:IP:PORT:USERNAME:PASSWORD"
            )
        return cls(*parts)

    @property
    def suffix(self) -> str:
        return f"{self.ip}:{self.port}:{self.username}:{self.password}"

    def key(self, prefix: str) -> str:
        return f"{prefix}:{self.suffix}"


def _counter(data: Dict[str, str], field: str, key: str) -> int:
    value = data.get(field)
    if value in (None, ""):
        return 0
    try:
        return int(value)
    except ValueError:
        logger.warning(f"[ProxyRecord] ⚠️ Contador inválido {field}={value!r} em {key}, usando 0")
        return 0


@dataclass
class ProxyRecord:
    """Visão tipada do hash de um proxy."""
    key: str
    ip: str
    port: str
    username: str
    password: str
    active: bool = True
    fail_count: int = 0
    success_count: int = 0
    country: str = "Unknown"
    type: str = "http"
    namespace: str = ""
    user_agent: str = ""
    viewport: str = ""
    version: str = ""
    created_at: Optional[str] = None
    disabled_at: Optional[str] = None
    failure_reason: Optional[str] = None
    is_locked: bool = False
    lock_worker: Optional[str] = None
    lock_key: Optional[str] = None

    @property
    def usage(self) -> int:
        return self.fail_count + self.success_count

    @classmethod
    def from_hash(cls, key: str, data: Dict[str, str], prefix: str) -> "ProxyRecord":
        parsed = ProxyKey.parse(key, prefix)
        return cls(
            key=key,
            ip=parsed.ip,
            port=parsed.port,
            username=parsed.username,
            password=parsed.password,
            active=data.get("active") == "true",
            fail_count=_counter(data, "failCount", key),
            success_count=_counter(data, "successCount", key),
            country=data.get("country") or "Unknown",
            type=data.get("type") or "http",
            namespace=data.get("namespace") or "",
            user_agent=data.get("userAgent") or "",
            viewport=data.get("viewport") or "",
            version=data.get("version") or "",
            created_at=data.get("created_at") or None,
            disabled_at=data.get("disabledAt") or None,
            failure_reason=data.get("failure_reason") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.key,
            "ip": self.ip,
            "port": self.port,
            "username": self.username,
            "password": self.password,
            "country": self.country,
            "type": self.type,
            "namespace": self.namespace,
            "userAgent": self.user_agent,
            "viewport": self.viewport,
            "version": self.version,
            "failCount": self.fail_count,
            "successCount": self.success_count,
            "usage_count": self.usage,
            "active": self.active,
            "is_working": self.active,
            "status": "active" if self.active else "inactive",
            "failure_reason": self.failure_reason,
            "disabled_at": self.disabled_at,
            "added_at": self.created_at,
            "is_locked": self.is_locked,
            "lock_worker": self.lock_worker,
            "lock_key": self.lock_key,
        }


def format_worker_name(holder: Optional[str]) -> Optional[str]:
    """Nome curto do worker: 'watchlist-1' -> 'WL-1', 'non-watchlist-1' -> 'NWL-1'."""
    if not holder:
        return None
    if holder.startswith("watchlist-"):
        return f"WL-{holder[len('watchlist-'):]}"
    if holder.startswith("non-watchlist-"):
        return f"NWL-{holder[len('non-watchlist-'):]}"
    return holder
