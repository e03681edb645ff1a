"""
Proxy Manager - registro, rotação e saúde dos proxies de saída.

- Registro de proxies (hashes no store global) com locks exclusivos
- Seleção least-usage e por score de rotação
- Diagnóstico de saúde e métricas de uso
"""

from .registry import ProxyRegistry, detect_ip_version
from .rotation import (
    ProxyRotation,
    health_score,
    overall_status,
    pick_best_scored,
    pick_least_used,
    rotation_score,
    usage_bucket,
)

__all__ = [
    # Registry
    "ProxyRegistry",
    "detect_ip_version",
    # Rotation
    "ProxyRotation",
    "rotation_score",
    "health_score",
    "overall_status",
    "usage_bucket",
    "pick_least_used",
    "pick_best_scored",
]
