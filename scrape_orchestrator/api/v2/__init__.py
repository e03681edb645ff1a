"""
API v2 endpoints.
"""

from . import proxies
from . import queues
from . import reenqueue
from . import stats

__all__ = [
    'proxies',
    'queues',
    'reenqueue',
    'stats',
]
