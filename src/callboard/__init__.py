"""callboard - a live queue-number display board backed by Redis.

Architecture:
- Redis holds every piece of state; the server keeps no authoritative copy
- Counter changes are single atomic commands (INCR, a floor-at-zero Lua script)
- Featured links are edited with WATCH/MULTI/EXEC and retried on conflict
- Every change fans out to connected displays through Redis pub/sub
- New displays catch up from a one-transaction snapshot
"""

from .auth import Authenticator, Identity, TokenAuthenticator
from .board import Board
from .broadcast import Broadcaster
from .client import BoardClient
from .config import Config
from .errors import (
    AuthenticationError,
    AuthorizationError,
    CallboardError,
    ConcurrencyConflictError,
    StoreUnavailableError,
    ValidationError,
)
from .keys import Keys
from .models import FeaturedItem, Snapshot
from .observability import configure as configure_observability
from .optimistic import INVALID, mutate
from .server import BoardServer

__all__ = [
    # Service
    "Board",
    "Keys",
    "Config",
    # Data
    "FeaturedItem",
    "Snapshot",
    # Concurrency
    "mutate",
    "INVALID",
    # Fan-out
    "Broadcaster",
    # Surfaces
    "BoardServer",
    "BoardClient",
    # Auth
    "Authenticator",
    "Identity",
    "TokenAuthenticator",
    # Errors
    "CallboardError",
    "ValidationError",
    "ConcurrencyConflictError",
    "StoreUnavailableError",
    "AuthenticationError",
    "AuthorizationError",
    # Observability
    "configure_observability",
]
__version__ = "0.1.0"
