"""
Storage adapters for RiskWatch hexagonal architecture.

This module contains SQLite-based adapters for incidents,
relationship edges, observers, the TTL cache and the delivery outbox.
"""

from .sqlite_cache import SQLiteCache
from .sqlite_graph import SQLiteGraphStore
from .sqlite_incidents import SQLiteIncidentStore
from .sqlite_observers import SQLiteObserverRegistry
from .sqlite_outbox import SQLiteOutbox

__all__ = [
    "SQLiteCache", "SQLiteGraphStore", "SQLiteIncidentStore",
    "SQLiteObserverRegistry", "SQLiteOutbox",
]
