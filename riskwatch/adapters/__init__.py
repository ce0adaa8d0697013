"""
Adapters for RiskWatch hexagonal architecture.

This module contains the concrete implementations of port interfaces
that handle external I/O and infrastructure concerns.
"""

from .storage import (
    SQLiteCache, SQLiteGraphStore, SQLiteIncidentStore,
    SQLiteObserverRegistry, SQLiteOutbox,
)
from .mqtt_local.publisher_async import LocalMqttPublisher
from .analysis.http_client import AnalysisClient
from .analysis.static_provider import StaticAnalyzer
from .verification.official_source import OfficialSourceVerifier

__all__ = [
    "SQLiteCache", "SQLiteGraphStore", "SQLiteIncidentStore",
    "SQLiteObserverRegistry", "SQLiteOutbox",
    "LocalMqttPublisher", "AnalysisClient", "StaticAnalyzer",
    "OfficialSourceVerifier",
]
