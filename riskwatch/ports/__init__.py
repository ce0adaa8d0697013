"""
Port interfaces for RiskWatch hexagonal architecture.

This module defines the port interfaces (Protocols) that define
the contracts between the core domain and external adapters.
"""

from .analysis import AnalysisPort
from .incident_store import IncidentStorePort
from .graph import GraphStorePort
from .cache import CachePort
from .transport import DeliveryTransportPort
from .observers import ObserverRegistryPort
from .verification import VerificationPort

__all__ = [
    "AnalysisPort", "IncidentStorePort", "GraphStorePort", "CachePort",
    "DeliveryTransportPort", "ObserverRegistryPort", "VerificationPort",
]
