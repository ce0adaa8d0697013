"""
Core domain models and pure functions for RiskWatch.

This module contains the domain models and pure business logic
that are independent of external I/O and infrastructure concerns.
"""

from .errors import CollaboratorUnavailable, InvalidInput, NotFound, RiskWatchError
from .models import (
    Cluster, GeoPoint, Incident, IncidentAnalysis, IncidentMetadata,
    Notification, Observer, RelatedIncident, TimelineEntry, VerificationSignals,
)
from .risk import risk_level, score
from .clustering import ClusterPoint, cluster

__all__ = [
    "RiskWatchError", "InvalidInput", "CollaboratorUnavailable", "NotFound",
    "Cluster", "GeoPoint", "Incident", "IncidentAnalysis", "IncidentMetadata",
    "Notification", "Observer", "RelatedIncident", "TimelineEntry", "VerificationSignals",
    "score", "risk_level", "ClusterPoint", "cluster",
]
