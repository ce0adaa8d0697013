"""
Feature services for RiskWatch.

This module contains the services that combine the pure core
functions with the ports: clustering with its cache, the
relationship graph, statistics and notification fan-out.
"""

from .cluster_engine import ClusterEngine
from .dispatcher import NotificationDispatcher
from .relationship_graph import RelationshipGraph
from .statistics import StatisticsService

__all__ = ["ClusterEngine", "NotificationDispatcher", "RelationshipGraph", "StatisticsService"]
