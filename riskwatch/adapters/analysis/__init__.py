"""
Incident analysis adapters for RiskWatch.

This module provides the HTTP client for the external analysis
service and a deterministic analyzer for dry-run mode.
"""

from .http_client import AnalysisClient
from .static_provider import StaticAnalyzer

__all__ = ["AnalysisClient", "StaticAnalyzer"]
