"""
Incident verification adapters for RiskWatch.
"""

from .official_source import OfficialSourceVerifier

__all__ = ["OfficialSourceVerifier"]
