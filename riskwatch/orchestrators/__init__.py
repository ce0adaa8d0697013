"""
Orchestrators for RiskWatch.

This module contains the scheduler that coordinates
the flow between ports, adapters and feature services.
"""
from .monitor import MonitorScheduler, PassResult

__all__ = ["MonitorScheduler", "PassResult"]
