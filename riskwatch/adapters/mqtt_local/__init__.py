"""
Local MQTT delivery adapter for RiskWatch.

This module provides the implementation of DeliveryTransportPort
for fanning out events through a local MQTT broker.
"""

from .publisher_async import LocalMqttPublisher

__all__ = ["LocalMqttPublisher"]
