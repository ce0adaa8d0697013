"""
Common utilities for RiskWatch: geodesy, clocks and retries.
"""
