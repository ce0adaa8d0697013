"""
Observability for RiskWatch: logging, metrics and HTTP endpoints.
"""
