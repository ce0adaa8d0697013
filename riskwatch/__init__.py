"""
RiskWatch: real-time incident monitoring and risk propagation.
"""

__version__ = "0.1.0"
