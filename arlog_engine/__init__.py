"""
AR System log analysis and aggregation engine.

Turns parsed transaction records (API, SQL, filter and escalation entries)
into the analytic views rendered by the analysis dashboard.
"""

__version__ = "0.1.0"
