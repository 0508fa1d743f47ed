"""
agendaguard - half-day training scheduler with external calendar conflict checks.
"""

__version__ = "0.1.0"
