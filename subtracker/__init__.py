"""
SubTracker - Source Package

Recurring subscription tracking for a single user: monthly spend,
upcoming charges, duplicate detection and budget thresholds.

DESIGN PRINCIPLES:
1. Analysis is pure: snapshot in, derived results out
2. "Today" is always passed in, never read from the clock
3. Bad records degrade gracefully, they never crash a pass
4. Every user decision is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "SubTracker Team"
