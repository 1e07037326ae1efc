"""
Strava activity sync.

OAuth credential lifecycle, activity reconciliation and aggregate stats
for Strava-connected users.
"""

__version__ = "0.1.0"
