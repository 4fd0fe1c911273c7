"""
Project Compass — team task boards with role-gated kanban moves and a
rate-limited email lookup service for member invites.

Packages:
    compass.engine  — config, errors, activity log, Redis cache, rate limiting
    compass.board   — tasks, roles, transition rules, review, analytics
    compass.lookup  — identity provider client, lookup pipeline, HTTP app
"""

__version__ = "1.0.0"
__all__ = ["engine", "board", "lookup"]
