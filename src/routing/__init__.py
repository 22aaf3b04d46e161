"""
Routing Module
==============

Bounded Context for routing rules.

Responsibilities:
- Admin-managed rules mapping a category to a team and optional assignee
- Creation-time resolution of the rule that routes a new incident
"""

__version__ = "1.0.0"
