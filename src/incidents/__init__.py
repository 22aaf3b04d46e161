"""
Incidents Module
================

Bounded Context for the incident lifecycle.

Responsibilities:
- Create incidents through the triage pipeline and routing rules
- Enforce the Open -> Investigating -> Resolved workflow
- Record comments, attachments, watchers, assignment and activity
- Publish realtime events and compute dashboard metrics
"""

__version__ = "1.0.0"
