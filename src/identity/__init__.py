"""
Identity Module
===============

Bounded Context for users, credentials and roles.

Responsibilities:
- Sign up and log in users, issuing bearer tokens
- Verify bearer tokens and expose the authenticated caller
- Enforce role checks (employee, responder, admin)
- List users and responders, change roles through the admin path
"""

__version__ = "1.0.0"
