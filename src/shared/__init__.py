"""
Shared Kernel Module
====================

Shared infrastructure used across all bounded contexts (identity, routing,
incidents and triage).

Architecture Pattern: Modular Monolith
- Each module is a bounded context
- Shared kernel contains only generic infrastructure: logging, API schemas,
  error middleware and the realtime endpoint

DO NOT add incident or triage business logic to the shared kernel.
"""

__version__ = "1.0.0"
