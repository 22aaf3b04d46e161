"""
Infrastructure Layer
=====================

Low-level technical concerns:
- Logging setup and latency logging
"""
