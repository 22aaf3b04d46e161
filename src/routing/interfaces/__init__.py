"""
Routing Interfaces Layer
========================
"""

from src.routing.interfaces.controllers import routing_router

__all__ = ["routing_router"]
