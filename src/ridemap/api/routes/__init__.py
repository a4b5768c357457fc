"""Route group exports."""

from . import health, planning, routes

__all__ = ["health", "planning", "routes"]
