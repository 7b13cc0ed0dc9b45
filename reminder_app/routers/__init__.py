"""Routers package for the reminder service."""

from .delivery import router as delivery_router
from .reminders import router as reminders_router

__all__ = ["delivery_router", "reminders_router"]
