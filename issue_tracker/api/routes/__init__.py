"""Route modules exposed by the API package."""

from . import issues, ping, work_orders

__all__ = ["issues", "ping", "work_orders"]
