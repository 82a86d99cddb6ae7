"""Service layer utilities consolidating reusable business logic."""

from .network_manager import network_manager

__all__ = [
    "network_manager",
]
