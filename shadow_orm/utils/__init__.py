"""
Utilities package for shadow-orm.

Exports shared helpers for cross-cutting concerns (logging). Keep this package
lightweight and free of schema or storage logic.
"""

from shadow_orm.utils.logging import JsonFormatter, configure_logging, get_logger

__all__ = [
    "JsonFormatter",
    "configure_logging",
    "get_logger",
]
