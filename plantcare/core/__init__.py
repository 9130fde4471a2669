"""
Core configuration and utilities for the Plant Care service.
"""

from plantcare.core.deps import (
    depends_health_client,
    depends_repository,
    depends_settings,
    depends_user_id,
)

__all__ = [
    "depends_health_client",
    "depends_repository",
    "depends_settings",
    "depends_user_id",
]
