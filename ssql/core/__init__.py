"""
Core Components

Configuration shared by the query builder and the SQL Server adapter.
"""

from ssql.core.config import Settings, settings, get_settings

__all__ = [
    "Settings",
    "settings",
    "get_settings",
]
