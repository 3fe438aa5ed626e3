from .settings import Settings, settings
from .database import DatabaseManager, db_manager, get_database, ensure_indexes

__all__ = [
    "Settings",
    "settings",
    "DatabaseManager",
    "db_manager",
    "get_database",
    "ensure_indexes",
]
