# Persistence Layer - SQLite database, tracked state and subscribers

from .db import DatabaseManager, get_db, get_db_manager, set_db_manager
from .migrate import apply_migrations
from .state import load_state, save_state
from .subscribers import RemoveResult, SubscriberRegistry

__all__ = [
    "DatabaseManager",
    "get_db",
    "get_db_manager",
    "set_db_manager",
    "apply_migrations",
    "load_state",
    "save_state",
    "RemoveResult",
    "SubscriberRegistry",
]
