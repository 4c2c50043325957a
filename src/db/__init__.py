"""Module de gestion de la base de données."""

from src.db.connection import (
    build_database_url,
    create_sync_engine,
    get_connection,
)

__all__ = [
    # connection
    "build_database_url",
    "create_sync_engine",
    "get_connection",
]
