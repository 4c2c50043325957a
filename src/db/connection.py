"""Gestion des connexions base de données.

Un seul Engine SQLAlchemy par synchroniseur. Chaque worker emprunte sa
propre connexion au pool (engine.begin()) : aucune connexion n'est
partagée entre threads.

Backends supportés :
- SQLite (mode LOCAL, fichier data/player-statistics.db par défaut)
- MySQL / MariaDB via PyMySQL
- PostgreSQL via psycopg 3
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy import URL, create_engine, event
from sqlalchemy.engine import Connection, Engine

if TYPE_CHECKING:
    from src.config import DatabaseSettings

logger = logging.getLogger(__name__)

# Type de base → driver SQLAlchemy
_DRIVERS: dict[str, str] = {
    "MYSQL": "mysql+pymysql",
    "MARIADB": "mariadb+pymysql",
    "POSTGRESQL": "postgresql+psycopg",
}

# Attente max (ms) lorsqu'un autre writer tient le verrou SQLite
SQLITE_BUSY_TIMEOUT_MS = 30_000


def build_database_url(settings: DatabaseSettings) -> URL:
    """Construit l'URL SQLAlchemy correspondant aux paramètres.

    Args:
        settings: Paramètres de connexion.

    Returns:
        URL SQLAlchemy (sqlite:///..., mysql+pymysql://..., etc.).

    Raises:
        UnsupportedDialectError: Si le type de base est inconnu.
    """
    db_type = settings.effective_type
    if db_type == "SQLITE":
        return URL.create("sqlite", database=str(settings.sqlite_path))

    driver = _DRIVERS.get(db_type)
    if driver is None:
        from src.data.sync.errors import UnsupportedDialectError

        raise UnsupportedDialectError(db_type)

    query = {"charset": "utf8mb4"} if db_type in ("MYSQL", "MARIADB") else {}
    return URL.create(
        driver,
        username=settings.username,
        password=settings.password,
        host=settings.host,
        port=settings.port,
        database=settings.name,
        query=query,
    )


def _install_sqlite_pragmas(engine: Engine) -> None:
    """Configure chaque nouvelle connexion SQLite (WAL, clés étrangères, busy timeout).

    Les transactions démarrent en BEGIN IMMEDIATE : le verrou d'écriture est
    pris dès le début, les writers concurrents attendent (busy_timeout) au
    lieu d'échouer sur un snapshot périmé. Cela rend aussi les SAVEPOINT
    fiables avec pysqlite.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _connection_record) -> None:
        # BEGIN géré par l'événement "begin" ci-dessous
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute(f"PRAGMA busy_timeout = {SQLITE_BUSY_TIMEOUT_MS}")
            cursor.execute("PRAGMA journal_mode = WAL")
            cursor.execute("PRAGMA foreign_keys = ON")
        finally:
            cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_sync_engine(settings: DatabaseSettings, pool_size: int = 1) -> Engine:
    """Crée l'Engine utilisé par toutes les phases de synchronisation.

    Args:
        settings: Paramètres de connexion.
        pool_size: Nombre de connexions simultanées (>= nombre de workers).

    Returns:
        Engine SQLAlchemy prêt à l'emploi.
    """
    url = build_database_url(settings)
    pool_size = max(1, pool_size)

    if url.get_backend_name() == "sqlite":
        settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(
            url,
            echo=False,
            pool_size=pool_size,
            max_overflow=0,
            connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_MS / 1000},
        )
        _install_sqlite_pragmas(engine)
    else:
        engine = create_engine(
            url,
            echo=False,
            pool_size=pool_size,
            max_overflow=2,
            pool_pre_ping=True,  # Vérifie les connexions avant usage
            pool_recycle=3600,
        )

    logger.info(
        f"Engine {url.get_backend_name()} initialisé "
        f"({url.render_as_string(hide_password=True)}, pool={pool_size})"
    )
    return engine


@contextmanager
def get_connection(engine: Engine) -> Generator[Connection, None, None]:
    """Context manager : connexion + transaction, commit en sortie normale.

    Exemple:
        with get_connection(engine) as conn:
            conn.execute(text("SELECT COUNT(*) FROM uuid_map"))
    """
    with engine.begin() as conn:
        yield conn
