"""Schéma SQL et métadonnées de synchronisation.

Ce module regroupe la création idempotente des tables (uuid_map, une table
par catégorie, sync_metadata, hall_of_fame), les index de position et la
lecture/écriture de sync_metadata. Il est appelé par l'orchestrateur au
début de chaque passe.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from src.data.sync.errors import SchemaInitError
from src.data.sync.models import CATEGORIES

if TYPE_CHECKING:
    from src.config import ServerDescriptor
    from src.data.sync.dialects import StatDialect

logger = logging.getLogger(__name__)

# Valeur initiale de last_update : tous les fichiers sont "modifiés"
EPOCH = datetime(1970, 1, 1, 0, 0, 0)

# Colonnes ajoutées après coup à sync_metadata (bases créées par d'anciennes versions)
_METADATA_OPTIONAL_COLUMNS = ("server_name", "server_desc", "server_url", "server_icon")


# =============================================================================
# DDL
# =============================================================================


def schema_statements(dialect: StatDialect) -> list[str]:
    """Retourne les CREATE TABLE du schéma complet pour un backend.

    Args:
        dialect: Adaptateur du backend cible.

    Returns:
        Liste ordonnée d'instructions (uuid_map en premier pour les FK).
    """
    suffix = dialect.table_suffix()
    ts = dialect.timestamp_column_type()

    statements = [
        f"""CREATE TABLE IF NOT EXISTS uuid_map (
            {dialect.id_column_definition()},
            player_uuid {dialect.uuid_column_type()} NOT NULL UNIQUE,
            player_nick VARCHAR(32) DEFAULT NULL,
            player_last_online {ts} DEFAULT NULL
        ){suffix}""",
        f"""CREATE TABLE IF NOT EXISTS sync_metadata (
            id INTEGER NOT NULL PRIMARY KEY,
            last_update {ts} NOT NULL,
            server_name VARCHAR(256) DEFAULT NULL,
            server_desc VARCHAR(256) DEFAULT NULL,
            server_url VARCHAR(256) DEFAULT NULL,
            server_icon {dialect.blob_column_type()} DEFAULT NULL
        ){suffix}""",
        f"""CREATE TABLE IF NOT EXISTS hall_of_fame (
            player_id INTEGER NOT NULL PRIMARY KEY,
            first_place INTEGER NOT NULL DEFAULT 0,
            second_place INTEGER NOT NULL DEFAULT 0,
            third_place INTEGER NOT NULL DEFAULT 0,
            fourth_place INTEGER NOT NULL DEFAULT 0,
            fifth_place INTEGER NOT NULL DEFAULT 0,
            score INTEGER NOT NULL DEFAULT 0,
            FOREIGN KEY (player_id) REFERENCES uuid_map(id) ON DELETE CASCADE
        ){suffix}""",
    ]
    for category in CATEGORIES:
        table = dialect.table_name(category)
        statements.append(
            f"""CREATE TABLE IF NOT EXISTS {table} (
            player_id INTEGER NOT NULL,
            position INTEGER DEFAULT NULL,
            stat_name VARCHAR(256) NOT NULL,
            amount INTEGER NOT NULL,
            PRIMARY KEY (player_id, stat_name),
            FOREIGN KEY (player_id) REFERENCES uuid_map(id) ON DELETE CASCADE
        ){suffix}"""
        )
    return statements


def position_index_name(table: str) -> str:
    return f"idx_{table}_position"


def _ensure_position_indexes(conn: Connection, dialect: StatDialect) -> int:
    """Crée les index sur position s'ils manquent.

    MySQL ne supporte pas CREATE INDEX IF NOT EXISTS : on passe par
    l'inspecteur SQLAlchemy pour tous les backends.

    Returns:
        Nombre d'index créés.
    """
    inspector = inspect(conn)
    created = 0
    for category in CATEGORIES:
        table = dialect.table_name(category)
        index_name = position_index_name(table)
        existing = {ix.get("name") for ix in inspector.get_indexes(table)}
        if index_name in existing:
            continue
        conn.execute(text(f"CREATE INDEX {index_name} ON {table} (position)"))
        created += 1
    if created:
        logger.info(f"{created} index de position créés")
    return created


def _add_column_if_missing(conn: Connection, table: str, column: str, col_type: str) -> bool:
    """Ajoute une colonne si elle n'existe pas.

    Returns:
        True si la colonne a été ajoutée.
    """
    columns = {c["name"] for c in inspect(conn).get_columns(table)}
    if column in columns:
        return False
    conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}"))
    logger.info(f"Colonne {table}.{column} ajoutée")
    return True


def _ensure_metadata_columns(conn: Connection, dialect: StatDialect) -> None:
    for column in _METADATA_OPTIONAL_COLUMNS:
        col_type = dialect.blob_column_type() if column == "server_icon" else "VARCHAR(256)"
        _add_column_if_missing(conn, "sync_metadata", column, col_type)


def _seed_sync_metadata(conn: Connection, dialect: StatDialect) -> bool:
    """Insère la ligne unique de sync_metadata si la table est vide."""
    count = conn.execute(text("SELECT COUNT(*) FROM sync_metadata")).scalar_one()
    if count:
        return False
    conn.execute(
        text("INSERT INTO sync_metadata (id, last_update) VALUES (1, :last_update)"),
        {"last_update": dialect.to_db_timestamp(EPOCH)},
    )
    logger.info("sync_metadata initialisée (last_update = epoch)")
    return True


def ensure_schema(engine: Engine, dialect: StatDialect) -> None:
    """Crée le schéma s'il n'existe pas (idempotent).

    Args:
        engine: Engine SQLAlchemy.
        dialect: Adaptateur du backend.

    Raises:
        SchemaInitError: Si une instruction échoue (fatal pour la passe).
    """
    try:
        with engine.begin() as conn:
            for statement in schema_statements(dialect):
                conn.execute(text(statement))
        with engine.begin() as conn:
            _ensure_metadata_columns(conn, dialect)
            _ensure_position_indexes(conn, dialect)
            _seed_sync_metadata(conn, dialect)
    except SQLAlchemyError as e:
        raise SchemaInitError(f"Initialisation du schéma impossible: {e}") from e
    logger.debug(f"Schéma {dialect.name} vérifié")


# =============================================================================
# sync_metadata
# =============================================================================


def get_last_sync_time(conn: Connection, dialect: StatDialect) -> datetime:
    """Retourne la date de la dernière passe réussie (epoch si absente).

    Args:
        conn: Connexion ouverte.
        dialect: Adaptateur du backend (conversion des horodatages).

    Returns:
        Datetime UTC naïf.
    """
    value = conn.execute(text("SELECT last_update FROM sync_metadata")).scalar()
    parsed = dialect.from_db_timestamp(value)
    if parsed is None:
        logger.warning("last_update absent ou illisible, synchronisation complète")
        return EPOCH
    return parsed


def update_sync_metadata(
    conn: Connection,
    dialect: StatDialect,
    last_update: datetime,
    server: ServerDescriptor | None = None,
) -> None:
    """Enregistre la fin d'une passe et la description du serveur.

    Args:
        conn: Connexion dans une transaction ouverte.
        dialect: Adaptateur du backend.
        last_update: Début de la passe qui vient de se terminer.
        server: Description du serveur (nom, description, url, icône).

    Raises:
        SchemaInitError: Si l'écriture échoue.
    """
    params = {
        "last_update": dialect.to_db_timestamp(last_update),
        "server_name": server.name if server else None,
        "server_desc": server.description if server else None,
        "server_url": server.url if server else None,
        "server_icon": server.read_icon() if server else None,
    }
    try:
        result = conn.execute(
            text(
                "UPDATE sync_metadata SET last_update = :last_update, "
                "server_name = :server_name, server_desc = :server_desc, "
                "server_url = :server_url, server_icon = :server_icon"
            ),
            params,
        )
        if not result.rowcount:
            conn.execute(
                text(
                    "INSERT INTO sync_metadata "
                    "(id, last_update, server_name, server_desc, server_url, server_icon) "
                    "VALUES (1, :last_update, :server_name, :server_desc, :server_url, :server_icon)"
                ),
                params,
            )
    except SQLAlchemyError as e:
        raise SchemaInitError(f"Écriture de sync_metadata impossible: {e}") from e
    logger.debug(f"sync_metadata mise à jour (last_update={params['last_update']})")
