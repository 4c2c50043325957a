"""Adaptateurs SQL par type de base de données.

Chaque backend (SQLite, MySQL, MariaDB, PostgreSQL) a sa propre syntaxe
pour l'upsert, le calcul des positions et la génération d'identifiants.
Les variantes sont isolées ici ; le reste du module de synchronisation
ne manipule que l'interface commune StatDialect.

Les noms de tables interpolés dans le SQL proviennent exclusivement de
CATEGORIES (validés par table_name) ; toutes les valeurs passent par des
paramètres liés.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Connection

from src.data.sync.errors import UnknownCategoryError, UnsupportedDialectError
from src.data.sync.models import CATEGORIES

logger = logging.getLogger(__name__)

# Nombre de positions attribuées par statistique
TOP_N = 5

_RANK_WINDOW = "ROW_NUMBER() OVER (PARTITION BY stat_name ORDER BY amount DESC, player_id ASC)"


# =============================================================================
# Interface commune
# =============================================================================


class StatDialect:
    """Comportement SQL commun, surchargé par backend."""

    name = "GENERIC"
    supports_concurrent_ranking = True

    # ------------------------------------------------------------------
    # Types de colonnes (DDL)
    # ------------------------------------------------------------------

    def uuid_column_type(self) -> str:
        return "VARCHAR(36)"

    def timestamp_column_type(self) -> str:
        return "TIMESTAMP"

    def blob_column_type(self) -> str:
        return "BLOB"

    def id_column_definition(self) -> str:
        """Définition de la colonne id auto-incrémentée de uuid_map."""
        raise NotImplementedError

    def table_suffix(self) -> str:
        """Clause ajoutée après la parenthèse fermante de CREATE TABLE."""
        return ""

    # ------------------------------------------------------------------
    # Identifiants
    # ------------------------------------------------------------------

    @staticmethod
    def table_name(category: str) -> str:
        """Valide une catégorie et retourne le nom de table correspondant.

        Raises:
            UnknownCategoryError: Si la catégorie n'est pas connue.
        """
        if category not in CATEGORIES:
            raise UnknownCategoryError(category)
        return category

    # ------------------------------------------------------------------
    # Horodatages
    # ------------------------------------------------------------------

    def to_db_timestamp(self, dt: datetime) -> Any:
        """Convertit un datetime en valeur stockable (UTC naïf, à la seconde).

        Les microsecondes sont tronquées : un arrondi vers le haut ferait
        manquer les fichiers modifiés juste avant le début de la passe.
        """
        if dt.tzinfo is not None:
            dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
        return dt.replace(microsecond=0)

    def from_db_timestamp(self, value: Any) -> datetime | None:
        """Convertit une valeur lue en base en datetime UTC naïf."""
        if value is None:
            return None
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                value = value.astimezone(timezone.utc).replace(tzinfo=None)
            return value
        if isinstance(value, str):
            raw = value.strip()
            if not raw:
                return None
            try:
                parsed = datetime.fromisoformat(raw.replace("T", " ").replace("Z", "+00:00"))
            except ValueError:
                logger.warning(f"Horodatage illisible en base: {raw!r}")
                return None
            return self.from_db_timestamp(parsed)
        logger.warning(f"Type d'horodatage inattendu: {type(value).__name__}")
        return None

    # ------------------------------------------------------------------
    # Statistiques
    # ------------------------------------------------------------------

    def upsert_statement(self, table: str) -> str:
        return (
            f"INSERT INTO {table} (player_id, stat_name, amount) "
            "VALUES (:player_id, :stat_name, :amount) "
            "ON CONFLICT (player_id, stat_name) DO UPDATE SET amount = excluded.amount"
        )

    def upsert_amounts(
        self, conn: Connection, category: str, rows: Sequence[dict[str, Any]]
    ) -> int:
        """Écrit un lot de statistiques d'une catégorie (executemany).

        Args:
            conn: Connexion dans une transaction ouverte.
            category: Catégorie (nom de table).
            rows: Dicts {player_id, stat_name, amount}.

        Returns:
            Nombre de lignes envoyées.
        """
        if not rows:
            return 0
        table = self.table_name(category)
        conn.execute(text(self.upsert_statement(table)), list(rows))
        return len(rows)

    def reset_ranks(self, conn: Connection, category: str) -> None:
        """Efface toutes les positions d'une catégorie."""
        table = self.table_name(category)
        conn.execute(text(f"UPDATE {table} SET position = NULL WHERE position IS NOT NULL"))

    def rank_statement(self, table: str) -> str:
        raise NotImplementedError

    def assign_ranks(self, conn: Connection, category: str) -> int:
        """Attribue les positions 1..5 par statistique.

        Seules les lignes amount > 0 sont classées ; à égalité, le plus
        petit player_id passe devant.

        Returns:
            Nombre de lignes mises à jour.
        """
        table = self.table_name(category)
        result = conn.execute(text(self.rank_statement(table)))
        return max(result.rowcount or 0, 0)

    # ------------------------------------------------------------------
    # Hall of Fame
    # ------------------------------------------------------------------

    def clear_hall_of_fame(self, conn: Connection) -> None:
        conn.execute(text("DELETE FROM hall_of_fame"))

    # ------------------------------------------------------------------
    # Identités
    # ------------------------------------------------------------------

    def insert_identity(self, conn: Connection, player_uuid: str, last_seen: datetime) -> int:
        """Insère un joueur dans uuid_map et retourne l'id généré."""
        result = conn.execute(
            text(
                "INSERT INTO uuid_map (player_uuid, player_last_online) "
                "VALUES (:player_uuid, :last_seen)"
            ),
            {"player_uuid": player_uuid, "last_seen": self.to_db_timestamp(last_seen)},
        )
        return int(result.lastrowid)


# =============================================================================
# Implémentations
# =============================================================================


class SQLiteDialect(StatDialect):
    """SQLite : un seul writer, horodatages stockés en texte ISO."""

    name = "SQLITE"
    supports_concurrent_ranking = False

    def timestamp_column_type(self) -> str:
        return "TEXT"

    def id_column_definition(self) -> str:
        return "id INTEGER PRIMARY KEY"

    def to_db_timestamp(self, dt: datetime) -> Any:
        return super().to_db_timestamp(dt).isoformat(sep=" ")

    def rank_statement(self, table: str) -> str:
        return f"""
            WITH ranked AS (
                SELECT player_id, stat_name, {_RANK_WINDOW} AS row_num
                FROM {table}
                WHERE amount > 0
            )
            UPDATE {table}
            SET position = (
                SELECT ranked.row_num FROM ranked
                WHERE ranked.player_id = {table}.player_id
                  AND ranked.stat_name = {table}.stat_name
            )
            WHERE EXISTS (
                SELECT 1 FROM ranked
                WHERE ranked.player_id = {table}.player_id
                  AND ranked.stat_name = {table}.stat_name
                  AND ranked.row_num <= {TOP_N}
            )
        """

    def assign_ranks(self, conn: Connection, category: str) -> int:
        # rowcount vaut -1 pour une instruction commençant par WITH
        table = self.table_name(category)
        conn.execute(text(self.rank_statement(table)))
        return conn.execute(
            text(f"SELECT COUNT(*) FROM {table} WHERE position IS NOT NULL")
        ).scalar_one()


class MySQLDialect(StatDialect):
    """MySQL : upsert ON DUPLICATE KEY, classement via table temporaire."""

    name = "MYSQL"

    def timestamp_column_type(self) -> str:
        return "DATETIME"

    def blob_column_type(self) -> str:
        return "MEDIUMBLOB"

    def id_column_definition(self) -> str:
        return "id INT NOT NULL AUTO_INCREMENT PRIMARY KEY"

    def table_suffix(self) -> str:
        return " CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"

    def upsert_statement(self, table: str) -> str:
        return (
            f"INSERT INTO {table} (player_id, stat_name, amount) "
            "VALUES (:player_id, :stat_name, :amount) "
            "ON DUPLICATE KEY UPDATE amount = VALUES(amount)"
        )

    def rank_statement(self, table: str) -> str:
        return f"""
            UPDATE {table} AS t
            JOIN ranked_data_{table} AS r
              ON t.player_id = r.player_id AND t.stat_name = r.stat_name
            SET t.position = r.row_num
            WHERE r.row_num <= {TOP_N}
        """

    def assign_ranks(self, conn: Connection, category: str) -> int:
        table = self.table_name(category)
        tmp = f"ranked_data_{table}"
        conn.execute(
            text(
                f"CREATE TEMPORARY TABLE {tmp} AS "
                f"SELECT player_id, stat_name, {_RANK_WINDOW} AS row_num "
                f"FROM {table} WHERE amount > 0"
            )
        )
        try:
            result = conn.execute(text(self.rank_statement(table)))
            return max(result.rowcount or 0, 0)
        finally:
            conn.execute(text(f"DROP TEMPORARY TABLE IF EXISTS {tmp}"))


class MariaDBDialect(MySQLDialect):
    """MariaDB : même syntaxe que MySQL."""

    name = "MARIADB"


class PostgreSQLDialect(StatDialect):
    """PostgreSQL : type UUID natif, RETURNING id, UPDATE ... FROM."""

    name = "POSTGRESQL"

    def uuid_column_type(self) -> str:
        return "UUID"

    def blob_column_type(self) -> str:
        return "BYTEA"

    def id_column_definition(self) -> str:
        return "id SERIAL PRIMARY KEY"

    def rank_statement(self, table: str) -> str:
        return f"""
            UPDATE {table} AS t
            SET position = r.row_num
            FROM (
                SELECT player_id, stat_name, {_RANK_WINDOW} AS row_num
                FROM {table}
                WHERE amount > 0
            ) AS r
            WHERE t.player_id = r.player_id
              AND t.stat_name = r.stat_name
              AND r.row_num <= {TOP_N}
        """

    def clear_hall_of_fame(self, conn: Connection) -> None:
        conn.execute(text("TRUNCATE TABLE hall_of_fame"))

    def insert_identity(self, conn: Connection, player_uuid: str, last_seen: datetime) -> int:
        result = conn.execute(
            text(
                "INSERT INTO uuid_map (player_uuid, player_last_online) "
                "VALUES (:player_uuid, :last_seen) RETURNING id"
            ),
            {"player_uuid": player_uuid, "last_seen": self.to_db_timestamp(last_seen)},
        )
        return int(result.scalar_one())


# =============================================================================
# Sélection
# =============================================================================

_DIALECTS: dict[str, type[StatDialect]] = {
    "SQLITE": SQLiteDialect,
    "MYSQL": MySQLDialect,
    "MARIADB": MariaDBDialect,
    "POSTGRESQL": PostgreSQLDialect,
}


def get_dialect(db_type: str) -> StatDialect:
    """Retourne l'adaptateur correspondant au type de base.

    Args:
        db_type: SQLITE, MYSQL, MARIADB ou POSTGRESQL (casse indifférente).

    Raises:
        UnsupportedDialectError: Si le type est inconnu.
    """
    key = (db_type or "").strip().upper()
    dialect_cls = _DIALECTS.get(key)
    if dialect_cls is None:
        raise UnsupportedDialectError(db_type)
    return dialect_cls()
