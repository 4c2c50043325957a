"""Résolution UUID joueur → identifiant interne (table uuid_map)."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from src.data.sync.errors import IdentityResolutionError

if TYPE_CHECKING:
    from src.data.sync.dialects import StatDialect

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Get-or-create d'un joueur dans uuid_map.

    Un même UUID donne toujours le même id, y compris si deux writers
    insèrent le joueur en même temps (la contrainte UNIQUE tranche).

    Usage:
        resolver = IdentityResolver(dialect)
        with engine.begin() as conn:
            player_id = resolver.resolve(conn, "069a79f4-...", last_seen)
    """

    def __init__(self, dialect: StatDialect) -> None:
        self.dialect = dialect

    def _select_id(self, conn: Connection, external_uuid: str) -> int | None:
        value = conn.execute(
            text("SELECT id FROM uuid_map WHERE player_uuid = :player_uuid"),
            {"player_uuid": external_uuid},
        ).scalar()
        return int(value) if value is not None else None

    def _touch(self, conn: Connection, player_id: int, last_seen: datetime) -> None:
        conn.execute(
            text("UPDATE uuid_map SET player_last_online = :last_seen WHERE id = :id"),
            {"last_seen": self.dialect.to_db_timestamp(last_seen), "id": player_id},
        )

    def resolve(self, conn: Connection, external_uuid: str, last_seen: datetime) -> int:
        """Retourne l'id du joueur, en le créant si nécessaire.

        Met à jour player_last_online dans tous les cas.

        Args:
            conn: Connexion dans une transaction ouverte.
            external_uuid: UUID du joueur (forme canonique).
            last_seen: Date de modification du fichier de statistiques.

        Returns:
            Identifiant interne (uuid_map.id).

        Raises:
            IdentityResolutionError: Si la base refuse la lecture ou l'écriture.
        """
        try:
            player_id = self._select_id(conn, external_uuid)
            if player_id is not None:
                self._touch(conn, player_id, last_seen)
                return player_id

            try:
                with conn.begin_nested():
                    player_id = self.dialect.insert_identity(conn, external_uuid, last_seen)
                logger.debug(f"Nouveau joueur {external_uuid} → id {player_id}")
                return player_id
            except IntegrityError:
                # Inséré entre-temps par un autre writer
                player_id = self._select_id(conn, external_uuid)
                if player_id is None:
                    raise
                self._touch(conn, player_id, last_seen)
                return player_id
        except SQLAlchemyError as e:
            raise IdentityResolutionError(external_uuid, e) from e
