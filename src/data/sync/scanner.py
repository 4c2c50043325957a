"""Détection des fichiers de statistiques modifiés.

Le serveur écrit un fichier world/stats/<uuid>.json par joueur. Seuls les
fichiers modifiés depuis la dernière passe sont retenus.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.utils.xuid import parse_player_uuid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayerRecordRef:
    """Référence vers le fichier de statistiques d'un joueur.

    Attributes:
        external_uuid: UUID du joueur (nom du fichier, forme canonique).
        path: Chemin du fichier JSON.
        modified_at: Date de modification (UTC naïf).
    """

    external_uuid: str
    path: Path
    modified_at: datetime


class PlayerStatsDocument(BaseModel):
    """Contenu d'un fichier world/stats/<uuid>.json."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    data_version: int | None = Field(default=None, alias="DataVersion")
    stats: dict[str, dict[str, Any]] | None = None


def _mtime_utc(path: Path) -> datetime:
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc).replace(tzinfo=None)


def scan_changed_records(stats_dir: Path | str, since: datetime) -> list[PlayerRecordRef] | None:
    """Liste les fichiers de statistiques modifiés après `since`.

    Args:
        stats_dir: Dossier world/stats.
        since: Date de la dernière passe (UTC naïf). Comparaison stricte.

    Returns:
        Références des fichiers modifiés (une par joueur, ordre quelconque),
        ou None si le dossier n'existe pas.
    """
    directory = Path(stats_dir)
    if not directory.is_dir():
        logger.warning(f"Dossier de statistiques introuvable: {directory}")
        return None

    if since.tzinfo is not None:
        since = since.astimezone(timezone.utc).replace(tzinfo=None)

    # Un seul fichier par joueur, le plus récent (noms différant par la casse)
    changed: dict[str, PlayerRecordRef] = {}
    for path in directory.glob("*.json"):
        external_uuid = parse_player_uuid(path.stem)
        if external_uuid is None:
            logger.debug(f"Fichier ignoré (nom non UUID): {path.name}")
            continue
        try:
            modified_at = _mtime_utc(path)
        except OSError as e:
            logger.warning(f"Fichier illisible {path.name}: {e}")
            continue
        if modified_at <= since:
            continue
        previous = changed.get(external_uuid)
        if previous is not None:
            logger.warning(
                f"Fichiers en double pour {external_uuid}: {previous.path.name}, {path.name}"
            )
            if previous.modified_at >= modified_at:
                continue
        changed[external_uuid] = PlayerRecordRef(external_uuid, path, modified_at)

    logger.info(f"{len(changed)} fichiers de statistiques modifiés depuis {since}")
    return list(changed.values())


def load_player_stats(ref: PlayerRecordRef) -> dict[str, dict[str, Any]] | None:
    """Lit l'objet `stats` d'un fichier joueur.

    Args:
        ref: Référence du fichier.

    Returns:
        Le dict {catégorie: {statistique: valeur}}, ou None si le fichier
        est illisible ou sans objet stats.
    """
    try:
        raw = json.loads(ref.path.read_text(encoding="utf-8"))
        document = PlayerStatsDocument.model_validate(raw)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Statistiques illisibles pour {ref.external_uuid}: {e}")
        return None

    if document.stats is None:
        logger.warning(f"Pas d'objet stats pour {ref.external_uuid}")
        return None
    return document.stats
