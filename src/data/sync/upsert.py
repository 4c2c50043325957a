"""Écriture des statistiques joueurs (phase "Syncing data").

Un fichier modifié = une tâche. Chaque tâche emprunte sa propre connexion,
résout l'id du joueur puis envoie un upsert groupé par catégorie, le tout
dans une seule transaction.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from sqlalchemy.engine import Engine

from src.data.sync.errors import PhaseCancelledError, SourceReadError
from src.data.sync.models import CATEGORIES, UpsertReport, strip_namespace
from src.data.sync.pool import run_bounded, to_thread_cancellable
from src.data.sync.scanner import PlayerRecordRef, load_player_stats

if TYPE_CHECKING:
    from src.data.sync.dialects import StatDialect
    from src.data.sync.identity import IdentityResolver
    from src.data.sync.models import SyncState

logger = logging.getLogger(__name__)

# Bornes d'une colonne INT signée
_INT_MIN = -(2**31)
_INT_MAX = 2**31 - 1


def group_stats_by_category(
    stats: dict[str, dict[str, Any]],
) -> dict[str, list[tuple[str, int]]]:
    """Regroupe les statistiques d'un joueur par catégorie connue.

    - le préfixe minecraft: est retiré des catégories et des statistiques
    - les catégories inconnues sont ignorées
    - les valeurs non entières ou hors bornes INT sont ignorées

    Args:
        stats: Objet `stats` du fichier joueur.

    Returns:
        {catégorie: [(stat_name, amount), ...]} sans catégorie vide.
    """
    grouped: dict[str, list[tuple[str, int]]] = {}
    for raw_category, entries in stats.items():
        category = strip_namespace(raw_category)
        if category not in CATEGORIES:
            logger.debug(f"Catégorie ignorée: {raw_category}")
            continue
        if not isinstance(entries, dict):
            continue

        rows: list[tuple[str, int]] = []
        for raw_name, amount in entries.items():
            if isinstance(amount, bool) or not isinstance(amount, int):
                continue
            if not _INT_MIN <= amount <= _INT_MAX:
                logger.debug(f"Valeur hors bornes ignorée: {raw_name}={amount}")
                continue
            rows.append((strip_namespace(raw_name), amount))
        if rows:
            grouped[category] = rows
    return grouped


def _raise_if_cancelled(cancel_event: threading.Event | None, ref: PlayerRecordRef) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise PhaseCancelledError(f"Écriture interrompue pour {ref.external_uuid}")


def sync_player(
    engine: Engine,
    dialect: StatDialect,
    resolver: IdentityResolver,
    ref: PlayerRecordRef,
    stats: dict[str, dict[str, Any]],
    cancel_event: threading.Event | None = None,
) -> int:
    """Écrit toutes les statistiques d'un joueur (bloquant).

    L'annulation est vérifiée avant chaque catégorie et avant le commit ;
    une passe interrompue annule toute la transaction du joueur.

    Args:
        engine: Engine SQLAlchemy (une connexion empruntée au pool).
        dialect: Adaptateur du backend.
        resolver: Résolveur UUID → id.
        ref: Fichier source.
        stats: Objet `stats` déjà lu.
        cancel_event: Levé par la phase quand son délai est dépassé.

    Returns:
        Nombre de lignes envoyées.

    Raises:
        PhaseCancelledError: Si cancel_event est levé avant le commit.
    """
    grouped = group_stats_by_category(stats)
    total = 0
    with engine.begin() as conn:
        player_id = resolver.resolve(conn, ref.external_uuid, ref.modified_at)
        for category, entries in grouped.items():
            _raise_if_cancelled(cancel_event, ref)
            rows = [
                {"player_id": player_id, "stat_name": name, "amount": amount}
                for name, amount in entries
            ]
            total += dialect.upsert_amounts(conn, category, rows)
        _raise_if_cancelled(cancel_event, ref)
    logger.debug(f"{ref.external_uuid}: {total} statistiques écrites")
    return total


class StatUpsertPool:
    """Pool de workers pour la phase d'écriture des statistiques."""

    def __init__(
        self,
        engine: Engine,
        dialect: StatDialect,
        resolver: IdentityResolver,
        *,
        workers: int,
        timeout: float | None,
    ) -> None:
        self.engine = engine
        self.dialect = dialect
        self.resolver = resolver
        self.workers = max(1, workers)
        self.timeout = timeout

    def _process(self, ref: PlayerRecordRef, cancel_event: threading.Event) -> int:
        stats = load_player_stats(ref)
        if stats is None:
            raise SourceReadError(f"Statistiques illisibles: {ref.path.name}")
        return sync_player(self.engine, self.dialect, self.resolver, ref, stats, cancel_event)

    async def run(self, refs: list[PlayerRecordRef], state: SyncState) -> UpsertReport:
        """Synchronise tous les fichiers modifiés.

        Rend la main seulement quand plus aucune écriture n'est en cours,
        y compris après un dépassement de délai.

        Args:
            refs: Fichiers à synchroniser.
            state: État partagé (progress_done incrémenté à chaque joueur écrit).

        Returns:
            UpsertReport avec les compteurs de la phase.
        """

        async def _worker(ref: PlayerRecordRef) -> int:
            rows = await to_thread_cancellable(self._process, ref)
            state.increment_done()
            return rows

        outcome = await run_bounded(
            refs, _worker, workers=self.workers, timeout=self.timeout, label="upsert"
        )

        report = UpsertReport(timed_out=outcome.timed_out)
        for _ref, rows in outcome.succeeded:
            report.players_synced += 1
            report.rows_upserted += rows
        for ref, exc in outcome.failed:
            logger.warning(f"Échec de synchronisation pour {ref.external_uuid}: {exc}")
            report.players_failed += 1
            report.failed_uuids.append(ref.external_uuid)
            report.unsynced_modified_at.append(ref.modified_at)
        for ref in outcome.cancelled:
            report.cancelled_uuids.append(ref.external_uuid)
            report.unsynced_modified_at.append(ref.modified_at)

        logger.info(
            f"Upsert terminé: {report.players_synced} joueurs, "
            f"{report.rows_upserted} lignes, {report.players_failed} échecs, "
            f"{len(report.cancelled_uuids)} annulés"
        )
        return report
