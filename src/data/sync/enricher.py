"""Complétion des pseudos manquants (phase "Fetching nicks")."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable

from sqlalchemy import text
from sqlalchemy.engine import Engine

from src.data.sync.api_client import NickLookupClient
from src.data.sync.errors import PhaseCancelledError
from src.data.sync.models import EnrichReport, SyncState
from src.data.sync.pool import run_bounded, to_thread_cancellable

logger = logging.getLogger(__name__)


class NicknameEnricher:
    """Interroge les APIs de pseudos pour les joueurs sans player_nick.

    Usage:
        enricher = NicknameEnricher(engine, workers=4, timeout=180)
        report = await enricher.run(state)
    """

    def __init__(
        self,
        engine: Engine,
        *,
        workers: int,
        timeout: float | None,
        client_factory: Callable[[], NickLookupClient] | None = None,
    ) -> None:
        """
        Args:
            engine: Engine SQLAlchemy.
            workers: Requêtes simultanées maximum.
            timeout: Durée maximale de la phase en secondes.
            client_factory: Fabrique du client HTTP (injectable pour les tests).
        """
        self.engine = engine
        self.workers = max(1, workers)
        self.timeout = timeout
        self._client_factory = client_factory or NickLookupClient

    def load_candidates(self) -> list[tuple[int, str]]:
        """Retourne (id, uuid) des joueurs sans pseudo."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                text("SELECT id, player_uuid FROM uuid_map WHERE player_nick IS NULL")
            ).all()
        # PostgreSQL renvoie des uuid.UUID
        return [(int(row[0]), str(row[1])) for row in rows]

    def store_nick(
        self, player_id: int, nick: str, cancel_event: threading.Event | None = None
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise PhaseCancelledError(f"Pseudo non enregistré pour {player_id}")
        with self.engine.begin() as conn:
            conn.execute(
                text("UPDATE uuid_map SET player_nick = :nick WHERE id = :id"),
                {"nick": nick, "id": player_id},
            )

    async def run(self, state: SyncState) -> EnrichReport:
        """Récupère et enregistre les pseudos manquants.

        Args:
            state: État partagé (progress_total = candidats, progress_done = pseudos écrits).

        Returns:
            EnrichReport avec les compteurs de la phase.
        """
        candidates = await asyncio.to_thread(self.load_candidates)
        state.set_total(len(candidates))
        report = EnrichReport(candidates=len(candidates))
        if not candidates:
            logger.info("Aucun pseudo manquant")
            return report

        logger.info(f"{len(candidates)} pseudos à récupérer")

        async with self._client_factory() as client:

            async def _worker(candidate: tuple[int, str]) -> bool:
                player_id, player_uuid = candidate
                nick = await client.fetch_nick(player_uuid)
                if not nick:
                    return False
                await to_thread_cancellable(self.store_nick, player_id, nick)
                state.increment_done()
                logger.debug(f"Pseudo {player_uuid} → {nick}")
                return True

            outcome = await run_bounded(
                candidates,
                _worker,
                workers=self.workers,
                timeout=self.timeout,
                label="pseudos",
            )

        report.timed_out = outcome.timed_out
        for _candidate, stored in outcome.succeeded:
            if stored:
                report.nicks_updated += 1
            else:
                report.lookups_failed += 1
        for (_player_id, player_uuid), exc in outcome.failed:
            logger.warning(f"Échec mise à jour du pseudo {player_uuid}: {exc}")
            report.lookups_failed += 1

        logger.info(
            f"Pseudos: {report.nicks_updated}/{report.candidates} mis à jour "
            f"({report.lookups_failed} indisponibles)"
        )
        return report
