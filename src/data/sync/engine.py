"""Moteur de synchronisation world/stats → base SQL.

Ce module contient StatSyncEngine, l'orchestrateur d'une passe :

1. Initializing : schéma, lecture de last_update, scan des fichiers modifiés
2. Syncing data : upsert des statistiques (StatUpsertPool)
3. Fetching nicks : pseudos manquants (NicknameEnricher)
4. Updating positions : top 5 par statistique (RankingEngine)
5. Populating Hall of Fame : score pondéré par joueur
6. Écriture de sync_metadata (last_update = début de la passe, ou juste avant
   le plus ancien fichier non synchronisé), retour à Idle

Une seule passe à la fois par moteur : une demande reçue pendant une passe
est ignorée (SyncResult.already_running).

Usage:
    from src.config import load_settings
    from src.data.sync import StatSyncEngine

    engine = StatSyncEngine(load_settings())
    result = await engine.sync_all()
    print(result.to_message())
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

from sqlalchemy.engine import Engine

from src.config import SyncSettings
from src.data.sync.api_client import NickLookupClient
from src.data.sync.dialects import get_dialect
from src.data.sync.enricher import NicknameEnricher
from src.data.sync.hall_of_fame import populate_hall_of_fame
from src.data.sync.identity import IdentityResolver
from src.data.sync.migrations import EPOCH, ensure_schema, get_last_sync_time, update_sync_metadata
from src.data.sync.models import SyncResult, SyncState, SyncStatus, SyncStatusSnapshot
from src.data.sync.rankings import RankingEngine
from src.data.sync.scanner import scan_changed_records
from src.data.sync.upsert import StatUpsertPool
from src.db.connection import create_sync_engine

logger = logging.getLogger(__name__)


class StatSyncEngine:
    """Orchestrateur de la synchronisation des statistiques joueurs.

    Thread-safe : status() et is_idle() peuvent être appelés depuis
    n'importe quel thread pendant une passe.
    """

    def __init__(
        self,
        settings: SyncSettings,
        engine: Engine | None = None,
        *,
        nick_client_factory: Callable[[], NickLookupClient] | None = None,
    ) -> None:
        """
        Args:
            settings: Configuration validée.
            engine: Engine SQLAlchemy existant (sinon créé à la première passe).
            nick_client_factory: Fabrique du client de pseudos (tests).
        """
        self.settings = settings
        self.dialect = get_dialect(settings.database.effective_type)
        self.workers = settings.worker_count
        self._engine = engine
        self._owns_engine = engine is None
        self._state = SyncState()
        self._resolver = IdentityResolver(self.dialect)
        self._nick_client_factory = nick_client_factory or (
            lambda: NickLookupClient(request_timeout=settings.nick_request_timeout_seconds)
        )

    @property
    def engine(self) -> Engine:
        """Engine SQLAlchemy (créé à la demande)."""
        if self._engine is None:
            self._engine = create_sync_engine(self.settings.database, pool_size=self.workers)
        return self._engine

    @property
    def stats_dir(self) -> Path:
        return Path(self.settings.stats_dir)

    # =========================================================================
    # État
    # =========================================================================

    def status(self) -> SyncStatusSnapshot:
        """Vue figée de l'état courant."""
        return self._state.snapshot()

    def is_idle(self) -> bool:
        return self._state.snapshot().is_idle

    def last_sync_time(self) -> datetime:
        """Lit last_update en base (bloquant)."""
        ensure_schema(self.engine, self.dialect)
        with self.engine.connect() as conn:
            return get_last_sync_time(conn, self.dialect)

    # =========================================================================
    # Passe de synchronisation
    # =========================================================================

    async def sync_all(self) -> SyncResult:
        """Exécute une passe complète.

        Returns:
            SyncResult avec les compteurs, avertissements et erreurs.
            already_running=True si une passe était déjà en cours.
        """
        if not self._state.try_begin():
            logger.info("Synchronisation déjà en cours, demande ignorée")
            return SyncResult(already_running=True)

        result = SyncResult()
        result.started_at = datetime.now(timezone.utc)
        start_time = time.time()
        logger.info("Début de la synchronisation des statistiques")

        try:
            await self._sync_internal(result, result.started_at.replace(tzinfo=None))
        except Exception as e:
            result.errors.append(str(e))
            logger.error(f"Erreur sync: {e}")
        finally:
            self._state.reset()

        result.finished_at = datetime.now(timezone.utc)
        result.duration_seconds = time.time() - start_time
        logger.info(f"Fin de la synchronisation: {result.to_message()}")
        return result

    async def _sync_internal(self, result: SyncResult, pass_start: datetime) -> None:
        """Enchaîne les phases ; toute exception remonte à sync_all."""
        settings = self.settings

        # Initializing
        await asyncio.to_thread(ensure_schema, self.engine, self.dialect)
        since = await asyncio.to_thread(self._read_last_sync_time)
        if since != EPOCH:
            self._state.set_last_sync(since)

        refs = await asyncio.to_thread(scan_changed_records, self.stats_dir, since)
        if refs is None:
            result.warnings.append(f"Dossier de statistiques introuvable: {self.stats_dir}")
            return
        result.records_changed = len(refs)

        # Syncing data
        self._state.enter_phase(SyncStatus.SYNCING_DATA, total=len(refs))
        upsert_report = await StatUpsertPool(
            self.engine,
            self.dialect,
            self._resolver,
            workers=self.workers,
            timeout=settings.sync_timeout_seconds,
        ).run(refs, self._state)
        result.players_synced = upsert_report.players_synced
        result.failed_players = upsert_report.players_failed
        result.rows_upserted = upsert_report.rows_upserted
        for uuid in upsert_report.failed_uuids:
            result.warnings.append(f"Joueur non synchronisé: {uuid}")
        if upsert_report.timed_out:
            result.warnings.append("Délai de synchronisation dépassé (résultat partiel)")

        # Fetching nicks
        self._state.enter_phase(SyncStatus.FETCHING_NICKS)
        enrich_report = await NicknameEnricher(
            self.engine,
            workers=self.workers,
            timeout=settings.nick_timeout_seconds,
            client_factory=self._nick_client_factory,
        ).run(self._state)
        result.nicks_updated = enrich_report.nicks_updated
        if enrich_report.timed_out:
            result.warnings.append("Délai de récupération des pseudos dépassé")

        # Updating positions
        self._state.enter_phase(SyncStatus.UPDATING_POSITIONS)
        ranking_report = await RankingEngine(
            self.engine,
            self.dialect,
            workers=self.workers,
            timeout=settings.ranking_timeout_seconds,
        ).run(self._state)
        result.categories_ranked = ranking_report.categories_ranked
        for category in ranking_report.failed_categories:
            result.warnings.append(f"Positions non recalculées: {category}")

        # Populating Hall of Fame
        self._state.enter_phase(SyncStatus.POPULATING_HALL_OF_FAME)
        result.hall_of_fame_entries = await asyncio.to_thread(
            populate_hall_of_fame, self.engine, self.dialect
        )

        checkpoint = self._next_checkpoint(pass_start, since, upsert_report.oldest_unsynced)
        await asyncio.to_thread(self._commit_metadata, checkpoint)
        self._state.set_last_sync(checkpoint)

    @staticmethod
    def _next_checkpoint(
        pass_start: datetime, since: datetime, oldest_unsynced: datetime | None
    ) -> datetime:
        """Date à enregistrer comme last_update.

        Un fichier en échec ou annulé doit rester plus récent que last_update
        pour être repris à la passe suivante.
        """
        if oldest_unsynced is None:
            return pass_start
        checkpoint = max(since, (oldest_unsynced - timedelta(seconds=1)).replace(microsecond=0))
        logger.info(f"Fichiers non synchronisés, last_update retenu à {checkpoint}")
        return checkpoint

    def _read_last_sync_time(self) -> datetime:
        with self.engine.connect() as conn:
            return get_last_sync_time(conn, self.dialect)

    def _commit_metadata(self, checkpoint: datetime) -> None:
        with self.engine.begin() as conn:
            update_sync_metadata(conn, self.dialect, checkpoint, self.settings.server)

    # =========================================================================
    # Utilitaires
    # =========================================================================

    def run_blocking(self) -> SyncResult:
        """Exécute une passe depuis du code synchrone (thread sans boucle asyncio)."""
        return asyncio.run(self.sync_all())

    def close(self) -> None:
        """Libère le pool de connexions s'il a été créé ici."""
        if self._engine is not None and self._owns_engine:
            self._engine.dispose()
            self._engine = None
