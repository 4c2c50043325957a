"""Recalcul des positions top 5 (phase "Updating positions").

Pour chaque catégorie, dans sa propre transaction : effacement de toutes les
positions puis attribution 1..5 par statistique (amount > 0, amount
décroissant, player_id croissant en cas d'égalité).
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from sqlalchemy.engine import Engine

from src.data.sync.errors import PhaseCancelledError
from src.data.sync.models import CATEGORIES, RankingReport
from src.data.sync.pool import run_bounded, to_thread_cancellable

if TYPE_CHECKING:
    from src.data.sync.dialects import StatDialect
    from src.data.sync.models import SyncState

logger = logging.getLogger(__name__)


class RankingEngine:
    """Calcule les positions des neuf catégories."""

    def __init__(
        self,
        engine: Engine,
        dialect: StatDialect,
        *,
        workers: int,
        timeout: float | None,
    ) -> None:
        self.engine = engine
        self.dialect = dialect
        # SQLite : un seul writer
        self.workers = max(1, workers) if dialect.supports_concurrent_ranking else 1
        self.timeout = timeout

    def rank_category(self, category: str, cancel_event: threading.Event | None = None) -> int:
        """Recalcule les positions d'une catégorie (bloquant).

        Returns:
            Nombre de lignes ayant reçu une position.

        Raises:
            PhaseCancelledError: Si cancel_event est levé avant le commit.
        """
        with self.engine.begin() as conn:
            self.dialect.reset_ranks(conn, category)
            ranked = self.dialect.assign_ranks(conn, category)
            if cancel_event is not None and cancel_event.is_set():
                raise PhaseCancelledError(f"Classement interrompu: {category}")
        logger.debug(f"Positions {category}: {ranked} lignes classées")
        return ranked

    async def run(self, state: SyncState) -> RankingReport:
        """Recalcule les positions de toutes les catégories.

        Args:
            state: État partagé (progress_total = 9, progress_done par catégorie).

        Returns:
            RankingReport (catégories traitées, échecs).
        """
        state.set_total(len(CATEGORIES))

        async def _worker(category: str) -> int:
            ranked = await to_thread_cancellable(self.rank_category, category)
            state.increment_done()
            return ranked

        outcome = await run_bounded(
            CATEGORIES, _worker, workers=self.workers, timeout=self.timeout, label="positions"
        )

        report = RankingReport(
            categories_ranked=len(outcome.succeeded), timed_out=outcome.timed_out
        )
        for category, exc in outcome.failed:
            logger.warning(f"Échec du classement {category}: {exc}")
            report.failed_categories.append(category)
        report.failed_categories.extend(outcome.cancelled)

        logger.info(f"Positions recalculées: {report.categories_ranked}/{len(CATEGORIES)}")
        return report
