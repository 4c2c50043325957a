"""Planification périodique des passes de synchronisation.

Un thread daemon héberge sa propre boucle asyncio : première passe après
`initial_delay_seconds`, puis toutes les `interval_minutes` (cadence fixe,
les échéances manquées pendant une passe longue sont sautées). Une
échéance n'est honorée que si le moteur est Idle.

Usage:
    scheduler = StatSyncScheduler(engine, interval_minutes=5)
    scheduler.start()
    ...
    scheduler.stop()
"""

from __future__ import annotations

import asyncio
import logging
import threading

from src.data.sync.engine import StatSyncEngine

logger = logging.getLogger(__name__)


class StatSyncScheduler:
    """Déclenche StatSyncEngine.sync_all() à intervalle régulier."""

    def __init__(
        self,
        engine: StatSyncEngine,
        interval_minutes: float,
        initial_delay_seconds: float = 60.0,
    ) -> None:
        """
        Args:
            engine: Moteur à piloter.
            interval_minutes: Intervalle entre deux passes (<= 0 : désactivé).
            initial_delay_seconds: Délai avant la première passe.
        """
        self.engine = engine
        self.interval_minutes = interval_minutes
        self.initial_delay_seconds = max(0.0, initial_delay_seconds)
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_event: asyncio.Event | None = None
        self._ready = threading.Event()
        self._tasks: set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return self.interval_minutes > 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        """Démarre le thread de planification.

        Returns:
            False si la planification est désactivée ou déjà démarrée.
        """
        if not self.enabled:
            logger.info("Synchronisation planifiée désactivée (intervalle <= 0)")
            return False
        if self.running:
            return False

        self._ready.clear()
        self._thread = threading.Thread(
            target=self._thread_main, name="stat-sync-scheduler", daemon=True
        )
        self._thread.start()
        self._ready.wait(timeout=5)
        logger.info(
            f"Synchronisation planifiée toutes les {self.interval_minutes} min "
            f"(première dans {self.initial_delay_seconds:.0f}s)"
        )
        return True

    def stop(self, timeout: float = 3.0) -> None:
        """Arrête la planification et annule la passe en cours.

        Args:
            timeout: Attente maximale de l'arrêt du thread en secondes.
        """
        loop, stop_event = self._loop, self._stop_event
        if loop is not None and stop_event is not None and not loop.is_closed():
            try:
                loop.call_soon_threadsafe(stop_event.set)
            except RuntimeError:
                # Boucle fermée entre-temps
                pass
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning(f"Le planificateur ne s'est pas arrêté en {timeout}s")
            else:
                self._thread = None
        logger.info("Synchronisation planifiée arrêtée")

    def trigger_now(self) -> bool:
        """Demande une passe immédiate (commande manuelle).

        Returns:
            False immédiatement si une passe est déjà en cours.
        """
        if not self.engine.is_idle():
            logger.info("Synchronisation déjà en cours, déclenchement manuel ignoré")
            return False

        loop = self._loop
        if self.running and loop is not None and not loop.is_closed():

            async def _trigger() -> bool:
                return self._launch("manuelle")

            return asyncio.run_coroutine_threadsafe(_trigger(), loop).result(timeout=5)

        # Pas de boucle active : passe dans un thread dédié
        threading.Thread(
            target=self.engine.run_blocking, name="stat-sync-manual", daemon=True
        ).start()
        return True

    # =========================================================================
    # Boucle interne
    # =========================================================================

    def _thread_main(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        try:
            loop.run_until_complete(self._main())
        finally:
            loop.close()
            self._loop = None
            self._stop_event = None

    async def _main(self) -> None:
        loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        self._ready.set()

        interval = self.interval_minutes * 60.0
        next_run = loop.time() + self.initial_delay_seconds

        while not self._stop_event.is_set():
            delay = max(0.0, next_run - loop.time())
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                break
            except asyncio.TimeoutError:
                pass

            now = loop.time()
            while next_run <= now:
                next_run += interval
            self._launch("planifiée")

        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _launch(self, reason: str) -> bool:
        """Lance une passe dans la boucle courante si le moteur est Idle."""
        if not self.engine.is_idle():
            logger.debug(f"Passe {reason} ignorée: synchronisation en cours")
            return False
        task = asyncio.get_running_loop().create_task(self._run_pass(reason))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _run_pass(self, reason: str) -> None:
        logger.info(f"Synchronisation {reason}")
        result = await self.engine.sync_all()
        if result.already_running:
            return
        if result.success:
            logger.info(result.to_message())
        else:
            logger.error(result.to_message())
