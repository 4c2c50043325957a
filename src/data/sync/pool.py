"""Exécution bornée des tâches d'une phase de synchronisation.

Chaque phase (upsert, pseudos, classements) lance une tâche asyncio par
élément, limitée par un sémaphore, et borne la durée totale de la phase.
À l'expiration, les tâches restantes sont annulées : la phase se termine
avec un résultat partiel, ce n'est pas une erreur. Un travail déjà lancé dans
un thread est prévenu par un threading.Event et la phase attend sa fin avant
de rendre la main.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class PhaseOutcome(Generic[T, R]):
    """Résultats d'une phase, par élément."""

    succeeded: list[tuple[T, R]] = field(default_factory=list)
    failed: list[tuple[T, BaseException]] = field(default_factory=list)
    cancelled: list[T] = field(default_factory=list)

    @property
    def timed_out(self) -> bool:
        return bool(self.cancelled)


async def run_bounded(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
    *,
    workers: int,
    timeout: float | None,
    label: str = "phase",
) -> PhaseOutcome[T, R]:
    """Exécute `worker` sur chaque élément avec au plus `workers` en parallèle.

    Args:
        items: Éléments à traiter.
        worker: Coroutine appelée pour chaque élément.
        workers: Concurrence maximale (>= 1).
        timeout: Durée maximale de la phase en secondes (None = illimitée).
        label: Nom de la phase pour les logs.

    Returns:
        PhaseOutcome (succès, échecs avec exception, éléments annulés).
    """
    semaphore = asyncio.Semaphore(max(1, workers))

    async def _guarded(item: T) -> R:
        async with semaphore:
            return await worker(item)

    tasks: dict[asyncio.Task[Any], T] = {
        asyncio.create_task(_guarded(item)): item for item in items
    }
    outcome: PhaseOutcome[T, R] = PhaseOutcome()
    if not tasks:
        return outcome

    done, pending = await asyncio.wait(tasks.keys(), timeout=timeout)

    if pending:
        logger.warning(
            f"[{label}] Délai de {timeout}s dépassé, {len(pending)} tâches annulées"
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        outcome.cancelled = [tasks[t] for t in pending]

    for task in done:
        item = tasks[task]
        if task.cancelled():
            outcome.cancelled.append(item)
            continue
        exc = task.exception()
        if exc is not None:
            outcome.failed.append((item, exc))
        else:
            outcome.succeeded.append((item, task.result()))

    return outcome


async def to_thread_cancellable(func: Callable[..., R], *args: Any) -> R:
    """Exécute `func(*args, cancel_event)` dans un thread.

    Si la tâche appelante est annulée, `cancel_event` est levé et l'appel
    attend la fin du thread avant de propager l'annulation : aucune écriture
    ne survit à la phase qui l'a lancée.

    Args:
        func: Fonction bloquante ; son dernier argument est le threading.Event.
        *args: Arguments positionnels de `func`.

    Returns:
        Le résultat de `func`.
    """
    cancel_event = threading.Event()
    future = asyncio.ensure_future(asyncio.to_thread(func, *args, cancel_event))
    try:
        return await asyncio.shield(future)
    except asyncio.CancelledError:
        cancel_event.set()
        await asyncio.gather(future, return_exceptions=True)
        raise
