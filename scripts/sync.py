#!/usr/bin/env python3
"""Script de synchronisation des statistiques joueurs.

Point d'entrée unique :
- Passe unique (défaut) : world/stats → base SQL, pseudos, positions, Hall of Fame
- Statut : état du moteur et date de la dernière synchronisation
- Planification : passes périodiques jusqu'à Ctrl+C

Usage:
    python scripts/sync.py --help
    python scripts/sync.py                               # Passe unique
    python scripts/sync.py --config serveur.json --once  # Config explicite
    python scripts/sync.py --status                      # Affiche le statut
    python scripts/sync.py --schedule                    # Planification continue
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from pathlib import Path

# Ajouter le répertoire parent au path pour les imports
REPO_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(REPO_ROOT))

from src.config import SyncSettings, load_settings  # noqa: E402
from src.data.sync import StatSyncEngine, StatSyncScheduler  # noqa: E402
from src.data.sync.models import DISPLAY_FORMAT  # noqa: E402

# Configuration du logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Commandes
# =============================================================================


def run_once(settings: SyncSettings, *, as_json: bool = False) -> int:
    """Exécute une passe et affiche le résumé."""
    engine = StatSyncEngine(settings)
    try:
        result = engine.run_blocking()
    finally:
        engine.close()

    if as_json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(result.to_message())
        for warning in result.warnings[:10]:
            logger.warning(warning)
    return 0 if result.success else 1


def show_status(settings: SyncSettings) -> int:
    """Affiche le statut et la date de dernière synchronisation en base."""
    engine = StatSyncEngine(settings)
    try:
        print(engine.status().to_message())
        try:
            last_update = engine.last_sync_time()
        except Exception as e:
            logger.error(f"Lecture de last_update impossible: {e}")
            return 1
        print(f"last_update en base : {last_update.strftime(DISPLAY_FORMAT)} (UTC)")
    finally:
        engine.close()
    return 0


def run_scheduler(settings: SyncSettings, *, initial_delay: float) -> int:
    """Planifie des passes jusqu'à Ctrl+C."""
    engine = StatSyncEngine(settings)
    scheduler = StatSyncScheduler(
        engine,
        interval_minutes=settings.sync_interval_minutes,
        initial_delay_seconds=initial_delay,
    )
    if not scheduler.start():
        engine.close()
        return 1

    stop = threading.Event()
    try:
        while not stop.wait(1.0):
            pass
    except KeyboardInterrupt:
        logger.info("Arrêt demandé")
    finally:
        scheduler.stop()
        engine.close()
    return 0


# =============================================================================
# Main
# =============================================================================


def main() -> int:
    """Point d'entrée principal."""
    parser = argparse.ArgumentParser(
        description="Synchronisation des statistiques joueurs vers une base SQL",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exemples:
  python scripts/sync.py                         # Passe unique
  python scripts/sync.py --once --json           # Passe unique, résumé JSON
  python scripts/sync.py --status                # Statut
  python scripts/sync.py --schedule              # Planification continue
        """,
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Fichier de configuration JSON (défaut: player_statistics.json)",
    )

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--once",
        action="store_true",
        help="Exécute une seule passe (défaut)",
    )
    mode_group.add_argument(
        "--status",
        action="store_true",
        help="Affiche le statut et la dernière synchronisation",
    )
    mode_group.add_argument(
        "--schedule",
        action="store_true",
        help="Passes périodiques (sync_interval_minutes) jusqu'à Ctrl+C",
    )

    parser.add_argument(
        "--initial-delay",
        type=float,
        default=60.0,
        help="Délai avant la première passe planifiée en secondes (défaut: 60)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Affiche le résultat de la passe au format JSON",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Logs détaillés (DEBUG)",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        settings = load_settings(args.config)
    except ValueError as e:
        logger.error(f"Configuration invalide: {e}")
        return 1

    if args.status:
        return show_status(settings)
    if args.schedule:
        return run_scheduler(settings, initial_delay=args.initial_delay)
    return run_once(settings, as_json=args.json)


if __name__ == "__main__":
    sys.exit(main())
