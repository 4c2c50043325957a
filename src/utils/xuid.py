"""Utilitaires pour la manipulation des UUID joueurs et des XUIDs Xbox.

Ce module fournit des fonctions pour parser, valider et classer les
identifiants joueurs trouvés dans les noms de fichiers de statistiques :
- UUID Java (espace de noms principal)
- UUID "bridge" (joueurs Bedrock passés par Geyser/Floodgate), dont les
  16 derniers chiffres hexadécimaux encodent le XUID Xbox.
"""

from __future__ import annotations

import re
import uuid

__all__ = [
    "BRIDGE_UUID_PREFIX",
    "UUID_RE",
    "parse_player_uuid",
    "is_bridge_uuid",
    "xuid_from_bridge_uuid",
]

# Préfixe réservé aux joueurs Bedrock (Floodgate)
BRIDGE_UUID_PREFIX = "00000000-0000-0000-"

# Forme canonique 8-4-4-4-12 (36 caractères)
UUID_RE = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)


def parse_player_uuid(s: str | None) -> str | None:
    """Parse un UUID joueur sous forme canonique.

    Accepte uniquement la forme à tirets de 36 caractères (celle des noms
    de fichiers world/stats/<uuid>.json).

    Args:
        s: Chaîne à parser.

    Returns:
        L'UUID normalisé en minuscules, ou None si invalide.
    """
    s = (s or "").strip()
    if not UUID_RE.match(s):
        return None
    try:
        return str(uuid.UUID(s))
    except ValueError:
        return None


def is_bridge_uuid(player_uuid: str) -> bool:
    """True si l'UUID appartient à l'espace de noms bridge (Bedrock)."""
    return (player_uuid or "").lower().startswith(BRIDGE_UUID_PREFIX)


def xuid_from_bridge_uuid(player_uuid: str) -> str | None:
    """Extrait le XUID décimal d'un UUID bridge.

    Exemple: 00000000-0000-0000-0009-01f4a5b2c3d4 → "2535425054000084"

    Args:
        player_uuid: UUID bridge.

    Returns:
        Le XUID en base 10, ou None si l'UUID n'est pas un UUID bridge.
    """
    if not is_bridge_uuid(player_uuid):
        return None
    tail = player_uuid[len(BRIDGE_UUID_PREFIX) :].replace("-", "")
    try:
        return str(int(tail, 16))
    except ValueError:
        return None
