"""Client HTTP asynchrone pour la récupération des pseudos joueurs.

Deux espaces de noms :
- Java : https://api.minetools.eu/profile/{uuid} → decoded.profileName
- Bedrock (UUID bridge 00000000-0000-0000-...) : le XUID est extrait de
  l'UUID puis https://api.geysermc.org/v2/xbox/gamertag/{xuid} → gamertag

Usage:
    async with NickLookupClient() as client:
        nick = await client.fetch_nick("069a79f4-44e9-4726-a5be-fca90e38aaf5")
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from aiohttp import ClientError, ClientSession, ClientTimeout

from src.utils.xuid import is_bridge_uuid, xuid_from_bridge_uuid

logger = logging.getLogger(__name__)

JAVA_PROFILE_URL = "https://api.minetools.eu/profile/{uuid}"
BEDROCK_GAMERTAG_URL = "https://api.geysermc.org/v2/xbox/gamertag/{xuid}"

# Longueur max de uuid_map.player_nick
MAX_NICK_LENGTH = 32


def extract_java_nick(payload: Any) -> str | None:
    """Extrait decoded.profileName d'une réponse minetools."""
    if not isinstance(payload, dict):
        return None
    decoded = payload.get("decoded")
    if not isinstance(decoded, dict):
        return None
    return _clean_nick(decoded.get("profileName"))


def extract_bedrock_nick(payload: Any) -> str | None:
    """Extrait gamertag d'une réponse GeyserMC."""
    if not isinstance(payload, dict):
        return None
    return _clean_nick(payload.get("gamertag"))


def _clean_nick(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value or len(value) > MAX_NICK_LENGTH:
        return None
    return value


class NickLookupClient:
    """Client des APIs publiques de pseudos.

    Aucune relance : une erreur réseau, un statut != 200 ou un champ absent
    donnent None, le joueur sera retenté à la passe suivante.
    """

    def __init__(
        self,
        *,
        session: ClientSession | None = None,
        request_timeout: float = 10.0,
    ) -> None:
        """
        Args:
            session: Session aiohttp existante (sinon créée à l'entrée du contexte).
            request_timeout: Timeout total d'une requête en secondes.
        """
        self._session = session
        self._owns_session = session is None
        self._request_timeout = request_timeout

    async def __aenter__(self) -> NickLookupClient:
        """Initialise la session."""
        if self._session is None:
            self._session = ClientSession(timeout=ClientTimeout(total=self._request_timeout))
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Ferme la session si elle a été créée ici."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    @staticmethod
    def lookup_url(player_uuid: str) -> str | None:
        """URL à interroger pour un UUID (None si UUID bridge invalide)."""
        if is_bridge_uuid(player_uuid):
            xuid = xuid_from_bridge_uuid(player_uuid)
            if xuid is None:
                return None
            return BEDROCK_GAMERTAG_URL.format(xuid=xuid)
        return JAVA_PROFILE_URL.format(uuid=player_uuid)

    async def _get_json(self, url: str) -> Any | None:
        if self._session is None:
            raise RuntimeError("Client non initialisé. Utiliser 'async with'.")
        async with self._session.get(url, headers={"Accept": "application/json"}) as resp:
            if resp.status != 200:
                logger.debug(f"GET {url} → {resp.status}")
                return None
            return await resp.json(content_type=None)

    async def fetch_nick(self, player_uuid: str) -> str | None:
        """Récupère le pseudo d'un joueur.

        Args:
            player_uuid: UUID du joueur (Java ou bridge Bedrock).

        Returns:
            Le pseudo, ou None si indisponible.
        """
        url = self.lookup_url(player_uuid)
        if url is None:
            logger.debug(f"UUID bridge sans XUID exploitable: {player_uuid}")
            return None

        try:
            payload = await self._get_json(url)
        except (ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"Erreur récupération pseudo {player_uuid}: {e}")
            return None

        if payload is None:
            return None
        if is_bridge_uuid(player_uuid):
            return extract_bedrock_nick(payload)
        return extract_java_nick(payload)
