"""Tests pour src/data/sync/enricher.py (phase de récupération des pseudos)."""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import text

from src.data.sync.enricher import NicknameEnricher
from src.data.sync.models import SyncState
from tests.conftest import BRIDGE_UUID, JAVA_UUID_A, JAVA_UUID_B, JAVA_UUID_C


class FakeNickClient:
    """Client de pseudos en mémoire (aucun appel réseau)."""

    def __init__(self, nicks: dict[str, str | None], delay: float = 0.0):
        self.nicks = nicks
        self.delay = delay
        self.calls: list[str] = []

    async def __aenter__(self) -> FakeNickClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    async def fetch_nick(self, player_uuid: str) -> str | None:
        self.calls.append(player_uuid)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.nicks.get(player_uuid)


def _nicks(engine) -> dict[str, str | None]:
    with engine.connect() as conn:
        rows = conn.execute(text("SELECT player_uuid, player_nick FROM uuid_map")).all()
    return {row.player_uuid: row.player_nick for row in rows}


class TestNicknameEnricher:
    def test_load_candidates(self, db, insert_player):
        missing = insert_player(JAVA_UUID_A)
        insert_player(JAVA_UUID_B, nick="Alex")
        enricher = NicknameEnricher(db, workers=2, timeout=10)
        assert enricher.load_candidates() == [(missing, JAVA_UUID_A)]

    @pytest.mark.asyncio
    async def test_fills_missing_nicks(self, db, insert_player):
        insert_player(JAVA_UUID_A)
        insert_player(BRIDGE_UUID)
        insert_player(JAVA_UUID_B, nick="Alex")
        client = FakeNickClient({JAVA_UUID_A: "Notch", BRIDGE_UUID: "BedrockSteve"})
        enricher = NicknameEnricher(db, workers=2, timeout=10, client_factory=lambda: client)
        state = SyncState()

        report = await enricher.run(state)

        assert report.candidates == 2
        assert report.nicks_updated == 2
        assert report.lookups_failed == 0
        assert sorted(client.calls) == sorted([JAVA_UUID_A, BRIDGE_UUID])
        assert _nicks(db) == {JAVA_UUID_A: "Notch", BRIDGE_UUID: "BedrockSteve", JAVA_UUID_B: "Alex"}
        snapshot = state.snapshot()
        assert snapshot.progress_total == 2
        assert snapshot.progress_done == 2

    @pytest.mark.asyncio
    async def test_failed_lookup_left_null(self, db, insert_player):
        """Un pseudo introuvable reste NULL et sera retenté à la passe suivante."""
        insert_player(JAVA_UUID_A)
        insert_player(JAVA_UUID_C)
        client = FakeNickClient({JAVA_UUID_A: "Notch", JAVA_UUID_C: None})
        enricher = NicknameEnricher(db, workers=2, timeout=10, client_factory=lambda: client)
        state = SyncState()

        report = await enricher.run(state)

        assert report.nicks_updated == 1
        assert report.lookups_failed == 1
        assert _nicks(db)[JAVA_UUID_C] is None
        assert state.snapshot().progress_done == 1
        assert enricher.load_candidates()[0][1] == JAVA_UUID_C

    @pytest.mark.asyncio
    async def test_no_candidates(self, db, insert_player):
        insert_player(JAVA_UUID_A, nick="Notch")
        client = FakeNickClient({})
        enricher = NicknameEnricher(db, workers=2, timeout=10, client_factory=lambda: client)

        report = await enricher.run(SyncState())

        assert report.candidates == 0
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_timeout_partial(self, db, insert_player):
        insert_player(JAVA_UUID_A)
        client = FakeNickClient({JAVA_UUID_A: "Notch"}, delay=5.0)
        enricher = NicknameEnricher(db, workers=1, timeout=0.05, client_factory=lambda: client)

        report = await enricher.run(SyncState())

        assert report.timed_out is True
        assert report.nicks_updated == 0
        assert _nicks(db)[JAVA_UUID_A] is None
