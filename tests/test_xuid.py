"""Tests pour src/utils/xuid.py (UUID joueurs et XUID Bedrock)."""

from __future__ import annotations

from src.utils.xuid import (
    BRIDGE_UUID_PREFIX,
    is_bridge_uuid,
    parse_player_uuid,
    xuid_from_bridge_uuid,
)


class TestParsePlayerUuid:
    def test_canonical_lowercase(self):
        assert (
            parse_player_uuid("069a79f4-44e9-4726-a5be-fca90e38aaf5")
            == "069a79f4-44e9-4726-a5be-fca90e38aaf5"
        )

    def test_uppercase_normalized(self):
        assert (
            parse_player_uuid("069A79F4-44E9-4726-A5BE-FCA90E38AAF5")
            == "069a79f4-44e9-4726-a5be-fca90e38aaf5"
        )

    def test_surrounding_spaces(self):
        assert parse_player_uuid("  069a79f4-44e9-4726-a5be-fca90e38aaf5 ") is not None

    def test_without_dashes_rejected(self):
        """Seule la forme à 36 caractères (nom de fichier) est acceptée."""
        assert parse_player_uuid("069a79f444e94726a5befca90e38aaf5") is None

    def test_garbage(self):
        assert parse_player_uuid("level") is None
        assert parse_player_uuid("069a79f4-44e9-4726-a5be-fca90e38aaf5.bak") is None
        assert parse_player_uuid("zzzzzzzz-44e9-4726-a5be-fca90e38aaf5") is None

    def test_none_and_empty(self):
        assert parse_player_uuid(None) is None
        assert parse_player_uuid("") is None


class TestBridgeUuid:
    def test_prefix(self):
        assert BRIDGE_UUID_PREFIX == "00000000-0000-0000-"

    def test_is_bridge(self):
        assert is_bridge_uuid("00000000-0000-0000-0009-01f4a5b2c3d4") is True

    def test_java_is_not_bridge(self):
        assert is_bridge_uuid("069a79f4-44e9-4726-a5be-fca90e38aaf5") is False

    def test_xuid_decimal(self):
        """Les 16 derniers chiffres hexadécimaux donnent le XUID en base 10."""
        assert xuid_from_bridge_uuid("00000000-0000-0000-0009-01f4a5b2c3d4") == "2535425054000084"

    def test_xuid_matches_int_conversion(self):
        uuid = "00000000-0000-0000-0009-0000000000ff"
        assert xuid_from_bridge_uuid(uuid) == str(int("00090000000000ff", 16))

    def test_xuid_of_java_uuid_is_none(self):
        assert xuid_from_bridge_uuid("069a79f4-44e9-4726-a5be-fca90e38aaf5") is None
