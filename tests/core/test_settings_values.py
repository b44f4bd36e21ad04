from __future__ import annotations

import pytest

from mcbridge.core.exceptions import (
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from mcbridge.core.settings import status_report_to_settings, stringify_setting_value
from mcbridge.core.time_utils import format_iso_utc_z, parse_iso_utc


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, "null"),
        (True, "true"),
        (False, "false"),
        (20.0, "20"),
        (19.5, "19.5"),
        (7, "7"),
        ("online", "online"),
        ({"a": 1}, '{"a":1}'),
        ([1, 2], "[1,2]"),
    ],
)
def test_stringify_setting_value(value, expected: str) -> None:
    assert stringify_setting_value(value) == expected


def test_status_report_only_maps_present_fields() -> None:
    assert status_report_to_settings(
        {"status": "online", "tps": 19.8, "players_online": 3}
    ) == {
        "server_status": "online",
        "server_tps": "19.8",
        "server_players_online": "3",
    }
    assert status_report_to_settings({}) == {}


def test_parse_iso_utc_accepts_z_and_naive() -> None:
    parsed = parse_iso_utc("2026-01-02T03:04:05Z")
    assert parsed is not None
    assert format_iso_utc_z(parsed) == "2026-01-02T03:04:05Z"

    naive = parse_iso_utc("2026-01-02T03:04:05")
    assert naive is not None and naive.tzinfo is not None

    shifted = parse_iso_utc("2026-01-02T05:04:05+02:00")
    assert shifted is not None
    assert format_iso_utc_z(shifted) == "2026-01-02T03:04:05Z"

    assert parse_iso_utc("yesterday") is None
    assert parse_iso_utc(None) is None


def test_public_message_hides_server_side_detail() -> None:
    assert ValidationError("Missing value").public_message == "Missing value"
    assert NotFoundError("Player not found").public_message == "Player not found"
    assert UpstreamError("token leaked in here").public_message == (
        "Upstream request failed"
    )
    assert (
        UpstreamError("detail", user_message="Failed to send to Discord").public_message
        == "Failed to send to Discord"
    )
