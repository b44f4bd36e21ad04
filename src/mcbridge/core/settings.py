from __future__ import annotations

import json
from typing import Any, Mapping

# Status report field -> stored setting key.
STATUS_FIELD_KEYS: Mapping[str, str] = {
    "status": "server_status",
    "tps": "server_tps",
    "players_online": "server_players_online",
    "players_max": "server_players_max",
    "version": "server_version",
}

STATUS_SETTING_KEYS = tuple(STATUS_FIELD_KEYS.values())


def stringify_setting_value(value: Any) -> str:
    """Render a JSON value the way it is stored in ``server_settings``."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)


def status_report_to_settings(report: Mapping[str, Any]) -> dict[str, str]:
    """Map the fields present in a status report onto setting keys."""
    return {
        setting_key: stringify_setting_value(report[field])
        for field, setting_key in STATUS_FIELD_KEYS.items()
        if field in report
    }
