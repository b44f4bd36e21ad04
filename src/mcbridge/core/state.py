from __future__ import annotations

import asyncio
import json
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from .models import (
    BindingRecord,
    InventoryItem,
    MessageSource,
    RelayMessage,
    SettingEntry,
    SyncChannel,
)
from .sqlite_utils import connect_sqlite
from .time_utils import now_iso

BRIDGE_STATE_SCHEMA_VERSION = 1
EPOCH_ISO = "1970-01-01T00:00:00Z"


class BridgeStateStore:
    """Async facade over the bridge's sqlite database.

    All sqlite work runs on a single worker thread; coroutines only await the
    executor, so one slow query never blocks the event loop.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="bridge-state"
        )
        self._connection: Optional[sqlite3.Connection] = None

    @property
    def path(self) -> Path:
        return self._db_path

    async def initialize(self) -> None:
        await self._run(self._ensure_initialized_sync)

    async def close(self) -> None:
        await self._run(self._close_sync)
        self._executor.shutdown(wait=True)

    async def ping(self) -> None:
        await self._run(self._ping_sync)

    # Player bindings

    async def get_binding(self, discord_id: str) -> Optional[BindingRecord]:
        return await self._run(self._get_binding_sync, discord_id)

    async def find_binding_by_code(self, bind_code: str) -> Optional[BindingRecord]:
        return await self._run(self._find_binding_by_code_sync, bind_code)

    async def upsert_pending_binding(
        self,
        *,
        discord_id: str,
        discord_name: Optional[str],
        mc_name: str,
        bind_code: str,
        issued_at: str,
    ) -> BindingRecord:
        return await self._run(
            self._upsert_pending_binding_sync,
            discord_id,
            discord_name,
            mc_name,
            bind_code,
            issued_at,
        )

    async def clear_bind_code(self, binding_id: int) -> None:
        await self._run(self._clear_bind_code_sync, binding_id)

    async def complete_binding(
        self,
        binding_id: int,
        *,
        bind_code: str,
        mc_uuid: str,
        mc_name: str,
        bound_at: str,
    ) -> Optional[BindingRecord]:
        return await self._run(
            self._complete_binding_sync,
            binding_id,
            bind_code,
            mc_uuid,
            mc_name,
            bound_at,
        )

    async def count_bound_players(self) -> int:
        return await self._run(self._count_bound_players_sync)

    async def list_bound_players(
        self, *, limit: Optional[int] = None, offset: int = 0
    ) -> list[BindingRecord]:
        return await self._run(self._list_bound_players_sync, limit, offset)

    async def get_player(self, mc_uuid: str) -> Optional[BindingRecord]:
        return await self._run(self._get_player_sync, mc_uuid)

    # Relay messages

    async def add_message(
        self,
        *,
        source: MessageSource,
        username: str,
        content: str,
        delivered: bool,
    ) -> RelayMessage:
        return await self._run(
            self._add_message_sync, source, username, content, delivered
        )

    async def list_pending_messages(
        self, *, since: Optional[str] = None, limit: int = 50
    ) -> list[RelayMessage]:
        return await self._run(self._list_pending_messages_sync, since, limit)

    async def mark_messages_delivered(self, ids: Sequence[int]) -> None:
        await self._run(self._mark_messages_delivered_sync, list(ids))

    # Server settings

    async def list_settings(self) -> list[SettingEntry]:
        return await self._run(self._list_settings_sync)

    async def get_setting(self, key: str) -> Optional[SettingEntry]:
        return await self._run(self._get_setting_sync, key)

    async def get_setting_values(self, keys: Iterable[str]) -> dict[str, str]:
        return await self._run(self._get_setting_values_sync, list(keys))

    async def upsert_settings(self, values: Mapping[str, str]) -> None:
        await self._run(self._upsert_settings_sync, dict(values))

    # Sync channels

    async def upsert_sync_channel(
        self,
        *,
        channel_id: str,
        guild_id: str,
        guild_name: Optional[str],
        channel_name: Optional[str],
        added_by: Optional[str],
    ) -> SyncChannel:
        return await self._run(
            self._upsert_sync_channel_sync,
            channel_id,
            guild_id,
            guild_name,
            channel_name,
            added_by,
        )

    async def get_sync_channel(self, channel_id: str) -> Optional[SyncChannel]:
        return await self._run(self._get_sync_channel_sync, channel_id)

    async def delete_sync_channel(self, channel_id: str) -> bool:
        return await self._run(self._delete_sync_channel_sync, channel_id)

    async def list_sync_channels(self) -> list[SyncChannel]:
        return await self._run(self._list_sync_channels_sync)

    # Player inventory

    async def list_inventory(self, mc_uuid: str) -> list[InventoryItem]:
        return await self._run(self._list_inventory_sync, mc_uuid)

    async def get_inventory_item(
        self, mc_uuid: str, item_id: str
    ) -> Optional[InventoryItem]:
        return await self._run(self._get_inventory_item_sync, mc_uuid, item_id)

    async def replace_inventory(
        self, mc_uuid: str, items: Sequence[InventoryItem]
    ) -> int:
        return await self._run(self._replace_inventory_sync, mc_uuid, list(items))

    async def update_inventory_item(
        self,
        mc_uuid: str,
        item_id: str,
        *,
        quantity: int,
        item_name: Optional[str] = None,
        metadata: Any = None,
    ) -> bool:
        """Upsert one item; returns True when the item was deleted instead."""
        return await self._run(
            self._update_inventory_item_sync,
            mc_uuid,
            item_id,
            quantity,
            item_name,
            metadata,
        )

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    def _connection_sync(self) -> sqlite3.Connection:
        if self._connection is None:
            self._connection = connect_sqlite(self._db_path)
            self._ensure_schema(self._connection)
        return self._connection

    def _ensure_initialized_sync(self) -> None:
        self._connection_sync()

    def _close_sync(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def _ping_sync(self) -> None:
        self._connection_sync().execute("SELECT 1").fetchone()

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        with conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_info (
                    version INTEGER NOT NULL
                )
                """
            )
            row = conn.execute(
                "SELECT version FROM schema_info ORDER BY version DESC LIMIT 1"
            ).fetchone()
            if row is None:
                conn.execute(
                    "INSERT INTO schema_info(version) VALUES (?)",
                    (BRIDGE_STATE_SCHEMA_VERSION,),
                )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS player_bindings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    discord_id TEXT NOT NULL UNIQUE,
                    discord_name TEXT,
                    mc_uuid TEXT UNIQUE,
                    mc_name TEXT,
                    bind_code TEXT,
                    bind_code_at TEXT,
                    bound_at TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_player_bindings_bind_code
                    ON player_bindings(bind_code)
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    source TEXT NOT NULL,
                    username TEXT NOT NULL,
                    content TEXT NOT NULL,
                    delivered INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_messages_pending
                    ON messages(source, delivered, created_at)
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS server_settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sync_channels (
                    channel_id TEXT PRIMARY KEY,
                    guild_id TEXT NOT NULL,
                    guild_name TEXT,
                    channel_name TEXT,
                    added_by TEXT,
                    added_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS player_inventory (
                    mc_uuid TEXT NOT NULL,
                    item_id TEXT NOT NULL,
                    item_name TEXT NOT NULL,
                    quantity INTEGER NOT NULL,
                    metadata TEXT,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (mc_uuid, item_id)
                )
                """
            )

    def _binding_from_row(self, row: sqlite3.Row) -> BindingRecord:
        return BindingRecord(
            id=int(row["id"]),
            discord_id=str(row["discord_id"]),
            discord_name=_optional_str(row["discord_name"]),
            mc_name=_optional_str(row["mc_name"]),
            bind_code=_optional_str(row["bind_code"]),
            bind_code_at=_optional_str(row["bind_code_at"]),
            mc_uuid=_optional_str(row["mc_uuid"]),
            bound_at=_optional_str(row["bound_at"]),
        )

    def _get_binding_sync(self, discord_id: str) -> Optional[BindingRecord]:
        conn = self._connection_sync()
        row = conn.execute(
            "SELECT * FROM player_bindings WHERE discord_id = ?",
            (discord_id,),
        ).fetchone()
        if row is None:
            return None
        return self._binding_from_row(row)

    def _find_binding_by_code_sync(self, bind_code: str) -> Optional[BindingRecord]:
        conn = self._connection_sync()
        row = conn.execute(
            "SELECT * FROM player_bindings WHERE bind_code = ? ORDER BY id ASC LIMIT 1",
            (bind_code,),
        ).fetchone()
        if row is None:
            return None
        return self._binding_from_row(row)

    def _upsert_pending_binding_sync(
        self,
        discord_id: str,
        discord_name: Optional[str],
        mc_name: str,
        bind_code: str,
        issued_at: str,
    ) -> BindingRecord:
        conn = self._connection_sync()
        with conn:
            conn.execute(
                """
                INSERT INTO player_bindings (
                    discord_id,
                    discord_name,
                    mc_name,
                    bind_code,
                    bind_code_at,
                    created_at
                )
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(discord_id) DO UPDATE SET
                    discord_name=excluded.discord_name,
                    mc_name=excluded.mc_name,
                    bind_code=excluded.bind_code,
                    bind_code_at=excluded.bind_code_at
                WHERE player_bindings.mc_uuid IS NULL
                """,
                (discord_id, discord_name, mc_name, bind_code, issued_at, now_iso()),
            )
        record = self._get_binding_sync(discord_id)
        if record is None:
            raise RuntimeError(f"binding for {discord_id} vanished after upsert")
        return record

    def _clear_bind_code_sync(self, binding_id: int) -> None:
        conn = self._connection_sync()
        with conn:
            conn.execute(
                """
                UPDATE player_bindings
                SET bind_code = NULL,
                    bind_code_at = NULL
                WHERE id = ?
                """,
                (binding_id,),
            )

    def _complete_binding_sync(
        self,
        binding_id: int,
        bind_code: str,
        mc_uuid: str,
        mc_name: str,
        bound_at: str,
    ) -> Optional[BindingRecord]:
        conn = self._connection_sync()
        with conn:
            cursor = conn.execute(
                """
                UPDATE player_bindings
                SET mc_uuid = ?,
                    mc_name = ?,
                    bind_code = NULL,
                    bind_code_at = NULL,
                    bound_at = ?
                WHERE id = ? AND bind_code = ? AND mc_uuid IS NULL
                """,
                (mc_uuid, mc_name, bound_at, binding_id, bind_code),
            )
        if cursor.rowcount == 0:
            return None
        row = conn.execute(
            "SELECT * FROM player_bindings WHERE id = ?", (binding_id,)
        ).fetchone()
        if row is None:
            return None
        return self._binding_from_row(row)

    def _count_bound_players_sync(self) -> int:
        conn = self._connection_sync()
        row = conn.execute(
            "SELECT COUNT(*) AS count FROM player_bindings WHERE mc_uuid IS NOT NULL"
        ).fetchone()
        return int(row["count"] or 0) if row is not None else 0

    def _list_bound_players_sync(
        self, limit: Optional[int], offset: int
    ) -> list[BindingRecord]:
        conn = self._connection_sync()
        rows = conn.execute(
            """
            SELECT * FROM player_bindings
            WHERE mc_uuid IS NOT NULL
            ORDER BY bound_at DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            (-1 if limit is None else int(limit), max(int(offset), 0)),
        ).fetchall()
        return [self._binding_from_row(row) for row in rows]

    def _get_player_sync(self, mc_uuid: str) -> Optional[BindingRecord]:
        conn = self._connection_sync()
        row = conn.execute(
            "SELECT * FROM player_bindings WHERE mc_uuid = ?",
            (mc_uuid,),
        ).fetchone()
        if row is None:
            return None
        return self._binding_from_row(row)

    def _message_from_row(self, row: sqlite3.Row) -> RelayMessage:
        return RelayMessage(
            id=int(row["id"]),
            source=MessageSource(str(row["source"])),
            username=str(row["username"]),
            content=str(row["content"]),
            delivered=bool(row["delivered"]),
            created_at=str(row["created_at"]),
        )

    def _add_message_sync(
        self,
        source: MessageSource,
        username: str,
        content: str,
        delivered: bool,
    ) -> RelayMessage:
        conn = self._connection_sync()
        with conn:
            cursor = conn.execute(
                """
                INSERT INTO messages (source, username, content, delivered, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (source.value, username, content, 1 if delivered else 0, now_iso()),
            )
        row = conn.execute(
            "SELECT * FROM messages WHERE id = ?", (cursor.lastrowid,)
        ).fetchone()
        return self._message_from_row(row)

    def _list_pending_messages_sync(
        self, since: Optional[str], limit: int
    ) -> list[RelayMessage]:
        conn = self._connection_sync()
        rows = conn.execute(
            """
            SELECT * FROM messages
            WHERE source = ? AND delivered = 0 AND created_at > ?
            ORDER BY created_at ASC, id ASC
            LIMIT ?
            """,
            (MessageSource.DISCORD.value, since or EPOCH_ISO, int(limit)),
        ).fetchall()
        return [self._message_from_row(row) for row in rows]

    def _mark_messages_delivered_sync(self, ids: list[int]) -> None:
        if not ids:
            return
        conn = self._connection_sync()
        placeholders = ",".join("?" for _ in ids)
        with conn:
            conn.execute(
                f"UPDATE messages SET delivered = 1 WHERE id IN ({placeholders})",
                ids,
            )

    def _setting_from_row(self, row: sqlite3.Row) -> SettingEntry:
        return SettingEntry(
            key=str(row["key"]),
            value=str(row["value"]),
            updated_at=str(row["updated_at"]),
        )

    def _list_settings_sync(self) -> list[SettingEntry]:
        conn = self._connection_sync()
        rows = conn.execute("SELECT * FROM server_settings ORDER BY key ASC").fetchall()
        return [self._setting_from_row(row) for row in rows]

    def _get_setting_sync(self, key: str) -> Optional[SettingEntry]:
        conn = self._connection_sync()
        row = conn.execute(
            "SELECT * FROM server_settings WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return None
        return self._setting_from_row(row)

    def _get_setting_values_sync(self, keys: list[str]) -> dict[str, str]:
        if not keys:
            return {}
        conn = self._connection_sync()
        placeholders = ",".join("?" for _ in keys)
        rows = conn.execute(
            f"SELECT key, value FROM server_settings WHERE key IN ({placeholders})",
            keys,
        ).fetchall()
        return {str(row["key"]): str(row["value"]) for row in rows}

    def _upsert_settings_sync(self, values: dict[str, str]) -> None:
        if not values:
            return
        conn = self._connection_sync()
        updated_at = now_iso()
        with conn:
            conn.executemany(
                """
                INSERT INTO server_settings (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value=excluded.value,
                    updated_at=excluded.updated_at
                """,
                [(key, value, updated_at) for key, value in values.items()],
            )

    def _sync_channel_from_row(self, row: sqlite3.Row) -> SyncChannel:
        return SyncChannel(
            channel_id=str(row["channel_id"]),
            guild_id=str(row["guild_id"]),
            guild_name=_optional_str(row["guild_name"]),
            channel_name=_optional_str(row["channel_name"]),
            added_by=_optional_str(row["added_by"]),
            added_at=str(row["added_at"]),
        )

    def _upsert_sync_channel_sync(
        self,
        channel_id: str,
        guild_id: str,
        guild_name: Optional[str],
        channel_name: Optional[str],
        added_by: Optional[str],
    ) -> SyncChannel:
        conn = self._connection_sync()
        with conn:
            conn.execute(
                """
                INSERT INTO sync_channels (
                    channel_id,
                    guild_id,
                    guild_name,
                    channel_name,
                    added_by,
                    added_at
                )
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(channel_id) DO UPDATE SET
                    guild_name=excluded.guild_name,
                    channel_name=excluded.channel_name,
                    added_by=excluded.added_by,
                    added_at=excluded.added_at
                """,
                (channel_id, guild_id, guild_name, channel_name, added_by, now_iso()),
            )
        channel = self._get_sync_channel_sync(channel_id)
        if channel is None:
            raise RuntimeError(f"sync channel {channel_id} vanished after upsert")
        return channel

    def _get_sync_channel_sync(self, channel_id: str) -> Optional[SyncChannel]:
        conn = self._connection_sync()
        row = conn.execute(
            "SELECT * FROM sync_channels WHERE channel_id = ?", (channel_id,)
        ).fetchone()
        if row is None:
            return None
        return self._sync_channel_from_row(row)

    def _delete_sync_channel_sync(self, channel_id: str) -> bool:
        conn = self._connection_sync()
        with conn:
            cursor = conn.execute(
                "DELETE FROM sync_channels WHERE channel_id = ?", (channel_id,)
            )
        return cursor.rowcount > 0

    def _list_sync_channels_sync(self) -> list[SyncChannel]:
        conn = self._connection_sync()
        rows = conn.execute(
            "SELECT * FROM sync_channels ORDER BY added_at ASC, channel_id ASC"
        ).fetchall()
        return [self._sync_channel_from_row(row) for row in rows]

    def _inventory_from_row(self, row: sqlite3.Row) -> InventoryItem:
        metadata: Any = None
        raw_metadata = row["metadata"]
        if isinstance(raw_metadata, str) and raw_metadata:
            try:
                metadata = json.loads(raw_metadata)
            except json.JSONDecodeError:
                metadata = raw_metadata
        return InventoryItem(
            mc_uuid=str(row["mc_uuid"]),
            item_id=str(row["item_id"]),
            item_name=str(row["item_name"]),
            quantity=int(row["quantity"]),
            metadata=metadata,
            updated_at=str(row["updated_at"]),
        )

    def _list_inventory_sync(self, mc_uuid: str) -> list[InventoryItem]:
        conn = self._connection_sync()
        rows = conn.execute(
            """
            SELECT * FROM player_inventory
            WHERE mc_uuid = ?
            ORDER BY item_name ASC, item_id ASC
            """,
            (mc_uuid,),
        ).fetchall()
        return [self._inventory_from_row(row) for row in rows]

    def _get_inventory_item_sync(
        self, mc_uuid: str, item_id: str
    ) -> Optional[InventoryItem]:
        conn = self._connection_sync()
        row = conn.execute(
            "SELECT * FROM player_inventory WHERE mc_uuid = ? AND item_id = ?",
            (mc_uuid, item_id),
        ).fetchone()
        if row is None:
            return None
        return self._inventory_from_row(row)

    def _replace_inventory_sync(self, mc_uuid: str, items: list[InventoryItem]) -> int:
        conn = self._connection_sync()
        updated_at = now_iso()
        # Items are keyed by item_id; a later duplicate replaces an earlier one.
        stored: dict[str, InventoryItem] = {}
        for item in items:
            if item.quantity <= 0:
                stored.pop(item.item_id, None)
                continue
            stored[item.item_id] = item
        with conn:
            conn.execute("DELETE FROM player_inventory WHERE mc_uuid = ?", (mc_uuid,))
            conn.executemany(
                """
                INSERT INTO player_inventory (
                    mc_uuid, item_id, item_name, quantity, metadata, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        mc_uuid,
                        item.item_id,
                        item.item_name,
                        int(item.quantity),
                        _encode_metadata(item.metadata),
                        updated_at,
                    )
                    for item in stored.values()
                ],
            )
        return len(stored)

    def _update_inventory_item_sync(
        self,
        mc_uuid: str,
        item_id: str,
        quantity: int,
        item_name: Optional[str],
        metadata: Any,
    ) -> bool:
        conn = self._connection_sync()
        if quantity <= 0:
            with conn:
                conn.execute(
                    "DELETE FROM player_inventory WHERE mc_uuid = ? AND item_id = ?",
                    (mc_uuid, item_id),
                )
            return True
        encoded_metadata = _encode_metadata(metadata)
        with conn:
            conn.execute(
                """
                INSERT INTO player_inventory (
                    mc_uuid, item_id, item_name, quantity, metadata, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(mc_uuid, item_id) DO UPDATE SET
                    quantity=excluded.quantity,
                    item_name=COALESCE(?, player_inventory.item_name),
                    metadata=COALESCE(excluded.metadata, player_inventory.metadata),
                    updated_at=excluded.updated_at
                """,
                (
                    mc_uuid,
                    item_id,
                    item_name or item_id,
                    int(quantity),
                    encoded_metadata,
                    now_iso(),
                    item_name,
                ),
            )
        return False


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _encode_metadata(metadata: Any) -> Optional[str]:
    if metadata is None:
        return None
    return json.dumps(metadata)


__all__ = ["BRIDGE_STATE_SCHEMA_VERSION", "BridgeStateStore"]
