from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from nacl.signing import SigningKey

from mcbridge.core.config import BridgeConfig
from mcbridge.surfaces.web import create_app

TIMESTAMP = "1700000000"


def _signed_client_app(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, key: SigningKey):
    monkeypatch.setenv("DISCORD_PUBLIC_KEY", key.verify_key.encode().hex())
    config = BridgeConfig.from_raw(root=tmp_path, raw={})
    return create_app(config)


def _post_signed(
    client: TestClient, key: SigningKey, body: bytes, *, timestamp: str = TIMESTAMP
):
    signature = key.sign(timestamp.encode("utf-8") + body).signature.hex()
    return client.post(
        "/",
        content=body,
        headers={
            "content-type": "application/json",
            "x-signature-ed25519": signature,
            "x-signature-timestamp": timestamp,
        },
    )


def _encode(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload).encode("utf-8")


def test_ping_is_answered_with_pong(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    key = SigningKey.generate()
    with TestClient(_signed_client_app(tmp_path, monkeypatch, key)) as client:
        response = _post_signed(client, key, _encode({"type": 1}))

    assert response.status_code == 200
    assert response.json() == {"type": 1}


def test_bad_signature_is_rejected(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    key = SigningKey.generate()
    impostor = SigningKey.generate()
    with TestClient(_signed_client_app(tmp_path, monkeypatch, key)) as client:
        forged = _post_signed(client, impostor, _encode({"type": 1}))
        unsigned = client.post("/", json={"type": 1})

    assert forged.status_code == 401
    assert forged.text == "Bad request signature"
    assert unsigned.status_code == 401


def test_missing_public_key_rejects_everything(tmp_path: Path) -> None:
    app = create_app(BridgeConfig.from_raw(root=tmp_path, raw={}))
    with TestClient(app) as client:
        response = client.post(
            "/",
            json={"type": 1},
            headers={"x-signature-ed25519": "00", "x-signature-timestamp": "1"},
        )

    assert response.status_code == 401


def test_signed_garbage_is_400(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    key = SigningKey.generate()
    with TestClient(_signed_client_app(tmp_path, monkeypatch, key)) as client:
        not_json = _post_signed(client, key, b"{not json")
        unknown_type = _post_signed(client, key, _encode({"type": 42}))

    assert not_json.status_code == 400
    assert not_json.json() == {"success": False, "error": "Invalid JSON body"}
    assert unknown_type.status_code == 400
    assert unknown_type.json() == {"error": "Unknown interaction type"}


def test_signed_command_is_dispatched(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    key = SigningKey.generate()
    monkeypatch.setenv("MINECRAFT_API_KEY", "secret")
    with TestClient(_signed_client_app(tmp_path, monkeypatch, key)) as client:
        response = _post_signed(
            client,
            key,
            _encode(
                {
                    "type": 2,
                    "guild_id": "g1",
                    "channel_id": "c1",
                    "member": {
                        "roles": [],
                        "user": {"id": "42", "username": "alex", "global_name": "Alex"},
                    },
                    "data": {
                        "name": "mc",
                        "options": [{"name": "message", "value": "hello"}],
                    },
                }
            ),
        )
        polled = client.get("/api/mc/messages", headers={"x-api-key": "secret"})

    assert response.status_code == 200
    assert response.json()["data"]["content"] == (
        "📨 **Alex**: hello\n*(sent to Minecraft)*"
    )
    assert [message["content"] for message in polled.json()["data"]] == ["hello"]
