"""
Web Client Detector - Config Store Tests
========================================
"""

import asyncio
import json

import pytest

from config_store import Config, ConfigStore, normalize_methods


def test_missing_file_is_created_with_defaults(tmp_path):
    path = tmp_path / "config.json"
    store = ConfigStore(path, defaults=Config(process_delay_ms=500))

    config = store.load()

    assert config.process_delay_ms == 500
    assert config.verification_methods == ["button"]
    assert json.loads(path.read_text())["periodic_notify_cron"] == "0,30 * * * *"


def test_stored_values_override_defaults_and_unknown_keys_are_dropped(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"autoscan_enabled": True, "sus_role_id": 9, "legacy_field": 1}))

    config = ConfigStore(path).load()

    assert config.autoscan_enabled is True
    assert config.sus_role_id == 9
    assert "legacy_field" not in json.loads(path.read_text())


def test_corrupt_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")

    config = ConfigStore(path).load()

    assert config == Config()


def test_empty_method_list_in_file_uses_default(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"verification_methods": []}))

    assert ConfigStore(path).load().verification_methods == ["button"]


def test_normalize_methods_orders_and_dedupes():
    assert normalize_methods(["math", "WORD", "math", "captcha"]) == ["word", "math"]
    assert normalize_methods("button") == []


def test_challenge_methods_excludes_button():
    assert Config(verification_methods=["button", "math"]).challenge_methods() == ["math"]


@pytest.mark.asyncio
async def test_update_persists_immediately(tmp_path):
    path = tmp_path / "config.json"
    store = ConfigStore(path)
    store.load()

    await store.update(log_channel_id=42, verification_methods=["math", "button"])

    on_disk = json.loads(path.read_text())
    assert on_disk["log_channel_id"] == 42
    assert on_disk["verification_methods"] == ["button", "math"]


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields_and_empty_methods(tmp_path):
    store = ConfigStore(tmp_path / "config.json")
    store.load()

    with pytest.raises(KeyError):
        await store.update(colour="blue")
    with pytest.raises(ValueError):
        await store.update(verification_methods=[])
    assert store.config.verification_methods == ["button"]


@pytest.mark.asyncio
async def test_concurrent_updates_are_not_lost(tmp_path):
    path = tmp_path / "config.json"
    store = ConfigStore(path)
    store.load()

    await asyncio.gather(
        store.update(autoscan_enabled=True),
        store.update(log_channel_id=7),
        store.update(sus_role_id=8),
    )

    on_disk = json.loads(path.read_text())
    assert (on_disk["autoscan_enabled"], on_disk["log_channel_id"], on_disk["sus_role_id"]) == (True, 7, 8)
