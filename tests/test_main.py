"""Tests for logging configuration and the command-line entrypoint."""

from __future__ import annotations

import json

import pytest
import structlog

from npmx import main as main_module
from npmx.config import NpmxSettings, StorageSettings
from npmx.db.session import Database
from npmx.domain.models import SearchPage
from npmx.logging import configure_logging
from npmx.services.storage import KeyValueStore, MemoryBackend, SqlBackend


def test_configure_logging_outputs_json(capsys):
    configure_logging()
    logger = structlog.get_logger()
    logger.info("unit-test", foo="bar")
    out = capsys.readouterr().out
    payload = json.loads(out.strip().splitlines()[-1])
    assert payload["event"] == "unit-test"
    assert payload["foo"] == "bar"
    assert payload["level"] == "info"


def test_configure_logging_accepts_level_names(capsys):
    configure_logging("warning")
    structlog.get_logger().info("hidden")
    structlog.get_logger().warning("shown")
    out = capsys.readouterr().out
    assert "hidden" not in out
    assert "shown" in out
    configure_logging()


class DummyRegistry:
    def __init__(self, client, settings) -> None:
        self.settings = settings

    async def search_packages(self, query: str, size: int = 20, offset: int = 0) -> SearchPage:
        return SearchPage.model_validate(
            {"objects": [{"package": {"name": f"{query}-lib"}}], "total": 1}
        )


@pytest.fixture
def cli_env(monkeypatch):
    settings = NpmxSettings(
        storage=StorageSettings(backend="memory"),
        popular_packages=["react", "vue"],
        log_level="WARNING",
    )
    settings.suggestions.debounce_ms = 0
    storage = KeyValueStore(MemoryBackend())
    monkeypatch.setattr(main_module, "get_settings", lambda: settings)
    monkeypatch.setattr(main_module, "build_storage", lambda _: storage)
    monkeypatch.setattr(main_module, "RegistryClient", DummyRegistry)
    return settings, storage


def _last_json(out: str):
    start = out.index("[") if out.lstrip().startswith("[") else out.index("{")
    return json.loads(out[start:])


@pytest.mark.asyncio
async def test_suggest_command_prints_settled_snapshot(cli_env, capsys):
    code = await main_module.main(["suggest", "re", "--typing", "--remember"])
    assert code == 0
    snapshot = _last_json(capsys.readouterr().out)
    assert snapshot["query"] == "re"
    assert [item["value"] for item in snapshot["items"]] == ["re-lib", "react"]

    await main_module.main(["recent", "list"])
    assert _last_json(capsys.readouterr().out) == ["re"]


@pytest.mark.asyncio
async def test_saved_command_toggles(cli_env, capsys):
    await main_module.main(["saved", "toggle", "left-pad"])
    state = _last_json(capsys.readouterr().out)
    assert state == {"favorites": ["left-pad"], "watchlist": []}

    await main_module.main(["saved", "toggle", "--list", "watchlist", "react"])
    state = _last_json(capsys.readouterr().out)
    assert state == {"favorites": ["left-pad"], "watchlist": ["react"]}


@pytest.mark.asyncio
async def test_collections_command_reports_missing_collection(cli_env, capsys):
    code = await main_module.main(["collections", "add", "--id", "col_x", "--package", "react"])
    assert code == 1
    assert "col_x" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_collections_command_creates(cli_env, capsys):
    await main_module.main(["collections", "create", "--name", "Frontend"])
    created = _last_json(capsys.readouterr().out)
    assert created["name"] == "Frontend"
    assert created["packages"] == []


@pytest.mark.asyncio
async def test_saved_command_remove_and_clear(cli_env, capsys):
    await main_module.main(["saved", "toggle", "--list", "watchlist", "react"])
    await main_module.main(["saved", "toggle", "vue", "--list", "watchlist"])
    capsys.readouterr()

    await main_module.main(["saved", "remove", "react", "--list", "watchlist"])
    assert _last_json(capsys.readouterr().out)["watchlist"] == ["vue"]

    await main_module.main(["saved", "clear", "--list", "watchlist"])
    assert _last_json(capsys.readouterr().out) == {"favorites": [], "watchlist": []}


@pytest.mark.asyncio
async def test_saved_toggle_requires_name(cli_env):
    with pytest.raises(SystemExit):
        await main_module.main(["saved", "toggle"])


@pytest.mark.asyncio
async def test_sql_storage_is_disposed_after_command(cli_env, monkeypatch, capsys):
    database = Database("sqlite:///:memory:")
    storage = KeyValueStore(SqlBackend(database))
    monkeypatch.setattr(main_module, "build_storage", lambda _: storage)

    code = await main_module.main(["recent", "add", "react"])
    assert code == 0
    assert _last_json(capsys.readouterr().out) == ["react"]
    assert database._engine is None


@pytest.mark.asyncio
async def test_storage_is_closed_when_command_fails(cli_env, monkeypatch):
    closed = []
    storage = KeyValueStore(MemoryBackend())
    monkeypatch.setattr(storage, "close", lambda: closed.append(True))
    monkeypatch.setattr(main_module, "build_storage", lambda _: storage)

    code = await main_module.main(["collections", "add", "--id", "col_x", "--package", "react"])
    assert code == 1
    assert closed == [True]
