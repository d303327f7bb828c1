"""Tests for AppConfig helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from pgpane import config as config_module
from pgpane.config import (
    ENV_PROFILE_NAME,
    AppConfig,
    ConnectionProfileConfig,
    LayoutState,
    QuerySettings,
    apply_environment,
    load_config,
)


@pytest.fixture
def config_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "config.toml"
    monkeypatch.setattr(config_module, "CONFIG_FILE", path)
    return path


def test_load_config_returns_defaults_when_missing(config_path: Path) -> None:
    result = load_config(environ={})

    assert result == AppConfig()
    assert result.profile().name == "Local"


def test_load_config_reads_values(config_path: Path) -> None:
    config_path.write_text(
        """
theme = "light"
demo = true
active_profile = "Warehouse"

[[profiles]]
name = "Local"
host = "localhost"

[[profiles]]
name = "Warehouse"
host = "dw.internal"
port = 6543
database = "dw"
user = "analyst"

[layout]
sidebar_width = 40

[query]
fetch_batch_size = 50
result_row_limit = 0

[logging]
level = "DEBUG"
file = "pgpane.log"
""".strip(),
        encoding="utf-8",
    )

    result = load_config(environ={})

    assert result.theme == "light"
    assert result.demo is True
    assert [profile.name for profile in result.profiles] == ["Local", "Warehouse"]
    warehouse = result.profile()
    assert warehouse.port == 6543
    assert warehouse.database == "dw"
    assert result.layout == LayoutState(sidebar_width=40)
    assert result.query == QuerySettings(fetch_batch_size=50)
    assert result.logging.level == "DEBUG"
    assert result.logging.file == "pgpane.log"


def test_load_config_ignores_malformed_file(config_path: Path) -> None:
    config_path.write_text("theme = [unterminated", encoding="utf-8")

    assert load_config(environ={}) == AppConfig()


def test_profile_lookup_raises_for_unknown_name() -> None:
    config = AppConfig(active_profile="Missing")

    with pytest.raises(ValueError, match="Missing"):
        config.profile()


def test_with_profile_replaces_entry_with_same_name() -> None:
    config = AppConfig().with_profile(ConnectionProfileConfig(name="Local", host="db.local"))

    assert len(config.profiles) == 1
    assert config.profile("Local").host == "db.local"


def test_postgres_environment_becomes_active_profile() -> None:
    environ = {
        "POSTGRES_USER": "app",
        "POSTGRES_PASSWORD": "secret",
        "POSTGRES_HOST": "db",
        "POSTGRES_PORT": "6432",
    }

    result = apply_environment(AppConfig(), environ)

    profile = result.profile()
    assert profile.name == ENV_PROFILE_NAME
    assert (profile.host, profile.port, profile.user, profile.password) == ("db", 6432, "app", "secret")
    assert profile.database == "postgres"
    assert result.profile("Local").host == "localhost"


def test_environment_without_user_keeps_config() -> None:
    assert apply_environment(AppConfig(), {"POSTGRES_HOST": "db"}) == AppConfig()


def test_pgpane_flags_toggle_demo_and_log_level() -> None:
    result = apply_environment(AppConfig(), {"PGPANE_DEMO": "1", "PGPANE_LOG_LEVEL": "debug"})

    assert result.demo is True
    assert result.logging.level == "debug"


def test_invalid_port_falls_back_to_default() -> None:
    result = apply_environment(AppConfig(), {"POSTGRES_USER": "app", "POSTGRES_PORT": "abc"})

    assert result.profile().port == 5432
