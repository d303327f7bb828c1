"""App configuration loading helpers."""

from __future__ import annotations

import os
from pathlib import Path

import tomllib

from dotenv import load_dotenv
from pydantic import BaseModel, Field

CONFIG_FILE = Path.home() / ".config" / "pgpane" / "config.toml"
ENV_PROFILE_NAME = "Environment"


class LayoutState(BaseModel):
    """Persisted layout hints for the TUI."""

    sidebar_width: int | None = None


class QuerySettings(BaseModel):
    """Tuning knobs for the query pipeline and results grid."""

    fetch_batch_size: int = Field(default=200, ge=1)
    result_row_limit: int = Field(default=1000, ge=1)


class LoggingSettings(BaseModel):
    """Where log records go and how chatty they are."""

    level: str = "INFO"
    file: str | None = None


class ConnectionProfileConfig(BaseModel):
    """Connection profile configuration stored in config.toml."""

    name: str
    dsn: str | None = None
    host: str | None = None
    port: int | None = None
    database: str | None = None
    user: str | None = None
    password: str | None = None


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    theme: str = "dark"
    profiles: list[ConnectionProfileConfig] = Field(default_factory=lambda: list(_default_profiles()))
    active_profile: str | None = None
    demo: bool = False
    layout: LayoutState = Field(default_factory=LayoutState)
    query: QuerySettings = Field(default_factory=QuerySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def profile(self, name: str | None = None) -> ConnectionProfileConfig:
        """Return the named profile, the active one, or the first one."""

        target = name or self.active_profile
        if target:
            for profile in self.profiles:
                if profile.name == target:
                    return profile
            raise ValueError(f"Profile '{target}' not found.")
        if not self.profiles:
            raise ValueError("No connection profiles configured.")
        return self.profiles[0]

    def with_active_profile(self, name: str) -> AppConfig:
        """Return a copy with the active profile updated."""

        return self.model_copy(update={"active_profile": name})

    def with_profile(self, profile: ConnectionProfileConfig) -> AppConfig:
        """Return a copy with ``profile`` added (replacing one with the same name)."""

        profiles = [entry for entry in self.profiles if entry.name != profile.name]
        profiles.insert(0, profile)
        return self.model_copy(update={"profiles": profiles})


def load_config(*, environ: dict[str, str] | None = None) -> AppConfig:
    """Load configuration from disk and the environment; fall back to defaults."""

    try:
        data = _read_config_file()
    except FileNotFoundError:
        data = {}
    except (tomllib.TOMLDecodeError, OSError):
        data = {}

    profiles_data = data.get("profiles")
    profiles: list[ConnectionProfileConfig] | None = None
    if isinstance(profiles_data, list):
        profiles = [
            ConnectionProfileConfig(**profile)
            for profile in profiles_data  # type: ignore[list-item]
            if isinstance(profile, dict)
        ]

    config = AppConfig(
        theme=data.get("theme", AppConfig.model_fields["theme"].default),
        profiles=profiles if profiles is not None else list(_default_profiles()),
        active_profile=data.get("active_profile"),
        demo=data.get("demo", False),
        layout=data.get("layout", LayoutState()),
        query=data.get("query", QuerySettings()),
        logging=data.get("logging", LoggingSettings()),
    )
    return apply_environment(config, environ)


def apply_environment(config: AppConfig, environ: dict[str, str] | None = None) -> AppConfig:
    """Overlay ``POSTGRES_*`` / ``PGPANE_*`` variables (and ``.env``) onto the config."""

    if environ is None:
        load_dotenv()
        environ = dict(os.environ)
    if environ.get("PGPANE_DEMO", "").lower() in {"1", "true", "yes"}:
        config = config.model_copy(update={"demo": True})
    level = environ.get("PGPANE_LOG_LEVEL")
    if level:
        config = config.model_copy(update={"logging": config.logging.model_copy(update={"level": level})})
    user = environ.get("POSTGRES_USER")
    if not user:
        return config
    port = environ.get("POSTGRES_PORT", "5432")
    profile = ConnectionProfileConfig(
        name=ENV_PROFILE_NAME,
        host=environ.get("POSTGRES_HOST", "localhost"),
        port=int(port) if port.isdigit() else 5432,
        user=user,
        password=environ.get("POSTGRES_PASSWORD"),
        database=environ.get("POSTGRES_DB", "postgres"),
    )
    return config.with_profile(profile).with_active_profile(ENV_PROFILE_NAME)


def _read_config_file() -> dict[str, object]:
    with CONFIG_FILE.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    if isinstance(raw, dict):
        theme = raw.get("theme")
        if isinstance(theme, str):
            data["theme"] = theme
        demo = raw.get("demo")
        if isinstance(demo, bool):
            data["demo"] = demo
        active_profile = raw.get("active_profile")
        if isinstance(active_profile, str):
            data["active_profile"] = active_profile
        profiles = raw.get("profiles")
        if isinstance(profiles, list):
            parsed_profiles: list[dict[str, object]] = []
            for profile in profiles:
                if not isinstance(profile, dict):
                    continue
                parsed: dict[str, object] = {}
                for key in ("name", "dsn", "host", "database", "user", "password"):
                    value = profile.get(key)
                    if isinstance(value, str):
                        parsed[key] = value
                port = profile.get("port")
                if isinstance(port, int):
                    parsed["port"] = port
                if parsed.get("name"):
                    parsed_profiles.append(parsed)
            if parsed_profiles:
                data["profiles"] = parsed_profiles
        layout = raw.get("layout")
        if isinstance(layout, dict):
            state: dict[str, object] = {}
            sidebar_width = layout.get("sidebar_width")
            if isinstance(sidebar_width, int):
                state["sidebar_width"] = sidebar_width
            data["layout"] = LayoutState(**state)
        query = raw.get("query")
        if isinstance(query, dict):
            settings: dict[str, object] = {}
            for key in ("fetch_batch_size", "result_row_limit"):
                value = query.get(key)
                if isinstance(value, int) and value > 0:
                    settings[key] = value
            data["query"] = QuerySettings(**settings)
        logging_section = raw.get("logging")
        if isinstance(logging_section, dict):
            options: dict[str, object] = {}
            for key in ("level", "file"):
                value = logging_section.get(key)
                if isinstance(value, str):
                    options[key] = value
            data["logging"] = LoggingSettings(**options)
    return data


def _default_profiles() -> tuple[ConnectionProfileConfig, ...]:
    """Default profile shown on first run before config is customized."""

    return (
        ConnectionProfileConfig(
            name="Local",
            host="localhost",
            port=5432,
            database="postgres",
            user="postgres",
        ),
    )
