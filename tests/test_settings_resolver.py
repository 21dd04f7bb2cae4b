from __future__ import annotations

from datetime import datetime, timezone

from accountgate.domain.account import Setting
from accountgate.domain.settings_resolver import (
    ComputedDefault,
    EnvironmentValue,
    SettingsResolver,
    web_view_url_resolver,
)


class StubReader:
    def __init__(self, value: str | None = None, error: Exception | None = None) -> None:
        self._value = value
        self._error = error

    def get_setting(self, key: str) -> Setting | None:
        if self._error is not None:
            raise self._error
        if self._value is None:
            return None
        return Setting(key=key, value=self._value, description=None, updated_at=datetime.now(timezone.utc))


def test_persisted_value_wins():
    resolver = web_view_url_resolver(StubReader("https://persisted.example"), env_value="https://env.example", port=3332)
    assert resolver.resolve() == "https://persisted.example"


def test_environment_used_when_nothing_persisted():
    resolver = web_view_url_resolver(StubReader(), env_value="https://env.example", port=3332)
    assert resolver.resolve() == "https://env.example"


def test_computed_default_uses_listening_port():
    resolver = web_view_url_resolver(StubReader(), env_value="", port=4100)
    assert resolver.resolve() == "http://localhost:4100/app-guide"


def test_store_failure_falls_through_without_raising():
    resolver = web_view_url_resolver(StubReader(error=ConnectionError("down")), env_value=None, port=3332)
    assert resolver.resolve() == "http://localhost:3332/app-guide"


def test_every_strategy_declining_returns_last_resort():
    def boom() -> str:
        raise RuntimeError("cannot compute")

    resolver = SettingsResolver([EnvironmentValue(None), ComputedDefault(boom)], last_resort="fallback")
    assert resolver.resolve() == "fallback"


class KeyedReader:
    def __init__(self, rows: dict[str, str]) -> None:
        self._rows = rows

    def get_setting(self, key: str) -> Setting | None:
        if key not in self._rows:
            return None
        return Setting(key=key, value=self._rows[key], description=None, updated_at=datetime.now(timezone.utc))


def test_persisted_value_is_read_from_existing_key():
    reader = KeyedReader({"webViewUrl": "https://existing.example", "web_view_url": "https://other.example"})
    resolver = web_view_url_resolver(reader, env_value=None, port=3332)
    assert resolver.resolve() == "https://existing.example"
