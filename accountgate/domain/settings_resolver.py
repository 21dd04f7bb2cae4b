"""Layered lookup for client-facing configuration values."""

from __future__ import annotations

import logging
from typing import Callable, Protocol, Sequence

from .account import Setting

logger = logging.getLogger(__name__)

WEB_VIEW_URL_KEY = "webViewUrl"


class SettingReader(Protocol):
    def get_setting(self, key: str) -> Setting | None: ...


class ResolverStrategy(Protocol):
    name: str

    def resolve(self) -> str | None:
        """Return a value, or ``None`` when this source has no opinion."""


class PersistedSetting:
    name = "persisted"

    def __init__(self, reader: SettingReader, key: str) -> None:
        self._reader = reader
        self._key = key

    def resolve(self) -> str | None:
        setting = self._reader.get_setting(self._key)
        if setting is None or not setting.value:
            return None
        return setting.value


class EnvironmentValue:
    name = "environment"

    def __init__(self, value: str | None) -> None:
        self._value = value

    def resolve(self) -> str | None:
        return self._value or None


class ComputedDefault:
    name = "computed"

    def __init__(self, compute: Callable[[], str]) -> None:
        self._compute = compute

    def resolve(self) -> str | None:
        return self._compute()


class SettingsResolver:
    """Try each strategy in order and return the first value offered.

    Lookup failures are logged and treated as "no opinion", so ``resolve``
    never raises; ``last_resort`` is returned when every strategy declines.
    """

    def __init__(self, strategies: Sequence[ResolverStrategy], *, last_resort: str) -> None:
        self._strategies = list(strategies)
        self._last_resort = last_resort

    def resolve(self) -> str:
        for strategy in self._strategies:
            try:
                value = strategy.resolve()
            except Exception:
                logger.warning("settings strategy %s failed; falling through", strategy.name, exc_info=True)
                continue
            if value:
                return value
        return self._last_resort


def app_guide_url(port: int) -> str:
    return f"http://localhost:{port}/app-guide"


def web_view_url_resolver(reader: SettingReader, *, env_value: str | None, port: int) -> SettingsResolver:
    """Build the persisted -> environment -> computed chain for the WebView URL."""
    fallback = app_guide_url(port)
    return SettingsResolver(
        [
            PersistedSetting(reader, WEB_VIEW_URL_KEY),
            EnvironmentValue(env_value),
            ComputedDefault(lambda: fallback),
        ],
        last_resort=fallback,
    )
