from __future__ import annotations

import pytest

from mentora.config import get_settings
from mentora.telemetry import clear_listeners


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch):
    for name in ("MENTORA_CATALOG_SOURCE", "MENTORA_PERSISTENCE_MODE", "MENTORA_STATE_PATH", "MENTORA_STARTER_XP"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    clear_listeners()
    yield
    clear_listeners()
    get_settings.cache_clear()
