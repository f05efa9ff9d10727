import os
import pytest


BASE_ENV = {
    "SUPERVISOR_PROMURL": "http://127.0.0.1:8041/metrics",
    "SUPERVISOR_METRIC": "engine_last_block_height_processed",
    "SUPERVISOR_METRICDELTA": "1",
    "SUPERVISOR_WARMUPDURATION": "30",
    "SUPERVISOR_CHECKDURATION": "5",
    "SUPERVISOR_FAILSIGNAL": "15",
    "SUPERVISOR_HANGSIGNAL": "SIGUSR1",
}


@pytest.fixture
def clean_env(monkeypatch):
    """Removes every SUPERVISOR_* variable from the environment."""
    for key in list(os.environ):
        if key.startswith("SUPERVISOR_"):
            monkeypatch.delenv(key)
    return monkeypatch


@pytest.fixture
def supervisor_env(clean_env):
    """Sets a complete, valid supervisor environment."""
    for key, value in BASE_ENV.items():
        clean_env.setenv(key, value)
    return dict(BASE_ENV)
