"""Shared fixtures: a fake language server and isolated configuration."""

import asyncio
import os
import sys
from pathlib import Path

import pytest

from inlay_client.config import ClientOptions, Config

FAKE_SERVER = Path(__file__).parent / "fake_server.py"


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep tests away from the user's config file and SERVER_PATH."""
    monkeypatch.delenv("SERVER_PATH", raising=False)
    original = Config.path()
    Config.use_path(tmp_path / "config" / "config.json")
    yield Config.path()
    Config.use_path(original)


@pytest.fixture
def fake_options():
    def make(**overrides) -> ClientOptions:
        values = {
            "default_command": sys.executable,
            "args": [str(FAKE_SERVER)],
            "shutdown_timeout": 2.0,
        }
        values.update(overrides)
        return ClientOptions(**values)

    return make


@pytest.fixture
def fake_environ():
    def make(mode: str = "", **extra) -> dict:
        environ = {k: v for k, v in os.environ.items() if k != "SERVER_PATH"}
        if mode:
            environ["FAKE_SERVER_MODE"] = mode
        environ.update(extra)
        return environ

    return make


async def wait_until(predicate, timeout: float = 5.0) -> None:
    """Poll ``predicate`` on the event loop until it holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def eventually():
    return wait_until
