"""Shared pytest fixtures for difync tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from difync.config import Config
from difync.errors import DifyAPIError
from difync.sync.models import RemoteApp

_ENV_VARS = (
    "DIFY_BASE_URL",
    "DIFY_EMAIL",
    "DIFY_PASSWORD",
    "DIFY_INSECURE",
    "DIFY_TIMEOUT",
    "DSL_DIRECTORY",
    "APP_MAP_FILE",
    "DIFYNC_MODE",
    "DIFYNC_FORCE_DIRECTION",
    "DIFYNC_VERBOSE",
    "DIFYNC_CONFIG",
    "LOG_LEVEL",
    "LOG_FILE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's shell environment out of the tests."""
    for key in _ENV_VARS:
        monkeypatch.delenv(key, raising=False)


class FakeDifyClient:
    """Minimal DifyClient replacement for testing.

    Simulates apps with in-memory dicts.  ``failures`` maps a method name
    to a set of app IDs for which that method raises ``DifyAPIError``.
    """

    def __init__(
        self,
        apps: dict[str, RemoteApp] | None = None,
        dsl: dict[str, bytes] | None = None,
        failures: dict[str, set[str]] | None = None,
    ) -> None:
        self.apps: dict[str, RemoteApp] = apps or {}
        self.dsl: dict[str, bytes] = dsl or {}
        self.failures = failures or {}
        self.import_calls: list[tuple[str, bytes]] = []
        self.export_calls: list[str] = []
        self.logged_in = False

    def add_app(
        self,
        app_id: str,
        name: str,
        updated_at=None,
        dsl: bytes | None = None,
    ) -> None:
        self.apps[app_id] = RemoteApp(id=app_id, name=name, updated_at=updated_at)
        self.dsl[app_id] = dsl if dsl is not None else f"name: {name}\n".encode()

    def login(self) -> str:
        self._maybe_fail("login", "*")
        self.logged_in = True
        return "fake-token"

    def _maybe_fail(self, method: str, app_id: str) -> None:
        if app_id in self.failures.get(method, set()):
            raise DifyAPIError(f"{method} failed", status_code=500)

    def app_exists(self, app_id: str) -> bool:
        self._maybe_fail("app_exists", app_id)
        return app_id in self.apps

    def get_app_info(self, app_id: str) -> RemoteApp:
        self._maybe_fail("get_app_info", app_id)
        if app_id not in self.apps:
            raise DifyAPIError("API returned error", status_code=404)
        return self.apps[app_id]

    def list_apps(self) -> list[RemoteApp]:
        self._maybe_fail("list_apps", "*")
        return list(self.apps.values())

    def export_dsl(self, app_id: str) -> bytes:
        self._maybe_fail("export_dsl", app_id)
        self.export_calls.append(app_id)
        return self.dsl[app_id]

    def import_dsl(self, app_id: str, dsl: bytes) -> None:
        self._maybe_fail("import_dsl", app_id)
        self.import_calls.append((app_id, dsl))
        self.dsl[app_id] = dsl


@pytest.fixture
def fake_client() -> FakeDifyClient:
    return FakeDifyClient()


@pytest.fixture
def dsl_dir(tmp_path: Path) -> Path:
    path = tmp_path / "dsl"
    path.mkdir()
    return path


@pytest.fixture
def make_config(tmp_path: Path, dsl_dir: Path):
    """Factory fixture for Config instances rooted in tmp_path."""

    def _make(**overrides) -> Config:
        values = {
            "base_url": "https://dify.example.com",
            "email": "test@example.com",
            "password": "testpassword",
            "dsl_directory": dsl_dir,
            "app_map_file": tmp_path / "app_map.json",
        }
        values.update(overrides)
        return Config(**values)

    return _make


@pytest.fixture
def mock_config(make_config) -> Config:
    """Create a default Config instance for testing."""
    return make_config()
