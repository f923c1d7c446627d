# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
import io
import json
import zipfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from livecompanion.automation.actions import ActionServices
from livecompanion.automation.engine import AutomationEngine
from livecompanion.automation.store import FlowStore
from livecompanion.config import Settings
from livecompanion.database import build_engine, build_session_factory
from livecompanion.events.bus import EventBus
from livecompanion.extensions.api import ExtensionHost
from livecompanion.extensions.channels import ChannelHub
from livecompanion.extensions.loader import (
    MANIFEST_FILE,
    ExtensionLoader,
    ExtensionStateFile,
)
from livecompanion.extensions.router_proxy import ExtensionRouteTable
from livecompanion.extensions.runtime import ExtensionRuntime
from livecompanion.main import create_app
from livecompanion.models.setting import SettingModel
from livecompanion.services.settings_store import SettingsStore

SIMPLE_EXTENSION = """
from livecompanion.extensions import BaseExtension


class SimpleExtension(BaseExtension):
    def init(self):
        self.api.log("ready")
"""


def make_manifest(extension_id: str, **overrides) -> dict:
    manifest = {
        "id": extension_id,
        "name": f"{extension_id} extension",
        "version": "1.0.0",
        "entry": "main.py",
        "permissions": [],
    }
    manifest.update(overrides)
    return manifest


@pytest.fixture
def session_factory(tmp_path):
    """Fresh SQLite database per test."""
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    factory = build_session_factory(engine)
    yield factory
    engine.dispose()


@pytest.fixture
def settings_store(session_factory) -> SettingsStore:
    return SettingsStore(session_factory)


@pytest.fixture
def store_raw_setting(session_factory):
    """Factory writing an undecoded row, as an outside tool might."""

    def _store(key: str, raw: str) -> None:
        with session_factory() as db:
            db.add(SettingModel(key=key, value=raw))
            db.commit()

    return _store


@pytest.fixture
def hub() -> ChannelHub:
    return ChannelHub()


@pytest.fixture
def engine(session_factory, hub, tmp_path) -> AutomationEngine:
    """Automation engine with built-in registries and no running timers."""
    services = ActionServices(hub=hub, files_dir=tmp_path / "flow_logs")
    return AutomationEngine(FlowStore(session_factory), services=services)


@pytest.fixture
def extensions_dir(tmp_path) -> Path:
    path = tmp_path / "extensions"
    path.mkdir(exist_ok=True)
    return path


@pytest.fixture
def host(engine, hub, settings_store, tmp_path) -> ExtensionHost:
    bus = EventBus()
    bus.attach_engine(engine)
    return ExtensionHost(
        bus=bus,
        hub=hub,
        routes=ExtensionRouteTable(),
        settings_store=settings_store,
        engine=engine,
        data_dir=tmp_path / "extension_data",
    )


@pytest.fixture
def runtime(extensions_dir, host) -> ExtensionRuntime:
    return ExtensionRuntime(
        ExtensionLoader(extensions_dir),
        host,
        ExtensionStateFile(extensions_dir / "extensions_state.json"),
    )


@pytest.fixture
def write_extension(extensions_dir):
    """Factory writing an extension directory; returns its path."""

    def _write(
        extension_id: str,
        code: str = SIMPLE_EXTENSION,
        directory: str | None = None,
        **manifest,
    ) -> Path:
        path = extensions_dir / (directory or extension_id)
        path.mkdir(parents=True)
        (path / MANIFEST_FILE).write_text(json.dumps(make_manifest(extension_id, **manifest)))
        (path / "main.py").write_text(code)
        return path

    return _write


@pytest.fixture
def extension_zip():
    """Factory building an extension package in memory."""

    def _build(files: dict[str, str]) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            for name, content in files.items():
                zf.writestr(name, content)
        return buffer.getvalue()

    return _build


@pytest.fixture
def app_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'app.db'}",
        extensions_dir=tmp_path / "extensions",
        extension_data_dir=tmp_path / "extension_data",
        flow_files_dir=tmp_path / "flow_logs",
        history_size=10,
    )


@pytest.fixture
def client(app_settings):
    """Test client around a fully wired application."""
    app = create_app(app_settings)
    with TestClient(app) as test_client:
        yield test_client
