# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Tests for the extension lifecycle."""

import logging

import pytest

from livecompanion.errors import (
    DuplicateExtensionError,
    ExtensionLoadError,
    ExtensionNotFoundError,
    ReloadThrottledError,
)
from livecompanion.events.bus import LiveEventType
from livecompanion.extensions.base import ExtensionState
from livecompanion.extensions.loader import parse_manifest

FULL_EXTENSION = """
from livecompanion.extensions import BaseExtension


class FullExtension(BaseExtension):
    def init(self):
        self.api.register_route("GET", "/status", lambda request: {"ok": True})
        self.api.register_event("gift", lambda event: None)
        self.api.register_channel("ping", lambda connection, data: None)
        self.api.register_action("log:write", lambda params, context: "shadowed")
        self.api.register_trigger("full:custom", "Custom")

    def destroy(self):
        self.api.log("bye")
"""

FAILING_INIT = """
from livecompanion.extensions import BaseExtension


class Failing(BaseExtension):
    def init(self):
        self.api.register_event("chat", lambda event: None)
        raise RuntimeError("cannot start")
"""

ASYNC_INIT = """
import asyncio

from livecompanion.extensions import BaseExtension


class AsyncExtension(BaseExtension):
    async def init(self):
        await asyncio.sleep(0)
        self.api.set_config("started", True)
"""

FULL_PERMISSIONS = ["routes", "events", "channels", "automation"]


class TestLoading:
    """Tests for discovery and loading."""

    @pytest.mark.asyncio
    async def test_load_all(self, runtime, write_extension):
        write_extension("alpha")
        write_extension("beta")

        states = await runtime.load_all()

        assert states == {"alpha": ExtensionState.ACTIVE, "beta": ExtensionState.ACTIVE}
        assert runtime.get("alpha").loaded_at is not None

    @pytest.mark.asyncio
    async def test_async_init(self, runtime, write_extension, settings_store):
        write_extension("async", code=ASYNC_INIT, permissions=["config"])

        await runtime.load_all()

        assert runtime.get("async").is_active
        assert settings_store.get("extension:async:started") is True

    @pytest.mark.asyncio
    async def test_init_failure_is_isolated(self, runtime, write_extension, host):
        write_extension("broken", code=FAILING_INIT, permissions=["events"])
        write_extension("healthy")

        states = await runtime.load_all()

        assert states["broken"] == ExtensionState.ERROR
        assert states["healthy"] == ExtensionState.ACTIVE
        assert "cannot start" in runtime.get("broken").error
        # partial registrations of the failed extension are revoked
        assert host.bus.get_subscribed_events("broken") == []

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, runtime, write_extension):
        write_extension("dup")
        await runtime.load_all()
        other = write_extension("dup", directory="dup-copy")

        with pytest.raises(DuplicateExtensionError):
            await runtime.load(other, parse_manifest(other / "extension.json"))

        assert runtime.get("dup").is_active
        assert runtime.get("dup").path.name == "dup"

    @pytest.mark.asyncio
    async def test_duplicate_on_disk_skipped(self, runtime, write_extension, caplog):
        write_extension("dup")
        write_extension("dup", directory="zz-dup")

        states = await runtime.load_all()

        assert states == {"dup": ExtensionState.ACTIVE}
        assert "Duplicate extension id dup" in caplog.text

    @pytest.mark.asyncio
    async def test_dependencies_load_first(self, runtime, write_extension):
        write_extension("aaa-child", dependencies=["zzz-parent"])
        write_extension("zzz-parent")

        states = await runtime.load_all()

        assert states["aaa-child"] == ExtensionState.ACTIVE
        assert runtime.get("zzz-parent").loaded_at <= runtime.get("aaa-child").loaded_at

    @pytest.mark.asyncio
    async def test_missing_dependency(self, runtime, write_extension):
        write_extension("child", dependencies=["ghost"])

        await runtime.load_all()

        instance = runtime.get("child")
        assert instance.state == ExtensionState.ERROR
        assert instance.error == "Missing dependency: ghost"

    @pytest.mark.asyncio
    async def test_failed_dependency(self, runtime, write_extension):
        write_extension("parent", code=FAILING_INIT, permissions=["events"])
        write_extension("child", dependencies=["parent"])

        await runtime.load_all()

        assert runtime.get("child").state == ExtensionState.ERROR
        assert "not active" in runtime.get("child").error

    @pytest.mark.asyncio
    async def test_dependency_cycle(self, runtime, write_extension):
        write_extension("one", dependencies=["two"])
        write_extension("two", dependencies=["one"])
        write_extension("free")

        states = await runtime.load_all()

        assert states["free"] == ExtensionState.ACTIVE
        assert states["one"] == ExtensionState.ERROR
        assert "Dependency cycle among: one, two" in runtime.get("two").error

    @pytest.mark.asyncio
    async def test_disabled_in_state_file(self, runtime, write_extension, extensions_dir):
        write_extension("sleepy")
        (extensions_dir / "extensions_state.json").write_text('{"sleepy": {"enabled": false}}')

        states = await runtime.load_all()

        assert states == {"sleepy": ExtensionState.DISABLED}

    @pytest.mark.asyncio
    async def test_disabled_in_manifest(self, runtime, write_extension):
        write_extension("off", enabled=False)
        assert (await runtime.load_all()) == {"off": ExtensionState.DISABLED}


class TestUnload:
    """Tests for revocation on unload."""

    @pytest.mark.asyncio
    async def test_unload_revokes_everything(self, runtime, write_extension, host, engine):
        write_extension("full", code=FULL_EXTENSION, permissions=FULL_PERMISSIONS)
        await runtime.load_all()
        assert engine.registries.actions.get("log:write").origin == "full"
        assert host.bus.get_subscriber_count(LiveEventType.GIFT) == 1

        instance = await runtime.unload("full")

        assert instance.state == ExtensionState.DISCOVERED
        assert host.routes.get_extension_routes("full") == []
        assert host.bus.get_subscriber_count(LiveEventType.GIFT) == 0
        assert host.hub.get_extension_channels("full") == []
        assert engine.registries.triggers.has("full:custom") is False
        # the built-in action it shadowed is visible again
        assert engine.registries.actions.get("log:write").origin != "full"

    @pytest.mark.asyncio
    async def test_destroy_hook_runs(self, runtime, write_extension, caplog):
        caplog.set_level(logging.INFO)
        write_extension("full", code=FULL_EXTENSION, permissions=FULL_PERMISSIONS)
        await runtime.load_all()

        await runtime.unload("full")

        assert "[Extension:full] bye" in caplog.text

    @pytest.mark.asyncio
    async def test_unknown_extension(self, runtime):
        with pytest.raises(ExtensionNotFoundError):
            await runtime.unload("ghost")


class TestLifecycleOperations:
    @pytest.mark.asyncio
    async def test_reload_counts(self, runtime, write_extension):
        write_extension("again")
        await runtime.load_all()

        await runtime.reload("again")
        instance = await runtime.reload("again")

        assert instance.is_active
        assert runtime.reload_count("again") == 2

    @pytest.mark.asyncio
    async def test_reload_picks_up_changes(self, runtime, write_extension):
        path = write_extension("changing")
        await runtime.load_all()
        (path / "main.py").write_text("raise RuntimeError('edited')\n")

        instance = await runtime.reload("changing")

        assert instance.state == ExtensionState.ERROR
        assert "edited" in instance.error

    @pytest.mark.asyncio
    async def test_reload_throttled(self, runtime, write_extension):
        write_extension("fast")
        await runtime.load_all()
        runtime.reload_min_interval = 60

        await runtime.reload("fast")
        with pytest.raises(ReloadThrottledError):
            await runtime.reload("fast")
        assert runtime.get("fast").is_active

    @pytest.mark.asyncio
    async def test_reload_warning(self, runtime, write_extension, caplog):
        write_extension("busy")
        await runtime.load_all()
        runtime.reload_warning_threshold = 1

        await runtime.reload("busy")
        assert "has been reloaded" not in caplog.text
        await runtime.reload("busy")
        assert "has been reloaded 2 times" in caplog.text

    @pytest.mark.asyncio
    async def test_reload_all(self, runtime, write_extension):
        write_extension("a")
        write_extension("b")
        await runtime.load_all()

        states = await runtime.reload_all()

        assert states == {"a": ExtensionState.ACTIVE, "b": ExtensionState.ACTIVE}
        assert runtime.reload_count("a") == 1

    @pytest.mark.asyncio
    async def test_disable_and_enable(self, runtime, write_extension, extensions_dir):
        write_extension("toggle")
        await runtime.load_all()

        await runtime.disable("toggle")
        assert runtime.get("toggle").state == ExtensionState.DISABLED
        with pytest.raises(ExtensionLoadError):
            await runtime.reload("toggle")
        assert '"enabled": false' in (extensions_dir / "extensions_state.json").read_text()

        instance = await runtime.enable("toggle")
        assert instance.is_active

    @pytest.mark.asyncio
    async def test_disabled_survives_rediscovery(self, runtime, write_extension):
        write_extension("toggle")
        await runtime.load_all()
        await runtime.disable("toggle")

        states = await runtime.load_all()

        assert states["toggle"] == ExtensionState.DISABLED

    @pytest.mark.asyncio
    async def test_delete_purges_files_and_config(
        self, runtime, write_extension, settings_store, extensions_dir
    ):
        write_extension("doomed")
        await runtime.load_all()
        settings_store.set("extension:doomed:volume", 3)
        settings_store.set("extension:other:volume", 5)

        await runtime.delete("doomed")

        assert runtime.get("doomed") is None
        assert not (extensions_dir / "doomed").exists()
        assert settings_store.keys() == ["extension:other:volume"]

    @pytest.mark.asyncio
    async def test_install(self, runtime, tmp_path, extension_zip):
        archive = tmp_path / "upload.zip"
        archive.write_bytes(extension_zip({
            "extension.json": '{"id": "new", "name": "New", "version": "1.0.0", "entry": "main.py"}',
            "main.py": (
                "from livecompanion.extensions import BaseExtension\n\n\n"
                "class New(BaseExtension):\n"
                "    def init(self):\n"
                "        pass\n"
            ),
        }))

        instance = await runtime.install(archive)

        assert instance.is_active
        assert runtime.reload_count("new") == 0

    @pytest.mark.asyncio
    async def test_install_known_id_leaves_no_directory(
        self, runtime, write_extension, extensions_dir, tmp_path, extension_zip
    ):
        write_extension("demo", directory="legacy-folder")
        await runtime.load_all()
        archive = tmp_path / "demo.zip"
        archive.write_bytes(extension_zip({
            "extension.json": (
                '{"id": "demo", "name": "Demo", "version": "2.0.0", "entry": "main.py"}'
            ),
            "main.py": "",
        }))

        with pytest.raises(DuplicateExtensionError):
            await runtime.install(archive)

        assert not (extensions_dir / "demo").exists()
        assert runtime.get("demo").is_active
        assert runtime.get("demo").manifest.version == "1.0.0"

    @pytest.mark.asyncio
    async def test_shutdown(self, runtime, write_extension):
        write_extension("a")
        write_extension("b")
        await runtime.load_all()

        await runtime.shutdown()

        assert all(not inst.is_active for inst in runtime.instances())

    @pytest.mark.asyncio
    async def test_describe(self, runtime, write_extension):
        write_extension("full", code=FULL_EXTENSION, permissions=FULL_PERMISSIONS)
        await runtime.load_all()

        info = runtime.describe(runtime.get("full"))

        assert info["state"] == ExtensionState.ACTIVE
        assert info["permissions"] == ["automation", "channels", "events", "routes"]
        assert info["permission_details"][0] == {
            "value": "automation",
            "label": "Automation",
            "dangerous": True,
        }
        assert [p["dangerous"] for p in info["permission_details"]] == [True, False, False, True]
        assert info["routes"] == [{"method": "GET", "path": "/full/status"}]
        assert info["channels"] == ["ping"]
        assert info["events"] == ["gift"]
