"""Tests for settings, surface factory and runtime wiring."""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import FakeSurface
from surface_pilot.adapters.adb.surface import AdbSurface
from surface_pilot.adapters.factory import SurfaceFactory
from surface_pilot.adapters.rfb.surface import RfbSurface
from surface_pilot.core.config import Settings
from surface_pilot.core.errors import ConnectError
from surface_pilot.domain.actions import ActionFamily
from surface_pilot.services.compositor import FrameCompositor
from surface_pilot.services.runtime import AgentRuntime
from surface_pilot.services.supervisor import ConnectionSupervisor


class TestSettings:
    """Tests for per-kind defaults."""

    def test_vnc_defaults(self):
        settings = Settings(surface_kind="vnc")

        assert settings.logical_size == (800, 600)
        assert settings.response_cap == 20

    def test_adb_defaults(self):
        settings = Settings(surface_kind="adb")

        assert settings.logical_size == (1000, 1000)
        assert settings.response_cap == 100

    def test_overrides(self):
        settings = Settings(surface_kind="vnc", logical_width=1280, logical_height=720, max_actions=5)

        assert settings.logical_size == (1280, 720)
        assert settings.response_cap == 5

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("PILOT_SURFACE_KIND", "adb")
        monkeypatch.setenv("PILOT_VNC_PORT", "5901")

        settings = Settings()

        assert settings.surface_kind == "adb"
        assert settings.vnc_port == 5901


class TestSurfaceFactory:
    """Tests for SurfaceFactory."""

    def test_vnc_surface(self):
        factory = SurfaceFactory(Settings(surface_kind="vnc", vnc_host="desk", vnc_port=5901))

        surface = factory()

        assert isinstance(surface, RfbSurface)
        assert (surface.host, surface.port) == ("desk", 5901)
        assert factory.family == ActionFamily.POINTER

    def test_adb_surface_in_container(self):
        factory = SurfaceFactory(Settings(surface_kind="adb", adb_container="tablet"))

        surface = factory.create_surface()

        assert isinstance(surface, AdbSurface)
        assert surface.bridge.build_command("devices")[:3] == ["docker", "exec", "tablet"]
        assert factory.create_vocabulary().family == ActionFamily.TOUCH

    def test_adb_surface_direct(self):
        factory = SurfaceFactory(Settings(surface_kind="adb", adb_container="", adb_serial="emulator-5554"))

        surface = factory.create_surface()

        assert surface.bridge.build_command("devices") == ["adb", "-s", "emulator-5554", "devices"]

    def test_vocabulary_bounds_follow_settings(self):
        factory = SurfaceFactory(Settings(surface_kind="vnc", logical_width=1024, logical_height=768))

        vocabulary = factory.create_vocabulary()

        assert vocabulary.logical_size == (1024, 768)
        assert vocabulary.max_actions == 20


class TestAgentRuntime:
    """Tests for AgentRuntime."""

    @pytest.mark.asyncio
    async def test_autostart_retries_until_running(self):
        attempts = []

        def make_surface():
            error = ConnectError("not yet") if len(attempts) < 2 else None
            attempts.append(error)
            return FakeSurface(connect_error=error)

        settings = Settings(
            surface_kind="vnc",
            agent_start_delay=0.0,
            agent_start_retry=0.01,
            screenshot_delay_ms=0,
            action_delay_ms=0,
            stop_timeout=2.0,
        )
        supervisor = ConnectionSupervisor(make_surface, FrameCompositor(), capture_interval=10.0)
        runtime = AgentRuntime(settings, supervisor=supervisor)
        runtime.agent.decision.infer = AsyncMock(return_value={"actions": [{"action": "wait", "ms": 10}]})

        try:
            await asyncio.wait_for(runtime.schedule_autostart(), timeout=2.0)

            assert runtime.agent.running
            assert len(attempts) == 3
        finally:
            await runtime.shutdown()

        assert not runtime.agent.running
        assert runtime.supervisor.latest_frame() is None

    @pytest.mark.asyncio
    async def test_stop_timeout_cancels_iteration_before_release(self):
        settings = Settings(
            surface_kind="vnc", stop_timeout=0.05, screenshot_delay_ms=0, action_delay_ms=0
        )
        supervisor = ConnectionSupervisor(FakeSurface, FrameCompositor(), capture_interval=10.0)
        runtime = AgentRuntime(settings, supervisor=supervisor)
        started = asyncio.Event()

        async def infer(image, history):
            started.set()
            await asyncio.sleep(10)

        runtime.agent.decision.infer = AsyncMock(side_effect=infer)
        await runtime.start_agent()
        await asyncio.wait_for(started.wait(), 2.0)

        stopped = await runtime.stop_agent()

        assert stopped is False
        assert not runtime.agent.running
        assert await runtime.agent.wait_stopped(0)
        assert runtime.supervisor.surface is None

    @pytest.mark.asyncio
    async def test_shutdown_during_connect_leaves_nothing_connected(self):
        settings = Settings(surface_kind="vnc", agent_start_delay=0.0, agent_start_retry=0.01)
        created = []

        class SlowSurface(FakeSurface):
            async def connect(self):
                created.append(self)
                await asyncio.sleep(0.1)
                await super().connect()

        supervisor = ConnectionSupervisor(SlowSurface, FrameCompositor(), capture_interval=0.01)
        runtime = AgentRuntime(settings, supervisor=supervisor)
        runtime.schedule_autostart()
        await asyncio.sleep(0.02)

        await runtime.shutdown()
        await asyncio.sleep(0.15)

        assert not runtime.agent.running
        assert runtime.supervisor.surface is None
        assert not runtime.supervisor.is_streaming
        assert not created[0].is_connected()

    @pytest.mark.asyncio
    async def test_status_includes_connection(self):
        runtime = AgentRuntime(Settings(surface_kind="adb"))

        status = runtime.status()

        assert status["surface"] == "adb"
        assert status["connection"] == "disconnected"
        assert status["running"] is False
        assert runtime.vocabulary.family == ActionFamily.TOUCH
