from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from motor_panel.config import PanelConfig
from motor_panel.services import bridge as bridge_mod
from motor_panel.services.panel_session import PanelSession
from tests.utils.fake_ros import FakeRos, FakeService
from tests.utils.fake_services import FakeConnection, FakeMotorServices

pytest_plugins = ["nicegui.testing.user_plugin"]

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def panel_config() -> PanelConfig:
    """Fast timings so settle/poll behaviour is observable within a test."""
    return PanelConfig(
        bridge_url="ws://bridge.test:9090",
        namespace="/westwood_motor",
        poll_interval_s=60.0,
        settle_delay_s=0.0,
        call_timeout_s=0.2,
        connect_timeout_s=0.5,
    )


@pytest.fixture
def fake_ros(monkeypatch: pytest.MonkeyPatch) -> Iterator[type[FakeRos]]:
    """Swap roslibpy.Ros/Service for in-process fakes inside the bridge module."""
    FakeRos.instances = []
    monkeypatch.setattr(FakeRos, "mode", "connect")
    monkeypatch.setattr(bridge_mod.roslibpy, "Ros", FakeRos)
    monkeypatch.setattr(bridge_mod.roslibpy, "Service", FakeService)
    yield FakeRos
    FakeRos.instances = []


@pytest.fixture
def services() -> FakeMotorServices:
    return FakeMotorServices()


@pytest.fixture
def make_session(panel_config: PanelConfig, services: FakeMotorServices, monkeypatch: pytest.MonkeyPatch):
    """Build PanelSessions wired to FakeConnection/FakeMotorServices; closed at teardown."""
    FakeConnection.instances = []
    monkeypatch.setattr(FakeConnection, "outcome", "connect")
    created: list[PanelSession] = []

    def _make(config: PanelConfig | None = None) -> PanelSession:
        session = PanelSession(
            config or panel_config,
            connection_factory=FakeConnection,
            services_factory=lambda conn, cfg: services,
        )
        created.append(session)
        return session

    yield _make
    for session in created:
        session.close()
    FakeConnection.instances = []
