from __future__ import annotations

from dataclasses import dataclass, replace

from motor_panel import constants


@dataclass(frozen=True)
class PanelConfig:
    """Runtime configuration for one panel session and its bridge connection."""

    bridge_url: str = "ws://localhost:9090"
    namespace: str = "/westwood_motor"
    poll_interval_s: float = 1.0
    settle_delay_s: float = 1.0
    call_timeout_s: float = 5.0
    connect_timeout_s: float = 10.0

    @classmethod
    def from_env(cls) -> "PanelConfig":
        return cls(
            bridge_url=constants.ROSBRIDGE_URL,
            namespace=constants.MOTOR_NAMESPACE,
            poll_interval_s=constants.POLL_INTERVAL_S,
            settle_delay_s=constants.SETTLE_DELAY_S,
            call_timeout_s=constants.CALL_TIMEOUT_S,
            connect_timeout_s=constants.CONNECT_TIMEOUT_S,
        )

    def with_overrides(self, **changes) -> "PanelConfig":
        """Return a copy with the given non-None fields replaced (CLI overrides)."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def service_name(self, service: str) -> str:
        return f"{self.namespace.rstrip('/')}/{service}"


# Active configuration; main.py replaces it after parsing the CLI
config = PanelConfig.from_env()
