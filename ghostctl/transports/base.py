"""Transport interfaces."""

from __future__ import annotations

from typing import Protocol

from ghostctl.core.model import ConnectionState
from ghostctl.core.streams import StateSignal, Subscription


class Transport(Protocol):
    @property
    def connection_state(self) -> StateSignal[ConnectionState]:
        """Current connection state plus change notifications."""

    def subscribe_lines(self) -> Subscription[str]:
        """Logical records (single lines or grouped multi-line blocks) in arrival order."""

    def subscribe_output(self) -> Subscription[str]:
        """Every cleaned console line, ungrouped."""

    def subscribe_chunks(self) -> Subscription[bytes]:
        """Fully assembled binary payloads from ``sd read``."""

    async def write(self, data: bytes) -> bool:
        """Hand bytes to the device; ``False`` when they could not be written."""

    async def close(self) -> None:
        """Release the underlying port and end all streams."""
