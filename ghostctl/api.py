"""Stable public API for building tooling on top of ghostctl.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from ghostctl.core.classifier import ResponseKind, classify
from ghostctl.core.commands import BeaconSpamMode, BleScanMode, BleSpamMode, Command
from ghostctl.core.errors import (
    ConfigError,
    ConfigLoadError,
    ConfigValidationError,
    GhostctlError,
    OperationCancelledError,
    ProtocolTimeoutError,
    StreamClosedError,
    TransferError,
    TransportConnectError,
    TransportError,
    TransportSendError,
)
from ghostctl.core.model import (
    AccessPoint,
    BleDevice,
    ConnectionState,
    DeviceInfo,
    Downloading,
    EngineSettings,
    SdEntry,
    Station,
    TransferCancelled,
    TransferComplete,
    TransferIdle,
    TransferProgress,
    Uploading,
)
from ghostctl.core.observable import Observable
from ghostctl.core.service import GhostService
from ghostctl.core.settings import load_settings
from ghostctl.core.state import StateStore
from ghostctl.core.transfer import CancelToken
from ghostctl.transports.base import Transport
from ghostctl.transports.serial_port import PortInfo, SerialTransport, list_ports

__all__ = [
    "GhostctlError",
    "ConfigError",
    "ConfigLoadError",
    "ConfigValidationError",
    "TransportError",
    "TransportConnectError",
    "TransportSendError",
    "StreamClosedError",
    "ProtocolTimeoutError",
    "TransferError",
    "OperationCancelledError",
    "AccessPoint",
    "BleDevice",
    "ConnectionState",
    "DeviceInfo",
    "EngineSettings",
    "SdEntry",
    "Station",
    "TransferProgress",
    "TransferIdle",
    "Downloading",
    "Uploading",
    "TransferComplete",
    "TransferCancelled",
    "ResponseKind",
    "classify",
    "Command",
    "BeaconSpamMode",
    "BleScanMode",
    "BleSpamMode",
    "Observable",
    "StateStore",
    "GhostService",
    "CancelToken",
    "Transport",
    "SerialTransport",
    "PortInfo",
    "list_ports",
    "Client",
]


class Client:
    """Public client bundling settings, a transport, and the protocol engine.

    Use as an async context manager: entering opens the port and starts the
    background workers, leaving stops them and releases the port.
    """

    def __init__(
        self,
        *,
        port: str | None = None,
        transport: Transport | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        warnings: tuple[str, ...] = ()
        if settings is None:
            loaded = load_settings()
            settings, warnings = loaded.settings, loaded.warnings
        self._load_warnings = warnings

        if transport is None:
            port = port or settings.port
            if not port:
                raise ConfigError(
                    "No serial port configured. Pass --port or set 'port' in the ghostctl config file."
                )
            transport = SerialTransport(
                port,
                settings.baud_rate,
                idle_flush_s=settings.group_flush_idle_s,
            )
        self._transport = transport
        self._service = GhostService(transport, settings=settings)

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._load_warnings

    @property
    def service(self) -> GhostService:
        return self._service

    @property
    def store(self) -> StateStore:
        return self._service.store

    @property
    def transfer_progress(self) -> Observable[TransferProgress]:
        return self._service.transfer_progress

    async def open(self) -> None:
        opener = getattr(self._transport, "open", None)
        if opener is not None:
            await opener()
        self._service.start()

    async def close(self) -> None:
        await self._service.destroy()

    async def __aenter__(self) -> Client:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
