"""USB serial transport implementation using pyserial."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import serial
import serial.tools.list_ports

from ghostctl.core.errors import TransportConnectError
from ghostctl.core.model import ConnectionState
from ghostctl.core.streams import Broadcast, StateSignal, Subscription
from ghostctl.transports.framing import StreamFramer

LOGGER = logging.getLogger(__name__)

_MAX_READ_ERRORS = 5
_READ_ERROR_BACKOFF_S = 0.1


@dataclass(frozen=True)
class PortInfo:
    device: str
    description: str
    hwid: str


def list_ports() -> list[PortInfo]:
    """Return serial ports visible to the operating system."""
    ports = [
        PortInfo(device=p.device, description=p.description or "", hwid=p.hwid or "")
        for p in serial.tools.list_ports.comports()
    ]
    return sorted(ports, key=lambda p: p.device)


class SerialTransport:
    """Line/chunk streaming over a serial port.

    A daemon reader thread pulls bytes off the port and hands them to the event
    loop, where a :class:`StreamFramer` splits them into output lines, grouped
    records and binary chunks.
    """

    def __init__(
        self,
        port: str,
        baud_rate: int = 115200,
        *,
        idle_flush_s: float = 0.5,
        read_timeout_s: float = 0.1,
        serial_factory: Callable[..., Any] = serial.Serial,
    ) -> None:
        self.port = port
        self.baud_rate = baud_rate
        self._idle_flush_s = idle_flush_s
        self._read_timeout_s = read_timeout_s
        self._serial_factory = serial_factory

        self._state: StateSignal[ConnectionState] = StateSignal(ConnectionState.DISCONNECTED)
        self._lines: Broadcast[str] = Broadcast()
        self._output: Broadcast[str] = Broadcast()
        self._chunks: Broadcast[bytes] = Broadcast()
        self._framer = StreamFramer(
            on_output=self._output.publish,
            on_record=self._lines.publish,
            on_chunk=self._chunks.publish,
            idle_flush_s=idle_flush_s,
        )

        self._serial: Any = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._reader: threading.Thread | None = None
        self._stopping = threading.Event()
        self._write_lock = threading.Lock()
        self._flush_task: asyncio.Task[None] | None = None

    @property
    def connection_state(self) -> StateSignal[ConnectionState]:
        return self._state

    def subscribe_lines(self) -> Subscription[str]:
        return self._lines.subscribe()

    def subscribe_output(self) -> Subscription[str]:
        return self._output.subscribe()

    def subscribe_chunks(self) -> Subscription[bytes]:
        return self._chunks.subscribe()

    async def open(self) -> None:
        if self._serial is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._state.set(ConnectionState.CONNECTING)
        LOGGER.info("Opening %s at %d baud", self.port, self.baud_rate)
        try:
            self._serial = await asyncio.to_thread(
                self._serial_factory,
                port=self.port,
                baudrate=self.baud_rate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self._read_timeout_s,
            )
        except (serial.SerialException, OSError) as exc:
            self._state.set(ConnectionState.ERROR)
            raise TransportConnectError(f"Could not open serial port {self.port}: {exc}") from exc

        self._stopping.clear()
        self._reader = threading.Thread(
            target=self._read_loop,
            args=(self._loop,),
            name=f"ghostctl-reader-{self.port}",
            daemon=True,
        )
        self._reader.start()
        self._flush_task = asyncio.create_task(self._flush_idle_groups())
        self._state.set(ConnectionState.CONNECTED)

    async def write(self, data: bytes) -> bool:
        if self._serial is None or self._state.value is not ConnectionState.CONNECTED:
            LOGGER.warning("Write to %s dropped: port is not connected", self.port)
            return False
        try:
            await asyncio.to_thread(self._write_blocking, data)
        except (serial.SerialException, OSError) as exc:
            LOGGER.warning("Write to %s failed: %s", self.port, exc)
            return False
        return True

    async def close(self) -> None:
        self._stopping.set()
        if self._flush_task is not None:
            self._flush_task.cancel()
            await asyncio.gather(self._flush_task, return_exceptions=True)
            self._flush_task = None
        if self._reader is not None:
            await asyncio.to_thread(self._reader.join, self._read_timeout_s * 10)
            self._reader = None
        if self._serial is not None:
            try:
                self._serial.close()
            except (serial.SerialException, OSError) as exc:
                LOGGER.warning("Error closing %s: %s", self.port, exc)
            self._serial = None
        self._framer.flush()
        if self._state.value is not ConnectionState.ERROR:
            self._state.set(ConnectionState.DISCONNECTED)
        self._lines.close()
        self._output.close()
        self._chunks.close()
        self._state.close()

    def _write_blocking(self, data: bytes) -> None:
        with self._write_lock:
            self._serial.write(data)
            self._serial.flush()

    def _read_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        failures = 0
        while not self._stopping.is_set():
            try:
                data = self._serial.read(self._serial.in_waiting or 1)
            except (serial.SerialException, OSError) as exc:
                if self._stopping.is_set():
                    return
                failures += 1
                LOGGER.warning("Read from %s failed (%d): %s", self.port, failures, exc)
                if failures > _MAX_READ_ERRORS:
                    loop.call_soon_threadsafe(self._state.set, ConnectionState.ERROR)
                    return
                time.sleep(_READ_ERROR_BACKOFF_S)
                continue
            failures = 0
            if data:
                loop.call_soon_threadsafe(self._framer.feed, data)

    async def _flush_idle_groups(self) -> None:
        interval = max(self._idle_flush_s / 2, 0.05)
        while True:
            await asyncio.sleep(interval)
            self._framer.flush_idle()
