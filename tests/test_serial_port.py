from __future__ import annotations

import asyncio
import threading
import time

import pytest
import serial

from ghostctl.core.errors import TransportConnectError
from ghostctl.core.model import ConnectionState
from ghostctl.transports.serial_port import SerialTransport


class FakeSerial:
    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.written = bytearray()
        self.closed = False
        self._incoming = bytearray()
        self._lock = threading.Lock()

    def inject(self, data: bytes) -> None:
        with self._lock:
            self._incoming.extend(data)

    @property
    def in_waiting(self) -> int:
        with self._lock:
            return len(self._incoming)

    def read(self, size: int = 1) -> bytes:
        with self._lock:
            data = bytes(self._incoming[:size])
            del self._incoming[:size]
        if not data:
            time.sleep(0.005)
        return data

    def write(self, data: bytes) -> int:
        self.written.extend(data)
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True


def test_serial_transport_streams_lines_and_writes() -> None:
    ports: list[FakeSerial] = []

    def factory(**kwargs) -> FakeSerial:
        port = FakeSerial(**kwargs)
        ports.append(port)
        return port

    async def scenario() -> None:
        transport = SerialTransport("/dev/ttyFAKE", 115200, idle_flush_s=0.05, serial_factory=factory)
        states = transport.connection_state.subscribe()
        await transport.open()
        assert transport.connection_state.value is ConnectionState.CONNECTED
        assert ports[0].kwargs["baudrate"] == 115200

        lines = transport.subscribe_lines()
        ports[0].inject(b"GHOSTESP_OK\r\n")
        assert await asyncio.wait_for(lines.get(), 1.0) == "GHOSTESP_OK"

        assert await transport.write(b"identify\r\n") is True
        assert bytes(ports[0].written) == b"identify\r\n"

        await transport.close()
        assert ports[0].closed
        seen = [state async for state in states]
        assert seen == [
            ConnectionState.DISCONNECTED,
            ConnectionState.CONNECTING,
            ConnectionState.CONNECTED,
            ConnectionState.DISCONNECTED,
        ]

    asyncio.run(scenario())


def test_open_failure_sets_error_state() -> None:
    def factory(**kwargs):
        raise serial.SerialException("could not open port")

    async def scenario() -> SerialTransport:
        transport = SerialTransport("/dev/missing", serial_factory=factory)
        with pytest.raises(TransportConnectError):
            await transport.open()
        return transport

    transport = asyncio.run(scenario())
    assert transport.connection_state.value is ConnectionState.ERROR


def test_write_before_open_is_rejected() -> None:
    async def scenario() -> bool:
        return await SerialTransport("/dev/ttyFAKE", serial_factory=FakeSerial).write(b"stop\r\n")

    assert asyncio.run(scenario()) is False
