from __future__ import annotations

import asyncio

import pytest

from ghostctl.api import Client, ConfigError, EngineSettings, SerialTransport


def test_client_requires_a_port() -> None:
    with pytest.raises(ConfigError):
        Client(settings=EngineSettings())


def test_client_builds_serial_transport_from_settings() -> None:
    client = Client(settings=EngineSettings(port="/dev/ttyACM0", baud_rate=230400))
    transport = client.service.transport
    assert isinstance(transport, SerialTransport)
    assert transport.port == "/dev/ttyACM0"
    assert transport.baud_rate == 230400


def test_client_port_argument_wins_over_settings() -> None:
    client = Client(port="/dev/ttyUSB1", settings=EngineSettings(port="/dev/ttyACM0"))
    assert client.service.transport.port == "/dev/ttyUSB1"


def test_client_context_runs_engine(transport) -> None:
    async def scenario() -> int:
        async with Client(transport=transport, settings=EngineSettings()) as client:
            transport.push_line("[0] SSID: Home, BSSID: AA:BB:CC:DD:EE:01, RSSI: -40, Channel: 6")
            await client.service.wait_until(lambda: bool(client.store.access_points.value), 1.0)
            assert client.load_warnings == ()
            return len(client.store.access_points.value)

    assert asyncio.run(scenario()) == 1
    assert transport.closed
