from __future__ import annotations

import asyncio

from ghostctl.core.classifier import classify
from ghostctl.core.model import ConnectionState, EngineSettings
from ghostctl.core.service import GhostService

AP_LINE = "[0] SSID: Home, BSSID: AA:BB:CC:DD:EE:01, RSSI: -40, Channel: 6"
CHIP_INFO = "Chip Information\nModel: ESP32-S3\nCPU Cores: 2\nIDF Version: v5.1.2"


def _service(transport, sleeps: list[float] | None = None) -> GhostService:
    async def record_sleep(delay: float) -> None:
        if sleeps is not None:
            sleeps.append(delay)

    return GhostService(transport, settings=EngineSettings(poll_interval_s=0.01), sleep=record_sleep)


def test_lines_flow_into_store(transport) -> None:
    async def scenario() -> int:
        async with _service(transport) as service:
            transport.push_line(AP_LINE)
            await service.wait_until(lambda: bool(service.store.access_points.value), 1.0)
            return len(service.store.access_points.value)

    assert asyncio.run(scenario()) == 1
    assert transport.closed


POPULATED_LINES = (
    AP_LINE,
    "New Station: AA:BB:CC:DD:EE:10",
    "BLE: Phone | MAC: AA:BB:CC:DD:EE:05 | RSSI: -70",
    "SD:FILE:[0] notes.txt 12",
    "NFC Tag Found: NTAG215 UID: 04a1b2c3d4e5f6",
    "Handshake found!\nAP=aa:bb:cc:dd:ee:01\nPair=M1/M2",
)
COLLECTIONS = ("access_points", "stations", "ble_devices", "sd_entries", "nfc_tags", "handshakes")


def test_state_reset_after_connection_drop(transport) -> None:
    async def scenario() -> tuple[dict[str, int], dict[str, int]]:
        service = _service(transport)
        service.start()
        store = service.store
        for line in POPULATED_LINES:
            transport.push_line(line)
        await service.wait_until(lambda: all(getattr(store, name).value for name in COLLECTIONS), 1.0)
        before = {name: len(getattr(store, name).value) for name in COLLECTIONS}
        transport.connection_state.set(ConnectionState.DISCONNECTED)
        await service.wait_until(lambda: not any(getattr(store, name).value for name in COLLECTIONS), 1.0)
        after = {name: len(getattr(store, name).value) for name in COLLECTIONS}
        await service.destroy()
        return before, after

    before, after = asyncio.run(scenario())
    assert all(count == 1 for count in before.values()), before
    assert all(count == 0 for count in after.values()), after


def test_initial_disconnected_state_keeps_data(transport) -> None:
    transport.connection_state.set(ConnectionState.DISCONNECTED)

    async def scenario() -> int:
        service = _service(transport)
        service.start()
        transport.push_line(AP_LINE)
        await service.wait_until(lambda: bool(service.store.access_points.value), 1.0)
        transport.connection_state.set(ConnectionState.ERROR)
        await asyncio.sleep(0.05)
        count = len(service.store.access_points.value)
        await service.destroy()
        return count

    assert asyncio.run(scenario()) == 1


def test_scans_clear_only_their_own_population(transport) -> None:
    async def scenario() -> GhostService:
        service = _service(transport)
        store = service.store
        for line in (
            AP_LINE,
            "BLE: Phone | MAC: AA:BB:CC:DD:EE:05 | RSSI: -70",
            "[0] Name: Tile, MAC: AA:BB:CC:DD:EE:02, RSSI: -50",
        ):
            store.apply(classify(line), line)
        await service.scan_ble()
        return service

    service = asyncio.run(scenario())
    assert service.store.ble_devices.value == ()
    assert len(service.store.access_points.value) == 1
    assert len(service.store.gatt_devices.value) == 1
    assert transport.sent == ["stop", "blescan"]


def test_fetch_device_info(transport) -> None:
    transport.responder = lambda wire: transport.push_line(CHIP_INFO) if wire == "chipinfo" else None

    async def scenario():
        async with _service(transport) as service:
            return await service.fetch_device_info(timeout_s=1.0)

    info = asyncio.run(scenario())
    assert info is not None
    assert info.model == "ESP32-S3"


def test_collect_output_returns_lines_seen_after_send(transport) -> None:
    transport.push_output("stale line")
    transport.responder = lambda wire: transport.push_output("Help:", "  scanap")

    async def scenario() -> list[str]:
        return await _service(transport).collect_output("help", 0.1)

    assert asyncio.run(scenario()) == ["Help:", "  scanap"]
    assert transport.sent == ["help"]


def test_select_gatt_settles_before_enumerating(transport) -> None:
    sleeps: list[float] = []

    async def scenario() -> bool:
        return await _service(transport, sleeps).enumerate_gatt(2)

    assert asyncio.run(scenario()) is True
    assert transport.sent == ["selectgatt 2", "enumgatt"]
    assert sleeps == [0.3]


def test_connect_wifi_remembers_ssid(transport) -> None:
    async def scenario() -> GhostService:
        service = _service(transport)
        await service.connect_wifi("Home", "secret")
        return service

    service = asyncio.run(scenario())
    assert service.store.pending_ssid == "Home"
    assert transport.sent == ['connect "Home" "secret"']


def test_list_sd_files_failure_clears_loading(transport) -> None:
    transport.accept_writes = False

    async def scenario() -> GhostService:
        service = _service(transport)
        assert await service.list_sd_files("/captures") is False
        return service

    assert asyncio.run(scenario()).store.sd_loading.value is False


def test_query_sd_size(transport) -> None:
    transport.responder = lambda wire: transport.push_output("SD:SIZE:321")

    async def scenario() -> int | None:
        return await _service(transport).query_sd_size("/a.txt")

    assert asyncio.run(scenario()) == 321


def test_scan_wifi_empties_access_points_before_new_results(transport) -> None:
    counts: list[int] = []

    async def scenario() -> GhostService:
        service = _service(transport)
        for index in range(3):
            line = f"[{index}] SSID: Net{index}, BSSID: AA:BB:CC:DD:EE:0{index}, RSSI: -50, Channel: 1"
            service.store.apply(classify(line), line)
        assert len(service.store.access_points.value) == 3
        transport.responder = lambda wire: counts.append(len(service.store.access_points.value))
        await service.scan_wifi()
        return service

    service = asyncio.run(scenario())
    assert counts == [0, 0]
    assert service.store.access_points.value == ()
    assert transport.sent == ["stop", "scanap"]


def test_malformed_line_does_not_stop_the_worker(transport) -> None:
    oversized = "[" + "9" * 5000 + "] SSID: x, BSSID: AA:BB:CC:DD:EE:09, RSSI: -40, Channel: 6"

    async def scenario() -> tuple[str, ...]:
        async with _service(transport) as service:
            transport.push_line(oversized)
            transport.push_line(AP_LINE)
            await service.wait_until(lambda: bool(service.store.access_points.value), 1.0)
            return tuple(ap.ssid for ap in service.store.access_points.value)

    assert asyncio.run(scenario()) == ("Home",)


def test_worker_survives_store_errors(transport, monkeypatch) -> None:
    async def scenario() -> int:
        async with _service(transport) as service:
            apply = service.store.apply

            def flaky_apply(kind, line):
                if line == "boom":
                    raise RuntimeError("store bug")
                apply(kind, line)

            monkeypatch.setattr(service.store, "apply", flaky_apply)
            transport.push_line("boom")
            transport.push_line(AP_LINE)
            await service.wait_until(lambda: bool(service.store.access_points.value), 1.0)
            return len(service.store.access_points.value)

    assert asyncio.run(scenario()) == 1
