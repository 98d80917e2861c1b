from __future__ import annotations

from ghostctl.core.classifier import ResponseKind, classify
from ghostctl.core.model import IrLearnStatus
from ghostctl.core.state import StateStore


def _apply(store: StateStore, *lines: str) -> None:
    for line in lines:
        store.apply(classify(line), line)


def test_access_point_with_same_index_replaces_previous() -> None:
    store = StateStore()
    _apply(
        store,
        "[1] SSID: Cafe, BSSID: AA:BB:CC:DD:EE:02, RSSI: -70, Channel: 1",
        "[0] SSID: Home, BSSID: AA:BB:CC:DD:EE:01, RSSI: -40, Channel: 6",
        "[0] SSID: Home, BSSID: AA:BB:CC:DD:EE:01, RSSI: -30, Channel: 6",
    )
    aps = store.access_points.value
    assert [ap.index for ap in aps] == [0, 1]
    assert aps[0].rssi == -30


def test_ble_devices_sorted_by_signal_strength() -> None:
    store = StateStore()
    _apply(
        store,
        "BLE: Far | MAC: AA:BB:CC:DD:EE:01 | RSSI: -70",
        "BLE: Near | MAC: AA:BB:CC:DD:EE:02 | RSSI: -30",
        "BLE: Mid | MAC: AA:BB:CC:DD:EE:03 | RSSI: -50",
        "BLE: Far | MAC: AA:BB:CC:DD:EE:01 | RSSI: -40",
    )
    assert [device.name for device in store.ble_devices.value] == ["Near", "Far", "Mid"]


def test_stations_without_index_get_stable_counter_index() -> None:
    store = StateStore()
    _apply(
        store,
        "New Station: AA:BB:CC:DD:EE:10",
        "New Station: AA:BB:CC:DD:EE:11",
        "New Station: AA:BB:CC:DD:EE:10",
    )
    stations = store.stations.value
    assert [(s.index, s.mac) for s in stations] == [(1, "AA:BB:CC:DD:EE:10"), (2, "AA:BB:CC:DD:EE:11")]
    store.clear_stations()
    _apply(store, "New Station: AA:BB:CC:DD:EE:12")
    assert store.stations.value[0].index == 1


def test_gatt_services_deduplicated() -> None:
    store = StateStore()
    _apply(store, "Service: Battery (0x180F) handles 6-9", "Service: Battery (0x180F) handles 6-9")
    assert len(store.gatt_services.value) == 1


def test_sd_listing_completes_loading() -> None:
    store = StateStore()
    store.set_sd_loading(True)
    _apply(store, "SD:DIR:[0] captures", "SD:FILE:[1] notes.txt 12")
    assert store.sd_loading.value is True
    _apply(store, "SD:OK:listed 2 entries")
    assert store.sd_loading.value is False
    assert [entry.path for entry in store.sd_entries.value] == ["captures", "notes.txt"]


def test_sd_error_sets_status_and_stops_loading() -> None:
    store = StateStore()
    store.set_sd_loading(True)
    _apply(store, "SD:ERR:not_found:/nope")
    assert store.sd_loading.value is False
    assert store.status_message.value == "SD Error: not_found:/nope"


def test_unparseable_record_is_dropped() -> None:
    store = StateStore()
    store.apply(ResponseKind.ACCESS_POINT, "[0] SSID: broken")
    assert store.access_points.value == ()
    assert store.status_message.value is None


def test_unclassified_lines_become_status_except_echoes() -> None:
    store = StateStore()
    _apply(store, "Scanning for networks")
    assert store.status_message.value == "Scanning for networks"
    _apply(store, "> scanap")
    assert store.status_message.value == "Scanning for networks"


def test_device_info_parse_status() -> None:
    store = StateStore()
    store.apply(ResponseKind.DEVICE_INFO, "Chip Information\nModel: ESP32-C5\nCPU Cores: 1")
    assert store.device_info.value is not None
    assert store.chip_info_parse_status.value == "OK: model=ESP32-C5, features=0"
    assert store.status_message.value == "Device: ESP32-C5"

    store.apply(ResponseKind.DEVICE_INFO, "Chip Information\nCPU Cores: 1")
    assert store.chip_info_parse_status.value == "FAILED: missing 'Model:' field"


def test_pending_ssid_fills_connection() -> None:
    store = StateStore()
    store.set_pending_ssid("Home")
    _apply(store, "WiFi Connected")
    connection = store.wifi_connection.value
    assert connection is not None and connection.ssid == "Home"
    assert store.status_message.value == "WiFi Connected: Home"


def test_ir_learn_status_message() -> None:
    store = StateStore()
    _apply(store, "Waiting for IR signal...")
    assert store.ir_learn_status.value is IrLearnStatus.WAITING
    assert store.status_message.value == "Waiting for IR signal..."


def test_settings_accumulate() -> None:
    store = StateStore()
    _apply(store, "ghost.volume = 5", "ghost.led = on", "ghost.volume = 7")
    assert store.settings.value == {"ghost.volume": "7", "ghost.led": "on"}


def test_reset_restores_initial_values() -> None:
    store = StateStore()
    _apply(
        store,
        "[0] SSID: Home, BSSID: AA:BB:CC:DD:EE:01, RSSI: -40, Channel: 6",
        "New Station: AA:BB:CC:DD:EE:10",
        "ghost.volume = 5",
    )
    store.set_wardriving(True)
    store.reset()
    assert store.access_points.value == ()
    assert store.stations.value == ()
    assert store.settings.value == {}
    assert store.is_wardriving.value is False
    assert store.status_message.value is None
    _apply(store, "New Station: AA:BB:CC:DD:EE:11")
    assert store.stations.value[0].index == 1
