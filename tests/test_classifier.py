from __future__ import annotations

import pytest

from ghostctl.core.classifier import ResponseKind, classify


@pytest.mark.parametrize(
    ("line", "kind"),
    [
        ("[0] SSID: Home, BSSID: AA:BB:CC:DD:EE:01, RSSI: -40, Channel: 6", ResponseKind.ACCESS_POINT),
        ("[0] Name: Tile, MAC: AA:BB:CC:DD:EE:02, RSSI: -50", ResponseKind.GATT_DEVICE),
        ("[1] White Flipper Found: MAC: AA:BB:CC:DD:EE:03, Name: Flip, RSSI: -60 dBm", ResponseKind.FLIPPER_DEVICE),
        ("New Station: AA:BB:CC:DD:EE:04", ResponseKind.STATION),
        ("BLE: Phone | MAC: AA:BB:CC:DD:EE:05 | RSSI: -70", ResponseKind.BLE_DEVICE),
        ("SD:OK:listed 3 entries", ResponseKind.SD_RESULT),
        ("SD:FILE:[0] notes.txt 12", ResponseKind.SD_ENTRY),
        ("SD:SIZE:9000", ResponseKind.SD_RESULT),
        ("ERROR: unknown command", ResponseKind.ERROR),
        ("OK: portal started", ResponseKind.SUCCESS),
        ("[3] tv.ir", ResponseKind.IR_REMOTE),
        ("[1] Power (NEC)", ResponseKind.IR_BUTTON),
        ("GHOSTESP_OK", ResponseKind.IDENTIFY),
        ("ghost.volume = 5", ResponseKind.SETTING_VALUE),
        ("Chip Information\nModel: ESP32-S3", ResponseKind.DEVICE_INFO),
        ("##### -45 dBm (min:-60 max:-40) CLOSER", ResponseKind.TRACK_DATA),
        ("Wardrive: ap=12 logged=10/11 gpsrej=1 ch=6 up=3m20s gps=3D/8 pending=512B", ResponseKind.WARDRIVE_STATS),
        ("WiFi Connected", ResponseKind.WIFI_CONNECTION),
        ("wifi connected", ResponseKind.WIFI_CONNECTION),
        ("attempting Connection to: Home", ResponseKind.WIFI_CONNECTION),
        ("Scanning...", ResponseKind.UNCLASSIFIED),
        ("   ", ResponseKind.UNCLASSIFIED),
    ],
)
def test_classify(line: str, kind: ResponseKind) -> None:
    assert classify(line) is kind


def test_earlier_rule_wins_over_looser_pattern() -> None:
    # carries Name: and MAC: too, but SSID/BSSID make it an access point
    line = "[2] SSID: Cafe, BSSID: AA:BB:CC:DD:EE:06, RSSI: -70, Channel: 1, Name: x, MAC: AA:BB:CC:DD:EE:06"
    assert classify(line) is ResponseKind.ACCESS_POINT
