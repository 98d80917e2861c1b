"""Ordered classification of device output records into response kinds."""

from __future__ import annotations

import re
from collections.abc import Callable
from enum import Enum


class ResponseKind(Enum):
    ACCESS_POINT = "access_point"
    STATION = "station"
    BLE_DEVICE = "ble_device"
    FLIPPER_DEVICE = "flipper_device"
    AIRTAG = "airtag"
    GATT_DEVICE = "gatt_device"
    GATT_SERVICE = "gatt_service"
    NFC_TAG = "nfc_tag"
    SD_ENTRY = "sd_entry"
    SD_RESULT = "sd_result"
    AERIAL_DEVICE = "aerial_device"
    PORTAL_CREDENTIALS = "portal_credentials"
    IR_REMOTE = "ir_remote"
    IR_BUTTON = "ir_button"
    IR_LEARNED = "ir_learned"
    IR_LEARN_SAVED = "ir_learn_saved"
    IR_LEARN_STATUS = "ir_learn_status"
    IR_DAZZLER = "ir_dazzler"
    ERROR = "error"
    SUCCESS = "success"
    IDENTIFY = "identify"
    DEVICE_INFO = "device_info"
    TRACK_DATA = "track_data"
    FLIPPER_TRACK_DATA = "flipper_track_data"
    TRACK_HEADER = "track_header"
    HANDSHAKE = "handshake"
    PCAP_PATH = "pcap_path"
    WIFI_CONNECTION = "wifi_connection"
    WIFI_STATUS = "wifi_status"
    GPS_POSITION = "gps_position"
    WARDRIVE_STATS = "wardrive_stats"
    SETTING_VALUE = "setting_value"
    UNCLASSIFIED = "unclassified"


_IR_REMOTE_RE = re.compile(r"^\[\d+\]\s*\S+\.(?:ir|json)\b")
_GATT_TRACK_RE = re.compile(r"^\[#+\]\s*RSSI:")
_IR_LEARN_STATUS_MARKERS = ("IR learn task started", "Waiting for IR signal", "Timeout, no signal received")
_WIFI_CONNECTION_RE = re.compile(
    r"Got IP:|WiFi\s+Connected|WiFi\s+disconnected|Attempting\s+.*connection", re.IGNORECASE
)

Rule = tuple[ResponseKind, Callable[[str], bool]]

# Earlier rules win; several later patterns are looser supersets of earlier ones.
RULES: tuple[Rule, ...] = (
    (ResponseKind.DEVICE_INFO, lambda s: s.startswith("Chip Information")),
    (ResponseKind.ACCESS_POINT, lambda s: s.startswith("[") and "SSID:" in s and "BSSID:" in s),
    (ResponseKind.FLIPPER_DEVICE, lambda s: "Flipper" in s and "Found" in s),
    (ResponseKind.AIRTAG, lambda s: "AirTag" in s and "Found" in s),
    (
        ResponseKind.GATT_DEVICE,
        lambda s: s.startswith("[") and "Name:" in s and "MAC:" in s and "SSID:" not in s,
    ),
    (ResponseKind.GATT_SERVICE, lambda s: s.startswith("Service:") and "handles" in s),
    (
        ResponseKind.STATION,
        lambda s: s.startswith("New Station:")
        or "Station MAC:" in s
        or ("Station:" in s and "Associated AP:" in s),
    ),
    (ResponseKind.BLE_DEVICE, lambda s: s.startswith("BLE:") and "|" in s),
    (ResponseKind.NFC_TAG, lambda s: "NFC Tag" in s),
    (
        ResponseKind.WARDRIVE_STATS,
        lambda s: ("Wardrive:" in s and "ap=" in s)
        or ("Wardrive" in s and ("APs:" in s or "Logged:" in s or "GPS Fix:" in s))
        or (s.startswith("GPS:") and ("APs:" in s or "BLE:" in s)),
    ),
    (
        ResponseKind.GPS_POSITION,
        lambda s: s.startswith("GPS Info") or ("Lat:" in s and ("Long:" in s or "Lon:" in s)),
    ),
    (ResponseKind.SD_RESULT, lambda s: s.startswith(("SD:OK", "SD:ERR"))),
    (ResponseKind.SD_ENTRY, lambda s: s.startswith(("SD:FILE:", "SD:DIR:"))),
    (ResponseKind.SD_RESULT, lambda s: s.startswith("SD:")),
    (ResponseKind.ERROR, lambda s: s.startswith("ERROR:")),
    (ResponseKind.SUCCESS, lambda s: s.startswith("OK:")),
    (ResponseKind.AERIAL_DEVICE, lambda s: s.startswith("[") and "MAC:" in s and "Type:" in s),
    (ResponseKind.PORTAL_CREDENTIALS, lambda s: "Captured credentials:" in s),
    (
        ResponseKind.IR_LEARNED,
        lambda s: ("Captured:" in s and "A:" in s and "C:" in s) or "Captured RAW signal" in s,
    ),
    (ResponseKind.IR_LEARN_SAVED, lambda s: "Saved to" in s and ".ir" in s),
    (ResponseKind.IR_LEARN_STATUS, lambda s: any(marker in s for marker in _IR_LEARN_STATUS_MARKERS)),
    (ResponseKind.IR_DAZZLER, lambda s: s.startswith("IR_DAZZLER:")),
    (ResponseKind.IR_REMOTE, lambda s: _IR_REMOTE_RE.match(s) is not None),
    (
        ResponseKind.TRACK_DATA,
        lambda s: "dBm" in s and ("#####" in s or _GATT_TRACK_RE.match(s) is not None),
    ),
    (
        ResponseKind.FLIPPER_TRACK_DATA,
        lambda s: "tracking flipper" in s.lower() and "RSSI" in s and "dBm" in s,
    ),
    (ResponseKind.IR_BUTTON, lambda s: s.startswith("[")),
    (ResponseKind.IDENTIFY, lambda s: s == "GHOSTESP_OK"),
    (ResponseKind.SETTING_VALUE, lambda s: " = " in s),
    (ResponseKind.TRACK_HEADER, lambda s: "tracking" in s.lower() and "===" in s),
    (ResponseKind.HANDSHAKE, lambda s: "handshake found" in s.lower()),
    (ResponseKind.PCAP_PATH, lambda s: "PCAP" in s and ".pcap" in s),
    (
        ResponseKind.WIFI_STATUS,
        lambda s: "=== WIFI STATUS ===" in s or ("connected=" in s and "has_saved_network=" in s),
    ),
    (ResponseKind.WIFI_CONNECTION, lambda s: _WIFI_CONNECTION_RE.search(s) is not None),
)


def classify(line: str) -> ResponseKind:
    """Return the first matching kind for *line*, or ``UNCLASSIFIED``."""
    stripped = line.strip()
    if not stripped:
        return ResponseKind.UNCLASSIFIED
    for kind, matches in RULES:
        if matches(stripped):
            return kind
    return ResponseKind.UNCLASSIFIED
