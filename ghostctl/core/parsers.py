"""Pure parsers turning classified device records into typed models.

Every ``parse_*`` function returns ``None`` on structural mismatch and never raises.
"""

from __future__ import annotations

import functools
import logging
import re
from collections.abc import Callable
from typing import TypeVar

from ghostctl.core.classifier import ResponseKind
from ghostctl.core.model import (
    AccessPoint,
    AerialDevice,
    AerialDeviceType,
    AirTag,
    BleDevice,
    BleDeviceType,
    DeviceFeature,
    DeviceInfo,
    FlipperDevice,
    FlipperTrackData,
    GattDevice,
    GattService,
    GpsPosition,
    Handshake,
    IrButton,
    IrLearnedSignal,
    IrLearnStatus,
    IrRemote,
    NfcTag,
    NfcTagType,
    PortalCredentials,
    SdEntry,
    SdOperationResult,
    SettingValue,
    Station,
    TrackData,
    TrackDirection,
    TrackHeader,
    WardriveStats,
    WifiConnection,
    WifiStatus,
)

LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")

_MAC = r"[0-9A-Fa-f]{2}(?::[0-9A-Fa-f]{2}){5}"

_RSSI_RE = re.compile(r"RSSI:\s*(-?\d+)")
_RSSI_DBM_RE = re.compile(r"RSSI:\s*(-?\d+)\s*dBm")
_MAC_FIELD_RE = re.compile(rf"MAC:\s*({_MAC})")
_ANY_MAC_RE = re.compile(rf"({_MAC})")
_NAME_RE = re.compile(r"Name:\s*([^,\n]*)")

_AP_INDEX_RE = re.compile(r"^\[(\d+)\]\s*SSID:")
_AP_SSID_RE = re.compile(r"SSID:\s*([^,\n]*)")
_AP_BSSID_RE = re.compile(rf"BSSID:\s*({_MAC})")
_AP_CHANNEL_RE = re.compile(r"Channel:\s*(\d+)")
_AP_SECURITY_RE = re.compile(r"Security:\s*([^\s,]+)")
_AP_PMF_RE = re.compile(r"PMF:\s*([^\s,]+)")
_AP_VENDOR_RE = re.compile(r"Vendor:\s*([^,\n]+)")
_AP_BAND_RE = re.compile(r"Band:\s*([^\s,]+)")

_STATION_INDEX_RE = re.compile(r"^\[(\d+)\]\s*Station\s*MAC:")
_STATION_MAC_RE = re.compile(rf"Station(?:\s*MAC)?:\s*({_MAC})")
_STATION_VENDOR_RE = re.compile(r"(?:Station|STA)\s*Vendor:\s*([^,\n]+)")
_STATION_AP_SSID_RE = re.compile(r"Associated\s*AP:\s*([^,\n]+)")
_STATION_AP_BSSID_RE = re.compile(rf"AP\s*BSSID:\s*({_MAC})")
_STATION_AP_VENDOR_RE = re.compile(r"(?<!ST)AP\s*Vendor:\s*([^,\n]+)")

_BLE_NAME_RE = re.compile(r"BLE:\s*(.+?)\s*\|")

_FLIPPER_INDEX_RE = re.compile(r"^\[(\d+)\]\s*(White|Black|Transparent)?\s*Flipper\s*Found", re.IGNORECASE)
_FLIPPER_TYPE_RE = re.compile(r"(White|Black|Transparent)\s*Flipper", re.IGNORECASE)

_AIRTAG_INDEX_RE = re.compile(r"^\[(\d+)\]\s*AirTag\s*Found")
_AIRTAG_TOTAL_RE = re.compile(r"Total:\s*(\d+)")
_AIRTAG_PAYLOAD_RE = re.compile(r"Payload:\s*([0-9A-Fa-f ]+)")

_GATT_INDEX_RE = re.compile(r"^\[(\d+)\]\s*Name:")
_GATT_TYPE_RE = re.compile(r"Type:\s*([^,\n]+)")
_GATT_SERVICE_RE = re.compile(
    r"Service:\s*(.+?)\s*\((0x[0-9A-Fa-f]+)\)\s*handles\s*(\d+)-(\d+)", re.IGNORECASE
)

_AERIAL_INDEX_RE = re.compile(r"^\[(\d+)\]\s*(.*)$", re.MULTILINE)
_AERIAL_TYPE_RE = re.compile(r"Type:\s*(\w+)")
_AERIAL_VENDOR_RE = re.compile(r"Vendor:\s*(.+)$", re.MULTILINE)
_AERIAL_LOCATION_RE = re.compile(r"Location:\s*(-?\d+\.\d+),\s*(-?\d+\.\d+)")
_AERIAL_ALTITUDE_RE = re.compile(r"Altitude:\s*(-?\d+\.\d+)\s*m")
_AERIAL_SPEED_RE = re.compile(r"Speed:\s*(-?\d+\.\d+)\s*m/s")
_AERIAL_HEADING_RE = re.compile(r"@\s*(-?\d+\.\d+)°")
_AERIAL_STATUS_RE = re.compile(r"Status:\s*(\w+)")
_AERIAL_OPERATOR_RE = re.compile(r"Operator:\s*(-?\d+\.\d+),\s*(-?\d+\.\d+)")
_AERIAL_OPERATOR_ID_RE = re.compile(r"Operator ID:\s*(.+)$", re.MULTILINE)
_AERIAL_DESCRIPTION_RE = re.compile(r"Description:\s*(.+)$", re.MULTILINE)
_AERIAL_LAST_SEEN_RE = re.compile(r"Last seen:\s*(\d+)\s*sec")

_NFC_TYPE_RE = re.compile(r"NFC Tag Found:\s*(\w+)")
_NFC_UID_RE = re.compile(r"UID:\s*([0-9A-Fa-f]+)")

_SD_FILE_RE = re.compile(r"^SD:FILE:\[(\d+)\]\s+(.+?)\s+(\d+)$")
_SD_DIR_RE = re.compile(r"^SD:DIR:\[(\d+)\]\s+(.+)$")
_SD_OK_RE = re.compile(r"^SD:OK(?::(.*))?$")
_SD_ERR_RE = re.compile(r"^SD:ERR:([^:]+)(?::(.*))?$")
_SD_SIZE_RE = re.compile(r"SD:SIZE:(\d+)")
_SD_LISTED_RE = re.compile(r"SD:OK:listed (\d+) entries")
_SD_TREE_RE = re.compile(r"SD:OK:tree (\d+) items")
_SD_PATH_OPS_RE = re.compile(r"SD:OK:(created|removed|appended):(.+)$")
_SD_BYTES_RE = re.compile(r"^SD:(WRITE|APPEND|READ:END):bytes=(\d+)$")

_ERROR_RE = re.compile(r"^ERROR:\s*(.+)")
_SUCCESS_RE = re.compile(r"^OK:\s*(.+)$", re.MULTILINE)

_PORTAL_CREDS_RE = re.compile(r"Captured credentials:\s*(.+?)\s*/\s*(.+)")

_IR_LEARNED_PARSED_RE = re.compile(r"Captured:\s*(\S+)\s+A:0x([0-9A-Fa-f]+)\s+C:0x([0-9A-Fa-f]+)")
_IR_LEARNED_RAW_RE = re.compile(r"Captured RAW signal\s*\((\d+)\s+samples\)")
_IR_SAVED_RE = re.compile(r"Saved to\s+(.+)")
_IR_DAZZLER_RE = re.compile(r"IR_DAZZLER:(\w+)")
_IR_REMOTE_RE = re.compile(r"\[(\d+)\]\s*(\S+\.(?:ir|json))")
_IR_BUTTON_RE = re.compile(r"^\[(\d+)\]\s*(\S+)(?:\s*\(([^)]+)\))?")
_IR_LISTING_PREFIXES = ("Signals in ", "Unique buttons in ", "IR: ")

_SETTING_RE = re.compile(r"^([\w.]+)\s*=\s*(.+)$")

_TRACK_RSSI_RE = re.compile(r"#####\s+(-?\d+)\s*dBm\s*\(min:(-?\d+)\s+max:(-?\d+)\)")
_TRACK_GATT_RE = re.compile(
    r"\[#+\]\s*RSSI:\s*(-?\d+)\s*dBm,\s*Min:\s*(-?\d+),\s*Max:\s*(-?\d+)(?:,\s*(CLOSER|FARTHER))?"
)
_TRACK_FLIPPER_RE = re.compile(
    r"Tracking Flipper (\d+):\s*RSSI\s*(-?\d+)\s*dBm(?:\s*\(([^)]+)\))?", re.IGNORECASE
)
_TRACK_HEADER_RE = re.compile(r"===\s*tracking\s+(ap|sta):\s*(.+?)\s*===", re.IGNORECASE)
_TRACK_BSSID_RE = re.compile(rf"bssid:\s*({_MAC})", re.IGNORECASE)
_TRACK_CHANNEL_RE = re.compile(r"channel:\s*(\d+)", re.IGNORECASE)

_HANDSHAKE_AP_RE = re.compile(rf"AP=({_MAC})", re.IGNORECASE)
_HANDSHAKE_PAIR_RE = re.compile(r"Pair=(\S+)", re.IGNORECASE)
_PCAP_PATH_RE = re.compile(r"/\S+\.pcap")

_GOT_IP_RE = re.compile(r"Got IP:\s*(\d+\.\d+\.\d+\.\d+)")
_WIFI_CONNECTED_RE = re.compile(r"WiFi\s+Connected", re.IGNORECASE)
_WIFI_DISCONNECTED_RE = re.compile(r"WiFi\s+disconnected(?::\s*(.+))?", re.IGNORECASE)
_WIFI_CONNECTING_RE = re.compile(r"Attempting\s+.*connection.*:\s*(.+)", re.IGNORECASE)
_KEY_VALUE_RE = re.compile(r"^(\w+)=(.*)$")

_GPS_FIX_RE = re.compile(r"Fix:\s*(\S+)")
_GPS_SATS_RE = re.compile(r"Sats:\s*(\d+)(?:/(\d+))?")
_GPS_LAT_RE = re.compile(r"Lat:\s*(\d+)deg\s+([\d.]+)'([NS])")
_GPS_LON_RE = re.compile(r"Long?:\s*(\d+)deg\s+([\d.]+)'([EW])")
_GPS_ALT_RE = re.compile(r"Alt:\s*(-?[\d.]+)\s*m")
_GPS_SPEED_RE = re.compile(r"Speed:\s*([\d.]+)\s*km/h")
_GPS_DIRECTION_RE = re.compile(r"Direction:\s*(\d+)°\s*(\S+)")
_GPS_HDOP_RE = re.compile(r"HDOP:\s*([\d.]+)")
_GPS_FIX_TYPES = {"3d", "2d", "fix"}

_WARDRIVE_HEARTBEAT_RE = re.compile(
    r"Wardrive:\s*ap=(\d+)\s+logged=(\d+)/(\d+)\s+gpsrej=(\d+)\s+ch=(\d+)\s+up=(\d+)m(\d+)s"
    r"\s+gps=([^/]+)/(\d+)(?:\s+sats=(\d+))?\s+pending=(\d+)B"
)
_WARDRIVE_APS_RE = re.compile(r"APs:\s*(\d+)")
_WARDRIVE_LOGGED_RE = re.compile(r"Logged:\s*(\d+)/(\d+)")
_WARDRIVE_GPS_FIX_RE = re.compile(r"GPS Fix:\s*([^/\n]+)/(\d+)")
_WARDRIVE_CHANNEL_RE = re.compile(r"Channel:\s*(\d+)")
_WARDRIVE_UPTIME_RE = re.compile(r"Uptime:\s*(\d+)m(\d+)s")
_WARDRIVE_PENDING_RE = re.compile(r"Pending:\s*(\d+)B")
_WARDRIVE_BLE_RE = re.compile(r"BLE:\s*(\d+)")
_WARDRIVE_GPS_STATUS_RE = re.compile(r"^GPS:\s*(.+)", re.MULTILINE)

_MODEL_RE = re.compile(r"Model:\s*([^,\s]+(?:[ \t]+[^,\s]+)*?)(?=\s*(?:[,\n]|$))")
_REVISION_RE = re.compile(r"Revision:\s*v?(\d+(?:\.\d+)+)")
_CORES_RE = re.compile(r"CPU Cores:\s*(\d+)")
_FEATURES_RE = re.compile(r"(?<!Enabled )Features:[ \t]*([^,\n]+)")
_FREE_HEAP_RE = re.compile(r"(?<!Min )Free Heap:\s*(\d+)")
_MIN_FREE_HEAP_RE = re.compile(r"Min Free Heap:\s*(\d+)")
_IDF_VERSION_RE = re.compile(r"IDF Version:\s*([^,\s]+)")
_BUILD_CONFIG_RE = re.compile(r"Build Config:\s*([^,\n]+)")
_FIRMWARE_RE = re.compile(r"Firmware:\s*([^,\n]+)")
_FIRMWARE_VERSION_RE = re.compile(r"Firmware Version:\s*(v?[\d.]+)")
_GIT_COMMIT_RE = re.compile(r"Git Commit:\s*([a-fA-F0-9]+)")
_ENABLED_FEATURES_MARKER = "Enabled Features:"
_ENABLED_FEATURE_SPLIT_RE = re.compile(r", |\n")

FEATURE_NAMES: dict[str, DeviceFeature] = {
    "Display": DeviceFeature.DISPLAY,
    "Touchscreen": DeviceFeature.TOUCHSCREEN,
    "Status Display (OLED)": DeviceFeature.STATUS_DISPLAY,
    "Status Display": DeviceFeature.STATUS_DISPLAY,
    "NFC": DeviceFeature.NFC,
    "BadUSB": DeviceFeature.BADUSB,
    "Infrared TX": DeviceFeature.INFRARED_TX,
    "Infrared RX": DeviceFeature.INFRARED_RX,
    "GPS": DeviceFeature.GPS,
    "Ethernet": DeviceFeature.ETHERNET,
    "Battery (Power Save)": DeviceFeature.BATTERY,
    "Battery ADC": DeviceFeature.BATTERY_ADC,
    "Fuel Gauge": DeviceFeature.FUEL_GAUGE,
    "RTC Clock": DeviceFeature.RTC_CLOCK,
    "Compass": DeviceFeature.COMPASS,
    "Accelerometer": DeviceFeature.ACCELEROMETER,
    "Joystick": DeviceFeature.JOYSTICK,
    "Cardputer": DeviceFeature.CARDPUTER,
    "T-Deck": DeviceFeature.TDECK,
    "Rotary Encoder": DeviceFeature.ROTARY_ENCODER,
    "USB Keyboard (Host)": DeviceFeature.USB_KEYBOARD,
    "Ghost Board": DeviceFeature.GHOST_BOARD,
    "S3TWatch": DeviceFeature.S3TWATCH,
    "SD Card (SPI)": DeviceFeature.SD_CARD_SPI,
    "SD Card (MMC)": DeviceFeature.SD_CARD_MMC,
}

_NFC_TYPES = {
    "NTAG213": NfcTagType.NTAG213,
    "NTAG215": NfcTagType.NTAG215,
    "NTAG216": NfcTagType.NTAG216,
    "MIFARE": NfcTagType.MIFARE_CLASSIC,
    "DESFIRE": NfcTagType.DESFIRE,
}

_BLE_NAME_HINTS = (
    ("flipper", BleDeviceType.FLIPPER),
    ("airtag", BleDeviceType.AIRTAG),
    ("iphone", BleDeviceType.IPHONE),
    ("samsung", BleDeviceType.SAMSUNG),
    ("google", BleDeviceType.GOOGLE),
)


def _lenient(parse: Callable[[str], _T | None]) -> Callable[[str], _T | None]:
    # Numeric groups are unbounded; int() rejects oversized digit strings.
    @functools.wraps(parse)
    def wrapper(text: str) -> _T | None:
        try:
            return parse(text)
        except ValueError as exc:
            LOGGER.debug("%s rejected %r: %s", parse.__name__, text[:80], exc)
            return None

    return wrapper


def _text(pattern: re.Pattern[str], line: str, group: int = 1) -> str | None:
    match = pattern.search(line)
    if match is None or match.group(group) is None:
        return None
    value = match.group(group).strip()
    return value or None


def _int(pattern: re.Pattern[str], line: str, group: int = 1) -> int | None:
    value = _text(pattern, line, group)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _float(pattern: re.Pattern[str], line: str, group: int = 1) -> float | None:
    value = _text(pattern, line, group)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _mac(pattern: re.Pattern[str], line: str) -> str | None:
    value = _text(pattern, line)
    return value.upper() if value else None


@_lenient
def parse_access_point(line: str) -> AccessPoint | None:
    index_match = _AP_INDEX_RE.match(line)
    if index_match is None:
        return None
    bssid = _mac(_AP_BSSID_RE, line)
    rssi = _int(_RSSI_RE, line)
    channel = _int(_AP_CHANNEL_RE, line)
    if bssid is None or rssi is None or channel is None:
        return None
    return AccessPoint(
        index=int(index_match.group(1)),
        ssid=_text(_AP_SSID_RE, line) or "",
        bssid=bssid,
        rssi=rssi,
        channel=channel,
        security=_text(_AP_SECURITY_RE, line) or "Unknown",
        vendor=_text(_AP_VENDOR_RE, line),
        band=_text(_AP_BAND_RE, line),
        pmf=_text(_AP_PMF_RE, line),
    )


def parse_station(line: str) -> Station | None:
    """Parse either station report format.

    ``[N] Station MAC: ...`` carries its own index. ``New Station:`` reports carry
    none; the store assigns one.
    """
    mac = _mac(_STATION_MAC_RE, line)
    if mac is None:
        return None
    return Station(
        mac=mac,
        index=_int(_STATION_INDEX_RE, line),
        rssi=_int(_RSSI_RE, line) or -100,
        vendor=_text(_STATION_VENDOR_RE, line),
        ap_ssid=_text(_STATION_AP_SSID_RE, line),
        ap_bssid=_mac(_STATION_AP_BSSID_RE, line),
        ap_vendor=_text(_STATION_AP_VENDOR_RE, line),
    )


def ble_device_type(name: str | None) -> BleDeviceType:
    lowered = (name or "").lower()
    for hint, device_type in _BLE_NAME_HINTS:
        if hint in lowered:
            return device_type
    return BleDeviceType.GENERIC


def parse_ble_device(line: str) -> BleDevice | None:
    if not line.startswith("BLE:"):
        return None
    name = _text(_BLE_NAME_RE, line)
    rssi = _int(_RSSI_RE, line)
    if rssi is None:
        rssi = -100
    mac = _mac(_ANY_MAC_RE, line)
    return BleDevice(
        unique_id=mac or f"ble_{name or 'unknown'}_{rssi}",
        rssi=rssi,
        name=name,
        mac=mac,
        device_type=ble_device_type(name),
    )


@_lenient
def parse_flipper_device(line: str) -> FlipperDevice | None:
    index_match = _FLIPPER_INDEX_RE.match(line)
    if index_match is None:
        return None
    mac = _mac(_MAC_FIELD_RE, line)
    rssi = _int(_RSSI_DBM_RE, line)
    if mac is None or rssi is None:
        return None
    flipper_type = index_match.group(2) or _text(_FLIPPER_TYPE_RE, line)
    return FlipperDevice(
        index=int(index_match.group(1)),
        mac=mac,
        rssi=rssi,
        name=_text(_NAME_RE, line),
        flipper_type=flipper_type.capitalize() if flipper_type else None,
    )


@_lenient
def parse_airtag(line: str) -> AirTag | None:
    index_match = _AIRTAG_INDEX_RE.match(line)
    if index_match is None:
        return None
    mac = _mac(_MAC_FIELD_RE, line)
    rssi = _int(_RSSI_DBM_RE, line)
    if mac is None or rssi is None:
        return None
    return AirTag(
        index=int(index_match.group(1)),
        mac=mac,
        rssi=rssi,
        total=_int(_AIRTAG_TOTAL_RE, line) or 1,
        payload=_text(_AIRTAG_PAYLOAD_RE, line),
    )


def parse_gatt_device(line: str) -> GattDevice | None:
    if "SSID:" in line:
        return None
    index = _int(_GATT_INDEX_RE, line)
    mac = _mac(_MAC_FIELD_RE, line)
    rssi = _int(_RSSI_RE, line)
    if index is None or mac is None or rssi is None:
        return None
    return GattDevice(
        index=index,
        mac=mac,
        rssi=rssi,
        name=_text(_NAME_RE, line),
        device_type=_text(_GATT_TYPE_RE, line),
    )


@_lenient
def parse_gatt_service(line: str) -> GattService | None:
    match = _GATT_SERVICE_RE.search(line)
    if match is None:
        return None
    name = match.group(1).strip()
    return GattService(
        uuid=match.group(2).lower(),
        start_handle=int(match.group(3)),
        end_handle=int(match.group(4)),
        name=None if not name or name == "Unknown" else name,
    )


@_lenient
def parse_aerial_device(line: str) -> AerialDevice | None:
    if not line.startswith("[") or "MAC:" not in line:
        return None
    index_match = _AERIAL_INDEX_RE.match(line)
    mac = _mac(_MAC_FIELD_RE, line)
    rssi = _int(_RSSI_RE, line)
    if index_match is None or mac is None or rssi is None:
        return None
    type_name = (_text(_AERIAL_TYPE_RE, line) or "").upper()
    try:
        device_type = AerialDeviceType(type_name)
    except ValueError:
        device_type = AerialDeviceType.UNKNOWN
    device_id = index_match.group(2).strip()
    location = _AERIAL_LOCATION_RE.search(line)
    operator = _AERIAL_OPERATOR_RE.search(line)
    return AerialDevice(
        index=int(index_match.group(1)),
        device_id=device_id or mac,
        mac=mac,
        device_type=device_type,
        rssi=rssi,
        vendor=_text(_AERIAL_VENDOR_RE, line),
        latitude=float(location.group(1)) if location else None,
        longitude=float(location.group(2)) if location else None,
        altitude_m=_float(_AERIAL_ALTITUDE_RE, line),
        speed_mps=_float(_AERIAL_SPEED_RE, line),
        heading_deg=_float(_AERIAL_HEADING_RE, line),
        status=_text(_AERIAL_STATUS_RE, line),
        operator_latitude=float(operator.group(1)) if operator else None,
        operator_longitude=float(operator.group(2)) if operator else None,
        operator_id=_text(_AERIAL_OPERATOR_ID_RE, line),
        description=_text(_AERIAL_DESCRIPTION_RE, line),
        last_seen_s=_int(_AERIAL_LAST_SEEN_RE, line),
    )


def parse_nfc_tag(line: str) -> NfcTag | None:
    if "NFC Tag" not in line:
        return None
    uid = _text(_NFC_UID_RE, line)
    if uid is None:
        return None
    type_name = (_text(_NFC_TYPE_RE, line) or "").upper()
    tag_type = next(
        (tag_type for prefix, tag_type in _NFC_TYPES.items() if type_name.startswith(prefix)),
        NfcTagType.UNKNOWN,
    )
    return NfcTag(uid=uid.upper(), tag_type=tag_type)


@_lenient
def parse_sd_entry(line: str) -> SdEntry | None:
    file_match = _SD_FILE_RE.match(line)
    if file_match is not None:
        return SdEntry(
            index=int(file_match.group(1)),
            path=file_match.group(2),
            is_dir=False,
            size=int(file_match.group(3)),
        )
    dir_match = _SD_DIR_RE.match(line)
    if dir_match is not None:
        return SdEntry(index=int(dir_match.group(1)), path=dir_match.group(2).strip(), is_dir=True)
    return None


@_lenient
def parse_sd_result(line: str) -> SdOperationResult | None:
    ok_match = _SD_OK_RE.match(line)
    if ok_match is not None:
        listed = _SD_LISTED_RE.search(line)
        if listed is not None:
            return SdOperationResult(success=True, operation="listed", details=f"{listed.group(1)} entries")
        tree = _SD_TREE_RE.search(line)
        if tree is not None:
            return SdOperationResult(success=True, operation="tree", details=f"{tree.group(1)} items")
        path_op = _SD_PATH_OPS_RE.search(line)
        if path_op is not None:
            return SdOperationResult(success=True, operation=path_op.group(1), path=path_op.group(2).strip())
        return SdOperationResult(success=True, operation="OK", details=(ok_match.group(1) or None))

    error_match = _SD_ERR_RE.match(line)
    if error_match is not None:
        return SdOperationResult(
            success=False,
            operation=error_match.group(1),
            details=error_match.group(2) or None,
        )

    size = _int(_SD_SIZE_RE, line)
    if size is not None:
        return SdOperationResult(success=True, operation="size", byte_count=size)

    bytes_match = _SD_BYTES_RE.match(line)
    if bytes_match is not None:
        operation = bytes_match.group(1).lower().replace(":", "_")
        return SdOperationResult(success=True, operation=operation, byte_count=int(bytes_match.group(2)))
    return None


def parse_sd_size(text: str) -> int | None:
    """Return the byte count reported by ``sd size``, if any line of *text* carries one."""
    return _int(_SD_SIZE_RE, text)


def parse_error(line: str) -> str | None:
    return _text(_ERROR_RE, line)


def parse_success(line: str) -> str | None:
    return _text(_SUCCESS_RE, line)


def parse_portal_credentials(line: str) -> PortalCredentials | None:
    match = _PORTAL_CREDS_RE.search(line)
    if match is None:
        return None
    return PortalCredentials(username=match.group(1).strip(), password=match.group(2).strip())


@_lenient
def parse_ir_remote(line: str) -> IrRemote | None:
    match = _IR_REMOTE_RE.search(line.strip())
    if match is None:
        return None
    return IrRemote(index=int(match.group(1)), filename=match.group(2))


@_lenient
def parse_ir_button(line: str) -> IrButton | None:
    trimmed = line.strip()
    if not trimmed.startswith("[") or trimmed.startswith(_IR_LISTING_PREFIXES):
        return None
    match = _IR_BUTTON_RE.match(trimmed)
    if match is None or match.group(2).endswith((".ir", ".json")):
        return None
    protocol = match.group(3)
    return IrButton(
        index=int(match.group(1)),
        name=match.group(2),
        protocol=protocol.strip() if protocol else None,
    )


@_lenient
def parse_ir_learned(line: str) -> IrLearnedSignal | None:
    parsed = _IR_LEARNED_PARSED_RE.search(line)
    if parsed is not None:
        return IrLearnedSignal(
            protocol=parsed.group(1),
            address=f"0x{parsed.group(2).upper()}",
            command=f"0x{parsed.group(3).upper()}",
        )
    raw = _IR_LEARNED_RAW_RE.search(line)
    if raw is not None:
        return IrLearnedSignal(protocol="RAW", raw_samples=int(raw.group(1)))
    return None


def parse_ir_learn_saved(line: str) -> str | None:
    return _text(_IR_SAVED_RE, line)


def parse_ir_learn_status(line: str) -> IrLearnStatus | None:
    if "IR learn task started" in line:
        return IrLearnStatus.STARTED
    if "Waiting for IR signal" in line:
        return IrLearnStatus.WAITING
    if "Timeout, no signal received" in line:
        return IrLearnStatus.TIMEOUT
    return None


def parse_ir_dazzler(line: str) -> str | None:
    return _text(_IR_DAZZLER_RE, line)


def parse_setting_value(line: str) -> SettingValue | None:
    if line.startswith("["):
        return None
    match = _SETTING_RE.match(line.strip())
    if match is None:
        return None
    return SettingValue(key=match.group(1), value=match.group(2).strip())


def _track_direction(label: str | None) -> TrackDirection:
    if label is None:
        return TrackDirection.STABLE
    upper = label.upper()
    if "CLOSER" in upper:
        return TrackDirection.CLOSER
    if "FARTHER" in upper:
        return TrackDirection.FARTHER
    return TrackDirection.STABLE


@_lenient
def parse_track_data(line: str) -> TrackData | None:
    if "dBm" not in line:
        return None
    wifi = _TRACK_RSSI_RE.search(line)
    if wifi is not None:
        return TrackData(
            rssi=int(wifi.group(1)),
            min_rssi=int(wifi.group(2)),
            max_rssi=int(wifi.group(3)),
            direction=_track_direction(line[wifi.end():]),
        )
    gatt = _TRACK_GATT_RE.search(line)
    if gatt is not None:
        return TrackData(
            rssi=int(gatt.group(1)),
            min_rssi=int(gatt.group(2)),
            max_rssi=int(gatt.group(3)),
            direction=_track_direction(gatt.group(4)),
        )
    return None


@_lenient
def parse_flipper_track_data(line: str) -> FlipperTrackData | None:
    match = _TRACK_FLIPPER_RE.search(line)
    if match is None:
        return None
    return FlipperTrackData(index=int(match.group(1)), rssi=int(match.group(2)), proximity=match.group(3))


def parse_track_header(text: str) -> TrackHeader | None:
    if "tracking" not in text.lower():
        return None
    if "tracking device" in text.lower():
        return TrackHeader(is_ap=False, name=_text(_NAME_RE, text), bssid=_mac(_MAC_FIELD_RE, text))
    header = _TRACK_HEADER_RE.search(text)
    if header is None:
        return None
    return TrackHeader(
        is_ap=header.group(1).lower() == "ap",
        name=header.group(2).strip() or None,
        bssid=_mac(_TRACK_BSSID_RE, text),
        channel=_int(_TRACK_CHANNEL_RE, text),
    )


def parse_handshake(text: str) -> Handshake | None:
    if "handshake found" not in text.lower():
        return None
    ap_bssid = _mac(_HANDSHAKE_AP_RE, text)
    if ap_bssid is None:
        return None
    return Handshake(ap_bssid=ap_bssid, pair=_text(_HANDSHAKE_PAIR_RE, text) or "Unknown")


def parse_pcap_path(line: str) -> str | None:
    match = _PCAP_PATH_RE.search(line)
    return match.group(0) if match else None


def parse_wifi_connection(line: str) -> WifiConnection | None:
    if "Got IP:" in line:
        return WifiConnection(connected=True, ip=_text(_GOT_IP_RE, line))
    if _WIFI_CONNECTED_RE.search(line):
        return WifiConnection(connected=True)
    disconnected = _WIFI_DISCONNECTED_RE.search(line)
    if disconnected is not None:
        reason = disconnected.group(1)
        return WifiConnection(connected=False, reason=reason.strip() if reason else None)
    connecting = _text(_WIFI_CONNECTING_RE, line)
    if connecting is not None:
        return WifiConnection(connected=False, ssid=connecting)
    return None


def _parse_bool(value: str | None) -> bool | None:
    if value == "true":
        return True
    if value == "false":
        return False
    return None


def _optional_int(value: str | None) -> int | None:
    try:
        return int(value) if value else None
    except ValueError:
        return None


def parse_wifi_status(text: str) -> WifiStatus | None:
    values: dict[str, str] = {}
    for raw in text.splitlines():
        match = _KEY_VALUE_RE.match(raw.strip())
        if match is not None:
            values[match.group(1)] = match.group(2).strip()
    if "connected" not in values:
        return None
    return WifiStatus(
        connected=_parse_bool(values.get("connected")) or False,
        has_saved_network=_parse_bool(values.get("has_saved_network")) or False,
        connected_ssid=values.get("connected_ssid") or None,
        connected_rssi=_optional_int(values.get("connected_rssi")),
        connected_bssid=(values.get("connected_bssid") or "").upper() or None,
        connected_channel=_optional_int(values.get("connected_channel")),
        saved_ssid=values.get("saved_ssid") or None,
    )


def _coordinate(match: re.Match[str] | None, negative: str) -> float | None:
    if match is None:
        return None
    try:
        value = float(match.group(1)) + float(match.group(2)) / 60.0
    except ValueError:
        return None
    return -value if match.group(3) == negative else value


def parse_gps_position(text: str) -> GpsPosition | None:
    if "GPS Info" not in text and "Lat:" not in text:
        return None
    fix_type = _text(_GPS_FIX_RE, text) or "No Fix"
    satellites = _int(_GPS_SATS_RE, text) or 0
    in_view = _int(_GPS_SATS_RE, text, 2)
    latitude = _coordinate(_GPS_LAT_RE.search(text), "S")
    longitude = _coordinate(_GPS_LON_RE.search(text), "W")
    position = GpsPosition(
        has_fix=fix_type.lower() in _GPS_FIX_TYPES,
        fix_type=fix_type,
        satellites=satellites,
        satellites_in_view=in_view if in_view is not None else satellites,
    )
    if latitude is None or longitude is None:
        return position
    return GpsPosition(
        has_fix=position.has_fix,
        fix_type=fix_type,
        satellites=position.satellites,
        satellites_in_view=position.satellites_in_view,
        latitude=latitude,
        longitude=longitude,
        altitude_m=_float(_GPS_ALT_RE, text),
        speed_kmh=_float(_GPS_SPEED_RE, text),
        direction_deg=_int(_GPS_DIRECTION_RE, text),
        direction_name=_text(_GPS_DIRECTION_RE, text, 2),
        hdop=_float(_GPS_HDOP_RE, text),
    )


@_lenient
def parse_wardrive_stats(text: str) -> WardriveStats | None:
    if "Wardrive" in text and any(marker in text for marker in ("APs:", "Logged:", "GPS Fix:")):
        uptime = _WARDRIVE_UPTIME_RE.search(text)
        return WardriveStats(
            access_points=_int(_WARDRIVE_APS_RE, text) or 0,
            logged_ok=_int(_WARDRIVE_LOGGED_RE, text) or 0,
            log_attempts=_int(_WARDRIVE_LOGGED_RE, text, 2) or 0,
            channel=_int(_WARDRIVE_CHANNEL_RE, text) or 1,
            uptime_s=int(uptime.group(1)) * 60 + int(uptime.group(2)) if uptime else 0,
            gps_fix_status=_text(_WARDRIVE_GPS_FIX_RE, text) or "No Fix",
            gps_satellites=_int(_WARDRIVE_GPS_FIX_RE, text, 2) or 0,
            pending_bytes=_int(_WARDRIVE_PENDING_RE, text) or 0,
            ble_devices=_int(_WARDRIVE_BLE_RE, text) or 0,
        )

    if text.startswith("GPS:") and ("APs:" in text or "BLE:" in text):
        status = _text(_WARDRIVE_GPS_STATUS_RE, text) or "Unknown"
        if status.lower() == "locked":
            status = "3D"
        elif "no" in status.lower():
            status = "No Fix"
        return WardriveStats(
            access_points=_int(_WARDRIVE_APS_RE, text) or 0,
            gps_fix_status=status,
            gps_satellites=_int(_GPS_SATS_RE, text) or 0,
            ble_devices=_int(_WARDRIVE_BLE_RE, text) or 0,
        )

    match = _WARDRIVE_HEARTBEAT_RE.search(text)
    if match is None:
        return None
    return WardriveStats(
        access_points=int(match.group(1)),
        logged_ok=int(match.group(2)),
        log_attempts=int(match.group(3)),
        gps_rejected=int(match.group(4)),
        channel=int(match.group(5)),
        uptime_s=int(match.group(6)) * 60 + int(match.group(7)),
        gps_fix_status=match.group(8).strip(),
        gps_satellites=int(match.group(9)),
        pending_bytes=int(match.group(11)),
    )


def _is_device_info(text: str) -> bool:
    return "Chip Information" in text or (
        "Model:" in text and "IDF Version:" in text and "CPU Cores:" in text
    )


def _enabled_features(text: str) -> frozenset[DeviceFeature]:
    marker = text.find(_ENABLED_FEATURES_MARKER)
    if marker < 0:
        return frozenset()
    tail = text[marker + len(_ENABLED_FEATURES_MARKER):]
    found = set()
    for segment in _ENABLED_FEATURE_SPLIT_RE.split(tail):
        feature = FEATURE_NAMES.get(segment.strip())
        if feature is not None:
            found.add(feature)
    return frozenset(found)


@_lenient
def parse_device_info(text: str) -> DeviceInfo | None:
    """Parse the ``chipinfo`` report; see :func:`device_info_failure_reason` on ``None``."""
    if not _is_device_info(text):
        return None
    model = _text(_MODEL_RE, text)
    if model is None:
        return None

    errors: list[str] = []

    def field(pattern: re.Pattern[str], label: str, default: str) -> str:
        value = _text(pattern, text)
        if value is None:
            errors.append(f"Failed to parse {label}")
            return default
        return value

    revision = field(_REVISION_RE, "Revision", "0.0")
    cores = field(_CORES_RE, "CPU Cores", "1")
    features = field(_FEATURES_RE, "Features", "Unknown")
    free_heap = field(_FREE_HEAP_RE, "Free Heap", "0")
    min_free_heap = field(_MIN_FREE_HEAP_RE, "Min Free Heap", "0")
    idf_version = field(_IDF_VERSION_RE, "IDF Version", "Unknown")

    enabled = _enabled_features(text)
    if not enabled and _ENABLED_FEATURES_MARKER in text:
        errors.append("Enabled Features section found but no features parsed")

    return DeviceInfo(
        model=model,
        revision=revision,
        cores=int(cores),
        features=features,
        free_heap=int(free_heap),
        min_free_heap=int(min_free_heap),
        idf_version=idf_version,
        build_config=_text(_BUILD_CONFIG_RE, text),
        firmware_version=_text(_FIRMWARE_VERSION_RE, text) or _text(_FIRMWARE_RE, text),
        git_commit=_text(_GIT_COMMIT_RE, text),
        enabled_features=enabled,
        parse_errors=tuple(errors),
    )


def device_info_failure_reason(text: str) -> str:
    """Explain why :func:`parse_device_info` rejected *text*."""
    if not _is_device_info(text):
        return "missing 'Chip Information'"
    if "Model:" not in text:
        return "missing 'Model:' field"
    if _MODEL_RE.search(text) is None:
        return f"model pattern did not match (raw starts: {text[:80]!r})"
    return "unknown"


PARSERS: dict[ResponseKind, Callable[[str], object | None]] = {
    ResponseKind.ACCESS_POINT: parse_access_point,
    ResponseKind.STATION: parse_station,
    ResponseKind.BLE_DEVICE: parse_ble_device,
    ResponseKind.FLIPPER_DEVICE: parse_flipper_device,
    ResponseKind.AIRTAG: parse_airtag,
    ResponseKind.GATT_DEVICE: parse_gatt_device,
    ResponseKind.GATT_SERVICE: parse_gatt_service,
    ResponseKind.NFC_TAG: parse_nfc_tag,
    ResponseKind.SD_ENTRY: parse_sd_entry,
    ResponseKind.SD_RESULT: parse_sd_result,
    ResponseKind.AERIAL_DEVICE: parse_aerial_device,
    ResponseKind.PORTAL_CREDENTIALS: parse_portal_credentials,
    ResponseKind.IR_REMOTE: parse_ir_remote,
    ResponseKind.IR_BUTTON: parse_ir_button,
    ResponseKind.IR_LEARNED: parse_ir_learned,
    ResponseKind.IR_LEARN_SAVED: parse_ir_learn_saved,
    ResponseKind.IR_LEARN_STATUS: parse_ir_learn_status,
    ResponseKind.IR_DAZZLER: parse_ir_dazzler,
    ResponseKind.ERROR: parse_error,
    ResponseKind.SUCCESS: parse_success,
    ResponseKind.DEVICE_INFO: parse_device_info,
    ResponseKind.TRACK_DATA: parse_track_data,
    ResponseKind.FLIPPER_TRACK_DATA: parse_flipper_track_data,
    ResponseKind.TRACK_HEADER: parse_track_header,
    ResponseKind.HANDSHAKE: parse_handshake,
    ResponseKind.PCAP_PATH: parse_pcap_path,
    ResponseKind.WIFI_CONNECTION: parse_wifi_connection,
    ResponseKind.WIFI_STATUS: parse_wifi_status,
    ResponseKind.GPS_POSITION: parse_gps_position,
    ResponseKind.WARDRIVE_STATS: parse_wardrive_stats,
    ResponseKind.SETTING_VALUE: parse_setting_value,
}
