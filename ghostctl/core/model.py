"""Core data models used across parsers, state store, engine, and CLI."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class BleDeviceType(Enum):
    FLIPPER = "flipper"
    AIRTAG = "airtag"
    IPHONE = "iphone"
    SAMSUNG = "samsung"
    GOOGLE = "google"
    GENERIC = "generic"


class AerialDeviceType(Enum):
    DRONE = "DRONE"
    REMOTE = "REMOTE"
    BEACON = "BEACON"
    WIRED = "WIRED"
    UNKNOWN = "UNKNOWN"


class NfcTagType(Enum):
    NTAG213 = "NTAG213"
    NTAG215 = "NTAG215"
    NTAG216 = "NTAG216"
    MIFARE_CLASSIC = "MIFARE_CLASSIC"
    DESFIRE = "DESFIRE"
    UNKNOWN = "UNKNOWN"


class IrLearnStatus(Enum):
    STARTED = "started"
    WAITING = "waiting"
    TIMEOUT = "timeout"


class TrackDirection(Enum):
    CLOSER = "closer"
    FARTHER = "farther"
    STABLE = "stable"


class DeviceFeature(Enum):
    DISPLAY = "Display"
    TOUCHSCREEN = "Touchscreen"
    STATUS_DISPLAY = "Status Display"
    NFC = "NFC"
    BADUSB = "BadUSB"
    INFRARED_TX = "Infrared TX"
    INFRARED_RX = "Infrared RX"
    GPS = "GPS"
    ETHERNET = "Ethernet"
    BATTERY = "Battery"
    BATTERY_ADC = "Battery ADC"
    FUEL_GAUGE = "Fuel Gauge"
    RTC_CLOCK = "RTC Clock"
    COMPASS = "Compass"
    ACCELEROMETER = "Accelerometer"
    JOYSTICK = "Joystick"
    CARDPUTER = "Cardputer"
    TDECK = "T-Deck"
    ROTARY_ENCODER = "Rotary Encoder"
    USB_KEYBOARD = "USB Keyboard"
    GHOST_BOARD = "Ghost Board"
    S3TWATCH = "S3TWatch"
    SD_CARD_SPI = "SD Card (SPI)"
    SD_CARD_MMC = "SD Card (MMC)"


@dataclass(frozen=True)
class AccessPoint:
    index: int
    ssid: str
    bssid: str
    rssi: int
    channel: int
    security: str = "Unknown"
    vendor: str | None = None
    band: str | None = None
    pmf: str | None = None

    @property
    def is_hidden(self) -> bool:
        return not self.ssid or self.ssid == "(Hidden)"


@dataclass(frozen=True)
class Station:
    mac: str
    index: int | None = None
    rssi: int = -100
    vendor: str | None = None
    ap_ssid: str | None = None
    ap_bssid: str | None = None
    ap_vendor: str | None = None


@dataclass(frozen=True)
class BleDevice:
    unique_id: str
    rssi: int
    name: str | None = None
    mac: str | None = None
    device_type: BleDeviceType = BleDeviceType.GENERIC


@dataclass(frozen=True)
class FlipperDevice:
    index: int
    mac: str
    rssi: int
    name: str | None = None
    flipper_type: str | None = None


@dataclass(frozen=True)
class AirTag:
    index: int
    mac: str
    rssi: int
    total: int = 1
    payload: str | None = None


@dataclass(frozen=True)
class GattDevice:
    index: int
    mac: str
    rssi: int
    name: str | None = None
    device_type: str | None = None


@dataclass(frozen=True)
class GattService:
    uuid: str
    start_handle: int
    end_handle: int
    name: str | None = None


@dataclass(frozen=True)
class AerialDevice:
    index: int
    device_id: str
    mac: str
    device_type: AerialDeviceType
    rssi: int
    vendor: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    altitude_m: float | None = None
    speed_mps: float | None = None
    heading_deg: float | None = None
    status: str | None = None
    operator_latitude: float | None = None
    operator_longitude: float | None = None
    operator_id: str | None = None
    description: str | None = None
    last_seen_s: int | None = None


@dataclass(frozen=True)
class NfcTag:
    uid: str
    tag_type: NfcTagType = NfcTagType.UNKNOWN


@dataclass(frozen=True)
class SdEntry:
    index: int
    path: str
    is_dir: bool
    size: int = 0


@dataclass(frozen=True)
class SdOperationResult:
    success: bool
    operation: str
    details: str | None = None
    path: str | None = None
    byte_count: int | None = None


@dataclass(frozen=True)
class IrRemote:
    index: int
    filename: str


@dataclass(frozen=True)
class IrButton:
    index: int
    name: str
    protocol: str | None = None


@dataclass(frozen=True)
class IrLearnedSignal:
    protocol: str
    address: str | None = None
    command: str | None = None
    raw_samples: int | None = None


@dataclass(frozen=True)
class PortalCredentials:
    username: str
    password: str


@dataclass(frozen=True)
class SettingValue:
    key: str
    value: str


@dataclass(frozen=True)
class TrackData:
    rssi: int
    min_rssi: int
    max_rssi: int
    direction: TrackDirection = TrackDirection.STABLE


@dataclass(frozen=True)
class FlipperTrackData:
    index: int
    rssi: int
    proximity: str | None = None


@dataclass(frozen=True)
class TrackHeader:
    is_ap: bool
    name: str | None = None
    bssid: str | None = None
    channel: int | None = None


@dataclass(frozen=True)
class Handshake:
    ap_bssid: str | None
    pair: str = "Unknown"


@dataclass(frozen=True)
class WifiConnection:
    connected: bool
    ssid: str | None = None
    ip: str | None = None
    reason: str | None = None


@dataclass(frozen=True)
class WifiStatus:
    connected: bool
    has_saved_network: bool = False
    connected_ssid: str | None = None
    connected_rssi: int | None = None
    connected_bssid: str | None = None
    connected_channel: int | None = None
    saved_ssid: str | None = None


@dataclass(frozen=True)
class GpsPosition:
    has_fix: bool
    fix_type: str
    satellites: int = 0
    satellites_in_view: int = 0
    latitude: float = 0.0
    longitude: float = 0.0
    altitude_m: float | None = None
    speed_kmh: float | None = None
    direction_deg: int | None = None
    direction_name: str | None = None
    hdop: float | None = None


@dataclass(frozen=True)
class WardriveStats:
    access_points: int = 0
    logged_ok: int = 0
    log_attempts: int = 0
    gps_rejected: int = 0
    channel: int = 0
    uptime_s: int = 0
    gps_fix_status: str = "No Fix"
    gps_satellites: int = 0
    pending_bytes: int = 0
    ble_devices: int = 0


@dataclass(frozen=True)
class DeviceInfo:
    model: str
    revision: str = "0.0"
    cores: int = 1
    features: str = "Unknown"
    free_heap: int = 0
    min_free_heap: int = 0
    idf_version: str = "Unknown"
    build_config: str | None = None
    firmware_version: str | None = None
    git_commit: str | None = None
    enabled_features: frozenset[DeviceFeature] = frozenset()
    parse_errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class TransferIdle:
    pass


@dataclass(frozen=True)
class Downloading:
    file_name: str
    transferred: int = 0
    total: int = 0
    percent: int = 0


@dataclass(frozen=True)
class Uploading:
    file_name: str
    transferred: int = 0
    total: int = 0
    percent: int = 0


@dataclass(frozen=True)
class TransferComplete:
    file_name: str
    success: bool
    error: str | None = None


@dataclass(frozen=True)
class TransferCancelled:
    file_name: str = ""


TransferProgress = TransferIdle | Downloading | Uploading | TransferComplete | TransferCancelled


@dataclass(frozen=True)
class EngineSettings:
    port: str | None = None
    baud_rate: int = 115200
    stop_settle_s: float = 0.2
    gatt_select_settle_s: float = 0.3
    poll_interval_s: float = 0.05
    size_timeout_s: float = 10.0
    chunk_timeout_s: float = 30.0
    chunk_size: int = 4096
    upload_chunk_size: int = 512
    complete_display_s: float = 2.0
    group_flush_idle_s: float = 0.5
