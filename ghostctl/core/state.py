"""Typed, deduplicated device state built from classified output records."""

from __future__ import annotations

import dataclasses
import logging
import threading
from collections.abc import Callable, Hashable, Mapping
from typing import Any, TypeVar

from ghostctl.core.classifier import ResponseKind
from ghostctl.core.model import (
    AccessPoint,
    AerialDevice,
    AirTag,
    BleDevice,
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
    PortalCredentials,
    SdEntry,
    SdOperationResult,
    SettingValue,
    Station,
    TrackData,
    TrackHeader,
    WardriveStats,
    WifiConnection,
    WifiStatus,
)
from ghostctl.core.observable import Observable
from ghostctl.core.parsers import PARSERS, device_info_failure_reason, parse_device_info

LOGGER = logging.getLogger(__name__)

R = TypeVar("R")

_IR_LEARN_MESSAGES = {
    IrLearnStatus.STARTED: "IR learn started",
    IrLearnStatus.WAITING: "Waiting for IR signal...",
    IrLearnStatus.TIMEOUT: "IR learn timed out, no signal received",
}
_SUPPRESSED_PREFIXES = (">", "$")


def _by_index(record: Any) -> int:
    return record.index


def _by_signal(record: Any) -> int:
    return -record.rssi


class StateStore:
    """Applies one record at a time to the collection its kind owns.

    Every mutation runs under a single re-entrant lock and replaces the exposed
    tuple wholesale, so readers of an :class:`Observable` never see a collection
    mid-update. Re-scannable populations keep a keyed cache and recompute their
    presentation order; one-shot facts are append-only logs.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()

        self.access_points: Observable[tuple[AccessPoint, ...]] = Observable(())
        self.stations: Observable[tuple[Station, ...]] = Observable(())
        self.ble_devices: Observable[tuple[BleDevice, ...]] = Observable(())
        self.flipper_devices: Observable[tuple[FlipperDevice, ...]] = Observable(())
        self.airtags: Observable[tuple[AirTag, ...]] = Observable(())
        self.gatt_devices: Observable[tuple[GattDevice, ...]] = Observable(())
        self.gatt_services: Observable[tuple[GattService, ...]] = Observable(())
        self.aerial_devices: Observable[tuple[AerialDevice, ...]] = Observable(())
        self.nfc_tags: Observable[tuple[NfcTag, ...]] = Observable(())
        self.sd_entries: Observable[tuple[SdEntry, ...]] = Observable(())
        self.ir_remotes: Observable[tuple[IrRemote, ...]] = Observable(())
        self.ir_buttons: Observable[tuple[IrButton, ...]] = Observable(())
        self.portal_credentials: Observable[tuple[PortalCredentials, ...]] = Observable(())
        self.handshakes: Observable[tuple[Handshake, ...]] = Observable(())

        self.status_message: Observable[str | None] = Observable(None)
        self.sd_loading: Observable[bool] = Observable(False)
        self.sd_result: Observable[SdOperationResult | None] = Observable(None)
        self.settings: Observable[Mapping[str, str]] = Observable({})
        self.device_info: Observable[DeviceInfo | None] = Observable(None)
        self.chip_info_raw: Observable[str | None] = Observable(None)
        self.chip_info_parse_status: Observable[str | None] = Observable(None)
        self.track_data: Observable[TrackData | None] = Observable(None)
        self.flipper_track_data: Observable[FlipperTrackData | None] = Observable(None)
        self.track_header: Observable[TrackHeader | None] = Observable(None)
        self.pcap_path: Observable[str | None] = Observable(None)
        self.wifi_connection: Observable[WifiConnection | None] = Observable(None)
        self.wifi_status: Observable[WifiStatus | None] = Observable(None)
        self.gps_position: Observable[GpsPosition | None] = Observable(None)
        self.wardrive_stats: Observable[WardriveStats | None] = Observable(None)
        self.is_wardriving: Observable[bool] = Observable(False)
        self.is_ble_wardriving: Observable[bool] = Observable(False)
        self.is_gps_tracking: Observable[bool] = Observable(False)
        self.ir_learned_signal: Observable[IrLearnedSignal | None] = Observable(None)
        self.ir_learn_status: Observable[IrLearnStatus | None] = Observable(None)
        self.ir_learn_saved_path: Observable[str | None] = Observable(None)
        self.ir_dazzler_state: Observable[str | None] = Observable(None)

        self._ap_cache: dict[int, AccessPoint] = {}
        self._station_cache: dict[str, Station] = {}
        self._ble_cache: dict[str, BleDevice] = {}
        self._flipper_cache: dict[str, FlipperDevice] = {}
        self._airtag_cache: dict[str, AirTag] = {}
        self._gatt_cache: dict[str, GattDevice] = {}
        self._aerial_cache: dict[str, AerialDevice] = {}
        self._station_counter = 0
        self._pending_ssid: str | None = None

        self._handlers: dict[ResponseKind, Callable[[Any, str], None]] = {
            ResponseKind.ACCESS_POINT: self._on_access_point,
            ResponseKind.STATION: self._on_station,
            ResponseKind.BLE_DEVICE: self._on_ble_device,
            ResponseKind.FLIPPER_DEVICE: self._on_flipper_device,
            ResponseKind.AIRTAG: self._on_airtag,
            ResponseKind.GATT_DEVICE: self._on_gatt_device,
            ResponseKind.GATT_SERVICE: self._on_gatt_service,
            ResponseKind.AERIAL_DEVICE: self._on_aerial_device,
            ResponseKind.NFC_TAG: self._on_nfc_tag,
            ResponseKind.SD_ENTRY: self._on_sd_entry,
            ResponseKind.SD_RESULT: self._on_sd_result,
            ResponseKind.PORTAL_CREDENTIALS: self._on_portal_credentials,
            ResponseKind.IR_REMOTE: self._on_ir_remote,
            ResponseKind.IR_BUTTON: self._on_ir_button,
            ResponseKind.IR_LEARNED: self._on_ir_learned,
            ResponseKind.IR_LEARN_SAVED: self._on_ir_learn_saved,
            ResponseKind.IR_LEARN_STATUS: self._on_ir_learn_status,
            ResponseKind.IR_DAZZLER: self._on_ir_dazzler,
            ResponseKind.ERROR: self._on_error,
            ResponseKind.SUCCESS: self._on_success,
            ResponseKind.SETTING_VALUE: self._on_setting_value,
            ResponseKind.TRACK_DATA: self._on_track_data,
            ResponseKind.FLIPPER_TRACK_DATA: self._on_flipper_track_data,
            ResponseKind.TRACK_HEADER: self._on_track_header,
            ResponseKind.HANDSHAKE: self._on_handshake,
            ResponseKind.PCAP_PATH: self._on_pcap_path,
            ResponseKind.WIFI_CONNECTION: self._on_wifi_connection,
            ResponseKind.WIFI_STATUS: self._on_wifi_status,
            ResponseKind.GPS_POSITION: self._on_gps_position,
            ResponseKind.WARDRIVE_STATS: self._on_wardrive_stats,
        }

    def _observables(self) -> tuple[Observable[Any], ...]:
        return tuple(value for value in vars(self).values() if isinstance(value, Observable))

    def apply(self, kind: ResponseKind, line: str) -> None:
        """Parse *line* as *kind* and fold the record into state.

        Lines that fail structural parsing are logged and dropped.
        """
        with self._lock:
            if kind is ResponseKind.DEVICE_INFO:
                self._on_device_info(line)
                return
            if kind is ResponseKind.IDENTIFY:
                self.status_message.set("Device identified: GhostESP")
                return
            handler = self._handlers.get(kind)
            if handler is None:
                self._on_unclassified(line)
                return
            record = PARSERS[kind](line)
            if record is None:
                LOGGER.debug("Dropped unparseable %s record: %r", kind.value, line)
                return
            handler(record, line)

    def _on_unclassified(self, line: str) -> None:
        trimmed = line.strip()
        if trimmed and not trimmed.startswith(_SUPPRESSED_PREFIXES):
            self.status_message.set(trimmed)

    @staticmethod
    def _put(
        cache: dict[Hashable, R],
        observable: Observable[tuple[R, ...]],
        key: Hashable,
        record: R,
        order: Callable[[R], Any],
    ) -> None:
        cache[key] = record
        observable.set(tuple(sorted(cache.values(), key=order)))

    @staticmethod
    def _append_unique(observable: Observable[tuple[R, ...]], record: R, key: Callable[[R], Hashable]) -> None:
        current = observable.value
        if any(key(item) == key(record) for item in current):
            return
        observable.set(current + (record,))

    def _on_access_point(self, ap: AccessPoint, line: str) -> None:
        self._put(self._ap_cache, self.access_points, ap.index, ap, _by_index)

    def _on_station(self, station: Station, line: str) -> None:
        if station.index is None:
            known = self._station_cache.get(station.mac)
            if known is not None and known.index is not None:
                index = known.index
            else:
                self._station_counter += 1
                index = self._station_counter
            station = dataclasses.replace(station, index=index)
        self._put(self._station_cache, self.stations, station.mac, station, _by_index)
        self.status_message.set(f"Station: {station.mac}")

    def _on_ble_device(self, device: BleDevice, line: str) -> None:
        self._put(self._ble_cache, self.ble_devices, device.unique_id, device, _by_signal)

    def _on_flipper_device(self, device: FlipperDevice, line: str) -> None:
        self._put(self._flipper_cache, self.flipper_devices, device.mac, device, _by_signal)
        self.status_message.set(f"Flipper found: {device.name or device.mac}")

    def _on_airtag(self, device: AirTag, line: str) -> None:
        self._put(self._airtag_cache, self.airtags, device.mac, device, _by_signal)
        self.status_message.set(f"AirTag found: {device.mac}")

    def _on_gatt_device(self, device: GattDevice, line: str) -> None:
        self._put(self._gatt_cache, self.gatt_devices, device.mac, device, _by_signal)
        self.status_message.set(f"GATT device found: {device.name or device.mac}")

    def _on_gatt_service(self, service: GattService, line: str) -> None:
        self._append_unique(self.gatt_services, service, lambda s: (s.uuid, s.start_handle))

    def _on_aerial_device(self, device: AerialDevice, line: str) -> None:
        self._put(self._aerial_cache, self.aerial_devices, device.mac, device, _by_index)

    def _on_nfc_tag(self, tag: NfcTag, line: str) -> None:
        self._append_unique(self.nfc_tags, tag, lambda t: t.uid)

    def _on_sd_entry(self, entry: SdEntry, line: str) -> None:
        self.sd_entries.update(lambda current: current + (entry,))

    def _on_sd_result(self, result: SdOperationResult, line: str) -> None:
        self.sd_result.set(result)
        if result.operation in ("listed", "tree"):
            self.sd_loading.set(False)
        elif not result.success:
            self.sd_loading.set(False)
            self.status_message.set(f"SD Error: {line.strip().removeprefix('SD:ERR:')}")

    def _on_portal_credentials(self, creds: PortalCredentials, line: str) -> None:
        self.portal_credentials.update(lambda current: current + (creds,))
        self.status_message.set(f"Captured: {creds.username}")

    def _on_ir_remote(self, remote: IrRemote, line: str) -> None:
        self._append_unique(self.ir_remotes, remote, lambda r: r.index)

    def _on_ir_button(self, button: IrButton, line: str) -> None:
        self._append_unique(self.ir_buttons, button, lambda b: b.index)

    def _on_ir_learned(self, signal: IrLearnedSignal, line: str) -> None:
        self.ir_learned_signal.set(signal)
        if signal.protocol == "RAW":
            self.status_message.set(f"IR Learned: RAW signal ({signal.raw_samples} samples)")
        else:
            self.status_message.set(f"IR Learned: {signal.protocol} A:{signal.address} C:{signal.command}")

    def _on_ir_learn_saved(self, path: str, line: str) -> None:
        self.ir_learn_saved_path.set(path)
        self.status_message.set(f"IR signal saved to: {path}")

    def _on_ir_learn_status(self, status: IrLearnStatus, line: str) -> None:
        self.ir_learn_status.set(status)
        self.status_message.set(_IR_LEARN_MESSAGES[status])

    def _on_ir_dazzler(self, state: str, line: str) -> None:
        self.ir_dazzler_state.set(state)
        self.status_message.set(f"IR Dazzler: {state}")

    def _on_error(self, message: str, line: str) -> None:
        self.status_message.set(f"Error: {message}")

    def _on_success(self, message: str, line: str) -> None:
        self.status_message.set(message)

    def _on_setting_value(self, setting: SettingValue, line: str) -> None:
        self.settings.update(lambda current: {**current, setting.key: setting.value})

    def _on_device_info(self, text: str) -> None:
        self.chip_info_raw.set(text)
        info = parse_device_info(text)
        if info is None:
            reason = device_info_failure_reason(text)
            LOGGER.debug("Chip info parse failed: %s", reason)
            self.chip_info_parse_status.set(f"FAILED: {reason}")
            return
        self.device_info.set(info)
        self.chip_info_parse_status.set(f"OK: model={info.model}, features={len(info.enabled_features)}")
        self.status_message.set(f"Device: {info.model}")

    def _on_track_data(self, data: TrackData, line: str) -> None:
        self.track_data.set(data)

    def _on_flipper_track_data(self, data: FlipperTrackData, line: str) -> None:
        self.flipper_track_data.set(data)

    def _on_track_header(self, header: TrackHeader, line: str) -> None:
        self.track_header.set(header)

    def _on_handshake(self, handshake: Handshake, line: str) -> None:
        self.handshakes.update(lambda current: current + (handshake,))
        self.status_message.set(f"Handshake captured: {handshake.pair}")

    def _on_pcap_path(self, path: str, line: str) -> None:
        self.pcap_path.set(path)
        self.status_message.set(f"PCAP saved: {path}")

    def _on_wifi_connection(self, connection: WifiConnection, line: str) -> None:
        if connection.connected and self._pending_ssid is not None:
            connection = dataclasses.replace(connection, ssid=self._pending_ssid)
        elif not connection.connected and connection.ssid is None:
            self._pending_ssid = None
        self.wifi_connection.set(connection)
        if connection.connected:
            self.status_message.set(f"WiFi Connected: {connection.ssid or connection.ip or 'Unknown'}")
        elif connection.reason is not None:
            self.status_message.set(f"WiFi Disconnected: {connection.reason}")
        elif connection.ssid is not None:
            self.status_message.set(f"Connecting to {connection.ssid}...")
        else:
            self.status_message.set(line.strip())

    def _on_wifi_status(self, status: WifiStatus, line: str) -> None:
        self.wifi_status.set(status)
        self.wifi_connection.set(
            WifiConnection(connected=status.connected, ssid=status.connected_ssid or status.saved_ssid)
        )
        if status.connected:
            self.status_message.set(f"WiFi Connected: {status.connected_ssid} (RSSI: {status.connected_rssi})")
        elif status.has_saved_network:
            self.status_message.set(f"WiFi Disconnected (Saved: {status.saved_ssid})")
        else:
            self.status_message.set("WiFi Disconnected (No saved network)")

    def _on_gps_position(self, position: GpsPosition, line: str) -> None:
        self.gps_position.set(position)
        if position.has_fix:
            self.status_message.set(f"GPS Fix: {position.fix_type} ({position.satellites} sats)")

    def _on_wardrive_stats(self, stats: WardriveStats, line: str) -> None:
        self.wardrive_stats.set(stats)

    def set_status(self, message: str | None) -> None:
        self.status_message.set(message)

    def set_pending_ssid(self, ssid: str | None) -> None:
        """Remember the SSID of an outgoing connect; the firmware does not echo it on success."""
        with self._lock:
            self._pending_ssid = ssid

    @property
    def pending_ssid(self) -> str | None:
        return self._pending_ssid

    def set_sd_loading(self, loading: bool) -> None:
        self.sd_loading.set(loading)

    def set_wardriving(self, active: bool, *, ble: bool = False) -> None:
        with self._lock:
            (self.is_ble_wardriving if ble else self.is_wardriving).set(active)
            if active:
                self.wardrive_stats.set(None)

    def set_gps_tracking(self, active: bool) -> None:
        self.is_gps_tracking.set(active)

    def clear_access_points(self) -> None:
        with self._lock:
            self._ap_cache.clear()
            self.access_points.set(())

    def clear_stations(self) -> None:
        with self._lock:
            self._station_cache.clear()
            self._station_counter = 0
            self.stations.set(())

    def clear_ble_devices(self) -> None:
        with self._lock:
            self._ble_cache.clear()
            self.ble_devices.set(())

    def clear_flipper_devices(self) -> None:
        with self._lock:
            self._flipper_cache.clear()
            self.flipper_devices.set(())

    def clear_airtags(self) -> None:
        with self._lock:
            self._airtag_cache.clear()
            self.airtags.set(())

    def clear_gatt_devices(self) -> None:
        with self._lock:
            self._gatt_cache.clear()
            self.gatt_devices.set(())

    def clear_gatt_services(self) -> None:
        self.gatt_services.set(())

    def clear_aerial_devices(self) -> None:
        with self._lock:
            self._aerial_cache.clear()
            self.aerial_devices.set(())

    def clear_nfc_tags(self) -> None:
        self.nfc_tags.set(())

    def clear_sd_entries(self) -> None:
        self.sd_entries.set(())

    def clear_ir_remotes(self) -> None:
        self.ir_remotes.set(())

    def clear_ir_buttons(self) -> None:
        self.ir_buttons.set(())

    def clear_ir_learn(self) -> None:
        with self._lock:
            self.ir_learned_signal.set(None)
            self.ir_learn_status.set(None)
            self.ir_learn_saved_path.set(None)

    def clear_portal_credentials(self) -> None:
        self.portal_credentials.set(())

    def clear_handshakes(self) -> None:
        with self._lock:
            self.handshakes.set(())
            self.pcap_path.set(None)

    def clear_track_data(self) -> None:
        with self._lock:
            self.track_data.set(None)
            self.track_header.set(None)

    def clear_flipper_track_data(self) -> None:
        self.flipper_track_data.set(None)

    def clear_wardrive_stats(self) -> None:
        self.wardrive_stats.set(None)

    def reset(self) -> None:
        """Return every collection and transient value to its initial form."""
        with self._lock:
            for cache in (
                self._ap_cache,
                self._station_cache,
                self._ble_cache,
                self._flipper_cache,
                self._airtag_cache,
                self._gatt_cache,
                self._aerial_cache,
            ):
                cache.clear()
            self._station_counter = 0
            self._pending_ssid = None
            for observable in self._observables():
                observable.reset()
