"""Service layer used by CLI and future UI frontends."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from ghostctl.core import commands
from ghostctl.core.classifier import classify
from ghostctl.core.commands import BeaconSpamMode, BleScanMode, BleSpamMode, Command, ListMode, SelectTarget
from ghostctl.core.correlator import Correlator, contains_any
from ghostctl.core.model import ConnectionState, DeviceInfo, EngineSettings, TransferProgress
from ghostctl.core.observable import Observable
from ghostctl.core.parsers import parse_sd_size
from ghostctl.core.sequencer import CommandSequencer
from ghostctl.core.state import StateStore
from ghostctl.core.streams import Subscription
from ghostctl.core.transfer import CancelToken, FileTransferOrchestrator
from ghostctl.transports.base import Transport

LOGGER = logging.getLogger(__name__)

_WAIT_POLL_S = 0.05


class GhostService:
    """Protocol engine facade: background state worker plus one coroutine per device operation.

    Command methods return ``True`` once the command bytes were handed to the
    transport. Device replies arrive asynchronously and land in :attr:`store`.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        settings: EngineSettings | None = None,
        store: StateStore | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.transport = transport
        self.store = store or StateStore()
        self.sequencer = CommandSequencer(transport, stop_settle_s=self.settings.stop_settle_s, sleep=sleep)
        self.correlator = Correlator(transport, self.sequencer, poll_interval_s=self.settings.poll_interval_s)
        self.transfers = FileTransferOrchestrator(self.correlator, self.settings, sleep=sleep)
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def transfer_progress(self) -> Observable[TransferProgress]:
        return self.transfers.progress

    @property
    def connection_state(self) -> ConnectionState:
        return self.transport.connection_state.value

    @property
    def last_command(self) -> Command | None:
        return self.sequencer.last_command

    # lifecycle

    def start(self) -> None:
        """Start the line worker and the connection watcher on the running loop."""
        if self._tasks:
            return
        # subscribe synchronously so nothing published after start() is missed
        lines = self.transport.subscribe_lines()
        states = self.transport.connection_state.subscribe()
        self._tasks = [
            asyncio.create_task(self._consume_lines(lines), name="ghostctl-lines"),
            asyncio.create_task(self._watch_connection(states), name="ghostctl-connection"),
        ]

    async def destroy(self) -> None:
        """Cancel background work and release the transport."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        await self.transfers.close()
        await self.transport.close()

    async def __aenter__(self) -> GhostService:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.destroy()

    async def _consume_lines(self, lines: Subscription[str]) -> None:
        with lines:
            async for line in lines:
                try:
                    self.store.apply(classify(line), line)
                except Exception:
                    LOGGER.exception("Failed to apply device record %r", line[:80])

    async def _watch_connection(self, states: Subscription[ConnectionState]) -> None:
        was_connected = False
        with states:
            async for state in states:
                if state is ConnectionState.CONNECTED:
                    was_connected = True
                elif state in (ConnectionState.DISCONNECTED, ConnectionState.ERROR) and was_connected:
                    LOGGER.info("Connection %s; clearing device state", state.value)
                    self.store.reset()
                    was_connected = False

    async def wait_until(self, predicate: Callable[[], bool], timeout_s: float) -> bool:
        """Poll *predicate* until it holds or *timeout_s* elapses."""
        deadline = time.monotonic() + timeout_s
        while not predicate():
            if time.monotonic() >= deadline:
                return False
            await asyncio.sleep(_WAIT_POLL_S)
        return True

    async def _send(self, command: Command) -> bool:
        return await self.sequencer.send(command)

    # core

    async def get_help(self) -> bool:
        return await self._send(commands.help_())

    async def get_chip_info(self) -> bool:
        return await self._send(commands.chip_info())

    async def fetch_device_info(self, timeout_s: float = 5.0) -> DeviceInfo | None:
        """Request ``chipinfo`` and wait for the parsed report."""
        self.store.device_info.set(None)
        self.store.chip_info_parse_status.set(None)
        if not await self.get_chip_info():
            return None
        await self.wait_until(
            lambda: self.store.device_info.value is not None
            or self.store.chip_info_parse_status.value is not None,
            timeout_s,
        )
        return self.store.device_info.value

    async def stop_all(self) -> bool:
        return await self._send(commands.stop())

    async def reboot(self) -> bool:
        return await self._send(commands.reboot())

    async def identify(self) -> bool:
        return await self._send(commands.identify())

    async def send_raw(self, text: str) -> bool:
        return await self.sequencer.send_raw(text)

    async def collect_output(self, text: str, duration_s: float) -> list[str]:
        """Send raw *text* and return every console line seen for *duration_s*."""
        collected: list[str] = []
        with self.transport.subscribe_output() as output:
            if not await self.send_raw(text):
                return collected
            deadline = time.monotonic() + duration_s
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                try:
                    collected.append(await asyncio.wait_for(output.get(), remaining))
                except asyncio.TimeoutError:
                    break
        return collected

    # wifi scanning and selection

    async def scan_wifi(self, seconds: int | None = None, *, live: bool = False) -> bool:
        self.store.clear_access_points()
        return await self._send(commands.scan_ap(seconds, live=live))

    async def stop_wifi_scan(self) -> bool:
        return await self._send(commands.scan_ap_stop())

    async def scan_stations(self) -> bool:
        self.store.clear_stations()
        return await self._send(commands.scan_stations())

    async def scan_all(self, seconds: int | None = None) -> bool:
        self.store.clear_access_points()
        self.store.clear_stations()
        return await self._send(commands.scan_all(seconds))

    async def stop_scan(self) -> bool:
        return await self._send(commands.stop_scan())

    async def list_access_points(self) -> bool:
        return await self._send(commands.list_results(ListMode.ACCESS_POINTS))

    async def list_stations(self) -> bool:
        return await self._send(commands.list_results(ListMode.STATIONS))

    async def list_airtag_results(self) -> bool:
        return await self._send(commands.list_results(ListMode.AIRTAGS))

    async def select_access_point(self, indices: str | int) -> bool:
        return await self._send(commands.select(SelectTarget.ACCESS_POINT, indices))

    async def select_station(self, indices: str | int) -> bool:
        return await self._send(commands.select(SelectTarget.STATION, indices))

    async def select_airtag(self, index: str | int) -> bool:
        return await self._send(commands.select(SelectTarget.AIRTAG, index))

    async def select_flipper(self, index: str | int) -> bool:
        return await self._send(commands.select(SelectTarget.FLIPPER, index))

    async def select_gatt(self, index: str | int) -> bool:
        if not await self._send(commands.select(SelectTarget.GATT, index)):
            return False
        await self.sequencer.settle(self.settings.gatt_select_settle_s)
        return True

    # wifi connection and tracking

    async def connect_wifi(self, ssid: str, password: str | None = None) -> bool:
        self.store.set_pending_ssid(ssid)
        return await self._send(commands.connect(ssid, password))

    async def disconnect_wifi(self) -> bool:
        return await self._send(commands.disconnect())

    async def get_wifi_status(self) -> bool:
        return await self._send(commands.wifi_status())

    async def track_access_point(self) -> bool:
        self.store.clear_track_data()
        return await self._send(commands.track_ap())

    async def track_station(self) -> bool:
        self.store.clear_track_data()
        return await self._send(commands.track_station())

    # wifi attacks and capture

    async def start_deauth(self) -> bool:
        return await self._send(commands.attack_deauth())

    async def start_eapol_attack(self) -> bool:
        return await self._send(commands.attack_eapol())

    async def stop_deauth(self) -> bool:
        return await self._send(commands.stop_deauth())

    async def beacon_spam(self, mode: BeaconSpamMode | str = BeaconSpamMode.RANDOM) -> bool:
        return await self._send(commands.beacon_spam(mode))

    async def stop_spam(self) -> bool:
        return await self._send(commands.stop_spam())

    async def start_karma(self, ssids: list[str] | None = None) -> bool:
        return await self._send(commands.karma_start(ssids))

    async def stop_karma(self) -> bool:
        return await self._send(commands.karma_stop())

    async def capture_handshakes(self, channel: int | None = None) -> bool:
        self.store.clear_handshakes()
        return await self._send(commands.capture_eapol(channel))

    # evil portal

    async def start_portal(self, path: str, ssid: str, password: str | None = None) -> bool:
        self.store.clear_portal_credentials()
        return await self._send(commands.start_portal(path, ssid, password))

    async def stop_portal(self) -> bool:
        return await self._send(commands.stop_portal())

    async def list_portals(self) -> bool:
        return await self._send(commands.list_portals())

    # bluetooth

    async def scan_ble(self, mode: BleScanMode = BleScanMode.GENERIC) -> bool:
        if mode is BleScanMode.FLIPPER:
            self.store.clear_flipper_devices()
        elif mode is BleScanMode.AIRTAG:
            self.store.clear_airtags()
        elif mode is BleScanMode.GATT:
            self.store.clear_gatt_devices()
        else:
            self.store.clear_ble_devices()
        return await self._send(commands.ble_scan(mode))

    async def stop_ble_scan(self) -> bool:
        return await self._send(commands.ble_scan_stop())

    async def ble_spam(self, mode: BleSpamMode = BleSpamMode.ALL) -> bool:
        return await self._send(commands.ble_spam(mode))

    async def stop_ble_spam(self) -> bool:
        return await self._send(commands.ble_spam_stop())

    async def list_flippers(self) -> bool:
        return await self._send(commands.list_flippers())

    async def list_airtags(self) -> bool:
        return await self._send(commands.list_airtags())

    async def list_gatt_devices(self) -> bool:
        return await self._send(commands.list_gatt())

    async def enumerate_gatt(self, index: str | int | None = None) -> bool:
        self.store.clear_gatt_services()
        if index is not None and not await self.select_gatt(index):
            return False
        return await self._send(commands.enum_gatt())

    async def track_gatt(self, index: str | int | None = None) -> bool:
        self.store.clear_track_data()
        if index is not None and not await self.select_gatt(index):
            return False
        return await self._send(commands.track_gatt())

    async def track_flipper(self, index: int) -> bool:
        self.store.clear_flipper_track_data()
        return await self._send(commands.track_flipper(index))

    async def spoof_airtag(self) -> bool:
        return await self._send(commands.spoof_airtag())

    async def stop_spoof(self) -> bool:
        return await self._send(commands.stop_spoof())

    async def start_ble_wardrive(self) -> bool:
        self.store.set_wardriving(True, ble=True)
        return await self._send(commands.ble_wardrive())

    async def stop_ble_wardrive(self) -> bool:
        self.store.set_wardriving(False, ble=True)
        return await self._send(commands.ble_wardrive(stop=True))

    # nfc

    async def scan_nfc(self, timeout_s: int = 60) -> bool:
        self.store.clear_nfc_tags()
        return await self._send(commands.chameleon_scan(timeout_s))

    async def stop_nfc_scan(self) -> bool:
        return await self._send(commands.chameleon_scan_stop())

    # infrared

    async def list_ir_remotes(self, path: str | None = None) -> bool:
        self.store.clear_ir_remotes()
        return await self._send(commands.ir_list(path))

    async def show_ir_remote(self, remote: str) -> bool:
        self.store.clear_ir_buttons()
        return await self._send(commands.ir_show(remote))

    async def send_ir(self, remote: str, button: int | None = None) -> bool:
        return await self._send(commands.ir_send(remote, button))

    async def learn_ir(self, path: str | None = None) -> bool:
        self.store.clear_ir_learn()
        return await self._send(commands.ir_learn(path))

    async def start_ir_dazzler(self) -> bool:
        return await self._send(commands.ir_dazzler())

    async def stop_ir_dazzler(self) -> bool:
        return await self._send(commands.ir_dazzler(stop=True))

    # badusb

    async def list_badusb_scripts(self) -> bool:
        return await self._send(commands.badusb_list())

    async def run_badusb_script(self, filename: str) -> bool:
        return await self._send(commands.badusb_run(filename))

    async def stop_badusb(self) -> bool:
        return await self._send(commands.badusb_stop())

    # gps and wardriving

    async def start_gps_info(self) -> bool:
        self.store.set_gps_tracking(True)
        return await self._send(commands.gps_info())

    async def stop_gps_info(self) -> bool:
        self.store.set_gps_tracking(False)
        return await self._send(commands.gps_info(stop=True))

    async def start_wardrive(self) -> bool:
        self.store.set_wardriving(True)
        return await self._send(commands.start_wardrive())

    async def stop_wardrive(self) -> bool:
        self.store.set_wardriving(False)
        return await self._send(commands.start_wardrive(stop=True))

    # sd card

    async def get_sd_status(self) -> bool:
        return await self._send(commands.sd_status())

    async def list_sd_files(self, path: str | None = None) -> bool:
        self.store.clear_sd_entries()
        self.store.set_sd_loading(True)
        if not await self._send(commands.sd_list(path)):
            self.store.set_sd_loading(False)
            return False
        return True

    async def sd_tree(self, path: str | None = None) -> bool:
        self.store.clear_sd_entries()
        self.store.set_sd_loading(True)
        if not await self._send(commands.sd_tree(path)):
            self.store.set_sd_loading(False)
            return False
        return True

    async def query_sd_size(self, path: str) -> int | None:
        reply = await self.correlator.request_text(
            commands.sd_size(path),
            contains_any("SD:SIZE:", "SD:ERR"),
            self.settings.size_timeout_s,
        )
        if reply is None or "SD:ERR" in reply:
            return None
        return parse_sd_size(reply)

    async def download_sd_file(
        self,
        path: str,
        display_name: str | None = None,
        *,
        sink: Callable[[bytes], None] | None = None,
        token: CancelToken | None = None,
    ) -> bool:
        data = await self.transfers.download(path, display_name, sink=sink, token=token)
        return data is not None

    async def upload_sd_file(
        self,
        path: str,
        data: bytes,
        display_name: str | None = None,
        *,
        token: CancelToken | None = None,
    ) -> bool:
        return await self.transfers.upload(path, data, display_name, token=token)

    async def make_sd_directory(self, path: str) -> bool:
        return await self._send(commands.sd_mkdir(path))

    async def remove_sd_path(self, path: str) -> bool:
        return await self._send(commands.sd_remove(path))

    # settings

    async def list_settings(self) -> bool:
        return await self._send(commands.settings_list())

    async def get_setting(self, key: str) -> bool:
        return await self._send(commands.settings_get(key))

    async def set_setting(self, key: str, value: str) -> bool:
        return await self._send(commands.settings_set(key, value))

    # aerial

    async def start_aerial_scan(self, seconds: int = 30) -> bool:
        self.store.clear_aerial_devices()
        return await self._send(commands.aerial_scan(seconds))

    async def stop_aerial_scan(self) -> bool:
        return await self._send(commands.aerial_stop())

    async def list_aerial_devices(self) -> bool:
        return await self._send(commands.aerial_list())

    async def track_aerial_device(self, index_or_mac: str) -> bool:
        return await self._send(commands.aerial_track(index_or_mac))

    async def start_aerial_spoof(
        self,
        device_id: str,
        latitude: float,
        longitude: float,
        altitude_m: float,
    ) -> bool:
        return await self._send(commands.aerial_spoof(device_id, latitude, longitude, altitude_m))

    async def stop_aerial_spoof(self) -> bool:
        return await self._send(commands.aerial_spoof_stop())

    # explicit resets

    def clear_access_points(self) -> None:
        self.store.clear_access_points()

    def clear_stations(self) -> None:
        self.store.clear_stations()

    def clear_ble_devices(self) -> None:
        self.store.clear_ble_devices()

    def clear_flipper_devices(self) -> None:
        self.store.clear_flipper_devices()

    def clear_airtags(self) -> None:
        self.store.clear_airtags()

    def clear_gatt_devices(self) -> None:
        self.store.clear_gatt_devices()

    def clear_gatt_services(self) -> None:
        self.store.clear_gatt_services()

    def clear_aerial_devices(self) -> None:
        self.store.clear_aerial_devices()

    def clear_nfc_tags(self) -> None:
        self.store.clear_nfc_tags()

    def clear_sd_entries(self) -> None:
        self.store.clear_sd_entries()

    def clear_ir_remotes(self) -> None:
        self.store.clear_ir_remotes()

    def clear_ir_buttons(self) -> None:
        self.store.clear_ir_buttons()

    def clear_portal_credentials(self) -> None:
        self.store.clear_portal_credentials()

    def clear_handshakes(self) -> None:
        self.store.clear_handshakes()

    def clear_track_data(self) -> None:
        self.store.clear_track_data()

    def clear_wardrive_stats(self) -> None:
        self.store.clear_wardrive_stats()

    def clear_status(self) -> None:
        self.store.set_status(None)

    def clear_all_data(self) -> None:
        self.store.reset()
