"""Device command catalog.

Each factory returns a :class:`Command` carrying the console wire string and whether
the firmware must be stopped before it is accepted.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Command:
    wire: str
    requires_stop_first: bool = False

    def encode(self) -> bytes:
        return f"{self.wire}\r\n".encode("utf-8")


def _long_running(wire: str) -> Command:
    return Command(wire=wire, requires_stop_first=True)


def _quoted(value: str) -> str:
    return '"' + value.replace('"', '\\"') + '"'


class ListMode(Enum):
    ACCESS_POINTS = "-a"
    STATIONS = "-s"
    AIRTAGS = "-airtags"


class SelectTarget(Enum):
    ACCESS_POINT = "select -a"
    STATION = "select -s"
    AIRTAG = "select -airtag"
    FLIPPER = "selectflipper"
    GATT = "selectgatt"


class BeaconSpamMode(Enum):
    RANDOM = "-r"
    RICKROLL = "-rr"
    AP_LIST = "-l"


class BleScanMode(Enum):
    GENERIC = ""
    FLIPPER = "-f"
    SPAM_DETECTOR = "-ds"
    AIRTAG = "-a"
    RAW = "-r"
    GATT = "-g"


class BleSpamMode(Enum):
    ALL = ""
    APPLE = "-apple"
    MICROSOFT = "-ms"
    SAMSUNG = "-samsung"
    GOOGLE = "-google"
    RANDOM = "-random"


# core


def help_() -> Command:
    return Command("help")


def chip_info() -> Command:
    return Command("chipinfo")


def stop() -> Command:
    return Command("stop")


def reboot() -> Command:
    return Command("reboot")


def identify() -> Command:
    return Command("identify")


def raw(text: str) -> Command:
    return Command(text.strip())


# wifi scanning and selection


def scan_ap(seconds: int | None = None, *, live: bool = False) -> Command:
    if live:
        return _long_running("scanap -live")
    if seconds is not None:
        return _long_running(f"scanap {seconds}")
    return _long_running("scanap")


def scan_ap_stop() -> Command:
    return Command("scanap -stop")


def scan_stations() -> Command:
    return _long_running("scansta")


def scan_all(seconds: int | None = None) -> Command:
    return _long_running(f"scanall {seconds}" if seconds is not None else "scanall")


def stop_scan() -> Command:
    return Command("stopscan")


def list_results(mode: ListMode = ListMode.ACCESS_POINTS) -> Command:
    return Command(f"list {mode.value}")


def select(target: SelectTarget, indices: str | int) -> Command:
    return Command(f"{target.value} {indices}")


# wifi connection and tracking


def connect(ssid: str, password: str | None = None) -> Command:
    if password is None:
        return Command(f"connect {_quoted(ssid)}")
    return Command(f"connect {_quoted(ssid)} {_quoted(password)}")


def disconnect() -> Command:
    return Command("disconnect")


def wifi_status() -> Command:
    return Command("wifistatus")


def track_ap() -> Command:
    return _long_running("trackap")


def track_station() -> Command:
    return _long_running("tracksta")


# wifi attacks and capture


def attack_deauth() -> Command:
    return _long_running("attack -d")


def attack_eapol() -> Command:
    return _long_running("attack -e")


def stop_deauth() -> Command:
    return Command("stopdeauth")


def beacon_spam(mode: BeaconSpamMode | str = BeaconSpamMode.RANDOM) -> Command:
    argument = mode.value if isinstance(mode, BeaconSpamMode) else mode
    return _long_running(f"beaconspam {argument}")


def stop_spam() -> Command:
    return Command("stopspam")


def karma_start(ssids: list[str] | None = None) -> Command:
    if ssids:
        return _long_running("karma start " + " ".join(ssids))
    return _long_running("karma start")


def karma_stop() -> Command:
    return Command("karma stop")


def capture_eapol(channel: int | None = None) -> Command:
    if channel is None:
        return _long_running("capture -eapol")
    return _long_running(f"capture -eapol -c {channel}")


# evil portal


def start_portal(path: str, ssid: str, password: str | None = None) -> Command:
    wire = f"startportal {path} {_quoted(ssid)}"
    if password is not None:
        wire += f" {_quoted(password)}"
    return _long_running(wire)


def stop_portal() -> Command:
    return Command("stopportal")


def list_portals() -> Command:
    return Command("listportals")


# bluetooth


def ble_scan(mode: BleScanMode = BleScanMode.GENERIC) -> Command:
    return _long_running(f"blescan {mode.value}".rstrip())


def ble_scan_stop() -> Command:
    return Command("blescan -s")


def ble_spam(mode: BleSpamMode = BleSpamMode.ALL) -> Command:
    return _long_running(f"blespam {mode.value}".rstrip())


def ble_spam_stop() -> Command:
    return Command("blespam -s")


def list_flippers() -> Command:
    return Command("listflippers")


def list_airtags() -> Command:
    return Command("listairtags")


def list_gatt() -> Command:
    return Command("listgatt")


def enum_gatt() -> Command:
    return Command("enumgatt")


def track_gatt() -> Command:
    return _long_running("trackgatt")


def track_flipper(index: int) -> Command:
    return _long_running(f"selectflipper {index}")


def spoof_airtag() -> Command:
    return _long_running("spoofairtag")


def stop_spoof() -> Command:
    return Command("stopspoof")


def ble_wardrive(*, stop: bool = False) -> Command:
    return Command("blewardriving -s") if stop else _long_running("blewardriving")


# nfc


def chameleon_scan(timeout_s: int = 60) -> Command:
    return _long_running(f"chameleon scan {timeout_s}")


def chameleon_scan_stop() -> Command:
    return Command("chameleon scan stop")


# infrared


def ir_list(path: str | None = None) -> Command:
    return Command(f"ir list {path}" if path else "ir list")


def ir_show(remote: str) -> Command:
    return Command(f"ir show {remote}")


def ir_send(remote: str, button: int | None = None) -> Command:
    return Command(f"ir send {remote} {button}" if button is not None else f"ir send {remote}")


def ir_learn(path: str | None = None) -> Command:
    return _long_running(f"ir learn {path}" if path else "ir learn")


def ir_dazzler(*, stop: bool = False) -> Command:
    return Command("ir dazzler stop") if stop else _long_running("ir dazzler")


# badusb


def badusb_list() -> Command:
    return Command("badusb list")


def badusb_run(filename: str) -> Command:
    return _long_running(f"badusb run {filename}")


def badusb_stop() -> Command:
    return Command("badusb stop")


# gps and wardriving


def gps_info(*, stop: bool = False) -> Command:
    return Command("gpsinfo -s") if stop else _long_running("gpsinfo")


def start_wardrive(*, stop: bool = False) -> Command:
    return Command("startwd -s") if stop else _long_running("startwd")


# sd card


def sd_status() -> Command:
    return Command("sd status")


def sd_list(path: str | None = None) -> Command:
    return Command(f"sd list {path}" if path else "sd list")


def sd_tree(path: str | None = None) -> Command:
    return Command(f"sd tree {path}" if path else "sd tree")


def sd_size(path: str) -> Command:
    return Command(f"sd size {path}")


def sd_read(path: str, offset: int, length: int) -> Command:
    return Command(f"sd read {path} {offset} {length}")


def sd_write(path: str, base64_data: str) -> Command:
    return Command(f"sd write {path} {base64_data}")


def sd_append(path: str, base64_data: str) -> Command:
    return Command(f"sd append {path} {base64_data}")


def sd_mkdir(path: str) -> Command:
    return Command(f"sd mkdir {path}")


def sd_remove(path: str) -> Command:
    return Command(f"sd rm {path}")


# settings


def settings_list() -> Command:
    return Command("settings list")


def settings_get(key: str) -> Command:
    return Command(f"settings get {key}")


def settings_set(key: str, value: str) -> Command:
    return Command(f"settings set {key} {value}")


# aerial


def aerial_scan(seconds: int = 30) -> Command:
    return _long_running(f"aerialscan {seconds}")


def aerial_stop() -> Command:
    return Command("aerialstop")


def aerial_list() -> Command:
    return Command("aeriallist")


def aerial_track(index_or_mac: str) -> Command:
    return _long_running(f"aerialtrack {index_or_mac}")


def aerial_spoof(device_id: str, latitude: float, longitude: float, altitude_m: float) -> Command:
    return _long_running(f"aerialspoof {device_id} {latitude} {longitude} {altitude_m}")


def aerial_spoof_stop() -> Command:
    return Command("aerialspoofstop")
