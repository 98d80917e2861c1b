from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from ghostctl import cli
from ghostctl.core.classifier import ResponseKind, classify
from ghostctl.core.errors import ConfigError
from ghostctl.core.model import Downloading, TransferComplete, TransferIdle
from ghostctl.core.observable import Observable
from ghostctl.core.state import StateStore
from ghostctl.transports.serial_port import PortInfo

CHIP_INFO = """Chip Information
Model: ESP32-S3
Revision: v0.2
CPU Cores: 2
IDF Version: v5.1.2
Free Heap: 1000
Min Free Heap: 900
Enabled Features:
  GPS"""


class FakeService:
    def __init__(self, store: StateStore, progress: Observable) -> None:
        self.store = store
        self.progress = progress
        self.uploaded: dict[str, bytes] = {}

    def _apply(self, *lines: str) -> None:
        for line in lines:
            self.store.apply(classify(line), line)

    async def fetch_device_info(self, timeout_s: float = 5.0):
        self.store.apply(ResponseKind.DEVICE_INFO, CHIP_INFO)
        return self.store.device_info.value

    async def scan_wifi(self, seconds=None, *, live=False) -> bool:
        self._apply(
            "[0] SSID: Home, BSSID: AA:BB:CC:DD:EE:01, RSSI: -40, Channel: 6, Security: WPA2",
            "[1] SSID: , BSSID: AA:BB:CC:DD:EE:02, RSSI: -80, Channel: 11",
        )
        return True

    async def list_sd_files(self, path=None) -> bool:
        self.store.set_sd_loading(True)
        self._apply("SD:DIR:[0] captures", "SD:FILE:[1] notes.txt 12", "SD:OK:listed 2 entries")
        return True

    async def wait_until(self, predicate, timeout_s: float) -> bool:
        return predicate()

    async def download_sd_file(self, path, display_name=None, *, sink=None, token=None) -> bool:
        if path == "/missing.bin":
            self.progress.set(TransferComplete(file_name="missing.bin", success=False, error="SD:ERR:not_found"))
            return False
        self.progress.set(Downloading(file_name="notes.txt", transferred=5, total=5, percent=100))
        sink(b"hello")
        return True

    async def upload_sd_file(self, path, data, display_name=None, *, token=None) -> bool:
        self.uploaded[path] = data
        return True

    async def collect_output(self, text: str, duration_s: float) -> list[str]:
        return [f"> {text}", "done"]


class FakeClient:
    last: FakeClient | None = None

    def __init__(self, *, port=None, transport=None, settings=None) -> None:
        self.port = port
        self.load_warnings = ("User settings from /tmp/x override packaged defaults: port",)
        self.store = StateStore()
        self.transfer_progress: Observable = Observable(TransferIdle())
        self.service = FakeService(self.store, self.transfer_progress)
        FakeClient.last = self

    async def __aenter__(self) -> FakeClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None


runner = CliRunner()


def test_ports_command(monkeypatch) -> None:
    monkeypatch.setattr(cli, "list_ports", lambda: [PortInfo("/dev/ttyACM0", "GhostESP", "USB VID:PID=303A:1001")])
    result = runner.invoke(cli.app, ["ports"])
    assert result.exit_code == 0
    assert "/dev/ttyACM0 GhostESP" in result.stdout


def test_info_command(monkeypatch) -> None:
    monkeypatch.setattr(cli, "Client", FakeClient)
    result = runner.invoke(cli.app, ["info", "--port", "/dev/ttyACM0"])
    assert result.exit_code == 0
    assert "Model: ESP32-S3 (rev 0.2, 2 cores)" in result.stdout
    assert "Features: GPS" in result.stdout
    assert "Warning: User settings" in result.stderr
    assert FakeClient.last is not None and FakeClient.last.port == "/dev/ttyACM0"


def test_scan_wifi_command(monkeypatch) -> None:
    monkeypatch.setattr(cli, "Client", FakeClient)
    monkeypatch.setattr(cli, "_SCAN_GRACE_S", 0.0)
    result = runner.invoke(cli.app, ["scan-wifi", "--seconds", "0"])
    assert result.exit_code == 0
    assert "[0] Home AA:BB:CC:DD:EE:01 ch6 -40dBm WPA2" in result.stdout
    assert "[1] (hidden)" in result.stdout


def test_scan_ble_rejects_unknown_mode(monkeypatch) -> None:
    monkeypatch.setattr(cli, "Client", FakeClient)
    result = runner.invoke(cli.app, ["scan-ble", "--mode", "bogus"])
    assert result.exit_code == 1
    assert "Unknown BLE scan mode 'bogus'" in result.stderr


def test_ls_command(monkeypatch) -> None:
    monkeypatch.setattr(cli, "Client", FakeClient)
    result = runner.invoke(cli.app, ["ls", "/"])
    assert result.exit_code == 0
    assert "captures" in result.stdout
    assert "12 notes.txt" in result.stdout


def test_download_command_writes_file(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(cli, "Client", FakeClient)
    target = tmp_path / "notes.txt"
    result = runner.invoke(cli.app, ["download", "/notes.txt", str(target)])
    assert result.exit_code == 0
    assert target.read_bytes() == b"hello"
    assert "notes.txt: 5/5 bytes (100%)" in result.stdout


def test_download_failure_is_clean(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(cli, "Client", FakeClient)
    result = runner.invoke(cli.app, ["download", "/missing.bin", str(tmp_path / "out.bin")])
    assert result.exit_code == 1
    assert "Error: Download of /missing.bin failed: SD:ERR:not_found" in result.stderr
    assert "Traceback" not in result.stdout
    assert "Traceback" not in result.stderr


def test_upload_command(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(cli, "Client", FakeClient)
    source = tmp_path / "payload.txt"
    source.write_bytes(b"abc")
    result = runner.invoke(cli.app, ["upload", str(source), "/payload.txt"])
    assert result.exit_code == 0
    assert FakeClient.last is not None
    assert FakeClient.last.service.uploaded == {"/payload.txt": b"abc"}


def test_upload_missing_local_file(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(cli, "Client", FakeClient)
    result = runner.invoke(cli.app, ["upload", str(tmp_path / "nope.txt"), "/nope.txt"])
    assert result.exit_code == 1
    assert "Error: Could not read" in result.stderr


def test_send_command(monkeypatch) -> None:
    monkeypatch.setattr(cli, "Client", FakeClient)
    result = runner.invoke(cli.app, ["send", "help", "--wait", "0"])
    assert result.exit_code == 0
    assert "done" in result.stdout


def test_missing_port_error_is_clean(monkeypatch) -> None:
    def failing_client(**kwargs):
        raise ConfigError("No serial port configured. Pass --port or set 'port' in the ghostctl config file.")

    monkeypatch.setattr(cli, "Client", failing_client)
    result = runner.invoke(cli.app, ["info"])
    assert result.exit_code == 1
    assert "Error: No serial port configured" in result.stderr
    assert "Traceback" not in result.stderr
