"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer

from ghostctl.api import Client
from ghostctl.core.commands import BleScanMode
from ghostctl.core.errors import GhostctlError, ProtocolTimeoutError, TransferError, TransportSendError
from ghostctl.core.model import Downloading, TransferComplete, TransferProgress, Uploading
from ghostctl.transports.serial_port import list_ports

app = typer.Typer(help="GhostESP companion over a USB serial console")

_SCAN_GRACE_S = 1.0
_LIST_TIMEOUT_S = 10.0
_BLE_MODES = {
    "generic": BleScanMode.GENERIC,
    "flipper": BleScanMode.FLIPPER,
    "airtag": BleScanMode.AIRTAG,
    "gatt": BleScanMode.GATT,
    "raw": BleScanMode.RAW,
    "spam-detector": BleScanMode.SPAM_DETECTOR,
}


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _build_client(port: str | None) -> Client:
    client = Client(port=port)
    for warning in getattr(client, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return client


def _run(verbose: bool, work: object) -> None:
    _configure_logging(verbose)
    try:
        asyncio.run(work)  # type: ignore[arg-type]
    except GhostctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def _echo_progress(progress: TransferProgress) -> None:
    if isinstance(progress, (Downloading, Uploading)) and progress.total:
        typer.echo(f"{progress.file_name}: {progress.transferred}/{progress.total} bytes ({progress.percent}%)")


@app.command("ports")
def ports(
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """List serial ports visible to the system."""
    _configure_logging(verbose)
    found = list_ports()
    if not found:
        typer.echo("No serial ports found")
        return
    for port in found:
        typer.echo(f"{port.device} {port.description}".rstrip())


@app.command("info")
def info(
    port: str | None = typer.Option(None, "--port", help="Serial device path"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """Print chip information reported by the device."""

    async def work() -> None:
        async with _build_client(port) as client:
            device = await client.service.fetch_device_info()
            if device is None:
                reason = client.store.chip_info_parse_status.value or "no chip information received"
                raise ProtocolTimeoutError(f"Could not read chip info: {reason}")
            typer.echo(f"Model: {device.model} (rev {device.revision}, {device.cores} cores)")
            typer.echo(f"IDF: {device.idf_version}")
            if device.firmware_version:
                typer.echo(f"Firmware: {device.firmware_version}")
            typer.echo(f"Free heap: {device.free_heap} (min {device.min_free_heap})")
            if device.enabled_features:
                names = ", ".join(sorted(feature.value for feature in device.enabled_features))
                typer.echo(f"Features: {names}")

    _run(verbose, work())


@app.command("scan-wifi")
def scan_wifi(
    seconds: int = typer.Option(10, "--seconds", min=0, help="Scan duration"),
    port: str | None = typer.Option(None, "--port", help="Serial device path"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """Scan for access points and print them by index."""

    async def work() -> None:
        async with _build_client(port) as client:
            if not await client.service.scan_wifi(seconds):
                raise TransportSendError("Could not send scan command")
            await asyncio.sleep(seconds + _SCAN_GRACE_S)
            access_points = client.store.access_points.value
            if not access_points:
                typer.echo("No access points found")
                return
            for ap in access_points:
                ssid = "(hidden)" if ap.is_hidden else ap.ssid
                typer.echo(f"[{ap.index}] {ssid} {ap.bssid} ch{ap.channel} {ap.rssi}dBm {ap.security}")

    _run(verbose, work())


@app.command("scan-ble")
def scan_ble(
    mode: str = typer.Option("generic", "--mode", help=f"One of: {', '.join(_BLE_MODES)}"),
    seconds: int = typer.Option(10, "--seconds", min=0, help="Scan duration"),
    port: str | None = typer.Option(None, "--port", help="Serial device path"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """Scan for Bluetooth LE devices and print them by signal strength."""
    scan_mode = _BLE_MODES.get(mode)
    if scan_mode is None:
        typer.echo(f"Error: Unknown BLE scan mode '{mode}'. Allowed: {', '.join(_BLE_MODES)}", err=True)
        raise typer.Exit(code=1)

    async def work() -> None:
        async with _build_client(port) as client:
            if not await client.service.scan_ble(scan_mode):
                raise TransportSendError("Could not send scan command")
            await asyncio.sleep(seconds + _SCAN_GRACE_S)
            await client.service.stop_ble_scan()
            store = client.store
            if scan_mode is BleScanMode.FLIPPER:
                rows = [f"{d.mac} {d.name or '<unnamed>'} {d.rssi}dBm" for d in store.flipper_devices.value]
            elif scan_mode is BleScanMode.AIRTAG:
                rows = [f"{d.mac} {d.rssi}dBm" for d in store.airtags.value]
            elif scan_mode is BleScanMode.GATT:
                rows = [f"[{d.index}] {d.mac} {d.name or '<unnamed>'} {d.rssi}dBm" for d in store.gatt_devices.value]
            else:
                rows = [
                    f"{d.mac or d.unique_id} {d.name or '<unnamed>'} {d.rssi}dBm {d.device_type.value}"
                    for d in store.ble_devices.value
                ]
            if not rows:
                typer.echo("No devices found")
                return
            for row in rows:
                typer.echo(row)

    _run(verbose, work())


@app.command("ls")
def list_sd(
    path: str | None = typer.Argument(None),
    port: str | None = typer.Option(None, "--port", help="Serial device path"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """List a directory on the device SD card."""

    async def work() -> None:
        async with _build_client(port) as client:
            store = client.store
            if not await client.service.list_sd_files(path):
                raise TransportSendError("Could not send list command")
            if not await client.service.wait_until(lambda: not store.sd_loading.value, _LIST_TIMEOUT_S):
                raise ProtocolTimeoutError(f"Timed out listing {path or '/'}")
            result = store.sd_result.value
            if result is not None and not result.success:
                raise GhostctlError(f"SD error: {result.operation} {result.details or ''}".rstrip())
            for entry in store.sd_entries.value:
                if entry.is_dir:
                    typer.echo(f"d {'-':>10} {entry.path}")
                else:
                    typer.echo(f"f {entry.size:>10} {entry.path}")

    _run(verbose, work())


@app.command("download")
def download(
    remote: str,
    local: Path,
    port: str | None = typer.Option(None, "--port", help="Serial device path"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """Copy REMOTE from the SD card to LOCAL."""

    async def work() -> None:
        async with _build_client(port) as client:
            unwatch = client.transfer_progress.watch(_echo_progress)
            try:
                ok = await client.service.download_sd_file(remote, sink=local.write_bytes)
            finally:
                unwatch()
            if not ok:
                state = client.transfer_progress.value
                error = state.error if isinstance(state, TransferComplete) else None
                raise TransferError(f"Download of {remote} failed: {error or 'unknown error'}")
            typer.echo(f"Saved {remote} to {local}")

    _run(verbose, work())


@app.command("upload")
def upload(
    local: Path,
    remote: str,
    port: str | None = typer.Option(None, "--port", help="Serial device path"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """Copy LOCAL to REMOTE on the SD card."""

    async def work() -> None:
        try:
            data = local.read_bytes()
        except OSError as exc:
            raise TransferError(f"Could not read {local}: {exc}") from exc
        async with _build_client(port) as client:
            unwatch = client.transfer_progress.watch(_echo_progress)
            try:
                ok = await client.service.upload_sd_file(remote, data, local.name)
            finally:
                unwatch()
            if not ok:
                state = client.transfer_progress.value
                error = state.error if isinstance(state, TransferComplete) else None
                raise TransferError(f"Upload to {remote} failed: {error or 'unknown error'}")
            typer.echo(f"Uploaded {local} to {remote} ({len(data)} bytes)")

    _run(verbose, work())


@app.command("send")
def send(
    text: str,
    wait: float = typer.Option(2.0, "--wait", min=0.0, help="Seconds to print device output"),
    port: str | None = typer.Option(None, "--port", help="Serial device path"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """Send a raw console command and print what the device answers."""

    async def work() -> None:
        async with _build_client(port) as client:
            lines = await client.service.collect_output(text, wait)
            for line in lines:
                typer.echo(line)

    _run(verbose, work())


def run() -> None:
    app()


if __name__ == "__main__":
    run()
