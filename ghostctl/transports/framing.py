"""Byte-stream framing for the device console: lines, grouped records, and SD read chunks."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from enum import Enum

LOGGER = logging.getLogger(__name__)

_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z~]")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0a-\x1f\x7f]")
_INDEXED_RE = re.compile(r"^\[\d+\]")

BINARY_START_PREFIX = "SD:READ:LENGTH:"
BINARY_TERMINATOR = b"\nSD:READ:END:"

_WIFI_STATUS_END = "=== END STATUS ==="
_GPS_FIELDS = ("Fix:", "Sats:", "Lat:", "Long:", "Lon:", "Alt:", "Speed:", "Direction:", "HDOP:", "Accuracy:")


class _Block(Enum):
    RECORD = "record"
    NEW_STATION = "new_station"
    TRACK_DEVICE = "track_device"
    HANDSHAKE = "handshake"
    WIFI_STATUS = "wifi_status"
    GPS = "gps"
    WARDRIVE = "wardrive"
    CHIP_INFO = "chip_info"


_BLOCK_FIELDS: dict[_Block, tuple[str, ...]] = {
    _Block.RECORD: (),
    _Block.NEW_STATION: ("Station:",),
    _Block.TRACK_DEVICE: ("Name:", "MAC:", "RSSI:", "Type:"),
    _Block.HANDSHAKE: ("AP=", "Pair="),
    _Block.WIFI_STATUS: (
        "connected=",
        "has_saved_network=",
        "connected_ssid=",
        "connected_rssi=",
        "connected_bssid=",
        "connected_channel=",
        "saved_ssid=",
        _WIFI_STATUS_END,
    ),
    _Block.GPS: _GPS_FIELDS,
    _Block.WARDRIVE: ("APs:", "Logged:", "GPS Fix:", "Channel:", "Uptime:", "Pending:", "BLE:") + _GPS_FIELDS,
}


def clean_line(raw: str) -> str:
    """Strip ANSI sequences, control characters, and a leading console prompt."""
    line = _CONTROL_RE.sub("", _ANSI_RE.sub("", raw))
    if line.startswith("ghost-cli>"):
        return line[len("ghost-cli>"):].strip()
    if line.startswith("> ") and line[2:].strip():
        return line[2:].strip()
    return line.rstrip()


def _block_for(trimmed: str) -> _Block | None:
    lowered = trimmed.lower()
    if trimmed.startswith(("Chip Information", "[CHIPINFO_START]")):
        return _Block.CHIP_INFO
    if _INDEXED_RE.match(trimmed):
        return _Block.RECORD
    if trimmed.startswith("New Station:"):
        return _Block.NEW_STATION
    if trimmed.startswith("Station:"):
        return _Block.RECORD
    if trimmed.startswith("===") and "tracking device" in lowered:
        return _Block.TRACK_DEVICE
    if lowered.startswith("handshake found"):
        return _Block.HANDSHAKE
    if "=== WIFI STATUS ===" in trimmed:
        return _Block.WIFI_STATUS
    if trimmed.startswith("GPS Info"):
        return _Block.GPS
    if lowered.startswith("wardrive info") or trimmed.startswith("GPS:"):
        return _Block.WARDRIVE
    return None


class StreamFramer:
    """Incremental decoder for the device's console byte stream.

    Three outputs are produced through callbacks:

    * ``on_output`` receives every cleaned, non-empty console line as it arrives.
    * ``on_record`` receives logical records: single lines, or multi-line blocks
      (an indexed scan result with its indented fields, a wifi status block, the
      chip information report, ...) joined with ``"\\n"``.
    * ``on_chunk`` receives the payload of each ``sd read`` reply. A line starting
      with ``SD:READ:LENGTH:`` switches to binary mode; bytes accumulate until
      ``\\nSD:READ:END:`` and line mode resumes with that marker re-prefixed.
    """

    def __init__(
        self,
        *,
        on_output: Callable[[str], None],
        on_record: Callable[[str], None],
        on_chunk: Callable[[bytes], None],
        idle_flush_s: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._on_output = on_output
        self._on_record = on_record
        self._on_chunk = on_chunk
        self._idle_flush_s = idle_flush_s
        self._clock = clock

        self._line = bytearray()
        self._previous_byte = 0
        self._binary = False
        self._binary_buffer = bytearray()

        self._block: _Block | None = None
        self._block_lines: list[str] = []
        self._last_line_at = 0.0

    @property
    def in_binary_mode(self) -> bool:
        return self._binary

    def feed(self, data: bytes) -> None:
        pending = bytes(data)
        while pending:
            pending = self._feed_binary(pending) if self._binary else self._feed_text(pending)

    def flush_idle(self) -> None:
        """Emit a pending block once no line has arrived for the idle window."""
        if self._block is None:
            return
        if self._clock() - self._last_line_at >= self._idle_flush_s:
            self._flush_block()

    def flush(self) -> None:
        self._flush_block()

    def _feed_text(self, data: bytes) -> bytes:
        for position, byte in enumerate(data):
            previous, self._previous_byte = self._previous_byte, byte
            if byte not in (0x0A, 0x0D):
                self._line.append(byte)
                continue
            if not self._line:
                # CRLF is one terminator; any other empty line is a blank line.
                if not (byte == 0x0A and previous == 0x0D):
                    self._process_line("")
                continue
            line = self._line.decode("utf-8", errors="replace")
            self._line.clear()
            if line.startswith(BINARY_START_PREFIX):
                self._process_line(line)
                self._binary = True
                self._binary_buffer.clear()
                rest = data[position + 1:]
                if byte == 0x0D and rest[:1] == b"\n":
                    rest = rest[1:]
                return rest
            self._process_line(line)
        return b""

    def _feed_binary(self, data: bytes) -> bytes:
        search_from = max(0, len(self._binary_buffer) - len(BINARY_TERMINATOR) + 1)
        self._binary_buffer.extend(data)
        end = self._binary_buffer.find(BINARY_TERMINATOR, search_from)
        if end < 0:
            return b""
        chunk = bytes(self._binary_buffer[:end])
        rest = bytes(self._binary_buffer[end + len(BINARY_TERMINATOR):])
        self._binary_buffer.clear()
        self._binary = False
        self._previous_byte = 0
        LOGGER.debug("Assembled SD read chunk of %d bytes", len(chunk))
        self._on_chunk(chunk)
        self._line.extend(b"SD:READ:END:")
        return rest

    def _process_line(self, raw: str) -> None:
        line = clean_line(raw)
        trimmed = line.strip()
        self._last_line_at = self._clock()

        if self._block is _Block.CHIP_INFO:
            if trimmed.startswith("[CHIPINFO_END]"):
                self._flush_block()
            else:
                if trimmed:
                    self._on_output(trimmed)
                self._block_lines.append(trimmed)
            return

        if not trimmed:
            self._flush_block()
            return

        self._on_output(line)

        if self._block is not None and self._is_continuation(line, trimmed):
            self._block_lines.append(trimmed)
            if self._block is _Block.WIFI_STATUS and _WIFI_STATUS_END in trimmed:
                self._flush_block()
            elif self._block is _Block.NEW_STATION:
                self._block = _Block.RECORD
            return

        block = _block_for(trimmed)
        self._flush_block()
        if block is None:
            self._on_record(trimmed)
            return
        self._block = block
        if block is _Block.CHIP_INFO:
            self._block_lines = ["Chip Information"]
            remainder = trimmed.removeprefix("[CHIPINFO_START]").removeprefix("Chip Information")
            remainder = remainder.lstrip(":").strip()
            if remainder:
                self._block_lines.append(remainder)
        else:
            self._block_lines = [trimmed]

    def _is_continuation(self, line: str, trimmed: str) -> bool:
        if line[:1] in (" ", "\t") and not trimmed.startswith("["):
            return True
        return trimmed.startswith(_BLOCK_FIELDS.get(self._block, ()))

    def _flush_block(self) -> None:
        if self._block is None:
            return
        record = "\n".join(self._block_lines).strip("\n")
        self._block = None
        self._block_lines = []
        if record:
            self._on_record(record)
