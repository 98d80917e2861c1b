from __future__ import annotations

from ghostctl.transports.framing import StreamFramer, clean_line


class Collector:
    def __init__(self) -> None:
        self.now = 0.0
        self.output: list[str] = []
        self.records: list[str] = []
        self.chunks: list[bytes] = []
        self.framer = StreamFramer(
            on_output=self.output.append,
            on_record=self.records.append,
            on_chunk=self.chunks.append,
            idle_flush_s=0.5,
            clock=lambda: self.now,
        )


def test_clean_line_strips_ansi_and_prompt() -> None:
    assert clean_line("\x1b[32mghost-cli> scanap\x1b[0m") == "scanap"
    assert clean_line("> SD:OK") == "SD:OK"
    assert clean_line("plain\t") == "plain\t".rstrip()


def test_lines_split_across_reads() -> None:
    c = Collector()
    c.framer.feed(b"Scan sta")
    c.framer.feed(b"rted\r\nGHOSTESP_")
    assert c.records == ["Scan started"]
    c.framer.feed(b"OK\n")
    assert c.records == ["Scan started", "GHOSTESP_OK"]
    assert c.output == ["Scan started", "GHOSTESP_OK"]


def test_indexed_record_groups_indented_fields() -> None:
    c = Collector()
    c.framer.feed(b"[0] SSID: Home\r\n    BSSID: AA:BB:CC:DD:EE:01\r\n    RSSI: -40\r\nScan complete\r\n")
    assert c.records == ["[0] SSID: Home\nBSSID: AA:BB:CC:DD:EE:01\nRSSI: -40", "Scan complete"]
    # every line still reaches raw output
    assert len(c.output) == 4


def test_pending_block_flushes_after_idle_window() -> None:
    c = Collector()
    c.framer.feed(b"[0] SSID: Home\n")
    c.framer.flush_idle()
    assert c.records == []
    c.now = 1.0
    c.framer.flush_idle()
    assert c.records == ["[0] SSID: Home"]


def test_chip_info_block_between_markers() -> None:
    c = Collector()
    c.framer.feed(b"[CHIPINFO_START]\nModel: ESP32-S3\n\nCPU Cores: 2\n[CHIPINFO_END]\n")
    assert c.records == ["Chip Information\nModel: ESP32-S3\n\nCPU Cores: 2"]
    assert "" not in c.output


def test_blank_line_ends_record_but_crlf_does_not() -> None:
    c = Collector()
    c.framer.feed(b"[0] SSID: Home\r\n\r\n    BSSID: AA:BB:CC:DD:EE:01\r\n")
    c.framer.feed(b"[1] SSID: Cafe\r\n    RSSI: -40\r\n")
    c.framer.flush()
    assert c.records == ["[0] SSID: Home", "BSSID: AA:BB:CC:DD:EE:01", "[1] SSID: Cafe\nRSSI: -40"]


def test_wifi_status_block_ends_on_marker() -> None:
    c = Collector()
    c.framer.feed(b"=== WIFI STATUS ===\nconnected=false\nhas_saved_network=false\n=== END STATUS ===\n")
    assert c.records == ["=== WIFI STATUS ===\nconnected=false\nhas_saved_network=false\n=== END STATUS ==="]


def test_binary_chunk_is_extracted_and_line_mode_resumes() -> None:
    c = Collector()
    c.framer.feed(b"SD:READ:LENGTH:5\r\nhe\nlo\nSD:RE")
    assert c.framer.in_binary_mode
    assert c.chunks == []
    c.framer.feed(b"AD:END:bytes=5\nSD:OK\n")
    assert not c.framer.in_binary_mode
    assert c.chunks == [b"he\nlo"]
    assert c.records == ["SD:READ:LENGTH:5", "SD:READ:END:bytes=5", "SD:OK"]


def test_binary_payload_may_contain_carriage_returns_and_nulls() -> None:
    c = Collector()
    payload = b"\x00\r\n\xff\x01"
    c.framer.feed(b"SD:READ:LENGTH:5\n" + payload + b"\nSD:READ:END:bytes=5\n")
    assert c.chunks == [payload]
