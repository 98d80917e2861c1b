from __future__ import annotations

import asyncio

from ghostctl.core import commands
from ghostctl.core.sequencer import CommandSequencer


def test_command_encoding() -> None:
    assert commands.scan_ap().encode() == b"scanap\r\n"
    assert commands.scan_ap(15).wire == "scanap 15"
    assert commands.connect("My Net", 'pa"ss').wire == 'connect "My Net" "pa\\"ss"'
    assert commands.sd_read("/a.bin", 4096, 4096).wire == "sd read /a.bin 4096 4096"
    assert commands.ble_scan().wire == "blescan"
    assert commands.ble_scan(commands.BleScanMode.FLIPPER).wire == "blescan -f"
    assert commands.scan_ap().requires_stop_first
    assert not commands.list_results().requires_stop_first


def test_stop_first_command_is_not_interleaved(transport) -> None:
    sleeps: list[float] = []

    async def yielding_sleep(delay: float) -> None:
        sleeps.append(delay)
        await asyncio.sleep(0.01)

    async def scenario() -> None:
        sequencer = CommandSequencer(transport, stop_settle_s=0.2, sleep=yielding_sleep)
        await asyncio.gather(
            sequencer.send(commands.scan_ap()),
            sequencer.send(commands.list_results()),
        )
        assert sequencer.last_command == commands.list_results()

    asyncio.run(scenario())
    assert transport.sent == ["stop", "scanap", "list -a"]
    assert sleeps == [0.2]


def test_failed_stop_skips_command(transport) -> None:
    async def scenario() -> bool:
        sequencer = CommandSequencer(transport)
        return await sequencer.send(commands.scan_stations())

    transport.accept_writes = False
    assert asyncio.run(scenario()) is False
    assert transport.writes == []


def test_raw_send_never_prepends_stop(transport) -> None:
    async def scenario() -> bool:
        sequencer = CommandSequencer(transport)
        return await sequencer.send_raw("scanap")

    assert asyncio.run(scenario()) is True
    assert transport.sent == ["scanap"]
