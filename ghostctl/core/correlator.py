"""Best-effort request/response correlation over an ID-less console stream."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from ghostctl.core.commands import Command
from ghostctl.core.errors import StreamClosedError
from ghostctl.core.sequencer import CommandSequencer
from ghostctl.transports.base import Transport

LOGGER = logging.getLogger(__name__)

Terminator = Callable[[str], bool]


def contains_any(*markers: str) -> Terminator:
    """Terminator matching once any of *markers* appears in the accumulated text."""

    def matches(text: str) -> bool:
        return any(marker in text for marker in markers)

    return matches


class Correlator:
    """Pairs a sent command with the output that follows it.

    The subscription is opened before the command is written, so no reply line is
    lost. The accumulated buffer may still contain unrelated output that arrived in
    the same window; terminators must be specific.
    """

    def __init__(
        self,
        transport: Transport,
        sequencer: CommandSequencer,
        *,
        poll_interval_s: float = 0.05,
    ) -> None:
        self._transport = transport
        self._sequencer = sequencer
        self._poll_interval_s = poll_interval_s

    async def request_text(
        self,
        command: Command,
        terminator: Terminator,
        timeout_s: float,
    ) -> str | None:
        """Send *command* and collect output until *terminator* matches the whole buffer.

        Returns the buffer, or ``None`` on timeout, send failure, or stream shutdown.
        """
        subscription = self._transport.subscribe_output()
        lines: list[str] = []

        async def drain() -> None:
            async for line in subscription:
                lines.append(line)

        drain_task = asyncio.create_task(drain())
        try:
            if not await self._sequencer.send(command):
                return None
            deadline = time.monotonic() + timeout_s
            while True:
                text = "\n".join(lines)
                if terminator(text):
                    return text
                if drain_task.done():
                    LOGGER.warning("Output stream closed while waiting on %r", command.wire)
                    return None
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    LOGGER.warning("Timed out after %.1fs waiting on %r", timeout_s, command.wire)
                    return None
                await asyncio.sleep(min(self._poll_interval_s, remaining))
        finally:
            subscription.close()
            drain_task.cancel()
            await asyncio.gather(drain_task, return_exceptions=True)

    async def request_chunk(self, command: Command, timeout_s: float) -> bytes | None:
        """Send *command* and wait for exactly one assembled binary chunk."""
        with self._transport.subscribe_chunks() as chunks:
            if not await self._sequencer.send(command):
                return None
            try:
                return await asyncio.wait_for(chunks.get(), timeout_s)
            except asyncio.TimeoutError:
                LOGGER.warning("Timed out after %.1fs waiting for chunk from %r", timeout_s, command.wire)
                return None
            except StreamClosedError:
                LOGGER.warning("Chunk stream closed while waiting on %r", command.wire)
                return None
