"""Outbound command sequencing with stop-first preconditions and settle delays."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from ghostctl.core.commands import Command, stop
from ghostctl.transports.base import Transport

LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class CommandSequencer:
    """Serializes writes so a stop-first command is never interleaved with another send.

    A successful send means the bytes were handed to the transport, not that the
    firmware acted on them.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        stop_settle_s: float = 0.2,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._stop_settle_s = stop_settle_s
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self.last_command: Command | None = None

    async def send(self, command: Command) -> bool:
        async with self._lock:
            if command.requires_stop_first:
                if not await self._write(stop()):
                    return False
                await self._sleep(self._stop_settle_s)
            return await self._write(command)

    async def send_raw(self, text: str) -> bool:
        async with self._lock:
            return await self._write(Command(text))

    async def settle(self, delay_s: float) -> None:
        await self._sleep(delay_s)

    async def _write(self, command: Command) -> bool:
        self.last_command = command
        LOGGER.debug("Sending command: %s", command.wire)
        ok = await self._transport.write(command.encode())
        if not ok:
            LOGGER.warning("Transport rejected command %r", command.wire)
        return ok
