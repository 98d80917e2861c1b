"""Chunked SD card file transfer with progress reporting and explicit cancellation."""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from ghostctl.core.commands import sd_append, sd_read, sd_size, sd_write
from ghostctl.core.correlator import Correlator, contains_any
from ghostctl.core.errors import OperationCancelledError, TransferError
from ghostctl.core.model import (
    Downloading,
    EngineSettings,
    TransferCancelled,
    TransferComplete,
    TransferIdle,
    TransferProgress,
    Uploading,
)
from ghostctl.core.observable import Observable
from ghostctl.core.parsers import parse_sd_size

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_SIZE_REPLY = contains_any("SD:SIZE:", "SD:ERR")
_WRITE_REPLY = contains_any("SD:OK", "SD:WRITE:", "SD:APPEND:", "SD:ERR")


class CancelToken:
    """Caller-owned cancellation signal, checked at every transfer wait."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


def _device_error(text: str) -> str:
    for line in text.splitlines():
        if "SD:ERR" in line:
            return line.strip()
    return text.strip()


def _display_name(path: str, display_name: str | None) -> str:
    return display_name or path.rstrip("/").rsplit("/", 1)[-1] or path


class FileTransferOrchestrator:
    """Runs one transfer at a time and publishes its :data:`TransferProgress`.

    A finished transfer shows ``TransferComplete`` for ``complete_display_s`` and then
    returns to ``TransferIdle``, unless another transfer has started meanwhile.
    """

    def __init__(
        self,
        correlator: Correlator,
        settings: EngineSettings | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._correlator = correlator
        self._settings = settings or EngineSettings()
        self._sleep = sleep
        self.progress: Observable[TransferProgress] = Observable(TransferIdle())
        self._generation = 0
        self._revert_tasks: set[asyncio.Task[None]] = set()

    async def download(
        self,
        path: str,
        display_name: str | None = None,
        *,
        sink: Callable[[bytes], None] | None = None,
        token: CancelToken | None = None,
    ) -> bytes | None:
        """Read *path* from the SD card in chunks.

        Returns the file contents, or ``None`` when the transfer failed. Cancellation
        through *token* raises :class:`OperationCancelledError` after publishing
        ``TransferCancelled``.
        """
        name = _display_name(path, display_name)
        generation = self._begin(Downloading(file_name=name))
        try:
            data = await self._download(path, name, token)
            if sink is not None:
                try:
                    sink(data)
                except Exception as exc:
                    raise TransferError(f"Sink failed: {exc}") from exc
        except (OperationCancelledError, asyncio.CancelledError):
            LOGGER.info("Download of %s cancelled", path)
            self.progress.set(TransferCancelled(file_name=name))
            raise
        except (TransferError, OSError) as exc:
            LOGGER.warning("Download of %s failed: %s", path, exc)
            self._finish(generation, TransferComplete(file_name=name, success=False, error=str(exc)))
            return None
        self._finish(generation, TransferComplete(file_name=name, success=True))
        return data

    async def upload(
        self,
        path: str,
        data: bytes,
        display_name: str | None = None,
        *,
        token: CancelToken | None = None,
    ) -> bool:
        """Write *data* to *path* as base64 ``sd write`` then ``sd append`` chunks."""
        name = _display_name(path, display_name)
        generation = self._begin(Uploading(file_name=name, total=len(data)))
        try:
            await self._upload(path, data, name, token)
        except (OperationCancelledError, asyncio.CancelledError):
            LOGGER.info("Upload to %s cancelled", path)
            self.progress.set(TransferCancelled(file_name=name))
            raise
        except TransferError as exc:
            LOGGER.warning("Upload to %s failed: %s", path, exc)
            self._finish(generation, TransferComplete(file_name=name, success=False, error=str(exc)))
            return False
        self._finish(generation, TransferComplete(file_name=name, success=True))
        return True

    async def close(self) -> None:
        for task in tuple(self._revert_tasks):
            task.cancel()
        await asyncio.gather(*self._revert_tasks, return_exceptions=True)

    async def _download(self, path: str, name: str, token: CancelToken | None) -> bytes:
        reply = await self._guard(
            self._correlator.request_text(sd_size(path), _SIZE_REPLY, self._settings.size_timeout_s),
            token,
        )
        if reply is None:
            raise TransferError(f"Timed out reading size of {path}")
        if "SD:ERR" in reply:
            raise TransferError(f"Device reported an error: {_device_error(reply)}")
        total = parse_sd_size(reply)
        if total is None:
            raise TransferError(f"Could not parse size of {path}")
        if total == 0:
            raise TransferError(f"Cannot download empty file {path}")

        buffer = bytearray()
        self.progress.set(Downloading(file_name=name, transferred=0, total=total, percent=0))
        while len(buffer) < total:
            offset = len(buffer)
            chunk = await self._guard(
                self._correlator.request_chunk(
                    sd_read(path, offset, self._settings.chunk_size),
                    self._settings.chunk_timeout_s,
                ),
                token,
            )
            if chunk is None:
                raise TransferError(f"Timed out reading {path} at offset {offset}")
            if not chunk:
                raise TransferError(f"Device returned no data for {path} at offset {offset}")
            # the firmware returns at most the remaining bytes; advance by what arrived
            buffer.extend(chunk)
            transferred = min(len(buffer), total)
            self.progress.set(
                Downloading(
                    file_name=name,
                    transferred=transferred,
                    total=total,
                    percent=transferred * 100 // total,
                )
            )
        return bytes(buffer[:total])

    async def _upload(self, path: str, data: bytes, name: str, token: CancelToken | None) -> None:
        if not data:
            raise TransferError(f"Nothing to upload to {path}")
        total = len(data)
        step = self._settings.upload_chunk_size
        for offset in range(0, total, step):
            encoded = base64.b64encode(data[offset:offset + step]).decode("ascii")
            command = sd_write(path, encoded) if offset == 0 else sd_append(path, encoded)
            reply = await self._guard(
                self._correlator.request_text(command, _WRITE_REPLY, self._settings.size_timeout_s),
                token,
            )
            if reply is None:
                raise TransferError(f"Timed out writing {path} at offset {offset}")
            if "SD:ERR" in reply:
                raise TransferError(f"Device reported an error: {_device_error(reply)}")
            transferred = min(offset + step, total)
            self.progress.set(
                Uploading(
                    file_name=name,
                    transferred=transferred,
                    total=total,
                    percent=transferred * 100 // total,
                )
            )

    async def _guard(self, work: Awaitable[T], token: CancelToken | None) -> T:
        """Await *work*, abandoning it as soon as *token* fires."""
        if token is None:
            return await work
        task = asyncio.ensure_future(work)
        if token.cancelled:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise OperationCancelledError("transfer cancelled")
        waiter = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for pending in (task, waiter):
                if not pending.done():
                    pending.cancel()
            await asyncio.gather(task, waiter, return_exceptions=True)
        if task.cancelled() or not waiter.cancelled():
            raise OperationCancelledError("transfer cancelled")
        return task.result()

    def _begin(self, state: TransferProgress) -> int:
        self._generation += 1
        self.progress.set(state)
        return self._generation

    def _finish(self, generation: int, state: TransferComplete) -> None:
        self.progress.set(state)
        task = asyncio.create_task(self._revert_later(generation))
        self._revert_tasks.add(task)
        task.add_done_callback(self._revert_tasks.discard)

    async def _revert_later(self, generation: int) -> None:
        await self._sleep(self._settings.complete_display_s)
        if generation == self._generation and isinstance(self.progress.value, TransferComplete):
            self.progress.set(TransferIdle())
