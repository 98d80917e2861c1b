from __future__ import annotations

from collections.abc import Callable

import pytest

from ghostctl.core.model import ConnectionState
from ghostctl.core.streams import Broadcast, StateSignal, Subscription


class FakeTransport:
    """In-memory transport; ``responder`` sees each written command and may push replies."""

    def __init__(self, state: ConnectionState = ConnectionState.CONNECTED) -> None:
        self.connection_state: StateSignal[ConnectionState] = StateSignal(state)
        self.writes: list[bytes] = []
        self.accept_writes = True
        self.responder: Callable[[str], None] | None = None
        self.closed = False
        self._lines: Broadcast[str] = Broadcast()
        self._output: Broadcast[str] = Broadcast()
        self._chunks: Broadcast[bytes] = Broadcast()

    @property
    def sent(self) -> list[str]:
        return [data.decode("utf-8").rstrip("\r\n") for data in self.writes]

    def subscribe_lines(self) -> Subscription[str]:
        return self._lines.subscribe()

    def subscribe_output(self) -> Subscription[str]:
        return self._output.subscribe()

    def subscribe_chunks(self) -> Subscription[bytes]:
        return self._chunks.subscribe()

    async def write(self, data: bytes) -> bool:
        if not self.accept_writes:
            return False
        self.writes.append(data)
        if self.responder is not None:
            self.responder(data.decode("utf-8").rstrip("\r\n"))
        return True

    async def close(self) -> None:
        self.closed = True
        self._lines.close()
        self._output.close()
        self._chunks.close()
        self.connection_state.close()

    def push_line(self, line: str) -> None:
        self._lines.publish(line)

    def push_output(self, *lines: str) -> None:
        for line in lines:
            self._output.publish(line)

    def push_chunk(self, chunk: bytes) -> None:
        self._chunks.publish(chunk)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
