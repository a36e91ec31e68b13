"""Storage client contract used by the archiver."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class LogStream(Protocol):
    """Async readable byte stream of one container's log output."""

    async def read(self, n: int = -1) -> bytes:
        """Read up to ``n`` bytes; ``b""`` signals end of stream."""
        ...

    async def aclose(self) -> None:
        ...


@dataclass(frozen=True)
class StorageObject:
    """A named byte stream handed to a storage client.

    The storage client drains ``resource``. Closing it stays with the caller
    that opened it.
    """

    name: str
    resource: LogStream


@runtime_checkable
class StorageClient(Protocol):
    """Durably persists named byte streams.

    Implementations are called from many tasks at once and must be safe for
    concurrent use.
    """

    async def save(self, location: str, obj: StorageObject) -> None:
        ...
