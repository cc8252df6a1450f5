import asyncio
from collections.abc import AsyncIterator, Iterator

from inspection_import.findings.models import Finding


class ResultStream:
    """Append-only, ordered preview of findings emitted while a submission runs.

    One stream belongs to one session. It is a preview, not the source of
    truth: entries may repeat findings of the final set and are never
    deduplicated, reordered, or removed.
    """

    def __init__(self) -> None:
        self._entries: list[Finding] = []
        self._closed = False
        self._changed = asyncio.Event()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Finding]:
        # Index-based so entries appended during iteration are still yielded.
        index = 0
        while index < len(self._entries):
            yield self._entries[index]
            index += 1

    @property
    def closed(self) -> bool:
        return self._closed

    def append(self, finding: Finding) -> None:
        if self._closed:
            raise RuntimeError("Cannot append to a closed result stream")
        self._entries.append(finding)
        self._wake()

    def snapshot(self) -> tuple[Finding, ...]:
        return tuple(self._entries)

    def close(self) -> None:
        """Mark the stream finished; followers drain remaining entries and stop."""
        self._closed = True
        self._wake()

    async def follow(self) -> AsyncIterator[Finding]:
        """Yield entries as they are appended until the stream is closed."""
        index = 0
        while True:
            while index < len(self._entries):
                yield self._entries[index]
                index += 1
            if self._closed:
                return
            self._changed.clear()
            await self._changed.wait()

    def _wake(self) -> None:
        self._changed.set()
