"""
Storage is a byte-content cache that sits between files on disk and
responses - keys are resolved file paths, values are file contents.
The file server only ever issues write/read/delete against it, everything
else (capacity accounting, eviction, joining of concurrent readers) is up
to the implementation
"""

import abc

from ..typehints import Path, Sink, ByteSource, SourceFactory


class Storage(abc.ABC):
    @abc.abstractmethod
    async def write(self, key: Path, sink: Sink, on_miss: SourceFactory) -> None:
        """
        Deliver content of the key to the sink and end it. If the key is not
        stored, on_miss(key) is awaited, and it is expected to feed a fresh
        source to read(). While a key is being populated, every other
        write() for the same key joins that population instead of calling
        its own on_miss (populate-or-join)

        Errors of the population are raised to every joined writer
        """

    @abc.abstractmethod
    async def read(self, key: Path, source: ByteSource) -> None:
        """
        Populate the key from the source, fanning chunks out to the sinks
        waiting for it
        """

    @abc.abstractmethod
    def delete(self, key: Path) -> None:
        """
        Drop the key. Population that is in flight for the key completes
        for its sinks, but its result is not stored
        """

    @abc.abstractmethod
    def clear(self) -> None:
        ...

    @abc.abstractmethod
    def __contains__(self, key: Path) -> bool:
        ...

    @abc.abstractmethod
    def __len__(self) -> int:
        ...
