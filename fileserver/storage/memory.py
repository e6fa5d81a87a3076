import asyncio
import logging
from collections import OrderedDict
from typing import Callable, Dict, List, Optional

from .base import Storage
from ..exceptions import StorageError
from ..typehints import Path, Sink, ByteSource, SourceFactory

DEFAULT_MAX_SIZE = 1024 * 1000

logger = logging.getLogger(__name__)


class _Population:
    """
    A key that is being read from its source right now. Keeps chunks that
    were already read, so writers that join later get the whole content
    """

    def __init__(self):
        self.chunks: List[bytes] = []
        self.sinks: List[Sink] = []
        # id(sink): error raised by that sink, it is dropped from the population
        self.failures: Dict[int, BaseException] = {}
        self.done: asyncio.Future = asyncio.get_running_loop().create_future()
        # set when the key is deleted while populating
        self.stale = False
        self.fed = False

    def fan_out(self, action: Callable[[Sink], None]) -> None:
        """
        A sink that fails only fails its own writer, the rest still get
        the content
        """

        for sink in list(self.sinks):
            try:
                action(sink)
            except Exception as exc:
                self.sinks.remove(sink)
                self.failures[id(sink)] = exc

    async def outcome(self, sink: Sink) -> None:
        error = await asyncio.shield(self.done)

        if error is None:
            error = self.failures.pop(id(sink), None)

        if error is not None:
            raise error

    def finish(self, error: Optional[BaseException] = None) -> None:
        # result is an error or None, so nobody has to retrieve an exception
        if not self.done.done():
            self.done.set_result(error)


class InMemoryStorage(Storage):
    """
    Keeps file contents in memory, least recently used entries are evicted
    first. Total accounted length never exceeds max_size, content that is
    longer than max_size by itself is delivered but never stored
    """

    def __init__(self,
                 max_size: int = DEFAULT_MAX_SIZE,
                 length: Callable[[bytes], int] = len):
        if max_size < 0:
            raise ValueError(f'max_size must not be negative, got {max_size}')

        self.max_size = max_size
        self.length = length

        self.size = 0
        self._entries: 'OrderedDict[Path, bytes]' = OrderedDict()
        self._populations: Dict[Path, _Population] = {}

    async def write(self, key: Path, sink: Sink, on_miss: SourceFactory) -> None:
        content = self._entries.get(key)

        if content is not None:
            self._entries.move_to_end(key)
            sink.end(content)
            return

        population = self._populations.get(key)

        if population is not None:
            for chunk in population.chunks:
                sink.write(chunk)

            population.sinks.append(sink)
            await population.outcome(sink)

            return

        population = _Population()
        population.sinks.append(sink)
        self._populations[key] = population

        try:
            await on_miss(key)
        except Exception as exc:
            self._abort(key, population, exc)
            raise

        if not population.fed:
            self._abort(key, population, StorageError(f'no source was given for {key}'))

        await population.outcome(sink)

    async def read(self, key: Path, source: ByteSource) -> None:
        population = self._populations.get(key)

        if population is None:
            # populating without anybody waiting for the content
            population = _Population()
            self._populations[key] = population

        population.fed = True

        try:
            async for chunk in source:
                population.chunks.append(chunk)
                population.fan_out(lambda sink: sink.write(chunk))
        except Exception as exc:
            self._abort(key, population, exc)
            raise

        self._forget(key, population)
        content = b''.join(population.chunks)

        if not population.stale:
            self._store(key, content)

        population.fan_out(lambda sink: sink.end())

        population.finish()

    def delete(self, key: Path) -> None:
        content = self._entries.pop(key, None)

        if content is not None:
            self.size -= self.length(content)

        population = self._populations.pop(key, None)

        if population is not None:
            population.stale = True

    def clear(self) -> None:
        self._entries.clear()
        self.size = 0

        for population in self._populations.values():
            population.stale = True

        self._populations.clear()

    def _store(self, key: Path, content: bytes) -> None:
        length = self.length(content)

        if length > self.max_size:
            logger.debug(f'InMemoryStorage: {key} is too big to be stored '
                         f'({length} > {self.max_size})')
            return

        previous = self._entries.pop(key, None)

        if previous is not None:
            self.size -= self.length(previous)

        while self._entries and self.size + length > self.max_size:
            _, evicted = self._entries.popitem(last=False)
            self.size -= self.length(evicted)

        self._entries[key] = content
        self.size += length

    def _forget(self, key: Path, population: _Population) -> None:
        if self._populations.get(key) is population:
            del self._populations[key]

    def _abort(self, key: Path, population: _Population, error: BaseException) -> None:
        self._forget(key, population)
        population.finish(error)

    def __contains__(self, key: Path) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
