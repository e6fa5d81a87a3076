"""
pytest configuration and fixtures.
"""

import os
from typing import Dict, List, Optional, Tuple

import pytest

from fileserver import FileServer, InMemoryStorage, Response, WatchRegistry
from fileserver.exceptions import WatchError
from fileserver.watcher import Notifier, Watch


class FakeWatch(Watch):
    def __init__(self, notifier: 'FakeNotifier', path: str):
        self.notifier = notifier
        self.path = path
        self.closed = False
        self.lost = False

    @property
    def active(self):
        return not self.closed and not self.lost

    def close(self):
        if not self.closed:
            self.closed = True
            self.notifier.closed.append(self.path)
            self.notifier.callbacks.pop(self.path, None)


class FakeNotifier(Notifier):
    """Notifier that only reports changes when it is told to."""

    def __init__(self):
        self.callbacks: Dict[str, callable] = {}
        self.watches: Dict[str, FakeWatch] = {}
        self.created: List[str] = []
        self.closed: List[str] = []
        self.refused: set = set()
        self.notifier_closed = False

    def watch(self, path, on_change):
        if path in self.refused:
            raise WatchError(path, FileNotFoundError(path))

        self.created.append(path)
        self.callbacks[path] = on_change
        self.watches[path] = FakeWatch(self, path)

        return self.watches[path]

    def emit(self, path):
        self.callbacks[path](path)

    def lose(self, path):
        """Like a watched directory being removed: one last change, then silence."""

        self.watches[path].lost = True
        self.emit(path)

    def close(self):
        self.notifier_closed = True


class RecordingStorage(InMemoryStorage):
    """InMemoryStorage that remembers every call made to it."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls: List[Tuple[str, str]] = []

    async def write(self, key, sink, on_miss):
        self.calls.append(('write', key))
        await super().write(key, sink, on_miss)

    async def read(self, key, source):
        self.calls.append(('read', key))
        await super().read(key, source)

    def delete(self, key):
        self.calls.append(('delete', key))
        super().delete(key)


class BrokenResponse(Response):
    """Response of a client that has gone away."""

    def write(self, chunk=b''):
        raise BrokenPipeError(32, 'Broken pipe')


class ErrorRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, error, request, response):
        self.calls.append((error, request, response))

    @property
    def errors(self):
        return [error for error, _, _ in self.calls]


def write_file(directory, name: str, content: bytes = b'', mtime_ms: Optional[int] = None) -> str:
    path = os.path.join(str(directory), name)
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, 'wb') as fd:
        fd.write(content)

    if mtime_ms is not None:
        os.utime(path, ns=(mtime_ms * 1_000_000, mtime_ms * 1_000_000))

    return path


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def registry(notifier) -> WatchRegistry:
    return WatchRegistry(notifier)


@pytest.fixture
def storage() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture
def errors() -> ErrorRecorder:
    return ErrorRecorder()


@pytest.fixture
def file_server(errors, registry, storage):
    server = FileServer(errors, registry=registry, storage=storage)
    yield server
    server.close()
