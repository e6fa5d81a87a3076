import asyncio
import inspect
import logging
from typing import Callable, Mapping, Optional, Set

from . import conditional, negotiation
from .conditional import Outcome
from .entities import Request, Response
from .exceptions import ConfigurationError, translate_error
from .pathguard import DirectoryGuard
from .storage.base import Storage
from .storage.memory import InMemoryStorage, DEFAULT_MAX_SIZE
from .typehints import AsyncFunction, ErrorCallback, HashFunction, MimeType, Path
from .utils import fsutils
from .watcher import WatchRegistry, default_registry

DEFAULT_CACHE_SIZE = DEFAULT_MAX_SIZE
DEFAULT_MIME_TYPE = 'text/plain'

logger = logging.getLogger(__name__)


class FileServer:
    """
    Serves single files or whole directories, keeping their contents in the
    storage until files change on disk.

        file_server = FileServer(on_error)
        index = file_server.serve_file('static/index.html', 'text/html', max_age=60)
        assets = file_server.serve_directory('static', {'.css': 'text/css'})

        await index(request, response)
        await assets(request, response, 'css/main.css')

    Every failure of a request is handed to on_error(error, request, response)
    exactly once: a missing file as HTTPNotFound, anything else as it was
    raised. Writing an error response is up to the callback
    """

    def __init__(self,
                 error_callback: ErrorCallback,
                 cache_size: Optional[int] = None,
                 registry: Optional[WatchRegistry] = None,
                 storage: Optional[Storage] = None,
                 hash_function: Optional[HashFunction] = None):
        if not error_callback or not callable(error_callback):
            raise ConfigurationError('Must supply an error callback to FileServer')

        self.error_callback = error_callback
        self.storage = storage or InMemoryStorage(
            max_size=DEFAULT_CACHE_SIZE if cache_size is None else cache_size
        )
        self.registry = registry or default_registry()
        self.hash_function = hash_function

        # paths this instance listens to, for closing them later
        self.watched: Set[Path] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def serve_file(self,
                   file_name: Path,
                   mime_type: MimeType = DEFAULT_MIME_TYPE,
                   max_age: int = 0) -> AsyncFunction:
        if not file_name or not isinstance(file_name, str):
            raise ConfigurationError('Must provide a file_name to serve_file')

        self._watch(file_name)

        async def handler(request: Request, response: Response) -> None:
            await self._handle(file_name, mime_type, max_age, request, response)

        return handler

    def serve_directory(self,
                        root_directory: Path,
                        mime_types: Mapping[str, MimeType],
                        max_age: int = 0) -> AsyncFunction:
        guard = DirectoryGuard(root_directory, mime_types)

        async def handler(request: Request,
                          response: Response,
                          file_name: Optional[Path] = None) -> None:
            if file_name is None:
                file_name = request.url[1:]

            try:
                file_path, mime_type = guard.resolve(file_name)
            except Exception as exc:
                return await self._report(exc, request, response)

            await self._handle(file_path, mime_type, max_age, request, response)

        return handler

    def close(self, on_close: Optional[Callable[[], None]] = None) -> None:
        self.registry.release_owner(self)
        self.watched.clear()

        if on_close is not None:
            on_close()

    async def _handle(self,
                      file_name: Path,
                      mime_type: MimeType,
                      max_age: int,
                      request: Request,
                      response: Response) -> None:
        # watch could not be started before, or has been lost since
        self._watch(file_name)

        try:
            await self._serve(file_name, mime_type, max_age, request, response)
        except Exception as exc:
            await self._report(translate_error(exc, file_name), request, response)

    async def _serve(self,
                     file_name: Path,
                     mime_type: MimeType,
                     max_age: int,
                     request: Request,
                     response: Response) -> None:
        self._loop = asyncio.get_running_loop()

        negotiated = await negotiation.negotiate(file_name, negotiation.accepts_gzip(request))
        outcome = conditional.evaluate(
            stats=negotiated.stats,
            file_name=file_name,
            mime_type=mime_type,
            max_age=max_age,
            request=request,
            response=response,
            encoding=negotiated.encoding,
            hash_function=self.hash_function
        )

        if outcome is Outcome.READY:
            await self._deliver(negotiated.path, response)

    async def _deliver(self, path: Path, response: Response) -> None:
        """
        Write-through delivery: the storage calls populate() only on a miss,
        and populate() opens exactly one fresh stream for that call
        """

        async def populate(key: Path) -> None:
            await self.storage.read(key, fsutils.read_chunks(key))

        await self.storage.write(path, response, populate)

    async def _report(self, error: BaseException, request: Request, response: Response) -> None:
        result = self.error_callback(error, request, response)

        if inspect.isawaitable(result):
            await result

    def _watch(self, file_name: Path) -> None:
        if self.registry.acquire(file_name, self, self._on_change):
            self.watched.add(file_name)

    def _on_change(self, path: Path) -> None:
        loop = self._loop

        if loop is not None and not loop.is_closed() and _running_loop() is not loop:
            loop.call_soon_threadsafe(self._invalidate, path)
        else:
            self._invalidate(path)

    def _invalidate(self, path: Path) -> None:
        self.storage.delete(path)
        logger.info(f'FileServer: invalidated cached file "{path}"')

    def __repr__(self):
        return f'<FileServer watching={len(self.watched)}>'


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
