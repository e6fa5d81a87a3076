"""
Development server: serves a directory with FileServer over plain asyncio.
Not meant to be a general purpose HTTP server, just a way to run the file
server without embedding it anywhere
"""

import socket
import asyncio
import logging
import mimetypes
from dataclasses import dataclass, field
from typing import Dict, Optional, Type

from .core import FileServer, DEFAULT_CACHE_SIZE
from .entities import CaseInsensitiveDict, Request, Response
from .exceptions import HTTPError
from .server.base import HTTPServer
from .server.aiohttpserver import AioHTTPServer
from .utils import sockutils

LOGGING_FORMAT = '[%(asctime)s] [%(levelname)s] %(name)s: %(message)s'


def default_mime_types() -> Dict[str, str]:
    if not mimetypes.inited:
        mimetypes.init()

    return {extension.lower(): mime_type
            for extension, mime_type in mimetypes.types_map.items()}


@dataclass
class Settings:
    root_directory: str = field(default='.')
    host: str = field(default='127.0.0.1')
    port: int = field(default=9090)
    max_age: int = field(default=0)
    cache_size: int = field(default=DEFAULT_CACHE_SIZE)
    index_file: Optional[str] = field(default='index.html')
    max_bind_retries: Optional[int] = field(default=None)
    bind_retries_timeout: float = field(default=3)
    max_connections: int = field(default=1024)

    mime_types: Dict[str, str] = field(default_factory=default_mime_types)
    default_headers: CaseInsensitiveDict = field(
        default_factory=lambda: CaseInsensitiveDict(
            server='fileserver',
            connection='keep-alive'
        )
    )

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger('fileserver'))
    httpserver: Type[HTTPServer] = field(default=AioHTTPServer)


def make_error_callback(logger: logging.Logger):
    def error_callback(error: BaseException, request: Request, response: Response) -> None:
        if response.finished:
            return

        if response.headers_sent:
            # body was already going, the only honest thing is to give up
            logger.error(f'failed to send {request.url}: {error!r}')
            return

        if isinstance(error, HTTPError):
            code, message = error.code, error.message
        else:
            logger.error(f'failed to serve {request.url}: {error!r}')
            code, message = 500, '500: Internal Server Error'

        for header in ('etag', 'cache-control', 'content-encoding'):
            response.remove_header(header)

        response.write_head(code, {'Content-Type': 'text/html'})
        response.end(f'<h1>{message}</h1>'.encode())

    return error_callback


class WebServer:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self.logger = self.settings.logger

        self.file_server = FileServer(
            make_error_callback(self.logger),
            cache_size=self.settings.cache_size
        )
        self.serve_directory = self.file_server.serve_directory(
            self.settings.root_directory,
            self.settings.mime_types,
            self.settings.max_age
        )
        self.http_server: Optional[HTTPServer] = None

    async def handle(self, request: Request, response: Response) -> None:
        file_name = request.url[1:]

        if self.settings.index_file and (not file_name or file_name.endswith('/')):
            file_name += self.settings.index_file

        await self.serve_directory(request, response, file_name)

    def run(self) -> None:
        sock = socket.socket()
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, True)
        addr = f'{self.settings.host}:{self.settings.port}'

        self.logger.debug(f'trying to bind on {addr}...')

        succeeded, retries_went = sockutils.bind_sock(
            sock=sock,
            addr=(self.settings.host, self.settings.port),
            max_retries=self.settings.max_bind_retries or 99999,
            retries_timeout=self.settings.bind_retries_timeout
        )

        if not succeeded:
            self.logger.error(f'failed to bind server on {addr}: max retries exceeded '
                              f'(retries={retries_went}, '
                              f'retries_timeout={self.settings.bind_retries_timeout})')
            sock.close()
            raise SystemExit(1)

        self.http_server = self.settings.httpserver(
            sock,
            self.settings.max_connections,
            self.handle,
            self.settings.default_headers,
            lambda: self.logger.info(f'serving {self.settings.root_directory} on {addr}, '
                                     'press CTRL-C to stop the server')
        )

        try:
            asyncio.run(self.http_server.poll())
        except KeyboardInterrupt:
            self.logger.info('shutting down (aborted by user)...')
        finally:
            self.stop()

    def stop(self) -> None:
        if self.http_server is not None:
            self.http_server.stop()
            self.http_server = None

        self.file_server.close()
