import socket
import asyncio
import logging
from typing import Optional, Union

from httptools import HttpRequestParser
from httptools.parser.errors import HttpParserError

from . import base
from ..typehints import AsyncFunction
from ..entities import Response, CaseInsensitiveDict
from ..utils.httputils import render_http_response
from ..parser.httptools_protocol import Protocol as LLHttpProtocol

CLIENT_DISCONNECTED = 'constant for client runners tasks to stop themselves silently'
PRE_RENDERED_BAD_REQUEST = render_http_response(
    protocol=b'1.1',
    code=400,
    status_code=b'Bad Request',
    headers=b'content-type: text/html\r\ncontent-length: 24\r\nconnection: close',
    body=b'<h1>400 Bad Request</h1>'
)

logger = logging.getLogger(__name__)


class AsyncioServerProtocol(asyncio.Protocol):
    def __init__(self,
                 handler: AsyncFunction,
                 default_headers: CaseInsensitiveDict):
        self.handler = handler
        self.default_headers = default_headers
        self.transport: Optional[asyncio.Transport] = None
        self.protocol = LLHttpProtocol()
        self.parser = HttpRequestParser(self.protocol)
        self.protocol.parser = self.parser

        self.requests_queue: 'asyncio.Queue[Union[bytes, str]]' = asyncio.Queue()
        self.runner: Optional[asyncio.Task] = None

    def connection_made(self, transport: asyncio.Transport) -> None:
        self.transport = transport
        self.runner = asyncio.create_task(client_runner(
            requests_queue=self.requests_queue,
            handler=self.handler,
            parser=self.parser,
            protocol=self.protocol,
            transport=transport,
            default_headers=self.default_headers
        ))

    def data_received(self, data: bytes) -> None:
        self.requests_queue.put_nowait(data)

    def connection_lost(self, _) -> None:
        # connection_lost callback receives one positional argument - Exception
        # object. But we actually don't need it, as we anyway doesn't care,
        # it's client's problem
        self.requests_queue.put_nowait(CLIENT_DISCONNECTED)


class AioHTTPServer(base.HTTPServer):
    def __init__(self,
                 sock: socket.socket,
                 max_conns: int,
                 handler: AsyncFunction,
                 default_headers: CaseInsensitiveDict,
                 on_begin_serving=None):
        super(AioHTTPServer, self).__init__(
            sock=sock,
            max_conns=max_conns,
            handler=handler,
            default_headers=default_headers,
            on_begin_serving=on_begin_serving
        )

        self.server: Optional[asyncio.AbstractServer] = None
        sock.listen(max_conns)

    async def poll(self):
        loop = asyncio.get_running_loop()
        server = await loop.create_server(
            lambda: AsyncioServerProtocol(self.handler, self.default_headers),
            sock=self.sock,
            start_serving=False
        )
        self.server = server

        if self.on_begin_serving is not None:
            self.on_begin_serving()

        await server.serve_forever()

    def stop(self):
        if self.server is not None:
            self.server.close()


async def client_runner(requests_queue: asyncio.Queue,
                        handler: AsyncFunction,
                        parser: HttpRequestParser,
                        protocol: LLHttpProtocol,
                        transport: asyncio.Transport,
                        default_headers: CaseInsensitiveDict) -> None:
    """
    Requests of a single connection are processed one by one, in the order
    they came
    """

    while True:
        data = await requests_queue.get()

        if data == CLIENT_DISCONNECTED:
            return

        try:
            parser.feed_data(data)
        except HttpParserError as exc:
            logger.debug(f'dropping connection: malformed request: {exc}')
            transport.write(PRE_RENDERED_BAD_REQUEST)
            transport.close()
            return

        while protocol.completed:
            request = protocol.completed.pop(0)
            response = Response(send=transport.write, default_headers=default_headers)
            await handler(request, response)

            if not response.finished or not request.ctx.get('keep_alive', True):
                # handler gave up on the response, there is no way to
                # tell the client where the message ends
                transport.close()
                return
