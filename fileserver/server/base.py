import abc
import socket
from typing import Callable, Optional

from ..typehints import AsyncFunction
from ..entities import CaseInsensitiveDict


class HTTPServer(abc.ABC):
    """
    Base class for HTTP server implementation

    Includes implementation of __init__ method, and abstract poll(), stop()
    """

    def __init__(self,
                 sock: socket.socket,
                 max_conns: int,
                 handler: AsyncFunction,
                 default_headers: CaseInsensitiveDict,
                 on_begin_serving: Optional[Callable[[], None]] = None):
        self.sock = sock
        self.max_conns = max_conns
        self.handler = handler
        self.default_headers = default_headers
        self.on_begin_serving = on_begin_serving

    @abc.abstractmethod
    async def poll(self) -> None:
        """
        Blocking function that runs server infinity, but may be interrupted
        by exception that should be caught by webserver
        """

    @abc.abstractmethod
    def stop(self):
        """
        Stops the server in correct way
        """
