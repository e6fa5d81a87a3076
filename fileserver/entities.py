import os
import stat
from dataclasses import dataclass
from typing import Union, Any, Optional, Callable, Mapping

from .exceptions import ResponseError
from .utils.httputils import render_http_response, render_chunk, code_allows_body


class CaseInsensitiveDict(dict):
    """
    A class that works absolutely like usual dict, but keys are case-insensitive
    Do not try to make him work with anything that is not bytes or a string!
    """

    def __init__(self, *args, **kwargs):
        # it's really faster to call super() once
        # and get it from self, than call it every time
        self.__parent = super()
        super().__init__()
        self.update(dict(*args, **kwargs))

    def __getitem__(self, item: Union[str, bytes]) -> Any:
        return self.__parent.__getitem__(item.lower())

    def __setitem__(self, key: Union[str, bytes], value: Any) -> None:
        self.__parent.__setitem__(key.lower(), value)

    def __delitem__(self, key: Union[str, bytes]) -> None:
        self.__parent.__delitem__(key.lower())

    def __contains__(self, item: Union[str, bytes]) -> bool:
        return self.__parent.__contains__(item.lower())

    def get(self, item: Union[str, bytes], instead: Any = None) -> Any:
        return self.__parent.get(item.lower(), instead)

    def pop(self, key: Union[str, bytes], *default) -> Any:
        return self.__parent.pop(key.lower(), *default)

    def setdefault(self, key: Union[str, bytes], default: Any = None) -> Any:
        return self.__parent.setdefault(key.lower(), default)

    def update(self, other=(), **kwargs):
        if isinstance(other, Mapping):
            other = other.items()

        self.__parent.update(
            {key.lower(): value for key, value in other},
            **{key.lower(): value for key, value in kwargs.items()}
        )

    def copy(self) -> 'CaseInsensitiveDict':
        return CaseInsensitiveDict(self.items())


@dataclass(frozen=True)
class FileStats:
    is_file: bool
    size: int
    mtime_ms: int

    @classmethod
    def from_stat_result(cls, stat_result: os.stat_result) -> 'FileStats':
        return cls(
            is_file=stat.S_ISREG(stat_result.st_mode),
            size=stat_result.st_size,
            mtime_ms=stat_result.st_mtime_ns // 1_000_000
        )


class Request:
    def __init__(self,
                 method: str = 'GET',
                 url: str = '/',
                 headers: Optional[Mapping[str, str]] = None,
                 protocol: str = '1.1'):
        self.method = method
        # path part only, percent-decoded, without query and fragment
        self.url = url
        self.headers = CaseInsensitiveDict(headers or {})
        self.protocol = protocol

        # exchanging data between the embedder and its error callback
        self.ctx: dict = {}

    def __repr__(self):
        return f'<Request {self.method} {self.url}>'


class Response:
    """
    Response is an outbound message. When `send` is given, everything is
    pushed to it as soon as it is written: status line and headers first,
    then the body (chunked, unless content-length header was set).
    Otherwise the body is collected into `body`, so the embedder can render
    the response by itself
    """

    def __init__(self,
                 send: Optional[Callable[[bytes], None]] = None,
                 default_headers: Optional[Mapping[str, str]] = None,
                 protocol: bytes = b'1.1'):
        self.send = send
        self.protocol = protocol

        self.code: int = 200
        self.headers = CaseInsensitiveDict(default_headers or {})
        self.body = bytearray()

        self.headers_sent = False
        self.finished = False
        self._chunked = False

    def set_header(self, name: str, value: Any) -> None:
        if self.headers_sent:
            raise ResponseError(f'cannot set header {name}: headers are already sent')

        self.headers[name] = str(value)

    def get_header(self, name: str, instead: Any = None) -> Any:
        return self.headers.get(name, instead)

    def has_header(self, name: str) -> bool:
        return name in self.headers

    def remove_header(self, name: str) -> None:
        self.headers.pop(name, None)

    def write_head(self, code: int, headers: Optional[Mapping[str, Any]] = None) -> None:
        if self.headers_sent:
            raise ResponseError('headers are already sent')

        self.code = code

        for name, value in (headers or {}).items():
            self.set_header(name, value)

    def write(self, chunk: bytes) -> None:
        if self.finished:
            raise ResponseError('write after end')

        if not self.headers_sent:
            self._flush_headers()

        if not chunk or not code_allows_body(self.code):
            return

        if self.send is None:
            self.body += chunk
        elif self._chunked:
            self.send(render_chunk(chunk))
        else:
            self.send(chunk)

    def end(self, chunk: bytes = b'') -> None:
        if self.finished:
            raise ResponseError('response is already finished')

        if not self.headers_sent and self.send is not None \
                and 'content-length' not in self.headers and code_allows_body(self.code):
            # whole body is known here, so no need in chunked transmission
            self.headers['content-length'] = str(len(chunk))

        self.write(chunk)
        self.finished = True

        if self._chunked:
            self.send(render_chunk(b''))

    def _flush_headers(self) -> None:
        self.headers_sent = True

        if self.send is None:
            return

        if code_allows_body(self.code) and 'content-length' not in self.headers:
            self.headers['transfer-encoding'] = 'chunked'
            self._chunked = True

        self.send(render_http_response(
            protocol=self.protocol,
            code=self.code,
            status_code=None,
            headers=self.headers
        ))

    def __repr__(self):
        return f'<Response {self.code} finished={self.finished}>'
