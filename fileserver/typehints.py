from typing import Any, AsyncIterable, Awaitable, Callable, Optional, Protocol

Path = str
MimeType = str
ETag = str
AsyncFunction = Callable[..., Awaitable]
ChangeCallback = Callable[[Path], None]
SourceFactory = Callable[[Path], Awaitable[None]]
ByteSource = AsyncIterable[bytes]
HashFunction = Callable[[str], str]


class Sink(Protocol):
    """
    Anything the storage can deliver bytes to. Response objects are sinks
    """

    def write(self, chunk: bytes) -> None:
        ...

    def end(self, chunk: bytes = b'') -> None:
        ...


class ErrorCallback(Protocol):
    def __call__(self, error: BaseException, request: Any, response: Any) -> Optional[Awaitable[None]]:
        ...

