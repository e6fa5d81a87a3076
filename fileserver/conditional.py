import enum
import hashlib
from typing import Optional

from .entities import FileStats, Request, Response
from .exceptions import HTTPNotFound
from .typehints import ETag, HashFunction, MimeType, Path


class Outcome(enum.Enum):
    # headers are set, content has to be delivered
    READY = 'ready'
    # 304 was written and response is finished
    NOT_MODIFIED = 'not-modified'
    # file is empty, response is already finished
    EMPTY = 'empty'


def sha1_hexdigest(value: str) -> str:
    return hashlib.sha1(value.encode()).hexdigest()


def compute_etag(file_name: Path, mtime_ms: int,
                 hash_function: Optional[HashFunction] = None) -> ETag:
    return (hash_function or sha1_hexdigest)(f'{file_name}{mtime_ms}')


def evaluate(stats: FileStats,
             file_name: Path,
             mime_type: MimeType,
             max_age: int,
             request: Request,
             response: Response,
             encoding: Optional[str] = None,
             hash_function: Optional[HashFunction] = None) -> Outcome:
    """
    Sets caching headers and decides whether content has to be sent at all.
    Entity tag is computed from the requested file name (not the negotiated
    one) and modification time in milliseconds
    """

    if not stats.is_file:
        raise HTTPNotFound.for_name(file_name)

    etag = compute_etag(file_name, stats.mtime_ms, hash_function)

    response.set_header('ETag', etag)
    response.set_header('Cache-Control', f'private, max-age={max_age}')

    if request.headers.get('if-none-match') == etag:
        response.write_head(304)
        response.end()
        return Outcome.NOT_MODIFIED

    response.set_header('Content-Type', mime_type)

    if encoding is not None:
        response.set_header('Content-Encoding', encoding)

    if stats.size == 0:
        response.end()
        return Outcome.EMPTY

    return Outcome.READY
