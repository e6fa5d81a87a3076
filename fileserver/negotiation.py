from dataclasses import dataclass
from typing import Optional

from .entities import FileStats, Request
from .typehints import Path
from .utils import fsutils

GZIP_SUFFIX = '.gz'
GZIP_ENCODING = 'gzip'


@dataclass(frozen=True)
class Negotiated:
    path: Path
    stats: FileStats
    # value for content-encoding header, None if original file is served
    encoding: Optional[str] = None


def accepts_gzip(request: Request) -> bool:
    return GZIP_ENCODING in (request.headers.get('accept-encoding') or '')


async def negotiate(file_name: Path, gzip_accepted: bool) -> Negotiated:
    """
    Picks the physical file to serve. Pre-compressed sibling is tried first
    if client accepts gzip, but its absence is not an error. Stat errors of
    the original file are raised as is
    """

    if gzip_accepted:
        gzip_file_name = file_name + GZIP_SUFFIX

        try:
            stats = await fsutils.stat(gzip_file_name)
        except OSError:
            pass
        else:
            return Negotiated(gzip_file_name, stats, GZIP_ENCODING)

    return Negotiated(file_name, await fsutils.stat(file_name))
