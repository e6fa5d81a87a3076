import os
import asyncio
from typing import AsyncIterator

from ..entities import FileStats
from ..typehints import Path

CHUNK_SIZE = 64 * 1024


async def stat(path: Path) -> FileStats:
    loop = asyncio.get_running_loop()
    stat_result = await loop.run_in_executor(None, os.stat, path)

    return FileStats.from_stat_result(stat_result)


async def read_chunks(path: Path, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
    """
    Fresh read stream of the file. Opening, reading and closing happen in
    the default executor, so the event loop is never blocked by disk
    """

    loop = asyncio.get_running_loop()
    fd = await loop.run_in_executor(None, open, path, 'rb')

    try:
        while True:
            chunk = await loop.run_in_executor(None, fd.read, chunk_size)

            if not chunk:
                return

            yield chunk
    finally:
        fd.close()
