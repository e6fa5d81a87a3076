import argparse
import logging
from sys import argv
from typing import List, Optional

from .core import DEFAULT_CACHE_SIZE
from .webserver import Settings, WebServer, LOGGING_FORMAT


def parse_args(cmd: List[str]) -> argparse.Namespace:
    arguments_parser = argparse.ArgumentParser(
        prog='fileserver',
        description='Serve a directory with in-memory caching and conditional GET'
    )
    arguments_parser.add_argument('root', metavar='ROOT', nargs='?', default='.')
    arguments_parser.add_argument('--host', default='127.0.0.1')
    arguments_parser.add_argument('--port', default=9090, type=int)
    arguments_parser.add_argument('--max-age', default=0, type=int)
    arguments_parser.add_argument('--cache-size', default=DEFAULT_CACHE_SIZE, type=int)
    arguments_parser.add_argument('--verbose', '-v', action='store_true')

    return arguments_parser.parse_args(cmd)


def settings_from_args(parsed: argparse.Namespace) -> Settings:
    return Settings(
        root_directory=parsed.root,
        host=parsed.host,
        port=parsed.port,
        max_age=parsed.max_age,
        cache_size=parsed.cache_size
    )


def main(cmd: Optional[List[str]] = None) -> None:
    parsed = parse_args(argv[1:] if cmd is None else cmd)

    logging.basicConfig(
        format=LOGGING_FORMAT,
        level=logging.DEBUG if parsed.verbose else logging.INFO
    )

    WebServer(settings_from_args(parsed)).run()


if __name__ == '__main__':
    main()
