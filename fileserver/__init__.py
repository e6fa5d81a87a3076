from .core import FileServer, DEFAULT_CACHE_SIZE, DEFAULT_MIME_TYPE
from .entities import Request, Response, FileStats, CaseInsensitiveDict
from .exceptions import (FileServerError, ConfigurationError, HTTPError,
                         HTTPNotFound, ResponseError, StorageError, WatchError)
from .storage import Storage, InMemoryStorage
from .watcher import WatchRegistry, Notifier, InotifyNotifier, default_registry

__all__ = [
    'FileServer', 'DEFAULT_CACHE_SIZE', 'DEFAULT_MIME_TYPE',
    'Request', 'Response', 'FileStats', 'CaseInsensitiveDict',
    'FileServerError', 'ConfigurationError', 'HTTPError', 'HTTPNotFound',
    'ResponseError', 'StorageError', 'WatchError',
    'Storage', 'InMemoryStorage',
    'WatchRegistry', 'Notifier', 'InotifyNotifier', 'default_registry',
]
