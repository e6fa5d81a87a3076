from .base import Storage
from .memory import InMemoryStorage, DEFAULT_MAX_SIZE

__all__ = ['Storage', 'InMemoryStorage', 'DEFAULT_MAX_SIZE']
