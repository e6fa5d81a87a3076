from typing import Optional


class FileServerError(Exception):
    pass


class ConfigurationError(FileServerError, ValueError):
    """
    Raised synchronously by constructors and handler factories when they
    receive missing or malformed arguments. Never reaches error callbacks
    """


class ResponseError(FileServerError):
    pass


class StorageError(FileServerError):
    pass


class WatchError(FileServerError):
    def __init__(self, path: str, reason: Optional[BaseException] = None):
        self.path = path
        self.reason = reason

        super(WatchError, self).__init__(f'failed to watch {path}: {reason}')


class HTTPError(FileServerError):
    code: int = 500
    description: str = 'Internal Server Error'

    def __init__(self, message: Optional[str] = None):
        self.message = message or f'{self.code}: {self.description}'

        super(HTTPError, self).__init__(self.message)

    def __eq__(self, other):
        if not isinstance(other, HTTPError):
            return NotImplemented

        return (self.code, self.message) == (other.code, other.message)

    def __hash__(self):
        return hash((self.code, self.message))

    def __repr__(self):
        return f'{type(self).__name__}(code={self.code}, message={self.message!r})'


class HTTPNotFound(HTTPError):
    code = 404
    description = 'Not Found'

    @classmethod
    def for_name(cls, name: str) -> 'HTTPNotFound':
        return cls(f'404: Not Found {name}')


def translate_error(error: BaseException, file_name: str) -> BaseException:
    """
    Normalizes a failure into the shape handed to the error callback: a
    missing file becomes HTTPNotFound that names the originally requested
    file, everything else (already shaped errors included) passes through
    untouched
    """

    if isinstance(error, FileNotFoundError):
        return HTTPNotFound.for_name(file_name)

    return error
