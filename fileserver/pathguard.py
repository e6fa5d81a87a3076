import os
from typing import Dict, Mapping, Tuple

from .exceptions import ConfigurationError, HTTPNotFound
from .typehints import MimeType, Path


class DirectoryGuard:
    """
    Maps a path relative to the root directory onto a file path and its MIME
    type. Files with extensions that are not in the MIME table and paths
    that escape the root directory are reported as not found
    """

    def __init__(self, root_directory: Path, mime_types: Mapping[str, MimeType]):
        if not root_directory or not isinstance(root_directory, str):
            raise ConfigurationError('Must provide a root_directory to serve_directory')

        if mime_types is None or not isinstance(mime_types, Mapping):
            raise ConfigurationError('Must provide a mime_types mapping to serve_directory')

        for extension in mime_types:
            if not isinstance(extension, str) or not extension.startswith(os.extsep):
                raise ConfigurationError(f'Extension found without a leading period '
                                         f'("{os.extsep}"): {extension}')

        self.root_directory = root_directory
        self.mime_types: Dict[str, MimeType] = dict(mime_types)

    def resolve(self, file_name: Path) -> Tuple[Path, MimeType]:
        file_path = os.path.normpath(os.path.join(self.root_directory, file_name))
        extension = os.path.splitext(file_path)[1].lower()
        mime_type = self.mime_types.get(extension)

        if not mime_type:
            raise HTTPNotFound.for_name(file_path)

        relative = os.path.relpath(file_path, self.root_directory)

        if os.pardir in relative.split(os.sep):
            # requested name only, the joined path must not leak
            raise HTTPNotFound.for_name(file_name)

        return file_path, mime_type
