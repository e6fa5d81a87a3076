"""
Tests for the pieces FileServer is made of: path guard, negotiation,
conditional responses and error translation.
"""

import asyncio
import os

import pytest

from fileserver import FileStats, Request, Response
from fileserver.conditional import Outcome, compute_etag, evaluate, sha1_hexdigest
from fileserver.exceptions import ConfigurationError, HTTPNotFound, translate_error
from fileserver.negotiation import accepts_gzip, negotiate
from fileserver.pathguard import DirectoryGuard

from .conftest import write_file

MIME_TYPES = {'.txt': 'text/plain', '.html': 'text/html'}


class TestDirectoryGuard:
    def test_resolves_mime_type(self):
        guard = DirectoryGuard('./files', MIME_TYPES)

        assert guard.resolve('bar/foo.txt') == (os.path.join('files', 'bar', 'foo.txt'), 'text/plain')

    def test_inner_parent_segments_stay_inside(self):
        guard = DirectoryGuard('./files', MIME_TYPES)

        assert guard.resolve('bar/../foo.html') == (os.path.join('files', 'foo.html'), 'text/html')

    def test_dots_in_file_name_are_not_traversal(self):
        guard = DirectoryGuard('./files', MIME_TYPES)

        assert guard.resolve('foo..txt')[0] == os.path.join('files', 'foo..txt')

    def test_unknown_extension(self):
        guard = DirectoryGuard('./files', MIME_TYPES)

        with pytest.raises(HTTPNotFound) as exc_info:
            guard.resolve('bar/foo.png')

        assert exc_info.value.message == f'404: Not Found {os.path.join("files", "bar", "foo.png")}'

    def test_no_extension(self):
        guard = DirectoryGuard('./files', MIME_TYPES)

        with pytest.raises(HTTPNotFound):
            guard.resolve('Makefile')

    def test_traversal_does_not_leak_joined_path(self):
        guard = DirectoryGuard('./files', MIME_TYPES)

        with pytest.raises(HTTPNotFound) as exc_info:
            guard.resolve('../../foo.txt')

        assert exc_info.value == HTTPNotFound('404: Not Found ../../foo.txt')

    def test_absolute_path_is_traversal(self):
        guard = DirectoryGuard('./files', MIME_TYPES)

        with pytest.raises(HTTPNotFound) as exc_info:
            guard.resolve('/etc/passwd.txt')

        assert exc_info.value.message == '404: Not Found /etc/passwd.txt'

    def test_empty_mime_table_is_allowed(self):
        guard = DirectoryGuard('./files', {})

        with pytest.raises(HTTPNotFound):
            guard.resolve('foo.txt')

    def test_extension_without_period(self):
        with pytest.raises(ConfigurationError, match='Extension found without a leading period'):
            DirectoryGuard('./files', {'txt': 'text/plain'})


class TestNegotiation:
    @pytest.mark.parametrize('headers, expected', [
        ({'accept-encoding': 'gzip, deflate'}, True),
        ({'Accept-Encoding': 'foo gzip bar'}, True),
        ({'accept-encoding': 'br'}, False),
        ({}, False),
    ])
    def test_accepts_gzip(self, headers, expected):
        assert accepts_gzip(Request(headers=headers)) is expected

    def test_prefers_existing_variant(self, tmp_path):
        path = write_file(tmp_path, 'app.js', b'plain')
        write_file(tmp_path, 'app.js.gz', b'gz')

        negotiated = asyncio.run(negotiate(path, True))

        assert negotiated.path == path + '.gz'
        assert negotiated.encoding == 'gzip'
        assert negotiated.stats.size == 2

    def test_missing_variant(self, tmp_path):
        path = write_file(tmp_path, 'app.js', b'plain')

        negotiated = asyncio.run(negotiate(path, True))

        assert negotiated.path == path
        assert negotiated.encoding is None
        assert negotiated.stats.size == 5

    def test_variant_ignored_without_gzip(self, tmp_path):
        path = write_file(tmp_path, 'app.js', b'plain')
        write_file(tmp_path, 'app.js.gz', b'gz')

        negotiated = asyncio.run(negotiate(path, False))

        assert negotiated.path == path
        assert negotiated.encoding is None

    def test_missing_original_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            asyncio.run(negotiate(os.path.join(str(tmp_path), 'nope.js'), True))


class TestConditional:
    STATS = FileStats(is_file=True, size=5, mtime_ms=1234)

    def test_etag_is_deterministic(self):
        assert compute_etag('./foo.txt', 1234) == compute_etag('./foo.txt', 1234)
        assert compute_etag('./foo.txt', 1234) == sha1_hexdigest('./foo.txt1234')
        assert compute_etag('./foo.txt', 1234) != compute_etag('./foo.txt', 1235)
        assert compute_etag('./foo.txt', 1234) != compute_etag('./bar.txt', 1234)

    def test_custom_hash_function(self):
        assert compute_etag('./foo.txt', 1234, lambda value: value) == './foo.txt1234'

    def test_ready(self):
        response = Response()

        outcome = evaluate(self.STATS, './foo.txt', 'bar', 123, Request(), response, encoding='gzip')

        assert outcome is Outcome.READY
        assert response.headers['etag'] == compute_etag('./foo.txt', 1234)
        assert response.headers['cache-control'] == 'private, max-age=123'
        assert response.headers['content-type'] == 'bar'
        assert response.headers['content-encoding'] == 'gzip'
        assert not response.finished

    def test_not_modified(self):
        request = Request(headers={'if-none-match': compute_etag('./foo.txt', 1234)})
        response = Response()

        outcome = evaluate(self.STATS, './foo.txt', 'bar', 0, request, response, encoding='gzip')

        assert outcome is Outcome.NOT_MODIFIED
        assert response.code == 304
        assert response.finished
        assert 'content-encoding' not in response.headers
        assert response.headers['cache-control'] == 'private, max-age=0'

    def test_empty_file(self):
        response = Response()

        outcome = evaluate(FileStats(True, 0, 1234), './foo.txt', 'bar', 0, Request(), response)

        assert outcome is Outcome.EMPTY
        assert response.code == 200
        assert response.finished
        assert response.headers['content-type'] == 'bar'

    def test_not_a_file(self):
        response = Response()

        with pytest.raises(HTTPNotFound) as exc_info:
            evaluate(FileStats(False, 4096, 1234), './foo', 'bar', 0, Request(), response)

        assert exc_info.value.message == '404: Not Found ./foo'
        assert 'etag' not in response.headers


class TestTranslateError:
    def test_missing_file(self):
        error = translate_error(FileNotFoundError(2, 'No such file or directory'), './foo.txt')

        assert error == HTTPNotFound('404: Not Found ./foo.txt')
        assert error.code == 404

    def test_other_errors_pass_through(self):
        failure = PermissionError(13, 'Permission denied')

        assert translate_error(failure, './foo.txt') is failure

    def test_shaped_errors_pass_through(self):
        not_found = HTTPNotFound('404: Not Found ../foo.txt')

        assert translate_error(not_found, './foo.txt') is not_found
