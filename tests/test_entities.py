"""
Tests for request/response objects and HTTP rendering helpers.
"""

import os

import pytest

from fileserver import CaseInsensitiveDict, FileStats, Request, Response
from fileserver.exceptions import ResponseError
from fileserver.utils.httputils import decode_url, render_chunk, render_http_response

from .conftest import write_file


class TestCaseInsensitiveDict:
    def test_keys_are_case_insensitive(self):
        headers = CaseInsensitiveDict({'Content-Type': 'text/plain'}, Server='fileserver')

        assert headers['content-type'] == 'text/plain'
        assert headers['SERVER'] == 'fileserver'
        assert 'CONTENT-TYPE' in headers
        assert headers.get('missing', 'instead') == 'instead'

    def test_pop_and_delete(self):
        headers = CaseInsensitiveDict({'ETag': 'abc', 'Vary': 'accept-encoding'})

        assert headers.pop('etag') == 'abc'
        assert headers.pop('etag', None) is None

        del headers['VARY']
        assert len(headers) == 0

    def test_copy(self):
        headers = CaseInsensitiveDict(ETag='abc')
        copied = headers.copy()
        copied['etag'] = 'other'

        assert isinstance(copied, CaseInsensitiveDict)
        assert headers['etag'] == 'abc'


class TestFileStats:
    def test_from_stat_result(self, tmp_path):
        path = write_file(tmp_path, 'foo.txt', b'hello', mtime_ms=1_600_000_000_123)

        stats = FileStats.from_stat_result(os.stat(path))

        assert stats == FileStats(is_file=True, size=5, mtime_ms=1_600_000_000_123)

    def test_directory_is_not_a_file(self, tmp_path):
        assert not FileStats.from_stat_result(os.stat(str(tmp_path))).is_file


class TestResponse:
    def test_buffers_body_without_send(self):
        response = Response()
        response.set_header('Content-Type', 'text/plain')

        response.write(b'hello ')
        response.end(b'world')

        assert bytes(response.body) == b'hello world'
        assert response.headers_sent
        assert response.finished

    def test_end_sets_content_length(self):
        sent = []
        response = Response(send=sent.append)
        response.set_header('Content-Type', 'text/plain')

        response.end(b'hello')

        assert sent == [
            b'HTTP/1.1 200 OK\r\ncontent-type: text/plain\r\ncontent-length: 5\r\n\r\n',
            b'hello',
        ]

    def test_streamed_body_is_chunked(self):
        sent = []
        response = Response(send=sent.append)

        response.write(b'hello')
        response.write(b' world')
        response.end()

        assert sent[0].startswith(b'HTTP/1.1 200 OK\r\n')
        assert b'transfer-encoding: chunked' in sent[0]
        assert b''.join(sent[1:]) == b'5\r\nhello\r\n6\r\n world\r\n0\r\n\r\n'

    def test_not_modified_has_no_body(self):
        sent = []
        response = Response(send=sent.append)
        response.set_header('ETag', 'abc')

        response.write_head(304)
        response.end()

        assert sent == [b'HTTP/1.1 304 Not Modified\r\netag: abc\r\n\r\n']

    def test_write_after_end(self):
        response = Response()
        response.end()

        with pytest.raises(ResponseError):
            response.write(b'late')

        with pytest.raises(ResponseError):
            response.end()

    def test_headers_are_frozen_once_sent(self):
        response = Response()
        response.write(b'started')

        with pytest.raises(ResponseError):
            response.set_header('ETag', 'abc')

        with pytest.raises(ResponseError):
            response.write_head(500)

    def test_remove_header(self):
        response = Response(default_headers={'Server': 'fileserver'})

        response.remove_header('server')
        response.remove_header('missing')

        assert not response.has_header('Server')


class TestHttpUtils:
    def test_render_http_response(self):
        rendered = render_http_response(b'1.1', 404, None, {'content-length': 0})

        assert rendered == b'HTTP/1.1 404 Not Found\r\ncontent-length: 0\r\n\r\n'

    def test_unknown_status(self):
        assert render_http_response(b'1.1', 599, None, {}) == b'HTTP/1.1 599 UNKNOWN\r\n\r\n'

    def test_render_chunk(self):
        assert render_chunk(b'x' * 26) == b'1a\r\n' + b'x' * 26 + b'\r\n'
        assert render_chunk(b'') == b'0\r\n\r\n'

    def test_decode_url(self):
        assert decode_url(b'/foo%20bar.txt') == b'/foo bar.txt'
        assert decode_url(b'/100%') == b'/100%'


def test_request_defaults():
    request = Request()

    assert request.method == 'GET'
    assert request.url == '/'
    assert request.headers == {}
