from typing import List, Optional

from httptools import HttpRequestParser

from ..entities import Request, CaseInsensitiveDict
from ..utils.httputils import decode_url


class Protocol:
    """
    Callbacks for httptools parser. Every parsed message becomes a Request
    object in `completed`, so pipelined requests are not lost
    """

    def __init__(self):
        self.completed: List[Request] = []
        self.parser: Optional[HttpRequestParser] = None

        self._reset()

    def _reset(self):
        self.request = Request()
        self.headers = CaseInsensitiveDict()
        self.raw_parameters: Optional[bytes] = None

    def on_message_begin(self):
        self._reset()

    def on_url(self, url: bytes):
        parameters = None

        if b'#' in url:
            url, _ = url.split(b'#', 1)

        if b'?' in url:
            url, parameters = url.split(b'?', 1)

        # decoding after splitting, so encoded ? and # stay in the path
        if b'%' in url:
            url = decode_url(url)

        self.request.url = url.decode('utf-8', 'replace')
        self.raw_parameters = parameters

    def on_header(self, header: bytes, value: bytes):
        self.headers[header.decode('latin-1')] = value.decode('latin-1')

    def on_headers_complete(self):
        self.request.method = self.parser.get_method().decode()
        self.request.protocol = self.parser.get_http_version()
        self.request.headers = self.headers
        self.request.ctx['keep_alive'] = self.parser.should_keep_alive()

    def on_message_complete(self):
        self.completed.append(self.request)
