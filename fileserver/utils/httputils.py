from http import HTTPStatus
from string import hexdigits
from typing import Union, Optional

HEX_TO_BYTE = {(a + b).encode(): bytes.fromhex(a + b)
               for a in hexdigits for b in hexdigits}
# statuses that never carry a body
BODILESS_CODES = {204, 304}


def status_description(code: int) -> bytes:
    try:
        return HTTPStatus(code).phrase.encode()
    except ValueError:
        return b'UNKNOWN'


def code_allows_body(code: int) -> bool:
    return code >= 200 and code not in BODILESS_CODES


def render_http_response(protocol: bytes,
                         code: int,
                         status_code: Optional[bytes],
                         headers: Union[dict, bytes],
                         body: bytes = b'') -> bytes:
    """
    A function for rendering http responses. Uses C-formatting as the only way for
    formatting byte-strings

    Arguments:
             protocol - protocol version, string in format `major.minor`,
             code - response status code,
             status_code - may be None, than it'll be taken from http.HTTPStatus.
                           If no known status codes relate to the status code, UNKNOWN
                           will be used
             headers - a dict (or CaseInsensitiveDict) with headers. May be bytes, than
                       they won't be rendered
             body - only bytes are accepted
    """

    if not isinstance(headers, bytes):
        headers = '\r\n'.join(
            f'{key}: {value}' for key, value in headers.items()
        ).encode()

    description = status_code or status_description(code)

    if headers:
        return b'HTTP/%s %d %s\r\n%s\r\n\r\n%s' % (protocol, code, description, headers, body)

    return b'HTTP/%s %d %s\r\n\r\n%s' % (protocol, code, description, body)


def render_chunk(chunk: bytes) -> bytes:
    # we don't need 0x part; an empty chunk is the terminating one
    return b'%s\r\n%s\r\n' % (hex(len(chunk))[2:].encode(), chunk)


def decode_url(bytestring: bytes) -> bytes:
    bits = bytestring.split(b'%')
    decoded: bytes = bits[0]

    for item in bits[1:]:
        try:
            decoded += HEX_TO_BYTE[item[:2]] + item[2:]
        except KeyError:
            decoded += b'%' + item

    return decoded
