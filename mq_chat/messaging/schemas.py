"""
Message schema for chat traffic.

A chat message is an opaque UTF-8 line with no envelope: the body on the
wire is exactly the text the user typed.
"""

from dataclasses import dataclass
from typing import Optional

ENCODING = 'utf-8'


@dataclass
class ChatMessage:
    """A message delivered by the broker to a consumer."""
    body: bytes
    delivery_tag: Optional[int] = None
    redelivered: bool = False
    acked: bool = False

    @property
    def text(self) -> str:
        return decode_body(self.body)


def encode_line(line) -> bytes:
    """Encode one line of user input as a message body. Raw bytes pass through untouched."""
    if isinstance(line, bytes):
        return line
    return line.encode(ENCODING)


def decode_body(body: bytes) -> str:
    return body.decode(ENCODING, errors='replace')


def strip_line_terminator(line):
    """Drop a single trailing '\\n' or '\\r\\n' (str or bytes), leaving other whitespace alone."""
    crlf, lf = ('\r\n', '\n') if isinstance(line, str) else (b'\r\n', b'\n')
    if line.endswith(crlf):
        return line[:-2]
    if line.endswith(lf):
        return line[:-1]
    return line
