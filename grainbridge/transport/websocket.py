"""
RFC 6455 subset: handshake helpers and single-frame encode/decode.

The server only pushes unfragmented text frames.  Inbound traffic is
limited to control frames (close, ping, pong), so no message reassembly
is performed.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import struct
from dataclasses import dataclass
from enum import IntEnum

from grainbridge.transport.http import HTTPRequest

logger = logging.getLogger(__name__)

WS_MAGIC = "258EAFA5-E914-47DA-95CA-C5AB0DC85B11"


class Opcode(IntEnum):
    TEXT = 0x1
    CLOSE = 0x8
    PING = 0x9
    PONG = 0xA


@dataclass(frozen=True)
class Frame:
    opcode: int
    payload: bytes
    fin: bool = True


def accept_key(client_key: str) -> str:
    """Compute ``Sec-WebSocket-Accept`` for a client's ``Sec-WebSocket-Key``."""
    digest = hashlib.sha1((client_key + WS_MAGIC).encode("utf-8")).digest()
    return base64.b64encode(digest).decode("utf-8")


def is_upgrade_request(request: HTTPRequest, events_path: str) -> bool:
    """True when *request* asks to upgrade the event stream path."""
    if request.path != events_path:
        return False
    upgrade = (request.header("upgrade") or "").lower()
    connection = (request.header("connection") or "").lower()
    return upgrade == "websocket" and "upgrade" in connection


def encode_handshake(client_key: str) -> bytes:
    """The 101 Switching Protocols response for *client_key*."""
    lines = [
        "HTTP/1.1 101 Switching Protocols",
        "Upgrade: websocket",
        "Connection: Upgrade",
        f"Sec-WebSocket-Accept: {accept_key(client_key)}",
    ]
    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")


def _apply_mask(payload: bytes, mask_key: bytes) -> bytes:
    return bytes(b ^ mask_key[i % 4] for i, b in enumerate(payload))


def encode_frame(opcode: int, payload: bytes = b"", mask_key: bytes | None = None) -> bytes:
    """Encode a single FIN frame.

    Server-to-client frames are unmasked; *mask_key* exists for clients
    (tests) that must mask what they send.
    """
    length = len(payload)
    header = bytearray([0x80 | (int(opcode) & 0x0F)])
    mask_bit = 0x80 if mask_key is not None else 0x00
    if length <= 125:
        header.append(mask_bit | length)
    elif length < 65536:
        header.append(mask_bit | 126)
        header.extend(struct.pack("!H", length))
    else:
        header.append(mask_bit | 127)
        header.extend(struct.pack("!Q", length))
    if mask_key is not None:
        if len(mask_key) != 4:
            raise ValueError("mask_key must be 4 bytes")
        header.extend(mask_key)
        payload = _apply_mask(payload, mask_key)
    return bytes(header) + payload


def encode_text(message: str) -> bytes:
    return encode_frame(Opcode.TEXT, message.encode("utf-8"))


def decode_frame(buffer: bytes) -> tuple[Frame, bytes] | None:
    """Decode one frame from the head of *buffer*.

    Returns ``(frame, remaining)`` or ``None`` when more bytes are needed.
    """
    if len(buffer) < 2:
        return None
    first, second = buffer[0], buffer[1]
    fin = bool(first & 0x80)
    opcode = first & 0x0F
    masked = bool(second & 0x80)
    length = second & 0x7F
    offset = 2

    if length == 126:
        if len(buffer) < offset + 2:
            return None
        (length,) = struct.unpack("!H", buffer[offset:offset + 2])
        offset += 2
    elif length == 127:
        if len(buffer) < offset + 8:
            return None
        (length,) = struct.unpack("!Q", buffer[offset:offset + 8])
        offset += 8

    mask_key = b""
    if masked:
        if len(buffer) < offset + 4:
            return None
        mask_key = buffer[offset:offset + 4]
        offset += 4

    if len(buffer) < offset + length:
        return None
    payload = buffer[offset:offset + length]
    if masked:
        payload = _apply_mask(payload, mask_key)
    return Frame(opcode=opcode, payload=bytes(payload), fin=fin), buffer[offset + length:]
