"""Wire encoding of SFTP packets: integers, strings and length-prefixed framing."""

from __future__ import annotations

import dataclasses
from enum import IntEnum
from typing import Any, BinaryIO

MAX_MSG_LENGTH = 256 * 1024


class PacketType(IntEnum):
    """SSH_FXP packet type codes."""

    INIT = 1
    VERSION = 2
    OPEN = 3
    CLOSE = 4
    READ = 5
    WRITE = 6
    LSTAT = 7
    FSTAT = 8
    SETSTAT = 9
    FSETSTAT = 10
    OPENDIR = 11
    READDIR = 12
    REMOVE = 13
    MKDIR = 14
    RMDIR = 15
    REALPATH = 16
    STAT = 17
    RENAME = 18
    READLINK = 19
    SYMLINK = 20
    STATUS = 101
    HANDLE = 102
    DATA = 103
    NAME = 104
    ATTRS = 105
    EXTENDED = 200
    EXTENDED_REPLY = 201


class ShortPacketError(ValueError):
    """The packet ended before a complete field could be read."""

    def __init__(self, message: str = "packet too short") -> None:
        super().__init__(message)


class LongPacketError(ValueError):
    """The packet announced a length above the allowed maximum."""

    def __init__(self, message: str = "packet too long") -> None:
        super().__init__(message)


class UnknownExtendedPacketError(ValueError):
    """An extended request named an extension that is not supported."""

    def __init__(self, message: str = "unknown extended packet") -> None:
        super().__init__(message)


class Uint8(int):
    """An integer that ``marshal`` encodes as one byte."""


class Uint32(int):
    """An integer that ``marshal`` encodes as four bytes."""


class Uint64(int):
    """An integer that ``marshal`` encodes as eight bytes."""


def marshal_uint32(value: int) -> bytes:
    return int(value).to_bytes(4, "big")


def marshal_uint64(value: int) -> bytes:
    return int(value).to_bytes(8, "big")


def marshal_string(value: str | bytes) -> bytes:
    if isinstance(value, str):
        value = value.encode("utf-8", "surrogateescape")
    return marshal_uint32(len(value)) + bytes(value)


def marshal(value: Any) -> bytes:
    """Encode a value field by field.

    Plain ints are four bytes; Uint8 and Uint64 pick other widths. Dataclass
    instances and sequences are encoded element by element.
    """
    if value is None:
        return b""
    if isinstance(value, bool):
        raise TypeError(f"marshal({value!r}): cannot handle type bool")
    if isinstance(value, Uint8):
        return int(value).to_bytes(1, "big")
    if isinstance(value, Uint64):
        return marshal_uint64(value)
    if isinstance(value, int):
        return marshal_uint32(value)
    if isinstance(value, str):
        return marshal_string(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return b"".join(marshal(getattr(value, f.name)) for f in dataclasses.fields(value))
    if isinstance(value, (list, tuple)):
        return b"".join(marshal(item) for item in value)
    raise TypeError(f"marshal({value!r}): cannot handle type {type(value).__name__}")


def unmarshal_uint32(data: bytes) -> tuple[int, bytes]:
    """Decode a four-byte integer; return it with the remaining bytes."""
    if len(data) < 4:
        raise ShortPacketError()
    return int.from_bytes(data[:4], "big"), data[4:]


def unmarshal_uint64(data: bytes) -> tuple[int, bytes]:
    """Decode an eight-byte integer; return it with the remaining bytes."""
    if len(data) < 8:
        raise ShortPacketError()
    return int.from_bytes(data[:8], "big"), data[8:]


def unmarshal_string(data: bytes) -> tuple[str, bytes]:
    """Decode a length-prefixed string; return it with the remaining bytes."""
    length, rest = unmarshal_uint32(data)
    if length > len(rest):
        raise ShortPacketError()
    return bytes(rest[:length]).decode("utf-8", "surrogateescape"), rest[length:]


def _marshal_parts(packet: Any) -> tuple[bytes, bytes]:
    marshal_packet = getattr(packet, "marshal_packet", None)
    if callable(marshal_packet):
        header, payload = marshal_packet()
        return header, payload or b""
    return packet.marshal_binary(), b""


def send_packet(writer: BinaryIO, packet: Any) -> None:
    """Frame ``packet`` with its length and write it to ``writer``.

    The packet's header reserves its first four bytes for the length.
    """
    header, payload = _marshal_parts(packet)
    if len(header) < 4:
        raise ShortPacketError("packet header shorter than its length field")
    length = len(header) + len(payload) - 4
    framed = bytearray(header)
    framed[:4] = marshal_uint32(length)
    writer.write(bytes(framed))
    if payload:
        writer.write(bytes(payload))


def _read_full(reader: BinaryIO, size: int) -> bytes:
    chunks = bytearray()
    while len(chunks) < size:
        chunk = reader.read(size - len(chunks))
        if not chunk:
            if chunks:
                raise EOFError("unexpected EOF")
            raise EOFError("EOF")
        chunks += chunk
    return bytes(chunks)


def recv_packet(reader: BinaryIO) -> tuple[int, bytes]:
    """Read one framed packet; return its type byte and body."""
    length, _ = unmarshal_uint32(_read_full(reader, 4))
    if length > MAX_MSG_LENGTH:
        raise LongPacketError()
    if length == 0:
        raise ShortPacketError()
    body = _read_full(reader, length)
    return body[0], body[1:]