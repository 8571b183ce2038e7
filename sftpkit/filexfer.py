"""Response packets of the file transfer protocol over a consumable byte buffer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from .codec import PacketType, ShortPacketError, marshal_string, marshal_uint32


class Status(IntEnum):
    """SSH_FX status codes carried by a status response."""

    OK = 0
    EOF = 1
    NO_SUCH_FILE = 2
    PERMISSION_DENIED = 3
    FAILURE = 4
    BAD_MESSAGE = 5
    NO_CONNECTION = 6
    CONNECTION_LOST = 7
    OP_UNSUPPORTED = 8

    def __str__(self) -> str:
        return f"SSH_FX_{self.name}"


def _status(code: int) -> Status | int:
    try:
        return Status(code)
    except ValueError:
        return code


def _status_label(code: int) -> str:
    if isinstance(code, Status):
        return str(code)
    try:
        return str(Status(code))
    except ValueError:
        return f"SSH_FX_STATUS({code})"


def _quote(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class Buffer:
    """Bytes read front to back by the consume methods, or grown by the append ones."""

    def __init__(self, data: bytes = b"") -> None:
        self._data = bytearray(data)
        self._offset = 0

    def __len__(self) -> int:
        return len(self._data) - self._offset

    def bytes(self) -> bytes:
        """The bytes not yet consumed."""
        return bytes(self._data[self._offset:])

    def _take(self, size: int) -> bytes:
        if len(self) < size:
            raise ShortPacketError()
        chunk = bytes(self._data[self._offset:self._offset + size])
        self._offset += size
        return chunk

    def consume_uint32(self) -> int:
        return int.from_bytes(self._take(4), "big")

    def consume_bytes(self) -> bytes:
        """Consume a length-prefixed byte string; the result is a copy."""
        length = self.consume_uint32()
        return self._take(length)

    def consume_string(self) -> str:
        return self.consume_bytes().decode("utf-8", "surrogateescape")

    def append_uint8(self, value: int) -> None:
        self._data.append(value)

    def append_uint32(self, value: int) -> None:
        self._data += marshal_uint32(value)

    def append_string(self, value: str | bytes) -> None:
        self._data += marshal_string(value)

    def start_packet(self, packet_type: PacketType, request_id: int) -> None:
        """Reset to a header: four length bytes left as zero, the type and the request id."""
        self._data = bytearray(4)
        self._offset = 0
        self.append_uint8(packet_type)
        self.append_uint32(request_id)


def compose_packet(header: bytes, payload: bytes = b"") -> bytes:
    """Join header and payload, writing the length into the header's first four bytes."""
    if len(header) < 4:
        raise ShortPacketError("packet header shorter than its length field")
    length = len(header) + len(payload) - 4
    return marshal_uint32(length) + bytes(header[4:]) + bytes(payload)


@dataclass(eq=False)
class StatusPacket(Exception):
    """SSH_FXP_STATUS; usable as an exception that carries the status."""

    status_code: int = Status.OK
    error_message: str = ""
    language_tag: str = ""

    TYPE = PacketType.STATUS

    def __str__(self) -> str:
        label = _status_label(self.status_code)
        if not self.error_message:
            return f"sftp: {label}"
        return f"sftp: {_quote(self.error_message)} ({label})"

    def is_status(self, target: "StatusPacket | int") -> bool:
        """Report whether ``target`` is this status code, or a packet with it."""
        if isinstance(target, StatusPacket):
            return int(self.status_code) == int(target.status_code)
        return int(self.status_code) == int(target)

    def marshal_packet(self, request_id: int) -> tuple[bytes, bytes]:
        buf = Buffer()
        buf.start_packet(self.TYPE, request_id)
        buf.append_uint32(int(self.status_code))
        buf.append_string(self.error_message)
        buf.append_string(self.language_tag)
        return buf.bytes(), b""

    def unmarshal_packet_body(self, buf: Buffer) -> None:
        """Decode from ``buf``, whose request id has already been consumed."""
        self.status_code = _status(buf.consume_uint32())
        self.error_message = buf.consume_string()
        self.language_tag = buf.consume_string()


@dataclass
class HandlePacket:
    """SSH_FXP_HANDLE: the opaque handle of an opened file or directory."""

    handle: str = ""

    TYPE = PacketType.HANDLE

    def marshal_packet(self, request_id: int) -> tuple[bytes, bytes]:
        buf = Buffer()
        buf.start_packet(self.TYPE, request_id)
        buf.append_string(self.handle)
        return buf.bytes(), b""

    def unmarshal_packet_body(self, buf: Buffer) -> None:
        """Decode from ``buf``, whose request id has already been consumed."""
        self.handle = buf.consume_string()


@dataclass
class DataPacket:
    """SSH_FXP_DATA: bytes read from a file."""

    data: bytes = b""

    TYPE = PacketType.DATA

    def marshal_packet(self, request_id: int) -> tuple[bytes, bytes]:
        buf = Buffer()
        buf.start_packet(self.TYPE, request_id)
        buf.append_uint32(len(self.data))
        return buf.bytes(), bytes(self.data)

    def unmarshal_packet_body(self, buf: Buffer) -> None:
        """Decode from ``buf``, whose request id has already been consumed.

        The data is copied and never shares memory with the buffer.
        """
        self.data = buf.consume_bytes()