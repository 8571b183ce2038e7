"""Response packets sent by a file transfer server, with their wire encoding."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .codec import (
    PacketType,
    ShortPacketError,
    marshal,
    marshal_string,
    marshal_uint32,
    marshal_uint64,
    unmarshal_uint32,
)


def _header(packet_type: PacketType, request_id: int) -> bytes:
    """Four zero bytes reserved for the length, the type byte and the request id."""
    return bytes(4) + bytes([packet_type]) + marshal_uint32(request_id)


@dataclass
class NameAttr:
    """One entry of a name response: file name, long listing name and attributes."""

    name: str = ""
    long_name: str = ""
    attrs: list[Any] = field(default_factory=list)

    def marshal_binary(self) -> bytes:
        out = bytearray(marshal_string(self.name))
        out += marshal_string(self.long_name)
        for attr in self.attrs:
            out += marshal(attr)
        return bytes(out)


@dataclass
class NamePacket:
    """SSH_FXP_NAME: a list of names answering a readdir, realpath or readlink."""

    id: int = 0
    name_attrs: list[NameAttr] = field(default_factory=list)

    def marshal_packet(self) -> tuple[bytes, bytes]:
        header = _header(PacketType.NAME, self.id) + marshal_uint32(len(self.name_attrs))
        payload = b"".join(entry.marshal_binary() for entry in self.name_attrs)
        return header, payload

    def marshal_binary(self) -> bytes:
        header, payload = self.marshal_packet()
        return header + payload


@dataclass
class HandlePacket:
    """SSH_FXP_HANDLE: the opaque handle of an opened file or directory."""

    id: int = 0
    handle: str = ""

    def marshal_binary(self) -> bytes:
        return _header(PacketType.HANDLE, self.id) + marshal_string(self.handle)


@dataclass
class StatusPacket:
    """SSH_FXP_STATUS: a status code with a message and a language tag."""

    id: int = 0
    code: int = 0
    msg: str = ""
    lang: str = ""

    def marshal_binary(self) -> bytes:
        return (
            _header(PacketType.STATUS, self.id)
            + marshal_uint32(self.code)
            + marshal_string(self.msg)
            + marshal_string(self.lang)
        )


@dataclass
class DataPacket:
    """SSH_FXP_DATA: bytes read from a file."""

    id: int = 0
    length: int = 0
    data: bytes = b""

    def marshal_packet(self) -> tuple[bytes, bytes]:
        header = _header(PacketType.DATA, self.id) + marshal_uint32(self.length)
        return header, bytes(self.data)

    def marshal_binary(self) -> bytes:
        header, _ = self.marshal_packet()
        return header + bytes(self.data[: self.length])

    @classmethod
    def unmarshal_binary(cls, data: bytes) -> "DataPacket":
        """Decode a body that follows the length and type bytes."""
        request_id, rest = unmarshal_uint32(data)
        length, rest = unmarshal_uint32(rest)
        if len(rest) < length:
            raise ShortPacketError()
        return cls(id=request_id, length=length, data=bytes(rest[:length]))


_STATVFS_FIELDS = (
    "bsize",
    "frsize",
    "blocks",
    "bfree",
    "bavail",
    "files",
    "ffree",
    "favail",
    "fsid",
    "flag",
    "namemax",
)


@dataclass
class StatVFS:
    """Statistics about a file system, sent as an extended reply."""

    id: int = 0
    bsize: int = 0
    frsize: int = 0
    blocks: int = 0
    bfree: int = 0
    bavail: int = 0
    files: int = 0
    ffree: int = 0
    favail: int = 0
    fsid: int = 0
    flag: int = 0
    namemax: int = 0

    def total_space(self) -> int:
        """Total size of the file system in bytes."""
        return self.frsize * self.blocks

    def free_space(self) -> int:
        """Free space of the file system in bytes."""
        return self.frsize * self.bfree

    def marshal_packet(self) -> tuple[bytes, bytes]:
        header = bytes(4) + bytes([PacketType.EXTENDED_REPLY])
        payload = marshal_uint32(self.id) + b"".join(
            marshal_uint64(getattr(self, name)) for name in _STATVFS_FIELDS
        )
        return header, payload

    def marshal_binary(self) -> bytes:
        header, payload = self.marshal_packet()
        return header + payload