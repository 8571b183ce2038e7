"""Request packets of the file transfer protocol and their wire encoding."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, ClassVar

from .codec import (
    PacketType,
    ShortPacketError,
    UnknownExtendedPacketError,
    marshal,
    marshal_string,
    marshal_uint32,
    marshal_uint64,
    unmarshal_string,
    unmarshal_uint32,
    unmarshal_uint64,
)
from .flags import SSH_FXF_WRITE

_OPENSSH = "openssh.com"
POSIX_RENAME_EXTENSION = f"posix-rename@{_OPENSSH}"
HARDLINK_EXTENSION = f"hardlink@{_OPENSSH}"
STATVFS_EXTENSION = f"statvfs@{_OPENSSH}"
FSYNC_EXTENSION = f"fsync@{_OPENSSH}"

_WIRE = "wire"

_ENCODERS = {
    "u32": marshal_uint32,
    "u64": marshal_uint64,
    "str": marshal_string,
}

_DECODERS = {
    "u32": unmarshal_uint32,
    "u64": unmarshal_uint64,
    "str": unmarshal_string,
}


def _u32() -> Any:
    return field(default=0, metadata={_WIRE: "u32"})


def _u64() -> Any:
    return field(default=0, metadata={_WIRE: "u64"})


def _str() -> Any:
    return field(default="", metadata={_WIRE: "str"})


class Packet:
    """Base of all packets: encodes and decodes the fields marked for the wire.

    Wire fields are encoded in declaration order. When ``EXTENSION`` is set, the
    extension name follows the first field (the request id).
    """

    TYPE: ClassVar[PacketType]
    EXTENSION: ClassVar[str | None] = None
    modifies: ClassVar[bool] = False

    @classmethod
    def _wire_fields(cls) -> list[tuple[str, str]]:
        return [(f.name, f.metadata[_WIRE]) for f in fields(cls) if _WIRE in f.metadata]

    def _encode_fields(self) -> bytes:
        out = bytearray()
        for index, (name, kind) in enumerate(self._wire_fields()):
            out += _ENCODERS[kind](getattr(self, name))
            if index == 0 and self.EXTENSION is not None:
                out += marshal_string(self.EXTENSION)
        return bytes(out)

    @classmethod
    def _decode_fields(cls, data: bytes) -> tuple[dict[str, Any], bytes]:
        values: dict[str, Any] = {}
        rest = bytes(data)
        for index, (name, kind) in enumerate(cls._wire_fields()):
            values[name], rest = _DECODERS[kind](rest)
            if index == 0 and cls.EXTENSION is not None:
                extension, rest = unmarshal_string(rest)
                if extension != cls.EXTENSION:
                    raise UnknownExtendedPacketError(
                        f"extension {extension!r}: unknown extended packet"
                    )
        return values, rest

    def _header(self) -> bytes:
        return bytes(4) + bytes([self.TYPE])

    def marshal_packet(self) -> tuple[bytes, bytes]:
        """Return the header (with four bytes reserved for the length) and the payload."""
        return self._header() + self._encode_fields(), b""

    def marshal_binary(self) -> bytes:
        """Return the whole packet with the length field left as zeros."""
        header, payload = self.marshal_packet()
        return header + payload

    @classmethod
    def unmarshal_binary(cls, data: bytes) -> "Packet":
        """Decode a packet body that follows the length and type bytes."""
        values, _ = cls._decode_fields(data)
        return cls(**values)


@dataclass
class ExtensionPair:
    """A named protocol extension and its data."""

    name: str = ""
    data: str = ""


def _marshal_extensions(extensions: list[ExtensionPair]) -> bytes:
    return b"".join(marshal_string(e.name) + marshal_string(e.data) for e in extensions)


def _unmarshal_extensions(rest: bytes) -> list[ExtensionPair]:
    extensions = []
    while rest:
        name, rest = unmarshal_string(rest)
        data, rest = unmarshal_string(rest)
        extensions.append(ExtensionPair(name, data))
    return extensions


class _VersionedPacket(Packet):
    version: int
    extensions: list[ExtensionPair]

    @property
    def id(self) -> int:
        return 0

    def marshal_packet(self) -> tuple[bytes, bytes]:
        body = self._encode_fields() + _marshal_extensions(self.extensions)
        return self._header() + body, b""

    @classmethod
    def unmarshal_binary(cls, data: bytes) -> "_VersionedPacket":
        values, rest = cls._decode_fields(data)
        return cls(**values, extensions=_unmarshal_extensions(rest))


@dataclass
class InitPacket(_VersionedPacket):
    TYPE = PacketType.INIT

    version: int = _u32()
    extensions: list[ExtensionPair] = field(default_factory=list)


@dataclass
class VersionPacket(_VersionedPacket):
    TYPE = PacketType.VERSION

    version: int = _u32()
    extensions: list[ExtensionPair] = field(default_factory=list)


@dataclass
class ReaddirPacket(Packet):
    TYPE = PacketType.READDIR

    id: int = _u32()
    handle: str = _str()


@dataclass
class OpendirPacket(Packet):
    TYPE = PacketType.OPENDIR

    id: int = _u32()
    path: str = _str()


@dataclass
class LstatPacket(Packet):
    TYPE = PacketType.LSTAT

    id: int = _u32()
    path: str = _str()


@dataclass
class StatPacket(Packet):
    TYPE = PacketType.STAT

    id: int = _u32()
    path: str = _str()


@dataclass
class FstatPacket(Packet):
    TYPE = PacketType.FSTAT

    id: int = _u32()
    handle: str = _str()


@dataclass
class ClosePacket(Packet):
    TYPE = PacketType.CLOSE

    id: int = _u32()
    handle: str = _str()


@dataclass
class RemovePacket(Packet):
    TYPE = PacketType.REMOVE
    modifies = True

    id: int = _u32()
    filename: str = _str()

    @property
    def path(self) -> str:
        return self.filename


@dataclass
class RmdirPacket(Packet):
    TYPE = PacketType.RMDIR
    modifies = True

    id: int = _u32()
    path: str = _str()


@dataclass
class SymlinkPacket(Packet):
    TYPE = PacketType.SYMLINK
    modifies = True

    id: int = _u32()
    targetpath: str = _str()
    linkpath: str = _str()

    @property
    def path(self) -> str:
        return self.targetpath


@dataclass
class HardlinkPacket(Packet):
    TYPE = PacketType.EXTENDED
    EXTENSION = HARDLINK_EXTENSION

    id: int = _u32()
    oldpath: str = _str()
    newpath: str = _str()


@dataclass
class ReadlinkPacket(Packet):
    TYPE = PacketType.READLINK

    id: int = _u32()
    path: str = _str()


@dataclass
class RealpathPacket(Packet):
    TYPE = PacketType.REALPATH

    id: int = _u32()
    path: str = _str()


@dataclass
class OpenPacket(Packet):
    TYPE = PacketType.OPEN

    id: int = _u32()
    path: str = _str()
    pflags: int = _u32()
    flags: int = _u32()

    def has_pflags(self, *flags: int) -> bool:
        """Report whether every given open flag is set."""
        return all(self.pflags & f == f for f in flags)

    def readonly(self) -> bool:
        """Report whether the open request does not ask for writing."""
        return not self.has_pflags(SSH_FXF_WRITE)


@dataclass
class ReadPacket(Packet):
    TYPE = PacketType.READ

    id: int = _u32()
    handle: str = _str()
    offset: int = _u64()
    len: int = _u32()


@dataclass
class RenamePacket(Packet):
    TYPE = PacketType.RENAME
    modifies = True

    id: int = _u32()
    oldpath: str = _str()
    newpath: str = _str()

    @property
    def path(self) -> str:
        return self.oldpath


@dataclass
class PosixRenamePacket(Packet):
    TYPE = PacketType.EXTENDED
    EXTENSION = POSIX_RENAME_EXTENSION

    id: int = _u32()
    oldpath: str = _str()
    newpath: str = _str()


@dataclass
class WritePacket(Packet):
    TYPE = PacketType.WRITE
    modifies = True

    id: int = _u32()
    handle: str = _str()
    offset: int = _u64()
    length: int = _u32()
    data: bytes = b""

    def marshal_packet(self) -> tuple[bytes, bytes]:
        return self._header() + self._encode_fields(), bytes(self.data)

    @classmethod
    def unmarshal_binary(cls, data: bytes) -> "WritePacket":
        values, rest = cls._decode_fields(data)
        if len(rest) < values["length"]:
            raise ShortPacketError()
        return cls(**values, data=rest[: values["length"]])


@dataclass
class MkdirPacket(Packet):
    TYPE = PacketType.MKDIR
    modifies = True

    id: int = _u32()
    path: str = _str()
    flags: int = _u32()


class _AttrsPacket(Packet):
    attrs: Any

    def marshal_packet(self) -> tuple[bytes, bytes]:
        return self._header() + self._encode_fields(), marshal(self.attrs)

    @classmethod
    def unmarshal_binary(cls, data: bytes) -> "_AttrsPacket":
        values, rest = cls._decode_fields(data)
        return cls(**values, attrs=rest)


@dataclass
class SetstatPacket(_AttrsPacket):
    TYPE = PacketType.SETSTAT
    modifies = True

    id: int = _u32()
    path: str = _str()
    flags: int = _u32()
    attrs: Any = None


@dataclass
class FsetstatPacket(_AttrsPacket):
    TYPE = PacketType.FSETSTAT
    modifies = True

    id: int = _u32()
    handle: str = _str()
    flags: int = _u32()
    attrs: Any = None


@dataclass
class StatvfsPacket(Packet):
    TYPE = PacketType.EXTENDED
    EXTENSION = STATVFS_EXTENSION

    id: int = _u32()
    path: str = _str()


@dataclass
class FsyncPacket(Packet):
    TYPE = PacketType.EXTENDED
    EXTENSION = FSYNC_EXTENSION

    id: int = _u32()
    handle: str = _str()


@dataclass
class ExtendedStatVFSPacket(Packet):
    TYPE = PacketType.EXTENDED

    id: int = _u32()
    extended_request: str = _str()
    path: str = _str()

    def readonly(self) -> bool:
        return True


@dataclass
class ExtendedPosixRenamePacket(Packet):
    TYPE = PacketType.EXTENDED
    modifies = True

    id: int = _u32()
    extended_request: str = _str()
    oldpath: str = _str()
    newpath: str = _str()

    @property
    def path(self) -> str:
        return self.oldpath

    def readonly(self) -> bool:
        return False


@dataclass
class ExtendedHardlinkPacket(Packet):
    TYPE = PacketType.EXTENDED
    modifies = True

    id: int = _u32()
    extended_request: str = _str()
    oldpath: str = _str()
    newpath: str = _str()

    @property
    def path(self) -> str:
        return self.oldpath

    def readonly(self) -> bool:
        return True


_EXTENDED_TYPES: dict[str, type[Packet]] = {
    STATVFS_EXTENSION: ExtendedStatVFSPacket,
    POSIX_RENAME_EXTENSION: ExtendedPosixRenamePacket,
    HARDLINK_EXTENSION: ExtendedHardlinkPacket,
}


@dataclass
class ExtendedPacket(Packet):
    """An incoming extended request, holding the decoded specific request."""

    TYPE = PacketType.EXTENDED

    id: int = _u32()
    extended_request: str = _str()
    specific: Packet | None = None

    def readonly(self) -> bool:
        if self.specific is None:
            return True
        return self.specific.readonly()

    def marshal_packet(self) -> tuple[bytes, bytes]:
        if self.specific is not None:
            return self.specific.marshal_packet()
        return super().marshal_packet()

    @classmethod
    def unmarshal_binary(cls, data: bytes) -> "ExtendedPacket":
        values, _ = cls._decode_fields(data)
        specific_cls = _EXTENDED_TYPES.get(values["extended_request"])
        if specific_cls is None:
            raise UnknownExtendedPacketError(
                f"extension {values['extended_request']!r}: unknown extended packet"
            )
        return cls(**values, specific=specific_cls.unmarshal_binary(data))


_REQUEST_TYPES: dict[PacketType, type[Packet]] = {
    PacketType.INIT: InitPacket,
    PacketType.LSTAT: LstatPacket,
    PacketType.OPEN: OpenPacket,
    PacketType.CLOSE: ClosePacket,
    PacketType.READ: ReadPacket,
    PacketType.WRITE: WritePacket,
    PacketType.FSTAT: FstatPacket,
    PacketType.SETSTAT: SetstatPacket,
    PacketType.FSETSTAT: FsetstatPacket,
    PacketType.OPENDIR: OpendirPacket,
    PacketType.READDIR: ReaddirPacket,
    PacketType.REMOVE: RemovePacket,
    PacketType.MKDIR: MkdirPacket,
    PacketType.RMDIR: RmdirPacket,
    PacketType.REALPATH: RealpathPacket,
    PacketType.STAT: StatPacket,
    PacketType.RENAME: RenamePacket,
    PacketType.READLINK: ReadlinkPacket,
    PacketType.SYMLINK: SymlinkPacket,
    PacketType.EXTENDED: ExtendedPacket,
}


def make_packet(packet_type: int, data: bytes) -> Packet:
    """Build a request packet from its type byte and body.

    A decoding error carries ``request_id`` when the body held one, so that the
    caller can still answer the request.
    """
    try:
        packet_cls = _REQUEST_TYPES[PacketType(packet_type)]
    except (ValueError, KeyError):
        try:
            label = PacketType(packet_type).name
        except ValueError:
            label = str(packet_type)
        raise ValueError(f"unhandled packet type: {label}") from None
    try:
        return packet_cls.unmarshal_binary(data)
    except (ShortPacketError, UnknownExtendedPacketError) as exc:
        if packet_cls is not InitPacket and len(data) >= 4:
            exc.request_id = int.from_bytes(data[:4], "big")
        raise