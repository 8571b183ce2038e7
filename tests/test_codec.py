import io
from dataclasses import dataclass

import pytest

from sftpkit.codec import (
    LongPacketError,
    PacketType,
    ShortPacketError,
    Uint8,
    Uint32,
    Uint64,
    marshal,
    marshal_string,
    marshal_uint32,
    marshal_uint64,
    recv_packet,
    send_packet,
    unmarshal_string,
    unmarshal_uint32,
    unmarshal_uint64,
)

EXT_NAME = "posix-rename@example.com"


@pytest.mark.parametrize(
    "value, want",
    [
        (0, bytes([0, 0, 0, 0])),
        (42, bytes([0, 0, 0, 42])),
        (42 << 8, bytes([0, 0, 42, 0])),
        (42 << 16, bytes([0, 42, 0, 0])),
        (42 << 24, bytes([42, 0, 0, 0])),
        (0xFFFFFFFF, bytes([255, 255, 255, 255])),
    ],
)
def test_marshal_uint32(value, want):
    assert marshal_uint32(value) == want


@pytest.mark.parametrize(
    "value, want",
    [
        (0, bytes([0, 0, 0, 0, 0, 0, 0, 0])),
        (42, bytes([0, 0, 0, 0, 0, 0, 0, 42])),
        (42 << 8, bytes([0, 0, 0, 0, 0, 0, 42, 0])),
        (42 << 16, bytes([0, 0, 0, 0, 0, 42, 0, 0])),
        (42 << 24, bytes([0, 0, 0, 0, 42, 0, 0, 0])),
        (42 << 32, bytes([0, 0, 0, 42, 0, 0, 0, 0])),
        (42 << 40, bytes([0, 0, 42, 0, 0, 0, 0, 0])),
        (42 << 48, bytes([0, 42, 0, 0, 0, 0, 0, 0])),
        (42 << 56, bytes([42, 0, 0, 0, 0, 0, 0, 0])),
        (0xFFFFFFFFFFFFFFFF, bytes([255] * 8)),
    ],
)
def test_marshal_uint64(value, want):
    assert marshal_uint64(value) == want


@pytest.mark.parametrize(
    "value, want",
    [
        ("", bytes([0, 0, 0, 0])),
        ("/", bytes([0, 0, 0, 1]) + b"/"),
        ("/foo", bytes([0, 0, 0, 4]) + b"/foo"),
        ("\x00bar", bytes([0, 0, 0, 4]) + b"\x00bar"),
        ("b\x00ar", bytes([0, 0, 0, 4]) + b"b\x00ar"),
        ("ba\x00r", bytes([0, 0, 0, 4]) + b"ba\x00r"),
        ("bar\x00", bytes([0, 0, 0, 4]) + b"bar\x00"),
    ],
)
def test_marshal_string(value, want):
    assert marshal_string(value) == want


@dataclass
class _Struct:
    x: int
    y: int
    z: int


@pytest.mark.parametrize(
    "value, want",
    [
        (Uint8(42), bytes([42])),
        (Uint32(42 << 8), bytes([0, 0, 42, 0])),
        (Uint64(42 << 32), bytes([0, 0, 0, 42, 0, 0, 0, 0])),
        ("foo", bytes([0, 0, 0, 3]) + b"foo"),
        (_Struct(1, 2, 3), bytes([0, 0, 0, 1, 0, 0, 0, 2, 0, 0, 0, 3])),
        ([1, 2, 3], bytes([0, 0, 0, 1, 0, 0, 0, 2, 0, 0, 0, 3])),
        (None, b""),
    ],
)
def test_marshal(value, want):
    assert marshal(value) == want


def test_marshal_rejects_unknown_type():
    with pytest.raises(TypeError):
        marshal(1.5)


def test_unmarshal_uint32():
    buf = bytes([0, 0, 0, 0, 0, 0, 0, 42, 0, 0, 42, 0, 0, 42, 0, 0, 42, 0, 0, 0, 255, 0, 0, 254])
    wants = [0, 42, 42 << 8, 42 << 16, 42 << 24, 255 << 24 | 254]
    got = []
    while buf:
        value, buf = unmarshal_uint32(buf)
        got.append(value)
    assert got == wants


def test_unmarshal_uint64():
    buf = b"".join(
        [
            bytes([0, 0, 0, 0, 0, 0, 0, 0]),
            bytes([0, 0, 0, 0, 0, 0, 0, 42]),
            bytes([0, 0, 0, 0, 0, 0, 42, 0]),
            bytes([0, 0, 0, 0, 0, 42, 0, 0]),
            bytes([0, 0, 0, 0, 42, 0, 0, 0]),
            bytes([0, 0, 0, 42, 0, 0, 0, 0]),
            bytes([0, 0, 42, 0, 0, 0, 0, 0]),
            bytes([0, 42, 0, 0, 0, 0, 0, 0]),
            bytes([42, 0, 0, 0, 0, 0, 0, 0]),
            bytes([255, 0, 0, 0, 0, 0, 0, 254]),
        ]
    )
    wants = [0, 42, 42 << 8, 42 << 16, 42 << 24, 42 << 32, 42 << 40, 42 << 48, 42 << 56, 255 << 56 | 254]
    got = []
    while buf:
        value, buf = unmarshal_uint64(buf)
        got.append(value)
    assert got == wants


def test_unmarshal_string():
    buf = b"".join(
        [
            bytes([0, 0, 0, 0]),
            bytes([0, 0, 0, 1]) + b"/",
            bytes([0, 0, 0, 4]) + b"/foo",
            bytes([0, 0, 0, 4]) + b"\x00bar",
            bytes([0, 0, 0, 4]) + b"b\x00ar",
            bytes([0, 0, 0, 4]) + b"ba\x00r",
            bytes([0, 0, 0, 4]) + b"bar\x00",
        ]
    )
    wants = ["", "/", "/foo", "\x00bar", "b\x00ar", "ba\x00r", "bar\x00"]
    got = []
    while buf:
        value, buf = unmarshal_string(buf)
        got.append(value)
    assert got == wants


@pytest.mark.parametrize("text", ["", "blah"])
def test_unmarshal_string_round_trip(text):
    assert unmarshal_string(marshal_string(text)) == (text, b"")


@pytest.mark.parametrize(
    "func, data",
    [
        (unmarshal_uint32, b"\x00\x00\x01"),
        (unmarshal_uint64, b"\x00\x00\x00\x00\x00\x01"),
        (unmarshal_string, b"\x00\x00\x00\x05abc"),
        (unmarshal_string, b"\x00\x00"),
    ],
)
def test_unmarshal_short(func, data):
    with pytest.raises(ShortPacketError):
        func(data)


class _InitPacket:
    def __init__(self, version, extensions):
        self.version = version
        self.extensions = extensions

    def marshal_binary(self):
        out = bytearray(4)
        out.append(PacketType.INIT)
        out += marshal_uint32(self.version)
        for name, data in self.extensions:
            out += marshal_string(name) + marshal_string(data)
        return bytes(out)


class _OpenPacket:
    def __init__(self, request_id, path, pflags):
        self.request_id, self.path, self.pflags = request_id, path, pflags

    def marshal_binary(self):
        return (
            bytes(4)
            + bytes([PacketType.OPEN])
            + marshal_uint32(self.request_id)
            + marshal_string(self.path)
            + marshal_uint32(self.pflags)
            + marshal_uint32(0)
        )


class _WritePacket:
    def __init__(self, request_id, handle, offset, data):
        self.request_id, self.handle, self.offset, self.data = request_id, handle, offset, data

    def marshal_packet(self):
        header = (
            bytes(4)
            + bytes([PacketType.WRITE])
            + marshal_uint32(self.request_id)
            + marshal_string(self.handle)
            + marshal_uint64(self.offset)
            + marshal_uint32(len(self.data))
        )
        return header, self.data


@dataclass
class _Ids:
    uid: int
    gid: int


class _SetstatPacket:
    def __init__(self, request_id, path, flags, attrs):
        self.request_id, self.path, self.flags, self.attrs = request_id, path, flags, attrs

    def marshal_packet(self):
        header = (
            bytes(4)
            + bytes([PacketType.SETSTAT])
            + marshal_uint32(self.request_id)
            + marshal_string(self.path)
            + marshal_uint32(self.flags)
        )
        return header, marshal(self.attrs)


INIT_WIRE = (
    bytes([0, 0, 0, 0x26, 0x1, 0, 0, 0, 0x3, 0, 0, 0, 0x18])
    + EXT_NAME.encode()
    + bytes([0, 0, 0, 1])
    + b"1"
)


@pytest.mark.parametrize(
    "packet, want",
    [
        (_InitPacket(3, [(EXT_NAME, "1")]), INIT_WIRE),
        (
            _OpenPacket(1, "/foo", 1),
            bytes([0, 0, 0, 0x15, 0x3, 0, 0, 0, 0x1, 0, 0, 0, 0x4])
            + b"/foo"
            + bytes([0, 0, 0, 0x1, 0, 0, 0, 0]),
        ),
        (
            _WritePacket(124, "foo", 13, b"bar"),
            bytes([0, 0, 0, 0x1B, 0x6, 0, 0, 0, 0x7C, 0, 0, 0, 0x3])
            + b"foo"
            + bytes([0, 0, 0, 0, 0, 0, 0, 0xD, 0, 0, 0, 0x3])
            + b"bar",
        ),
        (
            _SetstatPacket(31, "/bar", 2, _Ids(uid=1000, gid=100)),
            bytes([0, 0, 0, 0x19, 0x9, 0, 0, 0, 0x1F, 0, 0, 0, 0x4])
            + b"/bar"
            + bytes([0, 0, 0, 0x2, 0, 0, 0x3, 0xE8, 0, 0, 0, 0x64]),
        ),
    ],
)
def test_send_packet(packet, want):
    out = io.BytesIO()
    send_packet(out, packet)
    assert out.getvalue() == want


class _TinyHeader:
    def marshal_binary(self):
        return b"\x00\x00"


def test_send_packet_header_too_short():
    with pytest.raises(ShortPacketError):
        send_packet(io.BytesIO(), _TinyHeader())


def test_recv_packet_init():
    packet_type, body = recv_packet(io.BytesIO(INIT_WIRE))
    assert packet_type == PacketType.INIT
    assert body == (
        bytes([0, 0, 0, 0x3, 0, 0, 0, 0x18]) + EXT_NAME.encode() + bytes([0, 0, 0, 0x1]) + b"1"
    )


def test_recv_packet_zero_length():
    with pytest.raises(ShortPacketError):
        recv_packet(io.BytesIO(bytes([0, 0, 0, 0])))


def test_recv_packet_too_long():
    with pytest.raises(LongPacketError):
        recv_packet(io.BytesIO(bytes([0xFF, 0xFF, 0xFF, 0xFF])))


def test_recv_packet_truncated_body():
    with pytest.raises(EOFError):
        recv_packet(io.BytesIO(INIT_WIRE[:-3]))


def test_recv_packet_empty_stream():
    with pytest.raises(EOFError):
        recv_packet(io.BytesIO(b""))


def test_send_then_recv_sequence():
    stream = io.BytesIO()
    send_packet(stream, _OpenPacket(7, "/a", 1))
    send_packet(stream, _WritePacket(8, "h", 0, b"xyz"))
    stream.seek(0)
    first_type, first_body = recv_packet(stream)
    second_type, second_body = recv_packet(stream)
    assert first_type == PacketType.OPEN
    assert unmarshal_uint32(first_body)[0] == 7
    assert second_type == PacketType.WRITE
    assert second_body.endswith(b"xyz")