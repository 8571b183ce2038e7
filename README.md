# sftpkit

Pure-Python building blocks for the SFTP protocol (version 3): packet
encoding and framing, ordering of responses, shell-style path matching and
an in-memory filesystem that answers file requests. No third-party
dependencies.

## Modules

- `sftpkit.codec` – big-endian encoding of the protocol's primitive types
  (`marshal_uint32`, `marshal_uint64`, `marshal_string`, `marshal`, and
  `unmarshal_uint32`, `unmarshal_uint64`, `unmarshal_string`, which return
  the value together with the remaining bytes). `send_packet(writer, packet)`
  writes a packet with its length prefix; `recv_packet(reader)` reads one and
  returns its type byte and body. Truncated input raises `ShortPacketError`,
  a length above 256 KiB raises `LongPacketError`. `PacketType` lists the
  packet type codes.
- `sftpkit.requests` – request packets as dataclasses (`InitPacket`,
  `OpenPacket`, `ReadPacket`, `WritePacket`, `SetstatPacket`,
  `ExtendedPacket`, and the rest), each with `marshal_packet()`,
  `marshal_binary()` and the class method `unmarshal_binary(data)`.
  `make_packet(packet_type, data)` decodes an incoming request by its type;
  an unknown extension raises `UnknownExtendedPacketError`.
- `sftpkit.responses` – server replies: `NamePacket` (with `NameAttr`
  entries), `HandlePacket`, `StatusPacket`, `DataPacket` and `StatVFS`
  (with `total_space()` and `free_space()`).
- `sftpkit.packet_manager` – `PacketManager` sends responses through
  `sender.send_packet(...)` in the order their requests arrived.
  `worker_channel(run_worker)` starts a pool of workers for reads and writes
  plus one sequential worker for everything else, and returns the queue that
  feeds them; putting `None` on it shuts down.
- `sftpkit.flags` – `FileOpenFlags.from_bits(...)` and
  `FileAttrFlags.from_bits(...)` decode the open and attribute bit masks.
- `sftpkit.errors` – `FxError(code)`, an exception carrying a status code;
  `str()` gives its message ("no such file", "permission denied", …).
- `sftpkit.pathmatch` – `match(pattern, name)`, `split`, `join`, `has_meta`
  and `glob(fs, pattern)`. A malformed pattern raises `BadPatternError`.
  `glob` works over any object offering `lstat`, `stat` and `read_dir`
  whose results provide `name()` and `is_dir()`.
- `sftpkit.pool` – `BufPool(depth, buf_len)`, a thread-safe pool of
  reusable `bytearray` buffers.
- `sftpkit.memfs` – `InMemFS`, an in-memory filesystem with files,
  directories, symbolic and hard links. It provides `file_read`,
  `file_write`, `open_file`, `file_cmd` (Setstat, Rename, Rmdir, Remove,
  Mkdir, Link, Symlink), `posix_rename`, `file_list` (List, Stat, Readlink),
  `lstat`, `realpath` and `return_error` for injecting failures. Files are
  `MemFile` objects with `read_at`, `write_at` and `truncate`; listings are
  `Lister` objects read with `list_at`.
- `sftpkit.filexfer` – a consumable `Buffer`, the `Status` codes,
  `StatusPacket` (also usable as an exception), `HandlePacket`,
  `DataPacket`, each encoded with `marshal_packet(request_id)`, and
  `compose_packet(header, payload)` to fill in the length.

## Examples

Frame a packet and read it back:

```python
import io
from sftpkit.codec import send_packet, recv_packet
from sftpkit.requests import OpenPacket, make_packet

stream = io.BytesIO()
send_packet(stream, OpenPacket(id=1, path="/foo", pflags=1))
stream.seek(0)
packet_type, body = recv_packet(stream)
request = make_packet(packet_type, body)   # OpenPacket(id=1, path='/foo', ...)
```

Match paths:

```python
from sftpkit.pathmatch import match, join

match("a*/b", "abc/b")        # True
join("/usr", "local", "bin")  # "/usr/local/bin"
```

Use the in-memory filesystem:

```python
from sftpkit.flags import SSH_FXF_CREAT, SSH_FXF_WRITE
from sftpkit.memfs import InMemFS

fs = InMemFS()
fs.file_cmd("Mkdir", "/docs")
f = fs.file_write("/docs/a.txt", SSH_FXF_WRITE | SSH_FXF_CREAT)
f.write_at(b"hello", 0)
[entry.name() for entry in fs.file_list("List", "/docs")]   # ['a.txt']
```

## What it does not do

The package has no SFTP client and no SFTP server: nothing here opens an
SSH connection, runs the request loop over a channel, or serves a real
directory tree. It gives the packet encoding, the response ordering and an
in-memory backend from which such a program can be built. It has no
command-line tool.

## Installing and testing

```
pip install .
pip install ".[test]"
pytest
```