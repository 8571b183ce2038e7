"""Decoded views of the open (pflags) and attribute bitmasks."""

from __future__ import annotations

from dataclasses import dataclass

SSH_FXF_READ = 0x00000001
SSH_FXF_WRITE = 0x00000002
SSH_FXF_APPEND = 0x00000004
SSH_FXF_CREAT = 0x00000008
SSH_FXF_TRUNC = 0x00000010
SSH_FXF_EXCL = 0x00000020

SSH_FILEXFER_ATTR_SIZE = 0x00000001
SSH_FILEXFER_ATTR_UIDGID = 0x00000002
SSH_FILEXFER_ATTR_PERMISSIONS = 0x00000004
SSH_FILEXFER_ATTR_ACMODTIME = 0x00000008
SSH_FILEXFER_ATTR_EXTENDED = 0x80000000


@dataclass(frozen=True)
class FileOpenFlags:
    """Open flags of an open request, one boolean per bit."""

    read: bool = False
    write: bool = False
    append: bool = False
    creat: bool = False
    trunc: bool = False
    excl: bool = False

    @classmethod
    def from_bits(cls, bits: int) -> "FileOpenFlags":
        return cls(
            read=bool(bits & SSH_FXF_READ),
            write=bool(bits & SSH_FXF_WRITE),
            append=bool(bits & SSH_FXF_APPEND),
            creat=bool(bits & SSH_FXF_CREAT),
            trunc=bool(bits & SSH_FXF_TRUNC),
            excl=bool(bits & SSH_FXF_EXCL),
        )


@dataclass(frozen=True)
class FileAttrFlags:
    """Which file attributes a setstat request carries."""

    size: bool = False
    uid_gid: bool = False
    permissions: bool = False
    acmodtime: bool = False

    @classmethod
    def from_bits(cls, bits: int) -> "FileAttrFlags":
        return cls(
            size=bool(bits & SSH_FILEXFER_ATTR_SIZE),
            uid_gid=bool(bits & SSH_FILEXFER_ATTR_UIDGID),
            permissions=bool(bits & SSH_FILEXFER_ATTR_PERMISSIONS),
            acmodtime=bool(bits & SSH_FILEXFER_ATTR_ACMODTIME),
        )