"""An in-memory file system that serves file transfer requests.

Files live in a flat mapping from canonical absolute path to file object;
directories, symbolic links and hard links are modelled on top of it.
"""

from __future__ import annotations

import errno
import stat
import threading
import time
from typing import Iterator

from .errors import SSH_FX_OP_UNSUPPORTED, FxError
from .flags import SSH_FXF_WRITE, FileOpenFlags
from .pathmatch import join, split

MAX_SYMLINK_FOLLOWS = 5


class TooManySymlinksError(OSError):
    """Raised when resolving a path follows too many symbolic links."""

    def __init__(self) -> None:
        super().__init__(errno.ELOOP, "too many symbolic links")


def _invalid() -> OSError:
    return OSError(errno.EINVAL, "invalid argument")


def _unsupported() -> FxError:
    return FxError(SSH_FX_OP_UNSUPPORTED)


def _dirname(path: str) -> str:
    directory, _ = split(path)
    return join(directory) or "."


def _basename(path: str) -> str:
    if not path:
        return "."
    stripped = path.rstrip("/")
    if not stripped:
        return "/"
    return stripped[stripped.rfind("/") + 1:]


class MemFile:
    """A file, directory or symbolic link held in memory; safe to share between threads."""

    def __init__(
        self,
        path: str = "",
        *,
        is_dir: bool = False,
        symlink: str = "",
        err: BaseException | None = None,
    ) -> None:
        self.path = path
        self.modtime = time.time()
        self.symlink = symlink
        self._is_dir = is_dir
        self.content = bytearray()
        self.err = err
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"MemFile({self.path!r})"

    def name(self) -> str:
        """The last element of the file's path."""
        return _basename(self.path)

    def size(self) -> int:
        with self._lock:
            return len(self.content)

    def mode(self) -> int:
        """Type and permission bits, as in ``os.stat_result.st_mode``."""
        if self._is_dir:
            return stat.S_IFDIR | 0o755
        if self.symlink:
            return stat.S_IFLNK | 0o777
        return stat.S_IFREG | 0o644

    def is_dir(self) -> bool:
        return self._is_dir

    def read_at(self, size: int, offset: int) -> bytes:
        """Return up to ``size`` bytes from ``offset``.

        A shorter result means the end of the file was reached; EOFError is
        raised when nothing at all is left to read.
        """
        with self._lock:
            if self.err is not None:
                raise self.err
            if offset < 0:
                raise ValueError("MemFile.read_at: negative offset")
            if offset >= len(self.content):
                raise EOFError("EOF")
            return bytes(self.content[offset:offset + size])

    def write_at(self, data: bytes, offset: int) -> int:
        """Write ``data`` at ``offset``, growing the file as needed; return the count."""
        with self._lock:
            if self.err is not None:
                raise self.err
            if offset < 0:
                raise ValueError("MemFile.write_at: negative offset")
            grow = len(data) + offset - len(self.content)
            if grow > 0:
                self.content.extend(bytes(grow))
            self.content[offset:offset + len(data)] = data
            return len(data)

    def truncate(self, size: int) -> None:
        """Cut the file to ``size`` bytes or pad it with zeros up to that size."""
        with self._lock:
            if self.err is not None:
                raise self.err
            if size < 0:
                raise _invalid()
            grow = size - len(self.content)
            if grow <= 0:
                del self.content[size:]
            else:
                self.content.extend(bytes(grow))

    def transfer_error(self, err: BaseException) -> None:
        """Record an error; later reads, writes and truncations raise it."""
        with self._lock:
            self.err = err


class Lister:
    """A list of file entries read in slices, the way a file is read at offsets."""

    def __init__(self, entries: list[MemFile]) -> None:
        self.entries = list(entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[MemFile]:
        return iter(self.entries)

    def list_at(self, count: int, offset: int) -> list[MemFile]:
        """Return up to ``count`` entries from ``offset``.

        A shorter result means the end of the list; EOFError is raised when
        ``offset`` is already past the end.
        """
        if offset >= len(self.entries):
            raise EOFError("EOF")
        return self.entries[offset:offset + count]


class InMemFS:
    """Request handlers backed by an in-memory file system."""

    def __init__(self, start_directory: str = "") -> None:
        self.root = MemFile("/", is_dir=True)
        self.files: dict[str, MemFile] = {}
        self.start_directory = start_directory
        self.mock_err: BaseException | None = None
        self._lock = threading.Lock()

    def return_error(self, err: BaseException | None) -> None:
        """Make every following handler call raise ``err``; None resets."""
        self.mock_err = err

    def _check_mock(self) -> None:
        if self.mock_err is not None:
            raise self.mock_err

    # handlers

    def file_read(self, path: str, flags: int) -> MemFile:
        """Open ``path`` for reading; ``flags`` are the open request's pflags."""
        if not FileOpenFlags.from_bits(flags).read:
            raise _invalid()
        return self.open_file(path, flags)

    def file_write(self, path: str, flags: int) -> MemFile:
        """Open ``path`` for writing; ``flags`` are the open request's pflags."""
        if not FileOpenFlags.from_bits(flags).write:
            raise _invalid()
        return self.open_file(path, flags)

    def open_file(self, path: str, flags: int) -> MemFile:
        self._check_mock()
        with self._lock:
            return self._openfile(path, flags)

    def file_cmd(
        self, method: str, path: str, target: str = "", size: int | None = None
    ) -> None:
        """Run a command: Setstat, Rename, Rmdir, Remove, Mkdir, Link or Symlink.

        For Symlink, ``path`` is the link's target and ``target`` the link's path.
        For Setstat, ``size`` truncates the file when given.
        """
        self._check_mock()
        with self._lock:
            if method == "Setstat":
                file = self._openfile(path, SSH_FXF_WRITE)
                if size is not None:
                    file.truncate(size)
            elif method == "Rename":
                # renaming onto an existing name is an error in this protocol version
                if self._exists(target):
                    raise FileExistsError(errno.EEXIST, "file exists", target)
                self._rename(path, target)
            elif method == "Rmdir":
                self._rmdir(path)
            elif method == "Remove":
                self._unlink(path)
            elif method == "Mkdir":
                self._putfile(path, MemFile(is_dir=True))
            elif method == "Link":
                self._link(path, target)
            elif method == "Symlink":
                self._putfile(target, MemFile(symlink=path))
            else:
                raise _unsupported()

    def posix_rename(self, path: str, target: str) -> None:
        """Rename with POSIX semantics: an existing target may be replaced."""
        self._check_mock()
        with self._lock:
            self._rename(path, target)

    def file_list(self, method: str, path: str) -> Lister:
        """Answer List, Stat or Readlink with a Lister of entries."""
        self._check_mock()
        with self._lock:
            if method == "List":
                return Lister(self._readdir(path))
            if method == "Stat":
                return Lister([self._fetch(path)])
            if method == "Readlink":
                link_target = self._readlink(path)
                placeholder = MemFile(
                    link_target, err=FileNotFoundError(errno.ENOENT, "no such file")
                )
                return Lister([placeholder])
            raise _unsupported()

    def lstat(self, path: str) -> Lister:
        """Like a Stat listing but without following a final symbolic link."""
        self._check_mock()
        with self._lock:
            return Lister([self._lfetch(path)])

    def realpath(self, path: str) -> str:
        """Resolve ``path`` to a clean absolute path against the start directory."""
        if path.startswith("/") or self.start_directory in ("", "/"):
            return join("/", path)
        return join(self.start_directory, path)

    # internals; callers hold the lock

    def _lfetch(self, path: str) -> MemFile:
        if path == "/":
            return self.root
        file = self.files.get(path)
        if file is None:
            raise FileNotFoundError(errno.ENOENT, "no such file", path)
        return file

    def _fetch(self, path: str) -> MemFile:
        file = self._lfetch(path)
        count = 0
        while file.symlink:
            count += 1
            if count > MAX_SYMLINK_FOLLOWS:
                raise TooManySymlinksError()
            file = self._lfetch(file.symlink)
        return file

    def _canon_name(self, path: str) -> str:
        directory = self._fetch(_dirname(path))
        if not directory.is_dir():
            raise NotADirectoryError(errno.ENOTDIR, "not a directory", path)
        return join(directory.path, _basename(path))

    def _exists(self, path: str) -> bool:
        try:
            self._lfetch(self._canon_name(path))
        except OSError:
            return False
        return True

    def _putfile(self, path: str, file: MemFile) -> None:
        path = self._canon_name(path)
        if not path.startswith("/"):
            raise _invalid()
        if self._exists_exact(path):
            raise FileExistsError(errno.EEXIST, "file exists", path)
        file.path = path
        self.files[path] = file

    def _exists_exact(self, path: str) -> bool:
        try:
            self._lfetch(path)
        except FileNotFoundError:
            return False
        return True

    def _openfile(self, path: str, flags: int) -> MemFile:
        pflags = FileOpenFlags.from_bits(flags)
        try:
            file = self._fetch(path)
        except FileNotFoundError:
            if not pflags.creat:
                raise
            # files may be created through dangling symbolic links
            count = 0
            link = self._lfetch_or_none(path)
            while link is not None and link.symlink:
                if pflags.excl:
                    raise _invalid() from None
                count += 1
                if count > MAX_SYMLINK_FOLLOWS:
                    raise TooManySymlinksError() from None
                path = link.symlink
                link = self._lfetch_or_none(path)
            created = MemFile()
            self._putfile(path, created)
            return created

        if pflags.creat and pflags.excl:
            raise FileExistsError(errno.EEXIST, "file exists", path)
        if file.is_dir():
            raise _invalid()
        if pflags.trunc:
            file.truncate(0)
        return file

    def _lfetch_or_none(self, path: str) -> MemFile | None:
        try:
            return self._lfetch(path)
        except FileNotFoundError:
            return None

    def _rename(self, oldpath: str, newpath: str) -> None:
        file = self._lfetch(oldpath)
        newpath = self._canon_name(newpath)
        if not newpath.startswith("/"):
            raise _invalid()

        target = self._lfetch_or_none(newpath)
        if target is not None:
            if target is file:
                return
            if file.is_dir():
                # an existing target of a directory rename must be an empty directory
                self._rmdir(newpath)
            elif target.is_dir():
                raise IsADirectoryError(errno.EISDIR, "is a directory", newpath)

        self.files[newpath] = file

        if file.is_dir():
            prefix = file.path + "/"
            for name, child in list(self.files.items()):
                if name.startswith(prefix):
                    new_name = join(newpath, name[len(prefix):])
                    self.files[new_name] = child
                    child.path = new_name
                    del self.files[name]

        file.path = newpath
        self.files.pop(oldpath, None)

    def _rmdir(self, path: str) -> None:
        directory = self._lfetch(path)
        if not directory.is_dir():
            raise NotADirectoryError(errno.ENOTDIR, "not a directory", path)
        path = directory.path
        if any(_dirname(name) == path for name in self.files):
            raise OSError(errno.ENOTEMPTY, "directory not empty", path)
        self.files.pop(path, None)

    def _link(self, oldpath: str, newpath: str) -> None:
        file = self._lfetch(oldpath)
        if file.is_dir():
            raise OSError(errno.EPERM, "hard link not allowed for directory", oldpath)
        self._putfile(newpath, file)

    def _unlink(self, path: str) -> None:
        file = self._lfetch(path)
        if file.is_dir():
            raise _invalid()
        # hard links mean a file has no single canonical name: remove this entry only
        self.files.pop(path, None)

    def _readdir(self, path: str) -> list[MemFile]:
        directory = self._fetch(path)
        if not directory.is_dir():
            raise NotADirectoryError(errno.ENOTDIR, "not a directory", path)
        entries = [f for name, f in self.files.items() if _dirname(name) == directory.path]
        entries.sort(key=lambda f: f.name())
        return entries

    def _readlink(self, path: str) -> str:
        file = self._lfetch(path)
        if not file.symlink:
            raise _invalid()
        return file.symlink