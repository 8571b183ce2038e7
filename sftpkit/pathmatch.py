"""Slash-separated path helpers and shell-pattern globbing over a remote file system."""

from __future__ import annotations

from typing import Any


class BadPatternError(ValueError):
    """Raised when a globbing pattern is malformed."""

    def __init__(self, message: str = "syntax error in pattern") -> None:
        super().__init__(message)


def _scan_chunk(pattern: str) -> tuple[bool, str, str]:
    star = False
    while pattern.startswith("*"):
        pattern = pattern[1:]
        star = True
    in_range = False
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\":
            if i + 1 < len(pattern):
                i += 1
        elif ch == "[":
            in_range = True
        elif ch == "]":
            in_range = False
        elif ch == "*" and not in_range:
            break
        i += 1
    return star, pattern[:i], pattern[i:]


def _get_esc(chunk: str) -> tuple[str, str]:
    if not chunk or chunk[0] in "-]":
        raise BadPatternError()
    if chunk[0] == "\\":
        chunk = chunk[1:]
        if not chunk:
            raise BadPatternError()
    ch, rest = chunk[0], chunk[1:]
    if not rest:
        raise BadPatternError()
    return ch, rest


def _match_chunk(chunk: str, s: str) -> str | None:
    """Match ``chunk`` at the start of ``s``; return the rest of ``s`` or None.

    The whole chunk is always scanned so that syntax errors are reported.
    """
    failed = False
    while chunk:
        if not failed and not s:
            failed = True
        head = chunk[0]
        if head == "[":
            rune = ""
            if not failed:
                rune, s = s[0], s[1:]
            chunk = chunk[1:]
            negated = False
            if chunk.startswith("^"):
                negated = True
                chunk = chunk[1:]
            matched = False
            ranges = 0
            while True:
                if chunk.startswith("]") and ranges > 0:
                    chunk = chunk[1:]
                    break
                lo, chunk = _get_esc(chunk)
                hi = lo
                if chunk[0] == "-":
                    hi, chunk = _get_esc(chunk[1:])
                if not failed and lo <= rune <= hi:
                    matched = True
                ranges += 1
            if matched == negated:
                failed = True
        elif head == "?":
            if not failed:
                if s[0] == "/":
                    failed = True
                s = s[1:]
            chunk = chunk[1:]
        else:
            if head == "\\":
                chunk = chunk[1:]
                if not chunk:
                    raise BadPatternError()
            if not failed:
                if chunk[0] != s[0]:
                    failed = True
                s = s[1:]
            chunk = chunk[1:]
    return None if failed else s


def _match_after_star(chunk: str, name: str, last: bool) -> str | None:
    for i, ch in enumerate(name):
        if ch == "/":
            break
        rest = _match_chunk(chunk, name[i + 1:])
        if rest is not None and (not last or not rest):
            return rest
    return None


def match(pattern: str, name: str) -> bool:
    """Report whether ``name`` matches the shell ``pattern``.

    Raises BadPatternError when the pattern is malformed.
    """
    while pattern:
        star, chunk, pattern = _scan_chunk(pattern)
        if star and not chunk:
            return "/" not in name
        rest = _match_chunk(chunk, name)
        if rest is not None and (not rest or pattern):
            name = rest
            continue
        if star:
            rest = _match_after_star(chunk, name, last=not pattern)
            if rest is not None:
                name = rest
                continue
        while pattern:
            _, chunk, pattern = _scan_chunk(pattern)
            _match_chunk(chunk, "")
        return False
    return not name


def split(path: str) -> tuple[str, str]:
    """Split ``path`` just after its final slash into directory and file parts."""
    i = path.rfind("/")
    return path[: i + 1], path[i + 1:]


def _clean(path: str) -> str:
    if not path:
        return "."
    rooted = path.startswith("/")
    parts: list[str] = []
    for part in path.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            if parts and parts[-1] != "..":
                parts.pop()
            elif not rooted:
                parts.append("..")
            continue
        parts.append(part)
    cleaned = "/".join(parts)
    if rooted:
        cleaned = "/" + cleaned
    return cleaned or "."


def join(*args: str) -> str:
    """Join path elements with slashes and clean the result; empty if all are empty."""
    for i, element in enumerate(args):
        if element:
            return _clean("/".join(args[i:]))
    return ""


def has_meta(path: str) -> bool:
    """Report whether ``path`` contains any character that ``match`` treats specially."""
    return any(ch in path for ch in "\\*?[")


def _clean_glob_path(path: str) -> str:
    if path == "":
        return "."
    if path == "/":
        return path
    return path[:-1]


def _glob_dir(fs: Any, directory: str, pattern: str, matches: list[str]) -> list[str]:
    try:
        info = fs.stat(directory)
    except OSError:
        return matches
    if not info.is_dir():
        return matches
    try:
        entries = fs.read_dir(directory)
    except OSError:
        return matches
    for entry in entries:
        entry_name = entry.name()
        if match(pattern, entry_name):
            matches.append(join(directory, entry_name))
    return matches


def glob(fs: Any, pattern: str) -> list[str]:
    """Return the paths on ``fs`` matching ``pattern``.

    ``fs`` provides ``lstat``, ``stat`` and ``read_dir``; the entries these return
    offer ``name()`` and ``is_dir()``. File-system errors are ignored; only a
    malformed pattern raises BadPatternError.
    """
    if not has_meta(pattern):
        try:
            info = fs.lstat(pattern)
        except OSError:
            return []
        directory, _ = split(pattern)
        return [join(_clean_glob_path(directory), info.name())]

    directory, file_pattern = split(pattern)
    directory = _clean_glob_path(directory)

    if not has_meta(directory):
        return _glob_dir(fs, directory, file_pattern, [])

    if directory == pattern:
        raise BadPatternError()

    matches: list[str] = []
    for parent in glob(fs, directory):
        _glob_dir(fs, parent, file_pattern, matches)
    return matches