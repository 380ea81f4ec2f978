"""Key grammar and mount-relative path assembly."""

from __future__ import annotations

from collections.abc import Sequence

from goffkv_consul.errors import MalformedKeyError

__all__ = [
    "disassemble_key",
    "disassemble_path",
    "PathCodec",
]

_RESERVED_SEGMENTS = frozenset({".", ".."})


def _split(key: str) -> list[str]:
    if not key.startswith("/"):
        raise MalformedKeyError(key, "must start with '/'")
    if key.endswith("/"):
        raise MalformedKeyError(key, "must not end with '/'")
    segments = key[1:].split("/")
    for segment in segments:
        if not segment:
            raise MalformedKeyError(key, "empty segment")
        if segment in _RESERVED_SEGMENTS:
            raise MalformedKeyError(key, f"reserved segment {segment!r}")
    return segments


def disassemble_key(key: str) -> list[str]:
    """Split a user key like ``/a/b`` into its non-empty segments.

    The root key ``/`` is not a valid key.
    """
    if not isinstance(key, str):
        raise MalformedKeyError(repr(key), "key must be a string")
    if key == "/":
        raise MalformedKeyError(key, "empty key")
    return _split(key)


def disassemble_path(prefix: str) -> list[str]:
    """Split a mount prefix; ``""`` and ``"/"`` both name the root."""
    if prefix in ("", "/"):
        return []
    return _split(prefix)


class PathCodec:
    """Maps key segments to flat Consul paths under a fixed mount prefix."""

    def __init__(self, prefix_segments: Sequence[str]) -> None:
        self._prefix = tuple(prefix_segments)
        self.mount_length = len(self.assemble(()))

    @property
    def prefix_segments(self) -> tuple[str, ...]:
        return self._prefix

    def assemble(self, segments: Sequence[str]) -> str:
        return "/".join((*self._prefix, *segments))

    def parent(self, segments: Sequence[str]) -> str | None:
        """Path of the immediate parent key, or None for a top-level key."""
        if len(segments) < 2:
            return None
        return self.assemble(segments[:-1])

    def detach_child(self, path: str, prefix_length: int) -> str:
        """Turn a path returned by a subtree read into a child key.

        ``prefix_length`` is the length of the parent's path plus the
        trailing slash. Returns ``""`` when ``path`` names a grandchild (or
        the parent itself) rather than a direct child.
        """
        if len(path) <= prefix_length or path.rfind("/") >= prefix_length:
            return ""
        if self.mount_length == 0:
            return "/" + path
        return path[self.mount_length :]
