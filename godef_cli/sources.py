"""Source providers: files on disk, standard input and editor buffers."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional

from .errors import ParseFailure


def read_source(filename: str, stdin: bool = False, stream: Optional[BinaryIO] = None) -> bytes:
    """Return the principal file's bytes, from *stream* when *stdin* is set."""
    if stdin:
        return (stream or sys.stdin.buffer).read()
    try:
        return Path(filename).read_bytes()
    except OSError as exc:
        raise ParseFailure(f"cannot read {filename}: {exc.strerror or exc}") from exc


def byte_to_rune_offset(src: bytes, offset: int) -> int:
    """Number of UTF-8 code points in ``src[:offset]``."""
    return len(src[:offset].decode("utf-8", errors="replace"))


@dataclass(frozen=True)
class EditorBuffer:
    """Current state of an editor window: path, unsaved body and cursor."""
    filename: str
    body: bytes
    offset: int
    rune_offset: int

    @classmethod
    def from_stream(cls, filename: str, offset: int, stream: Optional[BinaryIO] = None) -> "EditorBuffer":
        body = (stream or sys.stdin.buffer).read()
        return cls(
            filename=filename,
            body=body,
            offset=offset,
            rune_offset=byte_to_rune_offset(body, offset),
        )

    def backtrack_line(self) -> str:
        """Marker pointing back to where the query started."""
        return f"\t{self.filename}:#{self.rune_offset}"
