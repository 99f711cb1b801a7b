"""Maps lines of the import-expanded buffer back to their files."""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterator
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Segment:
    """A run of flattened lines that came from one file.

    ``start`` is the 0-based flattened line (the count of newlines before it),
    ``first_line`` the 1-based line number in ``file`` that ``start`` maps to.
    """

    start: int
    file: str
    first_line: int


class ProvenanceTable:
    """Ordered segments keyed by cumulative newline count.

    Keys are strictly increasing. Marking a key at or before the last one
    discards the segments it overrides, so the latest splice wins.
    """

    def __init__(self, main_file: str) -> None:
        self.main_file = main_file
        self._segments: list[Segment] = [Segment(0, main_file, 1)]

    def __iter__(self) -> Iterator[Segment]:
        return iter(self._segments)

    def __len__(self) -> int:
        return len(self._segments)

    def keys(self) -> list[int]:
        return [s.start for s in self._segments]

    def mark(self, start: int, file: str, first_line: int) -> None:
        """Record that flattened line *start* is *file* line *first_line*."""
        while self._segments and self._segments[-1].start >= start:
            self._segments.pop()
        self._segments.append(Segment(start, file, first_line))

    def splice(self, start: int, other: ProvenanceTable) -> None:
        """Insert every segment of *other*, shifted to begin at line *start*."""
        for seg in other:
            self.mark(start + seg.start, seg.file, seg.first_line)

    def lookup(self, line: int) -> tuple[str, int]:
        """Translate a 0-based flattened line into (file, 1-based line)."""
        if line < 0:
            return self.main_file, 1
        idx = bisect_right(self.keys(), line) - 1
        seg = self._segments[max(idx, 0)]
        return seg.file, seg.first_line + (line - seg.start)

    def locate(self, source: str, offset: int) -> str:
        """Format the origin of a character offset in *source* as ``file:line``."""
        file, line = self.lookup(source.count("\n", 0, offset))
        return f"{file}:{line}"
