"""
Navigator — a cursor over the parsed diff, independent of rendering.

Every movement returns the id the cursor landed on, or ``None`` when
there is nothing in that direction; on ``None`` the cursor stays put.
"""

from __future__ import annotations

from typing import Callable, Sequence

from .model import FileDiff, LineEntry, LineId, iter_lines
from .selection import UnknownLineId


class Navigator:
    """Read-only cursor movement across files, hunks and lines."""

    def __init__(
        self,
        files: Sequence[FileDiff],
        position: LineId | None = None,
    ) -> None:
        self._lines: list[LineEntry] = list(iter_lines(files))
        self._index = {e.id: n for n, e in enumerate(self._lines)}
        self._cursor: int | None = None
        if position is not None:
            self.move_to(position)

    @property
    def position(self) -> LineId | None:
        if self._cursor is None:
            return None
        return self._lines[self._cursor].id

    def current(self) -> LineEntry | None:
        if self._cursor is None:
            return None
        return self._lines[self._cursor]

    def current_hunk_key(self) -> tuple[str, int] | None:
        pos = self.position
        return pos.hunk_key if pos else None

    def current_file(self) -> str | None:
        pos = self.position
        return pos.path if pos else None

    def move_to(self, line_id: LineId) -> LineId:
        try:
            self._cursor = self._index[line_id]
        except KeyError:
            raise UnknownLineId(line_id) from None
        return line_id

    def first(self) -> LineId | None:
        return self._land(0 if self._lines else None)

    def last(self) -> LineId | None:
        return self._land(len(self._lines) - 1 if self._lines else None)

    # ------------------------------------------------------------------
    # Movement
    # ------------------------------------------------------------------

    def next_line(self) -> LineId | None:
        return self._land(self._scan(1, lambda e: True))

    def previous_line(self) -> LineId | None:
        return self._land(self._scan(-1, lambda e: True))

    def next_selectable_line(self) -> LineId | None:
        return self._land(self._scan(1, lambda e: e.selectable))

    def previous_selectable_line(self) -> LineId | None:
        return self._land(self._scan(-1, lambda e: e.selectable))

    def next_hunk(self) -> LineId | None:
        key = self.current_hunk_key()
        return self._land(self._scan(1, lambda e: e.id.hunk_key != key))

    def previous_hunk(self) -> LineId | None:
        key = self.current_hunk_key()
        if key is None:
            return self._land(self._start_of_block(
                len(self._lines) - 1, lambda e: e.id.hunk_key,
            ))
        target = self._scan(-1, lambda e: e.id.hunk_key != key)
        if target is None:
            return None
        return self._land(self._start_of_block(target, lambda e: e.id.hunk_key))

    def next_file(self) -> LineId | None:
        path = self.current_file()
        return self._land(self._scan(1, lambda e: e.id.path != path))

    def previous_file(self) -> LineId | None:
        path = self.current_file()
        if path is None:
            return self._land(self._start_of_block(
                len(self._lines) - 1, lambda e: e.id.path,
            ))
        target = self._scan(-1, lambda e: e.id.path != path)
        if target is None:
            return None
        return self._land(self._start_of_block(target, lambda e: e.id.path))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _scan(self, step: int, accept: Callable[[LineEntry], bool]) -> int | None:
        """First index after (or before) the cursor whose entry passes *accept*.

        Without a cursor the scan covers the whole list from the start
        (step 1) or the end (step -1).
        """
        if self._cursor is None:
            n = 0 if step > 0 else len(self._lines) - 1
        else:
            n = self._cursor + step
        while 0 <= n < len(self._lines):
            if accept(self._lines[n]):
                return n
            n += step
        return None

    def _start_of_block(self, n: int, key: Callable[[LineEntry], object]) -> int | None:
        if n < 0:
            return None
        block = key(self._lines[n])
        while n > 0 and key(self._lines[n - 1]) == block:
            n -= 1
        return n

    def _land(self, n: int | None) -> LineId | None:
        if n is None:
            return None
        self._cursor = n
        return self._lines[n].id
