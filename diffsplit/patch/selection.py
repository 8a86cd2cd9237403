"""
Selection — per-line selection flags over a parsed diff, plus bulk
hunk/file/global operations.

Context lines are never selectable: setting or toggling them is a silent
no-op.  Every mutator returns the set of ids whose flag actually changed
so a renderer can refresh just those lines.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from .model import DiffSplitError, FileDiff, LineEntry, LineId, iter_lines

logger = logging.getLogger(__name__)


class UnknownLineId(DiffSplitError, KeyError):
    """A selection operation named an id that is not in the current model."""

    def __init__(self, line_id: LineId) -> None:
        super().__init__(f"Unknown line id {line_id}")
        self.line_id = line_id

    def __str__(self) -> str:
        return self.args[0]


class SelectionStore:
    """Selection state of every LineEntry in one parsed diff."""

    def __init__(self, files: Iterable[FileDiff]) -> None:
        self._entries: dict[LineId, LineEntry] = {}
        for entry in iter_lines(files):
            if entry.id in self._entries:
                raise DiffSplitError(f"Duplicate line id {entry.id}")
            self._entries[entry.id] = entry

    def __contains__(self, line_id: object) -> bool:
        return line_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def entry(self, line_id: LineId) -> LineEntry:
        try:
            return self._entries[line_id]
        except KeyError:
            raise UnknownLineId(line_id) from None

    def entries(self) -> list[LineEntry]:
        """All entries in document order."""
        return list(self._entries.values())

    def selectable_ids(self) -> list[LineId]:
        return [i for i, e in self._entries.items() if e.selectable]

    # ------------------------------------------------------------------
    # Single-line operations
    # ------------------------------------------------------------------

    def is_selected(self, line_id: LineId) -> bool:
        return self.entry(line_id).selected

    def set(self, line_id: LineId, value: bool) -> set[LineId]:
        entry = self.entry(line_id)
        if not entry.selectable or entry.selected == value:
            return set()
        entry.selected = value
        return {line_id}

    def toggle(self, line_id: LineId) -> set[LineId]:
        entry = self.entry(line_id)
        return self.set(line_id, not entry.selected)

    def selected_ids(self) -> set[LineId]:
        return {i for i, e in self._entries.items() if e.selected}

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def snapshot(self) -> frozenset[LineId]:
        return frozenset(self.selected_ids())

    def restore(self, selected: Iterable[LineId]) -> set[LineId]:
        """Make exactly *selected* the selection.  Unknown ids raise."""
        wanted = set(selected)
        for line_id in wanted:
            self.entry(line_id)
        changed: set[LineId] = set()
        for line_id, entry in self._entries.items():
            changed |= self.set(line_id, line_id in wanted)
        return changed

    def merge_from(
        self,
        previous: Iterable[LineEntry],
    ) -> set[LineId]:
        """Re-apply the selection of *previous* entries after a reparse.

        An old selection carries over when the same id still exists with
        the same type and content.  Returns the ids of selected entries
        that could not be carried over.
        """
        dropped: set[LineId] = set()
        for old in previous:
            if not old.selected:
                continue
            entry = self._entries.get(old.id)
            if (
                entry is None
                or entry.type is not old.type
                or entry.content != old.content
            ):
                dropped.add(old.id)
                continue
            entry.selected = True
        if dropped:
            logger.info(
                "[Select] %d selected line(s) did not survive the reparse",
                len(dropped),
            )
        return dropped


class BulkSelectionOps:
    """Hunk, file and whole-diff selection built on a SelectionStore."""

    def __init__(self, store: SelectionStore) -> None:
        self._store = store

    def _apply(
        self,
        match: Callable[[LineId], bool],
        value: bool,
    ) -> set[LineId]:
        changed: set[LineId] = set()
        for line_id in self._store.selectable_ids():
            if match(line_id):
                changed |= self._store.set(line_id, value)
        return changed

    def _all_selected(self, match: Callable[[LineId], bool]) -> bool:
        return all(
            self._store.is_selected(i)
            for i in self._store.selectable_ids() if match(i)
        )

    def select_hunk(self, path: str, hunk_index: int) -> set[LineId]:
        return self._apply(lambda i: i.hunk_key == (path, hunk_index), True)

    def unselect_hunk(self, path: str, hunk_index: int) -> set[LineId]:
        return self._apply(lambda i: i.hunk_key == (path, hunk_index), False)

    def toggle_hunk(self, path: str, hunk_index: int) -> set[LineId]:
        """Select the hunk unless it is already fully selected."""
        match = lambda i: i.hunk_key == (path, hunk_index)  # noqa: E731
        return self._apply(match, not self._all_selected(match))

    def select_file(self, path: str) -> set[LineId]:
        return self._apply(lambda i: i.path == path, True)

    def unselect_file(self, path: str) -> set[LineId]:
        return self._apply(lambda i: i.path == path, False)

    def toggle_file(self, path: str) -> set[LineId]:
        match = lambda i: i.path == path  # noqa: E731
        return self._apply(match, not self._all_selected(match))

    def select_all(self) -> set[LineId]:
        return self._apply(lambda i: True, True)

    def reset_all(self) -> set[LineId]:
        return self._apply(lambda i: True, False)
