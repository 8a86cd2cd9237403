"""
Split session — the caller-held bundle of parsed model, selection and
cursor for one diff.

Reparsing is explicit (``refresh``) and keeps the previous selection
wherever the same line still exists.
"""

from __future__ import annotations

import logging

from .patch import (
    BulkSelectionOps, DiffParser, FileDiff, LineId, Navigator,
    PatchSplitter, SelectionStore, SplitResult,
)

logger = logging.getLogger(__name__)


class SplitSession:
    """One diff being split: model, selection store and navigator."""

    def __init__(self, text: str, files: list[FileDiff]) -> None:
        self.text = text
        self.files = files
        self.store = SelectionStore(files)
        self.bulk = BulkSelectionOps(self.store)
        self.navigator = Navigator(files)
        self.navigator.first()

    @classmethod
    def from_text(cls, text: str) -> "SplitSession":
        return cls(text, DiffParser().parse(text))

    @property
    def is_empty(self) -> bool:
        """True when the diff has no selectable line at all."""
        return not self.store.selectable_ids()

    def refresh(self, text: str, preserve_selection: bool = True) -> set[LineId]:
        """Replace the model with a parse of *text*.

        With *preserve_selection* the previous selection is merged into the
        new model by line identity.  Returns the ids of selected lines that
        could not be carried over (all of them when not preserving).
        """
        files = DiffParser().parse(text)
        previous = self.store.entries()
        position = self.navigator.position

        self.text = text
        self.files = files
        self.store = SelectionStore(files)
        self.bulk = BulkSelectionOps(self.store)
        self.navigator = Navigator(files)

        if preserve_selection:
            dropped = self.store.merge_from(previous)
        else:
            dropped = {e.id for e in previous if e.selected}

        if position is not None and position in self.store:
            self.navigator.move_to(position)
        else:
            self.navigator.first()

        logger.debug(
            "[Session] Reparsed: %d file(s), %d selection(s) dropped",
            len(files), len(dropped),
        )
        return dropped

    def toggle_current(self) -> set[LineId]:
        position = self.navigator.position
        if position is None:
            return set()
        return self.store.toggle(position)

    def toggle_and_advance(self) -> set[LineId]:
        """Toggle the line under the cursor and move to the next selectable line."""
        changed = self.toggle_current()
        self.navigator.next_selectable_line()
        return changed

    def split(self) -> SplitResult:
        return PatchSplitter().split(self.files, self.store)
