"""
Patch splitter — turns a parsed diff plus a line selection into two
complementary patches.

The patches are sequential: ``selected_patch`` applies to the original
old tree, ``remainder_patch`` applies on top of that and yields the
original new tree.

Per hunk, each line goes to the two outputs as follows:

==================  ==================  ==================
original line       selected patch      remainder patch
==================  ==================  ==================
context             context             context
selected ``+``      ``+``               context
unselected ``+``    (dropped)           ``+``
selected ``-``      ``-``               (dropped)
unselected ``-``    context             ``-``
==================  ==================  ==================

Hunk starts are shifted by the net line delta of the earlier hunks in the
same file that went to the *other* output.  A hunk (or file) without any
change line in an output is left out of it.

``\\ No newline at end of file`` is placed per output, after the last line
of whichever side ends without a newline in the tree that side describes.
A context line that is last on one side only (the old last line gets
selected additions after it, say) is rewritten as ``-line`` then ``+line``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from .model import (
    DiffSplitError, FileDiff, FileStatus, HunkDiff, HunkHeader, LineEntry,
    LineId, LineType, iter_lines,
)
from .selection import SelectionStore

logger = logging.getLogger(__name__)

_DEFAULT_MODE = "100644"


class StaleSelectionError(DiffSplitError):
    """The selection refers to lines that are not in the model being split."""

    def __init__(self, ids: Iterable[LineId]) -> None:
        self.ids = sorted(ids)
        shown = ", ".join(str(i) for i in self.ids[:5])
        more = f" (+{len(self.ids) - 5} more)" if len(self.ids) > 5 else ""
        super().__init__(f"Selection does not match the diff: {shown}{more}")


@dataclass
class PatchHunk:
    """One output hunk: recomputed header and rendered body lines."""
    header: HunkHeader
    lines: list[str] = field(default_factory=list)
    source_index: int = 0

    def render(self) -> list[str]:
        return [self.header.render(), *self.lines]


@dataclass
class PatchFile:
    """One file section of an output patch."""
    path: str
    header_lines: list[str] = field(default_factory=list)
    hunks: list[PatchHunk] = field(default_factory=list)

    def render(self) -> list[str]:
        out = list(self.header_lines)
        for hunk in self.hunks:
            out.extend(hunk.render())
        return out


@dataclass
class SplitResult:
    """The two complementary patches produced by PatchSplitter."""
    selected_files: list[PatchFile] = field(default_factory=list)
    remainder_files: list[PatchFile] = field(default_factory=list)

    @property
    def selected_patch(self) -> str:
        return _render_patch(self.selected_files)

    @property
    def remainder_patch(self) -> str:
        return _render_patch(self.remainder_files)

    @property
    def is_noop(self) -> bool:
        """True when nothing was selected."""
        return not self.selected_files


def _render_patch(files: Sequence[PatchFile]) -> str:
    lines: list[str] = []
    for patch_file in files:
        lines.extend(patch_file.render())
    return "\n".join(lines) + "\n" if lines else ""


def _emit_hunk(
    items: Sequence[tuple[LineEntry, LineType]],
    old_no_eol: bool,
    new_no_eol: bool,
    index: int,
) -> tuple[PatchHunk | None, int]:
    """Render one output hunk from ``(entry, emitted type)`` pairs.

    *old_no_eol* / *new_no_eol* say whether the file this hunk applies to,
    and the file it produces, end without a newline.  The marker follows
    the last line of each such side; a context line that ends only one
    side is written as a ``-``/``+`` pair.
    """
    if not any(as_type is not LineType.CONTEXT for _, as_type in items):
        return None, 0

    old_last = max(
        (n for n, (_, t) in enumerate(items) if t is not LineType.ADDITION),
        default=None,
    )
    new_last = max(
        (n for n, (_, t) in enumerate(items) if t is not LineType.DELETION),
        default=None,
    )
    lines: list[str] = []
    counts = {LineType.CONTEXT: 0, LineType.ADDITION: 0, LineType.DELETION: 0}

    def emit(entry, as_type, no_newline):
        lines.extend(entry.render(as_type, no_newline=no_newline))
        counts[as_type] += 1

    for n, (entry, as_type) in enumerate(items):
        old_marker = old_no_eol and n == old_last
        new_marker = new_no_eol and n == new_last
        if as_type is LineType.CONTEXT and old_marker != new_marker:
            emit(entry, LineType.DELETION, old_marker)
            emit(entry, LineType.ADDITION, new_marker)
        else:
            emit(entry, as_type, old_marker or new_marker)

    context = counts[LineType.CONTEXT]
    header = HunkHeader(
        old_start=0,
        old_count=context + counts[LineType.DELETION],
        new_start=0,
        new_count=context + counts[LineType.ADDITION],
    )
    delta = counts[LineType.ADDITION] - counts[LineType.DELETION]
    return PatchHunk(header=header, lines=lines, source_index=index), delta


class PatchSplitter:
    """Split a parsed diff into selected and remainder patches."""

    def split(
        self,
        files: Sequence[FileDiff],
        selection: SelectionStore | Iterable[LineId],
    ) -> SplitResult:
        """Split *files* according to *selection*.

        Parameters
        ----------
        files:
            The parsed model (``DiffParser.parse`` output).
        selection:
            A SelectionStore built from *files*, or an iterable of the
            selected line ids (a snapshot).

        Raises
        ------
        StaleSelectionError
            If the selection names lines that are not change lines of
            *files*, or the store was built from a different parse.
        """
        selected = self._selected_ids(files, selection)
        result = SplitResult()

        for file_diff in files:
            sel_hunks, rem_hunks = self._split_file(file_diff, selected)
            in_selected = bool(sel_hunks)
            in_remainder = bool(rem_hunks)

            if in_selected:
                result.selected_files.append(PatchFile(
                    path=file_diff.path,
                    header_lines=self._selected_header(file_diff, in_remainder),
                    hunks=sel_hunks,
                ))
            if in_remainder:
                result.remainder_files.append(PatchFile(
                    path=file_diff.path,
                    header_lines=self._remainder_header(file_diff, in_selected),
                    hunks=rem_hunks,
                ))

        logger.debug(
            "[Split] %d selected line(s): %d file(s) selected, "
            "%d file(s) in remainder",
            len(selected), len(result.selected_files),
            len(result.remainder_files),
        )
        return result

    # ------------------------------------------------------------------
    # Hunk splitting
    # ------------------------------------------------------------------

    def _split_file(
        self,
        file_diff: FileDiff,
        selected: set[LineId],
    ) -> tuple[list[PatchHunk], list[PatchHunk]]:
        sel_hunks: list[PatchHunk] = []
        rem_hunks: list[PatchHunk] = []
        # Net (additions - deletions) of earlier hunks, per output
        sel_shift = 0
        rem_shift = 0

        for hunk in file_diff.hunks:
            sel_hunk, rem_hunk, sel_delta, rem_delta = self._split_hunk(
                hunk, selected,
            )
            header = hunk.header
            if sel_hunk is not None:
                sel_hunk.header = HunkHeader.from_first_lines(
                    header.old_first, sel_hunk.header.old_count,
                    header.new_first - rem_shift, sel_hunk.header.new_count,
                    header.section,
                )
                sel_hunks.append(sel_hunk)
            if rem_hunk is not None:
                rem_hunk.header = HunkHeader.from_first_lines(
                    header.old_first + sel_shift, rem_hunk.header.old_count,
                    header.new_first, rem_hunk.header.new_count,
                    header.section,
                )
                rem_hunks.append(rem_hunk)
            sel_shift += sel_delta
            rem_shift += rem_delta

        return sel_hunks, rem_hunks

    @staticmethod
    def _split_hunk(
        hunk: HunkDiff,
        selected: set[LineId],
    ) -> tuple[PatchHunk | None, PatchHunk | None, int, int]:
        """Partition one hunk.

        Returns the selected and remainder hunks (``None`` when they hold
        no change) with placeholder starts, and the net line delta each
        output introduces.
        """
        sel_items: list[tuple[LineEntry, LineType]] = []
        rem_items: list[tuple[LineEntry, LineType]] = []
        # Lines of the in-between tree (after selected, before remainder)
        middle: list[LineEntry] = []

        for entry in hunk.lines:
            if entry.type is LineType.CONTEXT:
                sel_items.append((entry, LineType.CONTEXT))
                rem_items.append((entry, LineType.CONTEXT))
                middle.append(entry)
            elif entry.type is LineType.ADDITION:
                if entry.id in selected:
                    sel_items.append((entry, LineType.ADDITION))
                    rem_items.append((entry, LineType.CONTEXT))
                    middle.append(entry)
                else:
                    rem_items.append((entry, LineType.ADDITION))
            elif entry.type is LineType.DELETION:
                if entry.id in selected:
                    sel_items.append((entry, LineType.DELETION))
                else:
                    sel_items.append((entry, LineType.CONTEXT))
                    rem_items.append((entry, LineType.DELETION))
                    middle.append(entry)
            else:
                raise AssertionError(f"unhandled line type {entry.type!r}")

        # Which of the three trees end without a newline.  Only the hunk
        # that reaches end of file carries markers at all.
        old_no_eol = any(
            l.no_newline for l in hunk.lines if l.type is not LineType.ADDITION
        )
        new_no_eol = any(
            l.no_newline for l in hunk.lines if l.type is not LineType.DELETION
        )
        middle_no_eol = bool(middle) and middle[-1].no_newline

        sel_hunk, sel_delta = _emit_hunk(sel_items, old_no_eol, middle_no_eol, hunk.index)
        rem_hunk, rem_delta = _emit_hunk(rem_items, middle_no_eol, new_no_eol, hunk.index)
        return sel_hunk, rem_hunk, sel_delta, rem_delta

    # ------------------------------------------------------------------
    # File headers
    # ------------------------------------------------------------------

    @staticmethod
    def _header(old_path: str, new_path: str, kind: str, mode: str | None) -> list[str]:
        lines = [f"diff --git a/{old_path} b/{new_path}"]
        if kind == "added":
            lines += [
                f"new file mode {mode or _DEFAULT_MODE}",
                "--- /dev/null",
                f"+++ b/{new_path}",
            ]
        elif kind == "deleted":
            lines += [
                f"deleted file mode {mode or _DEFAULT_MODE}",
                f"--- a/{old_path}",
                "+++ /dev/null",
            ]
        else:
            if old_path != new_path:
                lines += [f"rename from {old_path}", f"rename to {new_path}"]
            lines += [f"--- a/{old_path}", f"+++ b/{new_path}"]
        return lines

    def _selected_header(self, file_diff: FileDiff, in_remainder: bool) -> list[str]:
        if file_diff.status is FileStatus.ADDED:
            return self._header(file_diff.path, file_diff.path, "added", file_diff.mode)
        if file_diff.status is FileStatus.DELETED and not in_remainder:
            return self._header(file_diff.path, file_diff.path, "deleted", file_diff.mode)
        return self._header(file_diff.old_path, file_diff.path, "modified", None)

    def _remainder_header(self, file_diff: FileDiff, in_selected: bool) -> list[str]:
        if file_diff.status is FileStatus.ADDED and not in_selected:
            return self._header(file_diff.path, file_diff.path, "added", file_diff.mode)
        if file_diff.status is FileStatus.DELETED:
            return self._header(file_diff.path, file_diff.path, "deleted", file_diff.mode)
        old_path = file_diff.path if in_selected else file_diff.old_path
        return self._header(old_path, file_diff.path, "modified", None)

    # ------------------------------------------------------------------
    # Selection validation
    # ------------------------------------------------------------------

    @staticmethod
    def _selected_ids(
        files: Sequence[FileDiff],
        selection: SelectionStore | Iterable[LineId],
    ) -> set[LineId]:
        entries = {e.id: e for e in iter_lines(files)}

        if isinstance(selection, SelectionStore):
            missing = [i for i in entries if i not in selection]
            if missing:
                raise StaleSelectionError(missing)
            # Same ids from a different parse: the lines must still match
            changed = []
            for line_id, entry in entries.items():
                other = selection.entry(line_id)
                if (other.type, other.content, other.no_newline) != (
                    entry.type, entry.content, entry.no_newline,
                ):
                    changed.append(line_id)
            if changed:
                raise StaleSelectionError(changed)
            selected = selection.selected_ids()
        else:
            selected = set(selection)

        stale = {
            i for i in selected
            if i not in entries or not entries[i].selectable
        }
        if stale:
            raise StaleSelectionError(stale)
        return selected


def split_patch(
    files: Sequence[FileDiff],
    selection: SelectionStore | Iterable[LineId],
) -> SplitResult:
    """Shortcut for ``PatchSplitter().split(files, selection)``."""
    return PatchSplitter().split(files, selection)
