"""
Diff model — the file → hunk → line tree produced by DiffParser.

Only ``LineEntry.selected`` changes after a parse, and only through a
SelectionStore.  Everything else is structural identity.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterable, Iterator

NO_NEWLINE_MARKER = "\\ No newline at end of file"


class DiffSplitError(Exception):
    """Base class for every error raised by diffsplit."""


class LineType(enum.Enum):
    CONTEXT = " "
    ADDITION = "+"
    DELETION = "-"

    @property
    def marker(self) -> str:
        return self.value

    @property
    def is_change(self) -> bool:
        return self is not LineType.CONTEXT

    @classmethod
    def from_marker(cls, marker: str) -> "LineType":
        return cls(marker)


class FileStatus(str, enum.Enum):
    MODIFIED = "modified"
    ADDED = "added"
    DELETED = "deleted"
    RENAMED = "renamed"


@dataclass(frozen=True, order=True)
class LineId:
    """Identity of a line: file path, 1-based hunk index, 1-based line index."""
    path: str
    hunk_index: int
    line_index: int

    @property
    def hunk_key(self) -> tuple[str, int]:
        return (self.path, self.hunk_index)

    def __str__(self) -> str:
        return f"{self.path}:{self.hunk_index}:{self.line_index}"


@dataclass
class LineEntry:
    """One body line of a hunk, without its leading marker."""
    id: LineId
    type: LineType
    content: str
    no_newline: bool = False
    selected: bool = False

    @property
    def selectable(self) -> bool:
        return self.type.is_change

    def render(
        self,
        line_type: LineType | None = None,
        no_newline: bool | None = None,
    ) -> list[str]:
        """Return the diff text lines for this entry (marker restored).

        *line_type* and *no_newline* override what the entry was parsed with.
        """
        if no_newline is None:
            no_newline = self.no_newline
        marker = (line_type or self.type).marker
        out = [marker + self.content]
        if no_newline:
            out.append(NO_NEWLINE_MARKER)
        return out


@dataclass(frozen=True)
class HunkHeader:
    """The four integers of ``@@ -a,b +c,d @@`` plus the trailing section text."""
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    section: str = ""

    @property
    def old_first(self) -> int:
        # An empty range names the line *before* the change.
        return self.old_start if self.old_count else self.old_start + 1

    @property
    def new_first(self) -> int:
        return self.new_start if self.new_count else self.new_start + 1

    @classmethod
    def from_first_lines(
        cls,
        old_first: int,
        old_count: int,
        new_first: int,
        new_count: int,
        section: str = "",
    ) -> "HunkHeader":
        return cls(
            old_start=old_first if old_count else old_first - 1,
            old_count=old_count,
            new_start=new_first if new_count else new_first - 1,
            new_count=new_count,
            section=section,
        )

    def render(self) -> str:
        return (
            f"@@ -{self.old_start},{self.old_count} "
            f"+{self.new_start},{self.new_count} @@{self.section}"
        )


@dataclass
class HunkDiff:
    """A contiguous block of changes in one file."""
    path: str
    index: int
    header: HunkHeader
    lines: list[LineEntry] = field(default_factory=list)

    @property
    def key(self) -> tuple[str, int]:
        return (self.path, self.index)

    def body(self) -> str:
        """Hunk body text with markers restored, one line per entry."""
        out: list[str] = []
        for entry in self.lines:
            out.extend(entry.render())
        return "\n".join(out) + "\n" if out else ""


@dataclass
class FileDiff:
    """All hunks of one file in a parsed diff."""
    path: str
    old_path: str | None = None
    status: FileStatus = FileStatus.MODIFIED
    mode: str | None = None
    hunks: list[HunkDiff] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.old_path is None:
            self.old_path = self.path

    def lines(self) -> Iterator[LineEntry]:
        for hunk in self.hunks:
            yield from hunk.lines

    def hunk(self, index: int) -> HunkDiff | None:
        if 1 <= index <= len(self.hunks):
            return self.hunks[index - 1]
        return None

    @property
    def has_selectable_lines(self) -> bool:
        return any(l.selectable for l in self.lines())


def iter_lines(files: Iterable[FileDiff]) -> Iterator[LineEntry]:
    """Every LineEntry of *files* in document order."""
    for file_diff in files:
        yield from file_diff.lines()
