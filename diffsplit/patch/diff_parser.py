"""
Diff parser — turns unified-diff text (``git diff`` / ``jj diff --git``
output) into the FileDiff → HunkDiff → LineEntry model.
"""

from __future__ import annotations

import logging
import re

from .model import (
    DiffSplitError, FileDiff, FileStatus, HunkDiff, HunkHeader, LineEntry,
    LineId, LineType,
)

logger = logging.getLogger(__name__)

# Patterns
_FILE_HEADER = re.compile(r"^diff --git a/(.*) b/(.*)$")
_HUNK_HEADER = re.compile(
    r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)$"
)
_DEV_NULL = "/dev/null"

# Extended header lines that carry nothing the line model needs
_NOISE_PREFIXES = (
    "index ", "old mode ", "new mode ", "similarity index ",
    "dissimilarity index ", "copy from ", "copy to ", "Binary files ",
    "GIT binary patch",
)


class DiffParseError(DiffSplitError):
    """Raised when diff text cannot be turned into a consistent model."""


class MalformedHunkHeader(DiffParseError):
    """A ``@@`` line that does not carry the four hunk range integers."""

    def __init__(self, line_number: int, line: str) -> None:
        super().__init__(
            f"Malformed hunk header at line {line_number}: {line!r}"
        )
        self.line_number = line_number
        self.line = line


def _strip_side(path: str, prefix: str) -> str:
    """Drop a ``a/``/``b/`` prefix and any tab-separated timestamp."""
    path = path.split("\t", 1)[0]
    if path.startswith(prefix):
        return path[len(prefix):]
    return path


class DiffParser:
    """Parse unified diffs into an ordered list of FileDiff."""

    def parse(self, diff_text: str) -> list[FileDiff]:
        """Parse *diff_text*.

        Parameters
        ----------
        diff_text:
            Raw unified-diff text.  Empty text yields an empty list.

        Returns
        -------
        list[FileDiff]
            Files in input order.  A file without hunks (pure rename,
            mode change, binary) has an empty hunk list.

        Raises
        ------
        MalformedHunkHeader
            If a ``@@`` line does not match ``@@ -a[,b] +c[,d] @@``.
        DiffParseError
            If two file sections name the same path.
        """
        files: list[FileDiff] = []
        current_file: FileDiff | None = None
        current_hunk: HunkDiff | None = None
        old_left = new_left = 0
        pending_old: str | None = None
        pending_added = False

        lines = diff_text.split("\n")
        if lines and lines[-1] == "":
            lines.pop()

        for line_no, line in enumerate(lines, start=1):
            # Body lines the header still accounts for
            if current_hunk is not None and (old_left > 0 or new_left > 0):
                line_type = self._classify_body_line(line)
                if line_type is not None:
                    content = line[1:]
                    self._append_line(current_hunk, line_type, content)
                    if line_type is not LineType.ADDITION:
                        old_left -= 1
                    if line_type is not LineType.DELETION:
                        new_left -= 1
                    continue
                if line.startswith("\\"):
                    self._mark_no_newline(current_hunk, line_no)
                    continue
                logger.debug(
                    "[DiffParse] Hunk %s:%d ended early at line %d "
                    "(%d old / %d new lines unaccounted)",
                    current_hunk.path, current_hunk.index, line_no,
                    old_left, new_left,
                )
                old_left = new_left = 0

            match = _FILE_HEADER.match(line)
            if match:
                current_file = FileDiff(
                    path=match.group(2), old_path=match.group(1),
                )
                files.append(current_file)
                current_hunk = None
                pending_old = None
                pending_added = False
                continue

            if line.startswith("@@"):
                header = self._parse_hunk_header(line, line_no)
                if current_file is None:
                    logger.debug(
                        "[DiffParse] Hunk header outside a file at line %d",
                        line_no,
                    )
                    continue
                current_hunk = HunkDiff(
                    path=current_file.path,
                    index=len(current_file.hunks) + 1,
                    header=header,
                )
                current_file.hunks.append(current_hunk)
                old_left, new_left = header.old_count, header.new_count
                continue

            if line.startswith("--- "):
                old = _strip_side(line[4:], "a/")
                pending_added = old == _DEV_NULL
                pending_old = None if pending_added else old
                if current_file is not None and not current_file.hunks:
                    if pending_added:
                        current_file.status = FileStatus.ADDED
                    else:
                        current_file.old_path = old
                continue

            if line.startswith("+++ "):
                new = _strip_side(line[4:], "b/")
                if current_file is None or current_file.hunks:
                    # Plain unified diff without ``diff --git`` headers
                    path = pending_old if new == _DEV_NULL else new
                    if path is None:
                        logger.debug(
                            "[DiffParse] '+++' without a path at line %d",
                            line_no,
                        )
                        continue
                    current_file = FileDiff(path=path, old_path=pending_old)
                    if pending_added:
                        current_file.status = FileStatus.ADDED
                    files.append(current_file)
                    current_hunk = None
                if new == _DEV_NULL:
                    current_file.status = FileStatus.DELETED
                else:
                    current_file.path = new
                pending_old = None
                pending_added = False
                continue

            if current_file is not None and self._apply_extended_header(
                current_file, line,
            ):
                continue

            if line.startswith(_NOISE_PREFIXES):
                continue

            if current_hunk is not None:
                line_type = self._classify_body_line(line)
                if line_type is not None and line:
                    logger.debug(
                        "[DiffParse] Line %d exceeds the counts of hunk %s:%d",
                        line_no, current_hunk.path, current_hunk.index,
                    )
                    self._append_line(current_hunk, line_type, line[1:])
                    continue
                if line.startswith("\\"):
                    self._mark_no_newline(current_hunk, line_no)
                    continue

            logger.debug("[DiffParse] Skipping line %d: %r", line_no, line)

        self._check_unique_paths(files)
        logger.debug(
            "[DiffParse] Parsed %d file(s), %d hunk(s)",
            len(files), sum(len(f.hunks) for f in files),
        )
        return files

    # ------------------------------------------------------------------
    # Internal parsing
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_hunk_header(line: str, line_no: int) -> HunkHeader:
        match = _HUNK_HEADER.match(line)
        if not match:
            raise MalformedHunkHeader(line_no, line)
        old_start, old_count, new_start, new_count, section = match.groups()
        return HunkHeader(
            old_start=int(old_start),
            old_count=int(old_count) if old_count is not None else 1,
            new_start=int(new_start),
            new_count=int(new_count) if new_count is not None else 1,
            section=section,
        )

    @staticmethod
    def _classify_body_line(line: str) -> LineType | None:
        if not line:
            # Editors sometimes strip the space of an empty context line
            return LineType.CONTEXT
        if line[0] in "+- ":
            return LineType.from_marker(line[0])
        return None

    @staticmethod
    def _append_line(hunk: HunkDiff, line_type: LineType, content: str) -> None:
        hunk.lines.append(LineEntry(
            id=LineId(hunk.path, hunk.index, len(hunk.lines) + 1),
            type=line_type,
            content=content,
        ))

    @staticmethod
    def _mark_no_newline(hunk: HunkDiff, line_no: int) -> None:
        if hunk.lines:
            hunk.lines[-1].no_newline = True
        else:
            logger.debug(
                "[DiffParse] No-newline marker before any line at %d", line_no
            )

    @staticmethod
    def _apply_extended_header(file_diff: FileDiff, line: str) -> bool:
        """Record git's extended header lines.  Returns True if consumed."""
        if file_diff.hunks:
            return False
        if line.startswith("new file mode "):
            file_diff.status = FileStatus.ADDED
            file_diff.mode = line[len("new file mode "):].strip()
            return True
        if line.startswith("deleted file mode "):
            file_diff.status = FileStatus.DELETED
            file_diff.mode = line[len("deleted file mode "):].strip()
            return True
        if line.startswith("rename from "):
            file_diff.status = FileStatus.RENAMED
            file_diff.old_path = line[len("rename from "):]
            return True
        if line.startswith("rename to "):
            file_diff.status = FileStatus.RENAMED
            file_diff.path = line[len("rename to "):]
            return True
        return False

    @staticmethod
    def _check_unique_paths(files: list[FileDiff]) -> None:
        seen: set[str] = set()
        for file_diff in files:
            if file_diff.path in seen:
                raise DiffParseError(
                    f"Path {file_diff.path!r} appears in more than one "
                    f"file section"
                )
            seen.add(file_diff.path)


def parse_diff(diff_text: str) -> list[FileDiff]:
    """Shortcut for ``DiffParser().parse(diff_text)``."""
    return DiffParser().parse(diff_text)
