"""
diffsplit — split a unified diff into two complementary patches by
selecting individual change lines.

Public API for library usage::

    from diffsplit import SplitSession

    session = SplitSession.from_text(diff_text)
    session.bulk.select_hunk("src/app.py", 1)
    result = session.split()
    result.selected_patch, result.remainder_patch
"""

from .patch import (
    DiffSplitError, LineType, LineId, LineEntry, HunkDiff, FileDiff,
    DiffParser, MalformedHunkHeader, parse_diff,
    SelectionStore, BulkSelectionOps, UnknownLineId,
    Navigator,
    PatchSplitter, SplitResult, StaleSelectionError, split_patch,
)
from .session import SplitSession

__all__ = [
    "DiffSplitError", "LineType", "LineId", "LineEntry", "HunkDiff", "FileDiff",
    "DiffParser", "MalformedHunkHeader", "parse_diff",
    "SelectionStore", "BulkSelectionOps", "UnknownLineId",
    "Navigator",
    "PatchSplitter", "SplitResult", "StaleSelectionError", "split_patch",
    "SplitSession",
]
