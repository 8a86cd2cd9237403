"""Unified-diff model, line selection and patch splitting."""

from .model import (
    DiffSplitError, LineType, FileStatus, LineId, LineEntry, HunkHeader,
    HunkDiff, FileDiff, iter_lines,
)
from .diff_parser import DiffParser, DiffParseError, MalformedHunkHeader, parse_diff
from .selection import SelectionStore, BulkSelectionOps, UnknownLineId
from .navigator import Navigator
from .splitter import (
    PatchSplitter, SplitResult, PatchFile, PatchHunk, StaleSelectionError,
    split_patch,
)

__all__ = [
    "DiffSplitError", "LineType", "FileStatus", "LineId", "LineEntry",
    "HunkHeader", "HunkDiff", "FileDiff", "iter_lines",
    "DiffParser", "DiffParseError", "MalformedHunkHeader", "parse_diff",
    "SelectionStore", "BulkSelectionOps", "UnknownLineId",
    "Navigator",
    "PatchSplitter", "SplitResult", "PatchFile", "PatchHunk",
    "StaleSelectionError", "split_patch",
]
