"""
Diff display — plain/ANSI rendering of a parsed diff with its selection
column, and coloring of patch text.
"""

from __future__ import annotations

from typing import Sequence

from .patch import FileDiff, LineEntry, LineType, SelectionStore

_ANSI = {
    "bold": "\033[1m",
    "cyan": "\033[36m",
    "green": "\033[32m",
    "red": "\033[31m",
    "dim": "\033[2m",
    "reset": "\033[0m",
}


def _paint(text: str, style: str, color: bool) -> str:
    if not color:
        return text
    return f"{_ANSI[style]}{text}{_ANSI['reset']}"


def selection_mark(entry: LineEntry, store: SelectionStore | None = None) -> str:
    """``[x]``/``[ ]`` for change lines, blanks for context."""
    if not entry.selectable:
        return "   "
    selected = store.is_selected(entry.id) if store is not None else entry.selected
    return "[x]" if selected else "[ ]"


def format_entry(entry: LineEntry, store: SelectionStore | None = None,
                 color: bool = False, show_ids: bool = False) -> str:
    text = f"{selection_mark(entry, store)} {entry.type.marker}{entry.content}"
    if show_ids:
        text = f"{str(entry.id):<24} {text}"
    if entry.type is LineType.ADDITION:
        return _paint(text, "green", color)
    if entry.type is LineType.DELETION:
        return _paint(text, "red", color)
    return text


def render_model(files: Sequence[FileDiff], store: SelectionStore | None = None,
                 color: bool = False, show_ids: bool = False) -> str:
    """Render the model one line per entry, with file and hunk headings."""
    out: list[str] = []
    for file_diff in files:
        heading = file_diff.path
        if file_diff.old_path != file_diff.path:
            heading = f"{file_diff.old_path} => {file_diff.path}"
        out.append(_paint(f"{heading} ({file_diff.status.value})", "bold", color))
        if not file_diff.hunks:
            out.append(_paint("    (no hunks)", "dim", color))
        for hunk in file_diff.hunks:
            out.append(_paint(f"  #{hunk.index} {hunk.header.render()}", "cyan", color))
            for entry in hunk.lines:
                out.append(format_entry(entry, store, color, show_ids))
    return "\n".join(out)


def format_colored_diff(diff_text: str) -> str:
    """Add ANSI colors to a unified diff string.

    Green for additions (+), red for deletions (-), cyan for @@ hunks.
    """
    lines = diff_text.splitlines()
    colored: list[str] = []
    for line in lines:
        if line.startswith("+++") or line.startswith("---"):
            colored.append(f"\033[1m{line}\033[0m")  # bold
        elif line.startswith("@@"):
            colored.append(f"\033[36m{line}\033[0m")  # cyan
        elif line.startswith("+"):
            colored.append(f"\033[32m{line}\033[0m")  # green
        elif line.startswith("-"):
            colored.append(f"\033[31m{line}\033[0m")  # red
        else:
            colored.append(line)
    return "\n".join(colored)


def rich_markup(entry: LineEntry, store: SelectionStore) -> str:
    """Rich markup for one entry, as used by the Textual editor."""
    # Escape Rich markup characters in the line content
    escaped = entry.content.replace("[", "\\[")
    mark = selection_mark(entry, store).replace("[", "\\[")
    text = f"{mark} {entry.type.marker}{escaped}"
    if entry.type is LineType.ADDITION:
        return f"[green]{text}[/green]"
    if entry.type is LineType.DELETION:
        return f"[red]{text}[/red]"
    return f"[dim]{text}[/dim]"
