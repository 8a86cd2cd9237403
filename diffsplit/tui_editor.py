"""
TUI Split Editor — Textual-based interactive line selection.

The app only renders; all state lives in the SplitSession it is given, so
whatever the user selected stays available to the caller afterwards.
"""

from __future__ import annotations

from .diff_display import rich_markup
from .patch import LineId, SplitResult
from .session import SplitSession


def launch_split_editor(session: SplitSession) -> SplitResult | None:
    """Launch the split editor on *session*.

    Returns the split on confirm, or None if the user cancelled.
    """
    confirmed = _textual_split_editor(session)
    if not confirmed:
        return None
    return session.split()


def _textual_split_editor(session: SplitSession) -> bool:
    """Run the Textual app; True if the user confirmed."""
    from textual.app import App, ComposeResult
    from textual.binding import Binding
    from textual.containers import VerticalScroll
    from textual.widgets import Footer, Static

    class LineRow(Static):
        """A single diff line."""

        def __init__(self, line_id: LineId) -> None:
            entry = session.store.entry(line_id)
            super().__init__(rich_markup(entry, session.store), classes="line-row")
            self.line_id = line_id

        def refresh_mark(self) -> None:
            self.update(rich_markup(session.store.entry(self.line_id), session.store))

    class SplitEditorApp(App):
        """Textual app for choosing the lines of the first patch."""

        CSS = """
        Screen {
            background: $surface;
        }
        #title-bar {
            dock: top;
            height: 3;
            background: #1a1a2e;
            color: #e94560;
            text-align: center;
            padding: 1;
            text-style: bold;
        }
        #diff-scroll {
            height: 1fr;
            margin: 1 2;
            border: round #444;
            padding: 0 1;
        }
        .file-header {
            color: #e9c46a;
            text-style: bold;
            margin: 1 0 0 0;
        }
        .hunk-header {
            color: cyan;
        }
        .line-row.cursor {
            background: #0f3460;
        }
        #status-bar {
            dock: bottom;
            height: 1;
            color: #888;
            padding: 0 2;
        }
        """

        BINDINGS = [
            Binding("j", "move('next_line')", "Down", show=False),
            Binding("k", "move('previous_line')", "Up", show=False),
            Binding("down", "move('next_line')", "Down", show=False),
            Binding("up", "move('previous_line')", "Up", show=False),
            Binding("n", "move('next_selectable_line')", "Next change"),
            Binding("p", "move('previous_selectable_line')", "Prev change"),
            Binding("right_square_bracket", "move('next_hunk')", "Next hunk", show=False),
            Binding("left_square_bracket", "move('previous_hunk')", "Prev hunk", show=False),
            Binding("right_curly_bracket", "move('next_file')", "Next file", show=False),
            Binding("left_curly_bracket", "move('previous_file')", "Prev file", show=False),
            Binding("space", "toggle", "Toggle"),
            Binding("enter", "toggle_advance", "Toggle+next", show=False),
            Binding("h", "hunk(True)", "Select hunk", show=False),
            Binding("H", "hunk(False)", "Unselect hunk", show=False),
            Binding("f", "file(True)", "Select file", show=False),
            Binding("F", "file(False)", "Unselect file", show=False),
            Binding("a", "select_all", "All", show=False),
            Binding("r", "reset", "Reset"),
            Binding("c", "confirm", "Split"),
            Binding("q", "cancel", "Cancel"),
            Binding("escape", "cancel", "Cancel", show=False),
        ]

        def __init__(self) -> None:
            super().__init__()
            self._rows: dict[LineId, LineRow] = {}

        def compose(self) -> ComposeResult:
            yield Static(" ━━  diffsplit — Select Changes  ━━ ", id="title-bar")
            with VerticalScroll(id="diff-scroll"):
                for file_diff in session.files:
                    yield Static(file_diff.path, classes="file-header", markup=False)
                    for hunk in file_diff.hunks:
                        yield Static(hunk.header.render(), classes="hunk-header",
                                     markup=False)
                        for entry in hunk.lines:
                            row = LineRow(entry.id)
                            self._rows[entry.id] = row
                            yield row
            yield Static("", id="status-bar")
            yield Footer()

        def on_mount(self) -> None:
            self._highlight(None, session.navigator.position)
            self._update_status()

        def _update_status(self, message: str = "") -> None:
            selected = len(session.store.selected_ids())
            total = len(session.store.selectable_ids())
            text = f"{selected}/{total} change line(s) selected"
            if message:
                text = f"{text}  —  {message}"
            self.query_one("#status-bar", Static).update(text)

        def _highlight(self, before: LineId | None, after: LineId | None) -> None:
            if before in self._rows:
                self._rows[before].remove_class("cursor")
            if after in self._rows:
                row = self._rows[after]
                row.add_class("cursor")
                row.scroll_visible()

        def _redraw(self, changed: set[LineId]) -> None:
            for line_id in changed:
                self._rows[line_id].refresh_mark()
            self._update_status()

        def action_move(self, method: str) -> None:
            before = session.navigator.position
            after = getattr(session.navigator, method)()
            if after is None:
                self._update_status("no further lines in that direction")
                return
            self._highlight(before, after)
            self._update_status()

        def action_toggle(self) -> None:
            self._redraw(session.toggle_current())

        def action_toggle_advance(self) -> None:
            before = session.navigator.position
            changed = session.toggle_and_advance()
            after = session.navigator.position
            self._redraw(changed)
            if after == before:
                self._update_status("no more selectable lines")
            else:
                self._highlight(before, after)

        def action_hunk(self, select: bool) -> None:
            key = session.navigator.current_hunk_key()
            if key is None:
                return
            op = session.bulk.select_hunk if select else session.bulk.unselect_hunk
            self._redraw(op(*key))

        def action_file(self, select: bool) -> None:
            path = session.navigator.current_file()
            if path is None:
                return
            op = session.bulk.select_file if select else session.bulk.unselect_file
            self._redraw(op(path))

        def action_select_all(self) -> None:
            self._redraw(session.bulk.select_all())

        def action_reset(self) -> None:
            self._redraw(session.bulk.reset_all())

        def action_confirm(self) -> None:
            self.exit(True)

        def action_cancel(self) -> None:
            self.exit(False)

    return bool(SplitEditorApp().run())
