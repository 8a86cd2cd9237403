"""
CLI entry point — argument parsing and main execution flow.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import datetime

from . import vcs
from .config import Config
from .diff_display import format_colored_diff, render_model
from .patch import DiffSplitError, LineId, SplitResult
from .session import SplitSession

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOTHING = 2


def setup_logger(log_dir: str = ".diffsplit/logs") -> logging.Logger:
    """Creates a file logger. All verbose output goes here."""
    logger = logging.getLogger("diffsplit")
    logger.setLevel(logging.DEBUG)
    if any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        return logger

    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"diffsplit_{timestamp}.log")

    # File handler — captures everything
    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S"
    ))
    logger.addHandler(fh)

    return logger


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="diffsplit",
        description="diffsplit — split a diff into two patches by line selection",
    )
    parser.add_argument("--config", default=None,
                        help="Path to .diffsplit.yaml config file")
    parser.add_argument("--revision", "-r", default=None,
                        help="Revision to split (default: from config)")
    parser.add_argument("--vcs", choices=["jj", "git"], default=None,
                        help="Version-control tool that produces the diff")
    parser.add_argument("--diff-file", default=None,
                        help="Read the diff from a file ('-' for stdin) "
                             "instead of running the VCS")
    parser.add_argument("--no-color", action="store_true",
                        help="Disable colored output")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("show", help="Print the parsed diff with line ids")

    for name, help_text in (
        ("split", "Select lines and write both patches"),
        ("edit", "Select lines interactively, then write both patches"),
        ("apply", "Split, then back the remainder out of the working tree"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--select", action="append", default=[],
                         metavar="PATH[:HUNK[:LINE]]",
                         help="Select a file, hunk or single line (repeatable)")
        cmd.add_argument("--selected-out", default=None,
                         help="Write the selected patch here")
        cmd.add_argument("--remainder-out", default=None,
                         help="Write the remainder patch here")
    return parser


def parse_select(spec: str) -> tuple[str, int | None, int | None]:
    """Split ``PATH[:HUNK[:LINE]]`` into its parts."""
    parts = spec.split(":")
    numbers: list[int] = []
    while len(parts) > 1 and len(numbers) < 2 and parts[-1].isdigit():
        numbers.insert(0, int(parts.pop()))
    path = ":".join(parts)
    hunk = numbers[0] if numbers else None
    line = numbers[1] if len(numbers) > 1 else None
    return path, hunk, line


def apply_selections(session: SplitSession, specs: list[str]) -> None:
    """Apply ``--select`` specs to the session's selection store."""
    files = {f.path: f for f in session.files}
    for spec in specs:
        path, hunk, line = parse_select(spec)
        if path not in files:
            raise DiffSplitError(f"No file {path!r} in the diff")
        if hunk is None:
            session.bulk.select_file(path)
            continue
        if files[path].hunk(hunk) is None:
            raise DiffSplitError(f"No hunk {hunk} in {path!r}")
        if line is None:
            session.bulk.select_hunk(path, hunk)
        else:
            session.store.set(LineId(path, hunk, line), True)


def _load_diff(args, cfg: Config) -> str | None:
    if args.diff_file == "-":
        text = sys.stdin.read()
    elif args.diff_file:
        with open(args.diff_file, "r", encoding="utf-8", errors="replace") as f:
            text = f.read()
    else:
        revision = args.revision or cfg.DEFAULT_REVISION
        text = vcs.fetch_diff(revision, args.vcs or cfg.VCS)
    if text is None or not text.strip():
        return None
    return text


def _emit(patch_text: str, out_path: str | None, title: str, color: bool) -> None:
    if out_path:
        with open(out_path, "w", encoding="utf-8") as f:
            f.write(patch_text)
        print(f"  {title} patch written to {out_path}")
        return
    print(f"── {title} patch ──")
    if patch_text:
        print(format_colored_diff(patch_text) if color else patch_text, end="")
        if color:
            print()
    else:
        print("  (empty)")


def _write_outputs(result: SplitResult, args, color: bool,
                   include_selected: bool = True) -> None:
    if include_selected:
        _emit(result.selected_patch, args.selected_out, "selected", color)
    _emit(result.remainder_patch, args.remainder_out, "remainder", color)


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    # ── 0. Load config ──
    cfg = Config.load(args.config)
    log = setup_logger(cfg.LOG_DIR)
    color = cfg.COLOR and not args.no_color and sys.stdout.isatty()

    try:
        # ── 1. Parse ──
        text = _load_diff(args, cfg)
        if text is None:
            print("Nothing to edit: the diff is empty.", file=sys.stderr)
            return EXIT_NOTHING
        session = SplitSession.from_text(text)
        log.info(f"Parsed diff: {len(session.files)} file(s)")

        if args.command == "show":
            print(render_model(session.files, session.store, color=color,
                               show_ids=True))
            return EXIT_OK

        if session.is_empty:
            print("Nothing to edit: no selectable lines.", file=sys.stderr)
            return EXIT_NOTHING

        # ── 2. Select ──
        apply_selections(session, args.select)
        if args.command == "edit":
            from .tui_editor import launch_split_editor
            result = launch_split_editor(session)
            if result is None:
                print("Cancelled.", file=sys.stderr)
                return EXIT_OK
        else:
            result = session.split()

        # ── 3. Output ──
        if args.command == "apply":
            # The working tree holds the whole change; backing the remainder
            # out of it leaves the parent plus the selected lines.
            vcs.apply_patch(result.remainder_patch, reverse=True)
            print(f"  Reverted remainder "
                  f"({len(result.remainder_files)} file(s)); "
                  f"the working tree now holds the selected lines only")
            _write_outputs(result, args, color, include_selected=False)
        else:
            _write_outputs(result, args, color)
        return EXIT_OK
    except (DiffSplitError, OSError) as e:
        log.error(f"diffsplit failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
