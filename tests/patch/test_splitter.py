"""Tests for the PatchSplitter."""

import difflib
import random
import re
from collections import Counter

import pytest

from diffsplit.patch.diff_parser import parse_diff
from diffsplit.patch.model import LineId, LineType, iter_lines
from diffsplit.patch.selection import BulkSelectionOps, SelectionStore
from diffsplit.patch.splitter import PatchSplitter, StaleSelectionError, split_patch


SCENARIO_DIFF = "diff --git a/f b/f\n@@ -1,2 +1,3 @@\n context\n-old\n+new1\n+new2\n"

TWO_HUNK_DIFF = """\
diff --git a/m.txt b/m.txt
--- a/m.txt
+++ b/m.txt
@@ -1,3 +1,4 @@
 a
+a2
 b
 c
@@ -10,3 +11,2 @@
 j
-k
 l
"""

EMPTY_RANGE_DIFF = """\
diff --git a/e.txt b/e.txt
--- a/e.txt
+++ b/e.txt
@@ -2,1 +1,0 @@
-b
@@ -4,0 +4,1 @@
+x
"""

NEW_FILE_DIFF = """\
diff --git a/README.md b/README.md
new file mode 100644
index 0000000..3333333
--- /dev/null
+++ b/README.md
@@ -0,0 +1,3 @@
+# Title
+
+text
"""

DELETED_FILE_DIFF = """\
diff --git a/gone.txt b/gone.txt
deleted file mode 100755
index 4444444..0000000
--- a/gone.txt
+++ /dev/null
@@ -1,2 +0,0 @@
-first
-second
"""

RENAME_DIFF = """\
diff --git a/old.py b/new.py
similarity index 80%
rename from old.py
rename to new.py
index 5555555..6666666 100644
--- a/old.py
+++ b/new.py
@@ -1,2 +1,2 @@
 keep
-before
+after
"""

PURE_RENAME_DIFF = """\
diff --git a/x.py b/y.py
similarity index 100%
rename from x.py
rename to y.py
"""

NO_NEWLINE = "\\ No newline at end of file"

NO_NEWLINE_DIFF = """\
diff --git a/f b/f
--- a/f
+++ b/f
@@ -1,2 +1,2 @@
 a
-last
\\ No newline at end of file
+last2
\\ No newline at end of file
"""

CONTEXT_NO_NEWLINE_DIFF = """\
diff --git a/f b/f
--- a/f
+++ b/f
@@ -1,3 +1,3 @@
-a
+A
 b
 c
\\ No newline at end of file
"""

NEWLINE_ADDED_DIFF = """\
diff --git a/f b/f
--- a/f
+++ b/f
@@ -1 +1,2 @@
-x
\\ No newline at end of file
+x
+y
"""


# ----------------------------------------------------------------------
# Reference applier: applies our output patches to an in-memory tree of
# file texts and checks every header against the content it touches.
# ----------------------------------------------------------------------

_HUNK = re.compile(r"^@@ -(\d+),(\d+) \+(\d+),(\d+) @@")
_GIT_HEADER = re.compile(r"^diff --git a/(.*) b/(.*)$")


def _hunk_sides(body):
    """Old and new side of a hunk body, each line with its own newline."""
    old_side, new_side = [], []
    for n, line in enumerate(body):
        if line.startswith("\\"):
            continue
        text = line[1:]
        if n + 1 == len(body) or not body[n + 1].startswith("\\"):
            text += "\n"
        if line[0] in " -":
            old_side.append(text)
        if line[0] in " +":
            new_side.append(text)
    return old_side, new_side


def apply_patch_text(tree, patch_text):
    tree = dict(tree)
    lines = patch_text.split("\n")[:-1] if patch_text else []
    i = 0
    while i < len(lines):
        match = _GIT_HEADER.match(lines[i])
        assert match, lines[i]
        old_path, new_path = match.groups()
        i += 1
        created = deleted = False
        while i < len(lines) and not lines[i].startswith("@@"):
            created |= lines[i].startswith("new file mode")
            deleted |= lines[i].startswith("deleted file mode")
            i += 1
        if created:
            assert old_path not in tree
            content = []
        else:
            content = tree.pop(old_path).splitlines(keepends=True)

        offset = 0
        while i < len(lines) and lines[i].startswith("@@"):
            old_start, old_count, new_start, new_count = map(
                int, _HUNK.match(lines[i]).groups()
            )
            i += 1
            body = []
            while i < len(lines) and lines[i][:1] in (" ", "+", "-", "\\"):
                body.append(lines[i])
                i += 1
            old_side, new_side = _hunk_sides(body)
            assert len(old_side) == old_count
            assert len(new_side) == new_count

            pos = (old_start if old_count else old_start + 1) - 1 + offset
            assert (new_start if new_count else new_start + 1) - 1 == pos
            assert content[pos:pos + old_count] == old_side
            content[pos:pos + old_count] = new_side
            offset += new_count - old_count

        # A line without its newline can only ever end a file
        assert all(l.endswith("\n") for l in content[:-1])
        if deleted:
            assert content == []
        else:
            tree[new_path] = "".join(content)
    return tree


def change_lines(patch_text):
    return Counter(
        l for l in patch_text.split("\n")
        if l[:1] in ("+", "-") and not l.startswith(("+++ ", "--- "))
    )


def _text(lines, newline_at_end=True):
    text = "".join(l + "\n" for l in lines)
    return text if newline_at_end or not text else text[:-1]


def make_random_case(seed, missing_newlines=True):
    """Return (diff_text, old_tree, new_tree) for a random multi-file edit.

    With *missing_newlines* some files end without a trailing newline on
    one side or both.
    """
    rng = random.Random(seed)
    context = rng.choice([0, 1, 3])
    old_tree, new_tree, chunks = {}, {}, []
    fresh = iter(range(10_000))

    for n in range(rng.randint(1, 3)):
        path = f"dir/file{n}.txt"
        old = [f"{path}:{i}" for i in range(rng.randint(0, 25))]
        new = []
        for line in old:
            roll = rng.random()
            if roll < 0.15:
                continue
            if roll < 0.3:
                new.append(f"new{next(fresh)}")
            else:
                new.append(line)
            if rng.random() < 0.15:
                new.extend(f"new{next(fresh)}" for _ in range(rng.randint(1, 3)))
        if not new and not old:
            new = ["only"]
        old_eol = not (missing_newlines and old and rng.random() < 0.3)
        new_eol = not (missing_newlines and new and rng.random() < 0.3)
        if new == old and old_eol == new_eol:
            new = old + ["tail"]

        old_tree[path] = _text(old, old_eol)
        new_tree[path] = _text(new, new_eol)
        # Tag a last line that has no newline so difflib tells it apart,
        # then turn the tag into git's marker.
        tagged_old = old[:-1] + [old[-1] + "\0"] if not old_eol else old
        tagged_new = new[:-1] + [new[-1] + "\0"] if not new_eol else new
        chunks.append(f"diff --git a/{path} b/{path}")
        for line in difflib.unified_diff(
            tagged_old, tagged_new, fromfile=f"a/{path}", tofile=f"b/{path}",
            lineterm="", n=context,
        ):
            if line.endswith("\0"):
                chunks.extend([line[:-1], "\\ No newline at end of file"])
            else:
                chunks.append(line)

    return "\n".join(chunks) + "\n", old_tree, new_tree


# ----------------------------------------------------------------------
# Scenarios
# ----------------------------------------------------------------------


class TestScenarios:
    def test_select_whole_hunk(self):
        files = parse_diff(SCENARIO_DIFF)
        store = SelectionStore(files)
        BulkSelectionOps(store).select_hunk("f", 1)

        result = PatchSplitter().split(files, store)

        assert result.selected_patch == (
            "diff --git a/f b/f\n"
            "--- a/f\n"
            "+++ b/f\n"
            "@@ -1,2 +1,3 @@\n"
            " context\n"
            "-old\n"
            "+new1\n"
            "+new2\n"
        )
        assert result.remainder_patch == ""
        assert result.remainder_files == []

    def test_select_single_addition(self):
        files = parse_diff(SCENARIO_DIFF)
        store = SelectionStore(files)
        store.toggle(LineId("f", 1, 3))

        result = split_patch(files, store)

        selected = result.selected_files[0].hunks[0]
        assert selected.header.render() == "@@ -1,2 +1,3 @@"
        assert selected.lines == [" context", " old", "+new1"]

        remainder = result.remainder_files[0].hunks[0]
        assert remainder.header.render() == "@@ -1,3 +1,3 @@"
        assert remainder.lines == [" context", "-old", " new1", "+new2"]

        tree = {"f": "context\nold\n"}
        middle = apply_patch_text(tree, result.selected_patch)
        assert middle == {"f": "context\nold\nnew1\n"}
        assert apply_patch_text(middle, result.remainder_patch) == {
            "f": "context\nnew1\nnew2\n",
        }

    def test_nothing_selected_is_noop(self):
        files = parse_diff(SCENARIO_DIFF)
        result = split_patch(files, SelectionStore(files))

        assert result.is_noop is True
        assert result.selected_patch == ""
        assert result.remainder_patch.startswith("diff --git a/f b/f\n")
        assert "@@ -1,2 +1,3 @@" in result.remainder_patch

    def test_snapshot_of_ids_accepted(self):
        files = parse_diff(SCENARIO_DIFF)
        result = split_patch(files, {LineId("f", 1, 2)})

        assert result.selected_files[0].hunks[0].lines == [
            " context", "-old",
        ]
        assert result.selected_files[0].hunks[0].header.render() == "@@ -1,2 +1,1 @@"


class TestHeaderArithmetic:
    def test_unselected_earlier_hunk_shifts_selected_new_start(self):
        files = parse_diff(TWO_HUNK_DIFF)
        result = split_patch(files, {LineId("m.txt", 2, 2)})

        hunks = result.selected_files[0].hunks
        assert [h.header.render() for h in hunks] == ["@@ -10,3 +10,2 @@"]
        assert [h.header.render() for h in result.remainder_files[0].hunks] == [
            "@@ -1,3 +1,4 @@",
        ]

    def test_selected_earlier_hunk_shifts_remainder_old_start(self):
        files = parse_diff(TWO_HUNK_DIFF)
        result = split_patch(files, {LineId("m.txt", 1, 2)})

        assert [h.header.render() for h in result.selected_files[0].hunks] == [
            "@@ -1,3 +1,4 @@",
        ]
        assert [h.header.render() for h in result.remainder_files[0].hunks] == [
            "@@ -11,3 +11,2 @@",
        ]

    def test_hunk_with_only_context_left_is_omitted(self):
        files = parse_diff(TWO_HUNK_DIFF)
        result = split_patch(files, {LineId("m.txt", 2, 2)})

        assert [h.source_index for h in result.selected_files[0].hunks] == [2]
        assert [h.source_index for h in result.remainder_files[0].hunks] == [1]

    def test_empty_ranges(self):
        files = parse_diff(EMPTY_RANGE_DIFF)
        result = split_patch(files, {LineId("e.txt", 2, 1)})

        assert [h.header.render() for h in result.selected_files[0].hunks] == [
            "@@ -4,0 +5,1 @@",
        ]
        assert [h.header.render() for h in result.remainder_files[0].hunks] == [
            "@@ -2,1 +1,0 @@",
        ]

        tree = {"e.txt": "a\nb\nc\nd\ne\n"}
        middle = apply_patch_text(tree, result.selected_patch)
        assert middle == {"e.txt": "a\nb\nc\nd\nx\ne\n"}
        assert apply_patch_text(middle, result.remainder_patch) == {
            "e.txt": "a\nc\nd\nx\ne\n",
        }

    def test_counts_follow_retained_lines(self):
        files = parse_diff(TWO_HUNK_DIFF)
        store = SelectionStore(files)
        BulkSelectionOps(store).select_all()

        hunks = split_patch(files, store).selected_files[0].hunks
        for hunk, original in zip(hunks, files[0].hunks):
            assert hunk.header == original.header


class TestFileHeaders:
    def test_new_file_partially_selected(self):
        files = parse_diff(NEW_FILE_DIFF)
        result = split_patch(files, {LineId("README.md", 1, 1)})

        assert result.selected_files[0].header_lines == [
            "diff --git a/README.md b/README.md",
            "new file mode 100644",
            "--- /dev/null",
            "+++ b/README.md",
        ]
        assert result.remainder_files[0].header_lines == [
            "diff --git a/README.md b/README.md",
            "--- a/README.md",
            "+++ b/README.md",
        ]
        middle = apply_patch_text({}, result.selected_patch)
        assert middle == {"README.md": "# Title\n"}
        assert apply_patch_text(middle, result.remainder_patch) == {
            "README.md": "# Title\n\ntext\n",
        }

    def test_new_file_unselected_stays_new_in_remainder(self):
        files = parse_diff(NEW_FILE_DIFF)
        result = split_patch(files, set())

        assert result.selected_patch == ""
        assert "new file mode 100644" in result.remainder_files[0].header_lines

    def test_deleted_file_fully_selected(self):
        files = parse_diff(DELETED_FILE_DIFF)
        store = SelectionStore(files)
        BulkSelectionOps(store).select_file("gone.txt")
        result = split_patch(files, store)

        assert result.selected_files[0].header_lines == [
            "diff --git a/gone.txt b/gone.txt",
            "deleted file mode 100755",
            "--- a/gone.txt",
            "+++ /dev/null",
        ]
        assert result.remainder_patch == ""
        assert apply_patch_text({"gone.txt": "first\nsecond\n"},
                                result.selected_patch) == {}

    def test_deleted_file_partially_selected(self):
        files = parse_diff(DELETED_FILE_DIFF)
        result = split_patch(files, {LineId("gone.txt", 1, 2)})

        assert "deleted file mode 100755" not in result.selected_files[0].header_lines
        assert "deleted file mode 100755" in result.remainder_files[0].header_lines

        middle = apply_patch_text({"gone.txt": "first\nsecond\n"},
                                  result.selected_patch)
        assert middle == {"gone.txt": "first\n"}
        assert apply_patch_text(middle, result.remainder_patch) == {}

    def test_rename_carried_by_first_patch(self):
        files = parse_diff(RENAME_DIFF)
        result = split_patch(files, {LineId("new.py", 1, 2)})

        assert result.selected_files[0].header_lines == [
            "diff --git a/old.py b/new.py",
            "rename from old.py",
            "rename to new.py",
            "--- a/old.py",
            "+++ b/new.py",
        ]
        assert result.remainder_files[0].header_lines[0] == "diff --git a/new.py b/new.py"

        middle = apply_patch_text({"old.py": "keep\nbefore\n"}, result.selected_patch)
        assert middle == {"new.py": "keep\n"}
        assert apply_patch_text(middle, result.remainder_patch) == {
            "new.py": "keep\nafter\n",
        }

    def test_rename_in_remainder_when_nothing_selected(self):
        files = parse_diff(RENAME_DIFF)
        result = split_patch(files, set())
        assert "rename from old.py" in result.remainder_files[0].header_lines

    def test_pure_rename_in_neither_output(self):
        files = parse_diff(PURE_RENAME_DIFF + SCENARIO_DIFF)
        store = SelectionStore(files)
        BulkSelectionOps(store).select_all()
        result = split_patch(files, store)

        assert [f.path for f in result.selected_files] == ["f"]
        assert result.remainder_files == []

    def test_index_lines_never_emitted(self):
        files = parse_diff(RENAME_DIFF + NEW_FILE_DIFF)
        result = split_patch(files, {LineId("new.py", 1, 3)})
        assert "index " not in result.selected_patch
        assert "index " not in result.remainder_patch


class TestMissingNewline:
    def test_old_last_line_gets_newline_before_selected_addition(self):
        files = parse_diff(NO_NEWLINE_DIFF)
        result = split_patch(files, {LineId("f", 1, 3)})

        selected = result.selected_files[0].hunks[0]
        assert selected.header.render() == "@@ -1,2 +1,3 @@"
        assert selected.lines == [
            " a", "-last", NO_NEWLINE, "+last", "+last2", NO_NEWLINE,
        ]
        remainder = result.remainder_files[0].hunks[0]
        assert remainder.header.render() == "@@ -1,3 +1,2 @@"
        assert remainder.lines == [" a", "-last", " last2", NO_NEWLINE]

        middle = apply_patch_text({"f": "a\nlast"}, result.selected_patch)
        assert middle == {"f": "a\nlast\nlast2"}
        assert apply_patch_text(middle, result.remainder_patch) == {"f": "a\nlast2"}

    def test_selected_deletion_keeps_its_marker(self):
        files = parse_diff(NO_NEWLINE_DIFF)
        result = split_patch(files, {LineId("f", 1, 2)})

        assert result.selected_files[0].hunks[0].lines == [" a", "-last", NO_NEWLINE]
        assert result.remainder_files[0].hunks[0].lines == [
            " a", "+last2", NO_NEWLINE,
        ]

    def test_context_last_line_keeps_marker(self):
        files = parse_diff(CONTEXT_NO_NEWLINE_DIFF)
        result = split_patch(files, {LineId("f", 1, 2)})

        assert result.selected_files[0].hunks[0].lines == [
            " a", "+A", " b", " c", NO_NEWLINE,
        ]
        assert result.remainder_files[0].hunks[0].lines == [
            "-a", " A", " b", " c", NO_NEWLINE,
        ]

    @pytest.mark.parametrize("diff_text, old, new", [
        (NO_NEWLINE_DIFF, "a\nlast", "a\nlast2"),
        (CONTEXT_NO_NEWLINE_DIFF, "a\nb\nc", "A\nb\nc"),
        (NEWLINE_ADDED_DIFF, "x", "x\ny\n"),
    ])
    def test_every_selection_applies_in_sequence(self, diff_text, old, new):
        files = parse_diff(diff_text)
        ids = SelectionStore(files).selectable_ids()

        for mask in range(2 ** len(ids)):
            chosen = {line_id for n, line_id in enumerate(ids) if mask >> n & 1}
            result = split_patch(files, chosen)
            middle = apply_patch_text({"f": old}, result.selected_patch)
            assert apply_patch_text(middle, result.remainder_patch) == {"f": new}


class TestStaleSelection:
    def test_unknown_id_in_snapshot(self):
        files = parse_diff(SCENARIO_DIFF)
        with pytest.raises(StaleSelectionError) as exc_info:
            split_patch(files, {LineId("f", 2, 1)})
        assert exc_info.value.ids == [LineId("f", 2, 1)]

    def test_context_id_in_snapshot(self):
        files = parse_diff(SCENARIO_DIFF)
        with pytest.raises(StaleSelectionError):
            split_patch(files, {LineId("f", 1, 1)})

    def test_store_from_other_parse(self):
        files = parse_diff(SCENARIO_DIFF)
        other = SelectionStore(parse_diff(TWO_HUNK_DIFF))
        with pytest.raises(StaleSelectionError):
            split_patch(files, other)

    def test_store_from_equal_parse_is_fine(self):
        files = parse_diff(SCENARIO_DIFF)
        other = SelectionStore(parse_diff(SCENARIO_DIFF))
        other.set(LineId("f", 1, 2), True)
        result = split_patch(files, other)
        assert result.selected_files[0].hunks[0].lines == [" context", "-old"]

    def test_store_with_same_ids_but_different_lines(self):
        files = parse_diff(SCENARIO_DIFF)
        other = SelectionStore(parse_diff(SCENARIO_DIFF.replace("+new2", "+other")))
        other.set(LineId("f", 1, 4), True)

        with pytest.raises(StaleSelectionError) as exc_info:
            split_patch(files, other)
        assert exc_info.value.ids == [LineId("f", 1, 4)]


# ----------------------------------------------------------------------
# Properties over random diffs and selections
# ----------------------------------------------------------------------


def _random_split(seed, missing_newlines=True):
    diff_text, old_tree, new_tree = make_random_case(seed, missing_newlines)
    files = parse_diff(diff_text)
    store = SelectionStore(files)
    rng = random.Random(seed * 7 + 1)
    ratio = rng.choice([0.0, 0.3, 0.5, 1.0])
    for line_id in store.selectable_ids():
        if rng.random() < ratio:
            store.set(line_id, True)
    return files, store, split_patch(files, store), old_tree, new_tree


@pytest.mark.parametrize("seed", range(60))
def test_sequential_application_reproduces_new_tree(seed):
    files, store, result, old_tree, new_tree = _random_split(seed)

    middle = apply_patch_text(old_tree, result.selected_patch)
    assert apply_patch_text(middle, result.remainder_patch) == new_tree


@pytest.mark.parametrize("seed", range(60))
def test_split_is_complete_and_disjoint(seed):
    # Newline-only rewrites add -/+ pairs of context lines, so compare
    # change lines on diffs that have none.
    files, store, result, _, _ = _random_split(seed, missing_newlines=False)

    original = Counter(
        e.type.marker + e.content for e in iter_lines(files) if e.selectable
    )
    selected = change_lines(result.selected_patch)
    remainder = change_lines(result.remainder_patch)

    assert selected + remainder == original
    expected_selected = Counter(
        e.type.marker + e.content for e in iter_lines(files) if e.selected
    )
    assert selected == expected_selected


@pytest.mark.parametrize("seed", range(20))
def test_parse_round_trip_and_unique_ids(seed):
    diff_text, _, _ = make_random_case(seed)
    files = parse_diff(diff_text)

    ids = [e.id for e in iter_lines(files)]
    assert len(ids) == len(set(ids))

    bodies = [h.body() for f in files for h in f.hunks]
    expected, current = [], None
    for line in diff_text.split("\n"):
        if line.startswith("@@"):
            current = []
            expected.append(current)
        elif current is not None and line[:1] in (" ", "+", "-", "\\") and not (
            line.startswith("--- ") or line.startswith("+++ ")
        ):
            current.append(line)
        elif line.startswith("diff --git"):
            current = None
    assert bodies == ["\n".join(b) + "\n" for b in expected]


@pytest.mark.parametrize("seed", range(20))
def test_context_never_selected_by_any_operation(seed):
    files, store, _, _, _ = _random_split(seed)
    bulk = BulkSelectionOps(store)
    bulk.select_all()
    for entry in iter_lines(files):
        if entry.type is LineType.CONTEXT:
            store.toggle(entry.id)
            store.set(entry.id, True)
            assert store.is_selected(entry.id) is False
