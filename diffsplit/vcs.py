"""
VCS integration — fetch diff text from jj/git and apply split patches.

These are the only places diffsplit spawns a process; the core never does.
"""

import logging
import subprocess

from .patch import DiffSplitError

logger = logging.getLogger(__name__)


class VCSError(DiffSplitError):
    """A version-control command failed."""


def _run(cmd: list[str], input_text: str | None = None,
         cwd: str | None = None) -> tuple[bool, str, str]:
    """Run *cmd* and return ``(success, stdout, stderr)``."""
    logger.debug("[VCS] Running: %s", " ".join(cmd))
    try:
        result = subprocess.run(
            cmd,
            input=input_text,
            cwd=cwd,
            capture_output=True,
            text=True,
            check=False,
        )
        return result.returncode == 0, result.stdout, result.stderr.strip()
    except OSError as e:
        return False, "", str(e)


def diff_command(revision: str, vcs: str = "jj") -> list[str]:
    """The command that prints *revision* as a git-style unified diff."""
    if vcs == "jj":
        return ["jj", "diff", "--git", "-r", revision]
    if vcs == "git":
        return ["git", "show", "--format=", "--no-color", "--no-ext-diff",
                revision]
    raise VCSError(f"Unsupported VCS {vcs!r}")


def fetch_diff(revision: str, vcs: str = "jj",
               cwd: str | None = None) -> str | None:
    """Return the diff of *revision*, or ``None`` when it changes nothing."""
    ok, out, err = _run(diff_command(revision, vcs), cwd=cwd)
    if not ok:
        raise VCSError(f"{vcs} diff failed for {revision}: {err}")
    if not out.strip():
        logger.info("[VCS] Revision %s has no changes", revision)
        return None
    return out


def apply_patch(patch_text: str, cwd: str | None = None,
                check: bool = False, reverse: bool = False) -> bool:
    """Apply *patch_text* to the working tree with ``git apply``.

    With *check* nothing is written; the patch is only verified.
    With *reverse* the patch is backed out (``git apply -R``).
    An empty patch is a no-op.
    """
    if not patch_text.strip():
        return True
    cmd = ["git", "apply"]
    if check:
        cmd.append("--check")
    if reverse:
        cmd.append("-R")
    cmd.append("-")
    ok, _, err = _run(cmd, input_text=patch_text, cwd=cwd)
    if not ok:
        raise VCSError(f"git apply failed: {err}")
    return True
