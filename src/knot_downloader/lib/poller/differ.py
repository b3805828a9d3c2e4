"""Line-level change summary between the stored and the fetched zone file."""

import difflib
from dataclasses import dataclass


@dataclass(frozen=True)
class ChangeSummary:
    """Counts of added and removed lines.

    Attributes:
        additions: Lines present only in the new content.
        removals: Lines present only in the old content.
    """

    additions: int = 0
    removals: int = 0


def summarize_changes(old: bytes | None, new: bytes) -> ChangeSummary:
    """Compare two versions of a file line by line.

    A missing old file counts every new line as an addition. Identical
    bytes short-circuit to an empty summary.

    Args:
        old: Current file contents, or None if there is no file yet.
        new: Fetched contents.

    Returns:
        ChangeSummary with addition and removal counts.
    """
    if old is None:
        return ChangeSummary(additions=len(new.splitlines()))
    if old == new:
        return ChangeSummary()

    old_lines = old.decode("utf-8", errors="replace").splitlines()
    new_lines = new.decode("utf-8", errors="replace").splitlines()

    additions = 0
    removals = 0
    matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag in ("replace", "delete"):
            removals += i2 - i1
        if tag in ("replace", "insert"):
            additions += j2 - j1

    return ChangeSummary(additions=additions, removals=removals)
