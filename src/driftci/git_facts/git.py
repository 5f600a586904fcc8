# git.py
# Small, focused wrapper around the Git CLI.
# This module centralizes all Git interactions so the rest of the codebase
# never needs to call subprocess("git ...") directly.

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Optional


def _git(args: list[str], cwd: Optional[str | Path] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    This is the single low-level entry point for all Git operations in this file.

    Args:
        args: List of git arguments (e.g. ["status", "--porcelain"])
        cwd: Optional working directory in which to run the git command.

    Returns:
        Stdout from the git command with surrounding whitespace removed.
    """
    # A non-zero exit raises CalledProcessError, which callers decide about
    out = subprocess.check_output(
        ["git", *args],
        cwd=str(cwd) if cwd is not None else None,
        text=True,
    )
    return out.strip()


def is_git_repo(path: str | Path) -> bool:
    return (Path(path) / ".git").exists()


def repo_root(cwd: Optional[str | Path] = None) -> Path:
    """Absolute path to the root of the enclosing Git repository."""
    return Path(_git(["rev-parse", "--show-toplevel"], cwd=cwd))


def head_sha(cwd: Optional[str | Path] = None) -> str:
    """Full SHA of the current HEAD commit."""
    return _git(["rev-parse", "HEAD"], cwd=cwd)


def get_current_ref(cwd: Optional[str | Path] = None) -> str:
    """
    Current ref in long form: refs/heads/<branch>, or the HEAD sha when
    detached.
    """
    branch = _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd)
    if branch == "HEAD":
        return head_sha(cwd)
    return f"refs/heads/{branch}"


def is_dirty(cwd: Optional[str | Path] = None) -> bool:
    """True if there are modified, staged or untracked files."""
    return _git(["status", "--porcelain"], cwd=cwd) != ""


def changed_files(
    base: str,
    head: str = "HEAD",
    cwd: Optional[str | Path] = None,
    *,
    three_dot: bool = False,
) -> List[str]:
    """
    Files changed between two Git references, relative to the repo root.

    With three_dot=True the diff starts at merge-base(base, head), so commits
    that landed on `base` after `head` branched off are not counted.

    Typical usage:
        base = merge_base("origin/main")
        files = changed_files(base)
    """
    sep = "..." if three_dot else ".."
    out = _git(["diff", "--name-only", f"{base}{sep}{head}"], cwd=cwd)
    if not out:
        return []
    return out.splitlines()


def branch_changed_files(base: str, head: str = "HEAD", cwd: Optional[str | Path] = None) -> List[str]:
    """Files a branch `head` changed since it forked from `base` (pull request view)."""
    return changed_files(base, head, cwd, three_dot=True)


def merge_base(with_ref: str = "origin/main", cwd: Optional[str | Path] = None) -> str:
    """Commit SHA of the common ancestor between HEAD and another ref."""
    return _git(["merge-base", "HEAD", with_ref], cwd=cwd)


def local_changed_files(compare_ref: str = "origin/main", cwd: Optional[str | Path] = None) -> List[str]:
    """
    Changed paths for a local run.

      - dirty tree: staged + unstaged + untracked files
      - clean tree: HEAD against the merge-base with compare_ref
                    (HEAD~1 if there is no such ref)
    """
    root = repo_root(cwd)

    if is_dirty(root):
        files = set()
        for args in (
            ["diff", "--name-only"],
            ["diff", "--name-only", "--cached"],
            ["ls-files", "--others", "--exclude-standard"],
        ):
            out = _git(args, cwd=root)
            if out:
                files.update(out.splitlines())
        return sorted(files)

    try:
        base = merge_base(compare_ref, cwd=root)
    except subprocess.CalledProcessError:
        # e.g. no remote configured
        base = "HEAD~1"

    try:
        return changed_files(base, "HEAD", cwd=root)
    except subprocess.CalledProcessError:
        # first commit: everything tracked counts as changed
        tracked = _git(["ls-files"], cwd=root)
        return tracked.splitlines() if tracked else []


def clone_local(source: str | Path, dest: str | Path) -> Path:
    """
    Fresh checkout of `source`'s HEAD into `dest`.
    Uncommitted changes in `source` are not carried over.
    """
    dest = Path(dest)
    _git(["clone", "--quiet", "--no-hardlinks", str(Path(source).resolve()), str(dest)])
    return dest


def get_remote_url(remote: str = "origin", cwd: Optional[str | Path] = None) -> str:
    return _git(["remote", "get-url", remote], cwd=cwd)
