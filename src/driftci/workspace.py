# workspace.py
from __future__ import annotations

import shutil
from pathlib import Path

from .git_facts.git import clone_local, is_git_repo

# never copied into a job workspace
COPY_IGNORE = (".git", ".driftci", "target", "__pycache__")


def prepare_workspace(source: str | Path, dest: str | Path) -> Path:
    """
    Give a job its own checkout of `source` at `dest`.

    A git repository is cloned (HEAD only, like a CI checkout); anything
    else is copied.
    """
    source = Path(source).resolve()
    dest = Path(dest)
    if dest.exists():
        shutil.rmtree(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)

    if is_git_repo(source):
        return clone_local(source, dest)

    shutil.copytree(source, dest, ignore=shutil.ignore_patterns(*COPY_IGNORE))
    return dest


def discard_workspace(path: str | Path) -> None:
    shutil.rmtree(path, ignore_errors=True)
