# fingerprint.py
from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple

# ---------------------------------------------------------------------
# Core idea
# ---------------------------------------------------------------------
# A tree digest is:
#   digest = sha256(stable_json({relpath: sha256(contents)}))
#
# Two digests of the generated source tree, taken before and after the
# regenerator runs, tell us whether regeneration changed anything (drift)
# and which files. Running the regenerator twice on an unchanged schema
# tree must give the same digest.
# ---------------------------------------------------------------------

DEFAULT_EXCLUDES = [
    ".git/**",
    ".driftci/**",
    "**/__pycache__/**",
    "**/*.pyc",
    "**/.DS_Store",
]


@dataclass(frozen=True)
class TreeDigest:
    digest: str
    files: Dict[str, str] = field(default_factory=dict, compare=False)


def _sha256_bytes(data: bytes) -> str:
    h = hashlib.sha256()
    h.update(data)
    return h.hexdigest()


def _json_dumps_stable(obj) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _relpath(p: Path, root: Path) -> str:
    return str(p.resolve().relative_to(root.resolve())).replace("\\", "/")


def _iter_files_under(root: Path) -> Iterable[Path]:
    # deterministic traversal
    for p in sorted(root.rglob("*")):
        if p.is_file():
            yield p


def _matches_any_glob(rel: str, globs: List[str]) -> bool:
    # fnmatch's "*" also crosses "/"; "**/x" must match x at the top level too
    for g in globs:
        if fnmatch(rel, g) or (g.startswith("**/") and fnmatch(rel, g[3:])):
            return True
    return False


def _hash_file_contents(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        while True:
            chunk = f.read(1024 * 1024)
            if not chunk:
                break
            h.update(chunk)
    return h.hexdigest()


def tree_digest(
    root: str | Path,
    paths: Sequence[str],
    *,
    excludes: Sequence[str] = (),
) -> TreeDigest:
    """
    Digest the files under `paths` (files or directories, relative to root).
    Missing paths contribute nothing, so a tree that does not exist yet
    hashes like an empty one.
    """
    root = Path(root).resolve()
    exclude_globs = DEFAULT_EXCLUDES + list(excludes)

    files: Dict[str, str] = {}
    for entry in paths:
        p = root / entry
        if p.is_file():
            candidates: Iterable[Path] = [p]
        elif p.is_dir():
            candidates = _iter_files_under(p)
        else:
            continue
        for f in candidates:
            rel = _relpath(f, root)
            if _matches_any_glob(rel, exclude_globs):
                continue
            files[rel] = _hash_file_contents(f)

    return TreeDigest(digest=_sha256_bytes(_json_dumps_stable(files).encode("utf-8")), files=files)


def changed_files(before: TreeDigest, after: TreeDigest) -> Tuple[str, ...]:
    """Paths added, removed or modified between two digests, sorted."""
    if before.digest == after.digest:
        return ()
    keys = set(before.files) | set(after.files)
    return tuple(sorted(k for k in keys if before.files.get(k) != after.files.get(k)))
