"""
Candidate enumeration: ``git ls-files`` in a repository, or a pruning
directory walk everywhere else.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .patterns import PatternSet
from .vcs import RepoContext, VcsProbe, scope_pathspecs

log = logging.getLogger(__name__)


def list_repo_files(probe: VcsProbe, context: RepoContext, include_untracked: bool) -> List[Path]:
    """Tracked files, plus untracked-but-not-ignored ones when requested.

    A path reported by both queries is returned once.
    """
    root = context.repo_root
    specs = scope_pathspecs(context)
    log.debug("Listing git files in %s with scope %s", root, context.scope_subdir or "<repo>")

    combined: Dict[Path, None] = {}
    for rel in probe.list_tracked(root, specs):
        combined[root / rel] = None

    if include_untracked:
        for rel in probe.list_untracked(root, specs):
            combined[root / rel] = None
    else:
        log.debug("Skipping untracked files per configuration.")

    return list(combined)


def walk_files(
    target_path: Path,
    pattern_set: PatternSet,
    trace: Optional[List[Path]] = None,
) -> List[Path]:
    """Walk *target_path*, never descending into ignored directories.

    Patterns are matched against paths relative to *target_path*. Symbolic
    links are not followed. Unreadable directories are skipped with a
    warning. Every directory entered is appended to *trace* when given.
    """
    target_path = Path(target_path)
    if target_path.is_file():
        if pattern_set.is_ignored(target_path.name):
            return []
        return [target_path]

    files: List[Path] = []
    stack: List[Tuple[Path, str]] = [(target_path, "")]
    while stack:
        dir_path, rel_dir = stack.pop()
        if trace is not None:
            trace.append(dir_path)
        try:
            with os.scandir(dir_path) as it:
                entries = list(it)
        except OSError as e:
            log.warning("Skipping unreadable directory %s: %s", dir_path, e)
            continue

        for entry in entries:
            rel = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
            try:
                if entry.is_symlink():
                    log.debug("Skipping symlink %s", entry.path)
                    continue
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = not is_dir and entry.is_file(follow_symlinks=False)
            except OSError as e:
                log.warning("Skipping %s: %s", entry.path, e)
                continue

            if is_dir:
                if pattern_set.is_ignored(rel, is_dir=True):
                    log.debug("Pruning excluded directory %s", rel)
                    continue
                stack.append((Path(entry.path), rel))
            elif is_file:
                if pattern_set.is_ignored(rel):
                    log.debug("Excluding file %s", rel)
                    continue
                files.append(Path(entry.path))
    return files
