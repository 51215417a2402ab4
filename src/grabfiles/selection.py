"""
File selection: policy -> repository scope -> patterns -> enumeration ->
filter, dedup, sort.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .config import ConfigResolver, EffectivePolicy, Overrides, output_exclusion, resolve_target
from .listing import list_repo_files, walk_files
from .patterns import PatternSet, compile_patterns
from .vcs import GitProbe, RepoContext, VcsProbe, detect_repo

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionResult:
    files: Tuple[Path, ...]
    base_path: Path
    policy: EffectivePolicy
    repo_root: Optional[Path] = None

    def relative_paths(self) -> List[str]:
        return [relative_posix(p, self.base_path) for p in self.files]

    def __len__(self) -> int:
        return len(self.files)


def relative_posix(path: Path, base: Path) -> str:
    try:
        return path.relative_to(base).as_posix()
    except ValueError:
        return path.as_posix()


def _sort_key(rel: str) -> bytes:
    return rel.encode("utf-8", errors="surrogateescape")


def filter_dedup_sort(
    candidates: List[Path],
    base: Path,
    patterns: PatternSet,
    pattern_base: Optional[Path] = None,
) -> Tuple[Path, ...]:
    """Drop ignored and duplicate candidates, then sort by path under *base*.

    Patterns are matched relative to *pattern_base* (default *base*).
    """
    match_base = pattern_base if pattern_base is not None else base
    kept: Dict[str, Tuple[str, Path]] = {}
    for p in candidates:
        norm = os.path.normpath(str(p))
        if norm in kept:
            continue
        rel = relative_posix(Path(norm), base)
        if patterns.is_ignored(relative_posix(Path(norm), match_base)):
            log.debug("Excluding %s", rel)
            continue
        kept[norm] = (rel, Path(norm))
    ordered = sorted(kept.values(), key=lambda item: _sort_key(item[0]))
    return tuple(path for _, path in ordered)


def select_files(
    target_path: Path,
    overrides: Optional[Overrides] = None,
    *,
    resolver: Optional[ConfigResolver] = None,
    probe: Optional[VcsProbe] = None,
) -> SelectionResult:
    """Return the ordered, deduplicated files to aggregate for *target_path*."""
    target = resolve_target(target_path)
    policy = (resolver or ConfigResolver()).resolve(target, overrides)
    target_dir = target if target.is_dir() else target.parent

    probe = probe or GitProbe()
    context: Optional[RepoContext] = None
    if policy.use_version_control:
        context = detect_repo(target, policy.scope_whole_repo, probe)
    else:
        log.info("Operating in plain directory mode (version control disabled).")

    # patterns are relative to the target directory unless the whole repo is selected
    if context is not None and context.scope_subdir is None:
        pattern_base = context.repo_root
    else:
        pattern_base = target_dir
    patterns = compile_patterns(policy.exclude_patterns + tuple(output_exclusion(policy, pattern_base)))

    if context is not None:
        log.info("Operating in git mode. Repo root: %s", context.repo_root)
        base = context.repo_root
        candidates = list_repo_files(probe, context, policy.include_untracked)
    else:
        log.info("Operating in plain directory mode. Target path: %s", target)
        base = target_dir
        candidates = walk_files(target, patterns)

    files = filter_dedup_sort(candidates, base, patterns, pattern_base)
    log.info("Selected %d of %d candidate files.", len(files), len(candidates))
    if not files:
        log.warning("No files selected for processing based on current configuration.")
    return SelectionResult(
        files=files,
        base_path=base,
        policy=policy,
        repo_root=context.repo_root if context else None,
    )
