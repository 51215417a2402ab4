"""
Gitignore-style exclude matching.

Patterns are compiled once with :mod:`pathspec` (``gitwildmatch`` flavour)
and then queried for every candidate file and, during traversal, for every
directory before descending into it.
"""

from __future__ import annotations

import enum
import logging
from pathlib import PurePosixPath
from typing import Iterable, List, Tuple

import pathspec  # type: ignore

from .errors import PatternError

log = logging.getLogger(__name__)


class Verdict(enum.Enum):
    INCLUDE = "include"
    IGNORE = "ignore"
    NEUTRAL = "neutral"


def normalize_pattern(line: str) -> str:
    """Return *line* with ``\\`` separators rewritten to ``/``.

    A leading ``\\!`` or ``\\#`` is a gitignore escape, not a separator, and is
    kept as-is.
    """
    if line[:2] in ("\\!", "\\#"):
        return line[:2] + line[2:].replace("\\", "/")
    return line.replace("\\", "/")


def _compile_line(line: str) -> List["pathspec.Pattern"]:
    if line.startswith("!") and not line[1:].strip("/"):
        raise PatternError(line, "negation without a pattern")
    try:
        spec = pathspec.PathSpec.from_lines("gitwildmatch", [line])
    except (ValueError, TypeError) as e:
        raise PatternError(line, str(e)) from e
    return [p for p in spec.patterns if p.include is not None]


class PatternSet:
    """Ordered, immutable set of compiled exclude patterns."""

    __slots__ = ("_source", "_compiled")

    def __init__(self, source: Tuple[str, ...], compiled: Tuple["pathspec.Pattern", ...]) -> None:
        self._source = source
        self._compiled = compiled

    @property
    def patterns(self) -> Tuple[str, ...]:
        return self._source

    def __len__(self) -> int:
        return len(self._compiled)

    def __repr__(self) -> str:
        return f"PatternSet({list(self._source)!r})"

    def _own_verdict(self, rel: str, is_dir: bool) -> Verdict:
        query = rel + "/" if is_dir else rel
        verdict = Verdict.NEUTRAL
        # last match wins
        for pattern in self._compiled:
            if pattern.match_file(query) is not None:
                verdict = Verdict.IGNORE if pattern.include else Verdict.INCLUDE
        return verdict

    def match(self, rel_path: str, is_dir: bool = False) -> Verdict:
        """Classify *rel_path* (POSIX, relative to the matching base).

        Ancestor directories are checked from the base down and an ignored
        one ignores everything below it; a file inside an excluded directory
        cannot be re-included. Otherwise the path's own last match decides,
        then the nearest ancestor that matched at all.
        """
        rel = normalize_pattern(str(rel_path)).strip("/")
        if not rel or rel == ".":
            return Verdict.NEUTRAL
        ancestors = [p.as_posix() for p in PurePosixPath(rel).parents if p.as_posix() != "."]
        inherited = Verdict.NEUTRAL
        for parent in reversed(ancestors):
            verdict = self._own_verdict(parent, True)
            if verdict is Verdict.IGNORE:
                return verdict
            if verdict is not Verdict.NEUTRAL:
                inherited = verdict
        verdict = self._own_verdict(rel, is_dir)
        if verdict is not Verdict.NEUTRAL:
            return verdict
        return inherited

    def is_ignored(self, rel_path: str, is_dir: bool = False) -> bool:
        return self.match(rel_path, is_dir) is Verdict.IGNORE


def compile_patterns(patterns: Iterable[str]) -> PatternSet:
    """Compile *patterns* in order into a :class:`PatternSet`.

    Blank lines and ``#`` comments are skipped. Raises :class:`PatternError`
    naming the first pattern that fails to compile.
    """
    source: List[str] = []
    compiled: List["pathspec.Pattern"] = []
    for raw in patterns:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        line = normalize_pattern(line)
        compiled.extend(_compile_line(line))
        source.append(line)
    log.debug("Compiled %d exclude patterns", len(compiled))
    return PatternSet(tuple(source), tuple(compiled))
