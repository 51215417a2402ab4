"""
Output size and approximate token statistics.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, TextIO, Tuple

from .tree import TREE_END

DEFAULT_TOKEN_RATIO = 3.6
DEFAULT_TOP_FILES = 5

HEADER_PREFIX = "--- FILE: "


@dataclass(frozen=True)
class StatsSettings:
    enabled: bool = False
    token_ratio: float = DEFAULT_TOKEN_RATIO
    exclude_tree: bool = False
    exclude_headers: bool = False
    top_files: Optional[int] = None


def approx_tokens(char_count: int, ratio: float) -> int:
    if char_count == 0:
        return 0
    return math.ceil(char_count / ratio)


def format_ratio(ratio: float) -> str:
    text = f"{ratio:.3f}".rstrip("0").rstrip(".")
    return text or "0"


def strip_tree_section(content: str) -> str:
    idx = content.find(TREE_END)
    if idx == -1:
        return content
    return content[idx + len(TREE_END):]


def strip_header_lines(content: str) -> str:
    return "".join(
        chunk
        for chunk in content.splitlines(keepends=True)
        if not chunk.startswith(HEADER_PREFIX)
    )


def token_basis(content: str, settings: StatsSettings, has_tree: bool, has_headers: bool) -> str:
    if settings.exclude_tree and has_tree:
        content = strip_tree_section(content)
    if settings.exclude_headers and has_headers:
        content = strip_header_lines(content)
    return content


def overview_line(
    content: str,
    settings: StatsSettings,
    destination: str,
    has_tree: bool = True,
    has_headers: bool = True,
) -> str:
    basis = token_basis(content, settings, has_tree, has_headers)
    return (
        f"Output Size (to {destination}): {len(content.encode('utf-8'))} bytes, "
        f"{len(content.split())} words, "
        f"tokens≈{approx_tokens(len(basis), settings.token_ratio)} "
        f"(ratio={format_ratio(settings.token_ratio)})"
    )


def top_files(content: str, files: Sequence, settings: StatsSettings) -> List[Tuple[str, int, int]]:
    """Return ``(display_path, tokens, chars)`` sorted by tokens, descending."""
    rows: List[Tuple[str, int, int]] = []
    for f in files:
        start, end = f.body_range if settings.exclude_headers else f.full_range
        chars = end - start
        if chars <= 0:
            continue
        rows.append((f.display_path, approx_tokens(chars, settings.token_ratio), chars))
    rows.sort(key=lambda r: (-r[1], -r[2], r[0]))
    return rows


def print_report(
    content: str,
    files: Sequence,
    settings: StatsSettings,
    destination: str,
    stream: TextIO,
    has_tree: bool = True,
    has_headers: bool = True,
) -> None:
    print(overview_line(content, settings, destination, has_tree, has_headers), file=stream)
    if settings.top_files is None:
        return
    rows = top_files(content, files, settings)
    print(file=stream)
    if not rows:
        print(f"Top {settings.top_files} files by tokens: no file content captured.", file=stream)
        return
    shown = rows[: settings.top_files]
    print(f"Top {len(shown)} files by tokens (ratio={format_ratio(settings.token_ratio)}):", file=stream)
    for idx, (path, tokens, chars) in enumerate(shown, start=1):
        print(f"{idx}. {path} - tokens≈{tokens} (chars={chars})", file=stream)
