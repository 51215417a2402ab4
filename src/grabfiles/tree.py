"""
Directory-tree rendering for the selected files.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional

TREE_START = "---\nDIRECTORY STRUCTURE\n---\n"
TREE_END = "---\nFILE CONTENTS\n---\n\n"

_Node = Dict[str, Optional["_Node"]]


def render_tree(paths: Iterable[Path], base: Path) -> str:
    """
    Return an ASCII tree (à la the Unix ``tree`` utility).

    • Shows every ancestor directory so the hierarchy is complete.
    • Directories are listed before files.
    • Works purely from the *paths* list, no filesystem access.
    """
    tree: _Node = {}

    for p in paths:
        try:
            rel = PurePosixPath(Path(p).relative_to(base).as_posix())
        except ValueError:
            rel = PurePosixPath(Path(p).as_posix().lstrip("/"))
        cur = tree
        for part in rel.parts[:-1]:
            child = cur.get(part)
            if child is None:
                child = cur[part] = {}
            cur = child
        cur.setdefault(rel.parts[-1], None)

    lines: List[str] = []

    def _walk(node: _Node, prefix: str = "") -> None:
        items = sorted(node.items(), key=lambda kv: (kv[1] is None, kv[0]))  # dirs first
        for idx, (name, child) in enumerate(items):
            last = idx == len(items) - 1
            connector = "└── " if last else "├── "
            lines.append(f"{prefix}{connector}{name}{'/' if child is not None else ''}")
            if child is not None:
                _walk(child, prefix + ("    " if last else "│   "))

    _walk(tree)
    return "\n".join(lines) + "\n" if lines else ""


def tree_section(paths: Iterable[Path], base: Path) -> str:
    return f"{TREE_START}{render_tree(paths, base)}{TREE_END}"
