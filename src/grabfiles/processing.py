"""
Read the selected files and concatenate them into one text blob.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from .selection import SelectionResult, relative_posix
from .tree import tree_section

log = logging.getLogger(__name__)

Span = Tuple[int, int]


@dataclass(frozen=True)
class GrabbedFile:
    display_path: str
    full_range: Span
    header_range: Optional[Span]
    body_range: Span


@dataclass
class GrabOutput:
    content: str = ""
    files: List[GrabbedFile] = field(default_factory=list)


def _is_binary(data: bytes) -> bool:
    return b"\0" in data


def extract_pdf_text(path: Path) -> Optional[str]:
    """Return the embedded text of *path*, or ``None`` if it cannot be parsed."""
    try:
        reader = PdfReader(str(path))
        pages = [(page.extract_text() or "").strip() for page in reader.pages]
    except (PyPdfError, OSError, ValueError) as e:
        log.warning("Skipping PDF %s: failed to extract text (%s)", path, e)
        return None
    text = "\n\n".join(pages).strip()
    if not text:
        log.warning("PDF %s has no embedded text", path)
    return text


def read_text(path: Path) -> Optional[str]:
    try:
        raw = path.read_bytes()
    except OSError as e:
        log.warning("Skipping file due to read error: %s - %s", path, e)
        return None
    if _is_binary(raw):
        log.warning("Skipping binary file: %s", path)
        return None
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        log.warning("Skipping non-UTF8 file: %s", path)
        return None


def grab_contents(selection: SelectionResult) -> GrabOutput:
    """Concatenate the selected files, honoring the header/tree/PDF settings."""
    policy = selection.policy
    out = GrabOutput()
    if not selection.files:
        return out

    parts: List[str] = []
    length = 0

    def _push(text: str) -> Span:
        nonlocal length
        start = length
        parts.append(text)
        length += len(text)
        return start, length

    readable: List[Tuple[Path, str, str, str]] = []
    for path in selection.files:
        display = relative_posix(path, selection.base_path)
        is_pdf = path.suffix.lower() == ".pdf"
        if policy.convert_pdf and is_pdf:
            body = extract_pdf_text(path)
            header = f"--- FILE: {display} (extracted text) ---\n"
        else:
            body = read_text(path)
            header = f"--- FILE: {display} ---\n"
        if body is not None:
            readable.append((path, display, header, body))

    if not readable:
        log.warning("No readable file content was captured.")
        return out

    # the tree lists only files whose content follows
    if policy.include_tree:
        _push(tree_section([item[0] for item in readable], selection.base_path))

    for _, display, header, body in readable:
        file_start = length
        header_range = _push(header) if policy.add_headers else None
        if not body.endswith("\n"):
            body += "\n"
        body_range = _push(body + "\n")
        out.files.append(
            GrabbedFile(
                display_path=display,
                full_range=(file_start, length),
                header_range=header_range,
                body_range=body_range,
            )
        )

    out.content = "".join(parts)
    return out
