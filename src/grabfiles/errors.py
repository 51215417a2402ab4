"""
Exception hierarchy for grabfiles.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class GrabfilesError(Exception):
    """Base exception for grabfiles errors."""


class InvalidRootError(GrabfilesError): ...
class OutputError(GrabfilesError): ...


class ConfigError(GrabfilesError):
    """Raised when a configuration or ignore source is malformed."""

    def __init__(self, message: str, source: Optional[Path] = None) -> None:
        self.source = source
        if source is not None:
            message = f"{message} ({source})"
        super().__init__(message)


class PatternError(GrabfilesError):
    """Raised when an exclude pattern cannot be compiled."""

    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        super().__init__(f"Invalid exclude pattern {pattern!r}: {reason}")


class VcsError(GrabfilesError):
    """Raised when git fails in a way that is not 'no repository here'."""

    def __init__(self, command: str, stderr: str = "", stdout: str = "") -> None:
        self.command = command
        self.stderr = stderr
        self.stdout = stdout
        detail = stderr.strip() or stdout.strip() or "no output"
        super().__init__(f"git command failed: {command}\n  {detail}")
