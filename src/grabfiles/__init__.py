"""
grabfiles - gather the files of a directory or git working tree into a
single text context for LLM ingestion.

Selection honours layered configuration (global, project and explicit
TOML files plus flat ignore files), ``.gitignore`` through git itself, and
gitignore-style exclude patterns.
"""

__version__ = "0.1.0"

from .config import ConfigLocations, ConfigResolver, EffectivePolicy, Overrides, resolve_policy
from .errors import (
    ConfigError,
    GrabfilesError,
    InvalidRootError,
    OutputError,
    PatternError,
    VcsError,
)
from .patterns import PatternSet, Verdict, compile_patterns
from .selection import SelectionResult, select_files
from .vcs import GitProbe, RepoContext, detect_repo

__all__ = [
    "__version__",
    "ConfigError",
    "ConfigLocations",
    "ConfigResolver",
    "EffectivePolicy",
    "GitProbe",
    "GrabfilesError",
    "InvalidRootError",
    "OutputError",
    "Overrides",
    "PatternError",
    "PatternSet",
    "RepoContext",
    "SelectionResult",
    "Verdict",
    "VcsError",
    "compile_patterns",
    "detect_repo",
    "resolve_policy",
    "select_files",
]
