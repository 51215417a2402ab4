"""
Configuration resolution for grabfiles.

Settings are merged from, in increasing precedence:

1. built-in defaults
2. the global ``config.toml`` and ``ignore`` files
3. ``<target>/.grabfiles.toml``
4. ``<target>/.grabfilesignore``
5. an explicit ``--config`` file
6. command-line overrides

Booleans are overridden by the last layer that sets them; exclude patterns
are appended in layer order so later patterns (including negations) win at
match time.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]

from .errors import ConfigError, InvalidRootError
from .stats import DEFAULT_TOKEN_RATIO, StatsSettings

log = logging.getLogger(__name__)

APP_NAME = "grabfiles"
SECTION = "grabfiles"
LOCAL_CONFIG_NAME = ".grabfiles.toml"
LOCAL_IGNORE_NAME = ".grabfilesignore"
GLOBAL_CONFIG_NAME = "config.toml"
GLOBAL_IGNORE_NAME = "ignore"
DEFAULT_OUTPUT_NAME = "grabfiles.txt"

DEFAULT_PATTERNS: List[str] = [
    ".git/",  # VCS data, never content
]


# Policy records
@dataclass(frozen=True)
class EffectivePolicy:
    target_path: Path
    include_untracked: bool = True
    scope_whole_repo: bool = False
    use_version_control: bool = True
    use_config_sources: bool = True
    active_output_path: Optional[Path] = None
    exclude_patterns: Tuple[str, ...] = ()
    add_headers: bool = True
    include_tree: bool = True
    convert_pdf: bool = True
    include_default_output: bool = False
    stats: StatsSettings = field(default_factory=StatsSettings)


@dataclass
class Overrides:
    """Raw command-line options that take part in resolution."""

    exclude_patterns: List[str] = field(default_factory=list)
    tracked_only: bool = False
    include_untracked: bool = False
    all_repo: bool = False
    no_git: bool = False
    no_config: bool = False
    config_path: Optional[Path] = None
    output_path: Optional[Path] = None
    no_headers: bool = False
    no_tree: bool = False
    no_pdf: bool = False
    include_default_output: bool = False
    print_stats: bool = False
    top_files: Optional[int] = None
    token_ratio: Optional[float] = None
    tokens_exclude_tree: bool = False
    tokens_exclude_headers: bool = False


@dataclass(frozen=True)
class ConfigLocations:
    """Where the global configuration lives.

    ``global_dir`` of ``None`` disables the global layer.
    """

    global_dir: Optional[Path] = None

    @property
    def config_file(self) -> Optional[Path]:
        return self.global_dir / GLOBAL_CONFIG_NAME if self.global_dir else None

    @property
    def ignore_file(self) -> Optional[Path]:
        return self.global_dir / GLOBAL_IGNORE_NAME if self.global_dir else None

    @classmethod
    def from_environment(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        platform: Optional[str] = None,
    ) -> "ConfigLocations":
        env = os.environ if environ is None else environ
        platform = platform or sys.platform
        base: Optional[Path] = None
        if platform.startswith("win"):
            if env.get("APPDATA"):
                base = Path(env["APPDATA"])
        elif platform == "darwin":
            if env.get("HOME"):
                base = Path(env["HOME"]) / "Library" / "Application Support"
        elif env.get("XDG_CONFIG_HOME"):
            base = Path(env["XDG_CONFIG_HOME"])
        elif env.get("HOME"):
            base = Path(env["HOME"]) / ".config"
        if base is None:
            log.debug("No config base directory available; skipping global config")
            return cls(None)
        return cls(base / APP_NAME)


# Pattern accumulation
class PatternBuilder:
    """Ordered exclude-pattern accumulator.

    Re-adding a pattern moves it to the end so the most recent layer keeps
    precedence over anything added in between.
    """

    def __init__(self) -> None:
        self._patterns: Dict[str, None] = {}
        self._frozen: Optional[Tuple[str, ...]] = None

    def add(self, pattern: str) -> None:
        if self._frozen is not None:
            raise RuntimeError("PatternBuilder is frozen")
        candidate = pattern.strip()
        if not candidate:
            return
        if candidate in self._patterns:
            log.debug("Re-adding exclude pattern at higher precedence: %s", candidate)
            del self._patterns[candidate]
        else:
            log.debug("Adding exclude pattern: %s", candidate)
        self._patterns[candidate] = None

    def extend(self, patterns: Iterable[str]) -> None:
        for p in patterns:
            self.add(p)

    def freeze(self) -> Tuple[str, ...]:
        if self._frozen is None:
            self._frozen = tuple(self._patterns)
        return self._frozen


def literal_pattern(name: str) -> str:
    """Return a gitignore pattern matching the file name or path *name* literally."""
    escaped = re.sub(r"([*?\[])", r"[\1]", name)
    if escaped[:1] in ("!", "#"):
        escaped = "\\" + escaped
    return escaped


def output_exclusion(policy: EffectivePolicy, base: Path) -> List[str]:
    """Pattern excluding the active output file, anchored at *base*.

    Empty when there is no output file, when it is the default output and
    that is explicitly included, or when it lies outside *base* and so can
    never be a candidate.
    """
    output = policy.active_output_path
    if output is None or not output.name:
        return []
    if output.name.lower() == DEFAULT_OUTPUT_NAME and policy.include_default_output:
        return []
    try:
        rel = output.resolve().relative_to(base)
    except ValueError:
        log.debug("Output file %s is outside %s; nothing to exclude", output, base)
        return []
    return ["/" + literal_pattern(rel.as_posix())]


def resolve_target(target_path: Path) -> Path:
    try:
        resolved = Path(target_path).resolve(strict=True)
    except FileNotFoundError as e:
        raise InvalidRootError(f"Target path '{target_path}' does not exist") from e
    except (OSError, RuntimeError) as e:
        raise InvalidRootError(f"Could not resolve target path '{target_path}': {e}") from e
    return resolved


# Source loading
@dataclass
class _Flags:
    include_untracked: bool = True
    scope_whole_repo: bool = False
    use_version_control: bool = True
    add_headers: bool = True
    include_tree: bool = True
    convert_pdf: bool = True
    include_default_output: bool = False


@dataclass
class _StatsAccum:
    enabled: Optional[bool] = None
    token_ratio: Optional[float] = None
    exclude_tree: Optional[bool] = None
    exclude_headers: Optional[bool] = None


_FLAG_KEYS: Dict[str, Tuple[str, bool]] = {
    # key -> (flag attribute, inverted)
    "include_untracked": ("include_untracked", False),
    "tracked_only": ("include_untracked", True),
    "scope_whole_repo": ("scope_whole_repo", False),
    "all_repo": ("scope_whole_repo", False),
    "use_version_control": ("use_version_control", False),
    "no_git": ("use_version_control", True),
    "add_headers": ("add_headers", False),
    "include_tree": ("include_tree", False),
    "convert_pdf": ("convert_pdf", False),
    "include_default_output": ("include_default_output", False),
}


def read_toml(path: Path) -> Optional[Dict[str, Any]]:
    """Parse *path*; ``None`` if it does not exist."""
    if not path.exists():
        log.debug("Config file %s not found; skipping", path)
        return None
    if not path.is_file():
        raise ConfigError("Config path is not a file", path)
    log.debug("Loading config from %s", path)
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Failed to parse config file: {e}", path) from e
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {e}", path) from e


def read_ignore_file(path: Path) -> Optional[List[str]]:
    """Return the pattern lines of a flat ignore file; ``None`` if absent."""
    if not path.exists():
        log.debug("Ignore file %s not found; skipping", path)
        return None
    try:
        with path.open("r", encoding="utf-8") as fh:
            lines = [
                ln.strip()
                for ln in fh
                if ln.strip() and not ln.lstrip().startswith("#")
            ]
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Could not read ignore file: {e}", path) from e
    log.debug("Loaded %d ignore patterns from %s", len(lines), path)
    return lines


def _apply_section(section: Any, path: Path, flags: _Flags, patterns: PatternBuilder) -> None:
    if not isinstance(section, dict):
        raise ConfigError(f"[{SECTION}] must be a table", path)
    if "include_untracked" in section and "tracked_only" in section:
        raise ConfigError("'include_untracked' and 'tracked_only' are mutually exclusive", path)

    for key, value in section.items():
        if key == "exclude":
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ConfigError(f"[{SECTION}].exclude must be a list of strings", path)
            patterns.extend(value)
        elif key in _FLAG_KEYS:
            if not isinstance(value, bool):
                raise ConfigError(f"[{SECTION}].{key} must be a boolean", path)
            attr, inverted = _FLAG_KEYS[key]
            setattr(flags, attr, (not value) if inverted else value)
        else:
            log.warning("Unknown key '%s' in [%s] of %s; ignoring", key, SECTION, path)


def _apply_stats_section(section: Any, path: Path, stats: _StatsAccum) -> None:
    if not isinstance(section, dict):
        raise ConfigError("[stats] must be a table", path)
    if "enabled" in section:
        if not isinstance(section["enabled"], bool):
            raise ConfigError("[stats].enabled must be a boolean", path)
        stats.enabled = section["enabled"]
    if "token_ratio" in section:
        ratio = section["token_ratio"]
        if isinstance(ratio, bool) or not isinstance(ratio, (int, float)) or ratio <= 0:
            raise ConfigError("[stats].token_ratio must be a number greater than 0", path)
        stats.token_ratio = float(ratio)
    if "tokens_exclude" in section:
        entries = section["tokens_exclude"]
        if not isinstance(entries, list) or not all(isinstance(v, str) for v in entries):
            raise ConfigError("[stats].tokens_exclude must be a list of strings", path)
        exclude_tree = exclude_headers = False
        for raw in entries:
            entry = raw.strip()
            if entry == "tree":
                exclude_tree = True
            elif entry == "headers":
                exclude_headers = True
            else:
                log.warning("Unknown tokens_exclude entry '%s' in %s; ignoring", entry, path)
        stats.exclude_tree = exclude_tree
        stats.exclude_headers = exclude_headers


# Resolver
class ConfigResolver:
    """Build an :class:`EffectivePolicy` from every configuration layer."""

    def __init__(self, locations: Optional[ConfigLocations] = None) -> None:
        self.locations = locations if locations is not None else ConfigLocations.from_environment()

    def _apply_config_file(
        self, path: Path, flags: _Flags, stats: _StatsAccum, patterns: PatternBuilder
    ) -> None:
        data = read_toml(path)
        if data is None:
            return
        if SECTION in data:
            _apply_section(data[SECTION], path, flags, patterns)
        if "stats" in data:
            _apply_stats_section(data["stats"], path, stats)

    def _apply_ignore_file(self, path: Path, patterns: PatternBuilder) -> None:
        lines = read_ignore_file(path)
        if lines:
            patterns.extend(lines)

    def resolve(self, target_path: Path, overrides: Optional[Overrides] = None) -> EffectivePolicy:
        cli = overrides or Overrides()
        target = resolve_target(target_path)
        local_dir = target if target.is_dir() else target.parent

        flags = _Flags()
        stats_acc = _StatsAccum()
        patterns = PatternBuilder()
        patterns.extend(DEFAULT_PATTERNS)

        if not cli.no_config:
            if self.locations.config_file is not None:
                self._apply_config_file(self.locations.config_file, flags, stats_acc, patterns)
            if self.locations.ignore_file is not None:
                self._apply_ignore_file(self.locations.ignore_file, patterns)

            self._apply_config_file(local_dir / LOCAL_CONFIG_NAME, flags, stats_acc, patterns)
            self._apply_ignore_file(local_dir / LOCAL_IGNORE_NAME, patterns)

            if cli.config_path is not None:
                explicit = Path(cli.config_path)
                if not explicit.exists():
                    raise ConfigError("Config file does not exist", explicit)
                self._apply_config_file(explicit, flags, stats_acc, patterns)
        elif cli.config_path is not None:
            log.debug("--no-config specified; skipping explicit config file %s", cli.config_path)

        # CLI overrides (highest precedence)
        if cli.no_headers:
            flags.add_headers = False
        if cli.no_tree:
            flags.include_tree = False
        if cli.no_pdf:
            flags.convert_pdf = False
        if cli.include_default_output:
            flags.include_default_output = True
        if cli.no_git:
            flags.use_version_control = False
        if cli.all_repo:
            flags.scope_whole_repo = True
        if cli.tracked_only:
            flags.include_untracked = False
        if cli.include_untracked:
            flags.include_untracked = True

        patterns.extend(cli.exclude_patterns)

        if not flags.include_default_output:
            patterns.add(DEFAULT_OUTPUT_NAME)

        active_output: Optional[Path] = None
        if cli.output_path is not None:
            active_output = Path(cli.output_path).absolute()

        stats = self._merge_stats(stats_acc, cli)

        policy = EffectivePolicy(
            target_path=target,
            include_untracked=flags.include_untracked,
            scope_whole_repo=flags.scope_whole_repo,
            use_version_control=flags.use_version_control,
            use_config_sources=not cli.no_config,
            active_output_path=active_output,
            exclude_patterns=patterns.freeze(),
            add_headers=flags.add_headers,
            include_tree=flags.include_tree,
            convert_pdf=flags.convert_pdf,
            include_default_output=flags.include_default_output,
            stats=stats,
        )
        log.debug("Effective policy: %s", policy)
        return policy

    @staticmethod
    def _merge_stats(acc: _StatsAccum, cli: Overrides) -> StatsSettings:
        if cli.print_stats or cli.top_files is not None:
            acc.enabled = True
        if cli.token_ratio is not None:
            if cli.token_ratio <= 0:
                raise ConfigError("--token-ratio must be greater than 0")
            acc.token_ratio = cli.token_ratio
        if cli.tokens_exclude_tree:
            acc.exclude_tree = True
        if cli.tokens_exclude_headers:
            acc.exclude_headers = True
        if cli.top_files is not None and cli.top_files < 1:
            raise ConfigError("--top-files must be at least 1")
        return StatsSettings(
            enabled=bool(acc.enabled),
            token_ratio=acc.token_ratio if acc.token_ratio is not None else DEFAULT_TOKEN_RATIO,
            exclude_tree=bool(acc.exclude_tree),
            exclude_headers=bool(acc.exclude_headers),
            top_files=cli.top_files,
        )


def resolve_policy(
    target_path: Path,
    overrides: Optional[Overrides] = None,
    locations: Optional[ConfigLocations] = None,
) -> EffectivePolicy:
    return ConfigResolver(locations).resolve(target_path, overrides)
