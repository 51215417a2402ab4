"""
Git awareness: repository root discovery, ownership-trust handling and
tracked / untracked file listing.

All git access goes through a :class:`VcsProbe` so the scope state machine
can be exercised without a real repository.
"""

from __future__ import annotations

import enum
import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import List, Optional, Protocol, Sequence

from .errors import VcsError

log = logging.getLogger(__name__)

GIT = "git"

_NOT_A_REPO = "not a git repository"
_DUBIOUS_OWNERSHIP = "detected dubious ownership in repository at"
_DUBIOUS_PATH_RE = re.compile(r"dubious ownership in repository at '([^']+)'")


class ProbeStatus(enum.Enum):
    ROOTED = "rooted"
    ABSENT = "absent"
    DISTRUSTED = "distrusted"
    TOOL_ERROR = "tool_error"


@dataclass(frozen=True)
class ProbeResult:
    status: ProbeStatus
    root: Optional[Path] = None
    path: Optional[Path] = None
    command: str = ""
    stderr: str = ""
    stdout: str = ""


@dataclass(frozen=True)
class RepoContext:
    repo_root: Path
    scope_subdir: Optional[PurePosixPath] = None


class VcsProbe(Protocol):
    def discover_root(self, path: Path) -> ProbeResult: ...

    def list_tracked(self, repo_root: Path, pathspecs: Sequence[str]) -> List[str]: ...

    def list_untracked(self, repo_root: Path, pathspecs: Sequence[str]) -> List[str]: ...


# git CLI implementation
class GitProbe:
    """Read-only :class:`VcsProbe` backed by the ``git`` executable."""

    def __init__(self, executable: str = GIT) -> None:
        self.executable = executable

    def _run(self, args: Sequence[str], cwd: Path) -> subprocess.CompletedProcess:
        log.debug("Running %s %s in %s", self.executable, " ".join(args), cwd)
        return subprocess.run(
            [self.executable, *args],
            cwd=str(cwd),
            capture_output=True,
        )

    def _display(self, args: Sequence[str]) -> str:
        return " ".join([self.executable, *args])

    def discover_root(self, path: Path) -> ProbeResult:
        args = ["rev-parse", "--show-toplevel"]
        command = self._display(args)
        try:
            proc = self._run(args, path)
        except FileNotFoundError:
            log.info("'%s' command not found. Assuming non-git mode.", self.executable)
            return ProbeResult(ProbeStatus.ABSENT, path=path, command=command)
        except OSError as e:
            return ProbeResult(ProbeStatus.TOOL_ERROR, path=path, command=command, stderr=str(e))

        stdout = proc.stdout.decode("utf-8", errors="replace")
        stderr = proc.stderr.decode("utf-8", errors="replace")
        if proc.returncode == 0:
            root = stdout.strip()
            if not root:
                log.warning("'%s' returned empty output in %s. Treating as non-git mode.", command, path)
                return ProbeResult(ProbeStatus.ABSENT, path=path, command=command)
            return ProbeResult(ProbeStatus.ROOTED, root=Path(root), path=path, command=command)

        if _DUBIOUS_OWNERSHIP in stderr:
            m = _DUBIOUS_PATH_RE.search(stderr)
            offending = Path(m.group(1)) if m else path
            return ProbeResult(ProbeStatus.DISTRUSTED, path=offending, command=command, stderr=stderr)
        if _NOT_A_REPO in stderr:
            return ProbeResult(ProbeStatus.ABSENT, path=path, command=command, stderr=stderr)
        return ProbeResult(
            ProbeStatus.TOOL_ERROR, path=path, command=command, stderr=stderr, stdout=stdout
        )

    def _ls_files(self, repo_root: Path, extra: Sequence[str], pathspecs: Sequence[str]) -> List[str]:
        args = ["ls-files", "-z", *extra]
        if pathspecs:
            args += ["--", *pathspecs]
        command = self._display(args)
        try:
            proc = self._run(args, repo_root)
        except OSError as e:
            raise VcsError(command, stderr=str(e)) from e
        if proc.returncode != 0:
            stderr = proc.stderr.decode("utf-8", errors="replace")
            stdout = proc.stdout.decode("utf-8", errors="replace")
            log.error("%s failed.\nStderr: %s\nStdout: %s", command, stderr, stdout)
            raise VcsError(command, stderr=stderr, stdout=stdout)
        out = proc.stdout.decode("utf-8", errors="surrogateescape")
        return [p for p in out.split("\0") if p]

    def list_tracked(self, repo_root: Path, pathspecs: Sequence[str]) -> List[str]:
        return self._ls_files(repo_root, [], pathspecs)

    def list_untracked(self, repo_root: Path, pathspecs: Sequence[str]) -> List[str]:
        return self._ls_files(repo_root, ["--others", "--exclude-standard"], pathspecs)


# Scope resolution
def safe_directory_hint(path: Path) -> str:
    return f"git config --global --add safe.directory {path}"


def detect_repo(target_path: Path, whole_repo: bool, probe: VcsProbe) -> Optional[RepoContext]:
    """Return the :class:`RepoContext` for *target_path*, or ``None``.

    ``None`` means plain traversal: either there is no repository, git is not
    installed, or git refused the repository because of its ownership.
    Unexpected git failures raise :class:`VcsError`.
    """
    probe_dir = target_path if target_path.is_dir() else target_path.parent
    result = probe.discover_root(probe_dir)

    if result.status is ProbeStatus.ABSENT:
        log.debug("Path is not inside a git repository: %s", target_path)
        return None

    if result.status is ProbeStatus.DISTRUSTED:
        offending = result.path or probe_dir
        log.warning(
            "git refused the repository at %s because it is owned by a different user; "
            "falling back to plain directory traversal (.gitignore is NOT applied). "
            "To trust it, run: %s",
            offending,
            safe_directory_hint(offending),
        )
        return None

    if result.status is ProbeStatus.TOOL_ERROR or result.root is None:
        log.error("'%s' failed unexpectedly.\nStderr: %s", result.command, result.stderr)
        raise VcsError(result.command, stderr=result.stderr, stdout=result.stdout)

    try:
        root = result.root.resolve(strict=True)
    except OSError as e:
        raise VcsError(result.command, stderr=f"could not resolve repository root {result.root}: {e}") from e
    log.debug("Detected git repo root: %s", root)

    if whole_repo:
        return RepoContext(root, None)
    try:
        rel = target_path.relative_to(root)
    except ValueError:
        log.warning("Target %s is outside repository root %s; using whole repository", target_path, root)
        return RepoContext(root, None)
    if rel == Path("."):
        return RepoContext(root, None)
    return RepoContext(root, PurePosixPath(rel.as_posix()))


def scope_pathspecs(context: RepoContext) -> List[str]:
    """Pathspecs limiting ``git ls-files`` to the scoped subtree."""
    if context.scope_subdir is None:
        return []
    rel = context.scope_subdir.as_posix().rstrip("/")
    if (context.repo_root / rel).is_dir():
        return [f":(glob){rel}/**"]
    return [f":(glob){rel}"]
