"""
Shared fixtures: isolated config locations, file-tree builder and a canned
git probe.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

import pytest

from grabfiles.config import ConfigLocations, ConfigResolver
from grabfiles.vcs import ProbeResult, ProbeStatus


def make_tree(root: Path, files: Sequence[str], content: str = "x\n") -> None:
    for rel in files:
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content, encoding="utf-8")


class FakeProbe:
    """VcsProbe returning canned results and recording its calls."""

    def __init__(
        self,
        result: ProbeResult,
        tracked: Optional[List[str]] = None,
        untracked: Optional[List[str]] = None,
    ) -> None:
        self.result = result
        self.tracked = tracked or []
        self.untracked = untracked or []
        self.calls: List[tuple] = []

    @staticmethod
    def _scoped(paths: List[str], pathspecs: Sequence[str]) -> List[str]:
        if not pathspecs:
            return list(paths)
        prefixes = [s.replace(":(glob)", "").replace("**", "") for s in pathspecs]
        return [p for p in paths if any(p.startswith(pre) for pre in prefixes)]

    def discover_root(self, path: Path) -> ProbeResult:
        self.calls.append(("discover_root", path))
        return self.result

    def list_tracked(self, repo_root: Path, pathspecs: Sequence[str]) -> List[str]:
        self.calls.append(("list_tracked", repo_root, tuple(pathspecs)))
        return self._scoped(self.tracked, pathspecs)

    def list_untracked(self, repo_root: Path, pathspecs: Sequence[str]) -> List[str]:
        self.calls.append(("list_untracked", repo_root, tuple(pathspecs)))
        return self._scoped(self.untracked, pathspecs)


@pytest.fixture
def global_dir(tmp_path: Path) -> Path:
    d = tmp_path / "xdg" / "grabfiles"
    d.mkdir(parents=True)
    return d


@pytest.fixture
def resolver(global_dir: Path) -> ConfigResolver:
    return ConfigResolver(ConfigLocations(global_dir))


@pytest.fixture
def project(tmp_path: Path) -> Path:
    d = tmp_path / "project"
    d.mkdir()
    return d


@pytest.fixture
def absent_probe() -> FakeProbe:
    return FakeProbe(ProbeResult(ProbeStatus.ABSENT))


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.setenv("APPDATA", str(tmp_path / "xdg"))


@pytest.fixture(autouse=True)
def _reset_grabfiles_logger():
    yield
    logger = logging.getLogger("grabfiles")
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
