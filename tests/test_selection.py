import os
import shutil
import subprocess
from pathlib import Path

import pytest

from grabfiles.config import Overrides
from grabfiles.errors import InvalidRootError, PatternError
from grabfiles.selection import select_files
from grabfiles.vcs import GitProbe, ProbeResult, ProbeStatus

from conftest import FakeProbe, make_tree


def test_plain_scenario(resolver, project, absent_probe):
    make_tree(project, ["a.txt", "b.log", "sub/c.txt", "sub/d.log"])
    result = select_files(project, Overrides(exclude_patterns=["*.log"]), resolver=resolver, probe=absent_probe)
    assert result.relative_paths() == ["a.txt", "sub/c.txt"]
    assert result.base_path == project.resolve()
    assert result.repo_root is None
    assert all(p.is_absolute() for p in result.files)


def test_no_git_never_probes(resolver, project, absent_probe):
    make_tree(project, ["a.txt"])
    result = select_files(project, Overrides(no_git=True), resolver=resolver, probe=absent_probe)
    assert result.relative_paths() == ["a.txt"]
    assert absent_probe.calls == []


def test_selection_is_deterministic(resolver, project, absent_probe, monkeypatch):
    make_tree(project, ["b/z.txt", "a.txt", "B.txt", "b/a.txt", "_x.txt"])
    first = select_files(project, resolver=resolver, probe=absent_probe)

    real_scandir = os.scandir

    class _Reversed:
        def __init__(self, path):
            self._it = real_scandir(path)

        def __enter__(self):
            return reversed(list(self._it))

        def __exit__(self, *exc):
            self._it.close()

    monkeypatch.setattr(os, "scandir", _Reversed)
    second = select_files(project, resolver=resolver, probe=absent_probe)
    assert first.files == second.files
    assert first.relative_paths() == ["B.txt", "_x.txt", "a.txt", "b/a.txt", "b/z.txt"]


def test_output_file_is_auto_excluded(resolver, project, absent_probe):
    make_tree(project, ["a.txt", "out.txt"])
    result = select_files(project, Overrides(output_path=project / "out.txt"), resolver=resolver, probe=absent_probe)
    assert result.relative_paths() == ["a.txt"]
    again = select_files(project, resolver=resolver, probe=absent_probe)
    assert again.relative_paths() == ["a.txt", "out.txt"]


def test_default_output_and_git_dir_excluded(resolver, project, absent_probe):
    make_tree(project, ["a.txt", "grabfiles.txt", ".git/HEAD"])
    result = select_files(project, resolver=resolver, probe=absent_probe)
    assert result.relative_paths() == ["a.txt"]


def test_local_ignore_file_applies(resolver, project, absent_probe):
    make_tree(project, ["a.txt", "build/out.bin", "docs/x.md"])
    (project / ".grabfilesignore").write_text("build/\n.grabfilesignore\n", encoding="utf-8")
    result = select_files(project, resolver=resolver, probe=absent_probe)
    assert result.relative_paths() == ["a.txt", "docs/x.md"]


def test_invalid_pattern_aborts(resolver, project, absent_probe):
    with pytest.raises(PatternError):
        select_files(project, Overrides(exclude_patterns=["!"]), resolver=resolver, probe=absent_probe)


def test_missing_target(resolver, tmp_path, absent_probe):
    with pytest.raises(InvalidRootError):
        select_files(tmp_path / "nope", resolver=resolver, probe=absent_probe)


def test_distrusted_repo_falls_back_to_walk(resolver, project):
    make_tree(project, ["a.txt"])
    probe = FakeProbe(ProbeResult(ProbeStatus.DISTRUSTED, path=project))
    result = select_files(project, resolver=resolver, probe=probe)
    assert result.relative_paths() == ["a.txt"]
    assert result.repo_root is None


# Repository mode with a canned probe
def _repo_probe(root, **kwargs):
    return FakeProbe(ProbeResult(ProbeStatus.ROOTED, root=root), **kwargs)


def test_scoped_versus_whole_repo(resolver, tmp_path):
    root = tmp_path / "r"
    make_tree(root, ["proj/x.rs", "other/y.rs"])
    probe = _repo_probe(root, tracked=["proj/x.rs", "other/y.rs"])

    scoped = select_files(root / "proj", resolver=resolver, probe=probe)
    assert scoped.relative_paths() == ["proj/x.rs"]
    assert scoped.base_path == root.resolve()

    whole = select_files(root / "proj", Overrides(all_repo=True), resolver=resolver, probe=probe)
    assert whole.relative_paths() == ["other/y.rs", "proj/x.rs"]


def test_repo_union_reports_each_file_once(resolver, tmp_path):
    root = tmp_path / "r"
    make_tree(root, ["a.txt", "b.txt"])
    probe = _repo_probe(root, tracked=["a.txt", "b.txt"], untracked=["b.txt", "./a.txt"])
    result = select_files(root, resolver=resolver, probe=probe)
    assert result.relative_paths() == ["a.txt", "b.txt"]


def test_repo_mode_applies_patterns_after_listing(resolver, tmp_path):
    root = tmp_path / "r"
    make_tree(root, ["a.txt", "b.log", "vendor/lib.js"])
    probe = _repo_probe(root, tracked=["a.txt", "b.log", "vendor/lib.js"])
    result = select_files(
        root, Overrides(exclude_patterns=["*.log", "vendor/"]), resolver=resolver, probe=probe
    )
    assert result.relative_paths() == ["a.txt"]


def test_tracked_only_skips_untracked(resolver, tmp_path):
    root = tmp_path / "r"
    make_tree(root, ["a.txt", "new.txt"])
    probe = _repo_probe(root, tracked=["a.txt"], untracked=["new.txt"])
    result = select_files(root, Overrides(tracked_only=True), resolver=resolver, probe=probe)
    assert result.relative_paths() == ["a.txt"]


# Real git
def _git(cwd: Path, *args: str) -> None:
    subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True)


@pytest.fixture
def git_repo(tmp_path):
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    root = tmp_path / "repo"
    root.mkdir()
    _git(root, "init", "-q")
    make_tree(root, ["tracked.txt", "proj/x.rs", "other/y.rs", "untracked.txt", "debug.log"])
    (root / ".gitignore").write_text("*.log\n", encoding="utf-8")
    _git(root, "add", "tracked.txt", "proj/x.rs", "other/y.rs", ".gitignore")
    return root


def test_real_git_tracked_and_untracked(resolver, git_repo):
    result = select_files(git_repo, resolver=resolver, probe=GitProbe())
    assert result.repo_root == git_repo.resolve()
    assert result.relative_paths() == [
        ".gitignore", "other/y.rs", "proj/x.rs", "tracked.txt", "untracked.txt",
    ]


def test_real_git_tracked_only_and_scope(resolver, git_repo):
    tracked = select_files(git_repo, Overrides(tracked_only=True), resolver=resolver, probe=GitProbe())
    assert "untracked.txt" not in tracked.relative_paths()

    scoped = select_files(git_repo / "proj", resolver=resolver, probe=GitProbe())
    assert scoped.relative_paths() == ["proj/x.rs"]


def test_real_git_outside_repository(resolver, project, monkeypatch):
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    make_tree(project, ["a.txt"])
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(project.parent))
    result = select_files(project, resolver=resolver, probe=GitProbe())
    assert result.repo_root is None
    assert result.relative_paths() == ["a.txt"]


# Plain and repository mode agree
def test_excluded_directory_is_dropped_in_both_modes(resolver, tmp_path, absent_probe):
    root = tmp_path / "r"
    make_tree(root, ["a.txt", "build/b.txt"])
    overrides = Overrides(exclude_patterns=["build/", "!*.txt"])

    plain = select_files(root, overrides, resolver=resolver, probe=absent_probe)
    repo = select_files(
        root, overrides, resolver=resolver, probe=_repo_probe(root, tracked=["a.txt", "build/b.txt"])
    )
    assert plain.relative_paths() == ["a.txt"]
    assert repo.relative_paths() == plain.relative_paths()


def test_anchored_local_pattern_applies_to_scoped_repo(resolver, tmp_path, absent_probe):
    root = tmp_path / "r"
    make_tree(root, ["proj/gen/x.txt", "proj/src/gen/y.txt", "proj/z.txt"])
    (root / "proj" / ".grabfilesignore").write_text("/gen\n.grabfilesignore\n", encoding="utf-8")

    plain = select_files(root / "proj", resolver=resolver, probe=absent_probe)
    assert plain.relative_paths() == ["src/gen/y.txt", "z.txt"]

    probe = _repo_probe(root, tracked=["proj/gen/x.txt", "proj/src/gen/y.txt", "proj/z.txt"])
    scoped = select_files(root / "proj", resolver=resolver, probe=probe)
    assert scoped.relative_paths() == ["proj/src/gen/y.txt", "proj/z.txt"]


def test_output_exclusion_only_drops_the_output_file(resolver, project, absent_probe):
    make_tree(project, ["README.md", "docs/README.md", "x.txt"])
    result = select_files(
        project, Overrides(output_path=project / "docs" / "README.md"), resolver=resolver, probe=absent_probe
    )
    assert result.relative_paths() == ["README.md", "x.txt"]


def test_output_outside_the_tree_excludes_nothing(resolver, project, tmp_path, absent_probe):
    make_tree(project, ["README.md", "docs/README.md"])
    elsewhere = tmp_path / "elsewhere" / "README.md"
    result = select_files(project, Overrides(output_path=elsewhere), resolver=resolver, probe=absent_probe)
    assert result.relative_paths() == ["README.md", "docs/README.md"]


def test_output_in_repo_subdirectory_is_excluded(resolver, tmp_path):
    root = tmp_path / "r"
    make_tree(root, ["a.txt", "out/ctx.txt", "other/ctx.txt"])
    probe = _repo_probe(root, tracked=["a.txt", "out/ctx.txt", "other/ctx.txt"])
    result = select_files(root, Overrides(output_path=root / "out" / "ctx.txt"), resolver=resolver, probe=probe)
    assert result.relative_paths() == ["a.txt", "other/ctx.txt"]
