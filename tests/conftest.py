"""
Pytest configuration and shared fixtures.

Provides real git repositories, bare remotes standing in for a shared
server, and helpers to make a remote reject pushes.
"""

import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest

from vibechannel.core.config import clear_cache

GitFn = Callable[..., str]


def _git(cwd: Path, *args: str, check: bool = True) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=check,
    )
    return result.stdout.strip()


def _configure_user(repo: Path, name: str = "Test User", email: str = "test@example.com") -> None:
    _git(repo, "config", "user.email", email)
    _git(repo, "config", "user.name", name)


# ==============================================================================
# Environment isolation
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep user config, dotenv files and cached config out of every test."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for name in (
        "VIBECHANNEL_SYNC_INTERVAL",
        "VIBECHANNEL_AUTO_PUSH",
        "VIBECHANNEL_REMOTE",
        "VIBECHANNEL_GIT_TIMEOUT",
        "VIBECHANNEL_NETWORK_TIMEOUT",
        "VIBECHANNEL_SENDER",
        "VIBECHANNEL_ENV_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_cache()
    yield
    clear_cache()


# ==============================================================================
# Git Fixtures
# ==============================================================================


@pytest.fixture
def git() -> GitFn:
    """Run a git command synchronously: git(cwd, *args) -> stripped stdout."""
    return _git


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Create a git repository with one commit on its primary branch."""
    repo = tmp_path / "repo"
    repo.mkdir()
    _git(repo, "init")
    _configure_user(repo)
    (repo / "README.md").write_text("# Project\n")
    _git(repo, "add", "README.md")
    _git(repo, "commit", "-m", "Initial commit")
    return repo


@pytest.fixture
def anonymous_repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create an empty git repository where git has no author identity."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(home / ".gitconfig"))
    for name in (
        "GIT_AUTHOR_NAME",
        "GIT_AUTHOR_EMAIL",
        "GIT_COMMITTER_NAME",
        "GIT_COMMITTER_EMAIL",
        "EMAIL",
    ):
        monkeypatch.delenv(name, raising=False)

    repo = tmp_path / "anonymous"
    repo.mkdir()
    _git(repo, "init")
    # Never guess an identity from the hostname
    _git(repo, "config", "user.useConfigOnly", "true")
    return repo


@pytest.fixture
def bare_remote(tmp_path: Path) -> Path:
    """Create an empty bare repository to act as the shared remote."""
    remote = tmp_path / "remote.git"
    _git(tmp_path, "init", "--bare", str(remote))
    return remote


@pytest.fixture
def repo_with_remote(git_repo: Path, bare_remote: Path) -> Path:
    """git_repo with bare_remote configured as origin and its primary branch pushed."""
    _git(git_repo, "remote", "add", "origin", str(bare_remote))
    _git(git_repo, "push", "origin", "HEAD")
    return git_repo


@pytest.fixture
def make_clone(tmp_path: Path) -> Callable[[Path, str], Path]:
    """Return a factory that clones the remote as another writer."""

    def _make(remote: Path, name: str) -> Path:
        clone = tmp_path / name
        _git(tmp_path, "clone", str(remote), str(clone))
        _configure_user(clone, name=name, email=f"{name}@example.com")
        return clone

    return _make


def _write_hook(remote: Path, hook: str, body: str) -> None:
    hook_path = remote / "hooks" / hook
    hook_path.parent.mkdir(parents=True, exist_ok=True)
    hook_path.write_text("#!/bin/sh\n" + body)
    hook_path.chmod(0o755)


@pytest.fixture
def deny_pushes() -> Callable[[Path], None]:
    """Make a bare remote reject every push the way a hosting service does."""

    def _deny(remote: Path) -> None:
        _write_hook(
            remote,
            "pre-receive",
            'echo "error: permission denied to test-user" >&2\nexit 1\n',
        )

    return _deny


@pytest.fixture
def deny_deletes() -> Callable[[Path], None]:
    """Make a bare remote accept new refs but refuse to delete any."""

    def _deny(remote: Path) -> None:
        _write_hook(
            remote,
            "update",
            'case "$3" in\n'
            "  0000000000000000000000000000000000000000)\n"
            '    echo "ref deletion is disabled on this server" >&2\n'
            "    exit 1;;\n"
            "esac\n"
            "exit 0\n",
        )

    return _deny
