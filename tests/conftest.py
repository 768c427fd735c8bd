"""Test configuration."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Generator, List

import pytest
from click.testing import CliRunner
from rich.console import Console

from goyave.core.config import CONFIG_ENV_VAR
from goyave.core.groups import VisibilityGroups
from goyave.core.models import ConfigurationFile, LocalInformations
from goyave.core.registry import RepositoryRegistry

HOST = "laptop"


def fake_remote_url(path: str) -> str:
    """Return a predictable origin URL for a path."""
    return f"git@example.com:me/{Path(path).name}.git"


def init_git_repo(repo_path: Path) -> Path:
    """Create a Git repository with one commit at ``repo_path``."""
    repo_path.mkdir(parents=True, exist_ok=True)
    subprocess.run(["git", "init"], cwd=repo_path, check=True, capture_output=True)
    subprocess.run(["git", "config", "user.name", "Test User"], cwd=repo_path, check=True)
    subprocess.run(
        ["git", "config", "user.email", "test@example.com"], cwd=repo_path, check=True
    )
    (repo_path / "README.md").write_text("# Test Repository\n")
    subprocess.run(["git", "add", "README.md"], cwd=repo_path, check=True)
    subprocess.run(
        ["git", "commit", "-m", "Initial commit"], cwd=repo_path, check=True, capture_output=True
    )
    return repo_path


@pytest.fixture
def config_file() -> ConfigurationFile:
    """Create an empty configuration file for the ``laptop`` host."""
    return ConfigurationFile(
        author="Antonin",
        local=LocalInformations(group=HOST),
        groups={HOST: []},
    )


@pytest.fixture
def registry(config_file: ConfigurationFile) -> RepositoryRegistry:
    """Create a registry that never calls git."""
    return RepositoryRegistry(config_file, remote_url_getter=fake_remote_url)


@pytest.fixture
def groups(config_file: ConfigurationFile) -> VisibilityGroups:
    """Create the visibility groups view."""
    return VisibilityGroups(config_file)


@pytest.fixture
def temp_git_repo(tmp_path: Path) -> Path:
    """Create a temporary Git repository named ``project``."""
    return init_git_repo(tmp_path / "project")


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a directory holding several Git repositories."""
    workspace = tmp_path / "workspace"
    for name in ["alpha", "beta", "gamma"]:
        init_git_repo(workspace / name)
    (workspace / "not_a_repo").mkdir()
    return workspace


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Point the home directory, hostname and user name at test values."""
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    monkeypatch.setenv("HOME", str(home_dir))
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.setattr("goyave.core.config.get_hostname", lambda: HOST)
    monkeypatch.setattr("goyave.core.config.get_username", lambda: "tester")
    yield home_dir


@pytest.fixture
def cli_runner(home: Path, monkeypatch: pytest.MonkeyPatch) -> CliRunner:
    """Return a CLI runner whose consoles never wrap lines."""
    monkeypatch.setattr("goyave.cli.console", Console(width=500))
    monkeypatch.setattr("goyave.cli.err_console", Console(stderr=True, width=500))
    monkeypatch.setattr("goyave.core.logging.console", Console(stderr=True, width=500))
    return CliRunner()


def paths_of(config_file: ConfigurationFile, host: str = HOST) -> List[str]:
    """List the paths registered for ``host``."""
    return sorted(
        record.paths[host] for record in config_file.repositories.values() if host in record.paths
    )
