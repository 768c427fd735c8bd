"""Test discovery helpers and CLI commands."""

from pathlib import Path
from typing import List

import pytest
import yaml
from click.testing import CliRunner, Result
from conftest import HOST, fake_remote_url, init_git_repo

from goyave.cli import cli
from goyave.core.commands import (
    clone_missing,
    collect_states,
    find_repositories,
    register_repositories,
    run_parallel,
)
from goyave.core.models import ConfigurationFile, Visibility
from goyave.core.registry import AddOutcome, RepositoryRegistry


def test_find_repositories(workspace: Path) -> None:
    """Test finding working trees below a directory."""
    nested = workspace / "alpha" / "vendor" / "lib"
    (nested / ".git").mkdir(parents=True)
    (workspace / "node_modules" / "dep" / ".git").mkdir(parents=True)
    worktree = workspace / "worktree"
    worktree.mkdir()
    (worktree / ".git").write_text("gitdir: /elsewhere\n")

    found = find_repositories(workspace)
    assert sorted(found) == sorted(
        str(p)
        for p in [
            workspace / "alpha",
            workspace / "alpha" / "vendor" / "lib",
            workspace / "beta",
            workspace / "gamma",
            worktree,
        ]
    )
    assert not any(".git" in Path(p).parts for p in found)


def test_find_repositories_custom_excludes(workspace: Path) -> None:
    """Test skipping directories by name."""
    (workspace / "archive" / "old" / ".git").mkdir(parents=True)
    assert "old" in [Path(p).name for p in find_repositories(workspace)]

    found = find_repositories(workspace, exclude_patterns=["archive"])
    assert sorted(Path(p).name for p in found) == ["alpha", "beta", "gamma"]


def test_find_repositories_excluded_names_that_are_repositories(tmp_path: Path) -> None:
    """Test that a working tree is found even when its name is excluded."""
    for name in ["env", "venv", ".env"]:
        init_git_repo(tmp_path / "src" / name)
    (tmp_path / "src" / "app" / "venv" / "lib" / "dep" / ".git").mkdir(parents=True)

    found = find_repositories(tmp_path)
    assert sorted(found) == sorted(str(tmp_path / "src" / n) for n in [".env", "env", "venv"])


def test_find_repositories_includes_root(temp_git_repo: Path) -> None:
    """Test that the root itself is reported when it is a repository."""
    assert find_repositories(temp_git_repo) == [str(temp_git_repo)]


def test_run_parallel_isolates_failures(caplog: pytest.LogCaptureFixture) -> None:
    """Test that one failing item does not stop the others."""

    def invert(value: int) -> float:
        return 1 / value

    results = run_parallel(invert, [1, 0, 2, 4], max_workers=3)
    assert results == {1: 1.0, 2: 0.5, 4: 0.25}
    assert "division by zero" in caplog.text


def test_register_repositories(
    workspace: Path, config_file: ConfigurationFile, caplog: pytest.LogCaptureFixture
) -> None:
    """Test registering discovered repositories in parallel."""
    registry = RepositoryRegistry(config_file, remote_url_getter=fake_remote_url)
    paths = find_repositories(workspace) + [str(workspace / "not_a_repo")]

    outcomes = register_repositories(registry, paths, Visibility.HIDDEN, max_workers=4)
    assert set(outcomes.values()) == {AddOutcome.CREATED}
    assert sorted(config_file.repositories) == ["alpha", "beta", "gamma"]
    assert config_file.groups[HOST] == []
    assert "not_a_repo is not a git repository" in caplog.text


def test_register_many_repositories(tmp_path: Path, config_file: ConfigurationFile) -> None:
    """Test that a large fan-out registers every repository."""
    paths: List[str] = []
    for i in range(64):
        repo = tmp_path / f"dir{i % 5}" / f"repo{i}"
        (repo / ".git").mkdir(parents=True)
        paths.append(str(repo))

    registry = RepositoryRegistry(config_file, remote_url_getter=fake_remote_url)
    register_repositories(registry, paths, Visibility.VISIBLE, max_workers=16)
    assert len(config_file.repositories) == 64
    assert len(config_file.groups[HOST]) == 64


def test_collect_states(temp_git_repo: Path, tmp_path: Path) -> None:
    """Test collecting reports, skipping broken repositories."""
    missing = str(tmp_path / "missing")
    reports = collect_states([str(temp_git_repo), missing])
    assert list(reports) == [str(temp_git_repo)]
    assert reports[str(temp_git_repo)].is_clean


def test_clone_missing(temp_git_repo: Path, tmp_path: Path) -> None:
    """Test cloning only the repositories absent from disk."""
    target = tmp_path / "restored" / "project"
    results = clone_missing(
        [
            ("project", str(target), str(temp_git_repo)),
            ("present", str(temp_git_repo), "https://example.com/present.git"),
            ("broken", str(tmp_path / "restored" / "broken"), ""),
        ]
    )
    assert results == {"project": True, "present": False}
    assert (target / "README.md").exists()


def invoke(runner: CliRunner, config_path: Path, *args: str) -> Result:
    """Run goyave against a given configuration file."""
    return runner.invoke(cli, ["--config", str(config_path), *args])


@pytest.fixture
def config_path(home: Path) -> Path:
    """Location of the configuration file used by CLI tests."""
    return home / ".goyave"


def read_config(config_path: Path) -> dict:
    """Read back the configuration file."""
    return yaml.safe_load(config_path.read_text())


def test_add_and_path(
    cli_runner: CliRunner,
    config_path: Path,
    temp_git_repo: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test adding the current directory and getting its path."""
    monkeypatch.chdir(temp_git_repo)
    current_dir = str(Path.cwd())

    result = invoke(cli_runner, config_path, "add")
    assert result.exit_code == 0, result.output
    assert "Added project as a visible repository" in result.output

    data = read_config(config_path)
    assert data["repositories"]["project"]["paths"] == {HOST: current_dir}
    assert data["groups"][HOST] == ["project"]

    result = invoke(cli_runner, config_path, "add")
    assert result.exit_code == 0
    assert "already registered" in result.output

    result = invoke(cli_runner, config_path, "path", "project")
    assert result.exit_code == 0
    assert result.output.strip() == current_dir


def test_add_outside_repository(
    cli_runner: CliRunner, config_path: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test that add refuses a directory which is not a working tree."""
    plain_dir = tmp_path / "plain"
    plain_dir.mkdir()
    monkeypatch.chdir(plain_dir)

    result = invoke(cli_runner, config_path, "add")
    assert result.exit_code == 1
    assert "is not a git repository" in result.output
    assert read_config(config_path)["repositories"] == {}


def test_path_unknown(cli_runner: CliRunner, config_path: Path) -> None:
    """Test getting the path of an unknown repository."""
    result = invoke(cli_runner, config_path, "path", "nothing")
    assert result.exit_code == 1
    assert "repository nothing not found" in result.output


def test_switch(
    cli_runner: CliRunner,
    config_path: Path,
    temp_git_repo: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test toggling the visibility of the current directory."""
    monkeypatch.chdir(temp_git_repo)
    assert invoke(cli_runner, config_path, "add").exit_code == 0

    result = invoke(cli_runner, config_path, "switch")
    assert result.exit_code == 0
    assert "project is now HIDDEN" in result.output
    assert read_config(config_path)["groups"][HOST] == []
    assert invoke(cli_runner, config_path, "path", "project").exit_code == 1

    result = invoke(cli_runner, config_path, "switch")
    assert result.exit_code == 0
    assert "project is now VISIBLE" in result.output
    assert read_config(config_path)["groups"][HOST] == ["project"]


def test_switch_unregistered(
    cli_runner: CliRunner,
    config_path: Path,
    temp_git_repo: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test switching a directory that was never added."""
    monkeypatch.chdir(temp_git_repo)
    result = invoke(cli_runner, config_path, "switch")
    assert result.exit_code == 1
    assert "not yet registered, add it first" in result.output
    assert read_config(config_path)["groups"] == {HOST: []}


def test_crawl_and_list(cli_runner: CliRunner, config_path: Path, workspace: Path) -> None:
    """Test crawling a directory and listing the result."""
    result = invoke(cli_runner, config_path, "crawl", "--root", str(workspace), "-w", "2")
    assert result.exit_code == 0, result.output
    assert "Found 3 repositories: 3 new, 0 updated" in result.output

    data = read_config(config_path)
    assert sorted(data["repositories"]) == ["alpha", "beta", "gamma"]
    assert sorted(data["groups"][HOST]) == ["alpha", "beta", "gamma"]

    # Crawling again changes nothing
    result = invoke(cli_runner, config_path, "crawl", "--root", str(workspace))
    assert "Found 3 repositories: 0 new, 0 updated" in result.output
    assert read_config(config_path) == data

    result = invoke(cli_runner, config_path, "list")
    assert result.exit_code == 0
    assert result.output.index("alpha") < result.output.index("beta") < result.output.index("gamma")
    assert "VISIBLE" in result.output


def test_crawl_hidden_default(cli_runner: CliRunner, config_path: Path, workspace: Path) -> None:
    """Test that crawled repositories follow the default target."""
    config_path.write_text(
        yaml.safe_dump({"author": "me", "local": {"group": HOST, "defaultTarget": "HIDDEN"}})
    )
    result = invoke(cli_runner, config_path, "crawl", "--root", str(workspace))
    assert result.exit_code == 0, result.output

    data = read_config(config_path)
    assert sorted(data["repositories"]) == ["alpha", "beta", "gamma"]
    assert data["groups"].get(HOST, []) == []


def test_invalid_default_target(cli_runner: CliRunner, config_path: Path) -> None:
    """Test that an invalid default target aborts."""
    original = yaml.safe_dump({"author": "me", "local": {"defaultTarget": "MAYBE"}})
    config_path.write_text(original)
    result = invoke(cli_runner, config_path, "crawl", "--root", str(config_path.parent))
    assert result.exit_code == 1
    assert "invalid default target" in result.output
    assert config_path.read_text() == original


def test_malformed_config(cli_runner: CliRunner, config_path: Path) -> None:
    """Test that a malformed file aborts without being overwritten."""
    config_path.write_text("author: [unclosed\n")
    result = invoke(cli_runner, config_path, "list")
    assert result.exit_code == 1
    assert "malformed configuration file" in result.output
    assert config_path.read_text() == "author: [unclosed\n"


def test_state(cli_runner: CliRunner, config_path: Path, workspace: Path) -> None:
    """Test reporting the state of visible repositories."""
    assert invoke(cli_runner, config_path, "crawl", "--root", str(workspace)).exit_code == 0
    (workspace / "beta" / "README.md").write_text("changed\n")

    result = invoke(cli_runner, config_path, "state")
    assert result.exit_code == 0, result.output
    assert "1 modification(s)" in result.output
    assert "README.md has been modified!" in result.output
    for name in ["alpha", "beta", "gamma"]:
        assert str(workspace / name) in result.output

    result = invoke(cli_runner, config_path, "state", "alpha", "unknown")
    assert result.exit_code == 0
    assert str(workspace / "alpha") in result.output
    assert str(workspace / "beta") not in result.output
    assert "unknown cannot be found in your visible repositories" in result.output


def test_state_nothing_visible(cli_runner: CliRunner, config_path: Path) -> None:
    """Test the state command without visible repositories."""
    result = invoke(cli_runner, config_path, "state")
    assert result.exit_code == 0
    assert "No visible repositories" in result.output


def test_remove(cli_runner: CliRunner, config_path: Path, workspace: Path) -> None:
    """Test removing a repository from this host's group."""
    assert invoke(cli_runner, config_path, "crawl", "--root", str(workspace)).exit_code == 0

    result = invoke(cli_runner, config_path, "remove", "beta")
    assert result.exit_code == 0
    data = read_config(config_path)
    assert "beta" not in data["groups"][HOST]
    assert "beta" in data["repositories"]

    result = invoke(cli_runner, config_path, "remove", "beta")
    assert result.exit_code == 1
    assert "beta is not a member of group laptop" in result.output


def test_load(
    cli_runner: CliRunner, config_path: Path, temp_git_repo: Path, tmp_path: Path
) -> None:
    """Test cloning the repositories of a group."""
    target = tmp_path / "restored" / "project"
    config_path.write_text(
        yaml.safe_dump(
            {
                "author": "me",
                "local": {"group": HOST, "defaultTarget": "VISIBLE"},
                "repositories": {
                    "project": {
                        "name": "project",
                        "paths": {HOST: str(target), "desktop": str(temp_git_repo)},
                        "url": str(temp_git_repo),
                    }
                },
                "groups": {HOST: ["project"], "desktop": ["project"]},
            }
        )
    )
    result = invoke(cli_runner, config_path, "load")
    assert result.exit_code == 0, result.output
    assert "Cloned 1 of 1 repositories" in result.output
    assert (target / "README.md").exists()

    result = invoke(cli_runner, config_path, "load", "--group", "desktop")
    assert result.exit_code == 0
    assert "Cloned 0 of 1 repositories" in result.output


def test_load_unknown_group(cli_runner: CliRunner, config_path: Path) -> None:
    """Test loading a group that does not exist."""
    result = invoke(cli_runner, config_path, "load", "--group", "nowhere")
    assert result.exit_code == 1
    assert "group nowhere has not been found" in result.output
    assert HOST in result.output


def test_config_from_environment(
    cli_runner: CliRunner, home: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test selecting the configuration file with an environment variable."""
    custom = home / "custom.yaml"
    monkeypatch.setenv("GOYAVE_CONFIG", str(custom))
    result = cli_runner.invoke(cli, ["list"])
    assert result.exit_code == 0
    assert "No repositories registered" in result.output
    assert custom.exists()
    assert not (home / ".goyave").exists()


def test_nested_repository_in_workspace(
    cli_runner: CliRunner, config_path: Path, workspace: Path
) -> None:
    """Test that a repository nested in another one is registered too."""
    init_git_repo(workspace / "alpha" / "plugins" / "delta")
    result = invoke(cli_runner, config_path, "crawl", "--root", str(workspace))
    assert result.exit_code == 0
    assert "delta" in read_config(config_path)["repositories"]


def test_log_file(cli_runner: CliRunner, config_path: Path, tmp_path: Path) -> None:
    """Test writing every log record to a file."""
    log_file = tmp_path / "logs" / "goyave.log"
    result = cli_runner.invoke(
        cli, ["--config", str(config_path), "--log-file", str(log_file), "path", "nothing"]
    )
    assert result.exit_code == 1
    content = log_file.read_text()
    assert "No configuration found, creating" in content
    assert "MainThread" in content
    assert "DEBUG" in content


@pytest.mark.parametrize("command", ["add", "crawl", "state", "path", "switch", "load"])
def test_help_does_not_touch_configuration(cli_runner: CliRunner, home: Path, command: str) -> None:
    """Test that asking for help never creates the configuration file."""
    result = cli_runner.invoke(cli, [command, "--help"])
    assert result.exit_code == 0
    assert "Usage:" in result.output
    assert not (home / ".goyave").exists()


def test_config_under_unknown_home(
    cli_runner: CliRunner, home: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test that an unexpandable configuration path is reported, not raised."""

    def no_home(self: Path) -> Path:
        raise RuntimeError("Could not determine home directory.")

    monkeypatch.setattr(Path, "expanduser", no_home)
    result = cli_runner.invoke(cli, ["--config", "~/goyave.yaml", "list"])
    assert result.exit_code == 1
    assert "Error: can't get the user home dir" in result.output
    assert not isinstance(result.exception, RuntimeError)
