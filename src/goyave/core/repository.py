"""Git functionality for goyave.

A ``GitRepository`` is a runtime handle on a working tree. It is built from a
stored path whenever git needs to be queried and is never persisted.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from rich.markup import escape

GIT_DIR_NAME = ".git"


class GitError(Exception):
    """Git error class."""

    def __init__(self, message: str, command: str = "", output: str = "") -> None:
        """Initialize error."""
        super().__init__(message)
        self.command = command
        self.output = output


class ChangeKind(str, Enum):
    """Kind of change reported for a file of the working tree."""

    ADDED = "added"
    DELETED = "deleted"
    MODIFIED = "modified"
    RENAMED = "renamed"
    UNTRACKED = "untracked"
    TYPE_CHANGED = "type changed"
    CONFLICTED = "conflicted"


@dataclass
class FileChange:
    """A single entry of ``git status``."""

    kind: ChangeKind
    path: str
    old_path: Optional[str] = None
    old_mode: Optional[str] = None
    new_mode: Optional[str] = None


@dataclass
class StatusReport:
    """Working tree state of a repository."""

    path: str
    branch: str = ""
    detached: bool = False
    ahead: int = 0
    behind: int = 0
    changes: List[FileChange] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        """Check if the working tree has no change at all."""
        return not self.changes


def is_git_repository(path: Union[str, Path]) -> bool:
    """Check if ``path`` holds a ``.git`` entry (directory, or file for worktrees)."""
    path = Path(path)
    if path.name != GIT_DIR_NAME:
        path = path / GIT_DIR_NAME
    return path.exists()


def _kind_from_xy(xy: str) -> ChangeKind:
    if "R" in xy or "C" in xy:
        return ChangeKind.RENAMED
    if "A" in xy:
        return ChangeKind.ADDED
    if "D" in xy:
        return ChangeKind.DELETED
    if "T" in xy:
        return ChangeKind.TYPE_CHANGED
    return ChangeKind.MODIFIED


def parse_porcelain_v2(path: str, output: str) -> StatusReport:
    """Parse ``git status --porcelain=v2 --branch`` output.

    Args:
        path: Path of the repository the output belongs to.
        output: Raw standard output of git.

    Returns:
        StatusReport: Branch information and one ``FileChange`` per entry.
    """
    report = StatusReport(path=path)
    for line in output.splitlines():
        if line.startswith("# branch.head "):
            head = line[len("# branch.head ") :]
            report.detached = head == "(detached)"
            report.branch = "" if report.detached else head
        elif line.startswith("# branch.ab "):
            ahead, behind = line[len("# branch.ab ") :].split()
            report.ahead = abs(int(ahead))
            report.behind = abs(int(behind))
        elif line.startswith("1 "):
            # 1 XY sub mH mI mW hH hI path
            parts = line.split(" ", 8)
            kind = _kind_from_xy(parts[1])
            change = FileChange(kind=kind, path=parts[8])
            if kind is ChangeKind.TYPE_CHANGED:
                change.old_mode = parts[3]
                change.new_mode = parts[5] if parts[1][1] != "." else parts[4]
            report.changes.append(change)
        elif line.startswith("2 "):
            # 2 XY sub mH mI mW hH hI Xscore path<TAB>origPath
            parts = line.split(" ", 9)
            new_path, _, old_path = parts[9].partition("\t")
            report.changes.append(
                FileChange(kind=ChangeKind.RENAMED, path=new_path, old_path=old_path or None)
            )
        elif line.startswith("u "):
            # u XY sub m1 m2 m3 mW h1 h2 h3 path
            parts = line.split(" ", 10)
            report.changes.append(FileChange(kind=ChangeKind.CONFLICTED, path=parts[10]))
        elif line.startswith("? "):
            report.changes.append(FileChange(kind=ChangeKind.UNTRACKED, path=line[2:]))
    return report


def render_status(report: StatusReport) -> str:
    """Format a status report with rich markup for the operator."""
    lines: List[str] = []
    if report.detached:
        lines.append("[red]\t/!\\ The repository's HEAD is detached! /!\\ [/red]")
    if report.is_clean:
        lines.append(f"[green]✔[/green] {escape(report.path)}")
    else:
        lines.append(
            f"[red]✘[/red] {escape(report.path)}\t[{len(report.changes)} modification(s)]"
        )
        for change in report.changes:
            name = f"[magenta]{escape(change.path)}[/magenta]"
            if change.kind is ChangeKind.RENAMED:
                old_name = escape(change.old_path or "")
                lines.append(
                    f"\t===> [magenta]{old_name}[/magenta] has been renamed to {name}!"
                )
            elif change.kind is ChangeKind.UNTRACKED:
                lines.append(
                    f"\t===> {name} is untracked - please add it or update the gitignore file!"
                )
            elif change.kind is ChangeKind.TYPE_CHANGED:
                lines.append(
                    f"\t===> the type of {name} has been changed from "
                    f"{change.old_mode} to {change.new_mode}!"
                )
            elif change.kind is ChangeKind.CONFLICTED:
                lines.append(f"\t===> {name} has conflicts!")
            else:
                lines.append(f"\t===> {name} has been {change.kind.value}!")
    if report.ahead:
        lines.append(f"\tYou need to push the last modifications! ({report.ahead} ahead)")
    if report.behind:
        lines.append(f"\tThe remote has new commits to pull. ({report.behind} behind)")
    return "\n".join(lines)


class GitRepository:
    """Represents a local git working tree.

    Attributes:
        path (Path): Path to the working tree, kept as given.
        name (str): Last segment of the path, used as the registry key.
    """

    def __init__(self, path: Union[str, Path]):
        """Initialize repository."""
        self.path = Path(path)
        self.name = self.path.name

    def __str__(self) -> str:
        """Return string representation."""
        return f"GitRepository({self.path})"

    def __repr__(self) -> str:
        """Return string representation."""
        return self.__str__()

    def exists(self) -> bool:
        """Check if repository exists and is a Git repository."""
        if not self.path.exists() or not self.path.is_dir():
            return False
        try:
            self._run_git("rev-parse", "--git-dir")
            return True
        except GitError:
            return False

    def _run_git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        """Run a Git command inside the working tree."""
        command = ["git", "-C", str(self.path), *args]
        try:
            result = subprocess.run(command, capture_output=True, text=True)
        except OSError as e:
            raise GitError(f"Git command failed: {e}", command=" ".join(command)) from e
        if check and result.returncode != 0:
            message = result.stderr.strip() or result.stdout.strip() or "no output"
            raise GitError(
                f"Git command failed: {message}",
                command=" ".join(command),
                output=f"stdout: {result.stdout}\nstderr: {result.stderr}",
            )
        return result

    def get_remote_url(self) -> str:
        """Get the URL of the ``origin`` remote.

        Returns:
            str: The URL, or an empty string when no origin is configured.

        Raises:
            GitError: If the repository cannot be opened.
        """
        if not self.exists():
            raise GitError(f"{self.path} is not an accessible git repository")
        result = self._run_git("config", "--get", "remote.origin.url", check=False)
        return result.stdout.strip()

    def status(self) -> StatusReport:
        """Get the state of the working tree.

        Raises:
            GitError: If the repository cannot be opened or git fails.
        """
        if not self.exists():
            raise GitError(f"Repository {self.path} not found!")
        result = self._run_git("status", "--porcelain=v2", "--branch", "--untracked-files=all")
        return parse_porcelain_v2(str(self.path), result.stdout)


def clone_repository(url: str, path: Union[str, Path]) -> GitRepository:
    """Clone ``url`` into ``path``.

    Raises:
        GitError: If the URL is empty or ``git clone`` fails.
    """
    if not url:
        raise GitError(f"no remote URL known to clone {path}")
    command = ["git", "clone", url, str(path)]
    try:
        result = subprocess.run(command, capture_output=True, text=True)
    except OSError as e:
        raise GitError(f"Git command failed: {e}", command=" ".join(command)) from e
    if result.returncode != 0:
        raise GitError(
            f"Git clone failed: {result.stderr.strip()}",
            command=" ".join(command),
            output=f"stdout: {result.stdout}\nstderr: {result.stderr}",
        )
    return GitRepository(path)
