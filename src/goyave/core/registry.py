"""Repository registry: the name to record mapping of known repositories.

Every mutation holds ``ConfigurationFile.lock`` for its whole
read-check-modify sequence, so discovery workers can call
``add_repository`` concurrently.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import PurePath
from typing import Callable, List, Optional

from .errors import NotAMemberError
from .models import ConfigurationFile, RepositoryRecord, Visibility
from .repository import GitError, GitRepository

logger = logging.getLogger(__name__)

RemoteUrlGetter = Callable[[str], str]


class AddOutcome(str, Enum):
    """Result of ``RepositoryRegistry.add_repository``."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


def get_remote_url(path: str) -> str:
    """Query the origin URL of the working tree at ``path``."""
    return GitRepository(path).get_remote_url()


def repository_name(path: str) -> str:
    """Derive the registry key of a repository from its path."""
    return PurePath(path).name


class RepositoryRegistry:
    """Add, look up and remove repositories of a configuration file.

    Attributes:
        config_file (ConfigurationFile): The aggregate holding the records.
        remote_url_getter (Callable[[str], str]): Returns the origin URL of a
            path; raising ``GitError`` or ``OSError`` leaves the URL empty.
    """

    def __init__(
        self,
        config_file: ConfigurationFile,
        remote_url_getter: Optional[RemoteUrlGetter] = None,
    ) -> None:
        """Initialize the registry."""
        self.config_file = config_file
        self.remote_url_getter = remote_url_getter or get_remote_url

    @property
    def host(self) -> str:
        """Identifier of the current host."""
        return self.config_file.current_group

    def _query_remote_url(self, path: str) -> str:
        try:
            return self.remote_url_getter(path)
        except (GitError, OSError) as e:
            logger.warning("[%s] can't look up the origin remote URL: %s", path, e)
            return ""

    def _register_on_host(
        self, record: RepositoryRecord, path: str, visibility: Visibility
    ) -> AddOutcome:
        """Point ``record`` at ``path`` for the current host. Caller holds the lock."""
        host = self.host
        previous = record.paths.get(host)
        if previous == path:
            return AddOutcome.UNCHANGED
        record.paths[host] = path
        if previous is None and visibility is Visibility.VISIBLE:
            members = self.config_file.group(host, create=True)
            if record.name not in members:
                members.append(record.name)
        self.config_file.dirty = True
        if previous is not None:
            logger.info("Repository %s moved from %s to %s", record.name, previous, path)
        return AddOutcome.UPDATED

    def add_repository(self, path: str, visibility: Visibility) -> AddOutcome:
        """Register the repository located at ``path`` on the current host.

        The name is the final segment of ``path``. Rediscovering the same path
        is a no-op; a different path for an existing name replaces the
        current host's entry (last write wins). A new record gets its remote
        URL from git.

        A repository newly registered on the current host with ``VISIBLE``
        intent joins the host's group.

        Args:
            path: Path of the working tree, compared as an exact string.
            visibility: Placement requested for a new repository.

        Returns:
            AddOutcome: What happened to the registry.
        """
        name = repository_name(path)
        with self.config_file.lock:
            record = self.config_file.repositories.get(name)
            if record is not None:
                return self._register_on_host(record, path, visibility)

        url = self._query_remote_url(path)

        with self.config_file.lock:
            record = self.config_file.repositories.get(name)
            if record is not None:
                # Another worker created it while git was queried.
                return self._register_on_host(record, path, visibility)
            record = RepositoryRecord(name=name, url=url)
            self.config_file.repositories[name] = record
            self._register_on_host(record, path, visibility)
            logger.debug("Registered %s at %s", name, path)
            return AddOutcome.CREATED

    def get(self, name: str) -> Optional[RepositoryRecord]:
        """Return the record registered under ``name``."""
        with self.config_file.lock:
            return self.config_file.repositories.get(name)

    def get_path(self, name: str) -> Optional[str]:
        """Get the path of a visible repository on the current host.

        Returns:
            Optional[str]: The path, or None if ``name`` is unknown, has no
            path on this host or is hidden.
        """
        with self.config_file.lock:
            record = self.config_file.repositories.get(name)
            if record is None or name not in self.config_file.group(self.host):
                return None
            return record.path_for(self.host)

    def find_by_path(self, path: str) -> Optional[RepositoryRecord]:
        """Return the record whose current host path is exactly ``path``."""
        with self.config_file.lock:
            record = self.config_file.repositories.get(repository_name(path))
            if record is None or record.path_for(self.host) != path:
                return None
            return record

    def remove(self, name: str, group: str) -> None:
        """Remove ``name`` from ``group``. The record itself is kept.

        Raises:
            NotAMemberError: If ``name`` is not in ``group``.
        """
        with self.config_file.lock:
            members = self.config_file.groups.get(group)
            if not members or name not in members:
                raise NotAMemberError(name, group)
            members.remove(name)
            self.config_file.dirty = True

    def list_repositories(self) -> List[RepositoryRecord]:
        """List every record, sorted by name."""
        with self.config_file.lock:
            return sorted(self.config_file.repositories.values(), key=lambda r: r.name)
