"""Visibility groups: which repositories are tracked on which host."""

from __future__ import annotations

import logging
from typing import List, Tuple

from .codec import parse_visibility
from .errors import NotRegisteredError
from .models import ConfigurationFile, Visibility
from .registry import repository_name

logger = logging.getLogger(__name__)


class VisibilityGroups:
    """Per-host partition of the registry into visible and hidden names."""

    def __init__(self, config_file: ConfigurationFile) -> None:
        """Initialize the groups view."""
        self.config_file = config_file

    @property
    def host(self) -> str:
        """Identifier of the current host."""
        return self.config_file.current_group

    def get_default_visibility(self) -> Visibility:
        """Get the placement applied to newly discovered repositories.

        Raises:
            ConfigurationError: If the configured value is not a known
                visibility. The value is never corrected silently.
        """
        return parse_visibility(self.config_file.local.default_target)

    def is_visible(self, name: str, host: str) -> bool:
        """Check if ``name`` belongs to the group of ``host``."""
        with self.config_file.lock:
            return name in self.config_file.group(host)

    def switch(self, path: str) -> Visibility:
        """Toggle the visibility of the repository at ``path`` on this host.

        Args:
            path: Path of the working tree, compared as an exact string.

        Returns:
            Visibility: The new placement of the repository.

        Raises:
            NotRegisteredError: If no record points at ``path`` on this host.
        """
        name = repository_name(path)
        with self.config_file.lock:
            record = self.config_file.repositories.get(name)
            if record is None or record.path_for(self.host) != path:
                raise NotRegisteredError(path)
            members = self.config_file.group(self.host, create=True)
            self.config_file.dirty = True
            if name in members:
                members.remove(name)
                return Visibility.HIDDEN
            members.append(name)
            return Visibility.VISIBLE

    def resolve(self, host: str) -> List[Tuple[str, str]]:
        """Expand the group of ``host`` into ``(name, path)`` pairs.

        Members without a record, or without a path on ``host``, are skipped
        with a warning.
        """
        resolved: List[Tuple[str, str]] = []
        with self.config_file.lock:
            for name in self.config_file.group(host):
                record = self.config_file.repositories.get(name)
                if record is None:
                    logger.warning("%s is in group %s but is not registered, skipping", name, host)
                    continue
                path = record.path_for(host)
                if not path:
                    logger.warning("%s has no path registered for %s, skipping", name, host)
                    continue
                resolved.append((name, path))
        return resolved

    def group_names(self) -> List[str]:
        """List the known hosts, sorted."""
        with self.config_file.lock:
            return sorted(self.config_file.groups)
