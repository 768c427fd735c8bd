"""Data model for the goyave configuration file."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Visibility(str, Enum):
    """Local visibility of a git repository.

    VISIBLE repositories are tracked on the current host, HIDDEN ones are
    registered but ignored by ``state`` and ``path``.
    """

    VISIBLE = "VISIBLE"
    HIDDEN = "HIDDEN"


@dataclass
class RepositoryRecord:
    """A known git repository and where it lives on each host."""

    name: str
    paths: Dict[str, str] = field(default_factory=dict)
    url: str = ""

    def path_for(self, host: str) -> Optional[str]:
        """Return the path of this repository on ``host``, if any."""
        return self.paths.get(host)


@dataclass
class LocalInformations:
    """Settings specific to the machine reading the file."""

    group: str
    default_target: Visibility = Visibility.VISIBLE


@dataclass
class ConfigurationFile:
    """Aggregate root of the configuration file.

    ``lock``, ``dirty`` and ``extra`` are runtime fields: the codec never
    writes the first two, and ``extra`` only carries unknown top-level keys
    so they survive a load/save cycle.
    """

    author: str
    local: LocalInformations
    repositories: Dict[str, RepositoryRecord] = field(default_factory=dict)
    groups: Dict[str, List[str]] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)
    lock: threading.RLock = field(
        default_factory=threading.RLock, init=False, repr=False, compare=False
    )
    dirty: bool = field(default=False, init=False, repr=False, compare=False)

    @property
    def current_group(self) -> str:
        """Identifier of the current host."""
        return self.local.group

    def group(self, host: str, create: bool = False) -> List[str]:
        """Return the member list of ``host``.

        Missing groups yield an empty list, which is only attached to the
        aggregate when ``create`` is set. Callers mutating the result must
        hold ``lock``.
        """
        members = self.groups.get(host)
        if members is None:
            members = []
            if create:
                self.groups[host] = members
        return members
