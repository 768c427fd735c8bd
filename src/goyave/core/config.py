"""Configuration management for goyave.

``Config`` owns the single ``ConfigurationFile`` of a command invocation:
it loads the file (or synthesizes a default one), hands out the registry and
group views, and writes everything back once the command is done.
"""

from __future__ import annotations

import getpass
import logging
import os
import socket
from enum import Enum
from pathlib import Path
from typing import List, Optional

from .codec import decode, encode
from .errors import ConfigurationError
from .groups import VisibilityGroups
from .models import ConfigurationFile, LocalInformations, Visibility
from .registry import RemoteUrlGetter, RepositoryRegistry

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".goyave"
CONFIG_ENV_VAR = "GOYAVE_CONFIG"
DEFAULT_HOSTNAME = "DefaultHostname"


class ConfigState(str, Enum):
    """Lifecycle of a ``Config`` within one invocation."""

    UNINITIALIZED = "uninitialized"
    LOADED = "loaded"
    DEFAULTED = "defaulted"
    MUTATED = "mutated"
    PERSISTED = "persisted"


def get_hostname() -> str:
    """Get the hostname of the current computer."""
    try:
        return socket.gethostname() or DEFAULT_HOSTNAME
    except OSError:
        return DEFAULT_HOSTNAME


def get_username() -> str:
    """Get the name of the current OS user."""
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""


def get_home_dir() -> Path:
    """Get the home directory of the current user.

    Raises:
        ConfigurationError: If the home directory cannot be determined.
    """
    try:
        return Path.home()
    except (KeyError, RuntimeError) as e:
        raise ConfigurationError(f"can't get the user home dir: {e}") from e


def default_config_path() -> Path:
    """Get the location of the configuration file in the home directory."""
    return get_home_dir() / CONFIG_FILE_NAME


def default_configuration(author: str, hostname: str) -> ConfigurationFile:
    """Build the structure written when no configuration file exists yet."""
    return ConfigurationFile(
        author=author,
        local=LocalInformations(group=hostname, default_target=Visibility.VISIBLE),
        groups={hostname: []},
    )


class Config:
    """Configuration file lifecycle.

    Attributes:
        path (Path): Location of the configuration file.
        data (ConfigurationFile): The loaded aggregate, once ``load`` ran.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        """Initialize configuration."""
        if path is None:
            env_path = os.environ.get(CONFIG_ENV_VAR)
            path = Path(env_path) if env_path else default_config_path()
        try:
            self.path = Path(path).expanduser()
        except (KeyError, RuntimeError) as e:
            raise ConfigurationError(f"can't get the user home dir: {e}") from e
        self._data: Optional[ConfigurationFile] = None
        self._state = ConfigState.UNINITIALIZED

    @property
    def state(self) -> ConfigState:
        """Current lifecycle state."""
        if self._state in (ConfigState.LOADED, ConfigState.DEFAULTED) and self.data.dirty:
            return ConfigState.MUTATED
        return self._state

    @property
    def data(self) -> ConfigurationFile:
        """The loaded configuration file."""
        if self._data is None:
            raise ConfigurationError("configuration file has not been loaded")
        return self._data

    def load(self) -> ConfigurationFile:
        """Load the configuration file, creating a default one if needed.

        A missing or empty file is replaced by a default structure built from
        the current user and hostname, which is persisted right away.

        Raises:
            ConfigurationError: If the file cannot be read or parsed, or the
                default structure cannot be written.
        """
        try:
            text = self.path.read_text(encoding="utf-8") if self.path.exists() else ""
        except OSError as e:
            raise ConfigurationError(f"can't open the file {self.path}: {e}") from e

        hostname = get_hostname()
        if not text.strip():
            logger.info("No configuration found, creating %s", self.path)
            self._data = default_configuration(get_username(), hostname)
            self.save()
            self._state = ConfigState.DEFAULTED
        else:
            self._data = decode(text, default_group=hostname)
            self._state = ConfigState.LOADED
            logger.debug(
                "Loaded %d repositories from %s", len(self._data.repositories), self.path
            )
        return self._data

    def save(self) -> None:
        """Write the configuration file back to disk.

        The content goes to a temporary sibling first, then replaces the
        file, so an interrupted write never leaves a truncated file.

        Raises:
            ConfigurationError: If encoding or writing fails.
        """
        data = self.data
        with data.lock:
            content = encode(data)
            tmp_path = self.path.with_name(self.path.name + ".tmp")
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path.write_text(content, encoding="utf-8")
                os.replace(tmp_path, self.path)
            except OSError as e:
                raise ConfigurationError(
                    f"can't save the configuration file {self.path}: {e}"
                ) from e
            data.dirty = False
        self._state = ConfigState.PERSISTED
        logger.debug("Saved configuration to %s", self.path)

    def registry(self, remote_url_getter: Optional[RemoteUrlGetter] = None) -> RepositoryRegistry:
        """Get the repository registry of the loaded file."""
        return RepositoryRegistry(self.data, remote_url_getter)

    def groups(self) -> VisibilityGroups:
        """Get the visibility groups of the loaded file."""
        return VisibilityGroups(self.data)

    def validate(self) -> List[str]:
        """Validate group memberships against the registry.

        Returns:
            List[str]: One message per member without a matching record or
            without a path on the group's host.
        """
        errors = []
        data = self.data
        with data.lock:
            for host, members in data.groups.items():
                for name in members:
                    record = data.repositories.get(name)
                    if record is None:
                        errors.append(f"group {host}: {name} is not a registered repository")
                    elif not record.path_for(host):
                        errors.append(f"group {host}: {name} has no path on this host")
        return errors
