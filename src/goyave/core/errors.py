"""Exceptions raised by goyave."""


class GoyaveError(Exception):
    """Base class for goyave errors."""


class ConfigurationError(GoyaveError):
    """The configuration file cannot be located, read, parsed or written."""


class RegistryError(GoyaveError):
    """A registry or group operation was refused."""


class NotRegisteredError(RegistryError):
    """A path or name is not known to the registry."""

    def __init__(self, target: str) -> None:
        """Initialize error."""
        super().__init__(f"{target} is not yet registered, add it first")
        self.target = target


class NotAMemberError(RegistryError):
    """A repository is not a member of the requested group."""

    def __init__(self, name: str, group: str) -> None:
        """Initialize error."""
        super().__init__(f"{name} is not a member of group {group}")
        self.name = name
        self.group = group
