"""Core functionality for goyave."""

from .config import Config
from .groups import VisibilityGroups
from .models import ConfigurationFile, LocalInformations, RepositoryRecord, Visibility
from .registry import AddOutcome, RepositoryRegistry
from .repository import GitRepository

__all__ = [
    "AddOutcome",
    "Config",
    "ConfigurationFile",
    "GitRepository",
    "LocalInformations",
    "RepositoryRecord",
    "RepositoryRegistry",
    "Visibility",
    "VisibilityGroups",
]
