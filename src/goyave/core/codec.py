"""YAML encoding and decoding of the configuration file.

The on-disk layout is::

    author: alice
    local:
      group: laptop
      defaultTarget: VISIBLE
    repositories:
      goyave:
        name: goyave
        paths:
          laptop: /home/alice/src/goyave
        url: git@github.com:k0pernicus/goyave.git
    groups:
      laptop:
      - goyave

Unknown keys inside known sections are ignored. Unknown top-level keys are
kept in ``ConfigurationFile.extra`` and written back as they were read.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import yaml

from .errors import ConfigurationError
from .models import ConfigurationFile, LocalInformations, RepositoryRecord, Visibility

logger = logging.getLogger(__name__)

KNOWN_SECTIONS = ("author", "local", "repositories", "groups")


def parse_visibility(value: Any) -> Visibility:
    """Convert a raw value to a ``Visibility``, refusing anything unknown."""
    if isinstance(value, Visibility):
        return value
    try:
        return Visibility(value)
    except ValueError:
        allowed = ", ".join(v.value for v in Visibility)
        raise ConfigurationError(
            f"invalid default target {value!r}, expected one of: {allowed}"
        ) from None


def to_dict(config_file: ConfigurationFile) -> Dict[str, Any]:
    """Convert the aggregate to plain data, leaving runtime fields out."""
    data: Dict[str, Any] = {
        "author": config_file.author,
        "local": {
            "group": config_file.local.group,
            "defaultTarget": parse_visibility(config_file.local.default_target).value,
        },
        "repositories": {
            name: {
                "name": record.name,
                "paths": dict(record.paths),
                "url": record.url,
            }
            for name, record in config_file.repositories.items()
        },
        "groups": {host: list(members) for host, members in config_file.groups.items()},
    }
    for key, value in config_file.extra.items():
        data.setdefault(key, value)
    return data


def _require_mapping(value: Any, what: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"{what} must be a mapping")
    return value


def _require_string(value: Any, what: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigurationError(f"{what} must be a string")
    return value


def _decode_record(key: str, raw: Any) -> RepositoryRecord:
    raw = _require_mapping(raw, f"repository {key}")
    name = _require_string(raw.get("name"), f"repository {key} name") or key
    if name != key:
        logger.warning("Repository entry %s is named %s, using %s", key, name, key)
    paths = _require_mapping(raw.get("paths"), f"repository {key} paths")
    return RepositoryRecord(
        name=key,
        paths={
            str(host): _require_string(path, f"repository {key} path for {host}")
            for host, path in paths.items()
        },
        url=_require_string(raw.get("url"), f"repository {key} url"),
    )


def _decode_group(host: str, raw: Any) -> List[str]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigurationError(f"group {host} must be a list of repository names")
    members: List[str] = []
    for name in raw:
        name = _require_string(name, f"member of group {host}")
        if not name:
            logger.warning("Skipping an empty member of group %s", host)
            continue
        if name in members:
            logger.warning("Repository %s is listed twice in group %s", name, host)
            continue
        members.append(name)
    return members


def from_dict(data: Dict[str, Any], default_group: str = "") -> ConfigurationFile:
    """Build the aggregate from plain data.

    Args:
        data: The decoded YAML document.
        default_group: Host identifier used when the ``local`` section does
            not name one.

    Raises:
        ConfigurationError: If a section has the wrong type or the default
            target is not a known visibility.
    """
    data = _require_mapping(data, "configuration file")

    local = _require_mapping(data.get("local"), "local")
    group = _require_string(local.get("group"), "local group") or default_group
    default_target = parse_visibility(local.get("defaultTarget", Visibility.VISIBLE.value))

    repositories = {
        str(key): _decode_record(str(key), raw)
        for key, raw in _require_mapping(data.get("repositories"), "repositories").items()
    }
    groups = {
        str(host): _decode_group(str(host), raw)
        for host, raw in _require_mapping(data.get("groups"), "groups").items()
    }

    extra = {key: value for key, value in data.items() if key not in KNOWN_SECTIONS}
    if extra:
        logger.debug("Keeping unknown sections: %s", ", ".join(map(str, extra)))

    return ConfigurationFile(
        author=_require_string(data.get("author"), "author"),
        local=LocalInformations(group=group, default_target=default_target),
        repositories=repositories,
        groups=groups,
        extra=extra,
    )


def encode(config_file: ConfigurationFile) -> str:
    """Serialize the aggregate to YAML text."""
    return yaml.safe_dump(
        to_dict(config_file), sort_keys=False, default_flow_style=False, allow_unicode=True
    )


def decode(text: str, default_group: str = "") -> ConfigurationFile:
    """Parse YAML text into the aggregate.

    Raises:
        ConfigurationError: If the text is not valid YAML or does not describe
            a configuration file.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"malformed configuration file: {e}") from e
    return from_dict(data, default_group=default_group)
