"""Collector definition loading.

Each collector is one TOML file in the definitions directory; the file stem
is the collector id.
"""
from __future__ import annotations

import glob
import logging
import os
import shlex
import tomllib
from collections.abc import Iterator

from fleetcollect.config import Settings
from fleetcollect.errors import (
    DefinitionError,
    DefinitionMalformed,
    DefinitionNotFound,
    DefinitionUnreadable,
    DirectoryMissing,
)
from fleetcollect.models import CollectorDefinition

logger = logging.getLogger(__name__)

DEFINITION_SUFFIX = ".toml"


def _section(data: dict, name: str, path: str) -> dict:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise DefinitionMalformed(path, f"[{name}] must be a table")
    return section


def _string(section: dict, key: str, path: str) -> str:
    value = section.get(key, "")
    if not isinstance(value, str):
        raise DefinitionMalformed(path, f"'{key}' must be a string")
    return value


def _identity(section: dict, key: str, path: str) -> int | None:
    value = section.get(key)
    if value is None:
        return None
    # bool is an int subclass; `uid = true` is a typo, not root
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise DefinitionMalformed(path, f"'{key}' must be a non-negative integer")
    return value


def parse_definition(collector_id: str, path: str, content: str) -> CollectorDefinition:
    """Parse the text of a definition file into a CollectorDefinition."""
    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError as e:
        raise DefinitionMalformed(path, str(e)) from e

    meta = _section(data, "meta", path)
    exec_ = _section(data, "exec", path)
    systemd = _section(data, "systemd", path)

    declared_id = _string(meta, "id", path)
    if declared_id and declared_id != collector_id:
        raise DefinitionMalformed(
            path, f"meta.id '{declared_id}' does not match file name '{collector_id}'"
        )

    if "command" not in exec_:
        raise DefinitionMalformed(path, "missing required exec.command")
    command = _string(exec_, "command", path)
    try:
        argv = shlex.split(command)
    except ValueError as e:
        raise DefinitionMalformed(path, f"cannot split exec.command: {e}") from e
    if not argv or not argv[0]:
        raise DefinitionMalformed(path, "exec.command is empty")
    if any("\x00" in arg for arg in argv):
        raise DefinitionMalformed(path, "exec.command contains a NUL byte")

    definition = CollectorDefinition(
        id=collector_id,
        command=command,
        path=path,
        name=_string(meta, "name", path),
        feature=_string(meta, "feature", path),
        content_type=_string(exec_, "content_type", path),
        uid=_identity(exec_, "uid", path),
        gid=_identity(exec_, "gid", path),
        service=_string(systemd, "service", path),
        timer=_string(systemd, "timer", path),
    )
    logger.debug("Collector parsed: id=%s path=%s", collector_id, path)
    return definition


def load_definition_file(path: str) -> CollectorDefinition:
    """Load a single definition file; its stem becomes the collector id."""
    path = os.path.abspath(path)
    collector_id = os.path.basename(path)
    if collector_id.endswith(DEFINITION_SUFFIX):
        collector_id = collector_id[: -len(DEFINITION_SUFFIX)]

    if not os.path.isfile(path):
        raise DefinitionNotFound(collector_id, path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise DefinitionUnreadable(path, str(e)) from e
    return parse_definition(collector_id, path, content)


class DefinitionStore:
    """Read-only lookup of collector definitions in a directory."""

    def __init__(self, settings: Settings):
        self.directory = settings.definitions_dir

    def _ensure_directory(self) -> None:
        if not os.path.isdir(self.directory):
            logger.error("Configuration directory '%s' not found", self.directory)
            raise DirectoryMissing(self.directory)

    def path_for(self, collector_id: str) -> str:
        return os.path.abspath(os.path.join(self.directory, collector_id + DEFINITION_SUFFIX))

    def load_one(self, collector_id: str) -> CollectorDefinition:
        self._ensure_directory()
        path = self.path_for(collector_id)
        if not collector_id or os.sep in collector_id or collector_id.startswith("."):
            raise DefinitionNotFound(collector_id, path)
        return load_definition_file(path)

    def iter_definitions(self) -> Iterator[CollectorDefinition]:
        """Yield every loadable definition, skipping broken ones with a warning."""
        self._ensure_directory()
        pattern = os.path.join(glob.escape(self.directory), "*" + DEFINITION_SUFFIX)
        for path in sorted(glob.iglob(pattern)):
            try:
                yield load_definition_file(path)
            except DefinitionError as e:
                logger.warning("Collector '%s' is malformed, skipping: %s", path, e)

    def load_all(self) -> list[CollectorDefinition]:
        return list(self.iter_definitions())
