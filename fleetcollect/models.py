"""Collector definitions and the per-run records built from them."""
from __future__ import annotations

import shlex
from dataclasses import dataclass
from enum import Enum

from fleetcollect.errors import CollectorError


class RunStage(str, Enum):
    START = "start"
    COLLECTING = "collecting"
    COLLECTED = "collected"
    PACKAGING = "packaging"
    PACKAGED = "packaged"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    CLEANING_UP = "cleaning_up"
    DONE = "done"


@dataclass(frozen=True)
class CollectorDefinition:
    """A collector as declared by its definition file.

    The id comes from the file stem and doubles as the run-state cache key
    and the output directory prefix. uid/gid are advisory: they are shown to
    the user but the subprocess always runs with the agent's own identity.
    """
    id: str
    command: str
    path: str
    name: str = ""
    feature: str = ""
    content_type: str = ""
    uid: int | None = None
    gid: int | None = None
    service: str = ""
    timer: str = ""

    @property
    def argv(self) -> list[str]:
        return shlex.split(self.command)

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def to_dict(self) -> dict:
        """Public info record, shared by `info`, `list` and run summaries."""
        return {
            "id": self.id,
            "name": self.name,
            "feature": self.feature,
            "command": self.command,
            "content-type": self.content_type,
            "uid": self.uid,
            "gid": self.gid,
            "path": self.path,
            "systemd-service": self.service,
            "systemd-timer": self.timer,
        }


@dataclass
class CollectionRun:
    """In-memory record of one orchestrated run. Never persisted."""
    definition: CollectorDefinition
    keep: bool = False
    upload_requested: bool = True
    directory: str | None = None
    archive: str | None = None
    started_at: float = 0.0
    collect_duration: float = 0.0
    upload_duration: float | None = None
    uploaded: bool = False
    stage: RunStage = RunStage.START
    error: CollectorError | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def summary(self) -> RunSummary:
        return RunSummary(
            collector=self.definition,
            collect_duration=self.collect_duration,
            upload_duration=self.upload_duration,
            kept=self.keep,
            kept_path=self.directory if self.keep else None,
            uploaded=self.uploaded,
            error=str(self.error) if self.error is not None else None,
        )


@dataclass
class RunSummary:
    collector: CollectorDefinition
    collect_duration: float
    upload_duration: float | None = None
    kept: bool = False
    kept_path: str | None = None
    uploaded: bool = False
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        out = {
            "collector": self.collector.to_dict(),
            "collect-duration": self.collect_duration,
            "archive-kept": self.kept,
            "archive-uploaded": self.uploaded,
        }
        if self.upload_duration is not None:
            out["upload-duration"] = self.upload_duration
        if self.kept_path:
            out["archive-path"] = self.kept_path
        if self.error is not None:
            out["error"] = self.error
        return out
