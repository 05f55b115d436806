"""Error taxonomy for definition loading, collection and shipping.

Every error raised by fleetcollect derives from CollectorError so callers
(the CLI, a scheduler) can catch the whole family at once.
"""
from __future__ import annotations


class CollectorError(Exception):
    """Base class for all fleetcollect errors."""


# ── Definition loading ──────────────────────────────────────────────


class DefinitionError(CollectorError):
    """A collector definition could not be resolved."""


class DirectoryMissing(DefinitionError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"configuration directory '{path}' not found")


class DefinitionNotFound(DefinitionError):
    def __init__(self, collector_id: str, path: str):
        self.collector_id = collector_id
        self.path = path
        super().__init__(f"no such collector: '{collector_id}'")


class DefinitionUnreadable(DefinitionError):
    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"cannot read collector configuration from '{path}': {reason}")


class DefinitionMalformed(DefinitionError):
    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"collector configuration '{path}' is malformed: {reason}")


# ── Collection ──────────────────────────────────────────────────────


class CollectionError(CollectorError):
    """The collect step did not produce an output directory."""


class DirectoryCreateFailed(CollectionError):
    def __init__(self, collector_id: str, reason: str):
        self.collector_id = collector_id
        super().__init__(f"cannot create collection directory for '{collector_id}': {reason}")


class CollectorBusy(CollectionError):
    def __init__(self, collector_id: str, lock_path: str):
        self.collector_id = collector_id
        self.lock_path = lock_path
        super().__init__(f"collector '{collector_id}' is already running (lock {lock_path})")


class ExecutionFailed(CollectionError):
    """The collector command could not be launched or exited non-zero.

    ``stderr`` holds whatever the command wrote before failing and is the
    main diagnostic shown to the user. ``directory`` is the output directory
    that was created for the run, if any.
    """

    def __init__(
        self,
        collector_id: str,
        reason: str,
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
        directory: str | None = None,
    ):
        self.collector_id = collector_id
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.directory = directory
        message = f"could not run collector '{collector_id}': {reason}"
        if stderr.strip():
            message += f"\n{stderr.strip()}"
        super().__init__(message)


class CollectionTimeout(ExecutionFailed):
    def __init__(self, collector_id: str, timeout: float, stdout: str = "",
                 stderr: str = "", directory: str | None = None):
        self.timeout = timeout
        super().__init__(
            collector_id,
            f"timed out after {timeout:g}s",
            stdout=stdout,
            stderr=stderr,
            directory=directory,
        )


# ── Downstream stages ───────────────────────────────────────────────


class PackagingFailed(CollectorError):
    def __init__(self, directory: str, reason: str):
        self.directory = directory
        super().__init__(f"cannot package '{directory}': {reason}")


class UploadFailed(CollectorError):
    def __init__(self, artifact: str, reason: str):
        self.artifact = artifact
        super().__init__(f"cannot upload '{artifact}': {reason}")


# ── Run-state cache ─────────────────────────────────────────────────


class RunStateError(CollectorError):
    pass


class RunStateWriteFailed(RunStateError):
    def __init__(self, collector_id: str, path: str, reason: str):
        self.collector_id = collector_id
        self.path = path
        super().__init__(f"cannot update collection timestamp in '{path}': {reason}")


class LastRunNotFound(RunStateError):
    def __init__(self, collector_id: str, path: str):
        self.collector_id = collector_id
        self.path = path
        super().__init__(f"collector '{collector_id}' has never run")


class LastRunCorrupt(RunStateError):
    def __init__(self, collector_id: str, path: str, raw: str):
        self.collector_id = collector_id
        self.path = path
        self.raw = raw
        super().__init__(f"cannot parse timestamp in '{path}': {raw!r}")
