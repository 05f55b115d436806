"""Per-collector last-run timestamps.

One small file per collector id (``<id>.last-run``) holding a Unix
timestamp. Writes go through a temp file and rename so readers never see a
half-written value.
"""
from __future__ import annotations

import logging
import os
import tempfile
import time
from datetime import datetime, timezone

from fleetcollect.errors import LastRunCorrupt, LastRunNotFound, RunStateWriteFailed

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".last-run"


class RunStateCache:
    def __init__(self, cache_dir: str):
        self.cache_dir = cache_dir

    def path_for(self, collector_id: str) -> str:
        return os.path.join(self.cache_dir, collector_id + RECORD_SUFFIX)

    def record_run(self, collector_id: str, when: int | None = None) -> int:
        """Overwrite the last-run timestamp of a collector. Returns the value written."""
        if when is None:
            when = int(time.time())
        path = self.path_for(collector_id)
        tmp_path = None
        try:
            os.makedirs(self.cache_dir, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{collector_id}.", suffix=".tmp", dir=self.cache_dir,
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(str(when))
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                try:
                    os.unlink(tmp_path)
                except OSError:
                    logger.debug("Failed to remove %s", tmp_path)
            raise RunStateWriteFailed(collector_id, path, str(e)) from e
        logger.debug("Recorded last run of %s at %d", collector_id, when)
        return when

    def last_run(self, collector_id: str) -> int:
        path = self.path_for(collector_id)
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = f.read()
        except FileNotFoundError as e:
            raise LastRunNotFound(collector_id, path) from e
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Cannot read timestamp %s: %s", path, e)
            raise LastRunCorrupt(collector_id, path, "") from e
        try:
            return int(raw.strip())
        except ValueError as e:
            logger.warning("Cannot parse timestamp in %s: %r", path, raw)
            raise LastRunCorrupt(collector_id, path, raw) from e

    def last_run_at(self, collector_id: str) -> datetime:
        return datetime.fromtimestamp(self.last_run(collector_id), tz=timezone.utc)
