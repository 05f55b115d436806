"""Advisory per-collector lock.

Keeps two agent processes from running the same collector at once, which
would otherwise race on the collector's last-run record.

Usage:
    with CollectorLock(cache_dir, "mock") as lock:
        if not lock.acquired:
            ...  # another run holds it
"""
from __future__ import annotations

import fcntl
import logging
import os

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"


class CollectorLock:
    def __init__(self, lock_dir: str, collector_id: str):
        self.collector_id = collector_id
        self.lock_file = os.path.join(lock_dir, collector_id + LOCK_SUFFIX)
        self.lock_fd = None
        self.acquired = False

    def __enter__(self):
        os.makedirs(os.path.dirname(self.lock_file), exist_ok=True)
        self.lock_fd = open(self.lock_file, "a+")
        try:
            fcntl.flock(self.lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            logger.info("Collector lock %s is held by another run", self.lock_file)
            self.acquired = False
            return self
        self.lock_fd.seek(0)
        self.lock_fd.truncate()
        self.lock_fd.write(f"{os.getpid()}\n")
        self.lock_fd.flush()
        self.acquired = True
        logger.debug("Acquired collector lock %s: PID %d", self.lock_file, os.getpid())
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.lock_fd is None:
            return False
        try:
            if self.acquired:
                fcntl.flock(self.lock_fd, fcntl.LOCK_UN)
                logger.debug("Released collector lock %s", self.lock_file)
        finally:
            self.lock_fd.close()
            self.lock_fd = None
            self.acquired = False
        return False
