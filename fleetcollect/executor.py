"""Run one collector command in its own output directory.

The collector learns where to write through a single environment variable
(COLLECTION_DIRECTORY by default). Everything else in the parent environment
is passed through unchanged. The child runs in its own session so a
deadline can kill the whole process group, not just the direct child.
"""
from __future__ import annotations

import logging
import os
import shlex
import shutil
import signal
import subprocess
import tempfile
import time
from contextlib import ExitStack

from fleetcollect.config import Settings
from fleetcollect.errors import (
    CollectionTimeout,
    CollectorBusy,
    DirectoryCreateFailed,
    ExecutionFailed,
    RunStateWriteFailed,
)
from fleetcollect.locking import CollectorLock
from fleetcollect.models import CollectorDefinition
from fleetcollect.state import RunStateCache

logger = logging.getLogger(__name__)


class Executor:
    def __init__(self, settings: Settings, cache: RunStateCache | None = None):
        self.settings = settings
        self.cache = cache if cache is not None else RunStateCache(settings.cache_dir)

    def create_output_directory(self, definition: CollectorDefinition) -> str:
        """Create a fresh, private directory named <id>-<unix time>-<suffix>.

        mkdtemp guarantees a distinct directory even when the same collector
        runs twice within one second; names still sort by start second.
        """
        prefix = f"{definition.id}-{int(time.time())}-"
        try:
            os.makedirs(self.settings.collections_dir, exist_ok=True)
            path = tempfile.mkdtemp(prefix=prefix, dir=self.settings.collections_dir)
        except OSError as e:
            logger.error("Cannot create collection directory for %s: %s", definition.id, e)
            raise DirectoryCreateFailed(definition.id, str(e)) from e
        try:
            os.chmod(path, self.settings.collection_dir_mode)
        except OSError as e:
            _remove_directory(path)
            logger.error("Cannot create collection directory for %s: %s", definition.id, e)
            raise DirectoryCreateFailed(definition.id, str(e)) from e
        path = os.path.abspath(path)
        logger.debug("Generated collection directory %s", path)
        return path

    def _environment(self, directory: str) -> dict:
        env = dict(os.environ)
        env[self.settings.collection_env_var] = directory
        return env

    def run(self, definition: CollectorDefinition) -> str:
        """Collect data for one collector and return its output directory.

        Raises CollectorBusy, DirectoryCreateFailed, ExecutionFailed or
        CollectionTimeout. The last-run record is only written after the
        command exits 0. ExecutionFailed carries the output directory so the
        caller decides whether to keep it; on any other exception (an
        interrupt, say) the directory is removed before the error propagates.
        """
        with ExitStack() as stack:
            try:
                lock = stack.enter_context(CollectorLock(self.settings.cache_dir, definition.id))
            except OSError as e:
                raise ExecutionFailed(definition.id, f"cannot take collector lock: {e}") from e
            if not lock.acquired:
                raise CollectorBusy(definition.id, lock.lock_file)
            directory = self.create_output_directory(definition)
            try:
                self._execute(definition, directory)
            except ExecutionFailed:
                raise
            except BaseException:
                _remove_directory(directory)
                raise
            try:
                self.cache.record_run(definition.id)
            except RunStateWriteFailed as e:
                logger.error("Cannot update collection timestamp for %s: %s", definition.id, e)
        return directory

    def _execute(self, definition: CollectorDefinition, directory: str) -> None:
        argv = definition.argv
        timeout = self.settings.timeout
        logger.debug("Executing %s (timeout=%s)", shlex.join(argv), timeout)

        try:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=self._environment(directory),
                start_new_session=True,
                text=True,
                errors="replace",
            )
        except (OSError, ValueError) as e:
            logger.error("Could not launch collector %s: %s", definition.id, e)
            raise ExecutionFailed(definition.id, str(e), directory=directory) from e

        try:
            stdout, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            _kill_process_group(proc)
            stdout, stderr = proc.communicate()
            logger.error("Collector %s timed out after %ss", definition.id, timeout)
            raise CollectionTimeout(
                definition.id, timeout, stdout=stdout, stderr=stderr, directory=directory,
            )
        except BaseException:
            # KeyboardInterrupt and friends: do not leave the collector running
            _kill_process_group(proc)
            proc.wait()
            raise

        if stdout:
            logger.debug("Collector %s stdout: %s", definition.id, stdout.strip())
        if proc.returncode != 0:
            logger.error(
                "Could not run collector %s: exit status %d, stderr: %s",
                definition.id, proc.returncode, stderr.strip(),
            )
            raise ExecutionFailed(
                definition.id,
                f"exit status {proc.returncode}",
                returncode=proc.returncode,
                stdout=stdout,
                stderr=stderr,
                directory=directory,
            )


def _kill_process_group(proc: subprocess.Popen) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except OSError as e:
        logger.warning("Cannot kill process group %d: %s", proc.pid, e)
        proc.kill()


def _remove_directory(path: str) -> None:
    try:
        shutil.rmtree(path)
    except OSError as e:
        logger.warning("Didn't wipe collection directory %s: %s", path, e)
