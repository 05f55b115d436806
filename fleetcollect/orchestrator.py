"""Run pipeline: collect, package, upload, clean up.

A run moves through RunStage in order and never goes back. The first
failing stage ends the pipeline and becomes the run's error; cleanup of the
output directory and of the packaged archive is registered as soon as each
exists and always runs, whatever happened after.
"""
from __future__ import annotations

import logging
import os
import shutil
import time
from contextlib import ExitStack
from typing import Protocol

from fleetcollect.errors import CollectorError, ExecutionFailed
from fleetcollect.executor import Executor
from fleetcollect.models import CollectionRun, CollectorDefinition, RunStage, RunSummary

logger = logging.getLogger(__name__)


class Packager(Protocol):
    def pack(self, directory: str) -> str:
        """Turn a collection directory into a single artifact, return its path."""


class Uploader(Protocol):
    def upload(self, artifact: str, content_type: str) -> None:
        """Ship an artifact; raise UploadFailed on failure."""


class Orchestrator:
    def __init__(self, executor: Executor, packager: Packager, uploader: Uploader):
        self.executor = executor
        self.packager = packager
        self.uploader = uploader

    def run(
        self,
        definition: CollectorDefinition,
        keep: bool = False,
        upload: bool = True,
    ) -> RunSummary:
        """Run one collector end to end and summarize the outcome.

        Pipeline failures are recorded on the summary rather than raised.
        Anything that is not a CollectorError propagates, after cleanup.
        """
        run = CollectionRun(definition=definition, keep=keep, upload_requested=upload)
        run.started_at = time.time()

        with ExitStack() as cleanup:
            try:
                self._collect(run, cleanup)
                if upload:
                    self._ship(run, cleanup)
            except CollectorError as e:
                run.error = e
                logger.error("Run of %s failed while %s: %s", definition.id, run.stage.value, e)
            _transition(run, RunStage.CLEANING_UP)
        _transition(run, RunStage.DONE)
        return run.summary()

    def _collect(self, run: CollectionRun, cleanup: ExitStack) -> None:
        _transition(run, RunStage.COLLECTING)
        start = time.monotonic()
        try:
            run.directory = self.executor.run(run.definition)
        except ExecutionFailed as e:
            # the directory exists but may hold partial output
            run.directory = e.directory
            raise
        finally:
            run.collect_duration = time.monotonic() - start
            if run.directory:
                cleanup.callback(_remove_directory, run)
        logger.debug(
            "Execution of %s finished in %.3fs", run.definition.id, run.collect_duration,
        )
        _transition(run, RunStage.COLLECTED)

    def _ship(self, run: CollectionRun, cleanup: ExitStack) -> None:
        _transition(run, RunStage.PACKAGING)
        run.archive = self.packager.pack(run.directory)
        cleanup.callback(_remove_archive, run.archive)
        _transition(run, RunStage.PACKAGED)

        _transition(run, RunStage.UPLOADING)
        start = time.monotonic()
        try:
            self.uploader.upload(run.archive, run.definition.content_type)
        finally:
            run.upload_duration = time.monotonic() - start
        run.uploaded = True
        _transition(run, RunStage.UPLOADED)


def _transition(run: CollectionRun, stage: RunStage) -> None:
    logger.debug("%s: %s -> %s", run.definition.id, run.stage.value, stage.value)
    run.stage = stage


def _remove_directory(run: CollectionRun) -> None:
    path = run.directory
    if run.keep:
        logger.debug("Keeping collection directory %s", path)
        return
    if not os.path.exists(path):
        return
    try:
        shutil.rmtree(path)
    except OSError as e:
        logger.warning("Didn't wipe collection directory %s: %s", path, e)
        return
    logger.debug("Wiped collection directory %s", path)


def _remove_archive(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        return
    except OSError as e:
        logger.warning("Did not wipe archive %s: %s", path, e)
        return
    logger.debug("Wiped archive %s", path)
