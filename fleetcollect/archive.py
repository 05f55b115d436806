"""Pack a collection directory into a single compressed tarball."""
from __future__ import annotations

import logging
import os
import tarfile

from fleetcollect.errors import PackagingFailed

logger = logging.getLogger(__name__)

COMPRESSION_SUFFIXES = {
    "xz": ".tar.xz",
    "gz": ".tar.gz",
}


class TarPackager:
    def __init__(self, compression: str = "xz"):
        if compression not in COMPRESSION_SUFFIXES:
            raise ValueError(f"unsupported compression: {compression}")
        self.compression = compression

    def pack(self, directory: str) -> str:
        """Write <directory>.tar.<ext> next to the directory and return its path.

        The archive holds the directory under its own basename, so unpacking
        it recreates the collection directory.
        """
        directory = os.path.abspath(directory)
        archive = directory.rstrip(os.sep) + COMPRESSION_SUFFIXES[self.compression]
        if not os.path.isdir(directory):
            raise PackagingFailed(directory, "not a directory")
        try:
            with tarfile.open(archive, f"w:{self.compression}") as tar:
                tar.add(directory, arcname=os.path.basename(directory))
        except (OSError, tarfile.TarError) as e:
            logger.error("Cannot compress %s: %s", directory, e)
            if os.path.exists(archive):
                try:
                    os.remove(archive)
                except OSError:
                    logger.warning("Did not wipe partial archive %s", archive)
            raise PackagingFailed(directory, str(e)) from e
        logger.debug("Compressed %s into %s", directory, archive)
        return archive
