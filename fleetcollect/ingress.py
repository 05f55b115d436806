"""Upload client for the ingestion endpoint.

Archives are sent as a multipart POST with a single ``file`` field whose
content type tells the ingestion service how to route the payload. The
client authenticates with the host's consumer certificate when it exists.
"""
from __future__ import annotations

import logging
import os

import requests

from fleetcollect import __version__
from fleetcollect.config import Settings
from fleetcollect.errors import UploadFailed

logger = logging.getLogger(__name__)

USER_AGENT = f"fleetcollect/{__version__}"


class IngressClient:
    def __init__(
        self,
        url: str,
        cert_file: str | None = None,
        key_file: str | None = None,
        proxy: str | None = None,
        timeout: float = 60.0,
    ):
        self.url = url
        self.cert_file = cert_file
        self.key_file = key_file
        self.proxy = proxy
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> IngressClient:
        return cls(
            settings.ingress_url,
            cert_file=settings.cert_file,
            key_file=settings.key_file,
            proxy=settings.proxy,
            timeout=settings.upload_timeout,
        )

    @property
    def cert(self) -> tuple[str, str] | None:
        """Client certificate pair, if both halves are present on disk."""
        if not (self.cert_file and self.key_file):
            return None
        if os.path.exists(self.cert_file) and os.path.exists(self.key_file):
            return self.cert_file, self.key_file
        logger.debug("Consumer certificate not found, uploading without it")
        return None

    @property
    def proxies(self) -> dict | None:
        if not self.proxy:
            return None
        return {"http": self.proxy, "https": self.proxy}

    def upload(self, artifact: str, content_type: str) -> None:
        """POST the artifact. Raises UploadFailed on any non-2xx outcome."""
        if not content_type:
            raise UploadFailed(artifact, "collector declares no content type")

        logger.debug("Uploading %s as %s to %s", artifact, content_type, self.url)
        try:
            with open(artifact, "rb") as f:
                resp = requests.post(
                    self.url,
                    files={"file": (os.path.basename(artifact), f, content_type)},
                    headers={"User-Agent": USER_AGENT},
                    cert=self.cert,
                    proxies=self.proxies,
                    timeout=self.timeout,
                )
        except (requests.RequestException, OSError) as e:
            logger.warning("Upload of %s failed: %s", artifact, e)
            raise UploadFailed(artifact, str(e)) from e

        if not 200 <= resp.status_code < 300:
            msg = f"HTTP {resp.status_code}: {resp.text[:200]}"
            logger.warning("Upload of %s failed: %s", artifact, msg)
            raise UploadFailed(artifact, msg)
        logger.debug("Uploaded %s: HTTP %d", artifact, resp.status_code)
