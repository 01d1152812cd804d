"""Download model artifacts from a remote HTTP repository into a local cache."""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Iterable, Optional

import requests

from ..core.exceptions import RepositoryError

LOGGER = logging.getLogger(__name__)


class ModelRepository:
    """Mirror of ``<base_url>/<model_name>/<artifact>`` under ``cache_dir``."""

    def __init__(
        self,
        base_url: str,
        cache_dir: Path,
        session: Optional[requests.Session] = None,
        *,
        timeout: float = 60.0,
        max_retries: int = 3,
        backoff: float = 1.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.cache_dir = Path(cache_dir)
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff = backoff
        self._session = session or requests.Session()

    def model_dir(self, model_name: str) -> Path:
        return self.cache_dir / model_name

    def prepare(self, model_name: str, artifacts: Iterable[str]) -> Path:
        """Ensure every artifact is cached locally and return the model directory."""

        target_dir = self.model_dir(model_name)
        target_dir.mkdir(parents=True, exist_ok=True)
        for artifact in artifacts:
            target = target_dir / artifact
            if target.is_file():
                LOGGER.debug("Artifact %s already cached", target)
                continue
            self._download(f"{self.base_url}/{model_name}/{artifact}", target)
        return target_dir

    def close(self) -> None:
        self._session.close()

    def _download(self, url: str, target: Path) -> None:
        attempt = 0
        delay = self.backoff
        while True:
            try:
                response = self._session.get(url, timeout=self.timeout)
                response.raise_for_status()
                break
            except requests.RequestException as exc:
                status = getattr(exc.response, "status_code", None)
                if status is not None and 400 <= status < 500:
                    raise RepositoryError(f"Unable to download {url}: HTTP {status}") from exc
                attempt += 1
                LOGGER.warning("Failed to download %s (attempt %d/%d): %s", url, attempt, self.max_retries + 1, exc)
                if attempt > self.max_retries:
                    raise RepositoryError(f"Unable to download {url}") from exc
                time.sleep(delay)
                delay *= 2
        temp_path = target.with_name(target.name + ".part")
        try:
            temp_path.write_bytes(response.content)
            temp_path.replace(target)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise
        LOGGER.info("Downloaded %s to %s", url, target)

    def __enter__(self) -> "ModelRepository":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
