"""Size-limited content download and filter extraction."""

from __future__ import annotations

import io
import logging
import time
import zipfile
from collections.abc import Callable
from functools import partial
from pathlib import PurePosixPath

import httpx

from filtersync.errors import FetchError, PayloadTooLarge
from filtersync.github import raise_for_status, transport_error
from filtersync.models import ResolvedReference
from filtersync.retry import DEFAULT_ATTEMPTS, call_with_retries

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 64 * 1024 * 1024
FILTER_SUFFIX = ".filter"


class ContentFetcher:
    """Download resolved zipballs with retry and a response size ceiling.

    Performs network I/O only; nothing is written to disk here.
    """

    def __init__(
        self,
        client: httpx.Client,
        *,
        max_bytes: int = DEFAULT_MAX_BYTES,
        attempts: int = DEFAULT_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.max_bytes = max_bytes
        self.attempts = attempts
        self._sleep = sleep

    def fetch(self, resolved: ResolvedReference) -> bytes:
        return call_with_retries(
            partial(self._download, resolved),
            description=f"download {resolved.key}@{resolved.version_id}",
            attempts=self.attempts,
            sleep=self._sleep,
        )

    def fetch_filters(self, resolved: ResolvedReference) -> dict[str, bytes]:
        return extract_filters(self.fetch(resolved), source=resolved.key, max_bytes=self.max_bytes)

    def _download(self, resolved: ResolvedReference) -> bytes:
        context = {"source": resolved.key, "url": resolved.content_url}
        logger.info("downloading %s", resolved.content_url)
        try:
            with self.client.stream("GET", resolved.content_url) as response:
                raise_for_status(response, error_type=FetchError, context=context)
                declared = response.headers.get("content-length")
                if declared is not None and declared.isdigit() and int(declared) > self.max_bytes:
                    raise _too_large(self.max_bytes, context)
                chunks: list[bytes] = []
                total = 0
                for chunk in response.iter_bytes():
                    if not chunk:
                        continue
                    total += len(chunk)
                    if total > self.max_bytes:
                        raise _too_large(self.max_bytes, context)
                    chunks.append(chunk)
        except httpx.HTTPError as exc:
            raise transport_error(exc, error_type=FetchError, context=context) from exc
        logger.debug("downloaded %d bytes for %s", total, resolved.key)
        return b"".join(chunks)


def extract_filters(
    archive: bytes,
    *,
    source: str,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> dict[str, bytes]:
    """Return every ``*.filter`` member of a zip archive keyed by basename.

    Members keep archive order; a later member with the same basename wins.
    """
    context = {"source": source}
    try:
        zipped = zipfile.ZipFile(io.BytesIO(archive))
    except zipfile.BadZipFile as exc:
        raise FetchError("Downloaded content is not a zip archive.", context=context) from exc

    files: dict[str, bytes] = {}
    total = 0
    with zipped:
        for member in zipped.infolist():
            if member.is_dir():
                continue
            name = PurePosixPath(member.filename.replace("\\", "/")).name
            if not name.endswith(FILTER_SUFFIX) or name == FILTER_SUFFIX:
                continue
            total += member.file_size
            if total > max_bytes:
                raise _too_large(max_bytes, context)
            logger.info("extracting %s", member.filename)
            try:
                files[name] = zipped.read(member)
            except (zipfile.BadZipFile, OSError) as exc:
                raise FetchError(
                    "Archive member could not be read.",
                    context={**context, "member": member.filename},
                ) from exc

    if not files:
        raise FetchError(
            "Archive contains no filter files.",
            hint=f"Expected at least one `*{FILTER_SUFFIX}` file in the repository.",
            context=context,
        )
    return files


def _too_large(limit: int, context: dict[str, str]) -> PayloadTooLarge:
    return PayloadTooLarge(
        "Downloaded content exceeds the size limit.",
        hint="Raise FILTERSYNC_MAX_BYTES if the source is trusted.",
        context={**context, "limit": str(limit)},
    )


__all__ = ["ContentFetcher", "DEFAULT_MAX_BYTES", "FILTER_SUFFIX", "extract_filters"]
