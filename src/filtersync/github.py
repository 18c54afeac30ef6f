"""GitHub client helpers and release/branch resolution."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from functools import partial
from typing import Any
from urllib.parse import quote

import httpx

from filtersync.errors import (
    BranchNotFound,
    FetchError,
    NoReleaseFound,
    ResolveError,
)
from filtersync.models import ResolvedReference, SourceDescriptor
from filtersync.retry import DEFAULT_ATTEMPTS, call_with_retries
from filtersync.sources import expand_builtin

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"
WEB_URL = "https://github.com"
API_VERSION = "2022-11-28"
USER_AGENT = "filtersync"
GITHUB_TIMEOUT = httpx.Timeout(connect=10.0, read=30.0, write=10.0, pool=30.0)

_API_HEADERS = {
    "Accept": "application/vnd.github+json",
    "X-GitHub-Api-Version": API_VERSION,
}

ErrorType = type[ResolveError] | type[FetchError]


def create_client(
    *,
    token: str | None = None,
    transport: httpx.BaseTransport | None = None,
    timeout: httpx.Timeout = GITHUB_TIMEOUT,
) -> httpx.Client:
    """Build the shared HTTP client used by resolver and fetcher threads."""
    headers = {"User-Agent": USER_AGENT}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.Client(
        headers=headers,
        follow_redirects=True,
        timeout=timeout,
        transport=transport,
    )


def raise_for_status(
    response: httpx.Response,
    *,
    error_type: ErrorType,
    context: Mapping[str, str],
) -> None:
    """Map an HTTP error status to a transient or permanent error."""
    status_code = response.status_code
    if status_code < 400:
        return

    details = {**context, "status": str(status_code)}
    if status_code == 429:
        raise error_type("GitHub rate limit exceeded.", context=details, transient=True)

    if status_code == 403:
        if response.headers.get("x-ratelimit-remaining") == "0":
            raise error_type("GitHub rate limit exceeded.", context=details, transient=True)
        raise error_type(
            "Access to the repository was denied.",
            hint="The repository may be private; set GITHUB_TOKEN to authenticate.",
            context=details,
        )

    if status_code == 401:
        raise error_type(
            "GitHub authentication is required.",
            hint="Check that GITHUB_TOKEN is valid.",
            context=details,
        )

    if status_code == 404:
        raise error_type(
            "Repository or resource not found.",
            hint="Check the owner and repository names.",
            context=details,
        )

    if status_code >= 500:
        raise error_type("GitHub returned a server error.", context=details, transient=True)

    raise error_type("Unexpected response from GitHub.", context=details)


def transport_error(
    exc: httpx.HTTPError,
    *,
    error_type: ErrorType,
    context: Mapping[str, str],
) -> ResolveError | FetchError:
    """Wrap an ``httpx`` transport failure; timeouts and connection errors retry."""
    transient = isinstance(exc, (httpx.TimeoutException, httpx.TransportError))
    return error_type(
        f"Request failed: {exc.__class__.__name__}.",
        context={**context, "error": str(exc)},
        transient=transient,
    )


class GitHubResolver:
    """Turn source descriptors into concrete, versioned zipball references."""

    def __init__(
        self,
        client: httpx.Client,
        *,
        api_url: str = API_URL,
        web_url: str = WEB_URL,
        attempts: int = DEFAULT_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.api_url = api_url.rstrip("/")
        self.web_url = web_url.rstrip("/")
        self.attempts = attempts
        self._sleep = sleep

    def resolve(self, descriptor: SourceDescriptor) -> ResolvedReference:
        descriptor = expand_builtin(descriptor)
        operation = self._resolve_branch if descriptor.branch else self._resolve_release
        return call_with_retries(
            partial(operation, descriptor),
            description=f"resolve {descriptor.key}",
            attempts=self.attempts,
            sleep=self._sleep,
        )

    def _resolve_release(self, descriptor: SourceDescriptor) -> ResolvedReference:
        logger.info("fetching latest release of %s", descriptor.key)
        url = f"{self.api_url}/repos/{descriptor.owner}/{descriptor.repo}/releases"
        payload = self._get_json(url, params={"per_page": "1", "page": "1"}, descriptor=descriptor)
        if not isinstance(payload, list):
            raise ResolveError(
                "Release listing has an unexpected shape.",
                context={"source": descriptor.key},
            )
        if not payload:
            raise NoReleaseFound(
                "Repository has no published release.",
                hint="Pin a branch instead, e.g. github:<owner>/<repo>/main.",
                context={"source": descriptor.key},
            )

        release = payload[0]
        tag_name = _required_str(release, "tag_name", descriptor=descriptor)
        zipball_url = _required_str(release, "zipball_url", descriptor=descriptor)
        body = release.get("body") if isinstance(release, dict) else None
        logger.info("found release with tag: %s", tag_name)
        return ResolvedReference(
            descriptor=descriptor,
            version_id=tag_name,
            content_url=zipball_url,
            notes=body if isinstance(body, str) else None,
        )

    def _resolve_branch(self, descriptor: SourceDescriptor) -> ResolvedReference:
        branch = descriptor.branch or ""
        logger.info("fetching latest commit of %s", descriptor.key)
        url = (
            f"{self.api_url}/repos/{descriptor.owner}/{descriptor.repo}"
            f"/branches/{quote(branch, safe='')}"
        )
        payload = self._get_json(url, descriptor=descriptor, missing=BranchNotFound)
        commit = payload.get("commit") if isinstance(payload, dict) else None
        if not isinstance(commit, dict):
            raise ResolveError(
                "Branch response has no commit.",
                context={"source": descriptor.key},
            )
        sha = _required_str(commit, "sha", descriptor=descriptor)
        meta = commit.get("commit")
        message = meta.get("message") if isinstance(meta, dict) else None
        logger.info("found commit %s on %s", sha, branch)
        return ResolvedReference(
            descriptor=descriptor,
            version_id=sha,
            content_url=f"{self.web_url}/{descriptor.owner}/{descriptor.repo}/archive/{sha}.zip",
            notes=message if isinstance(message, str) else None,
        )

    def _get_json(
        self,
        url: str,
        *,
        descriptor: SourceDescriptor,
        params: Mapping[str, str] | None = None,
        missing: type[ResolveError] | None = None,
    ) -> Any:
        context = {"source": descriptor.key, "url": url}
        try:
            response = self.client.get(url, params=params, headers=_API_HEADERS)
        except httpx.HTTPError as exc:
            raise transport_error(exc, error_type=ResolveError, context=context) from exc

        if response.status_code == 404 and missing is not None:
            raise missing(
                f"Branch `{descriptor.branch}` does not exist.",
                context=context,
            )
        raise_for_status(response, error_type=ResolveError, context=context)
        try:
            return response.json()
        except ValueError as exc:
            raise ResolveError("GitHub returned invalid JSON.", context=context) from exc


def _required_str(payload: Any, key: str, *, descriptor: SourceDescriptor) -> str:
    value = payload.get(key) if isinstance(payload, dict) else None
    if not isinstance(value, str) or not value:
        raise ResolveError(
            f"GitHub response is missing `{key}`.",
            context={"source": descriptor.key},
        )
    return value


__all__ = [
    "API_URL",
    "GitHubResolver",
    "WEB_URL",
    "create_client",
    "raise_for_status",
    "transport_error",
]
