"""Fetch remote text over HTTP, falling back to the GitHub CLI when needed.

Unauthenticated requests to GitHub are rate limited, so any GitHub-hosted
locator that cannot be retrieved directly is retried through ``gh api``, which
reuses the credentials of the locally authenticated GitHub CLI.
"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import json
import logging
import os
import typing as typ
import urllib.parse

import httpx
from plumbum import local as _default_local
from plumbum.commands import CommandNotFound
from plumbum.commands.processes import ProcessTimedOut
from sdk_versions_errors import FetchError, MalformedInputError

__all__ = [
    "DEFAULT_FETCH_TIMEOUT_SECS",
    "FetchConfig",
    "JsonSource",
    "TextFetcher",
    "TextSource",
    "cli_fallback_args",
    "open_client",
    "resolve_fetch_timeout",
]

LOGGER = logging.getLogger(__name__)

local = _default_local

DEFAULT_FETCH_TIMEOUT_SECS: typ.Final[float] = 30.0
GITHUB_API_HOST: typ.Final[str] = "api.github.com"
GITHUB_RAW_HOST: typ.Final[str] = "raw.githubusercontent.com"
RAW_ACCEPT: typ.Final[str] = "application/vnd.github.v3.raw"
USER_AGENT: typ.Final[str] = "psvm (https://github.com/paritytech/psvm)"


class TextSource(typ.Protocol):
    """Anything able to return the text stored at a locator."""

    async def fetch_text(self, locator: str) -> str:
        """Return the body stored at ``locator`` or raise ``FetchError``."""
        ...


class JsonSource(TextSource, typ.Protocol):
    """A text source that can also decode JSON documents."""

    async def fetch_json(self, locator: str) -> typ.Any:
        """Return the decoded JSON document stored at ``locator``."""
        ...


@dc.dataclass(frozen=True)
class FetchConfig:
    """Settings shared by every request issued through :class:`TextFetcher`."""

    timeout_secs: float = DEFAULT_FETCH_TIMEOUT_SECS
    github_token: str | None = None
    use_cli_fallback: bool = True

    @classmethod
    def from_environment(cls, timeout_secs: float | None = None) -> FetchConfig:
        """Build a configuration from ``GITHUB_TOKEN`` and the timeout setting."""
        return cls(
            timeout_secs=resolve_fetch_timeout(timeout_secs),
            github_token=os.environ.get("GITHUB_TOKEN") or None,
        )


def resolve_fetch_timeout(timeout_secs: float | None) -> float:
    """Return the timeout applied to each request.

    The explicit ``timeout_secs`` argument wins. When it is omitted the
    ``PSVM_FETCH_TIMEOUT_SECS`` environment variable is consulted before falling
    back to :data:`DEFAULT_FETCH_TIMEOUT_SECS`.
    """
    if timeout_secs is not None:
        return timeout_secs

    env_value = os.environ.get("PSVM_FETCH_TIMEOUT_SECS")
    if env_value is None:
        return DEFAULT_FETCH_TIMEOUT_SECS

    try:
        return float(env_value)
    except ValueError as err:
        LOGGER.exception("PSVM_FETCH_TIMEOUT_SECS must be a number")
        message = "PSVM_FETCH_TIMEOUT_SECS must be a number"
        raise SystemExit(message) from err


def open_client(config: FetchConfig) -> httpx.AsyncClient:
    """Create the HTTP client used for a single invocation."""
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=config.timeout_secs,
        headers={"User-Agent": USER_AGENT},
    )


class TextFetcher:
    """Retrieve remote resources for version resolution and listings.

    Examples
    --------
    >>> async def main() -> str:  # doctest: +SKIP
    ...     config = FetchConfig()
    ...     async with open_client(config) as client:
    ...         fetcher = TextFetcher(client, config)
    ...         return await fetcher.fetch_text("https://example.com/Plan.toml")
    """

    def __init__(self, client: httpx.AsyncClient, config: FetchConfig | None = None):
        self._client = client
        self._config = config or FetchConfig()

    async def fetch_text(self, locator: str) -> str:
        """Return the body stored at ``locator``.

        Raises
        ------
        FetchError
            Raised when neither the direct request nor the ``gh`` fallback
            produced the resource.
        """
        try:
            return await self._fetch_http(locator)
        except FetchError as error:
            args = cli_fallback_args(locator)
            if not self._config.use_cli_fallback or args is None:
                raise
            LOGGER.warning(
                "direct request for %s failed (%s); retrying with gh",
                locator,
                error.reason,
            )
            try:
                return await asyncio.to_thread(
                    _run_gh, locator, args, self._config.timeout_secs
                )
            except FetchError as cli_error:
                raise cli_error from error

    async def fetch_json(self, locator: str) -> typ.Any:
        """Return the decoded JSON document stored at ``locator``."""
        text = await self.fetch_text(locator)
        try:
            return json.loads(text)
        except json.JSONDecodeError as error:
            source = f"JSON response from {locator}"
            raise MalformedInputError(source, str(error)) from error

    async def _fetch_http(self, locator: str) -> str:
        headers = {"Accept": RAW_ACCEPT}
        if self._config.github_token and _host(locator) == GITHUB_API_HOST:
            headers["Authorization"] = f"Bearer {self._config.github_token}"
        try:
            response = await self._client.get(
                locator, headers=headers, timeout=self._config.timeout_secs
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as error:
            status = error.response.status_code
            raise FetchError(locator, f"HTTP {status}", status_code=status) from error
        except httpx.HTTPError as error:
            reason = str(error) or type(error).__name__
            raise FetchError(locator, reason) from error
        return response.text


def cli_fallback_args(locator: str) -> tuple[str, ...] | None:
    """Return the ``gh`` arguments able to fetch ``locator``, if any.

    Examples
    --------
    >>> cli_fallback_args("https://api.github.com/repos/o/r/tags?page=2")
    ('api', 'repos/o/r/tags?page=2')
    >>> cli_fallback_args("https://example.com/Plan.toml") is None
    True
    """
    parts = urllib.parse.urlsplit(locator)
    endpoint = parts.path.lstrip("/")
    if parts.hostname == GITHUB_API_HOST:
        if parts.query:
            endpoint = f"{endpoint}?{parts.query}"
        return ("api", endpoint)

    if parts.hostname == GITHUB_RAW_HOST:
        segments = endpoint.split("/", 3)
        if len(segments) < 4:
            return None
        owner, repository, ref, path = segments
        quoted_ref = urllib.parse.quote(ref, safe="")
        return (
            "api",
            "-H",
            f"Accept: {RAW_ACCEPT}",
            f"repos/{owner}/{repository}/contents/{path}?ref={quoted_ref}",
        )

    return None


def _host(locator: str) -> str | None:
    return urllib.parse.urlsplit(locator).hostname


def _run_gh(locator: str, args: tuple[str, ...], timeout_secs: float) -> str:
    """Run ``gh`` with ``args`` and return its standard output."""
    try:
        invocation = local["gh"][args]
        return_code, stdout, stderr = invocation.run(
            retcode=None,
            timeout=timeout_secs,
        )
    except CommandNotFound as error:
        raise FetchError(locator, "gh not found on PATH") from error
    except ProcessTimedOut as error:
        reason = f"gh timed out after {timeout_secs} seconds"
        raise FetchError(locator, reason) from error
    if return_code != 0:
        diagnostics = (stderr or stdout or "").strip()
        detail = f": {diagnostics}" if diagnostics else ""
        reason = f"gh exited with code {return_code}{detail}"
        raise FetchError(locator, reason)
    return stdout
