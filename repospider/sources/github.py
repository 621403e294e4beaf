"""GitHub repository search source."""

from __future__ import annotations

import asyncio
import os
from datetime import UTC, datetime
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Set

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from ..errors import CLONE_FAILED, EnumerationError, MaterializationError
from ..logging import get_logger
from ..models import Candidate, RepoIdentity, SearchCriteria, utcnow
from ..project import Project
from .base import RepositorySource
from .cloner import GitCloner

DEFAULT_API_BASE = "https://api.github.com"
_PER_PAGE = 100
_MAX_RATE_LIMIT_SLEEP = 300.0


class TransientSearchError(Exception):
    """A search request failed in a way worth retrying."""


SearchFunction = Callable[[SearchCriteria], AsyncIterator[Candidate]]
CloneFunction = Callable[[Candidate], Any]


class GitHubSearch:
    """Paginates ``/search/repositories`` for every query in the criteria.

    Results are deduplicated by ``full_name`` across pages and queries. A
    query stops once more than ``max_examined`` results have been examined in
    this run, and nothing is yielded beyond ``max_kept`` candidates.
    """

    def __init__(
        self,
        *,
        token: Optional[str] = None,
        api_base: str = DEFAULT_API_BASE,
        client: Optional[httpx.AsyncClient] = None,
        attempts: int = 5,
        wait: Optional[wait_base] = None,
        timeout: float = 30.0,
    ) -> None:
        self.token = token
        self.api_base = api_base.rstrip("/")
        self._client = client
        self._owns_client = client is None
        self._attempts = attempts
        self._wait = wait if wait is not None else wait_exponential(multiplier=1, min=2, max=60)
        self._timeout = timeout
        self.logger = get_logger("sources.github")

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(headers=self._headers(), timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def search(self, criteria: SearchCriteria) -> AsyncIterator[Candidate]:
        seen: Set[str] = set()
        examined = 0
        kept = 0
        for query in criteria.queries:
            if examined > criteria.max_examined:
                break
            self.logger.info("Running query %s...", query)
            url: Optional[str] = f"{self.api_base}/search/repositories"
            params: Optional[Dict[str, Any]] = {"q": query, "per_page": _PER_PAGE}
            while url is not None:
                if kept >= criteria.max_kept:
                    return
                response = await self._fetch_page(url, params)
                params = None  # next links already carry the query string
                items = _page_items(response)
                examined += len(items)
                for item in items:
                    full_name = item.get("full_name") or f"{_owner_login(item)}/{item.get('name')}"
                    if full_name in seen:
                        continue
                    seen.add(full_name)
                    if kept >= criteria.max_kept:
                        break
                    kept += 1
                    yield candidate_from_search_result(item, query)
                self.logger.info(
                    "Looked at %d repos of max %d...", examined, criteria.max_examined
                )
                if examined > criteria.max_examined or kept >= criteria.max_kept:
                    break
                url = response.links.get("next", {}).get("url")

    async def _fetch_page(self, url: str, params: Optional[Dict[str, Any]]) -> httpx.Response:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(TransientSearchError),
            stop=stop_after_attempt(self._attempts),
            wait=self._wait,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._request(url, params)
        except RetryError as exc:
            cause = exc.last_attempt.exception()
            raise EnumerationError(f"GitHub search failed after retries: {cause}") from cause
        raise EnumerationError("GitHub search produced no response")  # pragma: no cover

    async def _request(self, url: str, params: Optional[Dict[str, Any]]) -> httpx.Response:
        client = self._get_client()
        try:
            response = await client.get(url, params=params, headers=self._headers())
        except httpx.TransportError as exc:
            raise TransientSearchError(f"Transport error talking to GitHub: {exc}") from exc

        if response.status_code in (403, 429) and _rate_limited(response):
            await self._wait_for_rate_limit(response)
            raise TransientSearchError(f"Rate limited by GitHub ({response.status_code})")
        if response.status_code >= 500:
            raise TransientSearchError(f"GitHub returned {response.status_code}")
        if response.status_code >= 400:
            raise EnumerationError(
                f"GitHub search rejected ({response.status_code}): {_error_message(response)}"
            )
        return response

    async def _wait_for_rate_limit(self, response: httpx.Response) -> None:
        reset = response.headers.get("X-RateLimit-Reset")
        retry_after = response.headers.get("Retry-After")
        delay = 0.0
        if retry_after and retry_after.isdigit():
            delay = float(retry_after)
        elif reset and reset.isdigit():
            delay = float(reset) - datetime.now(UTC).timestamp()
        delay = min(max(delay, 0.0), _MAX_RATE_LIMIT_SLEEP)
        if delay > 0:
            self.logger.warning("Rate limit exhausted. Waiting %.0f seconds", delay)
            await asyncio.sleep(delay)


def _owner_login(item: Dict[str, Any]) -> str:
    owner = item.get("owner")
    if isinstance(owner, dict):
        return str(owner.get("login", ""))
    return ""


def _rate_limited(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    return response.headers.get("X-RateLimit-Remaining") == "0" or "Retry-After" in response.headers


def _page_items(response: httpx.Response) -> List[Dict[str, Any]]:
    try:
        payload = response.json()
    except ValueError as exc:
        raise EnumerationError(f"GitHub search returned a body that is not JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise EnumerationError("GitHub search returned a payload that is not an object")
    items = payload.get("items", [])
    if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
        raise EnumerationError("GitHub search returned malformed items")
    return items


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.text[:200]


def candidate_from_search_result(item: Dict[str, Any], query: Optional[str]) -> Candidate:
    """Trim a search hit to the fields worth keeping as provenance."""
    owner = _owner_login(item)
    name = str(item.get("name", ""))
    html_url = item.get("html_url")
    api_url = item.get("url")
    metadata = {
        "owner": {"login": owner},
        "name": name,
        "full_name": item.get("full_name"),
        "url": api_url,
        "html_url": html_url,
        "default_branch": item.get("default_branch"),
    }
    identity = RepoIdentity(
        owner=owner,
        name=name,
        url=str(html_url or api_url or f"https://github.com/{owner}/{name}"),
        default_branch=item.get("default_branch"),
    )
    return Candidate(identity=identity, source_metadata=metadata, discovered_at=utcnow(), query=query)


class GitHubSource(RepositorySource):
    """Spider GitHub through its search API.

    The token defaults to the ``GITHUB_TOKEN`` environment variable. Both the
    search and the clone step can be replaced, which is how tests drive it.
    """

    materialize_stage = "clone"

    def __init__(
        self,
        *,
        token: Optional[str] = None,
        search: Optional[SearchFunction] = None,
        clone: Optional[CloneFunction] = None,
        cloner: Optional[GitCloner] = None,
    ) -> None:
        self.token = token if token is not None else os.environ.get("GITHUB_TOKEN")
        self._search_client: Optional[GitHubSearch] = None
        if search is None:
            self._search_client = GitHubSearch(token=self.token)
            search = self._search_client.search
        self._search = search
        if clone is None:
            clone = (cloner or GitCloner(token=self.token)).clone
        self._clone = clone

    async def enumerate(self, criteria: SearchCriteria) -> AsyncIterator[Candidate]:
        async for candidate in self._search(criteria):
            yield candidate

    async def materialize(self, candidate: Candidate) -> Project:
        try:
            result = self._clone(candidate)
            if asyncio.iscoroutine(result):
                result = await result
        except MaterializationError:
            raise
        except Exception as exc:
            raise MaterializationError(str(exc), kind=CLONE_FAILED) from exc
        return result

    async def aclose(self) -> None:
        if self._search_client is not None:
            await self._search_client.aclose()


__all__ = [
    "DEFAULT_API_BASE",
    "GitHubSearch",
    "GitHubSource",
    "TransientSearchError",
    "candidate_from_search_result",
]
