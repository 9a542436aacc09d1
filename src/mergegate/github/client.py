"""Minimal GitHub REST client: authenticated GETs and transparent pagination."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

import httpx

from mergegate import __version__
from mergegate.github.errors import GitHubApiError, GitHubTransportError, PreconditionError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"
USER_AGENT = f"mergegate/{__version__}"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_PER_PAGE = 100
DEFAULT_MAX_PAGES = 20


class GitHubClient:
    """Read-only GitHub REST API client.

    Every request carries the bearer token, the JSON media type and a pinned
    API version. Non-success responses raise :class:`GitHubApiError` and are
    never retried here.
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not token or not token.strip():
            raise PreconditionError("Missing GitHub token. Set GITHUB_TOKEN or GH_TOKEN.")

        self._http = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {token.strip()}",
                "User-Agent": USER_AGENT,
                "X-GitHub-Api-Version": API_VERSION,
            },
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def _get(self, path: str, params: dict[str, Any] | None) -> tuple[str, httpx.Response]:
        display = f"{path}?{urlencode(params)}" if params else path
        logger.debug("GET %s", display)
        try:
            response = self._http.get(path, params=params)
        except httpx.TransportError as exc:
            raise GitHubTransportError(display, exc) from exc

        if not response.is_success:
            raise GitHubApiError(display, response.status_code, response.text)
        return display, response

    @staticmethod
    def _decode(display: str, response: httpx.Response) -> Any:
        if response.status_code == 204:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise GitHubApiError(
                display, response.status_code, f"response body is not valid JSON: {response.text}"
            ) from exc

    def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET ``path`` and decode the JSON body; 204 yields None."""
        return self._decode(*self._get(path, params))

    def get_object(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """GET ``path`` and require a JSON object body."""
        display, response = self._get(path, params)
        data = self._decode(display, response)
        if not isinstance(data, dict):
            raise GitHubApiError(
                display, response.status_code, f"expected a JSON object, got {type(data).__name__}"
            )
        return data

    def get_list(
        self,
        path: str,
        *,
        items_key: str | None = None,
        per_page: int = DEFAULT_PER_PAGE,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> list[Any]:
        """Collect every item of a paginated list endpoint.

        Stops on an empty page, a page that is not a list, or a page shorter
        than ``per_page``; never fetches more than ``max_pages`` pages.
        ``items_key`` unwraps envelope responses such as ``check_runs``.
        """
        items: list[Any] = []
        for page in range(1, max_pages + 1):
            data = self.get_json(path, params={"per_page": per_page, "page": page})
            if items_key is not None and isinstance(data, dict):
                data = data.get(items_key)
            if not isinstance(data, list) or not data:
                break

            items.extend(data)
            if len(data) < per_page:
                break
        else:
            logger.warning("%s: stopped after %d pages (%d items)", path, max_pages, len(items))

        logger.debug("%s: %d items", path, len(items))
        return items
