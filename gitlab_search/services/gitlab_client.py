"""
Thin async client for the parts of the GitLab REST API the search needs.
"""
from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Union
from urllib.parse import quote

import httpx

from gitlab_search.domain.exceptions import GitLabAPIError
from gitlab_search.domain.models import DEFAULT_BASE_URL, DEFAULT_PER_PAGE

logger = logging.getLogger(__name__)

TOKEN_HEADER = "PRIVATE-TOKEN"
NEXT_PAGE_HEADER = "X-Next-Page"


def encode_id(identifier: Union[int, str]) -> str:
    """URL-encode a numeric id or a namespaced path such as ``group/sub``."""
    return quote(str(identifier), safe="")


class GitLabClient:
    """
    Wraps an ``httpx.AsyncClient`` configured with the base URL and token.

    Use as an async context manager so the connection pool is closed:

        async with GitLabClient(token) as client:
            projects = await client.list_group_projects("my-group")
    """

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        per_page: int = DEFAULT_PER_PAGE,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.per_page = per_page
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={TOKEN_HEADER: token},
            follow_redirects=True,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "GitLabClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ========================================================================
    # Listings
    # ========================================================================

    async def iter_pages(self, path: str) -> AsyncIterator[List[Dict[str, Any]]]:
        """
        Yield each page of a paginated listing in order.

        GitLab announces the following page in the ``X-Next-Page`` header and
        leaves it empty on the last page.
        """
        page = "1"
        while page:
            response = await self._client.get(
                path, params={"page": page, "per_page": self.per_page}
            )
            if not response.is_success:
                raise GitLabAPIError(
                    response.status_code, response.reason_phrase, str(response.request.url)
                )
            yield response.json()
            page = response.headers.get(NEXT_PAGE_HEADER, "").strip()

    async def list_all(self, path: str) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        async for page in self.iter_pages(path):
            items.extend(page)
        return items

    async def list_group_projects(self, group_id: Union[int, str]) -> List[Dict[str, Any]]:
        logger.info(f"Fetching projects under group: {group_id}")
        return await self.list_all(f"/groups/{encode_id(group_id)}/projects")

    async def list_subgroups(self, group_id: Union[int, str]) -> List[Dict[str, Any]]:
        logger.debug(f"Fetching subgroups of group: {group_id}")
        return await self.list_all(f"/groups/{encode_id(group_id)}/subgroups")

    # ========================================================================
    # Archives
    # ========================================================================

    async def open_archive(self, project_id: Union[int, str], ref: str) -> httpx.Response:
        """
        Start downloading ``archive.tar.gz`` of a project at ``ref``.

        The returned response is streaming; the caller owns it and must
        ``aclose()`` it. Non-success replies are closed here and raised.
        """
        request = self._client.build_request(
            "GET",
            f"/projects/{encode_id(project_id)}/repository/archive.tar.gz",
            params={"sha": ref},
        )
        response = await self._client.send(request, stream=True)
        if not response.is_success:
            await response.aclose()
            raise GitLabAPIError(response.status_code, response.reason_phrase, str(request.url))
        return response
