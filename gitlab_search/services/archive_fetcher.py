"""
Download a project's repository archive, trying several references in turn.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Sequence, Tuple

import httpx

from gitlab_search.domain.exceptions import GitLabAPIError
from gitlab_search.domain.models import ARCHIVE_BACKOFF_SECONDS, Project
from gitlab_search.services.gitlab_client import GitLabClient

logger = logging.getLogger(__name__)


class ArchiveFetcher:
    """
    Opens the archive of the first reference that exists.

    Archive downloads are rate limited upstream, so a fixed delay separates
    every failed attempt from the next one.
    """

    def __init__(self, client: GitLabClient, backoff_seconds: float = ARCHIVE_BACKOFF_SECONDS):
        self.client = client
        self.backoff_seconds = backoff_seconds

    @asynccontextmanager
    async def fetch(
        self, project: Project, refs: Sequence[str]
    ) -> AsyncIterator[Optional[Tuple[str, httpx.Response]]]:
        """
        Yield ``(ref, response)`` for the first reference that can be
        downloaded, or ``None`` when every reference failed.

        The streaming response is closed when the block exits.
        """
        opened = await self._open_first_available(project, refs)
        if opened is None:
            yield None
            return

        ref, response = opened
        try:
            yield ref, response
        finally:
            await response.aclose()

    async def _open_first_available(
        self, project: Project, refs: Sequence[str]
    ) -> Optional[Tuple[str, httpx.Response]]:
        for attempt, ref in enumerate(refs):
            if attempt > 0:
                await asyncio.sleep(self.backoff_seconds)

            logger.info(f"Fetching repository '{project.id}' at reference '{ref}'...")
            try:
                response = await self.client.open_archive(project.id, ref)
            except (GitLabAPIError, httpx.HTTPError) as e:
                logger.warning(f"Skipping {project.display_name} at '{ref}' because of {e}")
                continue
            return ref, response

        logger.warning(f"No archive found for {project.display_name} at any of: {', '.join(refs)}")
        return None
