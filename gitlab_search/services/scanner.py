"""
Scan every project of a group for the configured search texts.

Projects are processed strictly one after another:
- download the archive of the first reference that exists
- stream it through the extractor, starting one search task per file
- wait for the extractor and every search task, then report
- pause before the next project to stay under the archive rate limit
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import httpx

from gitlab_search.domain.exceptions import ArchiveFormatError
from gitlab_search.domain.models import MatchRecord, Project, ProjectResult, SearchSettings
from gitlab_search.services.archive_fetcher import ArchiveFetcher
from gitlab_search.services.extractor import StreamingTarExtractor, TarEntryStream
from gitlab_search.services.gitlab_client import GitLabClient
from gitlab_search.services.line_search import search_entry
from gitlab_search.services.project_directory import ProjectDirectory
from gitlab_search.services.reporter import ResultReporter
from gitlab_search.storage.db_manager import ProjectCacheManager

logger = logging.getLogger(__name__)


class GroupScanner:
    """Drives the whole run for one group."""

    def __init__(
        self,
        settings: SearchSettings,
        client: GitLabClient,
        cache: ProjectCacheManager,
        reporter: Optional[ResultReporter] = None,
    ):
        self.settings = settings
        self.directory = ProjectDirectory(client)
        self.fetcher = ArchiveFetcher(client, backoff_seconds=settings.backoff_seconds)
        self.cache = cache
        self.reporter = reporter or ResultReporter()

    async def load_projects(self) -> List[Project]:
        """
        Return the group's projects from the cache, enumerating the group
        (and refreshing the cache) when the cache is empty or a refresh was asked for.
        """
        projects: List[Project] = []
        if not self.settings.refresh_projects:
            projects = await self.cache.load()
        if projects:
            return projects

        projects = await self.directory.enumerate(self.settings.group_id)
        await self.cache.save(projects)
        return projects

    async def run(self) -> List[ProjectResult]:
        projects = await self.load_projects()
        results: List[ProjectResult] = []

        for index, project in enumerate(projects, start=1):
            logger.info(f"[{index}/{len(projects)}] Scanning {project.display_name}")
            results.append(await self.scan_project(project))
            # Paces archive downloads regardless of how the project went.
            await asyncio.sleep(self.settings.backoff_seconds)

        found = sum(1 for r in results if r.status == "found")
        skipped = sum(1 for r in results if r.status in ("skipped", "failed"))
        logger.info(f"Done: {len(results)} projects scanned, {found} with matches, {skipped} skipped")
        return results

    async def scan_project(self, project: Project) -> ProjectResult:
        """
        Fetch, search and report one project. Any failure is logged and turns
        into a "failed" result so the run moves on to the next project.
        """
        try:
            return await self._scan_project(project)
        except Exception as e:
            logger.error(f"Failed to scan {project.display_name}: {e}", exc_info=True)
            return ProjectResult(project=project, status="failed")

    async def _scan_project(self, project: Project) -> ProjectResult:
        async with self.fetcher.fetch(project, self.settings.refs) as opened:
            if opened is None:
                return ProjectResult(project=project, status="skipped")

            ref, response = opened
            try:
                matches = await self._search_archive(response)
            except (ArchiveFormatError, httpx.HTTPError) as e:
                logger.error(f"Failed to extract {project.display_name} at '{ref}': {e}")
                return ProjectResult(project=project, status="failed", ref=ref)

        logger.info(f"Done finding on {project.display_name}")
        self.reporter.report(project, matches)
        status = "found" if matches else "not_found"
        return ProjectResult(project=project, status=status, matches=matches, ref=ref)

    async def _search_archive(self, response: httpx.Response) -> List[MatchRecord]:
        """
        Search every file of the archive and return the matches in archive
        order, then per file in the order they were found.

        Raises only once every started search task has completed.
        """
        extractor = StreamingTarExtractor(response.aiter_bytes())
        tasks: List[asyncio.Task] = []
        extraction_error: Optional[BaseException] = None

        async with asyncio.TaskGroup() as group:
            try:
                async for entry in extractor.entries():
                    tasks.append(group.create_task(self._search_file(entry)))
            except (ArchiveFormatError, httpx.HTTPError) as e:
                # Re-raised below; raising inside the group would wrap it.
                extraction_error = e

        if extraction_error is not None:
            raise extraction_error

        matches: List[MatchRecord] = []
        for task in tasks:
            matches.extend(task.result())
        return matches

    async def _search_file(self, entry: TarEntryStream) -> List[MatchRecord]:
        try:
            return await search_entry(entry, self.settings.search_texts)
        except Exception as e:
            logger.error(f"Error occurred: {entry.name} {e}")
            return []
