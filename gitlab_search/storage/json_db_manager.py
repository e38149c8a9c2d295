"""
JSON file cache for the project list of a group.

Enumerating a large group takes many paginated API calls, so the flat list of
projects is written once to a JSON array and reused on later runs.
"""

import json
import logging
from pathlib import Path
from typing import List

import aiofiles
from pydantic import ValidationError

from gitlab_search.domain.models import Project
from gitlab_search.storage.db_manager import ProjectCacheManager

logger = logging.getLogger(__name__)


class JsonProjectCache(ProjectCacheManager):
    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> List[Project]:
        if not self._path.exists():
            logger.info(f"No project list at {self._path}, begin fetching...")
            return []

        try:
            async with aiofiles.open(self._path, "r", encoding="utf-8") as f:
                raw = await f.read()
            data = json.loads(raw)
        except (OSError, ValueError) as e:
            logger.warning(f"Cannot read projects from {self._path}, begin fetching... {e}")
            return []

        if not isinstance(data, list):
            logger.warning(f"Project list in {self._path} is not a JSON array, ignoring it")
            return []

        try:
            projects = [Project.model_validate(item) for item in data]
        except ValidationError as e:
            logger.warning(f"Project list in {self._path} is malformed, ignoring it: {e}")
            return []

        if projects:
            logger.debug(f"Using project list from {self._path} ({len(projects)} projects)")
        return projects

    async def save(self, projects: List[Project]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps([p.model_dump(mode="json") for p in projects])
        async with aiofiles.open(self._path, "w", encoding="utf-8") as f:
            await f.write(payload)
        logger.debug(f"Saved {len(projects)} projects to {self._path}")
