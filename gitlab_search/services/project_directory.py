"""
Resolve a group into the flat list of every project below it.
"""
from __future__ import annotations

import logging
from typing import List, Set, Union

from gitlab_search.domain.models import Project, Subgroup
from gitlab_search.services.gitlab_client import GitLabClient

logger = logging.getLogger(__name__)


class ProjectDirectory:
    """Walks a group and all of its subgroups, collecting projects."""

    def __init__(self, client: GitLabClient):
        self.client = client

    async def enumerate(self, group_id: Union[int, str]) -> List[Project]:
        """
        Return the projects of ``group_id`` followed by those of each
        subgroup, depth first, in listing order.

        Any failing listing call raises and aborts the whole enumeration;
        there is no partial result.
        """
        projects: List[Project] = []
        seen_ids: Set[str] = set()

        # Explicit stack instead of recursion; subgroups are pushed reversed
        # so they are popped in listing order.
        stack: List[Union[int, str]] = [group_id]
        while stack:
            current = stack.pop()

            for item in await self.client.list_group_projects(current):
                project = Project.model_validate(item)
                key = str(project.id)
                if key in seen_ids:
                    logger.warning(
                        f"Project {project.display_name} ({project.id}) listed more than once"
                    )
                seen_ids.add(key)
                projects.append(project)

            subgroups = [Subgroup.model_validate(item) for item in await self.client.list_subgroups(current)]
            stack.extend(subgroup.id for subgroup in reversed(subgroups))

        logger.info(f"Found {len(projects)} projects under group {group_id}")
        return projects
