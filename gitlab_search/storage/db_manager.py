from abc import ABC, abstractmethod
from typing import List

from gitlab_search.domain.models import Project


class ProjectCacheManager(ABC):
    """
    Abstract base class for project list storage.
    """

    @abstractmethod
    async def load(self) -> List[Project]:
        """
        Return the cached projects.
        An empty list means there is nothing usable and the group must be enumerated.
        """
        pass

    @abstractmethod
    async def save(self, projects: List[Project]) -> None:
        """Persist the full project list, replacing whatever was stored."""
        pass
