import logging
from typing import Optional, Sequence

from gitlab_search.core.log_setup import get_results_logger
from gitlab_search.domain.models import MatchRecord, Project


class ResultReporter:
    """Writes one project's outcome to the results log."""

    def __init__(self, results_logger: Optional[logging.Logger] = None):
        self._logger = results_logger or get_results_logger()

    def report(self, project: Project, matches: Sequence[MatchRecord]) -> None:
        if not matches:
            self._logger.info(f"Text not found on {project.display_name}")
            return

        self._logger.info(f"Text found on {project.display_name} with the following files:")
        for match in matches:
            self._logger.info(f"{match.file_name} - {match.matched_text}")
