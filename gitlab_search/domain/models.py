"""
Pydantic models for the group search tool.

This module defines all data models used throughout the application, including:
- Projects and subgroups as returned by the GitLab API
- Archive entry headers produced by the streaming extractor
- Match records and per-project results
- Run settings assembled from the command line and environment

All models use Pydantic for validation, serialization, and type safety.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_BASE_URL = "https://gitlab.com/api/v4"
DEFAULT_REF = "main"
DEFAULT_CACHE_FILE = "projects.json"
DEFAULT_LOG_DIR = "logs"

# Upstream allows a handful of archive downloads per minute.
ARCHIVE_BACKOFF_SECONDS = 15.0

# GitLab caps per_page at 100.
DEFAULT_PER_PAGE = 100


# ---------------------------------------------------------------------------
# GitLab Objects
# ---------------------------------------------------------------------------


class Project(BaseModel):
    """
    A repository-bearing project inside a group.

    Only ``id`` and ``name_with_namespace`` are used by the tool. Every other
    field returned by the API is kept as-is so the cached project list is a
    faithful copy of what GitLab returned.
    """

    model_config = ConfigDict(extra="allow")

    id: Union[int, str]
    name_with_namespace: str = Field(
        default="",
        description="Human-readable path including all parent groups.",
    )

    @property
    def display_name(self) -> str:
        return self.name_with_namespace or str(self.id)


class Subgroup(BaseModel):
    """A child group; only needed to drive the recursive enumeration."""

    model_config = ConfigDict(extra="ignore")

    id: Union[int, str]


# ---------------------------------------------------------------------------
# Archive and Search Models
# ---------------------------------------------------------------------------


EntryType = Literal["file", "directory", "symlink", "other"]


class ArchiveEntry(BaseModel):
    """Header of a single tar entry."""

    name: str
    type: EntryType
    size: int = 0


class MatchRecord(BaseModel):
    """Evidence that a search text occurred on some line of some file."""

    file_name: str
    matched_text: str


ProjectStatus = Literal["found", "not_found", "skipped", "failed"]


class ProjectResult(BaseModel):
    """
    Outcome of scanning a single project.

    ``skipped`` means no reference yielded an archive, ``failed`` means the
    archive could not be extracted. Only ``found`` and ``not_found`` results
    are written to the results log.
    """

    project: Project
    status: ProjectStatus
    matches: List[MatchRecord] = Field(default_factory=list)
    ref: Optional[str] = None


# ---------------------------------------------------------------------------
# Run Settings
# ---------------------------------------------------------------------------


class SearchSettings(BaseModel):
    """
    Everything a scan needs, resolved once at startup.

    The token is carried here and handed to the API client explicitly; nothing
    reads it from global state.
    """

    group_id: str
    search_texts: List[str] = Field(
        min_length=1,
        description="Literal, case-sensitive strings to look for.",
    )
    refs: List[str] = Field(
        default_factory=lambda: [DEFAULT_REF],
        min_length=1,
        description="References to try in order; the first one that yields an archive wins.",
    )
    token: str = Field(min_length=1, repr=False)
    base_url: str = DEFAULT_BASE_URL
    cache_path: Path = Path(DEFAULT_CACHE_FILE)
    backoff_seconds: float = Field(default=ARCHIVE_BACKOFF_SECONDS, ge=0)
    per_page: int = Field(default=DEFAULT_PER_PAGE, ge=1, le=100)
    refresh_projects: bool = False

    @field_validator("search_texts")
    @classmethod
    def _dedupe_search_texts(cls, value: List[str]) -> List[str]:
        # Keep first-seen order so each text is searched and reported once per file.
        return list(dict.fromkeys(value))

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")
