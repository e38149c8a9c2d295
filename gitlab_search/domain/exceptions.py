"""
Exceptions raised by the group search services.
"""
from __future__ import annotations

from typing import Optional


class GitLabSearchError(Exception):
    """Base class for all errors raised by this package."""


class GitLabAPIError(GitLabSearchError):
    """A GitLab API call returned a non-success status."""

    def __init__(self, status_code: int, reason: str, url: Optional[str] = None):
        self.status_code = status_code
        self.reason = reason
        self.url = url
        message = f"{status_code} {reason}".strip()
        if url:
            message = f"{message} ({url})"
        super().__init__(message)


class ArchiveFormatError(GitLabSearchError):
    """The downloaded archive is not a valid gzip-compressed tar stream."""
