from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import httpx
from pydantic import ValidationError

from gitlab_search.core.config import get_base_url, get_cache_path, get_log_dir, get_token
from gitlab_search.core.log_setup import configure_logging
from gitlab_search.domain.exceptions import GitLabSearchError
from gitlab_search.domain.models import (
    ARCHIVE_BACKOFF_SECONDS,
    DEFAULT_REF,
    ProjectResult,
    SearchSettings,
)
from gitlab_search.services.gitlab_client import GitLabClient
from gitlab_search.services.scanner import GroupScanner
from gitlab_search.storage.json_db_manager import JsonProjectCache

logger = logging.getLogger("gitlab_search.main")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitlab-search",
        usage="%(prog)s [options] --group-id GROUP [--ref REF ...] -- <search text...>",
        description="Search the source of every project in a GitLab group for literal strings.",
    )
    parser.add_argument("--group-id", required=True, help="GitLab group ID or full path.")
    parser.add_argument(
        "--ref",
        dest="refs",
        nargs="+",
        default=[DEFAULT_REF],
        metavar="REF",
        help="Git references to try in order; the next one is used when a ref is missing "
        f"(default: {DEFAULT_REF}).",
    )
    parser.add_argument(
        "--token",
        default=None,
        help="Access token (default: $GITLAB_TOKEN, otherwise prompted).",
    )
    parser.add_argument("--base-url", default=None, help="GitLab API base URL.")
    parser.add_argument("--cache-file", default=None, help="Project list cache (default: projects.json).")
    parser.add_argument("--log-dir", default=None, help="Directory for error.log and result.log (default: logs).")
    parser.add_argument(
        "--backoff",
        type=float,
        default=ARCHIVE_BACKOFF_SECONDS,
        help=f"Seconds to wait between archive downloads (default: {ARCHIVE_BACKOFF_SECONDS:g}).",
    )
    parser.add_argument(
        "--refresh-projects",
        action="store_true",
        help="Ignore the cached project list and enumerate the group again.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug output on the console.")
    parser.add_argument("search_texts", nargs="+", metavar="TEXT", help="Text to search for.")
    return parser


async def run(settings: SearchSettings) -> List[ProjectResult]:
    async with GitLabClient(
        settings.token, base_url=settings.base_url, per_page=settings.per_page
    ) as client:
        scanner = GroupScanner(settings, client, JsonProjectCache(settings.cache_path))
        return await scanner.run()


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(get_log_dir(args.log_dir), verbose=args.verbose)

    try:
        settings = SearchSettings(
            group_id=args.group_id,
            search_texts=args.search_texts,
            refs=args.refs,
            token=get_token(args.token),
            base_url=get_base_url(args.base_url),
            cache_path=get_cache_path(args.cache_file),
            backoff_seconds=args.backoff,
            refresh_projects=args.refresh_projects,
        )
    except ValidationError as e:
        parser.error(str(e))

    try:
        asyncio.run(run(settings))
    except (GitLabSearchError, httpx.HTTPError) as e:
        logger.error(f"Search aborted: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
