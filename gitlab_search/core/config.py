from pathlib import Path
from typing import Optional
import getpass
import os

from gitlab_search.domain.models import (
    DEFAULT_BASE_URL,
    DEFAULT_CACHE_FILE,
    DEFAULT_LOG_DIR,
)

TOKEN_ENV_VAR = "GITLAB_TOKEN"
BASE_URL_ENV_VAR = "GITLAB_SEARCH_BASE_URL"
CACHE_FILE_ENV_VAR = "GITLAB_SEARCH_CACHE_FILE"
LOG_DIR_ENV_VAR = "GITLAB_SEARCH_LOG_DIR"


def _from_env(name: str) -> Optional[str]:
    value = os.environ.get(name, "").strip()
    return value or None


def get_base_url(cli_value: Optional[str] = None) -> str:
    return cli_value or _from_env(BASE_URL_ENV_VAR) or DEFAULT_BASE_URL


def get_cache_path(cli_value: Optional[str] = None) -> Path:
    """
    Determine where the project list cache lives.

    Priority:
    1. --cache-file on the command line
    2. Environment variable GITLAB_SEARCH_CACHE_FILE
    3. 'projects.json' in the working directory
    """
    raw = cli_value or _from_env(CACHE_FILE_ENV_VAR) or DEFAULT_CACHE_FILE
    return Path(raw).expanduser()


def get_log_dir(cli_value: Optional[str] = None) -> Path:
    raw = cli_value or _from_env(LOG_DIR_ENV_VAR) or DEFAULT_LOG_DIR
    d = Path(raw).expanduser()
    d.mkdir(parents=True, exist_ok=True)
    return d


def get_token(cli_value: Optional[str] = None) -> str:
    """
    Resolve the access token, prompting on the terminal as a last resort.
    """
    token = cli_value or _from_env(TOKEN_ENV_VAR)
    if token:
        return token
    return getpass.getpass("Access token: ").strip()
