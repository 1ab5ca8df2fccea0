# src/ghupgrade/utils.py
import hashlib
import importlib.metadata
import os
from typing import Any, Dict, List, Optional, Sequence

from dotenv import dotenv_values

from ghupgrade.constants import GITHUB_TOKEN_KEY
from ghupgrade.log_utils import logger

# Cache for the User-Agent string to avoid repeated metadata lookups
_USER_AGENT_CACHE = None


def get_user_agent() -> str:
    """
    Get the User-Agent string used for HTTP requests.

    Returns:
        The string `ghupgrade/{version}`, where `{version}` is the installed package version or `unknown` if the version cannot be determined.
    """
    global _USER_AGENT_CACHE

    if _USER_AGENT_CACHE is None:
        try:
            app_version = importlib.metadata.version("ghupgrade")
        except importlib.metadata.PackageNotFoundError:
            app_version = "unknown"

        _USER_AGENT_CACHE = f"ghupgrade/{app_version}"

    return _USER_AGENT_CACHE


def read_env_file_token(env_files: Sequence[str]) -> Optional[str]:
    """
    Read GITHUB_TOKEN from the first dotenv-style file that defines it.

    Files are parsed without touching os.environ. Missing files are skipped.

    Parameters:
        env_files (Sequence[str]): Candidate `.env` paths, checked in order.

    Returns:
        Optional[str]: The stripped token, or None if no file defines a non-empty one.
    """
    for env_file in env_files:
        if not env_file or not os.path.isfile(env_file):
            continue
        values = dotenv_values(env_file)
        token = (values.get(GITHUB_TOKEN_KEY) or "").strip()
        if token:
            logger.debug(f"Using GitHub token from {env_file}")
            return token
    return None


class TokenResolver:
    """
    Resolve the bearer token used for GitHub requests.

    Lookup order: the explicit configured token, the GITHUB_TOKEN environment
    variable (when allowed), then the configured dotenv files. The result is
    memoized; an empty string means unauthenticated requests.
    """

    def __init__(
        self,
        github_token: Optional[str] = None,
        allow_env_token: bool = True,
        env_files: Optional[List[str]] = None,
    ):
        self.github_token = github_token
        self.allow_env_token = allow_env_token
        self.env_files = list(env_files or [])
        self._resolved: Optional[str] = None
        self._warning_shown = False

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "TokenResolver":
        return cls(
            github_token=config.get("GITHUB_TOKEN"),
            allow_env_token=config.get("ALLOW_ENV_TOKEN", True),
            env_files=config.get("ENV_FILES") or [],
        )

    def resolve(self) -> str:
        """
        Return the effective token, or an empty string when none is available.
        """
        if self._resolved is not None:
            return self._resolved

        token = (self.github_token or "").strip()
        if not token and self.allow_env_token:
            token = (os.environ.get(GITHUB_TOKEN_KEY) or "").strip()
        if not token:
            token = read_env_file_token(self.env_files) or ""

        if not token and not self._warning_shown:
            logger.debug(
                "No GITHUB_TOKEN found - using unauthenticated API requests (60/hour limit). "
                "Set GITHUB_TOKEN in the configuration, the environment or a .env file for higher limits."
            )
            self._warning_shown = True

        self._resolved = token
        return token


def identity_hash(identity: str) -> str:
    """
    Derive a stable, filesystem-safe name from an instance identity.

    Slashes are replaced with underscores before hashing.
    """
    normalized = identity.replace("/", "_")
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()
