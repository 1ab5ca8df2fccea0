"""
Constants and configuration values for ghupgrade.

This module contains all hardcoded values, URLs, timeouts, and other constants
used throughout the application.
"""

# GitHub API URLs
GITHUB_API_BASE = "https://api.github.com/repos"
GITHUB_RELEASE_ENDPOINT = f"{GITHUB_API_BASE}/{{repository}}/releases/latest"
GITHUB_API_VERSION = "2022-11-28"
GITHUB_JSON_MEDIA_TYPE = "application/vnd.github+json"
OCTET_STREAM_MEDIA_TYPE = "application/octet-stream"

# Circuit breaker policy
ALLOWED_FAILURES = 2
TIMEOUT_IN_SECONDS = 3
THRESHOLD_SECONDS = 86400  # 24 hours

# Response cache
CACHE_LIFETIME_SECONDS = 86400  # 24 hours
RESPONSE_CACHE_FILE = "responses.json"

# Network timeouts (in seconds)
CONNECT_TIMEOUT_SECONDS = 5
DEFAULT_DOWNLOAD_TIMEOUT = 30
MAX_REDIRECTS = 5

# Release assets
ZIP_CONTENT_TYPE = "application/zip"
ZIP_EXTENSION = ".zip"
NOT_FOUND_SENTINEL = b"Not Found"
FULL_CHANGELOG_MARKER = "**Full Changelog**"

# File and directory names
SNAPSHOT_DIR_NAME = "github-upgrade-manager"
DOWNLOADS_DIR_NAME = "downloads"
INSTALL_DIR_NAME = "modules"
DEFAULT_INSTANCE_NAME = "default"

# Configuration file names
CONFIG_FILE_NAME = "ghupgrade.yaml"
ENV_FILE_NAME = ".env"
GITHUB_TOKEN_KEY = "GITHUB_TOKEN"

# Logging configuration
LOGGER_NAME = "ghupgrade"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
INFO_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s: %(message)s"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUP_COUNT = 5
LOG_FILE_NAME = "ghupgrade.log"

# Environment variable names
LOG_LEVEL_ENV_VAR = "GHUPGRADE_LOG_LEVEL"
DEBUG_MODE_ENV_VAR = "GHUPGRADE_DEBUG_MODE"

# Download result error types
ERROR_TYPE_DOWNLOAD = "download"
ERROR_TYPE_EXTRACTION = "extraction"
ERROR_TYPE_FILESYSTEM = "filesystem"
