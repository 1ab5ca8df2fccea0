"""
Configuration loading for ghupgrade.

Configuration lives in a YAML file under the platform config directory. Every
key has a default so a missing file is a valid (if empty) configuration.
"""

import os
from typing import Any, Dict, Optional

import platformdirs
import yaml

from ghupgrade.constants import (
    CONFIG_FILE_NAME,
    DEBUG_MODE_ENV_VAR,
    DEFAULT_DOWNLOAD_TIMEOUT,
    DEFAULT_INSTANCE_NAME,
    DOWNLOADS_DIR_NAME,
    ENV_FILE_NAME,
    INSTALL_DIR_NAME,
)
from ghupgrade.exceptions import ConfigFileError, ConfigValidationError
from ghupgrade.log_utils import logger

CONFIG_DIR = platformdirs.user_config_dir("ghupgrade")
CONFIG_FILE = os.path.join(CONFIG_DIR, CONFIG_FILE_NAME)


def get_default_config() -> Dict[str, Any]:
    """
    Build the default configuration mapping.

    Paths are resolved through platformdirs at call time so tests that patch the
    user directories get isolated defaults.

    Returns:
        Dict[str, Any]: A fresh mapping with every recognized key set to its default.
    """
    cache_dir = platformdirs.user_cache_dir("ghupgrade")
    data_dir = platformdirs.user_data_dir("ghupgrade")
    config_dir = platformdirs.user_config_dir("ghupgrade")
    return {
        "GITHUB_TOKEN": "",
        "ALLOW_ENV_TOKEN": True,
        "ENV_FILES": [
            os.path.join(os.getcwd(), ENV_FILE_NAME),
            os.path.join(config_dir, ENV_FILE_NAME),
        ],
        "CACHE_DIR": cache_dir,
        "DOWNLOAD_DIR": os.path.join(cache_dir, DOWNLOADS_DIR_NAME),
        "INSTALL_DIR": os.path.join(data_dir, INSTALL_DIR_NAME),
        "INSTANCE_NAME": DEFAULT_INSTANCE_NAME,
        "DEBUG_MODE": os.environ.get(DEBUG_MODE_ENV_VAR, "") in ("1", "true", "yes"),
        "CA_BUNDLE": None,
        "USE_RESPONSE_CACHE": True,
        "DOWNLOAD_TIMEOUT": DEFAULT_DOWNLOAD_TIMEOUT,
        "LOG_LEVEL": "",
        "LOG_DIR": None,
        "REPOSITORIES": {},
    }


def validate_config(config: Dict[str, Any]) -> None:
    """
    Check the parts of the configuration the pipeline relies on.

    Raises:
        ConfigValidationError: If REPOSITORIES is not a mapping of module name
            to "owner/repo" strings, DOWNLOAD_TIMEOUT is not a positive number,
            GITHUB_TOKEN is not a string, or ENV_FILES is not a list of paths.
    """
    repositories = config.get("REPOSITORIES")
    if not isinstance(repositories, dict):
        raise ConfigValidationError(
            "REPOSITORIES must be a mapping of module name to repository",
            field="REPOSITORIES",
            value=repr(repositories),
        )
    for module_name, repository in repositories.items():
        if not isinstance(module_name, str) or not isinstance(repository, str):
            raise ConfigValidationError(
                "Repository entries must be strings",
                field="REPOSITORIES",
                value=f"{module_name!r}: {repository!r}",
            )
        if repository.count("/") != 1:
            raise ConfigValidationError(
                f"Repository for {module_name} must look like 'owner/repo'",
                field="REPOSITORIES",
                value=repository,
            )

    timeout = config.get("DOWNLOAD_TIMEOUT")
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigValidationError(
            "DOWNLOAD_TIMEOUT must be a positive number",
            field="DOWNLOAD_TIMEOUT",
            value=repr(timeout),
        )

    token = config.get("GITHUB_TOKEN")
    if token is not None and not isinstance(token, str):
        raise ConfigValidationError(
            "GITHUB_TOKEN must be a string",
            field="GITHUB_TOKEN",
            value=type(token).__name__,
        )

    env_files = config.get("ENV_FILES")
    if not isinstance(env_files, list) or not all(isinstance(p, str) for p in env_files):
        raise ConfigValidationError(
            "ENV_FILES must be a list of file paths",
            field="ENV_FILES",
            value=repr(env_files),
        )


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the ghupgrade YAML configuration merged over the defaults.

    Parameters:
        config_path (str | None): Explicit configuration file. When omitted, CONFIG_FILE is used.

    Returns:
        Dict[str, Any]: The merged configuration. A missing file yields the defaults.

    Raises:
        ConfigFileError: If the file cannot be read, is not valid YAML, or is not a mapping.
        ConfigValidationError: If the merged configuration fails validation.
    """
    path = config_path or CONFIG_FILE
    config = get_default_config()

    if not os.path.exists(path):
        logger.debug(f"No configuration file at {path}; using defaults")
        validate_config(config)
        return config

    try:
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigFileError(f"Could not load configuration from {path}", details=str(e)) from e

    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ConfigFileError(
            f"Configuration in {path} must be a mapping",
            details=f"got {type(loaded).__name__}",
        )

    config.update(loaded)
    # Derived default follows an overridden CACHE_DIR
    if "CACHE_DIR" in loaded and "DOWNLOAD_DIR" not in loaded:
        config["DOWNLOAD_DIR"] = os.path.join(config["CACHE_DIR"], DOWNLOADS_DIR_NAME)
    if config.get("REPOSITORIES") is None:
        config["REPOSITORIES"] = {}
    if config.get("ENV_FILES") is None:
        config["ENV_FILES"] = []

    validate_config(config)
    logger.debug(f"Loaded configuration from {path}")
    return config
