"""Locating and reading the YAML config and its companion .env file.

Lookup order for the config file:

1. an explicit path passed by the caller (``--config``)
2. ``MAISON_CONFIG``
3. ``config-{MAISON_ENV}.yaml`` in the first existing directory of
   ``MAISON_CONFIG_DIR``, ``./config`` and the source checkout's ``config/``

Database credentials never live in the YAML; they come from the environment,
optionally seeded from a ``.env`` file sitting next to the chosen config file.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional, Union

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_ENVIRONMENT = "maison"

PathLike = Union[str, Path]


def get_environment() -> str:
    return os.getenv("MAISON_ENV") or DEFAULT_ENVIRONMENT


def config_dirs() -> List[Path]:
    """Candidate config directories, most specific first."""
    dirs = []
    if env_dir := os.getenv("MAISON_CONFIG_DIR"):
        dirs.append(Path(env_dir))
    dirs.append(Path.cwd() / "config")
    # source checkout: repo_root/maison/shared/config.py -> repo_root/config
    dirs.append(Path(__file__).resolve().parents[2] / "config")
    return dirs


def get_config_path(
    config_name: Optional[str] = None,
    config_dir: Optional[PathLike] = None,
) -> Path:
    """Resolve the config file path for the current environment.

    When ``config_dir`` is omitted the first candidate directory that holds
    the file wins; if none does, the path in the last candidate is returned
    so the caller's error names a sensible location.
    """
    name = config_name or f"config-{get_environment()}.yaml"
    if config_dir is not None:
        return Path(config_dir) / name

    candidates = [d / name for d in config_dirs()]
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return candidates[-1]


def load_yaml_config(config_path: Optional[PathLike] = None) -> dict:
    """Read the config file into a dict, loading its .env file first.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ValueError: If the top level of the file is not a mapping.
        yaml.YAMLError: If the file is not valid YAML.
    """
    path = Path(config_path or os.getenv("MAISON_CONFIG") or get_config_path())
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    env_file = path.parent / ".env"
    if env_file.is_file():
        # variables already set in the process environment take precedence
        load_dotenv(env_file)
        logger.debug(f"Loaded environment from {env_file}")
    else:
        load_dotenv()

    with path.open() as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return data
