"""
DSMR Reader Utilities

Helper functions for version detection.
"""

from importlib import metadata
import logging
import os
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DISTRIBUTION_NAME = "dsmr-reader"


def _version_from_yaml(path: Path) -> str | None:
    try:
        with path.open() as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.debug(f"Cannot read version from {path}: {e}")
        return None
    if isinstance(data, dict) and "version" in data:
        return f"{data['version']} (local)"
    return None


def get_version() -> str:
    """
    Get the DSMR Reader version.

    Priority:
    1. DSMR_READER_VERSION environment variable (set by the container image)
    2. Installed distribution metadata
    3. config.yaml in common locations (for local development)
    4. 'dev' as fallback

    Returns:
        str: The version string.
    """
    version = os.getenv("DSMR_READER_VERSION")
    if version:
        return version

    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        pass

    script_dir = Path(__file__).resolve().parent
    search_paths = [
        script_dir / "../../../config.yaml",
        script_dir / "config.yaml",
        Path("./config.yaml"),
    ]
    for path in search_paths:
        if path.exists() and (version := _version_from_yaml(path)):
            return version

    return "dev"
