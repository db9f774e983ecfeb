"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Margay, a product of Garudex Labs

Version information for Margay Core.

Installed distributions report the version recorded in their package
metadata. Source checkouts that were never installed fall back to the
VERSION file at the repository root.
"""

from importlib import metadata
from pathlib import Path

DISTRIBUTION_NAME = "margay-core"
VERSION_FILE = Path(__file__).resolve().parent.parent / "VERSION"


def get_version() -> str:
    """
    Resolve the Margay Core version.

    Returns:
        str: The version string (e.g., "0.1.0"), or "unknown" when neither
        package metadata nor the VERSION file is available
    """
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        pass

    if VERSION_FILE.exists():
        return VERSION_FILE.read_text().strip()
    return "unknown"


__version__ = get_version()
