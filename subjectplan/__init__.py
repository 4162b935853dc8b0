"""
Subject planning engine.

Derives the open requisite decisions a student still has to make for their
selected qualification and lays the chosen subjects out semester by semester.
"""

from importlib import metadata


def get_version() -> str:
    """Return the installed project version."""
    try:
        return metadata.version("subjectplan")
    except metadata.PackageNotFoundError:
        return "0.0.0"


__all__ = ["get_version"]
