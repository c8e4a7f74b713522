"""Version detection with support for development builds."""

from __future__ import annotations

import os
import subprocess
from importlib import metadata

_FALLBACK_VERSION = "unknown"
_DISTRIBUTION = "upgradarr"


def _get_git_sha() -> str | None:
    """Return the short SHA of the checkout, or None outside a Git repo."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
            check=False,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    sha = result.stdout.strip()
    return sha if result.returncode == 0 and sha else None


def get_version() -> str:
    """Get the current version string.

    Priority:
    1. BUILD_VERSION environment variable (set during CI/CD)
    2. GIT_SHA environment variable (Docker build arg)
    3. Installed distribution metadata
    4. Git SHA from a local checkout
    5. Fallback to "unknown"
    """
    build_version = os.environ.get("BUILD_VERSION")
    if build_version:
        return build_version.strip()

    env_sha = os.environ.get("GIT_SHA")
    if env_sha:
        return f"dev ({env_sha})"

    try:
        return metadata.version(_DISTRIBUTION)
    except metadata.PackageNotFoundError:
        pass

    sha = _get_git_sha()
    if sha:
        return f"dev ({sha})"
    return _FALLBACK_VERSION


__version__ = get_version()
