"""Version string for ``confdoc-sync --version``.

The installed distribution's version comes first. When the package runs from
a git checkout (editable installs), the commit it was built from is appended
so a regenerated document can be traced to the synchronizer that wrote it.
"""

import os
import subprocess
from importlib import metadata

PACKAGE_VERSION = "0.3.0"
DISTRIBUTION = "confdoc-sync"

_SOURCE_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def installed_version() -> str:
    try:
        return metadata.version(DISTRIBUTION)
    except metadata.PackageNotFoundError:
        return PACKAGE_VERSION


def checkout_revision() -> str | None:
    """Short commit of the source checkout with a '+dirty' marker; None outside git."""
    try:
        result = subprocess.run(
            ["git", "-C", _SOURCE_ROOT, "describe", "--always", "--dirty=+dirty"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def get_version() -> str:
    version = installed_version()
    revision = checkout_revision()
    return f"{version} ({revision})" if revision else version
