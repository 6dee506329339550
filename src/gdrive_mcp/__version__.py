"""Version information for gdrive-mcp."""

from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

DISTRIBUTION_NAME = "gdrive-mcp"
FALLBACK_VERSION = "0.1.0"


def _get_version() -> str:
    """Resolve the version from a source checkout or the installed distribution."""
    # <root>/src/gdrive_mcp/__version__.py
    root_version = Path(__file__).resolve().parents[2] / "VERSION"
    if root_version.is_file():
        return root_version.read_text().strip()

    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        return FALLBACK_VERSION


__version__ = _get_version()
