"""Version information for gmail-calendar-mcp."""

from pathlib import Path


def _get_version() -> str:
    """Read the version from a VERSION file next to the package, if shipped."""
    version_file = Path(__file__).parent / "VERSION"
    if version_file.exists():
        return version_file.read_text().strip()
    return "0.1.0"


__version__ = _get_version()
