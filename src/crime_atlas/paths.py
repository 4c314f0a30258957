"""
Canonical path resolution for the Crime Atlas project.

This module is the single source of truth for project paths.
Scripts import paths from here rather than building '../' paths.

- Detect root via `.project-root` (primary) and fallback markers
- Expose canonical Paths: CONFIG_DIR, RAW_DIR, LOGS_DIR, etc.
"""

from pathlib import Path
from typing import Optional, Union

# Markers to detect project root (in priority order)
ROOT_MARKERS = [".project-root", "pyproject.toml", ".git"]


def find_project_root(start_path: Optional[Path] = None) -> Path:
    """
    Find the project root by searching upward for marker files.

    Args:
        start_path: Starting directory for search. Defaults to this file's location.

    Returns:
        Path to project root directory.

    Raises:
        FileNotFoundError: If no root marker is found.
    """
    if start_path is None:
        start_path = Path(__file__).resolve().parent

    current = start_path

    while current != current.parent:
        for marker in ROOT_MARKERS:
            if (current / marker).exists():
                return current
        current = current.parent

    # Check root directory itself
    for marker in ROOT_MARKERS:
        if (current / marker).exists():
            return current

    raise FileNotFoundError(
        f"Could not find project root. Searched for markers {ROOT_MARKERS} "
        f"starting from {start_path}"
    )


def resolve_project_path(path: Union[str, Path]) -> Path:
    """
    Resolve a config-supplied path against PROJECT_ROOT.

    Absolute paths are returned unchanged.
    """
    path = Path(path).expanduser()
    if path.is_absolute():
        return path
    return PROJECT_ROOT / path


# =============================================================================
# Canonical paths (resolved at import time)
# =============================================================================

def _resolve_root() -> Path:
    # A non-editable install puts this file in site-packages; fall back to cwd.
    try:
        return find_project_root()
    except FileNotFoundError:
        return find_project_root(Path.cwd())


PROJECT_ROOT = _resolve_root()

# Config
CONFIG_DIR = PROJECT_ROOT / "configs"
PARAMS_FILE = CONFIG_DIR / "params.yml"

# Data directories
DATA_DIR = PROJECT_ROOT / "data"
RAW_DIR = DATA_DIR / "raw"

# Logs
LOGS_DIR = PROJECT_ROOT / "logs"

# Source and scripts
SRC_DIR = PROJECT_ROOT / "src"
SCRIPTS_DIR = PROJECT_ROOT / "scripts"

# Tests
TESTS_DIR = PROJECT_ROOT / "tests"


if __name__ == "__main__":
    # Quick verification when run directly
    print(f"PROJECT_ROOT: {PROJECT_ROOT}")
    print(f"RAW_DIR:      {RAW_DIR}")
    print(f"CONFIG_DIR:   {CONFIG_DIR}")
    print(f"LOGS_DIR:     {LOGS_DIR}")
