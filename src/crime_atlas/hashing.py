"""
Hashing utilities for run provenance.

Each run logs:
- the input file hash
- the config digest
- code version (git commit if available)
- runtime library versions
"""

import hashlib
import json
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from crime_atlas.logging_utils import get_versions


# =============================================================================
# Hashing
# =============================================================================

def hash_file(path: Union[str, Path], algorithm: str = "sha256") -> str:
    """
    Compute hash of a file.

    Args:
        path: Path to file
        algorithm: Hash algorithm (default: sha256)

    Returns:
        Hex digest of file hash
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Cannot hash non-existent file: {path}")

    h = hashlib.new(algorithm)

    with open(path, "rb") as f:
        # Read in chunks for large files
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)

    return h.hexdigest()


def hash_string(s: str, algorithm: str = "sha256") -> str:
    """Compute hash of a string."""
    h = hashlib.new(algorithm)
    h.update(s.encode("utf-8"))
    return h.hexdigest()


def hash_dict(d: Dict[str, Any], algorithm: str = "sha256") -> str:
    """
    Compute hash of a dictionary (via JSON serialization).

    Keys are sorted, so insertion order does not change the digest.
    """
    s = json.dumps(d, sort_keys=True, default=str)
    return hash_string(s, algorithm)


# =============================================================================
# Git Version Info
# =============================================================================

def get_git_commit() -> Optional[str]:
    """
    Get current git commit hash.

    Returns:
        Commit hash or None if not in a git repo
    """
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass
    return None


def get_git_dirty() -> Optional[bool]:
    """
    Check if git working directory has uncommitted changes.

    Returns:
        True if dirty, False if clean, None if not in git repo
    """
    try:
        result = subprocess.run(
            ["git", "status", "--porcelain"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            return len(result.stdout.strip()) > 0
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass
    return None


def get_git_info() -> Dict[str, Any]:
    """Get git repository information (commit, dirty status)."""
    return {
        "commit": get_git_commit(),
        "dirty": get_git_dirty(),
    }


# =============================================================================
# Run Provenance
# =============================================================================

def run_provenance(
    input_path: Union[str, Path],
    config: Dict[str, Any],
    run_id: str,
) -> Dict[str, Any]:
    """
    Provenance record for one run.

    Args:
        input_path: The incident file read by the run
        config: Redacted configuration dictionary
        run_id: Unique run identifier

    Returns:
        Dictionary with input hash, config digest, git info and versions
    """
    input_path = Path(input_path)

    return {
        "run_id": run_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "input": {
            "path": str(input_path),
            "hash": hash_file(input_path) if input_path.exists() else None,
        },
        "config_digest": hash_dict(config),
        "git": get_git_info(),
        "versions": get_versions(),
    }
