"""
Do Not Disturb - Detect whether macOS Do Not Disturb / Focus mode is on.

Two strategies are tried in order:
  1. plutil extraction of dnd_prefs.userPref.enabled from Assertions.json
  2. Any active entry in ModeConfigurations.json
Anything else (non-macOS, missing files, parse errors) reports "not active"
so alerts are never suppressed by a broken check.
"""

import json
import logging
import platform
import subprocess
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger("dnd")

IS_MACOS = platform.system() == "Darwin"

DND_DB_DIR = Path.home() / "Library" / "DoNotDisturb" / "DB"
ASSERTIONS_FILE = DND_DB_DIR / "Assertions.json"
MODE_CONFIG_FILE = DND_DB_DIR / "ModeConfigurations.json"


def _run(cmd: List[str], timeout: int = 5) -> Optional[str]:
    """Run a command and return stripped stdout, or None on failure."""
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return result.stdout.strip() if result.stdout else None
    except (FileNotFoundError, subprocess.TimeoutExpired, OSError):
        return None


def _check_assertions(path: Path = ASSERTIONS_FILE) -> Optional[bool]:
    """Ask plutil for the user DND preference. None if it could not be read."""
    output = _run([
        "/usr/bin/plutil",
        "-extract", "dnd_prefs.userPref.enabled", "raw",
        "-o", "-",
        str(path),
    ])
    if output is None:
        return None
    return output == "1" or output.lower() == "true"


def _check_mode_configurations(path: Path = MODE_CONFIG_FILE) -> bool:
    """Return True if any Focus mode in the config file is marked active."""
    try:
        data = json.loads(path.read_text())
    except (OSError, ValueError):
        return False

    modes = data.get("data") if isinstance(data, dict) else None
    if not isinstance(modes, list):
        return False
    for mode in modes:
        if isinstance(mode, dict) and mode.get("isActive") is True:
            return True
    return False


def is_do_not_disturb_active() -> bool:
    """Check if system Do Not Disturb / Focus mode is currently active."""
    if not IS_MACOS:
        return False

    enabled = _check_assertions()
    if enabled:
        return True
    if enabled is None:
        logger.debug("plutil DND check unavailable, falling back to ModeConfigurations")

    return _check_mode_configurations()
