"""
Cryptics Configuration & Constants
==================================

Single source of truth for cookie names, retention limits and share-link
settings used across the server, the progress store and the import CLI.

Environment variables are read from os.environ. A .env file is loaded first
if one exists next to this script or in the main git worktree root.
"""

import os
import subprocess

from dotenv import load_dotenv

# Progress cookie: JSON list of PuzzleProgress entries
PROGRESS_COOKIE_NAME = 'cryptics-puzzle-progress'
MAX_STORED_PUZZLES = 50
PROGRESS_RETENTION_DAYS = 30
# Browsers drop cookies over ~4096 bytes (name, value and attributes together)
MAX_PROGRESS_COOKIE_BYTES = 3800

# Consent cookie: JSON {essential, functional, analytics, marketing, timestamp}
CONSENT_COOKIE_NAME = 'cryptics-cookie-consent'
CONSENT_EXPIRY_DAYS = 365
CONSENT_CATEGORIES = ('essential', 'functional', 'analytics', 'marketing')
FUNCTIONAL_COOKIES = (PROGRESS_COOKIE_NAME,)

# Shared links
SHARE_PARAM = 'code'
SHARE_FORMAT_VERSION = 1
DEFAULT_DIFFICULTY = 3
MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5

# Store pagination
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

_script_dir = os.path.dirname(os.path.abspath(__file__))
_env_loaded = False


def _find_dotenv():
    """Find .env file: local dir, then main git repo root."""
    local_env = os.path.join(_script_dir, '.env')
    if os.path.isfile(local_env):
        return local_env
    # Worktrees don't share the main repo's .env
    try:
        main_tree = subprocess.check_output(
            ['git', 'worktree', 'list', '--porcelain'],
            cwd=_script_dir, stderr=subprocess.DEVNULL
        ).decode()
    except (OSError, subprocess.CalledProcessError):
        return None
    for line in main_tree.splitlines():
        if line.startswith('worktree '):
            candidate = os.path.join(line.split(' ', 1)[1], '.env')
            if os.path.isfile(candidate):
                return candidate
    return None


def load_env():
    """Load the .env file once per process. Returns the path loaded, or None."""
    global _env_loaded
    if _env_loaded:
        return None
    _env_loaded = True

    env_path = _find_dotenv()
    if env_path:
        load_dotenv(env_path)
        print(f"Loaded .env from {env_path}")
    return env_path


def get_setting(name, default=None):
    """Read a setting from the environment after making sure .env is loaded."""
    load_env()
    return os.environ.get(name, default)
