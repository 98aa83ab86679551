"""
Path utilities for rtm - locates bundled data files and the user data directory.
"""

import os
from pathlib import Path


def get_package_dir() -> Path:
    """Directory of the installed rtm package."""
    return Path(__file__).parent


def get_locales_dir() -> Path:
    """Get the directory holding the strings_<lang>.yaml tables."""
    return get_package_dir() / "locales"


def get_data_dir() -> Path:
    """
    Get the user data directory for storing the database.

    Returns:
        - $RTM_DATA_DIR when set
        - .rtm/ in the current working directory otherwise
    """
    env_dir = os.environ.get("RTM_DATA_DIR")
    data_dir = Path(env_dir) if env_dir else Path.cwd() / ".rtm"
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir
