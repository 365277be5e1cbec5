"""Per-user directory paths for threadline.

Log files and the global configuration live in the platform's user data and
config directories.
"""

import os
from pathlib import Path

from platformdirs import user_config_dir, user_data_dir

APP_NAME = "threadline"


class GlobalPath:
    """Global path management for threadline directories."""

    @classmethod
    def data(cls) -> str:
        """Application data directory."""
        override = os.environ.get("THREADLINE_DATA_DIR")
        if override:
            return override
        return user_data_dir(APP_NAME)

    @classmethod
    def log(cls) -> str:
        """Log file directory."""
        return str(Path(cls.data()) / "log")

    @classmethod
    def config(cls) -> str:
        """Configuration directory."""
        override = os.environ.get("THREADLINE_CONFIG_DIR")
        if override:
            return override
        return user_config_dir(APP_NAME)
