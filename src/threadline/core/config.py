"""Configuration management.

Precedence, lowest first:
1. Global config (``threadline.json[c]`` in the per-user config directory)
2. Project config (``threadline.json[c]`` from the filesystem root down to the directory)
3. Environment variable overrides (``THREADLINE_LOG_LEVEL``, ``THREADLINE_LOG_FORMAT``)
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .config_loader import deep_merge, load_json_file
from .config_schema import ActionConfig, AgentConfig, AuthConfig, Config, LoggingConfig
from .global_paths import GlobalPath
from ..util.log import Log

log = Log.create({"service": "config"})

CONFIG_FILENAMES = ("threadline.json", "threadline.jsonc")

__all__ = [
    "ActionConfig",
    "AgentConfig",
    "AuthConfig",
    "Config",
    "ConfigError",
    "ConfigManager",
    "LoggingConfig",
]


class ConfigError(Exception):
    """Configuration error."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"Config error in {path}: {message}")


def _read(filepath: str) -> Dict[str, Any]:
    try:
        return load_json_file(filepath)
    except ValueError as e:
        raise ConfigError(filepath, str(e)) from e


def _env_overrides() -> Dict[str, Any]:
    logging: Dict[str, Any] = {}
    level = os.environ.get("THREADLINE_LOG_LEVEL")
    if level:
        logging["level"] = level
    fmt = os.environ.get("THREADLINE_LOG_FORMAT")
    if fmt:
        logging["format"] = fmt
    return {"logging": logging} if logging else {}


class ConfigManager:
    """Loads and caches the merged configuration for one working directory."""

    def __init__(self) -> None:
        self._cache: Optional[Config] = None
        self._sources: List[str] = []

    def reset(self) -> None:
        self._cache = None
        self._sources = []

    def sources(self) -> List[str]:
        """Files that contributed to the cached configuration."""
        return self._sources.copy()

    def load(self, directory: str = ".") -> Config:
        if self._cache is not None:
            return self._cache

        result: Dict[str, Any] = {}
        sources: List[str] = []

        global_dir = GlobalPath.config()
        for filename in CONFIG_FILENAMES:
            filepath = os.path.join(global_dir, filename)
            data = _read(filepath)
            if data:
                result = deep_merge(result, data)
                sources.append(filepath)
                log.info("loaded global config", {"path": filepath})

        current = Path(directory).resolve()
        project_configs: List[str] = []
        while True:
            for filename in CONFIG_FILENAMES:
                filepath = current / filename
                if filepath.exists():
                    project_configs.append(str(filepath))
            if current == current.parent:
                break
            current = current.parent

        # Root first, then more specific
        for filepath in reversed(project_configs):
            data = _read(filepath)
            if data:
                result = deep_merge(result, data)
                sources.append(filepath)
                log.info("loaded project config", {"path": filepath})

        result = deep_merge(result, _env_overrides())

        try:
            config = Config.model_validate(result)
        except ValidationError as e:
            raise ConfigError(sources[-1] if sources else "<defaults>", str(e)) from e

        self._sources = sources
        self._cache = config
        return config
