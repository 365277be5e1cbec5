"""Runtime logging bootstrap helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.config import Config
from ..util.log import Log, LogFormat, LogLevel


@dataclass(frozen=True)
class LogSettings:
    level: LogLevel
    format: LogFormat
    console: bool
    file: bool


def resolve_log_settings(
    config: Config,
    *,
    level: Optional[str] = None,
    format: Optional[str] = None,
    console: Optional[bool] = None,
    file: Optional[bool] = None,
) -> LogSettings:
    """Combine explicit arguments with the ``logging`` config section.

    Explicit arguments win. Without either, logs go to a file only.
    """
    section = config.logging

    use_console = console
    if use_console is None:
        use_console = section.console if section.console is not None else False

    use_file = file
    if use_file is None:
        use_file = section.file if section.file is not None else True

    return LogSettings(
        level=LogLevel.parse(level or section.level),
        format=LogFormat.parse(format or section.format),
        console=use_console,
        file=use_file,
    )


def bootstrap_logging(
    config: Config,
    *,
    level: Optional[str] = None,
    format: Optional[str] = None,
    console: Optional[bool] = None,
    file: Optional[bool] = None,
) -> LogSettings:
    """Resolve settings from config and initialize the process logger."""
    settings = resolve_log_settings(config, level=level, format=format, console=console, file=file)
    Log.configure(
        level=settings.level,
        format=settings.format,
        console=settings.console,
        file=settings.file,
    )
    return settings
