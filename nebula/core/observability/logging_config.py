"""
Logging configuration for the nebula CLI.

main.py builds a ``LogSettings`` once per process and hands it to
``setup_logging``; every module then logs through
``logging.getLogger(__name__)``.

Console level precedence:
    --verbose / --quiet flag  >  NEBULA_LOG_LEVEL  >  WARNING

NEBULA_LOG_FILE adds a file handler at NEBULA_LOG_FILE_LEVEL (or the
console level), always in the full diagnostic format.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass

ENV_LEVEL = "NEBULA_LOG_LEVEL"
ENV_FILE = "NEBULA_LOG_FILE"
ENV_FILE_LEVEL = "NEBULA_LOG_FILE_LEVEL"

# ── Formats ─────────────────────────────────────────────────────

_FMT_DIAGNOSTIC = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s"

# (max level, format, datefmt), first match wins
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, _FMT_DIAGNOSTIC, "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
)
_FMT_PLAIN = "%(message)s"

# gRPC chatter from the Automation API's language host
_NOISY_LOGGERS = ("urllib3", "grpc", "pulumi")


@dataclass
class LogSettings:
    """Resolved logging choices for one process."""

    level: str = "WARNING"
    file: str | None = None
    file_level: str | None = None

    @classmethod
    def resolve(
        cls,
        verbose: bool = False,
        quiet: bool = False,
        debug: bool = False,
        environ: Mapping[str, str] | None = None,
    ) -> LogSettings:
        """Combine CLI flags with the NEBULA_LOG_* environment."""
        env = os.environ if environ is None else environ
        if debug:
            level = "DEBUG"
        elif verbose:
            level = "INFO"
        elif quiet:
            level = "ERROR"
        else:
            level = env.get(ENV_LEVEL) or "WARNING"
        return cls(
            level=level.upper(),
            file=env.get(ENV_FILE) or None,
            file_level=env.get(ENV_FILE_LEVEL) or None,
        )

    @property
    def debugging(self) -> bool:
        return _parse_level(self.level) <= logging.DEBUG


def setup_logging(settings: LogSettings | None = None) -> None:
    """Replace the root logger's handlers according to ``settings``."""
    settings = settings or LogSettings()
    console_level = _parse_level(settings.level)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_console_handler(console_level))
    effective = console_level

    if settings.file:
        file_level = _parse_level(settings.file_level) if settings.file_level else console_level
        fh = logging.FileHandler(settings.file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_DIAGNOSTIC, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(fh)
        effective = min(effective, file_level)

    root.setLevel(effective)

    # Reconfiguring into debug releases loggers an earlier call held back.
    third_party_level = logging.NOTSET if settings.debugging else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    logging.raiseExceptions = False


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = _FMT_PLAIN, None
    for ceiling, candidate, candidate_datefmt in _CONSOLE_FORMATS:
        if level <= ceiling:
            fmt, datefmt = candidate, candidate_datefmt
            break
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _parse_level(level: str | None) -> int:
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    return numeric if isinstance(numeric, int) else logging.WARNING
