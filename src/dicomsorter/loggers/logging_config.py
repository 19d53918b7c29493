"""
Logging setup for a sorter process.

Each run is a short-lived process started by storescp, normally with no
terminal attached and with storescp's working directory. Records go to
stderr, which storescp keeps in its own log. When `DICOMSORTER_LOG_FILE`
names a file, records are also appended to it as one JSON object per line.
Several runs append to the same file one after another, so every JSON
record carries the process id, and the file is reopened when an external
logrotate moves it away.
"""

import json as jsonlib
import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
from structlog.processors import CallsiteParameter, CallsiteParameterAdder
from structlog.types import EventDict
from structlog.typing import Processor

from dicomsorter.loggers.processors import (
    CallPrettifier,
    PathPrettifier,
    TimeStamper,
)

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
# WARNING keeps a successful run silent for the listener that spawned it
DEFAULT_LOG_LEVEL = "WARNING"


def add_process_id(_: object, __: object, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("pid", os.getpid())
    return event_dict


class LoggingManager:
    """
    Configure stdlib logging and structlog for the logger `name`.

    Parameters
    ----------
    name : str
        Logger name, also the prefix of the environment variables read:
        `<NAME>_LOG_LEVEL` and `<NAME>_LOG_FILE`.
    base_dir : Path, optional
        Paths in events under this directory are shown relative to it.
    log_file : Path, optional
        JSON lines file, overriding `<NAME>_LOG_FILE`.
    """

    def __init__(
        self,
        name: str,
        base_dir: Optional[Path] = None,
        log_file: Optional[Path] = None,
    ) -> None:
        self.name = name
        self.base_dir = base_dir or Path.cwd()
        self.level = self.env_level
        self.log_file = log_file or self.env_log_file
        self._initialize_logger()

    def _env(self, suffix: str) -> Optional[str]:
        return os.environ.get(f"{self.name}_{suffix}".upper())

    @property
    def env_level(self) -> str:
        return (self._env("LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper()

    @property
    def env_log_file(self) -> Optional[Path]:
        value = self._env("LOG_FILE")
        return Path(value).expanduser() if value else None

    @property
    def pre_chain(self) -> List[Processor]:
        return [
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            CallsiteParameterAdder(
                [
                    CallsiteParameter.MODULE,
                    CallsiteParameter.FUNC_NAME,
                    CallsiteParameter.LINENO,
                ]
            ),
            PathPrettifier(base_dir=self.base_dir),
            structlog.stdlib.ExtraAdder(),
            structlog.processors.StackInfoRenderer(),
        ]

    def _formatter(self, processors: List[Processor]) -> Dict[str, Any]:
        return {
            "()": structlog.stdlib.ProcessorFormatter,
            "processors": [
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *processors,
            ],
            "foreign_pre_chain": self.pre_chain,
        }

    @property
    def formatters(self) -> Dict[str, Dict[str, Any]]:
        return {
            "console": self._formatter(
                [
                    TimeStamper(fmt="%H:%M:%S"),
                    CallPrettifier(concise=True),
                    structlog.dev.ConsoleRenderer(
                        colors=True,
                        sort_keys=False,
                        exception_formatter=structlog.dev.RichTracebackFormatter(
                            width=-1,
                            show_locals=False,
                        ),
                    ),
                ]
            ),
            "json": self._formatter(
                [
                    TimeStamper(),
                    add_process_id,
                    CallPrettifier(concise=False),
                    structlog.processors.dict_tracebacks,
                    structlog.processors.JSONRenderer(serializer=jsonlib.dumps),
                ]
            ),
        }

    @property
    def handlers(self) -> Dict[str, Dict[str, Any]]:
        handlers: Dict[str, Dict[str, Any]] = {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "console",
                "stream": "ext://sys.stderr",
            },
        }
        if self.log_file is not None:
            # opened on the first record, so an unwritable path only
            # surfaces when something is logged
            handlers["json"] = {
                "class": "logging.handlers.WatchedFileHandler",
                "formatter": "json",
                "filename": str(self.log_file),
                "delay": True,
            }
        return handlers

    @property
    def logging_config(self) -> Dict[str, Any]:
        handlers = self.handlers
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": self.formatters,
            "handlers": handlers,
            "loggers": {
                self.name: {
                    "handlers": list(handlers),
                    "level": self.level,
                    "propagate": False,
                },
            },
        }

    def _initialize_logger(self) -> None:
        logging.config.dictConfig(self.logging_config)
        structlog.configure(
            processors=[
                *self.pre_chain,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    def get_logger(self) -> structlog.stdlib.BoundLogger:
        return structlog.get_logger(self.name)

    def configure_logging(
        self, level: str = DEFAULT_LOG_LEVEL
    ) -> structlog.stdlib.BoundLogger:
        """
        Reconfigure at `level` and return the logger.

        Raises
        ------
        ValueError
            If `level` is not a logging level name.
        """
        level_upper = level.upper()
        if level_upper not in VALID_LOG_LEVELS:
            msg = f"Invalid logging level: {level}"
            raise ValueError(msg)

        self.level = level_upper
        self._initialize_logger()
        return self.get_logger()
