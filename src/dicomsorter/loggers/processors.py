import contextlib
import datetime
from pathlib import Path
from typing import Optional

import pytz
from structlog.types import EventDict


class PathPrettifier:
    """
    A processor to convert absolute paths to relative paths based on a base directory.

    Args:
            base_dir (Optional[Path]): The base directory to which paths should be made relative. Defaults to the current working directory.
    """

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self.base_dir = base_dir or Path.cwd()

    def __call__(
        self, _: object, __: object, event_dict: EventDict
    ) -> EventDict:
        if not isinstance(event_dict, dict):
            msg = "event_dict must be a dictionary"
            raise TypeError(msg)

        for key, path in event_dict.items():
            if isinstance(path, Path):
                # paths outside base_dir (the archive roots) stay absolute
                event_dict[key] = str(path)
                with contextlib.suppress(ValueError):
                    event_dict[key] = str(path.relative_to(self.base_dir))
        return event_dict


class CallPrettifier:
    """
    A processor to format call information in the event dictionary.

    Args:
            concise (bool): Whether to use a concise format for call information. Defaults to True.
    """

    def __init__(self, concise: bool = True) -> None:
        self.concise = concise

    def __call__(
        self, _: object, __: object, event_dict: EventDict
    ) -> EventDict:
        if not isinstance(event_dict, dict):
            msg = "event_dict must be a dictionary"
            raise TypeError(msg)

        call = {
            "module": event_dict.pop("module", ""),
            "func_name": event_dict.pop("func_name", ""),
            "lineno": event_dict.pop("lineno", ""),
        }

        event_dict["call"] = (
            f"{call['module']}.{call['func_name']}:{call['lineno']}"
            if self.concise
            else call
        )
        return event_dict


class TimeStamper:
    """
    A processor to add a timestamp in the site's local timezone.

    The sorter runs unattended next to the scanner listener, so log lines
    are stamped in the timezone of the imaging site rather than UTC.

    Args:
            fmt (str): The format string for the timestamp. Defaults to "%Y-%m-%dT%H:%M:%S%z".
            tz (str): Name of the pytz timezone. Defaults to "US/Eastern".
    """

    def __init__(
        self, fmt: str = "%Y-%m-%dT%H:%M:%S%z", tz: str = "US/Eastern"
    ) -> None:
        self.fmt = fmt
        self.tz = pytz.timezone(tz)

    def __call__(
        self, _: object, __: object, event_dict: EventDict
    ) -> EventDict:
        if not isinstance(event_dict, dict):
            msg = "event_dict must be a dictionary"
            raise TypeError(msg)

        now = datetime.datetime.now(self.tz)
        event_dict["timestamp"] = now.strftime(self.fmt)
        return event_dict
