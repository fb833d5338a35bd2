"""Parsing of reporter launch arguments."""

from dataclasses import dataclass
from typing import Optional
import structlog

logger = structlog.get_logger(__name__)

KNOWN_KEYS = ("start", "end")


class LaunchArgumentError(ValueError):
    """Launch arguments could not be interpreted."""
    pass


@dataclass(frozen=True)
class LaunchArguments:
    """Requested height range. None means "resume" for start and "unbounded" for end."""
    start: Optional[int] = None
    end: Optional[int] = None


def parse_launch_arguments(arguments: Optional[str]) -> LaunchArguments:
    """
    Parse ``key=value`` pairs such as ``"start=100 end=105"``.

    Unknown keys and tokens without ``=`` are ignored with a warning.

    Raises:
        LaunchArgumentError: if start/end is not a non-negative integer or
            end is below start.
    """
    values = {}
    for token in (arguments or "").split():
        key, sep, value = token.partition("=")
        key = key.strip().lower()
        if not sep or key not in KNOWN_KEYS:
            logger.warning("Ignoring unrecognized launch argument", argument=token)
            continue
        try:
            height = int(value)
        except ValueError:
            raise LaunchArgumentError(f"{key} must be an integer, got {value!r}")
        if height < 0:
            raise LaunchArgumentError(f"{key} must not be negative, got {height}")
        values[key] = height

    parsed = LaunchArguments(start=values.get("start"), end=values.get("end"))
    if parsed.start is not None and parsed.end is not None and parsed.end < parsed.start:
        raise LaunchArgumentError(f"end ({parsed.end}) is below start ({parsed.start})")
    return parsed
