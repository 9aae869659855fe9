"""Log output configuration shared by the library and the CLI."""

import os
from typing import Literal


LogFormat = Literal["json", "console", "plain"]

FORMAT_ENV_VAR = "HTTPSTUB_LOG_FORMAT"
LEVEL_ENV_VAR = "HTTPSTUB_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"


def get_log_format(cli_override: str | None = None) -> LogFormat:
    """
    Resolve the log format: CLI option > environment variable > console.

    ``auto`` and ``rich`` are accepted as aliases of ``console``.
    """
    for candidate in (cli_override, os.environ.get(FORMAT_ENV_VAR)):
        if not candidate:
            continue
        value = candidate.lower()
        if value in ("json", "plain"):
            return value  # type: ignore
        if value in ("console", "auto", "rich"):
            return "console"
    return "console"


def get_log_level(cli_override: str | None = None) -> str:
    """Resolve the log level: CLI option > environment variable > WARNING."""
    value = cli_override or os.environ.get(LEVEL_ENV_VAR) or DEFAULT_LOG_LEVEL
    return value.upper()
