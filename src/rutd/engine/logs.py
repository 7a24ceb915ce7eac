# src/rutd/engine/logs.py

"""
Logging setup.

Records go either to an append-only file under the state directory or,
when `log.console` is set, to stdout. The file is trimmed to its last
`log.history` lines each time it is opened; there is no other rotation.
"""

import logging
import sys
from pathlib import Path
from typing import Final, Optional

TRACE: Final[int] = 5
logging.addLevelName(TRACE, "TRACE")

FILE_FORMAT: Final[str] = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
CONSOLE_FORMAT: Final[str] = "[%(levelname)s] [%(name)s] %(message)s"

# marks handlers installed by init_logging so a second call replaces them
_HANDLER_TAG: Final[str] = "_rutd_handler"


def verbosity_level(verbose: int) -> int:
    if verbose <= 0:
        return logging.INFO
    if verbose == 1:
        return logging.DEBUG
    return TRACE


def trim_log_file(path: Path, history: int) -> None:
    """
    Keep only the last `history` lines of `path`. 0 disables trimming.
    """
    if history <= 0 or not path.is_file():
        return

    with path.open("r", encoding="utf-8", errors="replace") as f:
        lines = f.readlines()

    if len(lines) <= history:
        return

    with path.open("w", encoding="utf-8") as f:
        f.writelines(lines[-history:])


def init_logging(
    verbose: int = 0,
    log_file: Optional[Path] = None,
    history: int = 100,
    console: bool = False,
) -> logging.Handler:
    """
    Configure the root logger and return the installed handler.

    The threshold applies to the root logger, so library loggers follow
    the same verbosity as ours.
    """
    root = logging.getLogger()
    for h in list(root.handlers):
        if getattr(h, _HANDLER_TAG, False):
            root.removeHandler(h)
            h.close()

    handler: logging.Handler
    if console or log_file is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    else:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        trim_log_file(log_file, history)

        handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        formatter = logging.Formatter(FILE_FORMAT)
        formatter.default_msec_format = "%s.%03d"
        handler.setFormatter(formatter)

    setattr(handler, _HANDLER_TAG, True)
    root.addHandler(handler)
    root.setLevel(verbosity_level(verbose))

    logging.getLogger(__name__).debug("Logger initialized")
    return handler
