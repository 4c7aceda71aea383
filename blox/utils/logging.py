"""A print-based logger for notebook-driven modeling sessions.

The tutorials run in Jupyter, where standard logging output is easy to
lose. Messages go to stdout with a timestamped header instead.

Compilation and every integration report progress, so a parameter sweep
prints a header per run. set_level() raises the threshold for all blox
loggers at once; messages below it are dropped.

Usage:
    from blox.utils import get_logger, set_level
    LOG = get_logger("graph.compiler")
    LOG.info("Compiled %d states", 12)
    set_level("WARNING")
"""

import sys
from datetime import datetime

LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40}

_threshold = {"level": LEVELS["INFO"]}


def set_level(level):
    """Set the lowest level printed by every blox logger.

    Parameters
    ----------
    level : str
        One of DEBUG, INFO, WARNING, ERROR (case-insensitive).

    Returns
    -------
    str
        The previous level, so callers can restore it.
    """
    name = str(level).upper()
    if name not in LEVELS:
        raise ValueError(f"Unknown log level '{level}'. Available: {list(LEVELS)}")
    previous = get_level()
    _threshold["level"] = LEVELS[name]
    return previous


def get_level():
    """Name of the current threshold level."""
    for name, value in LEVELS.items():
        if value == _threshold["level"]:
            return name


def get_logger(name, out=None):
    """Create a print-based logger.

    Parameters
    ----------
    name : str
        Logger name, shown in every message header.
    out : file-like, optional
        Extra output stream, e.g. an open log file.

    Returns
    -------
    callable
        A log function carrying .debug, .info, .warning and .error.
    """
    prefix = f"blox:{name}"
    rule = "_" * 72
    outputs = [out] if out else []

    def log(level, msg, args):
        if LEVELS[level] < _threshold["level"]:
            return
        stamp = datetime.now().strftime("%H:%M:%S")
        text = msg % args if args else msg
        # resolved per call so pytest's capsys and notebook redirection see it
        for dest in [sys.stdout] + outputs:
            print(rule, file=dest)
            print(f"{prefix} {level} [{stamp}]", file=dest)
            print(text, file=dest)

    log.debug = lambda msg, *args: log("DEBUG", msg, args)
    log.info = lambda msg, *args: log("INFO", msg, args)
    log.warning = lambda msg, *args: log("WARNING", msg, args)
    log.error = lambda msg, *args: log("ERROR", msg, args)

    return log
