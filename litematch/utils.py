"""Generic utilities (logging, timing and progress reporting)."""

import datetime
import functools
import logging
import logging.config
import math
import threading
import time
import typing
from pathlib import Path

logger = logging.getLogger(__name__)


def track_performance(func: typing.Callable, storage: dict, label: str = None):
    """Wrap `func` so that the run time of each call is added to `storage`.

    Parameters
    ----------
    func : callable
        Function (or bound method) to time.
    storage : dict
        Metrics of every stage, keyed by `label`. Each entry holds the call
        "count" and the "total", "min" and "max" seconds.
    label : str, optional
        Stage name. Default is the qualified name of `func`.

    Returns
    -------
    callable
        Wrapped function.

    """
    label = func.__qualname__ if label is None else label

    @functools.wraps(func)
    def _timed_func(*args, **kwargs):
        t0 = time.perf_counter()
        output = func(*args, **kwargs)
        td = time.perf_counter() - t0

        stats = storage.setdefault(label, {"count": 0, "total": 0.0, "min": math.inf, "max": 0.0})
        stats["count"] += 1
        stats["total"] += td
        stats["min"] = min(td, stats["min"])
        stats["max"] = max(td, stats["max"])
        return output

    return _timed_func


def format_performance(metrics: dict, p: int = 3, slowest_first: bool = False) -> str:
    """One line per stage timed with `track_performance`, in seconds.

    Stages are listed in the order they first ran, or by decreasing total time
    if `slowest_first` is set.
    """
    order = list(metrics)
    if slowest_first:
        order.sort(key=lambda key: metrics[key]["total"], reverse=True)

    total = sum(stats["total"] for stats in metrics.values())
    lines = [f"Stage timing ({total:.{p}f} s total):"]
    for label in order:
        stats = metrics[label]
        lines.append(
            f"\t{label}: count={stats['count']} total={stats['total']:.{p}f}"
            f" mean={stats['total'] / stats['count']:.{p}f} min={stats['min']:.{p}f} max={stats['max']:.{p}f}"
        )
    return "\n".join(lines)


class LogProgress:
    """Progress callback that logs completion in steps of `step_percent`.

    Instances are callables with the signature ``(n_done, n_total)``, which is
    what the matcher and grouper accept as their `progress` argument. Calls
    may come from several worker threads.

    """

    def __init__(self, action: str, step_percent: float = 10.0, lgr: logging.Logger = None):
        self.action = action
        self.step_percent = step_percent
        self.lgr = logger if lgr is None else lgr
        self._next_percent = step_percent
        self._lock = threading.Lock()

    def __call__(self, n_done: int, n_total: int):
        percent = 100.0 if n_total == 0 else 100.0 * n_done / n_total
        with self._lock:
            if percent < self._next_percent:
                return
            while self._next_percent <= percent:
                self._next_percent += self.step_percent
        self.lgr.info("%s: %i/%i (%.0f%%)", self.action, n_done, n_total, percent)


def enable_logging(
    log_level=logging.DEBUG, log_file: typing.Union[bool, str, Path] = False, extra_loggers: list[str] = None
):
    """Enable logging to the console and optionally to a file.

    Parameters
    ----------
    log_level : int
        A logging log level.
    log_file : bool or str or Path, optional
        Option to enable logging to a file. If true or a directory the filename
        will be auto-generated. If true, the file will be saved to the current
        working directory. Otherwise, the supplied file will be used.
    extra_loggers : List[str], optional
        Collection of additional loggers to enable at DEBUG level.

    Returns
    -------
    logging.Logger
        The package logger.

    """
    if isinstance(log_level, str):
        log_level = log_level.upper()
    root_level = "DEBUG" if log_file else log_level
    extra_loggers = {} if not extra_loggers else {name: {"level": root_level} for name in extra_loggers}

    # Configure script logging.
    log_config = {
        "version": 1,
        "disable_existing_loggers": True,
        "formatters": {
            "simple": {
                "class": "logging.Formatter",
                "format": "[%(asctime)s.%(msecs)03d] %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S",
            },
            "detailed": {
                "class": "logging.Formatter",
                "format": "[%(asctime)s.%(msecs)03d %(name)s.%(funcName)s:%(lineno)i %(levelname)5.5s] %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "level": log_level,
                "class": "logging.StreamHandler",
                "formatter": "simple",
                "stream": "ext://sys.stdout",
            },
            "file": {"class": "logging.NullHandler"},
        },
        "loggers": dict(
            **{
                "litematch": {"level": root_level},
                "netCDF4": {"level": "ERROR"},
            },
            **extra_loggers,
        ),
        "root": {"level": root_level, "handlers": ["console", "file"]},
    }

    # Optionally, add logging to a file.
    if log_file:
        default_log_name = f"litematch.{datetime.datetime.now(datetime.timezone.utc).strftime('%Y%m%dT%H%M%S')}.log"
        if log_file is True:
            log_file = Path.cwd() / default_log_name
        else:
            log_file = Path(log_file)
            if log_file.is_dir():
                log_file = log_file / default_log_name

        log_config["handlers"]["file"] = {
            "level": root_level,
            "class": "logging.FileHandler",
            "formatter": "detailed",
            "filename": str(log_file),
            "mode": "a",
        }

    # Initialize and configure the loggers.
    logging.config.dictConfig(log_config)

    if log_file:
        logger.debug("Logging to file: %s", log_file)
    return logging.getLogger("litematch")
