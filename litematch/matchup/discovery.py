"""Find lite files in date-patterned directories and build batch configurations."""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from pathlib import Path

from ..errors import InternalConsistencyError
from .matchup_config import MatchupConfig, RunConfig

logger = logging.getLogger(__name__)

DEFAULT_OUTFILE_FORMAT = "litematch_%Y%m%d.nc4"
LITE_FILE_SUFFIX = ".nc4"


@dataclass
class MatchupDates:
    """Iterate over the A dates of a batch and the B dates to match each with.

    Yields ``(a_date, b_dates)`` for every day from `start` to `end`
    (inclusive), where `b_dates` spans ``a_date - ndays_buffer`` to
    ``a_date + ndays_buffer``.
    """

    start: datetime.date
    end: datetime.date
    ndays_buffer: int = 0

    def __post_init__(self):
        if self.ndays_buffer < 0:
            raise ValueError(f"`ndays_buffer` must not be negative, not: {self.ndays_buffer}")

    def __iter__(self):
        one_day = datetime.timedelta(days=1)
        a_date = self.start
        while a_date <= self.end:
            b_dates = [a_date + one_day * n for n in range(-self.ndays_buffer, self.ndays_buffer + 1)]
            yield a_date, b_dates
            a_date += one_day


@dataclass
class DirStructure:
    """Directory layout of lite files given as a `strftime` pattern, e.g. "/data/%Y/%m/%d/lite"."""

    pattern: str = "%Y/%m/%d"

    def dir_for_date(self, date: datetime.date) -> Path:
        return Path(date.strftime(self.pattern))


def find_nc4_file(directory: str | Path) -> Path | None:
    """Return the one ".nc4" file in `directory`.

    Returns None if the directory does not exist or has no ".nc4" file.

    Raises
    ------
    InternalConsistencyError
        If the directory holds more than one ".nc4" file.

    """
    directory = Path(directory)
    if not directory.is_dir():
        logger.debug("Directory %s does not exist", directory)
        return None

    files = sorted(fn for fn in directory.iterdir() if fn.suffix == LITE_FILE_SUFFIX and fn.is_file())
    if len(files) > 1:
        raise InternalConsistencyError(
            f"Multiple {LITE_FILE_SUFFIX} files in a single directory are not supported: {[fn.name for fn in files]}",
            file=directory,
        )
    return files[0] if files else None


def build_matchup_configs(
    a_dirs: DirStructure,
    b_dirs: DirStructure,
    start: datetime.date,
    end: datetime.date,
    ndays_buffer: int = 0,
    outfile_format: str = DEFAULT_OUTFILE_FORMAT,
    flag0_only: bool = False,
    **kwargs,
) -> list[MatchupConfig]:
    """Build one matchup per A date that has its A file and every B file.

    Parameters
    ----------
    a_dirs, b_dirs : DirStructure
        Directory patterns of the A and B lite files.
    start, end : datetime.date
        First and last A date (inclusive).
    ndays_buffer : int, optional
        Number of days on either side of the A date to take B files from.
        Default=0, i.e. only the same day.
    outfile_format : str, optional
        `strftime` pattern, formatted with the A date, for the output files.
    flag0_only : bool, optional
        Only match good quality soundings. Default=False.
    **kwargs
        Other :class:`MatchupConfig` values applied to every matchup.

    Returns
    -------
    list of MatchupConfig

    """
    configs = []
    for a_date, b_dates in MatchupDates(start, end, ndays_buffer):
        a_file = find_nc4_file(a_dirs.dir_for_date(a_date))
        if a_file is None:
            logger.warning("Skipping matchup for %s due to missing A file", a_date)
            continue

        b_files = [find_nc4_file(b_dirs.dir_for_date(b_date)) for b_date in b_dates]
        if any(fn is None for fn in b_files):
            logger.warning("Skipping matchup for %s due to at least one missing B file", a_date)
            continue

        configs.append(
            MatchupConfig(
                output_file=Path(a_date.strftime(outfile_format)),
                a_file=a_file,
                b_files=b_files,
                flag0_only=flag0_only,
                **kwargs,
            )
        )

    logger.info("Found %i matchup(s) between %s and %s", len(configs), start, end)
    return configs


def build_run_config(*args, nprocs: int = 8, parallel_matchups: int = 1, **kwargs) -> RunConfig:
    """Same as :func:`build_matchup_configs`, wrapped in a :class:`RunConfig`."""
    return RunConfig(
        matchups=build_matchup_configs(*args, **kwargs), nprocs=nprocs, parallel_matchups=parallel_matchups
    )
