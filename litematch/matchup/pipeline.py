"""Drivers that run complete matchups: load, match, group and write."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

from ..errors import MultipleMatchupErrors
from ..utils import LogProgress, format_performance, track_performance
from . import dataio
from .grouping import MatchGroupSet, group_matches
from .matchup_config import MatchupConfig, RunConfig
from .pairing import PairwiseMatches, match_all

logger = logging.getLogger(__name__)


def _threshold_attrs(config: MatchupConfig) -> dict:
    # netCDF attributes cannot be booleans.
    return {
        "max_distance_km": config.max_distance_km,
        "max_delta_seconds": config.max_delta_seconds,
        "min_delta_seconds": config.effective_min_delta_seconds(),
        "flag0_only": int(config.flag0_only),
        "self_crossing": int(config.self_crossing),
    }


def find_matches(config: MatchupConfig, nprocs: int = 8, show_progress: bool = True, metrics: dict = None):
    """Load the lite files of a matchup and match every A sounding against B.

    Saves the full matches if the configuration asks for it.

    Returns
    -------
    PairwiseMatches

    """
    metrics = {} if metrics is None else metrics
    a = track_performance(dataio.load_lite_file, metrics, "load A")(config.a_file, flag0_only=config.flag0_only)
    b = track_performance(dataio.load_lite_files, metrics, "load B")(config.b_files, flag0_only=config.flag0_only)

    matches = track_performance(match_all, metrics, "match")(
        a,
        b,
        max_distance_km=config.max_distance_km,
        min_delta_seconds=config.effective_min_delta_seconds(),
        max_delta_seconds=config.max_delta_seconds,
        nprocs=nprocs,
        progress=LogProgress("Matching A soundings", lgr=logger) if show_progress else None,
    )

    if config.save_full_matches_as is not None:
        save = track_performance(dataio.save_full_matches, metrics, "save full matches")
        save(config.save_full_matches_as, a, b, matches)
    return matches


def run_matchup(config: MatchupConfig, nprocs: int = 8, show_progress: bool = True) -> MatchGroupSet:
    """Run one matchup and write its match group file.

    Parameters
    ----------
    config : MatchupConfig
        Files and criteria of the matchup.
    nprocs : int, optional
        Number of threads used to match soundings. Default=8.
    show_progress : bool, optional
        Log the matching and grouping progress. Default=True.

    Returns
    -------
    MatchGroupSet
        The groups written to `config.output_file`.

    """
    config.validate()
    metrics = {}

    if config.read_full_matches is not None:
        matches: PairwiseMatches = track_performance(dataio.load_full_matches, metrics, "read full matches")(
            config.read_full_matches
        )
    else:
        logger.info("Looking for matches between %s and %i B file(s)", config.a_file, len(config.b_files))
        matches = find_matches(config, nprocs=nprocs, show_progress=show_progress, metrics=metrics)

    logger.info("Grouping %i match records", len(matches))
    groups = track_performance(group_matches, metrics, "group")(
        matches, progress=LogProgress("Grouping matches", lgr=logger) if show_progress else None
    )

    track_performance(groups.write_netcdf, metrics, "write groups")(config.output_file, attrs=_threshold_attrs(config))
    logger.debug(format_performance(metrics))
    logger.info("Done with matchup: %s", config.describe())
    return groups


def run_matchups(
    configs: Sequence[MatchupConfig], nprocs: int = 8, parallel_matchups: int = 1
) -> list[MatchGroupSet]:
    """Run a batch of matchups, continuing past failures.

    Parameters
    ----------
    configs : sequence of MatchupConfig
        Matchups to run.
    nprocs : int, optional
        Number of matching threads per matchup. Default=8.
    parallel_matchups : int, optional
        Number of matchups to run at the same time. Default=1.

    Returns
    -------
    list of MatchGroupSet
        Results in the order of `configs`.

    Raises
    ------
    MultipleMatchupErrors
        After every matchup has been attempted, if any of them failed.

    """
    if parallel_matchups < 1:
        raise ValueError(f"`parallel_matchups` must be at least 1, not: {parallel_matchups}")

    logger.info("Running %i matchup(s), %i at a time", len(configs), parallel_matchups)

    def _run(config):
        return run_matchup(config, nprocs=nprocs, show_progress=parallel_matchups == 1)

    results = []
    errors = []
    if parallel_matchups == 1:
        for config in configs:
            try:
                results.append(_run(config))
            except Exception as e:
                logger.exception("Matchup failed: %s", config.describe())
                errors.append((config.describe(), e))
    else:
        with ThreadPoolExecutor(max_workers=parallel_matchups, thread_name_prefix="litematch-run") as pool:
            futures = [pool.submit(_run, config) for config in configs]
            for config, future in zip(configs, futures):
                try:
                    results.append(future.result())
                except Exception as e:
                    logger.exception("Matchup failed: %s", config.describe())
                    errors.append((config.describe(), e))

    if errors:
        raise MultipleMatchupErrors(errors)
    logger.info("Finished %i matchup(s)", len(results))
    return results


def run_config(config: RunConfig) -> list[MatchGroupSet]:
    """Run every matchup of a batch configuration."""
    return run_matchups(config.matchups, nprocs=config.nprocs, parallel_matchups=config.parallel_matchups)
