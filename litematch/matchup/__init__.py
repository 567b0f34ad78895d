"""Sounding matchups: load lite files, pair coincident soundings, group and save."""

from . import data_structures, dataio, discovery, grouping, matchup_config, pairing, pipeline
from .data_structures import InstrumentSoundings, MatchRecord
from .grouping import MatchGroup, MatchGroupSet, group_matches
from .matchup_config import MatchupConfig, RunConfig, load_run_config, save_run_config
from .pairing import PairwiseMatches, match_all
from .pipeline import run_matchup, run_matchups

__all__ = [
    "data_structures",
    "dataio",
    "discovery",
    "grouping",
    "matchup_config",
    "pairing",
    "pipeline",
    "InstrumentSoundings",
    "MatchRecord",
    "MatchGroup",
    "MatchGroupSet",
    "group_matches",
    "MatchupConfig",
    "RunConfig",
    "load_run_config",
    "save_run_config",
    "PairwiseMatches",
    "match_all",
    "run_matchup",
    "run_matchups",
]
