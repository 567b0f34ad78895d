"""Match and group coincident soundings of two instruments.

Examples
--------
% python bin/run_matchup.py one litematch_20200101.nc4 a_lite_20200101.nc4 \
    b_lite_20191231.nc4 b_lite_20200101.nc4 b_lite_20200102.nc4 --flag0_only

% python bin/run_matchup.py -n 16 multi matchups.toml

"""

import argparse
import logging

from litematch.matchup import matchup_config, pipeline
from litematch.utils import enable_logging


DEFAULT_NPROCS = 8


def cmd_line_call(args=None):
    """Method to process command line arguments (`python <file>.py --help`)."""
    parser = argparse.ArgumentParser(description="Match and group coincident soundings of two instruments.")
    parser.add_argument(
        "-n",
        "--nprocs",
        type=int,
        default=argparse.SUPPRESS,
        help=f"Number of threads used to match soundings (default from the file, or {DEFAULT_NPROCS}).",
    )
    parser.add_argument(
        "-l", "--log_file", type=str, default=False, help="File (or directory) to also save logging output in."
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_const",
        const="debug",
        dest="log_level",
        default="info",
        help='Set log reporting level to "debug" (default="info").',
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    one = subparsers.add_parser("one", help="Run a matchup between one A file and one or more B files.")
    one.add_argument("output_file", type=str, help="Path to write the match group netCDF file to.")
    one.add_argument("a_file", type=str, help="Instrument A lite file.")
    one.add_argument("b_files", type=str, nargs="*", help="Instrument B lite file(s).")
    one.add_argument(
        "-0", "--flag0_only", action="store_true", help="Only include good quality soundings in the matches."
    )
    one.add_argument(
        "--self_crossing", action="store_true", help="Match the A file against itself (B files are optional)."
    )
    one.add_argument(
        "-f",
        "--save_full_matches_as",
        type=str,
        default=None,
        help="Save every pairwise match to this netCDF file (can be 100s of MB).",
    )
    one.add_argument(
        "-i",
        "--read_full_matches",
        type=str,
        default=None,
        help="Read the pairwise matches from a file saved with --save_full_matches_as instead of matching.",
    )
    one.add_argument("--max_distance_km", type=float, default=argparse.SUPPRESS, help="Default=100.")
    one.add_argument("--max_delta_seconds", type=float, default=argparse.SUPPRESS, help="Default=43200.")
    one.add_argument(
        "--min_delta_seconds",
        type=float,
        default=argparse.SUPPRESS,
        help="Default=-1 (no minimum), or 2787 with --self_crossing.",
    )

    multi = subparsers.add_parser("multi", help="Run the matchups defined in a JSON or TOML file.")
    multi.add_argument("config_file", type=str, help="Batch configuration file.")
    multi.add_argument(
        "-p",
        "--parallel_matchups",
        type=int,
        default=argparse.SUPPRESS,
        help="Number of matchups to run at once (default from the file, or 1).",
    )

    kwargs = vars(parser.parse_args(args))
    orig_kwargs = str(kwargs)

    logger = enable_logging(log_level=kwargs.pop("log_level"), log_file=kwargs.pop("log_file"))
    logger.debug("Supplied arguments: %s", orig_kwargs)

    command = kwargs.pop("command")
    try:
        if command == "one":
            nprocs = kwargs.pop("nprocs", DEFAULT_NPROCS)
            config = matchup_config.MatchupConfig.from_dict(kwargs)
            pipeline.run_matchup(config, nprocs=nprocs)
        else:
            run_config = matchup_config.load_run_config(kwargs["config_file"])
            pipeline.run_matchups(
                run_config.matchups,
                nprocs=kwargs.get("nprocs", run_config.nprocs),
                parallel_matchups=kwargs.get("parallel_matchups", run_config.parallel_matchups),
            )
    except Exception:
        logging.exception("An exception occurred:")
        parser.exit(status=1, message="Script failed with errors! Exiting early...\n")


if __name__ == "__main__":
    cmd_line_call()
