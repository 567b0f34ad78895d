"""Create a batch configuration for `run_matchup.py multi`.

The A and B directory structures are `strftime` patterns, for example
"/data/%Y/%m/%d/lite" for year/month/day directories under "/data" with a
"lite" subdirectory. Each directory must hold at most one ".nc4" file.

Examples
--------
% python bin/make_matchup_config.py "/data/a/%Y/%m/%d" "/data/b/%Y/%m/%d" \
    2020-01-01 2020-01-31 1 matchups.json --flag0_only

"""

import argparse
import datetime
import logging

from litematch.matchup import discovery, matchup_config
from litematch.utils import enable_logging


def cmd_line_call():
    """Method to process command line arguments (`python <file>.py --help`)."""
    parser = argparse.ArgumentParser(description="Create a batch matchup configuration file.")
    parser.add_argument("a_dir_structure", type=str, help="Directory pattern of the instrument A lite files.")
    parser.add_argument("b_dir_structure", type=str, help="Directory pattern of the instrument B lite files.")
    parser.add_argument("start_date", type=datetime.date.fromisoformat, help="First A date (YYYY-MM-DD).")
    parser.add_argument("end_date", type=datetime.date.fromisoformat, help="Last A date (YYYY-MM-DD, inclusive).")
    parser.add_argument(
        "ndays_buffer",
        type=int,
        help="Number of days on either side of the A date to include B files from (0 = same day only).",
    )
    parser.add_argument("config_file", type=str, help="Path to write the configuration file (JSON) to.")
    parser.add_argument(
        "outfile_format",
        type=str,
        nargs="?",
        default=discovery.DEFAULT_OUTFILE_FORMAT,
        help=f"Pattern for the output files, formatted with the A date (default={discovery.DEFAULT_OUTFILE_FORMAT}).",
    )
    parser.add_argument(
        "-0", "--flag0_only", action="store_true", help="Only include good quality soundings in the matches."
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
    kwargs = vars(parser.parse_args())
    orig_kwargs = str(kwargs)

    logger = enable_logging(log_level=kwargs.pop("log_level"))
    logger.debug("Supplied arguments: %s", orig_kwargs)

    try:
        run_config = discovery.build_run_config(
            discovery.DirStructure(kwargs["a_dir_structure"]),
            discovery.DirStructure(kwargs["b_dir_structure"]),
            kwargs["start_date"],
            kwargs["end_date"],
            ndays_buffer=kwargs["ndays_buffer"],
            outfile_format=kwargs["outfile_format"],
            flag0_only=kwargs["flag0_only"],
        )
        return matchup_config.save_run_config(kwargs["config_file"], run_config)
    except Exception:
        logging.exception("An exception occurred:")
        parser.exit(status=1, message="Script failed with errors! Exiting early...\n")


if __name__ == "__main__":
    cmd_line_call()
