"""Reading and writing the netCDF files used by a matchup.

All files are netCDF-4 and accessed through xarray. Files are opened without
CF decoding of times or fill values so that integer columns keep their types
and the fill values of the padded match arrays can be checked explicitly.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

import numpy as np
import xarray as xr

from ..compute.constants import SOUNDING_ID_UNITS
from ..errors import IOFailureError, MatchupError, MissingColumnError, MissingGroupError, ShapeOrTypeError
from .data_structures import InstrumentSoundings
from .pairing import PairwiseMatches

logger = logging.getLogger(__name__)

# Lite file variable -> allowed numpy dtype kinds.
LITE_FILE_VARIABLES = {
    "sounding_id": "iu",
    "time": "fiu",
    "longitude": "f",
    "latitude": "f",
    "xco2_quality_flag": "iub",
}

A_LOCATIONS_GROUP = "a_locations"
B_LOCATIONS_GROUP = "b_locations"
MATCHES_GROUP = "matches"


def open_netcdf(filepath: str | Path, group: str | None = None) -> xr.Dataset:
    """Open a netCDF file (or one of its groups) without CF decoding.

    Raises
    ------
    IOFailureError
        If the file does not exist or cannot be read.
    MissingGroupError
        If `group` is not in the file.

    """
    filepath = Path(filepath)
    if not filepath.is_file():
        raise IOFailureError("NetCDF file not found", file=filepath)

    try:
        return xr.open_dataset(
            filepath,
            group=group,
            engine="netcdf4",
            decode_times=False,
            decode_timedelta=False,
            mask_and_scale=False,
        )
    except OSError as e:
        if group is not None and "group not found" in str(e):
            raise MissingGroupError(group, file=filepath) from e
        raise IOFailureError(f"Error reading netCDF file: {e}", file=filepath) from e
    except ValueError as e:
        raise IOFailureError(f"Error reading netCDF file: {e}", file=filepath) from e


def write_netcdf(ds: xr.Dataset, filepath: str | Path, group: str | None = None, mode: str = "w") -> None:
    """Write `ds` to `filepath` (or to `group` within it).

    Use ``mode="a"`` to add groups to an existing file.
    """
    filepath = Path(filepath)
    try:
        ds.to_netcdf(filepath, mode=mode, group=group, engine="netcdf4")
    except (OSError, RuntimeError, ValueError) as e:
        raise IOFailureError(f"Error writing netCDF file: {e}", file=filepath) from e


def read_1d_variable(ds: xr.Dataset, varname: str, kinds: str) -> np.ndarray:
    """Return the values of a one-dimensional variable of one of the dtype `kinds`."""
    if varname not in ds.variables:
        raise MissingColumnError(varname)
    var = ds[varname]
    if var.ndim != 1:
        raise ShapeOrTypeError(f"Variable '{varname}' must be one-dimensional, got dims {var.dims}")
    if var.dtype.kind not in kinds:
        raise ShapeOrTypeError(f"Variable '{varname}' has unexpected type {var.dtype}")
    return var.values


def load_lite_file(filepath: str | Path, flag0_only: bool = False) -> InstrumentSoundings:
    """Load the sounding geolocation from a lite file.

    Parameters
    ----------
    filepath : str or Path
        Lite file with the `sounding_id`, `time`, `longitude`, `latitude` and
        `xco2_quality_flag` variables.
    flag0_only : bool, optional
        Only keep soundings with a quality flag of 0. Default is False.

    Returns
    -------
    InstrumentSoundings

    """
    filepath = Path(filepath)
    logger.debug("Loading soundings from %s", filepath)
    ds = open_netcdf(filepath)
    try:
        columns = {varname: read_1d_variable(ds, varname, kinds) for varname, kinds in LITE_FILE_VARIABLES.items()}
    except MatchupError as err:
        raise err.with_file(filepath)
    finally:
        ds.close()

    soundings = InstrumentSoundings.from_columns(
        filepath,
        sounding_id=columns["sounding_id"],
        timestamp=columns["time"],
        longitude=columns["longitude"],
        latitude=columns["latitude"],
        quality=columns["xco2_quality_flag"],
        flag0_only=flag0_only,
    )
    logger.info("Loaded %i soundings from %s", soundings.sounding_count(), filepath.name)
    return soundings


def load_lite_files(filepaths, flag0_only: bool = False) -> InstrumentSoundings:
    """Load and concatenate several lite files (in the order given)."""
    soundings = InstrumentSoundings()
    for filepath in filepaths:
        soundings = soundings.extend(load_lite_file(filepath, flag0_only=flag0_only))
    return soundings


def file_sha256(filepath: str | Path, block_size: int = 1 << 20) -> str:
    """Hex SHA-256 checksum of a file's contents."""
    filepath = Path(filepath)
    digest = hashlib.sha256()
    try:
        with open(filepath, "rb") as fobj:
            for block in iter(lambda: fobj.read(block_size), b""):
                digest.update(block)
    except OSError as e:
        raise IOFailureError(f"Unable to compute checksum: {e}", file=filepath) from e
    return digest.hexdigest()


def sounding_id_attrs(filepath: str | Path, default_long_name: str) -> dict[str, str]:
    """Units and long name of the `sounding_id` variable of a lite file.

    Missing attributes fall back to the standard sounding ID units and
    `default_long_name`.
    """
    filepath = Path(filepath)
    ds = open_netcdf(filepath)
    try:
        if "sounding_id" not in ds.variables:
            raise MissingColumnError("sounding_id", file=filepath)
        attrs = ds["sounding_id"].attrs
        return {
            "units": _str_attr(attrs, "units", SOUNDING_ID_UNITS, filepath),
            "long_name": _str_attr(attrs, "long_name", default_long_name, filepath),
        }
    finally:
        ds.close()


def _str_attr(attrs: dict, name: str, default: str, filepath: Path) -> str:
    value = attrs.get(name)
    if value is None:
        return default
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple, np.ndarray)) and all(isinstance(v, str) for v in value):
        return "\n".join(value)
    raise ShapeOrTypeError(
        f"Wrong type for attribute '{name}' on variable 'sounding_id': expected a string", file=filepath
    )


def save_full_matches(
    filepath: str | Path, a: InstrumentSoundings, b: InstrumentSoundings, matches: PairwiseMatches
) -> None:
    """Save the sounding locations and every pairwise match to one netCDF file.

    The file holds the groups "a_locations", "b_locations" and "matches". It
    can be large (100s of MB for a day of data); :func:`load_full_matches`
    reads the matches back so grouping can be rerun without matching again.
    """
    filepath = Path(filepath)
    logger.info("Saving full match netCDF file: %s", filepath)

    logger.debug("Saving A locations")
    write_netcdf(a.to_dataset(), filepath, group=A_LOCATIONS_GROUP, mode="w")
    logger.debug("Saving B locations")
    write_netcdf(b.to_dataset(), filepath, group=B_LOCATIONS_GROUP, mode="a")
    logger.debug("Saving matches")
    write_netcdf(matches.serialize(), filepath, group=MATCHES_GROUP, mode="a")

    logger.info("Done saving full match file %s", filepath)


def load_full_matches(filepath: str | Path) -> PairwiseMatches:
    """Read the matches saved by :func:`save_full_matches`."""
    filepath = Path(filepath)
    logger.info("Reading previous matched soundings from %s", filepath)
    ds = open_netcdf(filepath, group=MATCHES_GROUP)
    try:
        return PairwiseMatches.deserialize(ds)
    except MatchupError as err:
        raise err.with_file(filepath)
    finally:
        ds.close()
