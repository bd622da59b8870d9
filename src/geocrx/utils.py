from __future__ import annotations
import typing as T
from pathlib import Path
from datetime import datetime, timedelta
import io
import logging

from dateutil.parser import parse
import numpy as np
import xarray

from .hatanaka import epochs
from .header import obsheader
from .record import EpochFlag
from .rio import rinexinfo, opener


def globber(path: Path, glob: list[str]) -> list[Path]:
    path = Path(path).expanduser()
    if path.is_file():
        return [path]

    if isinstance(glob, str):
        glob = [glob]

    flist: list[Path] = []
    for g in glob:
        flist += [f for f in path.glob(g) if f.is_file()]

    return flist


def gettime(fn: T.TextIO | Path) -> np.ndarray:
    """
    get times in Observation RINEX 2/3/4 or CRINEX file
    Note: in header,
        * TIME OF FIRST OBS is mandatory
        * TIME OF LAST OBS is optional

    Event and cycle slip epochs are not counted.

    Parameters
    ----------

    fn : pathlib.Path or io.StringIO
        RINEX file or stream to process

    Returns
    -------

    times : numpy.ndarray of numpy.datetime64
        1-D vector of epochs in file
    """
    info = rinexinfo(fn)
    if info["rinextype"] != "obs":
        raise ValueError(f"per-observation time is in OBS files, not {info}  {fn}")

    times = np.array(
        [e.time for e in epochs(fn, strict=False) if is_data(e.key.flag)],
        dtype="datetime64[us]",
    )

    check_unique_times(times)

    return times


def is_data(flag: EpochFlag) -> bool:
    """epoch carries observations (OK or after power failure)"""
    return flag <= EpochFlag.POWER_FAILURE


def rinexheader(fn: T.TextIO | Path) -> dict[T.Hashable, T.Any]:
    """
    retrieve Observation RINEX 2/3/4 or CRINEX 1/3 header as unparsed dict()
    """
    if isinstance(fn, (str, Path)):
        fn = Path(fn).expanduser()

    if isinstance(fn, Path) and fn.suffix == ".nc":
        return rinexinfo(fn)
    elif isinstance(fn, Path):
        with opener(fn, header=True) as f:
            return rinexheader(f)
    elif isinstance(fn, io.StringIO):
        fn.seek(0)
    elif isinstance(fn, io.TextIOWrapper):
        pass
    else:
        raise TypeError(f"unknown RINEX filetype {type(fn)}")

    hdr: dict[T.Hashable, T.Any] = obsheader(fn)
    hdr["rinextype"] = "obs"

    return hdr


def check_unique_times(times: np.ndarray) -> bool:
    Nuniq = np.unique(times).size
    Ntimes = times.size

    ok = Ntimes == Nuniq

    if not ok:
        logging.error(f"only {Nuniq} times out of {Ntimes} are unique times")

    return ok


def check_time_interval(interval: float | int | timedelta | None) -> timedelta | None:
    if isinstance(interval, (float, int)):
        if interval < 0:
            raise ValueError("time interval must be non-negative")
        interval = timedelta(seconds=interval)
    elif isinstance(interval, timedelta):
        pass
    elif interval is None:
        pass
    else:
        raise TypeError("expect time interval in seconds (float,int) or datetime.timedelta")

    return interval


def determine_time_system(header: dict[T.Hashable, T.Any]) -> str:
    """Determine which time system is used in an observation file."""
    try:
        file_type = header["RINEX VERSION / TYPE"][40]
    except KeyError:
        file_type = header["systems"]

    if file_type == "G":
        ts = "GPS"
    elif file_type == "R":
        ts = "GLO"
    elif file_type == "E":
        ts = "GAL"
    elif file_type == "J":
        ts = "QZS"
    elif file_type == "C":
        ts = "BDT"
    elif file_type == "I":
        ts = "IRN"
    elif file_type == "M":
        # mixed: the time system must be given with TIME OF FIRST OBS
        ts = header["TIME OF FIRST OBS"][48:51].strip()
    else:
        raise ValueError(f"unknown file type {file_type}")

    return ts


def _tlim(tlim: tuple[datetime, datetime] | None = None) -> tuple[datetime, datetime] | None:
    if tlim is None:
        pass
    elif len(tlim) == 2 and isinstance(tlim[0], datetime):
        pass
    elif len(tlim) == 2 and isinstance(tlim[0], str):
        tlim = (parse(tlim[0]), parse(tlim[1]))
    else:
        raise ValueError(f"Not sure what time limits are: {tlim}")

    return tlim


def to_datetime(times: xarray.DataArray):
    """convert to datetime.datetime"""
    if not isinstance(times, xarray.DataArray):
        return times

    t = times.values.astype("datetime64[us]").astype(datetime)

    if not isinstance(t, datetime):
        t = t.squeeze()[()]  # might still be array, but squeezed at least

    return t
