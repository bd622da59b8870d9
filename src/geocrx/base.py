from __future__ import annotations
import typing as T
from pathlib import Path
from datetime import datetime, timedelta
import logging

import xarray

from .obs import readobs
from .rio import rinexinfo
from .utils import _tlim

# for NetCDF compression. too high slows down with little space savings.
ENC = {"zlib": True, "complevel": 1, "fletcher32": True}


def load(
    rinexfn: T.TextIO | str | Path,
    out: Path = None,
    use: set[str] = None,
    tlim: tuple[datetime, datetime] = None,
    useindicators: bool = False,
    meas: list[str] = None,
    verbose: bool = False,
    *,
    interval: float | int | timedelta = None,
    strict: bool = True,
) -> xarray.Dataset:
    """
    Reads Observation RINEX 2/3/4 and CRINEX 1/3

    Files / StringIO input may be plain ASCII text or compressed (including Hatanaka)
    """
    if verbose:
        logging.basicConfig(level=logging.INFO)

    if isinstance(rinexfn, (str, Path)):
        rinexfn = Path(rinexfn).expanduser()
    # %% determine if/where to write NetCDF4/HDF5 output
    outfn = None
    if out:
        out = Path(out).expanduser()
        if out.is_dir():
            outfn = out / (rinexfn.name + ".nc")  # not with_suffix to keep unique RINEX 2 filenames
        elif out.suffix == ".nc":
            outfn = out
        else:
            raise ValueError(f"not sure what output is wanted: {out}")
    # %% main program
    tlim = _tlim(tlim)
    if tlim is not None:
        if tlim[1] < tlim[0]:
            raise ValueError("stop time must be after start time")

    info = rinexinfo(rinexfn)

    if "obs" not in info["rinextype"]:
        raise ValueError(f"What kind of RINEX file is: {rinexfn}")

    return rinexobs(
        rinexfn,
        outfn,
        use=use,
        tlim=tlim,
        useindicators=useindicators,
        meas=meas,
        interval=interval,
        strict=strict,
    )


def batch_convert(
    path: Path,
    glob: str,
    out: Path,
    use: set[str] = None,
    tlim: tuple[datetime, datetime] = None,
    useindicators: bool = False,
    meas: list[str] = None,
    verbose: bool = False,
    *,
    strict: bool = True,
):
    path = Path(path).expanduser()

    flist = (f for f in path.glob(glob) if f.is_file())

    for fn in flist:
        try:
            load(
                fn,
                out,
                use=use,
                tlim=tlim,
                useindicators=useindicators,
                meas=meas,
                verbose=verbose,
                strict=strict,
            )
        except ValueError as e:
            logging.error(f"{fn.name}: {e}")


def rinexobs(
    fn: T.TextIO | str | Path,
    outfn: Path = None,
    use: set[str] = None,
    group: str = "OBS",
    tlim: tuple[datetime, datetime] = None,
    useindicators: bool = False,
    meas: list[str] = None,
    *,
    interval: float | int | timedelta = None,
    strict: bool = True,
) -> xarray.Dataset:
    """
    Read Observation RINEX 2/3/4 in ASCII or GZIP (or Hatanaka)
    """

    if isinstance(fn, (str, Path)):
        fn = Path(fn).expanduser()
        # %% NetCDF4
        if fn.suffix == ".nc":
            try:
                return xarray.open_dataset(fn, group=group)
            except OSError as e:
                raise LookupError(f"Group {group} not found in {fn}   {e}")

    tlim = _tlim(tlim)

    obs = readobs(
        fn,
        use,
        tlim=tlim,
        useindicators=useindicators,
        meas=meas,
        interval=interval,
        strict=strict,
    )

    # %% optional output write
    if outfn:
        outfn = Path(outfn).expanduser()
        wmode = _groupexists(outfn, group)

        enc = {k: ENC for k in obs.data_vars}
        obs.to_netcdf(outfn, group=group, mode=wmode, encoding=enc)

    return obs


def _groupexists(fn: Path, group: str) -> str:
    logging.info(f"saving {group}: {fn}")
    if not fn.is_file():
        return "w"

    # be sure there isn't already OBS in it
    try:
        xarray.open_dataset(fn, group=group).close()
    except OSError:
        return "a"

    raise ValueError(f"{group} already in {fn}")
