from __future__ import annotations
import typing as T
from pathlib import Path
from datetime import datetime, timedelta
import logging

import numpy as np
import xarray

from .hatanaka import reader
from .record import OBS_DIGITS, Observation
from .rio import opener
from .utils import check_time_interval, determine_time_system, is_data


def readobs(
    fn: T.TextIO | Path,
    use: set[str] = None,
    tlim: tuple[datetime, datetime] = None,
    useindicators: bool = False,
    meas: list[str] = None,
    *,
    interval: float | int | timedelta = None,
    strict: bool = True,
) -> xarray.Dataset:
    """
    process Observation RINEX 2/3/4 or CRINEX data

    fn: RINEX OBS filename or stream
    use: 'G'  or ['G', 'R'] or similar

    tlim: read between these time bounds
    useindicators: SSI, LLI are output
    meas:  'L1C'  or  ['L1C', 'C1C'] or similar, matched as prefix

    interval: allows decimating file read by time e.g. every 5 seconds.
    strict: False to log and skip malformed epochs
    """

    interval = check_time_interval(interval)

    if isinstance(use, str):
        use = {use}

    if isinstance(meas, str):
        meas = [meas]

    if not meas or not meas[0].strip():
        meas = None

    if tlim is not None and not isinstance(tlim[0], datetime):
        raise TypeError("time bounds are specified as datetime.datetime")

    times: list[datetime] = []
    rows: list[dict[str, list[Observation]]] = []
    clocks: list[int | None] = []
    last = None
    # %% loop
    with opener(fn, header=True) as f:
        rdr = reader(f, strict)
        hdr = rdr.header
        session = rdr.session

        for epoch in rdr:
            if not is_data(epoch.flag):
                logging.debug(f"epoch flag {int(epoch.flag)} at {epoch.time} is not data")
                continue

            t = epoch.time
            if tlim is not None:
                if t < tlim[0]:
                    continue
                elif t > tlim[1]:
                    break

            if interval is not None and last is not None and t - last < interval:
                continue
            last = t

            times.append(t)
            rows.append({sv: o for sv, o in epoch.observations.items() if use is None or sv[0] in use})
            clocks.append(epoch.clock)

    # %% arrange
    table = session.table
    svs = sorted({sv for r in rows for sv in r})
    isv = {sv: j for j, sv in enumerate(svs)}

    codes: list[str] = []
    for system in sorted({sv[0] for sv in svs}):
        codes += [c for c in table.codes(system) if c not in codes]
    if meas is not None:
        codes = [c for c in codes if any(c.startswith(m) for m in meas)]

    scale = 10**OBS_DIGITS
    shape = (len(times), len(svs))
    data = {c: np.full(shape, np.nan) for c in codes}
    if useindicators:
        lli = {c: np.full(shape, np.nan) for c in codes}
        ssi = {c: np.full(shape, np.nan) for c in codes}

    for i, r in enumerate(rows):
        for sv, obs in r.items():
            j = isv[sv]
            for c, o in zip(table.codes(sv[0]), obs):
                if c not in data or o.value is None:
                    continue
                data[c][i, j] = o.value / scale
                if useindicators:
                    if o.lli.isdigit():
                        lli[c][i, j] = int(o.lli)
                    if o.ssi.isdigit():
                        ssi[c][i, j] = int(o.ssi)

    variables = {c: (("time", "sv"), v) for c, v in data.items()}
    if useindicators:
        variables.update({f"{c}lli": (("time", "sv"), v) for c, v in lli.items()})
        variables.update({f"{c}ssi": (("time", "sv"), v) for c, v in ssi.items()})

    if any(c is not None for c in clocks):
        cscale = 10**session.layout.clock_digits
        variables["clock_offset"] = (
            ("time",),
            np.array([np.nan if c is None else c / cscale for c in clocks]),
        )

    obs = xarray.Dataset(
        variables,
        coords={"time": np.array(times, dtype="datetime64[ns]"), "sv": svs},
    )

    # %% attributes
    obs.attrs["version"] = hdr["version"]
    obs.attrs["rinextype"] = "obs"
    if "crinex" in hdr:
        obs.attrs["crinex"] = hdr["crinex"]
    if "interval" in hdr:
        obs.attrs["interval"] = hdr["interval"]
    if "position" in hdr:
        obs.attrs["position"] = hdr["position"]
    if isinstance(fn, Path):
        obs.attrs["filename"] = fn.name

    try:
        obs.attrs["time_system"] = determine_time_system(hdr)
    except (KeyError, ValueError) as e:
        logging.warning(f"time system unknown: {e}")

    return obs
