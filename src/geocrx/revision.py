"""
column layout of observation epochs per RINEX revision.

RINEX 2.11 Table A2, RINEX 3.04 Table A3, CRINEX 1.0 / 3.0.
Revision 4 observation epochs share the revision 3 layout.
"""

from __future__ import annotations
import typing as T


class Layout(T.NamedTuple):
    revision: int
    crinex: str  # CRINEX version written for this revision
    # epoch line
    time_format: str
    time_width: int  # columns up to the end of the seconds field
    time_blank: str  # what an event line without time starts with
    time_slices: tuple[slice, ...]  # year, month, day, hour, minute, seconds
    year_digits: int
    flag_col: int
    count_slice: slice
    # satellite list on the epoch line (None: leading each observation record)
    sats_per_line: int | None
    sat_col: int
    # observation records
    obs_per_line: int | None
    # receiver clock offset
    clock_slice: slice
    clock_digits: int
    clock_width: int
    # CRINEX epoch line
    init_marker: str
    crx_sat_col: int
    max_flag: int = 6

    @property
    def epoch_marker(self) -> str:
        return self.time_blank[:1].strip()

    def sat_lines(self, nsat: int) -> int:
        """number of epoch lines taken by the satellite list"""
        if self.sats_per_line is None:
            return 1
        return max(1, -(-nsat // self.sats_per_line))

    def obs_lines(self, nobs: int) -> int:
        """number of lines of one satellite's observation record"""
        if self.obs_per_line is None:
            return 1
        return max(1, -(-nobs // self.obs_per_line))


RINEX2 = Layout(
    revision=2,
    crinex="1.0",
    time_format=" {:02d} {:2d} {:2d} {:2d} {:2d}{}",
    time_width=26,
    time_blank=" " * 26,
    time_slices=(slice(1, 3), slice(4, 6), slice(7, 9), slice(10, 12), slice(13, 15), slice(15, 26)),
    year_digits=2,
    flag_col=28,
    count_slice=slice(29, 32),
    sats_per_line=12,
    sat_col=32,
    obs_per_line=5,
    clock_slice=slice(68, 80),
    clock_digits=9,
    clock_width=12,
    init_marker="&",
    crx_sat_col=32,
)

RINEX3 = Layout(
    revision=3,
    crinex="3.0",
    time_format="> {:4d} {:02d} {:02d} {:02d} {:02d}{}",
    time_width=29,
    time_blank=">" + " " * 28,
    time_slices=(slice(2, 6), slice(7, 9), slice(10, 12), slice(13, 15), slice(16, 18), slice(18, 29)),
    year_digits=4,
    flag_col=31,
    count_slice=slice(32, 35),
    sats_per_line=None,
    sat_col=3,
    obs_per_line=None,
    clock_slice=slice(41, 56),
    clock_digits=12,
    clock_width=15,
    init_marker=">",
    crx_sat_col=41,
)

RINEX4 = RINEX3._replace(revision=4)

LAYOUTS = {1: RINEX2, 2: RINEX2, 3: RINEX3, 4: RINEX4}

CRINEX_VERSIONS = {"1.0": 2, "3.0": 3, "3.1": 3}


def layout(version: float | int) -> Layout:
    try:
        return LAYOUTS[int(version)]
    except KeyError:
        raise ValueError(f"unsupported RINEX observation version {version}")
