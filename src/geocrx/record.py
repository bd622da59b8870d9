"""
epoch records shared by the RINEX grammar and the CRINEX codec
"""

from __future__ import annotations
import typing as T
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum

# seconds are F11.7 in every revision
TICKS = 10_000_000
# observation values are F14.3
OBS_DIGITS = 3


class EpochFlag(IntEnum):
    OK = 0
    POWER_FAILURE = 1
    ANTENNA_MOVING = 2
    NEW_SITE = 3
    HEADER_INFO = 4
    EXTERNAL_EVENT = 5
    CYCLE_SLIP = 6


class EpochTime(T.NamedTuple):
    year: int
    month: int
    day: int
    hour: int
    minute: int
    ticks: int  # seconds in units of 1e-7 s

    def to_datetime(self) -> datetime:
        second, rem = divmod(self.ticks, TICKS)
        # datetime can't hold 1e-7 s, leap second 60 is folded into 59
        return datetime(
            self.year,
            self.month,
            self.day,
            self.hour,
            self.minute,
            min(second, 59),
            rem // 10,
        )

    @classmethod
    def from_datetime(cls, t: datetime) -> EpochTime:
        return cls(t.year, t.month, t.day, t.hour, t.minute, t.second * TICKS + t.microsecond * 10)


class EpochKey(T.NamedTuple):
    time: EpochTime | None
    flag: EpochFlag = EpochFlag.OK

    @property
    def is_event(self) -> bool:
        return EpochFlag.ANTENNA_MOVING <= self.flag <= EpochFlag.EXTERNAL_EVENT


class Observation(T.NamedTuple):
    value: int | None  # scaled by 10**OBS_DIGITS
    lli: str = " "
    ssi: str = " "

    @property
    def flags(self) -> str:
        return self.lli + self.ssi


BLANK = Observation(None)


@dataclass
class Epoch:
    """
    one epoch record.

    Regular (flag 0, 1) and cycle slip (flag 6) epochs carry satellites and
    observations. Event epochs (flag 2-5) carry their follow lines verbatim.
    """

    key: EpochKey
    satellites: list[str] = field(default_factory=list)
    observations: dict[str, list[Observation]] = field(default_factory=dict)
    clock: int | None = None
    lines: list[str] = field(default_factory=list)

    @property
    def time(self) -> datetime | None:
        if self.key.time is None:
            return None
        return self.key.time.to_datetime()

    @property
    def flag(self) -> EpochFlag:
        return self.key.flag

    @property
    def count(self) -> int:
        """number announced on the epoch line: satellites, or follow records of an event"""
        if self.key.is_event:
            return len(self.lines)
        return len(self.satellites)


def parse_scaled(s: str, digits: int) -> int | None:
    """
    fixed point decimal text to integer, without going through float

    "  20000000.003" -> 20000000003 for digits=3
    blank -> None
    """
    s = s.strip()
    if not s:
        return None

    sign = 1
    if s[0] in "+-":
        if s[0] == "-":
            sign = -1
        s = s[1:]

    whole, _, frac = s.partition(".")
    if not (whole or frac) or len(frac) > digits:
        raise ValueError(f"not a {digits} decimal digit fixed point number: {s}")
    if not (whole.isdigit() or not whole) or not (frac.isdigit() or not frac):
        raise ValueError(f"not a fixed point number: {s}")

    return sign * (int(whole or "0") * 10**digits + int(frac.ljust(digits, "0")))


def format_scaled(v: int, digits: int, width: int) -> str:
    sign = "-" if v < 0 else ""
    whole, frac = divmod(abs(v), 10**digits)
    s = f"{sign}{whole}.{frac:0{digits}d}"
    if len(s) > width:
        raise ValueError(f"{s} does not fit F{width}.{digits}")
    return s.rjust(width)
