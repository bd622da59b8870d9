"""
fixed-column epoch grammar of Observation RINEX 2/3/4 and of the CRINEX
epoch line.

Every function takes the revision Layout explicitly; nothing here keeps state.
GrammarError raised here carries no line number, readers attach it.
"""

from __future__ import annotations
import typing as T

from .errors import GrammarError
from .header import ObservableTable
from .record import (
    OBS_DIGITS,
    Epoch,
    EpochFlag,
    EpochKey,
    EpochTime,
    Observation,
    format_scaled,
    parse_scaled,
)
from .revision import Layout

Lf = 14  # F14.3 value
Lfield = Lf + 2  # value, LLI, SSI


# %% time and epoch line
def parse_time(ln: str, layout: Layout) -> EpochTime | None:
    """epoch time, None if the time fields are blank (allowed for events)"""
    if not ln[len(layout.epoch_marker) : layout.time_width].strip():
        return None

    ys, ms, ds, hs, mins, ss = layout.time_slices
    try:
        year = int(ln[ys])
        if layout.year_digits == 2:
            year += 2000 if year < 80 else 1900

        ticks = parse_scaled(ln[ss], 7)
        if ticks is None:
            raise ValueError("seconds missing")

        t = EpochTime(year, int(ln[ms]), int(ln[ds]), int(ln[hs]), int(ln[mins]), ticks)
        t.to_datetime()  # calendar check
    except ValueError as e:
        raise GrammarError(f"bad epoch time {ln[: layout.time_width]!r}: {e}", revision=layout.revision)

    return t


def format_time(t: EpochTime | None, layout: Layout) -> str:
    if t is None:
        return layout.time_blank

    year = t.year % 100 if layout.year_digits == 2 else t.year

    return layout.time_format.format(year, t.month, t.day, t.hour, t.minute, format_scaled(t.ticks, 7, 11))


def parse_epoch_line(ln: str, layout: Layout) -> tuple[EpochKey, int]:
    """
    Returns
    -------

    key: EpochKey
    count: int
        number of satellites, or of follow records for event flags 2-5
    """
    if layout.epoch_marker and not ln.startswith(layout.epoch_marker):
        raise GrammarError(f'epoch line must begin with "{layout.epoch_marker}"', revision=layout.revision)

    if len(ln) <= layout.flag_col:
        raise GrammarError(f"epoch line truncated: {ln!r}", revision=layout.revision)

    c = ln[layout.flag_col]
    if not c.isdigit() or int(c) > layout.max_flag:
        raise GrammarError(f"unknown epoch flag {c!r}", revision=layout.revision)
    flag = EpochFlag(int(c))

    cnt = ln[layout.count_slice]
    try:
        count = int(cnt) if cnt.strip() else 0
    except ValueError:
        raise GrammarError(f"bad satellite / record count {cnt!r}", revision=layout.revision)

    time = parse_time(ln, layout)
    key = EpochKey(time, flag)
    if time is None and not key.is_event:
        raise GrammarError(f"epoch flag {flag} needs an epoch time", revision=layout.revision)

    return key, count


def format_epoch_line(key: EpochKey, count: int, layout: Layout) -> str:
    """epoch line up to and including the satellite / record count"""
    if not 0 <= count <= 999:
        raise GrammarError(f"{count} does not fit the count field", revision=layout.revision)

    return f"{format_time(key.time, layout)}  {int(key.flag):1d}{count:3d}"


# %% satellites
def satellite_id(s: str) -> str:
    """
    "G 5", " 5" and "G05" are all "G05"; blank system is GPS (RINEX 2)
    """
    system = s[:1].strip() or "G"
    prn = s[1:3].strip()
    if not system.isalpha() or not prn.isdigit():
        raise GrammarError(f"bad satellite identifier {s!r}")

    return f"{system}{int(prn):02d}"


def parse_satellites(text: str, count: int) -> list[str]:
    if len(text.rstrip()) > 3 * count:
        raise GrammarError(f"more satellites listed than the {count} announced")
    if len(text) < 3 * count:
        raise GrammarError(f"{count} satellites announced, list has only {len(text) // 3}")

    return [satellite_id(text[i * 3 : i * 3 + 3]) for i in range(count)]


# %% receiver clock offset
def parse_clock(ln: str, layout: Layout) -> int | None:
    try:
        return parse_scaled(ln[layout.clock_slice], layout.clock_digits)
    except ValueError as e:
        raise GrammarError(f"bad receiver clock offset: {e}", revision=layout.revision)


def format_clock(clock: int, layout: Layout) -> str:
    try:
        return format_scaled(clock, layout.clock_digits, layout.clock_width)
    except ValueError as e:
        raise GrammarError(str(e), revision=layout.revision)


# %% observation records
def parse_record(text: str, nobs: int) -> list[Observation]:
    """
    one satellite's observations, text concatenated without the satellite id

    Each observation is F14.3 value, LLI (I1) and SSI (I1). Missing trailing
    fields are blank.
    """
    if len(text.rstrip()) > nobs * Lfield:
        raise GrammarError(f"more than {nobs} observations in record: {text.rstrip()!r}")

    text = text.ljust(nobs * Lfield)

    obs = []
    for i in range(nobs):
        v = text[i * Lfield : (i + 1) * Lfield]
        try:
            value = parse_scaled(v[:Lf], OBS_DIGITS)
        except ValueError as e:
            raise GrammarError(f"observation {i + 1}: {e}")
        obs.append(Observation(value, v[Lf], v[Lf + 1]))

    return obs


def format_fields(obs: T.Sequence[Observation]) -> list[str]:
    fields = []
    for o in obs:
        if o.value is None:
            v = " " * Lf
        else:
            try:
                v = format_scaled(o.value, OBS_DIGITS, Lf)
            except ValueError as e:
                raise GrammarError(str(e))
        fields.append(f"{v}{o.lli or ' '}{o.ssi or ' '}")

    return fields


def format_record(obs: T.Sequence[Observation], layout: Layout) -> list[str]:
    fields = format_fields(obs)

    if layout.obs_per_line is None:
        return ["".join(fields).rstrip()]

    n = layout.obs_per_line
    return ["".join(fields[i : i + n]).rstrip() for i in range(0, max(len(fields), 1), n)]


# %% whole epoch blocks
def record_lines(layout: Layout, table: ObservableTable) -> int:
    """lines per satellite record; RINEX 2 wraps 5 observations per line"""
    if layout.obs_per_line is None:
        return 1

    return layout.obs_lines(len(table.default))


def epoch_block_size(ln: str, layout: Layout, table: ObservableTable) -> int:
    """number of lines of the RINEX epoch block starting with line ln"""
    key, count = parse_epoch_line(ln, layout)

    if key.is_event:
        return 1 + count

    if layout.sats_per_line is None:
        return 1 + count

    return layout.sat_lines(count) + count * record_lines(layout, table)


def parse_records(
    body: T.Sequence[str],
    layout: Layout,
    table: ObservableTable,
    sats: T.Sequence[str] = None,
) -> tuple[list[str], dict[str, list[Observation]]]:
    """
    observation records of an epoch.

    sats: satellites from the epoch line (RINEX 2, CRINEX). For RINEX 3/4
          the records name their satellite; when sats is given they must agree.
    """
    observations: dict[str, list[Observation]] = {}

    if layout.obs_per_line is not None:
        if sats is None:
            raise GrammarError("RINEX 2 records need the satellite list", revision=layout.revision)

        nobs = len(table.default)
        Nl_sv = record_lines(layout, table)
        width = Lfield * layout.obs_per_line
        if len(body) != len(sats) * Nl_sv:
            raise GrammarError(f"{len(sats)} satellites need {len(sats) * Nl_sv} record lines, got {len(body)}")

        for i, sv in enumerate(sats):
            rec = body[i * Nl_sv : (i + 1) * Nl_sv]
            for ln in rec:
                if len(ln.rstrip()) > width:
                    raise GrammarError(f"record line wider than {width} columns: {ln!r}")
            observations[sv] = parse_record("".join(ln.ljust(width) for ln in rec), nobs)

        return list(sats), observations

    if sats is not None and len(body) != len(sats):
        raise GrammarError(f"{len(sats)} satellites announced, got {len(body)} records")

    found = []
    for i, ln in enumerate(body):
        sv = satellite_id(ln[:3])
        if sats is not None and sv != sats[i]:
            raise GrammarError(f"record of {sv} where {sats[i]} was expected")
        try:
            nobs = table.count(sv[0])
        except KeyError as e:
            raise GrammarError(str(e))
        found.append(sv)
        observations[sv] = parse_record(ln[3:], nobs)

    return found, observations


def format_records(epoch: Epoch, layout: Layout) -> list[str]:
    lines = []
    for sv in epoch.satellites:
        rec = format_record(epoch.observations[sv], layout)
        if layout.obs_per_line is None:
            lines.append((sv + rec[0]).rstrip())
        else:
            lines += rec

    return lines


def parse_epoch(lines: T.Sequence[str], layout: Layout, table: ObservableTable) -> Epoch:
    """structured epoch from one complete RINEX epoch block"""
    lines = [ln.rstrip("\r\n") for ln in lines]
    key, count = parse_epoch_line(lines[0], layout)

    if key.is_event:
        if len(lines) != 1 + count:
            raise GrammarError(f"event announces {count} records, got {len(lines) - 1}", revision=layout.revision)
        return Epoch(key, lines=lines[1:])

    clock = parse_clock(lines[0], layout)

    try:
        if layout.sats_per_line is not None:
            # satellites on the epoch line and its continuation lines
            Nl = layout.sat_lines(count)
            width = 3 * layout.sats_per_line
            for ln in lines[1:Nl]:
                if ln[: layout.sat_col].strip():
                    raise GrammarError(f"satellite continuation line expected: {ln!r}")
            text = "".join(ln[layout.sat_col : layout.sat_col + width].ljust(width) for ln in lines[:Nl])
            sats = parse_satellites(text.rstrip().ljust(3 * count), count)
            sats, observations = parse_records(lines[Nl:], layout, table, sats)
        else:
            if len(lines) - 1 != count:
                raise GrammarError(f"{count} satellites announced, got {len(lines) - 1} records")
            sats, observations = parse_records(lines[1:], layout, table)
    except GrammarError as e:
        e.revision = layout.revision
        raise

    return Epoch(key, sats, observations, clock)


def format_epoch(epoch: Epoch, layout: Layout) -> list[str]:
    """RINEX text lines of one epoch, exact inverse of parse_epoch()"""
    head = format_epoch_line(epoch.key, epoch.count, layout)

    if epoch.key.is_event:
        return [head] + list(epoch.lines)

    lines = []
    if layout.sats_per_line is not None:
        n = layout.sats_per_line
        chunks = ["".join(epoch.satellites[i : i + n]) for i in range(0, len(epoch.satellites), n)] or [""]
        first = head + chunks[0]
        if epoch.clock is not None:
            first = first.ljust(layout.clock_slice.start) + format_clock(epoch.clock, layout)
        lines.append(first)
        lines += [" " * layout.sat_col + c for c in chunks[1:]]
    else:
        if epoch.clock is not None:
            head = head.ljust(layout.clock_slice.start) + format_clock(epoch.clock, layout)
        lines.append(head)

    return lines + format_records(epoch, layout)


# %% CRINEX epoch line
def format_crinex_epoch(key: EpochKey, satellites: T.Sequence[str], layout: Layout, count: int = None) -> str:
    """
    CRINEX epoch line: all satellites on one line, no clock.
    Event lines carry their record count instead of satellites.
    """
    if key.is_event:
        return format_epoch_line(key, count or 0, layout)

    head = format_epoch_line(key, len(satellites), layout)

    return head.ljust(layout.crx_sat_col) + "".join(satellites)


def initialized(ln: str, layout: Layout) -> str:
    """CRINEX epoch line marked as written in full"""
    if ln.startswith(layout.init_marker):
        return ln

    return layout.init_marker + ln[1:]


def parse_crinex_epoch(ln: str, layout: Layout) -> tuple[EpochKey, int, list[str]]:
    """
    ln: full (repaired) CRINEX epoch line, without the init marker of RINEX 2
    """
    key, count = parse_epoch_line(ln, layout)

    if key.is_event:
        return key, count, []

    sats = parse_satellites(ln[layout.crx_sat_col :].ljust(3 * count), count)

    return key, count, sats
