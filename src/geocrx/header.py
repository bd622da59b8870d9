"""
observation (C)RINEX header, only as far as the epoch codec needs it:
format revision and the ordered observable codes per constellation.
"""

from __future__ import annotations
import typing as T
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
import logging

from .errors import GrammarError, TruncationError
from .revision import CRINEX_VERSIONS

CRINEX_TYPE = "COMPACT RINEX FORMAT"


@dataclass(frozen=True)
class ObservableTable:
    """
    observable codes per constellation, in header order.

    RINEX 2 has a single list for every constellation: ``default``.
    """

    fields: T.Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    default: tuple[str, ...] = ()

    def codes(self, system: str) -> tuple[str, ...]:
        try:
            return self.fields[system]
        except KeyError:
            if self.default:
                return self.default
            raise KeyError(f"no observation types declared for system {system}")

    def count(self, system: str) -> int:
        return len(self.codes(system))

    @property
    def systems(self) -> list[str]:
        return list(self.fields)

    @classmethod
    def from_header(cls, hdr: dict[str, T.Any]) -> ObservableTable:
        fields = hdr.get("fields")
        if not fields:
            raise GrammarError("no observation types in header")

        if isinstance(fields, dict):
            return cls({k: tuple(v) for k, v in fields.items()})

        return cls(default=tuple(fields))


def obsheader(f: T.Iterable[str] | Path | str) -> dict[str, T.Any]:
    """
    read an Observation RINEX 2/3/4 header, optionally preceded by the two
    CRINEX lines. Consumes the iterable up to and including END OF HEADER.

    Returns
    -------

    hdr: dict
        raw "LABEL": content entries plus
        version, revision, systems, fields, Fmax, lines, and when present
        crinex, crinex_program, crinex_date, interval, t0, position
    """
    if isinstance(f, (str, Path)):
        from .rio import opener

        with opener(f, header=True) as h:
            return obsheader(h)

    hdr: dict[str, T.Any] = {"lines": []}
    fields: dict[str, list[str]] = {}
    obs2: list[str] = []
    Nobs: dict[str, int] = {}
    last_sys = ""

    for ln in f:
        ln = ln.rstrip("\r\n")
        if not hdr["lines"] and not ln.strip():
            continue

        h = ln[60:80].strip()
        c = ln[:60]

        if h == "CRINEX VERS   / TYPE":
            if c[20:40].strip() != CRINEX_TYPE:
                raise ValueError(f"not a Compact RINEX file: {ln}")
            hdr["crinex"] = c[:20].strip()
            if hdr["crinex"] not in CRINEX_VERSIONS:
                raise ValueError(f"unsupported CRINEX version {hdr['crinex']}")
            continue
        elif h == "CRINEX PROG / DATE":
            hdr["crinex_program"] = c[:40].strip()
            hdr["crinex_date"] = c[40:60].strip()
            continue

        if not hdr["lines"] and h != "RINEX VERSION / TYPE":
            raise ValueError("The first line of the RINEX file header is corrupted.")

        hdr["lines"].append(ln)

        if "END OF HEADER" in h:
            break

        if h == "RINEX VERSION / TYPE":
            try:
                hdr["version"] = float(c[:9])
            except ValueError as err:
                raise ValueError(f"Could not determine file version from {c[:9]}   {err}")
            if c[20] != "O":
                raise ValueError(f"not an Observation RINEX file, type {c[20]}")
            hdr["filetype"] = c[20]
            hdr["systems"] = c[40].strip() or "G"
        # %% measurement types
        elif h == "# / TYPES OF OBSERV":
            if not obs2:
                Nobs[""] = int(c[:6])
            obs2 += c[6:60].split()
        elif h == "SYS / # / OBS TYPES":
            if c[0].strip():
                last_sys = c[0]
                Nobs[last_sys] = int(c[3:6])
                fields[last_sys] = c[7:60].split()
            else:  # continuation line, 13 per line
                fields[last_sys] += c[7:60].split()
        elif h not in hdr:
            hdr[h] = c
        else:
            hdr[h] += " " + c
    else:
        raise TruncationError("END OF HEADER not found")

    if "version" not in hdr:
        raise ValueError("RINEX VERSION / TYPE missing")

    hdr["revision"] = 2 if hdr["version"] < 3 else int(hdr["version"])

    if hdr["revision"] == 2:
        if len(obs2) != Nobs.get("", 0):
            raise GrammarError(
                f"header declares {Nobs.get('', 0)} observation types, found {len(obs2)}",
                revision=2,
            )
        hdr["fields"] = obs2
        hdr["Fmax"] = len(obs2)
    else:
        for k, v in fields.items():
            if len(v) != Nobs[k]:
                raise GrammarError(
                    f"system {k} declares {Nobs[k]} observation types, found {len(v)}",
                    revision=hdr["revision"],
                )
        hdr["fields"] = fields
        hdr["Fmax"] = max(map(len, fields.values()), default=0)

    # %% optional values
    try:
        hdr["position"] = [float(j) for j in hdr["APPROX POSITION XYZ"].split()][:3]
    except (KeyError, ValueError):
        pass

    try:
        hdr["t0"] = _timehdr(hdr["TIME OF FIRST OBS"])
    except (KeyError, ValueError):
        pass

    try:
        hdr["interval"] = float(hdr["INTERVAL"][:10])
    except (KeyError, ValueError):
        pass

    logging.debug(f"RINEX {hdr['version']} header, observables {hdr['fields']}")

    return hdr


def crinex_lines(crinex: str, program: str, date: datetime | str) -> list[str]:
    """the two lines a CRINEX file starts with"""
    if isinstance(date, datetime):
        date = date.strftime("%d-%b-%y %H:%M")

    return [
        f"{crinex:<20}{CRINEX_TYPE:<40}CRINEX VERS   / TYPE",
        f"{program[:40]:<40}{date[:20]:<20}CRINEX PROG / DATE",
    ]


def _timehdr(ln: str) -> datetime:
    """
    handles malformed header dates
    NOTE: must do second=int(float()) due to non-conforming files that don't line up decimal point.
    """

    try:
        second = int(float(ln[30:36]))
    except ValueError:
        second = 0

    if not 0 <= second <= 59:
        second = 0

    try:
        usec = int(float(ln[30:43]) % 1 * 1000000)
    except ValueError:
        usec = 0

    if not 0 <= usec <= 999999:
        usec = 0

    return datetime(
        year=int(ln[:6]),
        month=int(ln[6:12]),
        day=int(ln[12:18]),
        hour=int(ln[18:24]),
        minute=int(ln[24:30]),
        second=second,
        microsecond=usec,
    )
