"""
Hatanaka compact RINEX (CRINEX) to and from Observation RINEX
"""

from __future__ import annotations
import typing as T
import io
import re
from pathlib import Path

from . import grammar
from .codec import CrinexDecoder, CrinexEncoder
from .diff import MAX_ORDER
from .record import Epoch
from .rinex import RinexReader


def _lines(src: T.TextIO | Path | str) -> T.Iterable[str]:
    """
    str is file content, not a filename
    """
    if isinstance(src, str):
        return io.StringIO(src)

    return src


def reader(f: T.TextIO, strict: bool = True) -> CrinexDecoder | RinexReader:
    """epoch reader suited to the stream, rewound to its start"""
    from .rio import first_nonblank_line, rinex_version

    f.seek(0)
    _, is_crinex = rinex_version(first_nonblank_line(f))
    f.seek(0)

    if is_crinex:
        return CrinexDecoder(f, strict=strict)

    return RinexReader(f, strict=strict)


def epochs(fn: T.TextIO | Path, strict: bool = True) -> T.Iterator[Epoch]:
    """
    epochs of an Observation RINEX or CRINEX file, read lazily

    Parameters
    ----------

    fn: pathlib.Path or io.StringIO
        file, possibly gzip / bzip2 / zip / LZW compressed
    strict: bool
        False: log and skip malformed epochs
    """
    from .rio import opener

    with opener(fn, header=True) as f:
        yield from reader(f, strict)


def crx2rnx(crx: T.TextIO | Path | str, *, strict: bool = True, max_order: int = MAX_ORDER) -> str:
    """
    decompress CRINEX to Observation RINEX text

    Parameters
    ----------

    crx: str, io.TextIO or pathlib.Path
        CRINEX text, stream or file
    strict: bool
        False: log damaged epochs and resume at the next complete one
    max_order: int
        highest differencing order accepted in restart markers
    """
    if isinstance(crx, Path):
        from .rio import opener

        with opener(crx, header=True) as f:
            return crx2rnx(f, strict=strict, max_order=max_order)

    dec = CrinexDecoder(_lines(crx), max_order=max_order, strict=strict)

    out = list(dec.header["lines"])
    L = dec.session.layout
    for epoch in dec:
        out += grammar.format_epoch(epoch, L)

    return "\n".join(out) + "\n"


def rnx2crx(
    rnx: T.TextIO | Path | str,
    *,
    max_order: int = 3,
    reset_every: int = 0,
    reset_after_gap: bool = True,
    strict: bool = True,
) -> str:
    """
    compress Observation RINEX to CRINEX text

    Parameters
    ----------

    rnx: str, io.TextIO or pathlib.Path
        Observation RINEX text, stream or file
    max_order: int
        differencing order
    reset_every: int
        write every n-th epoch in full (0: only the first)
    reset_after_gap: bool
        restart observables that were missing in the previous epoch
    strict: bool
        False: log and drop malformed epochs of the input
    """
    if isinstance(rnx, Path):
        from .rio import opener

        with opener(rnx, header=True) as f:
            return rnx2crx(
                f,
                max_order=max_order,
                reset_every=reset_every,
                reset_after_gap=reset_after_gap,
                strict=strict,
            )

    rdr = RinexReader(_lines(rnx), strict=strict)

    enc = CrinexEncoder(
        rdr.header,
        max_order=max_order,
        reset_every=reset_every,
        reset_after_gap=reset_after_gap,
    )

    out = enc.header_lines()
    for epoch in rdr:
        out += enc.encode(epoch)
    enc.close()

    return "\n".join(out) + "\n"


# %% file naming
def rinex_name(fn: Path) -> Path:
    """
    name of the decompressed file:
    ABC00XYZ_R_20190010000_01D_30S_MO.crx -> .rnx,  york0440.15d -> york0440.15o
    """
    name = re.sub(r"\.(gz|bz2|zip|Z)$", "", fn.name)

    if name.lower().endswith(".crx"):
        return fn.with_name(name[:-4] + ".rnx")

    m = re.fullmatch(r"(.+\.\d\d)([dD])", name)
    if m:
        return fn.with_name(m.group(1) + ("o" if m.group(2) == "d" else "O"))

    return fn.with_name(name + ".rnx")


def crinex_name(fn: Path) -> Path:
    """inverse of rinex_name()"""
    name = re.sub(r"\.(gz|bz2|zip|Z)$", "", fn.name)

    if name.lower().endswith(".rnx"):
        return fn.with_name(name[:-4] + ".crx")

    m = re.fullmatch(r"(.+\.\d\d)([oO])", name)
    if m:
        return fn.with_name(m.group(1) + ("d" if m.group(2) == "o" else "D"))

    return fn.with_name(name + ".crx")
