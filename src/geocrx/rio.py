from __future__ import annotations
import typing as T
import gzip
import bz2
import zipfile
from pathlib import Path
from contextlib import contextmanager
import io
import logging

import xarray

from .hatanaka import crx2rnx

try:
    from ncompress import decompress as unlzw
except ImportError:
    logging.info("ncompress unlzw not available")
    unlzw = None


@contextmanager
def opener(fn: T.TextIO | Path, header: bool = False) -> T.Iterator[T.TextIO]:
    """
    provides file handle for regular ASCII or gzip / bzip2 / zip / LZW files transparently.
    CRINEX content is decompressed to Observation RINEX unless header=True,
    which gives the raw (CRINEX) text.
    """

    if isinstance(fn, str):
        fn = Path(fn).expanduser()

    if isinstance(fn, io.StringIO):
        fn.seek(0)
        yield _decrx(fn, header)
    elif isinstance(fn, Path):
        # need to have this check for Windows
        if not fn.is_file():
            raise FileNotFoundError(fn)

        finf = fn.stat()
        if finf.st_size > 100e6:
            logging.info(f"opening {finf.st_size / 1e6} MByte {fn.name}")

        # %% get magic number
        """https://en.wikipedia.org/wiki/List_of_file_signatures"""
        with fn.open("rb") as fid:
            magic = fid.read(4)

        suffix = fn.suffix.lower()

        if suffix == ".gz" or magic.startswith(b"\x1f\x8b"):
            """
            Conversion to string is necessary because of a quirk where gzip.open()
            even with 'rt' doesn't decompress until read.
            """
            with gzip.open(fn, "rt", encoding="ascii", errors="ignore") as f:
                yield _decrx(io.StringIO(f.read()), header)
        elif suffix == ".bz2" or magic.startswith(b"\x42\x5a\x68"):
            """
            plain bzip2 files, NOT tar.bz2, which requires f.seek(512)
            """
            with bz2.open(fn, "rt", encoding="ascii", errors="ignore") as f:
                yield _decrx(io.StringIO(f.read()), header)
        elif suffix == ".zip" or magic.startswith(b"\x50\x4b"):
            with zipfile.ZipFile(fn, "r") as z:
                flist = z.namelist()
                if len(flist) > 1:
                    logging.warning(f"{fn.name}: reading only the first of {len(flist)} files")
                with z.open(flist[0], "r") as bf:
                    f = io.StringIO(io.TextIOWrapper(bf, encoding="ascii", errors="ignore").read())  # type: ignore
                    yield _decrx(f, header)
        elif suffix == ".z" or magic.startswith(b"\x1f\x9d"):
            if unlzw is None:
                raise ImportError("ncompress unlzw not available")

            with fn.open("rb") as zu:
                with io.StringIO(unlzw(zu.read()).decode("ascii", errors="ignore")) as f:
                    yield _decrx(f, header)
        else:  # assume not compressed (or Hatanaka)
            with fn.open("r", encoding="ascii", errors="ignore") as f:
                yield _decrx(f, header)
    else:
        raise OSError(f"Unsure what to do with input of type: {type(fn)}")


def _decrx(f: T.TextIO, header: bool) -> T.TextIO:
    """CRINEX stream to Observation RINEX stream, other streams unchanged"""
    _, is_crinex = rinex_version(first_nonblank_line(f))
    f.seek(0)

    if is_crinex and not header:
        return io.StringIO(crx2rnx(f))

    return f


def first_nonblank_line(f: T.TextIO, max_lines: int = 10) -> str:
    """return first non-blank 80 character line in file

    Parameters
    ----------

    max_lines: int
        maximum number of blank lines
    """

    line = ""
    _i = None
    if max_lines < 1:
        raise ValueError("must read at least one line")

    for _i in range(max_lines):
        line = f.readline(81)
        if line.strip():
            break

    if _i is None or _i == max_lines - 1 or not line:
        raise ValueError(f"could not find first valid header line in {getattr(f, 'name', 'stream')}")

    return line


def rinexinfo(f: T.TextIO | Path) -> dict[T.Hashable, T.Any]:
    """
    identify an Observation RINEX / CRINEX file, or a NetCDF4 file written by load()

    Returns
    -------

    info: dict
        version (RINEX), filetype, rinextype, systems, and crinex (CRINEX version, CRINEX only)
    """

    if isinstance(f, (str, Path)):
        fn = Path(f).expanduser()

        if fn.suffix == ".nc":
            attrs: dict[T.Hashable, T.Any] = {"rinextype": []}
            try:
                dat = xarray.open_dataset(fn, group="OBS")
            except OSError as e:
                raise ValueError(f"no OBS group in {fn}  {e}")
            attrs["rinextype"].append("obs")
            attrs.update(dat.attrs)
            dat.close()
            return attrs

        with opener(fn, header=True) as f:
            return rinexinfo(f)

    f.seek(0)

    try:
        line = first_nonblank_line(f)  # don't choke on binary files

        version, is_crinex = rinex_version(line)
        info: dict[T.Hashable, T.Any] = {}
        if is_crinex:
            info["crinex"] = line[:20].strip()
            f.readline()  # CRINEX PROG / DATE
            line = f.readline(81)
            version, _ = rinex_version(line)

        file_type = line[20]
        if file_type != "O":
            raise ValueError(f"only Observation RINEX is handled, this is type {file_type}")

        info.update(
            {
                "version": version,
                "filetype": file_type,
                "rinextype": "obs",
                "systems": line[40].strip() or "G",
            }
        )

    except (TypeError, AttributeError, IndexError, ValueError) as e:
        # keep ValueError for consistent user error handling
        raise ValueError(f"not a known/valid RINEX file.  {e}")
    finally:
        f.seek(0)

    return info


def rinex_version(s: str) -> tuple[float, bool]:
    """

    Parameters
    ----------

    s : str
       first line of RINEX/CRINEX file

    Results
    -------

    version : float
        RINEX or CRINEX file version

    is_crinex : bool
        is it a Compressed RINEX CRINEX Hatanaka file
    """
    if not isinstance(s, str):
        raise TypeError("need first line of RINEX file as string")
    if len(s) < 2:
        raise ValueError(f"cannot decode RINEX version from line:\n{s}")

    # %% typical RINEX files
    if len(s) > 60:
        if s[60:80] not in ("RINEX VERSION / TYPE", "CRINEX VERS   / TYPE"):
            raise ValueError("The first line of the RINEX file header is corrupted.")

    try:
        vers = float(s[:9])  # %9.2f
    except ValueError as err:
        raise ValueError(f"Could not determine file version from {s[:9]}   {err}")

    is_crinex = s[20:40] == "COMPACT RINEX FORMAT"

    return vers, is_crinex
