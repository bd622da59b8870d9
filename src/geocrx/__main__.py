from __future__ import annotations
import argparse
from pathlib import Path
from datetime import datetime, timedelta
import logging
import sys

import numpy as np

import geocrx as gc


def crx2rnx():
    """
    Decompress Hatanaka CRINEX 1.0 / 3.0 to Observation RINEX 2 / 3 / 4.
    gzip, bzip2, zip and LZW (.Z) compressed input is read directly.

    Examples:

    crx2rnx ~/data/york0440.15d
    crx2rnx ~/data/CEBR00ESP_R_20182000000_01D_30S_MO.crx.gz -o ~/data/cebr.rnx

    use "-" as output to write to stdout.
    """
    p = argparse.ArgumentParser(description="Hatanaka CRINEX to RINEX observation file")
    p.add_argument("crxfn", help="path to CRINEX file")
    p.add_argument("-o", "--out", help="output file, default next to input")
    p.add_argument("-v", "--verbose", action="store_true")
    p.add_argument("-f", "--force", help="overwrite existing output file", action="store_true")
    p.add_argument("-s", "--skip", help="log and skip damaged epochs instead of stopping", action="store_true")
    p.add_argument("-d", "--order", help="highest differencing order accepted", type=int, default=5, choices=range(1, 6))
    P = p.parse_args()

    if P.verbose:
        logging.basicConfig(level=logging.INFO)

    fn = Path(P.crxfn).expanduser()
    txt = gc.crx2rnx(fn, strict=not P.skip, max_order=P.order)

    _write(txt, fn, P.out, gc.rinex_name(fn), P.force)


def rnx2crx():
    """
    Compress Observation RINEX 2 / 3 / 4 to Hatanaka CRINEX 1.0 / 3.0.

    Examples:

    rnx2crx ~/data/demo.10o
    rnx2crx ~/data/ABMF00GLP_R_20181330000_01D_30S_MO.rnx -e 120
    """
    p = argparse.ArgumentParser(description="RINEX observation file to Hatanaka CRINEX")
    p.add_argument("rnxfn", help="path to RINEX observation file")
    p.add_argument("-o", "--out", help="output file, default next to input")
    p.add_argument("-v", "--verbose", action="store_true")
    p.add_argument("-f", "--force", help="overwrite existing output file", action="store_true")
    p.add_argument("-e", "--reset-every", help="write every N-th epoch in full", type=int, default=0)
    p.add_argument("-d", "--order", help="differencing order", type=int, default=3, choices=range(1, 6))
    P = p.parse_args()

    if P.verbose:
        logging.basicConfig(level=logging.INFO)

    fn = Path(P.rnxfn).expanduser()
    txt = gc.rnx2crx(fn, max_order=P.order, reset_every=P.reset_every)

    _write(txt, fn, P.out, gc.crinex_name(fn), P.force)


def _write(txt: str, fn: Path, out: str | None, default: Path, force: bool):
    if not out:
        out = default
    elif out == "-":
        sys.stdout.write(txt)
        return

    out = Path(out).expanduser()
    if out.is_dir():
        out = out / default.name
    if out.is_file() and not force:
        raise FileExistsError(f"{out} exists, use --force to overwrite")

    logging.info(f"{fn} => {out}")
    out.write_text(txt)


def geocrx_read():
    """
    Reads Observation RINEX 2/3/4 or CRINEX file and prints (or converts to NetCDF4 / HDF5).
    Returns data as xarray.Dataset, think of it like an N-dimensional Numpy NDarray with lots of metadata and
    very fancy indexing methods.

    The RINEX version is automatically detected.
    Compressed RINEX files including:
        * GZIP .gz
        * BZIP2 .bz2
        * ZIP .zip
        * LZW .Z
        * Hatanaka .crx / .crx.gz / .yyd
    are handled seamlessly via TextIO stream.

    Examples:

    # read RINEX files (Rinex 2 or 3, Hatanaka, etc.)
    geocrx_read ~/data/ABMF00GLP_R_20181330000_01D_30S_MO.zip

    # read a limited range of time in a RINEX file
    geocrx_read ~/data/PUMO00CR__R_20180010000_01D_15S_MO.rnx -t 2018-01-01 2018-01-01T00:30
    """
    p = argparse.ArgumentParser(description="example of reading RINEX 2/3/4 Observation file")
    p.add_argument("rinexfn", help="path to RINEX or CRINEX file")
    p.add_argument("-o", "--out", help="write data to path or file as NetCDF4")
    p.add_argument("-v", "--verbose", action="store_true")
    p.add_argument("-u", "--use", help="select which GNSS system(s) to use", nargs="+")
    p.add_argument("-m", "--meas", help="select which GNSS measurement(s) to use", nargs="+")
    p.add_argument("-t", "--tlim", help="specify time limits (process part of file)", nargs=2)
    p.add_argument(
        "-useindicators",
        help="use SSI, LLI indicators (signal, loss of lock)",
        action="store_true",
    )
    p.add_argument("-interval", help="read the rinex file only every N seconds", type=float)
    p.add_argument("-s", "--skip", help="log and skip damaged epochs instead of stopping", action="store_true")
    P = p.parse_args()

    data = gc.load(
        P.rinexfn,
        P.out,
        use=P.use,
        tlim=P.tlim,
        useindicators=P.useindicators,
        meas=P.meas,
        verbose=P.verbose,
        interval=P.interval,
        strict=not P.skip,
    )

    print(data)


def geocrx_time():
    p = argparse.ArgumentParser(description="Print times in RINEX / CRINEX observation file")
    p.add_argument("filename", help="RINEX filename to get times from")
    p.add_argument("-glob", help="file glob pattern", nargs="+", default="*")
    p.add_argument("-v", "--verbose", action="store_true")
    p = p.parse_args()

    filename = Path(p.filename).expanduser()

    print("filename: start, stop, number of times, interval")

    if filename.is_dir():
        flist = gc.globber(filename, p.glob)
        for f in flist:
            eachfile(f, p.verbose)
    elif filename.is_file():
        eachfile(filename, p.verbose)
    else:
        raise FileNotFoundError(f"{filename} is not a path or file")


def eachfile(fn: Path, verbose: bool = False):
    try:
        times = gc.gettime(fn)
    except ValueError as e:
        if verbose:
            print(f"{fn.name}: {e}")
        return

    # %% output
    Ntimes = times.size

    if Ntimes == 0:
        return

    t0 = times[0].astype(datetime)
    t1 = times[-1].astype(datetime)

    ostr = f"{fn.name}:" f" {t0.isoformat()}" f" {t1.isoformat()}" f" {Ntimes}"

    hdr = gc.rinexheader(fn)
    interval = hdr.get("interval", np.nan)
    if ~np.isnan(interval):
        ostr += f" {interval}"
        Nexpect = (t1 - t0) // timedelta(seconds=interval) + 1
        if Nexpect != Ntimes:
            logging.warning(f"{fn.name}: expected {Nexpect} but got {Ntimes} times")

    print(ostr)

    if verbose:
        print(times)
