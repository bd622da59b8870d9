import io
from datetime import datetime
from pathlib import Path

import numpy as np
import pytest

import geocrx as gc

R = Path(__file__).parent / "data"


@pytest.mark.parametrize("fn, vers", [(R / "demo2.10o", 2.11), (R / "demo3.10o", 3.04)], ids=["obs2", "obs3"])
def test_info(fn, vers):
    info = gc.rinexinfo(fn)
    assert info["rinextype"] == "obs"
    assert info["version"] == pytest.approx(vers)
    assert info["systems"] == "M"
    assert "crinex" not in info

    with io.StringIO(gc.rnx2crx(fn)) as f:
        info = gc.rinexinfo(f)

    assert info["version"] == pytest.approx(vers)
    assert info["crinex"] == ("1.0" if vers < 3 else "3.0")


def test_version_line():
    assert gc.rio.rinex_version(f"{'3.0                 COMPACT RINEX FORMAT':<60}CRINEX VERS   / TYPE") == (3.0, True)
    assert gc.rio.rinex_version("     2.11           OBSERVATION DATA    G") == (2.11, False)

    with pytest.raises(ValueError):
        gc.rio.rinex_version(f"{'     2.11':<60}MARKER NAME")


def test_not_rinex():
    with pytest.raises(ValueError):
        gc.rinexinfo(io.StringIO("hello\n"))


def test_opener_decompresses(rinexfn):
    txt = rinexfn.read_text()

    with gc.opener(io.StringIO(gc.rnx2crx(txt))) as f:
        assert f.read() == txt

    with gc.opener(io.StringIO(gc.rnx2crx(txt)), header=True) as f:
        assert "COMPACT RINEX FORMAT" in f.readline()


def test_header(rinexfn):
    hdr = gc.rinexheader(rinexfn)

    assert hdr["rinextype"] == "obs"
    assert hdr["interval"] == 30.0
    assert hdr["t0"] == datetime(2010, 3, 5)
    assert hdr["position"] == pytest.approx([4789028.4701, 176610.0133, 4195017.0310])

    # make sure string filenames work too
    assert gc.rinexheader(str(rinexfn))["version"] == hdr["version"]


def test_header_fields():
    assert gc.rinexheader(R / "demo2.10o")["fields"] == ["C1", "L1", "L2", "P2", "S1", "S2"]

    fields = gc.rinexheader(R / "demo3.10o")["fields"]
    assert fields["G"] == ["C1C", "L1C", "D1C", "S1C"]
    assert fields["R"] == ["C1C", "L1C", "S1C"]
    assert len(fields["E"]) == 14
    assert fields["E"][-1] == "L8Q"


def test_gettime(rinexfn):
    times = gc.gettime(rinexfn)

    assert times.size == 4
    assert times[0].astype(datetime) == datetime(2010, 3, 5)
    assert times[-1].astype(datetime) == datetime(2010, 3, 5, 0, 1, 30)

    with io.StringIO(gc.rnx2crx(rinexfn)) as f:
        assert (gc.gettime(f) == times).all()


def test_unique_times(caplog):
    t = np.array(["2010-03-05T00:00", "2010-03-05T00:00"], dtype="datetime64[us]")
    assert not gc.utils.check_unique_times(t)
    assert "unique" in caplog.text


@pytest.mark.parametrize(
    "hdr, ts",
    [
        ({"systems": "G"}, "GPS"),
        ({"systems": "E"}, "GAL"),
        ({"systems": "M", "TIME OF FIRST OBS": f"{'  2010     3     5     0     0    0.0000000     GLO':<60}"}, "GLO"),
    ],
)
def test_time_system(hdr, ts):
    assert gc.utils.determine_time_system(hdr) == ts


def test_tlim():
    assert gc.utils._tlim(("2010-03-05", "2010-03-05T00:01")) == (datetime(2010, 3, 5), datetime(2010, 3, 5, 0, 1))

    with pytest.raises(ValueError):
        gc.utils._tlim((1,))
