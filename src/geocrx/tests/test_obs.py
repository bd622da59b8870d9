import io
from datetime import datetime
from pathlib import Path

import numpy as np
import pytest

import geocrx as gc

R = Path(__file__).parent / "data"


def test_obs2():
    obs = gc.load(R / "demo2.10o")

    assert obs.time.size == 4
    assert obs.sv.size == 13
    assert [v for v in obs.data_vars if v != "clock_offset"] == ["C1", "L1", "L2", "P2", "S1", "S2"]
    assert obs["clock_offset"].values[1] == pytest.approx(123789e-9)

    assert obs["C1"].sel(sv="G05").values[0] == pytest.approx(23629347.915)
    assert obs["L1"].sel(sv="G07").values[1] == pytest.approx(109775458.871)
    assert np.isnan(obs["L2"].sel(sv="R10").values[0])
    assert obs["P2"].sel(sv="R10").values[1] == pytest.approx(19608815.222)
    assert obs["S1"].sel(sv="G08").values[2] == 42.0
    assert np.isnan(obs["S1"].sel(sv="G08").values[0])

    assert obs.attrs["version"] == pytest.approx(2.11)
    assert obs.attrs["time_system"] == "GPS"
    assert obs.attrs["filename"] == "demo2.10o"
    assert gc.to_datetime(obs.time[1]) == datetime(2010, 3, 5, 0, 0, 30)


def test_obs3():
    obs = gc.load(R / "demo3.10o")

    assert obs.time.size == 4
    assert list(obs.sv.values) == ["E11", "G05", "G07", "R10"]
    assert len([v for v in obs.data_vars if v != "clock_offset"]) == 14

    assert obs["D1C"].sel(sv="G05").values[0] == pytest.approx(-1234.567)
    assert obs["L8Q"].sel(sv="E11").values[0] == pytest.approx(100000000.0)
    assert np.isnan(obs["C1C"].sel(sv="R10").values[2])

    clock = obs["clock_offset"].values
    assert clock[0] == pytest.approx(123456e-12)
    assert np.isnan(clock[2])


def test_indicators():
    obs = gc.load(R / "demo2.10o", useindicators=True)

    assert obs["L1ssi"].sel(sv="G05").values[0] == 7
    assert obs["L1lli"].sel(sv="G07").values[0] == 1
    assert np.isnan(obs["L1lli"].sel(sv="G07").values[1])


def test_select():
    obs = gc.load(R / "demo3.10o", use="G", meas=["C1", "S1"])

    assert list(obs.sv.values) == ["G05", "G07"]
    assert set(obs.data_vars) == {"C1C", "S1C", "clock_offset"}


def test_tlim():
    obs = gc.load(R / "demo2.10o", tlim=("2010-03-05T00:00:30", "2010-03-05T00:01"))

    assert gc.to_datetime(obs.time).tolist() == [datetime(2010, 3, 5, 0, 0, 30), datetime(2010, 3, 5, 0, 1)]


def test_interval():
    obs = gc.load(R / "demo2.10o", interval=60)

    assert obs.time.size == 2


def test_crinex_matches_rinex(rinexfn, tmp_path):
    crxfn = tmp_path / gc.crinex_name(rinexfn).name
    crxfn.write_text(gc.rnx2crx(rinexfn))

    obs = gc.load(crxfn)

    assert obs.equals(gc.load(rinexfn))
    assert obs.attrs["crinex"] in ("1.0", "3.0")


def test_stringio(rinexfn):
    with io.StringIO(rinexfn.read_text()) as f:
        obs = gc.load(f)

    assert obs.equals(gc.load(rinexfn)), "StringIO not matching direct file read"


def test_netcdf(rinexfn, tmp_path):
    pytest.importorskip("netCDF4")

    obs = gc.load(rinexfn, out=tmp_path)

    outfn = tmp_path / (rinexfn.name + ".nc")
    assert outfn.is_file()

    info = gc.rinexinfo(outfn)
    assert "obs" in info["rinextype"]

    assert obs.equals(gc.load(outfn))

    with pytest.raises(ValueError):
        gc.load(rinexfn, out=outfn)


def test_empty():
    with pytest.raises(ValueError):
        gc.load(io.StringIO(""))
