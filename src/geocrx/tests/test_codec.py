import logging
from datetime import datetime
from pathlib import Path

import pytest

from geocrx.codec import CrinexDecoder, CrinexEncoder, State, join_data_line, split_data_line
from geocrx.errors import GrammarError, TruncationError
from geocrx.flags import diff_text
from geocrx.hatanaka import rnx2crx
from geocrx.record import Epoch, EpochFlag, EpochKey, EpochTime, Observation

R = Path(__file__).parent / "data"


def t(minute: int, second: int) -> EpochTime:
    return EpochTime(2010, 3, 5, 0, minute, second * 10_000_000)


def regular(minute, second, observations, clock=None):
    return Epoch(EpochKey(t(minute, second)), list(observations), dict(observations), clock)


def obs(*values):
    return [Observation(v) for v in values]


def test_decode_by_hand(crinex3_header):
    lines = crinex3_header + [
        "> 2010 03 05 00 00  0.0000000  0  2      G05G07",
        "",
        "3&23629347915 3&124173084121 3&44000    7",
        "3&20891534648 3&109783516532 3&50250   18",
        " " * 19 + "3",
        "",
        "234 1234 250",
        "-1000 -5000 0   &",
        " " * 17 + "1 &" + " " * 14 + "1" + " " * 9 + "&&&",
        "",
        "10 0 0",
    ]

    dec = CrinexDecoder(lines)
    assert dec.header["crinex"] == "3.0"
    assert dec.header["crinex_program"] == "RNX2CRX ver.4.0.7"

    epochs = list(dec)
    assert dec.state is State.END
    assert len(epochs) == 3

    e0, e1, e2 = epochs
    assert e0.time == datetime(2010, 3, 5)
    assert e0.satellites == ["G05", "G07"]
    assert e0.clock is None
    assert e0.observations["G05"] == [Observation(23629347915), Observation(124173084121, " ", "7"), Observation(44000)]
    assert e0.observations["G07"][1] == Observation(109783516532, "1", "8")

    assert e1.time == datetime(2010, 3, 5, 0, 0, 30)
    assert [o.value for o in e1.observations["G05"]] == [23629348149, 124173085355, 44250]
    assert e1.observations["G05"][1].ssi == "7"
    assert e1.observations["G07"] == [Observation(20891533648), Observation(109783511532, " ", "8"), Observation(50250)]

    assert e2.time == datetime(2010, 3, 5, 0, 1)
    assert e2.satellites == ["G05"]
    assert [o.value for o in e2.observations["G05"]] == [23629348393, 124173086589, 44500]


def test_encode_by_hand(header3):
    enc = CrinexEncoder(header3, program="RNX2CRX ver.4.0.7", date="05-Mar-10 00:00")

    out = enc.encode(
        regular(
            0,
            0,
            {
                "G05": [Observation(23629347915), Observation(124173084121, " ", "7"), Observation(44000)],
                "G07": [Observation(20891534648), Observation(109783516532, "1", "8"), Observation(50250)],
            },
        )
    )

    assert out[0].startswith("3.0                 COMPACT RINEX FORMAT")
    assert out[-4:] == [
        "> 2010 03 05 00 00  0.0000000  0  2      G05G07",
        "",
        "3&23629347915 3&124173084121 3&44000    7",
        "3&20891534648 3&109783516532 3&50250   18",
    ]

    out = enc.encode(
        regular(
            0,
            30,
            {
                "G05": [Observation(23629348149), Observation(124173085355, " ", "7"), Observation(44250)],
                "G07": [Observation(20891533648), Observation(109783511532, " ", "8"), Observation(50250)],
            },
        )
    )
    assert out == [" " * 19 + "3", "", "234 1234 250", "-1000 -5000 0   &"]


def test_event_is_transparent(header3):
    enc = CrinexEncoder(header3)
    enc.encode(regular(0, 0, {"G05": obs(100, 200, 300)}, clock=5))

    before = (enc.values.snapshot(), enc.clock.snapshot(), enc.flags.snapshot(), enc.epoch_line)

    event = Epoch(
        EpochKey(t(0, 15), EpochFlag.NEW_SITE),
        lines=[f"{'NEWSITE':<60}MARKER NAME", f"{'':<60}END OF HEADER"],
    )
    out = enc.encode(event)

    assert out == ["> 2010 03 05 00 00 15.0000000  3  2"] + event.lines
    assert (enc.values.snapshot(), enc.clock.snapshot(), enc.flags.snapshot(), enc.epoch_line) == before

    out = enc.encode(regular(0, 30, {"G05": obs(110, 220, 330)}, clock=6))
    # still differenced against the last regular epoch
    assert out[0] == " " * 19 + "3"
    assert out[1:] == ["1", "10 20 30"]


def _stream(hdr, epochs, **kw):
    enc = CrinexEncoder(hdr, **kw)
    lines = enc.header_lines()
    for e in epochs:
        lines += enc.encode(e)
    return lines


def test_event_roundtrip(header3):
    epochs = [
        regular(0, 0, {"G05": obs(100, 200, 300)}, clock=5),
        Epoch(EpochKey(t(0, 15), EpochFlag.EXTERNAL_EVENT)),
        Epoch(EpochKey(None, EpochFlag.HEADER_INFO), lines=[f"{'moved':<60}COMMENT"]),
        regular(0, 30, {"G05": obs(110, 220, 330)}, clock=6),
    ]

    decoded = list(CrinexDecoder(_stream(header3, epochs)))

    assert decoded == epochs


@pytest.mark.parametrize("gap, token", [(True, "3&230"), (False, "30")])
def test_reset_after_gap(header3, gap, token):
    epochs = [
        regular(0, 0, {"G05": obs(100, 200, 5)}),
        regular(0, 30, {"G05": obs(110, None, 6)}),
        regular(1, 0, {"G05": obs(120, 230, 7)}),
    ]

    lines = _stream(header3, epochs, reset_after_gap=gap)
    assert lines[-1] == f"0 {token} 0"

    assert list(CrinexDecoder(lines)) == epochs


def test_cycle_slip_resets(header3):
    slip = Epoch(EpochKey(t(0, 30), EpochFlag.CYCLE_SLIP), ["G05"], {"G05": obs(None, 1000, None)})
    epochs = [
        regular(0, 0, {"G05": obs(100, 200, 5)}),
        regular(0, 30, {"G05": obs(110, 210, 6)}),
        slip,
        regular(1, 0, {"G05": obs(120, 1220, 7)}),
    ]

    lines = _stream(header3, epochs)

    assert lines[-5] == "> 2010 03 05 00 00 30.0000000  6  1      G05"
    assert lines[-4] == "G05" + " " * 16 + "         1.000"
    assert lines[-1] == "0 3&1220 0"

    assert list(CrinexDecoder(lines)) == epochs


def test_reset_every(header3):
    epochs = [regular(0, s, {"G05": obs(100 + s, 200 + 2 * s, 5)}) for s in range(0, 60, 10)]

    lines = _stream(header3, epochs, reset_every=2)
    full = [ln for ln in lines if ln.startswith(">")]

    assert len(full) == 3
    assert list(CrinexDecoder(lines)) == epochs


def test_wrong_observation_count(header3):
    enc = CrinexEncoder(header3)
    with pytest.raises(GrammarError):
        enc.encode(regular(0, 0, {"G05": obs(1, 2)}))


def test_data_line():
    assert join_data_line(["a", "", "", "", "b", ""], "") == "a    b"
    assert join_data_line(["a", "", "", "", "b", ""], "   &   &") == "a    b     &   &"

    assert split_data_line("a    b", 6) == (["a", "", "", "", "b", ""], "")
    assert split_data_line("a    b     &   &", 6) == (["a", "", "", "", "b", ""], "   &   &")
    assert split_data_line(" " + "  1", 1) == ([""], "  1")


@pytest.fixture
def crx3():
    return rnx2crx((R / "demo3.10o").read_text(), reset_every=1).splitlines()


def test_truncated_epoch(crx3):
    i = next(i for i, ln in enumerate(crx3) if ln.startswith("> 2010 03 05 00 00 30"))

    dec = CrinexDecoder(crx3[: i + 3])
    next(dec)
    with pytest.raises(TruncationError):
        next(dec)

    assert dec.state is State.END


def test_truncated_header(crinex3_header):
    with pytest.raises(TruncationError):
        CrinexDecoder(crinex3_header[:-1]).header


def test_not_crinex():
    with pytest.raises(ValueError):
        CrinexDecoder((R / "demo2.10o").read_text().splitlines()).header


def test_version_mismatch(crinex3_header):
    lines = [ln.replace("3.0                 COMPACT", "1.0                 COMPACT") for ln in crinex3_header]
    with pytest.raises(GrammarError):
        CrinexDecoder(lines).header


def test_strict(crx3):
    i = next(i for i, ln in enumerate(crx3) if ln.startswith("> 2010 03 05 00 00 30"))
    crx3[i + 2] = "x" + crx3[i + 2]

    dec = CrinexDecoder(crx3)
    next(dec)
    with pytest.raises(GrammarError) as e:
        next(dec)

    assert e.value.lineno == i + 3
    assert e.value.revision == 3
    assert f"line {i + 3}" in str(e.value)


def test_recover(crx3, caplog):
    good = [e for e in CrinexDecoder(crx3) if e.flag == EpochFlag.OK]

    i = next(i for i, ln in enumerate(crx3) if ln.startswith("> 2010 03 05 00 00 30"))
    crx3[i + 2] = "x" + crx3[i + 2]

    with caplog.at_level(logging.ERROR):
        damaged = [e for e in CrinexDecoder(crx3, strict=False) if e.flag == EpochFlag.OK]

    assert "skipping" in caplog.text
    assert [e.time for e in damaged] == [datetime(2010, 3, 5), datetime(2010, 3, 5, 0, 1), datetime(2010, 3, 5, 0, 1, 30)]
    assert damaged[-1] == good[-1]


def test_epoch_order_warning(header3, caplog):
    epochs = [
        regular(1, 0, {"G05": obs(100, 200, 5)}),
        regular(0, 30, {"G05": obs(110, 210, 6)}),
    ]
    with caplog.at_level(logging.WARNING):
        assert list(CrinexDecoder(_stream(header3, epochs))) == epochs

    assert "is before" in caplog.text


def test_observable_redefinition_warning(header3, caplog):
    types = f"{'G    2 C1C L1C':<60}SYS / # / OBS TYPES"
    epochs = [
        regular(0, 0, {"G05": obs(100, 200, 300)}),
        Epoch(EpochKey(None, EpochFlag.HEADER_INFO), lines=[types]),
        regular(0, 30, {"G05": obs(110, 220, 330)}),
    ]
    with caplog.at_level(logging.WARNING):
        assert list(CrinexDecoder(_stream(header3, epochs))) == epochs

    assert "redefined" in caplog.text


def test_fifth_order_default_decoder(header3, caplog):
    values = [20_000_000_000 + 7 * i**3 + 3 * i for i in range(8)]
    epochs = [regular(0, 5 * i, {"G05": obs(v, None, None)}) for i, v in enumerate(values)]

    lines = _stream(header3, epochs, max_order=5)
    assert "5&20000000000" in lines

    with caplog.at_level(logging.WARNING):
        assert list(CrinexDecoder(lines)) == epochs

    assert not caplog.records


def test_flags_after_absence_decode(crinex3_header):
    e0 = "> 2010 03 05 00 00  0.0000000  0  2      G05G07"
    e1 = "> 2010 03 05 00 00 30.0000000  0  1      G05"
    e2 = "> 2010 03 05 00 01  0.0000000  0  2      G05G07"
    lines = crinex3_header + [
        e0,
        "",
        "3&1000 3&2000 3&3000",
        "3&1000 3&2000 3&3000 1",
        diff_text(e0, e1),
        "",
        "10 10 10",
        diff_text(e1, e2),
        "",
        "10 10 10",
        "3&1500 3&2500 3&3500",
    ]

    epochs = list(CrinexDecoder(lines))

    assert epochs[0].observations["G07"][0] == Observation(1000, "1")
    # G07 was missing at 00:30, no flag text means blank flags
    assert epochs[2].observations["G07"] == obs(1500, 2500, 3500)


def test_flags_after_absence_encode(header3):
    epochs = [
        regular(0, 0, {"G05": obs(1, 2, 3), "G07": [Observation(10, "1"), Observation(20), Observation(30)]}),
        regular(0, 30, {"G05": obs(1, 2, 3)}),
        regular(1, 0, {"G05": obs(1, 2, 3), "G07": obs(11, 21, 31)}),
    ]

    lines = _stream(header3, epochs)
    assert lines[-1] == "3&11 3&21 3&31"

    assert list(CrinexDecoder(lines)) == epochs
