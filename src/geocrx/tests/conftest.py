import pytest
from pathlib import Path

from geocrx.header import obsheader

R = Path(__file__).parent / "data"


def hline(content: str, label: str) -> str:
    return f"{content:<60}{label}"


HEADER3 = [
    hline("     3.04           OBSERVATION DATA    G", "RINEX VERSION / TYPE"),
    hline("G    3 C1C L1C S1C", "SYS / # / OBS TYPES"),
    hline("", "END OF HEADER"),
]

CRINEX3 = [
    hline("3.0                 COMPACT RINEX FORMAT", "CRINEX VERS   / TYPE"),
    hline("RNX2CRX ver.4.0.7                       05-Mar-10 00:00", "CRINEX PROG / DATE"),
]


@pytest.fixture
def header3():
    return obsheader(HEADER3)


@pytest.fixture(params=["demo2.10o", "demo3.10o"])
def rinexfn(request):
    return R / request.param


@pytest.fixture
def crinex3_header():
    return CRINEX3 + HEADER3
