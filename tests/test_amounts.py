import pytest
from pyln.client import Millisatoshi

from cln_offers_src.offers.amounts import FormatError, format_msat_string, msats_to_sats, sats_to_msats

# Run the test with the following command:
# pytest tests/test_amounts.py -v


def test_sats_to_msats():
    assert sats_to_msats("7") == "7000"
    assert sats_to_msats("0") == "0"
    assert sats_to_msats(21) == "21000"


def test_msats_to_sats():
    assert msats_to_sats("7000") == "7"
    assert msats_to_sats("0") == "0"


@pytest.mark.parametrize("sats", ["0", "1", "999", "100000", "2100000000000000"])
def test_sats_msats_round_trip(sats):
    """Converting there and back returns the exact sats amount"""
    assert msats_to_sats(sats_to_msats(sats)) == sats


def test_msats_to_sats_rounds_to_whole_sats():
    assert msats_to_sats("1499") == "1"
    assert msats_to_sats("1500") == "2"
    assert msats_to_sats("499") == "0"


def test_msats_to_sats_precise():
    assert msats_to_sats("1500", precise=True) == "1.5"
    assert msats_to_sats("1", precise=True) == "0.001"
    assert msats_to_sats("7000", precise=True) == "7"


def test_no_precision_loss_on_large_amounts():
    """Values beyond float precision stay exact"""
    assert msats_to_sats("2100000000000000001", precise=True) == "2100000000000000.001"
    assert sats_to_msats("2100000000000000") == "2100000000000000000"


@pytest.mark.parametrize("invalid", ["1.5", "-1", "abc", "", 1.5])
def test_sats_to_msats_rejects_invalid(invalid):
    with pytest.raises(FormatError):
        sats_to_msats(invalid)


def test_msats_to_sats_rejects_negative():
    with pytest.raises(FormatError):
        msats_to_sats("-1000")


def test_format_msat_string():
    assert format_msat_string("1000msat") == "1000"
    assert format_msat_string("1000") == "1000"
    assert format_msat_string(1000) == "1000"
    assert format_msat_string(" 42msat ") == "42"


def test_format_msat_string_pyln_millisatoshi():
    """pyln hands out _msat fields as Millisatoshi objects"""
    assert format_msat_string(Millisatoshi(2500)) == "2500"


@pytest.mark.parametrize("invalid", [None, "", "msat", "-5", "1.5msat", "10sat", "abc", 1.5, True])
def test_format_msat_string_rejects_invalid(invalid):
    with pytest.raises(FormatError):
        format_msat_string(invalid)
