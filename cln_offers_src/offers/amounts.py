import decimal
import enum
import re
from decimal import Decimal
from typing import Any

MSAT_PER_SAT = Decimal(1000)
_MSAT_SUFFIX = "msat"
_UINT_RE = re.compile(r"^\d+$")


class Denomination(str, enum.Enum):
    BTC = "btc"
    SATS = "sats"
    MSATS = "msats"


class FormatError(ValueError):
    """The node returned (or we were given) an amount string of unexpected shape"""
    pass


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, float):
        raise FormatError(f"refusing binary float amount: {value!r}")
    try:
        amount = Decimal(str(value).strip())
    except (decimal.InvalidOperation, TypeError) as e:
        raise FormatError(f"not a decimal amount: {value!r}") from e
    if not amount.is_finite():
        raise FormatError(f"not a finite amount: {value!r}")
    return amount


def _decimal_str(value: Decimal) -> str:
    if value == 0:
        return "0"
    return format(value.normalize(), "f")


def sats_to_msats(sats: Any) -> str:
    """Exact, sats have to be integral and non-negative."""
    amount = _to_decimal(sats)
    if amount < 0 or amount != amount.to_integral_value():
        raise FormatError(f"sats amount must be a non-negative integer, got {sats!r}")
    return _decimal_str(amount * MSAT_PER_SAT)


def msats_to_sats(msats: Any, precise: bool = False) -> str:
    """
    Divide by 1000. By default the result is rounded half-up to whole sats,
    with precise=True sub-sat digits are kept.
    """
    amount = _to_decimal(msats)
    if amount < 0:
        raise FormatError(f"msats amount must not be negative, got {msats!r}")
    sats = amount / MSAT_PER_SAT
    if not precise:
        sats = sats.quantize(Decimal(1), rounding=decimal.ROUND_HALF_UP)
    return _decimal_str(sats)


def format_msat_string(raw: Any) -> str:
    """
    Returns the bare msat integer string. Strips the unit suffix some responses carry,
    pyln Millisatoshi values stringify as e.g. '1000msat'.
    """
    if raw is None or isinstance(raw, (bool, float)):
        raise FormatError(f"invalid msat value: {raw!r}")
    value = str(raw).strip()
    if value.endswith(_MSAT_SUFFIX):
        value = value[:-len(_MSAT_SUFFIX)]
    if not _UINT_RE.match(value):
        raise FormatError(f"invalid msat value: {raw!r}")
    return str(int(value))
