from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, Optional

import attr

from .amounts import Denomination, FormatError, format_msat_string, msats_to_sats
from .connection import RpcConnection
from .errors import DecodeError

BOLT12_OFFER = "bolt12 offer"
BOLT12_INVOICE_REQUEST = "bolt12 invoice_request"
BOLT12_INVOICE = "bolt12 invoice"

# msat amount field per decoded bolt12 type
_AMOUNT_FIELDS = {
    BOLT12_OFFER: "offer_amount_msat",
    BOLT12_INVOICE_REQUEST: "invreq_amount_msat",
    BOLT12_INVOICE: "invoice_amount_msat",
}

DEFAULT_CURRENCY_MINOR_UNIT = 2


@attr.s(frozen=True, kw_only=True)
class DecodedBolt12:
    description = attr.ib(type=Optional[str], default=None)
    denomination = attr.ib(type=str, default=Denomination.SATS.value)
    amount = attr.ib(type=Optional[str], default=None)  # in denomination units, None for any amount
    issuer = attr.ib(type=Optional[str], default=None)


class Bolt12Decoder(ABC):
    @abstractmethod
    async def decode(self, bolt12: str) -> DecodedBolt12:
        """Raises DecodeError if bolt12 is not a well formed bolt12 string"""
        pass


class RpcBolt12Decoder(Bolt12Decoder):
    """Lets the node decode the bolt12 string through the decode rpc"""
    def __init__(self, connection: RpcConnection):
        self._connection = connection

    async def decode(self, bolt12: str) -> DecodedBolt12:
        try:
            decoded = await self._connection.rpc("decode", {"string": bolt12})
        except Exception as e:
            raise DecodeError(f"decode rpc failed: {e}", detail=getattr(e, "error", None)) from e
        return decoded_to_bolt12(decoded)


def _fiat_amount(decoded: Dict[str, Any]) -> Optional[str]:
    minor_amount = decoded.get("offer_amount")
    if minor_amount is None:
        return None
    minor_unit = int(decoded.get("currency_minor_unit", DEFAULT_CURRENCY_MINOR_UNIT))
    amount = Decimal(int(minor_amount)).scaleb(-minor_unit)
    return format(amount, "f")


def decoded_to_bolt12(decoded: Dict[str, Any]) -> DecodedBolt12:
    """Maps the decode rpc result onto DecodedBolt12"""
    decoded_type = decoded.get("type")
    if not decoded.get("valid", False) or decoded_type not in _AMOUNT_FIELDS:
        warnings = {key: value for key, value in decoded.items() if key.startswith("warning")}
        raise DecodeError(f"not a valid bolt12 string (type: {decoded_type})", detail=warnings or None)

    description = decoded.get("offer_description")
    issuer = decoded.get("offer_issuer")

    if decoded_type == BOLT12_OFFER and decoded.get("offer_currency"):
        return DecodedBolt12(description=description,
                             denomination=decoded["offer_currency"].lower(),
                             amount=_fiat_amount(decoded),
                             issuer=issuer)

    raw_amount = decoded.get(_AMOUNT_FIELDS[decoded_type])
    try:
        amount = None if raw_amount is None else msats_to_sats(format_msat_string(raw_amount), precise=True)
    except FormatError as e:
        raise DecodeError(f"invalid amount in bolt12 string: {raw_amount!r}") from e
    return DecodedBolt12(description=description,
                         denomination=Denomination.SATS.value,
                         amount=amount,
                         issuer=issuer)
