import enum
from typing import Any, Dict, Optional

import attr

# convention: a 'pay' offer asks to be paid, a 'withdraw' offer (invoice request) asks to pay out


class OfferType(str, enum.Enum):
    PAY = "pay"
    WITHDRAW = "withdraw"


class PaymentDirection(str, enum.Enum):
    SEND = "send"
    RECEIVE = "receive"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETE = "complete"
    EXPIRED = "expired"
    FAILED = "failed"


BOLT12 = "bolt12"


def _serialize(inst, field, value):
    if isinstance(value, enum.Enum):
        return value.value
    return value


class _Record:
    def to_dict(self) -> Dict[str, Any]:
        return attr.asdict(self, value_serializer=_serialize)


@attr.s(frozen=True, kw_only=True)
class Offer(_Record):
    id = attr.ib(type=str)
    bolt12 = attr.ib(type=str)
    type = attr.ib(type=OfferType, converter=OfferType)
    denomination = attr.ib(type=str)
    amount = attr.ib(type=Optional[str], default=None)  # in denomination units, None means any amount
    description = attr.ib(type=Optional[str], default=None)
    issuer = attr.ib(type=Optional[str], default=None)
    label = attr.ib(type=Optional[str], default=None)
    active = attr.ib(type=bool, default=True)
    single_use = attr.ib(type=bool, default=False)
    used = attr.ib(type=bool, default=False)
    expiry = attr.ib(type=Optional[int], default=None)  # absolute, unix seconds
    quantity_max = attr.ib(type=Optional[int], default=None)
    connection_id = attr.ib(type=Optional[str], default=None)
    node_id = attr.ib(type=Optional[str], default=None)


@attr.s(frozen=True, kw_only=True)
class Invoice(_Record):
    id = attr.ib(type=str)
    hash = attr.ib(type=str)
    direction = attr.ib(type=PaymentDirection, converter=PaymentDirection)
    amount = attr.ib(type=str)  # sats
    status = attr.ib(type=PaymentStatus, converter=PaymentStatus)
    started_at = attr.ib(type=int)
    request = attr.ib(type=str)
    type = attr.ib(type=str, default=BOLT12)
    preimage = attr.ib(type=Optional[str], default=None)
    fee = attr.ib(type=Optional[str], default=None)  # sats, send path only
    completed_at = attr.ib(type=Optional[int], default=None)
    expires_at = attr.ib(type=Optional[int], default=None)
    pay_index = attr.ib(type=Optional[int], default=None)
    destination = attr.ib(type=Optional[str], default=None)
    connection_id = attr.ib(type=Optional[str], default=None)


@attr.s(frozen=True, kw_only=True)
class CreatePayOfferOptions:
    description = attr.ib(type=str)
    label = attr.ib(type=str)
    amount = attr.ib(type=Optional[str], default=None)  # sats, None for any amount
    issuer = attr.ib(type=Optional[str], default=None)
    quantity_max = attr.ib(type=Optional[int], default=None)
    expiry = attr.ib(type=Optional[int], default=None)  # relative seconds
    single_use = attr.ib(type=Optional[bool], default=None)


@attr.s(frozen=True, kw_only=True)
class CreateWithdrawOfferOptions:
    amount = attr.ib(type=str)  # sats
    description = attr.ib(type=str)
    label = attr.ib(type=str)
    issuer = attr.ib(type=Optional[str], default=None)
    expiry = attr.ib(type=Optional[int], default=None)  # relative seconds
    single_use = attr.ib(type=Optional[bool], default=None)


@attr.s(frozen=True, kw_only=True)
class FetchInvoiceOptions:
    offer = attr.ib(type=str)
    amount = attr.ib(type=Optional[str], default=None)  # sats
    quantity = attr.ib(type=Optional[int], default=None)
    timeout = attr.ib(type=Optional[int], default=None)
    payer_note = attr.ib(type=Optional[str], default=None)


@attr.s(frozen=True, kw_only=True)
class SendInvoiceOptions:
    offer = attr.ib(type=str)
    label = attr.ib(type=str)
    amount = attr.ib(type=Optional[str], default=None)  # msats, handed to the node as is
    timeout = attr.ib(type=Optional[int], default=None)
    quantity = attr.ib(type=Optional[int], default=None)
