import asyncio
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from .amounts import Denomination, FormatError, format_msat_string, msats_to_sats, sats_to_msats
from .bolt12 import Bolt12Decoder, RpcBolt12Decoder
from .cln_logger import PluginLogger, stderr_log_method
from .connection import RpcConnection
from .errors import NodeConnectionError, handle_error
from .models import (CreatePayOfferOptions, CreateWithdrawOfferOptions, FetchInvoiceOptions, Invoice, Offer,
                     OfferType, PaymentDirection, PaymentStatus, SendInvoiceOptions)
from .utils import gather_ordered, now_seconds, random_hex

ANY_AMOUNT = "any"

# context literals of every operation, reported with each error
CONTEXT_GET = "get (offers)"
CONTEXT_CREATE_PAY = "createPay (offers)"
CONTEXT_DISABLE_PAY = "disablePay (offers)"
CONTEXT_CREATE_WITHDRAW = "createWithdraw (offers)"
CONTEXT_DISABLE_WITHDRAW = "disableWithdraw (offers)"
CONTEXT_FETCH_INVOICE = "fetchInvoice (offers)"
CONTEXT_SEND_INVOICE = "sendInvoice (offers)"
CONTEXT_PAY_INVOICE = "payInvoice (offers)"

# node side defaults of the calls that block until the peer answers, in seconds
NODE_FETCHINVOICE_TIMEOUT = 60
NODE_SENDINVOICE_TIMEOUT = 90
NODE_PAY_RETRY_FOR = 60
# extra wait on top of the node side timeout so the node gives up first
RPC_TIMEOUT_MARGIN = 30

_PAY_STATUS = {
    "complete": PaymentStatus.COMPLETE,
    "pending": PaymentStatus.PENDING,
    "failed": PaymentStatus.FAILED,
}


def invoice_status_to_payment_status(status: str, expires_at: Optional[int] = None) -> PaymentStatus:
    if status == "paid":
        return PaymentStatus.COMPLETE
    if status == "expired":
        return PaymentStatus.EXPIRED
    if status == "unpaid":
        if expires_at is not None and expires_at < now_seconds():
            return PaymentStatus.EXPIRED
        return PaymentStatus.PENDING
    raise FormatError(f"unknown invoice status: {status!r}")


def pay_status_to_payment_status(status: str) -> PaymentStatus:
    if status not in _PAY_STATUS:
        raise FormatError(f"unknown pay status: {status!r}")
    return _PAY_STATUS[status]


def _call_timeout(timeout: Optional[int], node_default: int) -> int:
    return (timeout if timeout else node_default) + RPC_TIMEOUT_MARGIN


def _absolute_expiry(expiry: Optional[int]) -> Optional[int]:
    """Option expiries are relative seconds, the node wants an absolute timestamp"""
    if not expiry:
        return None
    return now_seconds() + int(expiry)


class OffersInterface(ABC):
    """Offer and invoice request operations every node backend provides"""

    @abstractmethod
    async def get(self) -> List[Offer]:
        pass

    @abstractmethod
    async def create_pay(self, options: CreatePayOfferOptions) -> Offer:
        pass

    @abstractmethod
    async def disable_pay(self, offer_id: str) -> None:
        pass

    @abstractmethod
    async def create_withdraw(self, options: CreateWithdrawOfferOptions) -> Offer:
        pass

    @abstractmethod
    async def disable_withdraw(self, invoice_request_id: str) -> None:
        pass

    @abstractmethod
    async def fetch_invoice(self, options: FetchInvoiceOptions) -> str:
        pass

    @abstractmethod
    async def send_invoice(self, options: SendInvoiceOptions) -> Invoice:
        pass

    @abstractmethod
    async def pay_invoice(self, bolt12: str) -> Invoice:
        pass


class ClnOffers(OffersInterface):
    """
    BOLT12 offers and invoice requests on a Core Lightning node.
    Every failure is mapped to a NodeConnectionError, pushed to the error channel of the
    connection and raised again. Nothing is retried here.
    """
    def __init__(self, connection: RpcConnection, *, decoder: Optional[Bolt12Decoder] = None,
                 logger: Optional[PluginLogger] = None):
        self._connection = connection
        self._decoder = decoder if decoder is not None else RpcBolt12Decoder(connection)
        self._logger = logger if logger is not None else PluginLogger("offers", stderr_log_method)

    def _fail(self, error: Exception, context: str) -> NodeConnectionError:
        connection_error = handle_error(error, context, self._connection.connection_id)
        self._logger.error(f"{context} failed: {connection_error.message} ({connection_error.key})")
        self._connection.errors.push(connection_error)
        return connection_error

    async def get(self) -> List[Offer]:
        try:
            offers_response, invoice_requests_response = await asyncio.gather(
                self._connection.rpc("listoffers"),
                self._connection.rpc("listinvoicerequests"),
            )
            # pay offers first, then invoice requests, each in the order the node returned them
            entries = [(summary["offer_id"], OfferType.PAY, summary) for summary in offers_response["offers"]]
            entries += [(summary["invreq_id"], OfferType.WITHDRAW, summary)
                        for summary in invoice_requests_response["invoicerequests"]]
            offers = await gather_ordered(self._summary_to_offer, entries)
            self._logger.debug(f"get: {len(offers)} offers and invoice requests")
            return offers
        except Exception as e:
            raise self._fail(e, CONTEXT_GET) from e

    async def _summary_to_offer(self, entry: Tuple[str, OfferType, Dict[str, Any]]) -> Offer:
        offer_id, offer_type, summary = entry
        bolt12 = summary["bolt12"]
        decoded = await self._decoder.decode(bolt12)
        return Offer(id=offer_id,
                     bolt12=bolt12,
                     type=offer_type,
                     denomination=decoded.denomination,
                     amount=decoded.amount,
                     description=decoded.description,
                     issuer=decoded.issuer,
                     label=summary.get("label"),
                     active=summary["active"],
                     single_use=summary["single_use"],
                     used=summary["used"],
                     connection_id=self._connection.connection_id,
                     node_id=self._connection.node_id)

    async def create_pay(self, options: CreatePayOfferOptions) -> Offer:
        try:
            absolute_expiry = _absolute_expiry(options.expiry)
            amount = sats_to_msats(options.amount) if options.amount is not None else ANY_AMOUNT
            result = await self._connection.rpc("offer", {
                "amount": amount,
                "description": options.description,
                "issuer": options.issuer,
                "label": options.label,
                "quantity_max": options.quantity_max,
                "absolute_expiry": absolute_expiry,
                "single_use": options.single_use,
            })
            self._logger.debug(f"create_pay: created offer {result['offer_id']}")
            return Offer(id=result["offer_id"],
                         bolt12=result["bolt12"],
                         type=OfferType.PAY,
                         denomination=Denomination.SATS.value,
                         amount=options.amount,
                         description=options.description,
                         issuer=options.issuer,
                         label=options.label,
                         active=result["active"],
                         single_use=result["single_use"],
                         used=result["used"],
                         expiry=absolute_expiry,
                         quantity_max=options.quantity_max,
                         connection_id=self._connection.connection_id,
                         node_id=self._connection.node_id)
        except Exception as e:
            raise self._fail(e, CONTEXT_CREATE_PAY) from e

    async def disable_pay(self, offer_id: str) -> None:
        try:
            await self._connection.rpc("disableoffer", {"offer_id": offer_id})
        except Exception as e:
            raise self._fail(e, CONTEXT_DISABLE_PAY) from e

    async def create_withdraw(self, options: CreateWithdrawOfferOptions) -> Offer:
        try:
            if options.amount is None:
                raise ValueError("withdraw offers need an amount")
            absolute_expiry = _absolute_expiry(options.expiry)
            result = await self._connection.rpc("invoicerequest", {
                "amount": sats_to_msats(options.amount),
                "description": options.description,
                "issuer": options.issuer,
                "label": options.label,
                "absolute_expiry": absolute_expiry,
                "single_use": options.single_use,
            })
            self._logger.debug(f"create_withdraw: created invoice request {result['invreq_id']}")
            return Offer(id=result["invreq_id"],
                         bolt12=result["bolt12"],
                         type=OfferType.WITHDRAW,
                         denomination=Denomination.SATS.value,
                         amount=options.amount,
                         description=options.description,
                         issuer=options.issuer,
                         label=options.label,
                         active=result["active"],
                         single_use=result["single_use"],
                         used=result["used"],
                         expiry=absolute_expiry,
                         connection_id=self._connection.connection_id,
                         node_id=self._connection.node_id)
        except Exception as e:
            raise self._fail(e, CONTEXT_CREATE_WITHDRAW) from e

    async def disable_withdraw(self, invoice_request_id: str) -> None:
        try:
            await self._connection.rpc("disableinvoicerequest", {"invreq_id": invoice_request_id})
        except Exception as e:
            raise self._fail(e, CONTEXT_DISABLE_WITHDRAW) from e

    async def fetch_invoice(self, options: FetchInvoiceOptions) -> str:
        try:
            result = await self._connection.rpc("fetchinvoice", {
                "offer": options.offer,
                "amount_msat": sats_to_msats(options.amount) if options.amount is not None else None,
                "quantity": options.quantity,
                "timeout": options.timeout,
                "payer_note": options.payer_note,
            }, timeout=_call_timeout(options.timeout, NODE_FETCHINVOICE_TIMEOUT))
            return result["invoice"]
        except Exception as e:
            raise self._fail(e, CONTEXT_FETCH_INVOICE) from e

    async def send_invoice(self, options: SendInvoiceOptions) -> Invoice:
        try:
            started_at = now_seconds()
            amount_msat = format_msat_string(options.amount) if options.amount is not None else None

            # the amount is positional, without an amount the slot has to be left out entirely
            if amount_msat is not None:
                params = [options.offer, options.label, amount_msat, options.timeout, options.quantity]
            else:
                params = [options.offer, options.label, options.timeout, options.quantity]

            result = await self._connection.rpc(
                "sendinvoice", params, timeout=_call_timeout(options.timeout, NODE_SENDINVOICE_TIMEOUT))

            expires_at = result.get("expires_at")
            status = self._invoice_status(result)
            received_msat = result.get("amount_received_msat")
            amount = msats_to_sats(format_msat_string(received_msat if received_msat is not None else amount_msat))

            completed_at = result.get("paid_at")
            if completed_at is None and status is PaymentStatus.COMPLETE:
                # node did not report a settlement time, best effort stand-in
                completed_at = now_seconds()

            return Invoice(id=options.label,
                           hash=result["payment_hash"],
                           preimage=result.get("payment_preimage"),
                           direction=PaymentDirection.RECEIVE,
                           amount=amount,
                           status=status,
                           started_at=started_at,
                           completed_at=completed_at,
                           expires_at=expires_at,
                           pay_index=result.get("pay_index"),
                           request=result.get("bolt12", options.offer),
                           connection_id=self._connection.connection_id)
        except Exception as e:
            raise self._fail(e, CONTEXT_SEND_INVOICE) from e

    def _invoice_status(self, result: Dict[str, Any]) -> PaymentStatus:
        """Unknown statuses are judged by paid_at, a settled invoice is never reported as a failure"""
        try:
            return invoice_status_to_payment_status(result["status"], result.get("expires_at"))
        except FormatError as e:
            status = PaymentStatus.COMPLETE if result.get("paid_at") is not None else PaymentStatus.PENDING
            self._logger.warning(f"send_invoice: {e}, reporting {status.value}")
            return status

    def _pay_status(self, result: Dict[str, Any]) -> PaymentStatus:
        """Unknown statuses are judged by the preimage, only a paid invoice reveals it"""
        try:
            return pay_status_to_payment_status(result["status"])
        except FormatError as e:
            status = PaymentStatus.COMPLETE if result.get("payment_preimage") else PaymentStatus.PENDING
            self._logger.warning(f"pay_invoice: {e}, reporting {status.value}")
            return status

    async def pay_invoice(self, bolt12: str) -> Invoice:
        try:
            result = await self._connection.rpc("pay", [bolt12], timeout=_call_timeout(None, NODE_PAY_RETRY_FOR))
            amount_msat = format_msat_string(result["amount_msat"])
            amount_sent_msat = format_msat_string(result["amount_sent_msat"])
            fee_msat = Decimal(amount_sent_msat) - Decimal(amount_msat)
            if fee_msat < 0:
                # the payment already went out, report it with a zero fee
                self._logger.warning(f"pay_invoice: amount sent {amount_sent_msat} is below amount {amount_msat}, "
                                     f"reporting a fee of 0")
                fee_msat = Decimal(0)
            status = self._pay_status(result)

            return Invoice(id=random_hex(),
                           hash=result["payment_hash"],
                           preimage=result.get("payment_preimage"),
                           direction=PaymentDirection.SEND,
                           amount=msats_to_sats(amount_msat),
                           fee=msats_to_sats(fee_msat),
                           status=status,
                           started_at=int(result["created_at"]),
                           completed_at=now_seconds() if status is PaymentStatus.COMPLETE else None,
                           request=bolt12,
                           destination=result.get("destination"),
                           connection_id=self._connection.connection_id)
        except Exception as e:
            raise self._fail(e, CONTEXT_PAY_INVOICE) from e
