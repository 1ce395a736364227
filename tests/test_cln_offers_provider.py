import asyncio
from concurrent.futures import Future
from unittest.mock import AsyncMock, Mock

import pytest

from cln_offers_src.offers.cln_offers_provider import CLNOffersProvider, _to_json
from cln_offers_src.offers.error_channel import ErrorChannel
from cln_offers_src.offers.errors import NodeConnectionError
from cln_offers_src.offers.models import CreatePayOfferOptions, Invoice, Offer, OfferType, SendInvoiceOptions

METHOD_NAMES = ["offers-list", "offers-createpay", "offers-disablepay", "offers-createwithdraw",
                "offers-disablewithdraw", "offers-fetchinvoice", "offers-sendinvoice", "offers-payinvoice",
                "offers-errors"]


def make_offer(offer_id: str) -> Offer:
    return Offer(id=offer_id, bolt12="lno1abc", type=OfferType.PAY, denomination="sats", amount="21")


@pytest.fixture
def provider():
    """Provider with every component mocked, the loop is set by the async tests"""
    connection = Mock()
    connection.errors = ErrorChannel("conn-1")
    return CLNOffersProvider(plugin_handler=Mock(), logger=Mock(), config=Mock(), connection=connection,
                             offers=Mock())


def registered_methods(provider) -> dict:
    provider.register_methods()
    return {call.args[0]: call.args[1] for call in provider.plugin_handler.add_background_method.call_args_list}


async def wait_for_response(request) -> None:
    """The done callback of the request runs on the loop shortly after the coroutine finished"""
    for _ in range(100):
        if request.set_result.called or request.set_exception.called:
            return
        await asyncio.sleep(0.01)
    raise AssertionError("request was never resolved")


def test_to_json():
    assert _to_json(None) == {}
    assert _to_json("lni1abc") == {"invoice": "lni1abc"}
    offers = _to_json([make_offer("o1"), make_offer("o2")])
    assert [offer["id"] for offer in offers["offers"]] == ["o1", "o2"]
    assert offers["offers"][0]["type"] == "pay"
    invoice = Invoice(id="i1", hash="a" * 64, direction="send", amount="5", status="complete", started_at=1,
                      request="lni1abc")
    assert _to_json(invoice)["status"] == "complete"


def test_register_methods(provider):
    assert list(registered_methods(provider)) == METHOD_NAMES


def test_not_initialized():
    provider = CLNOffersProvider()
    request = Mock()
    provider.submit(request, AsyncMock())
    request.set_exception.assert_called_once()
    request.set_result.assert_not_called()


def test_resolve_result(provider):
    request = Mock()
    future = Future()
    future.set_result(make_offer("o1"))
    provider._resolve(request, future)
    assert request.set_result.call_args.args[0]["id"] == "o1"


def test_resolve_exception(provider):
    request = Mock()
    future = Future()
    error = NodeConnectionError(key="connection_rpc_error", context="payInvoice (offers)", connection_id="conn-1")
    future.set_exception(error)
    provider._resolve(request, future)
    request.set_exception.assert_called_once_with(error)


@pytest.mark.asyncio
async def test_createpay_method(provider):
    provider._loop = asyncio.get_running_loop()
    provider.offers.create_pay = AsyncMock(return_value=make_offer("o1"))
    request = Mock()

    registered_methods(provider)["offers-createpay"](request, "coffee", "coffee-1", amount="21", expiry=60)
    await wait_for_response(request)

    provider.offers.create_pay.assert_awaited_once_with(
        CreatePayOfferOptions(description="coffee", label="coffee-1", amount="21", expiry=60))
    assert request.set_result.call_args.args[0]["id"] == "o1"


@pytest.mark.asyncio
async def test_sendinvoice_method(provider):
    provider._loop = asyncio.get_running_loop()
    provider.offers.send_invoice = AsyncMock(side_effect=NodeConnectionError(
        key="connection_rpc_error", context="sendInvoice (offers)", connection_id="conn-1"))
    request = Mock()

    registered_methods(provider)["offers-sendinvoice"](request, "lnr1abc", "refund-1", amount="5000")
    await wait_for_response(request)

    provider.offers.send_invoice.assert_awaited_once_with(
        SendInvoiceOptions(offer="lnr1abc", label="refund-1", amount="5000"))
    assert isinstance(request.set_exception.call_args.args[0], NodeConnectionError)


@pytest.mark.asyncio
async def test_list_method(provider):
    provider._loop = asyncio.get_running_loop()
    provider.offers.get = AsyncMock(return_value=[make_offer("o1")])
    request = Mock()

    registered_methods(provider)["offers-list"](request)
    await wait_for_response(request)

    assert request.set_result.call_args.args[0]["offers"][0]["id"] == "o1"


@pytest.mark.asyncio
async def test_errors_method(provider):
    provider._loop = asyncio.get_running_loop()
    provider.connection.errors.push(NodeConnectionError(key="connection_rpc_error", context="get (offers)",
                                                        connection_id="conn-1", message="boom"))
    request = Mock()

    registered_methods(provider)["offers-errors"](request)

    [error] = request.set_result.call_args.args[0]["errors"]
    assert error["context"] == "get (offers)"
    assert error["message"] == "boom"
