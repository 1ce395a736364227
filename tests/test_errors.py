import asyncio

from pyln.client import RpcError

from cln_offers_src.offers.amounts import FormatError
from cln_offers_src.offers.errors import DecodeError, ErrorKey, NodeConnectionError, handle_error

CONTEXT = "createPay (offers)"
CONNECTION_ID = "conn-1"


def test_rpc_error_is_application_error():
    rpc_error = RpcError("offer", {"label": "x"}, {"code": 1000, "message": "Duplicate label"})
    error = handle_error(rpc_error, CONTEXT, CONNECTION_ID)
    assert isinstance(error, NodeConnectionError)
    assert error.key == ErrorKey.RPC.value
    assert error.context == CONTEXT
    assert error.connection_id == CONNECTION_ID
    assert error.detail == {"code": 1000, "message": "Duplicate label"}
    assert error.message == "Duplicate label"


def test_decode_error():
    error = handle_error(DecodeError("not a valid bolt12 string"), "get (offers)", CONNECTION_ID)
    assert error.key == ErrorKey.DECODE.value
    assert error.message == "not a valid bolt12 string"


def test_format_error():
    raw = FormatError("invalid msat value: 'abc'")
    error = handle_error(raw, CONTEXT, CONNECTION_ID)
    assert error.key == ErrorKey.FORMAT.value
    assert error.detail is raw


def test_transport_errors():
    for raw in (asyncio.TimeoutError(), ConnectionRefusedError("refused"), FileNotFoundError("lightning-rpc")):
        assert handle_error(raw, CONTEXT, CONNECTION_ID).key == ErrorKey.TRANSPORT.value


def test_unknown_error():
    error = handle_error(KeyError("offer_id"), CONTEXT, CONNECTION_ID)
    assert error.key == ErrorKey.UNKNOWN.value
    assert error.connection_id == CONNECTION_ID


def test_timeout_message_is_not_empty():
    error = handle_error(asyncio.TimeoutError(), CONTEXT, CONNECTION_ID)
    assert error.message == "TimeoutError"


def test_mapped_error_gets_new_context():
    """An already mapped error keeps key and detail but is reported for the current operation"""
    first = handle_error(DecodeError("bad"), "get (offers)", "conn-0")
    second = handle_error(first, CONTEXT, CONNECTION_ID)
    assert second.key == first.key
    assert second.detail is first.detail
    assert second.context == CONTEXT
    assert second.connection_id == CONNECTION_ID


def test_error_str_and_dict():
    rpc_error = RpcError("disableoffer", {"offer_id": "abc"}, {"code": 1001, "message": "Unknown offer"})
    error = handle_error(rpc_error, "disablePay (offers)", CONNECTION_ID)
    assert "disablePay (offers)" in str(error)
    assert "Unknown offer" in str(error)
    assert error.to_dict() == {
        "key": ErrorKey.RPC.value,
        "context": "disablePay (offers)",
        "connection_id": CONNECTION_ID,
        "message": "Unknown offer",
        "detail": {"code": 1001, "message": "Unknown offer"},
    }


def test_error_dict_with_exception_detail():
    error = handle_error(ValueError("withdraw offers need an amount"), CONTEXT, CONNECTION_ID)
    assert error.to_dict()["detail"] == {"message": "withdraw offers need an amount"}
