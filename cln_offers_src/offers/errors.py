import asyncio
import enum
from typing import Any, Optional

import attr
from pyln.client import RpcError

from .amounts import FormatError


class ErrorKey(str, enum.Enum):
    RPC = "connection_rpc_error"              # node rejected a well formed request
    TRANSPORT = "connection_transport_error"  # node unreachable or the call timed out
    DECODE = "connection_decode_error"        # malformed bolt12 string
    FORMAT = "connection_format_error"        # unexpected amount/unit shape
    UNKNOWN = "connection_unknown_error"


class DecodeError(Exception):
    def __init__(self, message: str, detail: Optional[Any] = None):
        super().__init__(message)
        self.detail = detail


@attr.s(auto_exc=True, kw_only=True)
class NodeConnectionError(Exception):
    key = attr.ib(type=str)
    context = attr.ib(type=str)
    connection_id = attr.ib(type=Optional[str])
    detail = attr.ib(default=None)
    message = attr.ib(type=str, default="")

    def __str__(self):
        return f"{self.context}: {self.message} [{self.key}, connection {self.connection_id}]"

    def to_dict(self) -> dict:
        detail = self.detail
        if isinstance(detail, BaseException):
            detail = {"message": str(detail)}
        return {
            "key": self.key,
            "context": self.context,
            "connection_id": self.connection_id,
            "message": self.message,
            "detail": detail,
        }


def _rpc_error_message(error: RpcError) -> str:
    payload = error.error
    if isinstance(payload, dict) and "message" in payload:
        return str(payload["message"])
    return str(error)


def handle_error(raw_error: BaseException, context: str, connection_id: Optional[str]) -> NodeConnectionError:
    """Map any failure into a NodeConnectionError tagged with operation context, never raises"""
    if isinstance(raw_error, NodeConnectionError):
        return attr.evolve(raw_error, context=context, connection_id=connection_id)
    if isinstance(raw_error, RpcError):
        return NodeConnectionError(key=ErrorKey.RPC.value, context=context, connection_id=connection_id,
                                   detail=raw_error.error, message=_rpc_error_message(raw_error))
    if isinstance(raw_error, DecodeError):
        key = ErrorKey.DECODE
    elif isinstance(raw_error, FormatError):
        key = ErrorKey.FORMAT
    elif isinstance(raw_error, (asyncio.TimeoutError, OSError, EOFError)):
        key = ErrorKey.TRANSPORT
    else:
        key = ErrorKey.UNKNOWN
    message = str(raw_error) or type(raw_error).__name__
    return NodeConnectionError(key=key.value, context=context, connection_id=connection_id,
                               detail=raw_error, message=message)
