import enum
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union

from pyln.client import LightningRpc

from .cln_logger import PluginLogger
from .error_channel import ConnectionErrors, ErrorChannel
from .utils import call_blocking_with_timeout

RpcParams = Union[Dict[str, Any], List[Any], None]

DEFAULT_RPC_TIMEOUT = 60


class ConnectionType(enum.Enum):
    SOCKET = "socket"  # standalone LightningRpc on the nodes lightning-rpc unix socket
    PLUGIN = "plugin"  # rpc handle of a running pyln Plugin


class RpcConnection(ABC):
    """What the offers code needs from a node connection"""
    connection_id: Optional[str]
    node_id: Optional[str]
    errors: ErrorChannel

    @abstractmethod
    async def rpc(self, method: str, params: RpcParams = None, *, timeout: Optional[int] = None) -> Dict[str, Any]:
        """timeout is the wait for this call, calls that block on the network bring their own"""
        pass


class ClnRpcConnection(RpcConnection):
    """Core Lightning connection through a pyln rpc handle (LightningRpc or Plugin.rpc)"""
    connection_type: Optional[ConnectionType] = None

    def __init__(self, *, rpc, logger: PluginLogger, connection_id: Optional[str] = None,
                 timeout: int = DEFAULT_RPC_TIMEOUT, errors: Optional[ConnectionErrors] = None):
        self._rpc = rpc
        self._logger = logger
        self._timeout = timeout
        self._registry = errors
        self.node_id: Optional[str] = None
        self.connection_id = connection_id
        self.errors = ErrorChannel(connection_id, logger=logger)
        if connection_id is not None:
            self._attach_error_channel()

    async def rpc(self, method: str, params: RpcParams = None, *, timeout: Optional[int] = None) -> Dict[str, Any]:
        if isinstance(params, dict):
            params = {key: value for key, value in params.items() if value is not None}
        # never wait less than the configured timeout
        timeout = max(self._timeout, timeout) if timeout is not None else self._timeout
        self._logger.debug(f"{self._kind} rpc call: {method} {params} (timeout {timeout}s)")
        result = await call_blocking_with_timeout(self._rpc.call, method, params, timeout=timeout)
        self._logger.debug(f"{self._kind} rpc result: {method} {result}")
        return result

    @property
    def _kind(self) -> str:
        return self.connection_type.value if self.connection_type is not None else "cln"

    async def fetch_info(self) -> Dict[str, Any]:
        """Fetch the node identity, the node id is used as connection id if none was configured"""
        info = await self.rpc("getinfo")
        self.node_id = info["id"]
        if self.connection_id is None:
            self.connection_id = self.node_id
            self._attach_error_channel()
        return info

    def _attach_error_channel(self) -> None:
        if self._registry is not None:
            self.errors = self._registry.channel_for(self.connection_id)
        else:
            self.errors.connection_id = self.connection_id

    def close(self) -> None:
        """Teardown, drops the error history of this connection"""
        if self._registry is not None and self.connection_id is not None:
            self._registry.remove(self.connection_id)
        self.errors.clear()


class ClnSocketConnection(ClnRpcConnection):
    connection_type = ConnectionType.SOCKET

    def __init__(self, *, rpc_file: str, logger: PluginLogger, **kwargs):
        super().__init__(rpc=LightningRpc(rpc_file), logger=logger, **kwargs)
        self.rpc_file = rpc_file


class ClnPluginConnection(ClnRpcConnection):
    connection_type = ConnectionType.PLUGIN

    def __init__(self, *, plugin, logger: PluginLogger, **kwargs):
        if plugin.rpc is None:
            raise ValueError("ClnPluginConnection: plugin rpc is not ready yet")
        super().__init__(rpc=plugin.rpc, logger=logger, **kwargs)


async def create_connection(connection_type: ConnectionType, *, logger: PluginLogger,
                            rpc_file: Optional[str] = None, plugin=None,
                            connection_id: Optional[str] = None, timeout: int = DEFAULT_RPC_TIMEOUT,
                            errors: Optional[ConnectionErrors] = None) -> ClnRpcConnection:
    """Build the backend adapter for connection_type and fetch the node identity"""
    if connection_type is ConnectionType.SOCKET:
        if not rpc_file:
            raise ValueError("create_connection: socket connection needs the lightning-rpc file path")
        connection = ClnSocketConnection(rpc_file=rpc_file, logger=logger, connection_id=connection_id,
                                         timeout=timeout, errors=errors)
    elif connection_type is ConnectionType.PLUGIN:
        if plugin is None:
            raise ValueError("create_connection: plugin connection needs a pyln plugin")
        connection = ClnPluginConnection(plugin=plugin, logger=logger, connection_id=connection_id,
                                         timeout=timeout, errors=errors)
    else:
        raise ValueError(f"Unknown connection type: {connection_type}")
    info = await connection.fetch_info()
    logger.info(f"Connected to node {info['id']} ({connection_type.value}), connection id {connection.connection_id}")
    return connection
