from typing import Callable, Dict, List, Optional

from .cln_logger import PluginLogger
from .errors import NodeConnectionError

MAX_CONNECTION_ERRORS = 10

ErrorCallback = Callable[[NodeConnectionError], None]


class ErrorChannel:
    """
    Bounded error history of a single connection. Keeps the last MAX_CONNECTION_ERRORS errors,
    oldest first, and notifies subscribers on every push.
    """
    def __init__(self, connection_id: Optional[str], *, max_size: int = MAX_CONNECTION_ERRORS,
                 logger: Optional[PluginLogger] = None):
        self.connection_id = connection_id
        self.max_size = max_size
        self._errors: List[NodeConnectionError] = []
        self._callbacks: List[ErrorCallback] = []
        self._logger = logger

    def push(self, error: NodeConnectionError) -> None:
        self._errors.append(error)
        while len(self._errors) > self.max_size:
            self._errors.pop(0)
        for callback in list(self._callbacks):
            try:
                callback(error)
            except Exception as e:
                if self._logger is not None:
                    self._logger.error(f"ErrorChannel: error in subscriber callback: {e}")

    def subscribe(self, callback: ErrorCallback) -> Callable[[], None]:
        """Returns a function that removes the subscription again"""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
        return unsubscribe

    @property
    def history(self) -> List[NodeConnectionError]:
        return list(self._errors)

    @property
    def latest(self) -> Optional[NodeConnectionError]:
        return self._errors[-1] if self._errors else None

    def clear(self) -> None:
        self._errors.clear()

    def __len__(self):
        return len(self._errors)


class ConnectionErrors:
    """Error channels of all connections, grouped by connection id"""
    def __init__(self, logger: Optional[PluginLogger] = None):
        self._channels: Dict[str, ErrorChannel] = {}
        self._callbacks: List[ErrorCallback] = []
        self._logger = logger

    def channel_for(self, connection_id: str) -> ErrorChannel:
        channel = self._channels.get(connection_id)
        if channel is None:
            channel = ErrorChannel(connection_id, logger=self._logger)
            channel.subscribe(self._forward)
            self._channels[connection_id] = channel
        return channel

    def remove(self, connection_id: str) -> None:
        channel = self._channels.pop(connection_id, None)
        if channel is not None:
            channel.clear()

    def subscribe(self, callback: ErrorCallback) -> Callable[[], None]:
        """Subscribe to errors of all connections"""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
        return unsubscribe

    def history(self) -> Dict[str, List[NodeConnectionError]]:
        return {connection_id: channel.history for connection_id, channel in self._channels.items()}

    def _forward(self, error: NodeConnectionError) -> None:
        for callback in list(self._callbacks):
            try:
                callback(error)
            except Exception as e:
                if self._logger is not None:
                    self._logger.error(f"ConnectionErrors: error in subscriber callback: {e}")

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._channels
