import os
from typing import Optional

from dotenv import load_dotenv

from .cln_logger import LEVELS, PluginLogger
from .connection import DEFAULT_RPC_TIMEOUT


class ConfigError(Exception):
    pass


class PluginConfig:
    """Simple configuration class for the offers plugin"""
    def __init__(self, *, logger: PluginLogger):
        self.rpc_file: Optional[str] = None
        self.connection_id: Optional[str] = None
        self.rpc_timeout: int = DEFAULT_RPC_TIMEOUT
        self.logger = logger

    @classmethod
    def from_env(cls, *, logger: PluginLogger) -> 'PluginConfig':
        """Load configuration from .env file or environment variables"""
        load_dotenv()
        config = PluginConfig(logger=logger)

        if rpc_file := os.getenv("CLN_RPC_FILE"):
            config.rpc_file = rpc_file.strip()
        else:
            config.logger.debug("No CLN_RPC_FILE in env, only the plugin rpc can be used")

        if connection_id := os.getenv("OFFERS_CONNECTION_ID"):
            config.connection_id = connection_id.strip()

        if timeout := os.getenv("OFFERS_RPC_TIMEOUT"):
            try:
                timeout = int(timeout.strip())
            except ValueError:
                raise ConfigError(f"OFFERS_RPC_TIMEOUT is not an integer: {timeout}")
            if not 1 <= timeout <= 3600:
                raise ConfigError("OFFERS_RPC_TIMEOUT is out of allowed range [1;3600]")
            config.rpc_timeout = timeout
        else:
            config.logger.warning(f"No OFFERS_RPC_TIMEOUT in env. Using default of {config.rpc_timeout}s")

        if log_level := os.getenv("OFFERS_LOG_LEVEL"):
            log_level = log_level.strip().upper()
            if log_level not in LEVELS:
                raise ConfigError(f"Invalid OFFERS_LOG_LEVEL: {log_level}")
            config.logger.change_level(log_level)

        config.logger.debug(f"Loaded configuration: {config}")
        return config

    def __str__(self):
        return f"rpc_file={self.rpc_file}, " \
               f"connection_id={self.connection_id}, " \
               f"rpc_timeout={self.rpc_timeout}"
