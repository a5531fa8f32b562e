"""Switchyard Core: result values, errors, config, and logging."""
from __future__ import annotations

from switchyard_core._version import __version__
from switchyard_core.config import (
    LoggingConfig,
    PluginsConfig,
    ServerConfig,
    SkillsConfig,
    SwitchyardConfig,
    ToolsConfig,
)
from switchyard_core.errors import (
    ConfigError,
    EmptyResponseError,
    HandshakeFailedError,
    NotConnectedError,
    PluginValidationError,
    ProtocolError,
    SkillValidationError,
    SpawnFailedError,
    SwitchyardError,
    ToolServerError,
    ToolTimeoutError,
    ValidationError,
)
from switchyard_core.logging import get_logger, setup_logging
from switchyard_core.types import ErrorKind, Result

__all__ = [
    # Errors
    "ConfigError",
    "EmptyResponseError",
    # Types
    "ErrorKind",
    "HandshakeFailedError",
    # Config
    "LoggingConfig",
    "NotConnectedError",
    "PluginValidationError",
    "PluginsConfig",
    "ProtocolError",
    "Result",
    "ServerConfig",
    "SkillValidationError",
    "SkillsConfig",
    "SpawnFailedError",
    "SwitchyardConfig",
    "SwitchyardError",
    "ToolServerError",
    "ToolTimeoutError",
    "ToolsConfig",
    "ValidationError",
    # Version
    "__version__",
    # Logging
    "get_logger",
    "setup_logging",
]
