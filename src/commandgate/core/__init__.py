"""Core modules for the command gateway.

Exceptions, configuration, events, logging, the execution model and the
gateway orchestrator.
"""

from .command_executor import (
    CommandExecution,
    CommandExecutor,
    ExecutionOptions,
    ExecutionState,
    RiskLevel,
)
from .config import GatewayConfig, load_config
from .events import EVENT_TYPES, EventBus, EventType, GatewayEvent
from .exceptions import (
    # Error codes
    E_CONFIRMED_DENY,
    E_EXIT,
    E_SPAWN,
    E_TERMINATED,
    E_TIMEOUT,
    E_UNSAFE,
    E_VALIDATION,
    BatchSizeExceededError,
    CommandGateException,
    ConfigurationError,
    DeniedByConfirmationError,
    ExecutionTerminatedError,
    ExecutionTimeoutError,
    ProcessExecutionError,
    ProcessNonZeroExitError,
    ProcessSpawnError,
    RejectedBySecurityThresholdError,
    SandboxRestrictionError,
    format_error_for_log,
    format_error_for_user,
)
from .metrics import ExecutionMetrics

__all__ = [
    # Error codes
    "E_CONFIRMED_DENY",
    "E_EXIT",
    "E_SPAWN",
    "E_TERMINATED",
    "E_TIMEOUT",
    "E_UNSAFE",
    "E_VALIDATION",
    # Exceptions
    "BatchSizeExceededError",
    "CommandGateException",
    "ConfigurationError",
    "DeniedByConfirmationError",
    "ExecutionTerminatedError",
    "ExecutionTimeoutError",
    "ProcessExecutionError",
    "ProcessNonZeroExitError",
    "ProcessSpawnError",
    "RejectedBySecurityThresholdError",
    "SandboxRestrictionError",
    "format_error_for_log",
    "format_error_for_user",
    # Execution model
    "CommandExecution",
    "CommandExecutor",
    "ExecutionMetrics",
    "ExecutionOptions",
    "ExecutionState",
    "RiskLevel",
    # Config and events
    "EVENT_TYPES",
    "EventBus",
    "EventType",
    "GatewayConfig",
    "GatewayEvent",
    "load_config",
]
