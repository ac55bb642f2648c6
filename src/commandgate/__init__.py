"""
commandgate

A gatekeeper for running shell commands on behalf of automated agents: every
command is categorized, scored against security heuristics, optionally
confirmed and then executed under supervision.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from commandgate.core.command_executor import CommandExecution, ExecutionOptions
from commandgate.core.config import GatewayConfig
from commandgate.core.events import EventBus, GatewayEvent
from commandgate.core.exceptions import (
    BatchSizeExceededError,
    CommandGateException,
    ConfigurationError,
    DeniedByConfirmationError,
    ExecutionTerminatedError,
    ExecutionTimeoutError,
    ProcessNonZeroExitError,
    ProcessSpawnError,
    RejectedBySecurityThresholdError,
    SandboxRestrictionError,
)
from commandgate.core.executors.subprocess_executor import SubprocessExecutor
from commandgate.core.gateway import CommandGateway
from commandgate.security.categorizer import CommandCategorizer
from commandgate.security.command_validator import SecurityValidator
from commandgate.security.confirmation import (
    ConfirmationGate,
    ScorePolicyDecisionSource,
    ScriptedDecisionSource,
    StaticDecisionSource,
    UserResponse,
)

# Convenience alias
Gateway = CommandGateway

__all__ = [
    # Version
    "__version__",
    # Gateway
    "CommandGateway",
    "Gateway",  # Alias for CommandGateway
    "GatewayConfig",
    "EventBus",
    "GatewayEvent",
    # Components
    "CommandCategorizer",
    "SecurityValidator",
    "ConfirmationGate",
    "SubprocessExecutor",
    "CommandExecution",
    "ExecutionOptions",
    # Decision sources
    "UserResponse",
    "StaticDecisionSource",
    "ScriptedDecisionSource",
    "ScorePolicyDecisionSource",
    # Exceptions
    "CommandGateException",
    "ConfigurationError",
    "RejectedBySecurityThresholdError",
    "SandboxRestrictionError",
    "DeniedByConfirmationError",
    "BatchSizeExceededError",
    "ProcessSpawnError",
    "ProcessNonZeroExitError",
    "ExecutionTimeoutError",
    "ExecutionTerminatedError",
]
