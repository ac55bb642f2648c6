"""Exception hierarchy with error codes for the command gateway.

Every failure that can reach the caller of ``CommandGateway.execute`` is one of
the typed errors below. Each carries an error code and a metadata dict so the
CLI and structured logs can render it without inspecting the type.
"""

from dataclasses import dataclass, field
from typing import Any

# Error codes
E_VALIDATION = "E_VALIDATION"
E_UNSAFE = "E_UNSAFE"
E_CONFIRMED_DENY = "E_CONFIRMED_DENY"
E_SPAWN = "E_SPAWN"
E_EXIT = "E_EXIT"
E_TIMEOUT = "E_TIMEOUT"
E_TERMINATED = "E_TERMINATED"


@dataclass
class CommandGateException(Exception):  # noqa: N818
    """Base exception for all gateway errors."""

    message: str
    error_code: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message

    def __post_init__(self) -> None:
        super().__init__(self.message)


@dataclass
class ConfigurationError(CommandGateException):
    """Invalid configuration value or unreadable configuration source."""

    key: str = ""
    reason: str = ""

    def __post_init__(self) -> None:
        if not self.error_code:
            self.error_code = E_VALIDATION
        if self.key:
            self.metadata["config_key"] = self.key
        if self.reason:
            self.metadata["reason"] = self.reason
        super().__post_init__()


@dataclass
class RejectedBySecurityThresholdError(CommandGateException):
    """Security score fell below the configured threshold.

    Raised before the executor is ever invoked.
    """

    command: str = ""
    score: int = 0
    threshold: int = 0

    def __post_init__(self) -> None:
        if not self.error_code:
            self.error_code = E_UNSAFE
        self.metadata.update(command=self.command, score=self.score, threshold=self.threshold)
        super().__post_init__()


@dataclass
class SandboxRestrictionError(CommandGateException):
    """Command category is not eligible while sandbox mode is enabled."""

    command: str = ""
    category: str = ""

    def __post_init__(self) -> None:
        if not self.error_code:
            self.error_code = E_UNSAFE
        self.metadata.update(command=self.command, category=self.category)
        super().__post_init__()


@dataclass
class DeniedByConfirmationError(CommandGateException):
    """Confirmation was denied explicitly or timed out."""

    command: str = ""
    response: str = ""

    def __post_init__(self) -> None:
        if not self.error_code:
            self.error_code = E_CONFIRMED_DENY
        self.metadata.update(command=self.command, response=self.response)
        super().__post_init__()


@dataclass
class BatchSizeExceededError(CommandGateException):
    """Batch is larger than the concurrency ceiling. Nothing was executed."""

    size: int = 0
    limit: int = 0

    def __post_init__(self) -> None:
        if not self.error_code:
            self.error_code = E_VALIDATION
        self.metadata.update(batch_size=self.size, limit=self.limit)
        super().__post_init__()


@dataclass
class ProcessExecutionError(CommandGateException):
    """Base for failures of a supervised child process."""

    command: str = ""
    execution_id: str = ""
    duration_ms: float | None = None

    def __post_init__(self) -> None:
        self.metadata["command"] = self.command
        if self.execution_id:
            self.metadata["execution_id"] = self.execution_id
        if self.duration_ms is not None:
            self.metadata["duration_ms"] = self.duration_ms
        super().__post_init__()


@dataclass
class ProcessSpawnError(ProcessExecutionError):
    """The OS refused to launch the process (missing binary, permissions)."""

    def __post_init__(self) -> None:
        if not self.error_code:
            self.error_code = E_SPAWN
        super().__post_init__()


@dataclass
class ProcessNonZeroExitError(ProcessExecutionError):
    """Process ran to completion with a nonzero exit code."""

    exit_code: int = 1
    stderr: str = ""

    def __post_init__(self) -> None:
        if not self.error_code:
            self.error_code = E_EXIT
        self.metadata["exit_code"] = self.exit_code
        super().__post_init__()


@dataclass
class ExecutionTimeoutError(ProcessExecutionError):
    """Process was killed because the deadline passed first."""

    timeout_ms: int = 0

    def __post_init__(self) -> None:
        if not self.error_code:
            self.error_code = E_TIMEOUT
        self.metadata["timeout_ms"] = self.timeout_ms
        super().__post_init__()


@dataclass
class ExecutionTerminatedError(ProcessExecutionError):
    """Process was killed by an explicit terminate request."""

    def __post_init__(self) -> None:
        if not self.error_code:
            self.error_code = E_TERMINATED
        super().__post_init__()


def format_error_for_user(exception: CommandGateException) -> str:
    """Format exception for user-friendly display.

    Args:
        exception: The gateway exception to format

    Returns:
        Human-readable error message without internal details
    """
    if isinstance(exception, RejectedBySecurityThresholdError):
        return (
            f"Blocked: security score {exception.score} is below the threshold "
            f"of {exception.threshold}"
        )

    if isinstance(exception, SandboxRestrictionError):
        return f"Blocked: '{exception.category}' commands are not allowed in sandbox mode"

    if isinstance(exception, DeniedByConfirmationError):
        if exception.response == "timeout":
            return "Cancelled: no confirmation received in time"
        return "Cancelled: execution was denied"

    if isinstance(exception, BatchSizeExceededError):
        return f"Batch of {exception.size} commands exceeds the limit of {exception.limit}"

    if isinstance(exception, ProcessNonZeroExitError):
        stderr = exception.stderr.strip()
        if stderr:
            return f"Command exited with code {exception.exit_code}: {stderr}"
        return f"Command exited with code {exception.exit_code}"

    if isinstance(exception, ExecutionTimeoutError):
        return f"Command timed out after {exception.timeout_ms}ms"

    if isinstance(exception, ExecutionTerminatedError):
        return "Command was terminated"

    if isinstance(exception, ProcessSpawnError):
        return f"Could not start '{exception.command}': {exception.message}"

    if isinstance(exception, ConfigurationError):
        if exception.key:
            return f"Configuration error '{exception.key}': {exception.message}"
        return f"Configuration error: {exception.message}"

    return str(exception.message)


def format_error_for_log(exception: CommandGateException) -> dict[str, Any]:
    """Format exception for structured logging.

    Args:
        exception: The gateway exception to format

    Returns:
        Dictionary with structured error information for logs
    """
    log_data: dict[str, Any] = {
        "error_type": type(exception).__name__,
        "message": exception.message,
        "error_code": exception.error_code,
    }

    if exception.metadata:
        log_data["metadata"] = dict(exception.metadata)

    if isinstance(exception, ProcessNonZeroExitError) and exception.stderr:
        log_data["stderr"] = exception.stderr[-2000:]

    return log_data
