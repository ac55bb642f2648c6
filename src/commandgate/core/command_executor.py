"""Execution records and the executor interface.

An executor supervises one child process per ``execute`` call and produces a
``CommandExecution`` record. Implementations can spawn local subprocesses,
containers or remote jobs without the gateway knowing which.
"""

import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class RiskLevel(str, Enum):
    """Risk posture of a command."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ExecutionState(str, Enum):
    """Lifecycle of one execution.

    PENDING -> SPAWNED -> RUNNING -> one of the terminal states.
    """

    PENDING = "pending"
    SPAWNED = "spawned"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    TERMINATED = "terminated"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {
        ExecutionState.COMPLETED,
        ExecutionState.FAILED,
        ExecutionState.TIMED_OUT,
        ExecutionState.TERMINATED,
    }
)

# Checked in order; first level with a matching substring wins.
_RISK_PATTERNS: tuple[tuple[RiskLevel, tuple[str, ...]], ...] = (
    (
        RiskLevel.CRITICAL,
        ("rm -rf", "dd if=", "mkfs", "fdisk", "format", "shutdown", "reboot"),
    ),
    (RiskLevel.HIGH, ("sudo", "su ", "chmod 777", "chown", "rm ", "mv ", "cp /etc/")),
    (RiskLevel.MEDIUM, ("git push", "npm publish", "docker run", "kubectl apply")),
)


def assess_risk_level(command: str, args: Sequence[str] = ()) -> RiskLevel:
    """Quick risk estimate for executions that arrive without an analysis."""
    full_command = f"{command} {' '.join(args)} ".lower()
    for level, patterns in _RISK_PATTERNS:
        if any(pattern in full_command for pattern in patterns):
            return level
    return RiskLevel.LOW


def generate_execution_id() -> str:
    """Return an id unique for the lifetime of the process."""
    return f"exec_{int(time.time() * 1000)}_{uuid.uuid4().hex[:12]}"


@dataclass
class ExecutionOptions:
    """Per-call execution options.

    Attributes:
        timeout_ms: Wall-clock limit (None = executor default)
        working_directory: Child cwd (None = current directory)
        environment: Variables overlaid on the parent environment
        risk_level: Precomputed risk level (None = assess from the command)
    """

    timeout_ms: int | None = None
    working_directory: str | None = None
    environment: dict[str, str] = field(default_factory=dict)
    risk_level: RiskLevel | None = None


@dataclass
class CommandExecution:
    """Record of one supervised process run.

    Mutated by the executor while the process runs. ``freeze`` is called once
    ``end_time`` is set; after that every attribute assignment raises
    ``AttributeError``.
    """

    id: str
    command: str
    args: tuple[str, ...]
    start_time: datetime
    risk_level: RiskLevel
    end_time: datetime | None = None
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    duration_ms: float | None = None
    state: ExecutionState = ExecutionState.PENDING
    _frozen: bool = field(default=False, init=False, repr=False, compare=False)

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, "_frozen", False):
            raise AttributeError(f"Execution {self.id} is finished and cannot be modified")
        super().__setattr__(name, value)

    def freeze(self) -> None:
        if self.end_time is None or not self.state.is_terminal:
            raise ValueError(f"Execution {self.id} has not finished")
        super().__setattr__("_frozen", True)

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def command_line(self) -> str:
        return " ".join([self.command, *self.args])

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "command": self.command,
            "args": list(self.args),
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "exit_code": self.exit_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "duration_ms": self.duration_ms,
            "risk_level": self.risk_level.value,
            "state": self.state.value,
        }


class CommandExecutor(ABC):
    """Abstract interface for supervising child processes."""

    @abstractmethod
    async def execute(
        self,
        command: str,
        args: Sequence[str] | None = None,
        options: ExecutionOptions | None = None,
    ) -> CommandExecution:
        """Run ``command`` with ``args`` to completion.

        Returns:
            The finished execution (exit code 0)

        Raises:
            ProcessSpawnError: If the process could not be launched
            ProcessNonZeroExitError: If the process exited with a nonzero code
            ExecutionTimeoutError: If the deadline passed first
            ExecutionTerminatedError: If terminate() was called for it
        """
        ...

    @abstractmethod
    def terminate(self, execution_id: str) -> bool:
        """Signal a live execution to stop. Returns False if none was found."""
        ...

    @abstractmethod
    def history(self) -> list[CommandExecution]:
        """Finished executions in completion order."""
        ...

    @abstractmethod
    def active(self) -> list[str]:
        """Ids of executions with a live process."""
        ...

    @abstractmethod
    def get_name(self) -> str:
        """Executor name for logging/debugging."""
        ...
