"""Running execution metrics."""

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class ExecutionMetrics:
    """Point-in-time snapshot of gateway metrics.

    Attributes:
        total_executions: Every terminal outcome, rejections included
        successful_executions: Executions that completed with exit code 0
        failed_executions: Rejections, denials and process failures
        average_execution_time: Mean duration in ms over outcomes that ran a process
        security_score: Mean security score over validated commands
        user_approval_rate: Percentage of confirmations that were approved
    """

    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    average_execution_time: float = 0.0
    security_score: float = 0.0
    user_approval_rate: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def running_average(old: float, value: float, n: int) -> float:
    """Fold the n-th ``value`` into an average over the previous n-1 values."""
    return (old * (n - 1) + value) / n


class MetricsTracker:
    """Incremental aggregate. Only the gateway writes to it."""

    def __init__(self) -> None:
        self.total = 0
        self.successful = 0
        self.failed = 0
        self.average_execution_time = 0.0
        self.security_score = 0.0
        self._timed = 0
        self._scored = 0

    def record(
        self,
        succeeded: bool,
        duration_ms: float | None = None,
        security_score: int | None = None,
    ) -> None:
        """Record one terminal outcome.

        ``duration_ms`` is None for outcomes that never ran a process and
        ``security_score`` is None when the command never got validated.
        """
        self.total += 1
        if succeeded:
            self.successful += 1
        else:
            self.failed += 1

        if duration_ms is not None:
            self._timed += 1
            self.average_execution_time = running_average(
                self.average_execution_time, duration_ms, self._timed
            )
        if security_score is not None:
            self._scored += 1
            self.security_score = running_average(self.security_score, security_score, self._scored)

    def snapshot(self, user_approval_rate: float = 0.0) -> ExecutionMetrics:
        return ExecutionMetrics(
            total_executions=self.total,
            successful_executions=self.successful,
            failed_executions=self.failed,
            average_execution_time=self.average_execution_time,
            security_score=self.security_score,
            user_approval_rate=user_approval_rate,
        )
