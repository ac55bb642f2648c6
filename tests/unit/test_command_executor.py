"""Unit tests for the execution model."""

import re
from datetime import UTC, datetime

import pytest

from commandgate.core.command_executor import (
    CommandExecution,
    CommandExecutor,
    ExecutionOptions,
    ExecutionState,
    RiskLevel,
    assess_risk_level,
    generate_execution_id,
)
from commandgate.core.executors.subprocess_executor import SubprocessExecutor


def make_execution(**overrides) -> CommandExecution:
    fields = {
        "id": "exec_1_abc",
        "command": "echo",
        "args": ("hi",),
        "start_time": datetime.now(UTC),
        "risk_level": RiskLevel.LOW,
    }
    fields.update(overrides)
    return CommandExecution(**fields)


class TestExecutionState:
    """Test ExecutionState lifecycle helpers."""

    @pytest.mark.parametrize(
        "state,terminal",
        [
            (ExecutionState.PENDING, False),
            (ExecutionState.SPAWNED, False),
            (ExecutionState.RUNNING, False),
            (ExecutionState.COMPLETED, True),
            (ExecutionState.FAILED, True),
            (ExecutionState.TIMED_OUT, True),
            (ExecutionState.TERMINATED, True),
        ],
    )
    def test_is_terminal(self, state: ExecutionState, terminal: bool) -> None:
        assert state.is_terminal is terminal


class TestCommandExecution:
    """Test CommandExecution record."""

    def test_defaults(self) -> None:
        execution = make_execution()

        assert execution.state is ExecutionState.PENDING
        assert execution.stdout == ""
        assert execution.exit_code is None
        assert not execution.frozen
        assert execution.command_line == "echo hi"

    def test_mutable_while_running(self) -> None:
        execution = make_execution()
        execution.stdout += "hi\n"
        execution.state = ExecutionState.RUNNING

        assert execution.stdout == "hi\n"

    def test_freeze_requires_finished(self) -> None:
        execution = make_execution()
        with pytest.raises(ValueError, match="has not finished"):
            execution.freeze()

        execution.end_time = datetime.now(UTC)
        with pytest.raises(ValueError):
            execution.freeze()

    def test_frozen_record_rejects_assignment(self) -> None:
        execution = make_execution()
        execution.end_time = datetime.now(UTC)
        execution.state = ExecutionState.COMPLETED
        execution.freeze()

        assert execution.frozen
        with pytest.raises(AttributeError, match="cannot be modified"):
            execution.exit_code = 1
        with pytest.raises(AttributeError):
            execution.state = ExecutionState.FAILED

    def test_to_dict(self) -> None:
        start = datetime(2025, 1, 1, tzinfo=UTC)
        execution = make_execution(start_time=start, exit_code=0, duration_ms=5.0)

        data = execution.to_dict()

        assert data["args"] == ["hi"]
        assert data["start_time"] == start.isoformat()
        assert data["end_time"] is None
        assert data["risk_level"] == "low"
        assert data["state"] == "pending"
        assert data["duration_ms"] == 5.0


class TestHelpers:
    """Test id generation and risk assessment."""

    def test_execution_id_format(self) -> None:
        assert re.fullmatch(r"exec_\d+_[0-9a-f]{12}", generate_execution_id())

    def test_execution_ids_unique(self) -> None:
        ids = {generate_execution_id() for _ in range(1000)}
        assert len(ids) == 1000

    @pytest.mark.parametrize(
        "command,args,expected",
        [
            ("rm", ["-rf", "build"], RiskLevel.CRITICAL),
            ("shutdown", ["now"], RiskLevel.CRITICAL),
            ("sudo", ["ls"], RiskLevel.HIGH),
            ("mv", ["a", "b"], RiskLevel.HIGH),
            ("git", ["push"], RiskLevel.MEDIUM),
            ("ls", ["-la"], RiskLevel.LOW),
        ],
    )
    def test_assess_risk_level(self, command: str, args: list[str], expected: RiskLevel) -> None:
        assert assess_risk_level(command, args) is expected

    def test_options_defaults(self) -> None:
        options = ExecutionOptions()
        assert options.timeout_ms is None
        assert options.environment == {}
        assert options.risk_level is None


class TestExecutorInterface:
    """Test the abstract interface."""

    def test_cannot_instantiate_abstract(self) -> None:
        with pytest.raises(TypeError):
            CommandExecutor()  # type: ignore[abstract]

    def test_subprocess_executor_implements_interface(self) -> None:
        executor = SubprocessExecutor()
        assert isinstance(executor, CommandExecutor)
        assert executor.get_name() == "subprocess"
        assert executor.history() == []
        assert executor.active() == []
