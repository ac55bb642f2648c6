"""Confirmation gate for flagged commands.

The gate presents a command, its analysis and its security result to an
injected decision source and waits a bounded time for one of four outcomes:
approve, deny, timeout (treated as deny) or skip (approve once and ask the
caller to stop prompting). Every decision is recorded in an append-only log.
"""

import asyncio
from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from commandgate.core.events import EventBus, EventType
from commandgate.core.logger import get_logger
from commandgate.security.categorizer import CommandAnalysis
from commandgate.security.command_validator import SecurityValidationResult

logger = get_logger("confirmation")

DEFAULT_CONFIRMATION_TIMEOUT_MS = 10_000


class UserResponse(str, Enum):
    """Decision kinds a confirmation can resolve to."""

    APPROVED = "approved"
    DENIED = "denied"
    TIMEOUT = "timeout"
    SKIP = "skip"

    @property
    def confirmed(self) -> bool:
        return self in (UserResponse.APPROVED, UserResponse.SKIP)


@dataclass(frozen=True)
class ConfirmationOptions:
    timeout_ms: int = DEFAULT_CONFIRMATION_TIMEOUT_MS
    show_details: bool = True


@dataclass(frozen=True)
class ConfirmationRequest:
    """Everything a decision source is shown."""

    command: str
    args: tuple[str, ...]
    analysis: CommandAnalysis
    security_result: SecurityValidationResult
    show_details: bool = True

    @property
    def command_line(self) -> str:
        return " ".join([self.command, *self.args])


@dataclass(frozen=True)
class ConfirmationResult:
    confirmed: bool
    user_response: UserResponse
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    skip_future: bool = False

    @classmethod
    def from_response(cls, response: UserResponse) -> "ConfirmationResult":
        return cls(
            confirmed=response.confirmed,
            user_response=response,
            skip_future=response is UserResponse.SKIP,
        )


@dataclass(frozen=True)
class ConfirmationStats:
    total: int = 0
    approved: int = 0
    denied: int = 0
    timeout: int = 0
    skipped: int = 0
    approval_rate: float = 0.0


@runtime_checkable
class DecisionSource(Protocol):
    """Anything that can turn a confirmation request into a decision."""

    async def decide(self, request: ConfirmationRequest) -> UserResponse: ...


class StaticDecisionSource:
    """Always answers with the same response."""

    def __init__(self, response: UserResponse = UserResponse.DENIED) -> None:
        self.response = response

    async def decide(self, request: ConfirmationRequest) -> UserResponse:
        return self.response


class ScriptedDecisionSource:
    """Answers from a queue of responses, then falls back to ``default``."""

    def __init__(
        self,
        responses: Iterable[UserResponse],
        default: UserResponse = UserResponse.DENIED,
    ) -> None:
        self._responses = deque(responses)
        self.default = default
        self.requests: list[ConfirmationRequest] = []

    async def decide(self, request: ConfirmationRequest) -> UserResponse:
        self.requests.append(request)
        if self._responses:
            return self._responses.popleft()
        return self.default

    @property
    def remaining(self) -> int:
        return len(self._responses)


class ScorePolicyDecisionSource:
    """Unattended policy driven by the security score.

    Approves at or above ``approve_at``, denies below ``deny_below`` and uses
    ``default`` for everything in between.
    """

    def __init__(
        self,
        approve_at: int = 90,
        deny_below: int = 50,
        default: UserResponse = UserResponse.DENIED,
    ) -> None:
        if deny_below > approve_at:
            raise ValueError("deny_below must not exceed approve_at")
        self.approve_at = approve_at
        self.deny_below = deny_below
        self.default = default

    async def decide(self, request: ConfirmationRequest) -> UserResponse:
        score = request.security_result.score
        if score >= self.approve_at:
            return UserResponse.APPROVED
        if score < self.deny_below:
            return UserResponse.DENIED
        return self.default


class ConfirmationGate:
    """Obtains bounded-time decisions and keeps the confirmation log."""

    def __init__(
        self,
        decision_source: DecisionSource | None = None,
        event_bus: EventBus | None = None,
        default_timeout_ms: int = DEFAULT_CONFIRMATION_TIMEOUT_MS,
    ) -> None:
        """Initialize confirmation gate.

        Args:
            decision_source: Where decisions come from (denies everything if omitted)
            event_bus: Receives confirmation_requested/confirmation_resolved events
            default_timeout_ms: Wait used when no options are passed to ``request``
        """
        self.decision_source = decision_source or StaticDecisionSource(UserResponse.DENIED)
        self.event_bus = event_bus
        self.default_timeout_ms = default_timeout_ms
        self._log: list[tuple[str, ConfirmationResult]] = []

    async def request(
        self,
        command: str,
        args: Sequence[str] | None,
        analysis: CommandAnalysis,
        security_result: SecurityValidationResult,
        options: ConfirmationOptions | None = None,
        execution_id: str | None = None,
    ) -> ConfirmationResult:
        """Ask the decision source about one command.

        Never raises for a misbehaving source: errors resolve to ``denied``
        and an exceeded wait resolves to ``timeout``.
        """
        options = options or ConfirmationOptions(timeout_ms=self.default_timeout_ms)
        request = ConfirmationRequest(
            command=command,
            args=tuple(args or ()),
            analysis=analysis,
            security_result=security_result,
            show_details=options.show_details,
        )
        command_line = request.command_line

        self._emit(
            "confirmation_requested",
            {
                "command": command_line,
                "category": analysis.category.name.value,
                "security_score": security_result.score,
                "timeout_ms": options.timeout_ms,
            },
            execution_id,
        )

        try:
            response = await asyncio.wait_for(
                self.decision_source.decide(request), timeout=options.timeout_ms / 1000
            )
            response = UserResponse(response)
        except TimeoutError:
            logger.info("Confirmation timed out", command=command_line, timeout_ms=options.timeout_ms)
            response = UserResponse.TIMEOUT
        except Exception as e:
            logger.error("Decision source failed", command=command_line, error=str(e))
            response = UserResponse.DENIED

        result = ConfirmationResult.from_response(response)
        self._log.append((command_line, result))
        logger.debug("Confirmation resolved", command=command_line, response=response.value)

        self._emit(
            "confirmation_resolved",
            {
                "command": command_line,
                "response": response.value,
                "confirmed": result.confirmed,
                "skip_future": result.skip_future,
            },
            execution_id,
        )
        return result

    def stats(self) -> ConfirmationStats:
        responses = [result.user_response for _, result in self._log]
        total = len(responses)
        approved = responses.count(UserResponse.APPROVED)
        return ConfirmationStats(
            total=total,
            approved=approved,
            denied=responses.count(UserResponse.DENIED),
            timeout=responses.count(UserResponse.TIMEOUT),
            skipped=responses.count(UserResponse.SKIP),
            approval_rate=approved / total * 100 if total else 0.0,
        )

    def history(self) -> list[tuple[str, ConfirmationResult]]:
        return list(self._log)

    def _emit(
        self, event_type: EventType, data: dict[str, Any], execution_id: str | None
    ) -> None:
        if self.event_bus is not None:
            self.event_bus.emit(event_type, data, execution_id)


__all__ = [
    "ConfirmationGate",
    "ConfirmationOptions",
    "ConfirmationRequest",
    "ConfirmationResult",
    "ConfirmationStats",
    "DecisionSource",
    "ScorePolicyDecisionSource",
    "ScriptedDecisionSource",
    "StaticDecisionSource",
    "UserResponse",
]
