"""Command gateway orchestrating Categorize -> Validate -> Confirm -> Execute.

``CommandGateway`` is the only public entry point for running a command. It
sequences the stages for one command, keeps running metrics, re-publishes
executor events on its bus and enforces the batch-size ceiling.
"""

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import replace
from typing import Any

from commandgate.core.command_executor import (
    CommandExecution,
    CommandExecutor,
    ExecutionOptions,
)
from commandgate.core.config import GatewayConfig
from commandgate.core.events import EventBus
from commandgate.core.exceptions import (
    BatchSizeExceededError,
    CommandGateException,
    DeniedByConfirmationError,
    ProcessExecutionError,
    RejectedBySecurityThresholdError,
    SandboxRestrictionError,
    format_error_for_log,
)
from commandgate.core.executors.subprocess_executor import SubprocessExecutor
from commandgate.core.logger import get_logger
from commandgate.core.metrics import ExecutionMetrics, MetricsTracker
from commandgate.security.categorizer import CommandAnalysis, CommandCategorizer
from commandgate.security.command_validator import SecurityValidationResult, SecurityValidator
from commandgate.security.confirmation import (
    ConfirmationGate,
    ConfirmationOptions,
    DecisionSource,
    UserResponse,
)

logger = get_logger("gateway")

BatchItem = tuple[str, Sequence[str]] | dict[str, Any]


def _batch_entry(item: BatchItem) -> tuple[str, tuple[str, ...]]:
    if isinstance(item, dict):
        return item["command"], tuple(item.get("args") or ())
    command, args = item
    return command, tuple(args or ())


class CommandGateway:
    """Gatekeeper between a caller and the OS process facility."""

    def __init__(
        self,
        config: GatewayConfig | None = None,
        *,
        decision_source: DecisionSource | None = None,
        executor: CommandExecutor | None = None,
        categorizer: CommandCategorizer | None = None,
        validator: SecurityValidator | None = None,
        confirmation_gate: ConfirmationGate | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        """Initialize gateway.

        Args:
            config: Gating settings (defaults when omitted)
            decision_source: Decision source for a default confirmation gate
            executor: Process supervisor (SubprocessExecutor on the gateway bus if omitted)
            categorizer: Command categorizer
            validator: Security validator
            confirmation_gate: Prebuilt gate; takes precedence over decision_source
            event_bus: Bus for lifecycle events (a private one is created if omitted)
        """
        self._config = config or GatewayConfig()
        self._event_bus = event_bus or EventBus()
        self.categorizer = categorizer or CommandCategorizer()
        self.validator = validator or SecurityValidator()
        self.executor = executor or SubprocessExecutor(
            event_bus=self._event_bus,
            default_timeout_ms=self._config.execution_timeout_ms,
        )
        self.confirmation_gate = confirmation_gate or ConfirmationGate(
            decision_source=decision_source,
            event_bus=self._event_bus,
            default_timeout_ms=self._config.confirmation_timeout_ms,
        )
        self._metrics = MetricsTracker()
        self._skip_confirmations = False

    @property
    def config(self) -> GatewayConfig:
        return self._config

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def skipping_confirmations(self) -> bool:
        return self._skip_confirmations

    async def execute(
        self,
        command: str,
        args: Sequence[str] | None = None,
        options: ExecutionOptions | None = None,
    ) -> CommandExecution:
        """Run one command through the full pipeline.

        Raises:
            RejectedBySecurityThresholdError: Score below ``security_threshold``
            SandboxRestrictionError: Category not allowed while sandbox mode is on
            DeniedByConfirmationError: Confirmation denied or timed out
            ProcessExecutionError: Spawn failure, nonzero exit, timeout or termination
        """
        args = tuple(args or ())
        command_line = " ".join([command, *args])
        log = logger.bind(command=command_line)
        security_score: int | None = None

        self._event_bus.emit("execution_started", {"command": command, "args": list(args)})

        try:
            analysis = self.categorizer.analyze(command, args)
            self._event_bus.emit(
                "command_analyzed",
                {
                    "command": command_line,
                    "category": analysis.category.name.value,
                    "risk_level": analysis.category.risk_level.value,
                    "confidence": analysis.confidence,
                    "reasons": list(analysis.reasons),
                },
            )

            security = self.validator.validate(command, args, analysis)
            security_score = security.score
            self._event_bus.emit(
                "security_validated",
                {
                    "command": command_line,
                    "score": security.score,
                    "is_valid": security.is_valid,
                    "failed_checks": [c.name for c in security.failed_checks],
                    "recommendations": list(security.recommendations),
                },
            )

            self._check_admission(command_line, analysis, security)
            await self._confirm(command, args, analysis, security)

            execution = await self.executor.execute(
                command, args, self._execution_options(options, analysis)
            )
        except CommandGateException as e:
            duration_ms = e.duration_ms if isinstance(e, ProcessExecutionError) else None
            self._metrics.record(False, duration_ms=duration_ms, security_score=security_score)
            log.info("Execution failed", error=format_error_for_log(e))
            self._event_bus.emit(
                "execution_failed",
                {
                    "command": command,
                    "args": list(args),
                    "error": str(e),
                    "error_code": e.error_code,
                },
                e.metadata.get("execution_id"),
            )
            raise
        except (Exception, asyncio.CancelledError) as e:
            self._metrics.record(False, security_score=security_score)
            log.warn("Execution aborted", error=str(e), error_type=type(e).__name__)
            self._event_bus.emit(
                "execution_failed",
                {
                    "command": command,
                    "args": list(args),
                    "error": str(e) or type(e).__name__,
                    "error_code": None,
                },
            )
            raise

        self._metrics.record(
            True, duration_ms=execution.duration_ms, security_score=security_score
        )
        log.debug("Execution completed", execution_id=execution.id)
        self._event_bus.emit(
            "execution_completed",
            {
                "execution": execution.to_dict(),
                "category": analysis.category.name.value,
                "security_score": security.score,
            },
            execution.id,
        )
        return execution

    async def execute_batch(
        self, items: Iterable[BatchItem], concurrent: bool = False
    ) -> list[CommandExecution]:
        """Run several commands, keeping only the successes in submission order.

        A failing item emits ``batch_item_failed`` and does not stop the
        batch. A batch larger than ``max_concurrent_executions`` is rejected
        before anything runs.
        """
        entries = [_batch_entry(item) for item in items]
        limit = self._config.max_concurrent_executions
        if len(entries) > limit:
            raise BatchSizeExceededError(
                f"Batch size ({len(entries)}) exceeds maximum concurrent executions ({limit})",
                size=len(entries),
                limit=limit,
            )

        outcomes: list[CommandExecution | BaseException]
        if concurrent:
            outcomes = await asyncio.gather(
                *(self.execute(command, args) for command, args in entries),
                return_exceptions=True,
            )
        else:
            outcomes = []
            for command, args in entries:
                try:
                    outcomes.append(await self.execute(command, args))
                except Exception as e:
                    outcomes.append(e)

        results: list[CommandExecution] = []
        for index, ((command, args), outcome) in enumerate(zip(entries, outcomes)):
            if isinstance(outcome, CommandExecution):
                results.append(outcome)
                continue
            if not isinstance(outcome, Exception):
                raise outcome
            self._event_bus.emit(
                "batch_item_failed",
                {
                    "index": index,
                    "command": command,
                    "args": list(args),
                    "error": str(outcome) or type(outcome).__name__,
                    "error_code": (
                        outcome.error_code if isinstance(outcome, CommandGateException) else None
                    ),
                },
            )
        return results

    def metrics(self) -> ExecutionMetrics:
        return self._metrics.snapshot(self.confirmation_gate.stats().approval_rate)

    def history(self) -> list[CommandExecution]:
        return self.executor.history()

    def active(self) -> list[str]:
        return self.executor.active()

    def terminate(self, execution_id: str) -> bool:
        return self.executor.terminate(execution_id)

    def update_config(self, **changes: Any) -> GatewayConfig:
        """Apply a validated partial update. Nothing changes if validation fails."""
        self._config = self._config.merged(**changes)
        self.confirmation_gate.default_timeout_ms = self._config.confirmation_timeout_ms
        logger.info("Configuration updated", **self._config.to_dict())
        self._event_bus.emit("config_updated", self._config.to_dict())
        return self._config

    def reset_skip_confirmations(self) -> None:
        self._skip_confirmations = False

    def _check_admission(
        self,
        command_line: str,
        analysis: CommandAnalysis,
        security: SecurityValidationResult,
    ) -> None:
        threshold = self._config.security_threshold
        if security.score < threshold:
            raise RejectedBySecurityThresholdError(
                f"Command security score ({security.score}) below threshold ({threshold})",
                command=command_line,
                score=security.score,
                threshold=threshold,
            )

        category = analysis.category
        if self._config.enable_sandbox and not category.allowed_in_sandbox:
            raise SandboxRestrictionError(
                f"Category '{category.name.value}' is not allowed in sandbox mode",
                command=command_line,
                category=category.name.value,
            )

    async def _confirm(
        self,
        command: str,
        args: tuple[str, ...],
        analysis: CommandAnalysis,
        security: SecurityValidationResult,
    ) -> None:
        if not (self._config.require_confirmation and analysis.category.requires_confirmation):
            return
        if self._skip_confirmations:
            logger.debug("Confirmation skipped for session", command=command)
            return

        result = await self.confirmation_gate.request(
            command,
            args,
            analysis,
            security,
            ConfirmationOptions(timeout_ms=self._config.confirmation_timeout_ms),
        )
        if result.skip_future:
            self._skip_confirmations = True
        if not result.confirmed:
            raise DeniedByConfirmationError(
                "Command execution denied by user"
                if result.user_response is UserResponse.DENIED
                else "Command confirmation timed out",
                command=" ".join([command, *args]),
                response=result.user_response.value,
            )

    def _execution_options(
        self, options: ExecutionOptions | None, analysis: CommandAnalysis
    ) -> ExecutionOptions:
        options = options or ExecutionOptions()
        return replace(
            options,
            timeout_ms=options.timeout_ms or self._config.execution_timeout_ms,
            risk_level=options.risk_level or analysis.category.risk_level,
        )
