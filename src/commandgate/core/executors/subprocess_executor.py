"""Subprocess-based executor with streaming output and race-based timeouts.

Each child runs in its own process group so a timeout or terminate request
takes down anything it spawned. Output is decoded incrementally and published
chunk by chunk while the process runs.
"""

import asyncio
import codecs
import os
import signal
import sys
import time
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any, Literal

from commandgate.core.command_executor import (
    CommandExecution,
    CommandExecutor,
    ExecutionOptions,
    ExecutionState,
    assess_risk_level,
    generate_execution_id,
)
from commandgate.core.events import EventBus, EventType
from commandgate.core.exceptions import (
    ExecutionTerminatedError,
    ExecutionTimeoutError,
    ProcessNonZeroExitError,
    ProcessSpawnError,
)
from commandgate.core.logger import get_logger

logger = get_logger("executor")

READ_CHUNK_BYTES = 4096


def _new_process_group() -> None:
    os.setpgrp()


class SubprocessExecutor(CommandExecutor):
    """Execute commands with asyncio.subprocess and supervise them.

    Owns the active-execution registry (id -> live process) and the
    append-only execution history. Only this class writes to either.
    """

    def __init__(
        self,
        event_bus: EventBus | None = None,
        default_timeout_ms: int = 30_000,
        max_output_bytes: int = 1024 * 1024,  # 1MB per stream
        kill_grace_ms: int = 2_000,
    ) -> None:
        """Initialize subprocess executor.

        Args:
            event_bus: Bus receiving stdout/stderr chunks and completion events
            default_timeout_ms: Timeout used when options do not set one
            max_output_bytes: Per-stream cap on accumulated output in the record
            kill_grace_ms: How long to wait for output to drain after a kill
        """
        self.event_bus = event_bus
        self.default_timeout_ms = default_timeout_ms
        self.max_output_bytes = max_output_bytes
        self.kill_grace_ms = kill_grace_ms
        self._active: dict[str, asyncio.subprocess.Process] = {}
        self._terminated: set[str] = set()
        self._history: list[CommandExecution] = []

    def get_name(self) -> str:
        return "subprocess"

    def history(self) -> list[CommandExecution]:
        return list(self._history)

    def active(self) -> list[str]:
        return list(self._active)

    async def execute(
        self,
        command: str,
        args: Sequence[str] | None = None,
        options: ExecutionOptions | None = None,
    ) -> CommandExecution:
        options = options or ExecutionOptions()
        args = tuple(args or ())
        timeout_ms = options.timeout_ms or self.default_timeout_ms

        execution = CommandExecution(
            id=generate_execution_id(),
            command=command,
            args=args,
            start_time=datetime.now(UTC),
            risk_level=options.risk_level or assess_risk_level(command, args),
        )
        log = logger.bind(execution_id=execution.id, command=execution.command_line)

        env = {**os.environ, **options.environment}
        cwd = options.working_directory or os.getcwd()
        preexec = _new_process_group if sys.platform != "win32" else None
        started = time.monotonic()

        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=env,
                preexec_fn=preexec,
            )
        except (OSError, ValueError) as e:
            log.warn("Process launch failed", error=str(e))
            self._emit("executor_error", execution.id, {"command": command, "error": str(e)})
            raise ProcessSpawnError(
                f"Failed to start process: {e}",
                command=execution.command_line,
                execution_id=execution.id,
            ) from e

        execution.state = ExecutionState.SPAWNED
        self._active[execution.id] = process
        log.debug("Process spawned", pid=process.pid, timeout_ms=timeout_ms)

        execution.state = ExecutionState.RUNNING
        supervisor = asyncio.ensure_future(self._supervise(process, execution))
        try:
            done, _ = await asyncio.wait({supervisor}, timeout=timeout_ms / 1000)
        except asyncio.CancelledError:
            self._terminated.add(execution.id)
            await self._kill(process, supervisor)
            self._finish(execution, process, started)
            raise

        if supervisor in done:
            error = supervisor.exception()
            if error is not None:
                log.error("Output supervision failed", error=str(error))
                await self._kill(process, supervisor)
                self._finish(execution, process, started)
                raise error
        else:
            # Deadline won the race; whatever the process does from here is discarded.
            await self._kill(process, supervisor)

        timed_out = supervisor not in done
        self._finish(execution, process, started, timed_out=timed_out)

        if execution.state is ExecutionState.TERMINATED:
            log.info("Execution terminated", duration_ms=execution.duration_ms)
            raise ExecutionTerminatedError(
                f"Execution {execution.id} was terminated",
                command=execution.command_line,
                execution_id=execution.id,
                duration_ms=execution.duration_ms,
            )

        if execution.state is ExecutionState.TIMED_OUT:
            log.warn("Execution timed out", timeout_ms=timeout_ms)
            raise ExecutionTimeoutError(
                f"Command timed out after {timeout_ms}ms",
                command=execution.command_line,
                execution_id=execution.id,
                duration_ms=execution.duration_ms,
                timeout_ms=timeout_ms,
            )

        if execution.state is ExecutionState.FAILED:
            log.info("Execution failed", exit_code=execution.exit_code)
            raise ProcessNonZeroExitError(
                f"Command failed with exit code {execution.exit_code}: {execution.stderr}",
                command=execution.command_line,
                execution_id=execution.id,
                duration_ms=execution.duration_ms,
                exit_code=execution.exit_code if execution.exit_code is not None else -1,
                stderr=execution.stderr,
            )

        log.info("Execution completed", duration_ms=execution.duration_ms)
        return execution

    def terminate(self, execution_id: str) -> bool:
        """Send SIGTERM to a live execution and drop it from the registry.

        An execution stays live until its output streams close, even after
        the direct child has exited. Idempotent: a second call for the same id
        returns False.
        """
        process = self._active.pop(execution_id, None)
        if process is None:
            return False

        self._terminated.add(execution_id)
        self._signal(process, signal.SIGTERM)
        logger.info("Termination requested", execution_id=execution_id, pid=process.pid)
        return True

    async def _supervise(
        self, process: asyncio.subprocess.Process, execution: CommandExecution
    ) -> None:
        """Pump both output streams until EOF, then reap the process."""
        await asyncio.gather(
            self._pump(process.stdout, execution, "stdout"),
            self._pump(process.stderr, execution, "stderr"),
        )
        await process.wait()

    async def _pump(
        self,
        stream: asyncio.StreamReader | None,
        execution: CommandExecution,
        name: Literal["stdout", "stderr"],
    ) -> None:
        if stream is None:
            return

        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        kept_bytes = 0
        truncated = False

        while True:
            data = await stream.read(READ_CHUNK_BYTES)
            text = decoder.decode(data, final=not data)
            if text:
                self._emit(name, execution.id, {"chunk": text})
                if not truncated:
                    encoded = text.encode("utf-8")
                    size = len(encoded)
                    if kept_bytes + size > self.max_output_bytes:
                        room = max(self.max_output_bytes - kept_bytes, 0)
                        # A character split at the boundary is dropped
                        text = encoded[:room].decode("utf-8", errors="ignore")
                        text += f"\n... [Output truncated - exceeded {self.max_output_bytes} bytes]"
                        truncated = True
                    kept_bytes += size
                    setattr(execution, name, getattr(execution, name) + text)
            if not data:
                return

    async def _kill(
        self, process: asyncio.subprocess.Process, supervisor: "asyncio.Future[None]"
    ) -> None:
        """SIGKILL the process group and give the streams a bounded time to close."""
        self._signal(process, signal.SIGKILL)
        done, _ = await asyncio.wait({supervisor}, timeout=self.kill_grace_ms / 1000)
        if supervisor not in done:
            supervisor.cancel()
        elif not supervisor.cancelled() and supervisor.exception() is not None:
            logger.warn("Output pump failed after kill", error=str(supervisor.exception()))
        if process.returncode is None:
            await process.wait()

    @staticmethod
    def _signal(process: asyncio.subprocess.Process, sig: int) -> None:
        try:
            if sys.platform != "win32":
                # Children call setpgrp, so the group id is the child's pid. The
                # group outlives a reaped leader while any member is alive.
                os.killpg(process.pid, sig)
            elif sig == signal.SIGTERM:
                process.terminate()
            else:
                process.kill()
        except ProcessLookupError:
            pass

    def _finish(
        self,
        execution: CommandExecution,
        process: asyncio.subprocess.Process,
        started: float,
        timed_out: bool = False,
    ) -> None:
        """Move an execution to its terminal state and record it exactly once."""
        execution.exit_code = process.returncode
        execution.duration_ms = (time.monotonic() - started) * 1000
        execution.end_time = datetime.now(UTC)

        if execution.id in self._terminated:
            execution.state = ExecutionState.TERMINATED
        elif timed_out:
            execution.state = ExecutionState.TIMED_OUT
        elif process.returncode == 0:
            execution.state = ExecutionState.COMPLETED
        else:
            execution.state = ExecutionState.FAILED

        self._active.pop(execution.id, None)
        self._terminated.discard(execution.id)
        execution.freeze()
        self._history.append(execution)

        self._emit(
            "executor_completed",
            execution.id,
            {
                "state": execution.state.value,
                "exit_code": execution.exit_code,
                "duration_ms": execution.duration_ms,
            },
        )

    def _emit(self, event_type: EventType, execution_id: str, data: dict[str, Any]) -> None:
        if self.event_bus is not None:
            self.event_bus.emit(event_type, {"execution_id": execution_id, **data}, execution_id)
