"""Command executor implementations.

- SubprocessExecutor: local child processes in their own process group
"""

from commandgate.core.executors.subprocess_executor import SubprocessExecutor

__all__ = ["SubprocessExecutor"]
