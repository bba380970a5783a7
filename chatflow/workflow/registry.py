"""Execution registry - thread-safe store of running and finished executions.

Retention: finished executions are evicted once they are older than
``retention_seconds`` or when more than ``max_executions`` are stored (oldest
finished first). Running executions are never evicted.
"""

import logging
import threading
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from .models import WorkflowExecution, WorkflowExecutionStatus

logger = logging.getLogger(__name__)


class ExecutionRegistry:
    """
    Map of execution id -> WorkflowExecution shared by concurrent runs.

    Example:
        registry = ExecutionRegistry(retention_seconds=3600, max_executions=1000)
        registry.add(execution)
        registry.get(execution.id)
        registry.cancel(execution.id)
    """

    def __init__(
        self,
        retention_seconds: Optional[float] = 3600,
        max_executions: Optional[int] = 1000,
    ):
        self._executions: "OrderedDict[str, WorkflowExecution]" = OrderedDict()
        self._lock = threading.RLock()
        self.retention_seconds = retention_seconds
        self.max_executions = max_executions

    def add(self, execution: WorkflowExecution) -> None:
        with self._lock:
            self._executions[execution.id] = execution
            self._executions.move_to_end(execution.id)
            self._evict()

    def get(self, execution_id: str) -> Optional[WorkflowExecution]:
        with self._lock:
            execution = self._executions.get(execution_id)
            if execution is not None:
                self._executions.move_to_end(execution_id)
            return execution

    def remove(self, execution_id: str) -> bool:
        with self._lock:
            return self._executions.pop(execution_id, None) is not None

    def list(
        self,
        user_id: Optional[str] = None,
        status: Optional[WorkflowExecutionStatus] = None,
    ) -> List[WorkflowExecution]:
        with self._lock:
            executions = list(self._executions.values())
        if user_id:
            executions = [e for e in executions if e.user_id == user_id]
        if status:
            executions = [e for e in executions if e.status == status]
        return executions

    def transition(
        self,
        execution: WorkflowExecution,
        status: WorkflowExecutionStatus,
        error: Optional[str] = None,
        only_from: Optional[WorkflowExecutionStatus] = None,
    ) -> bool:
        """
        Move an execution to ``status`` unless it was cancelled.

        The check and the write happen under the registry lock, so a cancel()
        from another thread is never overwritten. ``error`` is recorded even
        when the status stays. With ``only_from`` the move also requires the
        execution to currently be in that status.

        Returns:
            True if the status changed
        """
        with self._lock:
            if error is not None:
                execution.error = error
            if execution.status == WorkflowExecutionStatus.CANCELLED:
                return False
            if only_from is not None and execution.status != only_from:
                return False
            execution.status = status
            return True

    def cancel(self, execution_id: str) -> bool:
        """
        Mark an execution cancelled.

        Only flips the status; a step that is already running finishes, and
        the orchestrator stops before starting the next one.
        """
        with self._lock:
            execution = self._executions.get(execution_id)
            if execution is None:
                return False
            execution.status = WorkflowExecutionStatus.CANCELLED
            execution.completed_at = datetime.now(timezone.utc)
        logger.info(f"Cancelled workflow execution {execution_id}")
        return True

    def evict_expired(self) -> int:
        """Drop finished executions past retention. Returns how many went."""
        with self._lock:
            return self._evict()

    def _evict(self) -> int:
        evicted = 0

        if self.retention_seconds is not None:
            cutoff = datetime.now(timezone.utc) - timedelta(seconds=self.retention_seconds)
            for execution_id, execution in list(self._executions.items()):
                finished_at = execution.completed_at
                if execution.is_terminal and finished_at is not None and finished_at < cutoff:
                    del self._executions[execution_id]
                    evicted += 1

        if self.max_executions is not None:
            overflow = len(self._executions) - self.max_executions
            if overflow > 0:
                for execution_id, execution in list(self._executions.items()):
                    if overflow <= 0:
                        break
                    if execution.is_terminal:
                        del self._executions[execution_id]
                        overflow -= 1
                        evicted += 1

        if evicted:
            logger.debug(f"Evicted {evicted} finished workflow execution(s)")
        return evicted

    def __len__(self) -> int:
        with self._lock:
            return len(self._executions)

    def __contains__(self, execution_id: str) -> bool:
        with self._lock:
            return execution_id in self._executions
