"""
Исполнитель действий задач.
"""

import time
import threading
from collections import Counter
from typing import Any, Optional, Dict
from dataclasses import dataclass

from ..models.task import Task, Success, Failure
from ..utils.logger import get_logger
from ..exceptions import TaskExecutionError, NonRetryableError


logger = get_logger(__name__)

_COUNTER_KEYS = (
    'total_executions',
    'successful_executions',
    'failed_executions',
    'raised_exceptions',
    'returned_failures',
    'terminal_failures',
)


@dataclass
class ExecutionConfig:
    """Параметры вызова действий."""
    enable_metrics: bool = True
    wrap_exceptions: bool = False  # Оборачивать исключения действий в TaskExecutionError
    log_execution_details: bool = False


@dataclass(frozen=True)
class ExecutionOutcome:
    """Итог одной попытки."""
    success: bool
    value: Any = None
    error: Optional[Exception] = None
    retryable: bool = True
    execution_time: float = 0.0


class TaskExecutor:
    """Вызывает действие задачи и приводит любой исход к ExecutionOutcome."""

    def __init__(self, config: Optional[ExecutionConfig] = None):
        self.config = config or ExecutionConfig()
        self._counts_lock = threading.Lock()
        self._counts: Counter = Counter()

        logger.debug(f"TaskExecutor created: {self.config}")

    def execute(self, task: Task) -> ExecutionOutcome:
        """
        Выполнение одной попытки задачи.

        Исключения действия не выходят наружу: они становятся неудачным
        исходом наравне с возвращенным Failure.

        Args:
            task: Задача в статусе RUNNING

        Returns:
            Итог попытки
        """
        verbose = self.config.log_execution_details
        if verbose:
            logger.info(f"Executing task {task.id} ({task.name}), attempt {task.attempts}")

        start_time = time.monotonic()
        raised = False
        try:
            returned = task.action()
        except NonRetryableError as e:
            raised = True
            outcome = self._failure(e, False, start_time)
        except Exception as e:
            raised = True
            error = e
            if self.config.wrap_exceptions:
                error = TaskExecutionError(f"Task {task.id} failed: {e}")
                error.__cause__ = e
            outcome = self._failure(error, True, start_time)
        else:
            if isinstance(returned, Failure):
                outcome = self._failure(returned.error, returned.retryable, start_time)
            else:
                value = returned.value if isinstance(returned, Success) else returned
                outcome = ExecutionOutcome(True, value, execution_time=time.monotonic() - start_time)

        self._count(outcome, raised)

        if verbose and outcome.success:
            logger.info(f"Task {task.id} attempt {task.attempts} succeeded in {outcome.execution_time:.3f}s")
        elif verbose:
            logger.info(f"Task {task.id} attempt {task.attempts} failed: {outcome.error!r}")

        return outcome

    @staticmethod
    def _failure(error: Exception, retryable: bool, start_time: float) -> ExecutionOutcome:
        return ExecutionOutcome(
            success=False,
            error=error,
            retryable=retryable,
            execution_time=time.monotonic() - start_time
        )

    def _count(self, outcome: ExecutionOutcome, raised: bool):
        if not self.config.enable_metrics:
            return

        kinds = ['total_executions']
        if outcome.success:
            kinds.append('successful_executions')
        else:
            kinds.append('failed_executions')
            kinds.append('raised_exceptions' if raised else 'returned_failures')
            if not outcome.retryable:
                kinds.append('terminal_failures')

        with self._counts_lock:
            self._counts.update(kinds)

    def get_metrics(self) -> Dict[str, Any]:
        """
        Счетчики попыток по видам исхода.

        Время попыток агрегирует EngineMetrics, здесь только количества.
        """
        with self._counts_lock:
            metrics = {key: self._counts[key] for key in _COUNTER_KEYS}

        total = metrics['total_executions']
        metrics['success_rate'] = metrics['successful_executions'] * 100.0 / total if total else 0.0
        metrics['failure_rate'] = metrics['failed_executions'] * 100.0 / total if total else 0.0
        return metrics

    def reset_metrics(self):
        with self._counts_lock:
            self._counts.clear()

        logger.debug("TaskExecutor counters cleared")

    def __repr__(self) -> str:
        with self._counts_lock:
            total = self._counts['total_executions']
            failed = self._counts['failed_executions']
        return f"TaskExecutor(executions={total}, failed={failed})"
