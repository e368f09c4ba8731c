"""
Модели задач для движка выполнения.
"""

import uuid
import threading
from enum import Enum
from typing import Any, Callable, Optional, Dict
from dataclasses import dataclass, field
from datetime import datetime

from ..exceptions import InvariantViolationError


class TaskStatus(Enum):
    """Статусы задач."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# Разрешенные переходы конечного автомата задачи
_TRANSITIONS = {
    TaskStatus.PENDING: {TaskStatus.RUNNING, TaskStatus.FAILED},
    TaskStatus.RUNNING: {TaskStatus.COMPLETED, TaskStatus.PENDING, TaskStatus.FAILED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
}


@dataclass(frozen=True)
class Success:
    """Успешный результат действия."""
    value: Any = None


@dataclass(frozen=True)
class Failure:
    """Неудачный результат действия."""
    error: Exception
    retryable: bool = True

    def __post_init__(self):
        if not isinstance(self.error, BaseException):
            raise TypeError(f"Failure.error must be an exception, got {type(self.error).__name__}")


@dataclass
class Task:
    """
    Единица работы и ее состояние выполнения.

    Поля состояния меняются только через методы mark_*, которые вызывает
    планировщик под своей блокировкой.
    """

    action: Callable[[], Any] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    status: TaskStatus = TaskStatus.PENDING
    attempts: int = 0
    result: Optional[Any] = None
    error: Optional[Exception] = None
    next_eligible_at: Optional[float] = None
    created_at: datetime = field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    _done: threading.Event = field(default_factory=threading.Event, repr=False)

    def __post_init__(self):
        """Валидация после инициализации."""
        if self.action is None:
            raise ValueError("Task action is required")
        if not callable(self.action):
            raise ValueError("Task action must be callable")
        if not self.name:
            self.name = getattr(self.action, "__name__", "task")

    def _transition(self, new_status: TaskStatus):
        if new_status not in _TRANSITIONS[self.status]:
            raise InvariantViolationError(
                f"Illegal transition for task {self.id}: "
                f"{self.status.value} -> {new_status.value}"
            )
        self.status = new_status

    def mark_running(self):
        """PENDING -> RUNNING, счетчик попыток увеличивается до запуска."""
        self._transition(TaskStatus.RUNNING)
        self.attempts += 1
        self.started_at = datetime.now()

    def mark_completed(self, result: Any):
        """RUNNING -> COMPLETED."""
        self._transition(TaskStatus.COMPLETED)
        self.result = result
        self.error = None
        self.completed_at = datetime.now()
        self._done.set()

    def mark_retry(self, error: Exception, next_eligible_at: float):
        """RUNNING -> PENDING с отложенной следующей попыткой."""
        self._transition(TaskStatus.PENDING)
        self.error = error
        self.next_eligible_at = next_eligible_at

    def mark_failed(self, error: Exception):
        """RUNNING/PENDING -> FAILED."""
        self._transition(TaskStatus.FAILED)
        self.result = None
        self.error = error
        self.next_eligible_at = None
        self.completed_at = datetime.now()
        self._done.set()

    def is_finished(self) -> bool:
        """Задача в терминальном состоянии."""
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    def is_eligible(self, now: float) -> bool:
        """Можно ли запускать задачу в момент now."""
        return self.next_eligible_at is None or self.next_eligible_at <= now

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Ожидание терминального состояния."""
        return self._done.wait(timeout)

    def snapshot(self) -> "TaskView":
        """Снимок состояния задачи."""
        return TaskView(
            task_id=self.id,
            name=self.name,
            status=self.status,
            attempts=self.attempts,
            result=self.result,
            error=self.error,
            next_eligible_at=self.next_eligible_at,
            created_at=self.created_at,
            started_at=self.started_at,
            completed_at=self.completed_at,
        )


@dataclass(frozen=True)
class TaskView:
    """Неизменяемый снимок задачи для вызывающего кода."""

    task_id: str
    name: str
    status: TaskStatus
    attempts: int
    result: Optional[Any] = None
    error: Optional[Exception] = None
    next_eligible_at: Optional[float] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def is_finished(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    def is_success(self) -> bool:
        """Проверка успешности выполнения."""
        return self.status == TaskStatus.COMPLETED

    def is_failure(self) -> bool:
        """Проверка неудачного выполнения."""
        return self.status == TaskStatus.FAILED
