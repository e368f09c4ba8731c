"""
Метрики движка выполнения задач.
"""

from enum import Enum
from typing import Dict, Optional
from dataclasses import dataclass, asdict
from datetime import datetime


class EngineStatus(Enum):
    """Статусы движка."""
    CREATED = "created"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPING = "stopping"
    STOPPED = "stopped"
    ERROR = "error"


def _percent(part: int, whole: int) -> float:
    return part * 100.0 / whole if whole else 0.0


@dataclass
class EngineMetrics:
    """
    Счетчики движка.

    Хранятся только накопленные значения; проценты и пропускная
    способность вычисляются при чтении. Изменяется под блокировкой
    планировщика.
    """

    total_tasks_submitted: int = 0
    total_tasks_completed: int = 0
    total_tasks_failed: int = 0
    total_tasks_cancelled: int = 0  # входит в total_tasks_failed
    total_retries: int = 0
    total_attempts: int = 0

    # Время попыток, секунды
    total_execution_time: float = 0.0
    max_execution_time: float = 0.0
    min_execution_time: Optional[float] = None

    started_at: Optional[datetime] = None
    stopped_at: Optional[datetime] = None

    def start_engine(self):
        self.started_at = datetime.now()

    def stop_engine(self):
        self.stopped_at = datetime.now()

    def update_attempt(self, execution_time: float):
        """Учет завершенной попытки."""
        self.total_attempts += 1
        self.total_execution_time += execution_time
        if execution_time > self.max_execution_time:
            self.max_execution_time = execution_time
        if self.min_execution_time is None or execution_time < self.min_execution_time:
            self.min_execution_time = execution_time

    def update_task_completion(self, success: bool = True, cancelled: bool = False):
        """Учет задачи, достигшей терминального состояния."""
        if success:
            self.total_tasks_completed += 1
            return
        self.total_tasks_failed += 1
        if cancelled:
            self.total_tasks_cancelled += 1

    def update_task_retry(self):
        self.total_retries += 1

    @property
    def finished_tasks(self) -> int:
        return self.total_tasks_completed + self.total_tasks_failed

    @property
    def average_execution_time(self) -> float:
        if not self.total_attempts:
            return 0.0
        return self.total_execution_time / self.total_attempts

    @property
    def success_rate(self) -> float:
        return _percent(self.total_tasks_completed, self.finished_tasks)

    @property
    def error_rate(self) -> float:
        return _percent(self.total_tasks_failed, self.finished_tasks)

    @property
    def retry_rate(self) -> float:
        """Ретраев на сто принятых задач."""
        return _percent(self.total_retries, self.total_tasks_submitted)

    def get_uptime(self) -> float:
        """Секунды с запуска движка (до остановки, если он остановлен)."""
        if self.started_at is None:
            return 0.0
        until = self.stopped_at or datetime.now()
        return (until - self.started_at).total_seconds()

    def throughput_per_second(self) -> float:
        uptime = self.get_uptime()
        return self.finished_tasks / uptime if uptime > 0 else 0.0

    def to_dict(self) -> Dict:
        data = asdict(self)
        data.pop('started_at')
        data.pop('stopped_at')
        data['min_execution_time'] = self.min_execution_time or 0.0
        data.update(
            average_execution_time=self.average_execution_time,
            success_rate=self.success_rate,
            error_rate=self.error_rate,
            retry_rate=self.retry_rate,
            throughput_per_second=self.throughput_per_second(),
            uptime=self.get_uptime(),
        )
        return data
