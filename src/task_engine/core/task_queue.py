"""
Очередь ожидающих задач.
"""

import time
from collections import OrderedDict
from typing import Optional, List, Tuple, Dict, Any

from ..models.task import Task
from ..utils.logger import get_logger
from ..exceptions import QueueFullError


logger = get_logger(__name__)


class TaskQueue:
    """
    FIFO ожидающих задач с учетом времени допуска.

    Первые попытки выдаются в порядке отправки. Задача на ретрае
    возвращается в хвост и пропускается, пока не наступит ее
    next_eligible_at. Синхронизация остается на стороне планировщика:
    все методы вызываются под его блокировкой.
    """

    def __init__(self, max_size: Optional[int] = None, clock=time.monotonic):
        self.max_size = max_size
        self._clock = clock
        self._tasks: "OrderedDict[str, Task]" = OrderedDict()
        self._enqueued_at: Dict[str, float] = {}

        self._metrics = {
            'tasks_enqueued': 0,
            'tasks_requeued': 0,
            'tasks_dequeued': 0,
            'tasks_rejected': 0,
            'average_wait_time': 0.0,
            'max_wait_time': 0.0,
            'max_size_reached': 0
        }

    def push(self, task: Task):
        """
        Добавление новой задачи.

        Raises:
            QueueFullError: Если задан max_size и очередь заполнена
        """
        if self.max_size is not None and len(self._tasks) >= self.max_size:
            self._metrics['tasks_rejected'] += 1
            raise QueueFullError(f"Pending queue is full ({self.max_size} tasks)")

        self._append(task)
        self._metrics['tasks_enqueued'] += 1
        logger.debug(f"Task {task.id} enqueued")

    def requeue(self, task: Task):
        """Возврат задачи на ретрай. Лимит размера не применяется."""
        self._append(task)
        self._metrics['tasks_requeued'] += 1

    def _append(self, task: Task):
        self._tasks[task.id] = task
        self._enqueued_at[task.id] = self._clock()
        self._metrics['max_size_reached'] = max(self._metrics['max_size_reached'], len(self._tasks))

    def peek_eligible(self, now: float) -> Tuple[Optional[Task], Optional[float]]:
        """
        Поиск первой задачи, которую можно запускать.

        Args:
            now: Текущее монотонное время

        Returns:
            (задача, None) если есть готовая задача, иначе
            (None, секунды до ближайшего допуска или None для пустой очереди)
        """
        earliest: Optional[float] = None

        for task in self._tasks.values():
            if task.is_eligible(now):
                return task, None
            if earliest is None or task.next_eligible_at < earliest:
                earliest = task.next_eligible_at

        if earliest is None:
            return None, None
        return None, max(0.0, earliest - now)

    def remove(self, task_id: str) -> Task:
        """Извлечение задачи при переходе в RUNNING."""
        task = self._tasks.pop(task_id)
        wait_time = self._clock() - self._enqueued_at.pop(task_id)

        self._metrics['tasks_dequeued'] += 1
        self._metrics['max_wait_time'] = max(self._metrics['max_wait_time'], wait_time)
        dequeued = self._metrics['tasks_dequeued']
        self._metrics['average_wait_time'] += (wait_time - self._metrics['average_wait_time']) / dequeued

        return task

    def drain(self) -> List[Task]:
        """Извлечение всех задач в порядке очереди."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        self._enqueued_at.clear()
        return tasks

    def get_metrics(self) -> Dict[str, Any]:
        """Получение метрик очереди."""
        metrics = self._metrics.copy()
        metrics['current_size'] = len(self._tasks)
        return metrics

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: str) -> bool:
        return task_id in self._tasks

    def __repr__(self) -> str:
        return f"TaskQueue(size={len(self)}, max_size={self.max_size})"
