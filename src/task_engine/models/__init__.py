"""
Модели данных для движка задач.
"""

from .task import Task, TaskView, TaskStatus, Success, Failure
from .engine_metrics import EngineMetrics, EngineStatus

__all__ = [
    "Task",
    "TaskView",
    "TaskStatus",
    "Success",
    "Failure",
    "EngineMetrics",
    "EngineStatus"
]
