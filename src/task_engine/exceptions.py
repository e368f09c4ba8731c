"""
Исключения для движка выполнения задач.
"""


class TaskEngineError(Exception):
    """Базовое исключение для движка задач."""
    pass


class EngineClosedError(TaskEngineError):
    """Движок завершает работу и не принимает новые задачи."""
    pass


class UnknownTaskError(TaskEngineError):
    """Задача с таким ID не отправлялась или уже удалена."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Unknown task: {task_id}")


class QueueFullError(TaskEngineError):
    """Достигнут лимит ожидающих задач."""
    pass


class ConfigurationError(TaskEngineError):
    """Ошибка конфигурации."""
    pass


class InvariantViolationError(TaskEngineError):
    """Нарушение внутреннего инварианта (ошибка в самом движке)."""
    pass


class ShutdownError(TaskEngineError):
    """Ошибка при завершении работы."""
    pass


class TaskExecutionError(TaskEngineError):
    """Ошибка выполнения действия задачи."""
    pass


class NonRetryableError(TaskExecutionError):
    """Ошибка, после которой задачу не нужно повторять."""
    pass


class TaskCancelledError(TaskExecutionError):
    """Задача отменена до запуска."""
    pass


class CircuitOpenError(TaskEngineError):
    """Circuit breaker открыт, вызов не допущен."""

    def __init__(self, name: str, time_until_retry: float):
        self.name = name
        self.time_until_retry = time_until_retry
        super().__init__(f"Circuit {name} is open. Retry in {time_until_retry:.1f}s")
