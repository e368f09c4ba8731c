"""
Движок выполнения задач с ограничением конкурентности, ретраями с backoff
и circuit breaker.

Основные компоненты:
- TaskEngine: планировщик, принимающий задачи и управляющий их выполнением
- RetryPolicy: решения о повторах и задержки backoff
- CircuitBreaker: приостановка запусков при серии неудач
- ConcurrencyLimiter: ограничение числа одновременно выполняемых задач
- GracefulShutdown: поэтапное завершение работы
"""

from .core.scheduler import TaskEngine, EngineConfig
from .core.retry_policy import RetryPolicy, RetryConfig, BackoffStrategy
from .core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
from .core.concurrency_limiter import ConcurrencyLimiter
from .core.graceful_shutdown import GracefulShutdown, ShutdownConfig
from .models.task import Task, TaskView, TaskStatus, Success, Failure
from .models.engine_metrics import EngineStatus
from .utils.config import Config, load_config, load_config_from_env
from .utils.logger import get_logger, setup_logging
from .exceptions import (
    TaskEngineError,
    EngineClosedError,
    UnknownTaskError,
    QueueFullError,
    ConfigurationError,
    InvariantViolationError,
    ShutdownError,
    TaskExecutionError,
    NonRetryableError,
    TaskCancelledError,
    CircuitOpenError
)

__version__ = "1.0.0"
__author__ = "Task Engine Team"

__all__ = [
    "TaskEngine",
    "EngineConfig",
    "RetryPolicy",
    "RetryConfig",
    "BackoffStrategy",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "ConcurrencyLimiter",
    "GracefulShutdown",
    "ShutdownConfig",
    "Task",
    "TaskView",
    "TaskStatus",
    "Success",
    "Failure",
    "EngineStatus",
    "Config",
    "load_config",
    "load_config_from_env",
    "get_logger",
    "setup_logging",
    "TaskEngineError",
    "EngineClosedError",
    "UnknownTaskError",
    "QueueFullError",
    "ConfigurationError",
    "InvariantViolationError",
    "ShutdownError",
    "TaskExecutionError",
    "NonRetryableError",
    "TaskCancelledError",
    "CircuitOpenError"
]
