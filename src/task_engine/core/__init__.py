"""
Основные компоненты движка задач.
"""

from .scheduler import TaskEngine, EngineConfig
from .task_queue import TaskQueue
from .retry_policy import RetryPolicy, RetryConfig, BackoffStrategy
from .circuit_breaker import Admission, CircuitBreaker, CircuitBreakerConfig, CircuitState
from .concurrency_limiter import ConcurrencyLimiter, Permit
from .graceful_shutdown import GracefulShutdown, ShutdownConfig, ShutdownPhase, ShutdownStatus
from .task_executor import TaskExecutor, ExecutionConfig, ExecutionOutcome

__all__ = [
    "TaskEngine",
    "EngineConfig",
    "TaskQueue",
    "RetryPolicy",
    "RetryConfig",
    "BackoffStrategy",
    "Admission",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "ConcurrencyLimiter",
    "Permit",
    "GracefulShutdown",
    "ShutdownConfig",
    "ShutdownPhase",
    "ShutdownStatus",
    "TaskExecutor",
    "ExecutionConfig",
    "ExecutionOutcome"
]
