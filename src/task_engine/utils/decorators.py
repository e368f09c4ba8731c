"""
Декораторы для вызова функций вне движка: ретраи и circuit breaker.
"""

import time
import functools
from typing import Callable, Optional

from ..core.retry_policy import RetryPolicy, RetryConfig
from ..core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from ..exceptions import CircuitOpenError
from ..utils.logger import get_logger


logger = get_logger(__name__)


def retry(policy: Optional[RetryPolicy] = None, sleep: Callable[[float], None] = time.sleep, **config):
    """
    Декоратор для повторных попыток выполнения функции.

    Решения о повторе и задержки берутся из RetryPolicy, так что поведение
    совпадает с ретраями внутри движка.

    Args:
        policy: Готовая политика; иначе создается из RetryConfig(**config)
        sleep: Функция ожидания (подменяется в тестах)
        **config: Параметры RetryConfig
    """
    policy = policy or RetryPolicy(RetryConfig(**config))

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            attempts = 0
            while True:
                attempts += 1
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not policy.should_retry(attempts, e):
                        logger.error(f"Function {func.__name__} failed after {attempts} attempts: {e}")
                        raise

                    delay = policy.backoff_delay(attempts)
                    logger.warning(f"Attempt {attempts} failed for {func.__name__}: {e}. Retrying in {delay:.3f}s")
                    sleep(delay)

        return wrapper
    return decorator


def circuit_breaker(breaker: Optional[CircuitBreaker] = None, **config):
    """
    Декоратор Circuit Breaker для предотвращения каскадных сбоев.

    Args:
        breaker: Готовый breaker (можно разделять между функциями);
            иначе создается из CircuitBreakerConfig(**config)
        **config: Параметры CircuitBreakerConfig

    Raises:
        CircuitOpenError: Если breaker не допускает вызов
    """
    def decorator(func: Callable) -> Callable:
        guard = breaker or CircuitBreaker(CircuitBreakerConfig(**config), name=func.__name__)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            admission = guard.allow_request()
            if admission is None:
                raise CircuitOpenError(guard.name, guard.time_until_retry() or 0.0)

            try:
                result = func(*args, **kwargs)
            except Exception:
                guard.record_failure(admission)
                raise

            guard.record_success(admission)
            return result

        wrapper.circuit = guard
        return wrapper
    return decorator


def measure_time(func: Callable) -> Callable:
    """Декоратор, логирующий время выполнения функции на уровне DEBUG."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.monotonic()
        try:
            return func(*args, **kwargs)
        finally:
            logger.debug(f"{func.__name__} finished in {time.monotonic() - start_time:.3f}s")

    return wrapper
