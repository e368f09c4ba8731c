"""
Политика ретраев с экспоненциальным backoff.
"""

import random
from typing import Optional, List
from dataclasses import dataclass
from enum import Enum

from ..models.task import Failure
from ..utils.logger import get_logger
from ..exceptions import ConfigurationError, NonRetryableError, TaskExecutionError


logger = get_logger(__name__)


class BackoffStrategy(Enum):
    """Стратегии backoff."""
    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    FIXED = "fixed"


@dataclass
class RetryConfig:
    """Конфигурация ретраев."""
    max_attempts: int = 3  # Всего попыток, включая первую
    base_delay: float = 1.0  # Базовая задержка в секундах
    max_delay: float = 60.0  # Максимальная задержка в секундах
    exponential_base: float = 2.0  # База для экспоненциального роста
    strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    jitter: bool = False  # Добавлять случайность к задержке
    jitter_factor: float = 0.1  # Доля задержки, добавляемая джиттером
    retry_on_exceptions: Optional[List[type]] = None  # Типы исключений для ретрая
    stop_on_exceptions: Optional[List[type]] = None  # Типы исключений для остановки

    def __post_init__(self):
        if isinstance(self.strategy, str):
            self.strategy = BackoffStrategy(self.strategy)


class RetryPolicy:
    """
    Решение о повторе попытки и расчет задержки.

    Политика не хранит состояние задач: все, что меняется между попытками,
    лежит на самой задаче. Без джиттера результат полностью определяется
    входными аргументами.
    """

    def __init__(self, config: Optional[RetryConfig] = None):
        self.config = config or RetryConfig()
        self._validate()
        logger.debug(f"RetryPolicy initialized with config: {self.config}")

    def _validate(self):
        if self.config.max_attempts < 1:
            raise ConfigurationError("max_attempts must be >= 1")
        if self.config.base_delay < 0:
            raise ConfigurationError("base_delay must be >= 0")
        if self.config.max_delay < self.config.base_delay:
            raise ConfigurationError("max_delay must be >= base_delay")
        if self.config.exponential_base < 1:
            raise ConfigurationError("exponential_base must be >= 1")
        for key in ('retry_on_exceptions', 'stop_on_exceptions'):
            for exc_type in getattr(self.config, key) or ():
                if not (isinstance(exc_type, type) and issubclass(exc_type, BaseException)):
                    raise ConfigurationError(f"{key} must contain exception classes, got {exc_type!r}")

    def is_retryable(self, error: Exception) -> bool:
        """
        Классификация ошибки.

        Args:
            error: Ошибка последней попытки

        Returns:
            False если ошибка помечена как терминальная
        """
        if isinstance(error, Failure):
            if not error.retryable:
                return False
            error = error.error

        if isinstance(error, NonRetryableError):
            return False

        # Обертка исполнителя классифицируется по исходному исключению
        cause = error
        if isinstance(error, TaskExecutionError) and error.__cause__ is not None:
            cause = error.__cause__

        if self.config.stop_on_exceptions:
            if any(isinstance(cause, exc_type) for exc_type in self.config.stop_on_exceptions):
                return False

        if self.config.retry_on_exceptions:
            return any(isinstance(cause, exc_type) for exc_type in self.config.retry_on_exceptions)

        return True

    def should_retry(self, attempts: int, error: Exception) -> bool:
        """
        Определение необходимости ретрая.

        Args:
            attempts: Сколько попыток уже сделано
            error: Ошибка последней попытки

        Returns:
            True если нужен ретрай, False иначе
        """
        if attempts >= self.config.max_attempts:
            return False
        return self.is_retryable(error)

    def backoff_delay(self, attempts: int) -> float:
        """
        Задержка перед следующей попыткой.

        Args:
            attempts: Номер завершившейся неудачей попытки (начиная с 1)

        Returns:
            Задержка в секундах, не больше max_delay
        """
        attempts = max(attempts, 1)

        if self.config.strategy == BackoffStrategy.FIXED:
            delay = self.config.base_delay
        elif self.config.strategy == BackoffStrategy.LINEAR:
            delay = self.config.base_delay * attempts
        else:
            try:
                delay = self.config.base_delay * (self.config.exponential_base ** (attempts - 1))
            except OverflowError:
                delay = self.config.max_delay

        delay = min(delay, self.config.max_delay)

        # Джиттер только увеличивает задержку, чтобы не нарушать минимум
        if self.config.jitter and delay > 0:
            delay += random.uniform(0, delay * self.config.jitter_factor)
            delay = min(delay, self.config.max_delay)

        return delay

    def __repr__(self) -> str:
        return (f"RetryPolicy(max_attempts={self.config.max_attempts}, "
                f"strategy={self.config.strategy.value})")
