"""
Circuit breaker для всего движка.

Считает подряд идущие неудачные попытки и при превышении порога
перестает допускать новые запуски на время cool-down.

Состояния:
- CLOSED: обычная работа, неудачи считаются
- OPEN: запуски не допускаются
- HALF_OPEN: допускается ровно одна пробная попытка
"""

import time
import threading
from typing import Callable, Optional, Dict, Any
from dataclasses import dataclass
from enum import Enum

from ..utils.logger import get_logger
from ..exceptions import ConfigurationError


logger = get_logger(__name__)


class CircuitState(Enum):
    """Состояния circuit breaker."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Конфигурация circuit breaker."""
    failure_threshold: int = 5  # Неудач подряд до размыкания
    cool_down_period: float = 30.0  # Секунд в OPEN до пробной попытки


@dataclass(frozen=True)
class Admission:
    """
    Допуск одной попытки.

    Только допуск с probe=True может перевести HALF_OPEN в CLOSED или
    обратно в OPEN.
    """
    probe: bool = False


class CircuitBreaker:
    """Потокобезопасный circuit breaker с одной пробной попыткой."""

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "engine"
    ):
        self.config = config or CircuitBreakerConfig()
        if self.config.failure_threshold < 1:
            raise ConfigurationError("failure_threshold must be >= 1")
        if self.config.cool_down_period < 0:
            raise ConfigurationError("cool_down_period must be >= 0")

        self.name = name
        self._clock = clock
        self._lock = threading.Lock()

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at: Optional[float] = None
        self._probe_in_flight = False

        self._stats = {
            'times_opened': 0,
            'rejected_requests': 0,
            'probes_admitted': 0,
            'total_failures': 0,
            'total_successes': 0
        }

        logger.debug(f"CircuitBreaker '{name}' initialized with config: {self.config}")

    def _refresh(self, now: float):
        """OPEN -> HALF_OPEN по истечении cool-down. Вызывается под блокировкой."""
        if (self._state == CircuitState.OPEN
                and now - self._opened_at >= self.config.cool_down_period):
            self._state = CircuitState.HALF_OPEN
            self._probe_in_flight = False
            logger.info(f"Circuit '{self.name}' moved to half-open state")

    def _open(self, now: float):
        self._state = CircuitState.OPEN
        self._opened_at = now
        self._probe_in_flight = False
        self._stats['times_opened'] += 1
        logger.warning(
            f"Circuit '{self.name}' opened after {self._consecutive_failures} consecutive failures, "
            f"cooling down for {self.config.cool_down_period}s"
        )

    def allow_request(self) -> Optional[Admission]:
        """
        Допуск нового запуска.

        В HALF_OPEN первый вызов резервирует пробную попытку, все следующие
        получают отказ до ее завершения.

        Returns:
            Admission, который передается в record_success/record_failure,
            или None если запуск не разрешен
        """
        with self._lock:
            self._refresh(self._clock())

            if self._state == CircuitState.CLOSED:
                return Admission()

            if self._state == CircuitState.HALF_OPEN and not self._probe_in_flight:
                self._probe_in_flight = True
                self._stats['probes_admitted'] += 1
                logger.info(f"Circuit '{self.name}' admitted a probe")
                return Admission(probe=True)

            self._stats['rejected_requests'] += 1
            return None

    @staticmethod
    def _is_probe_result(admission: Optional[Admission]) -> bool:
        """
        Решает ли итог попытки судьбу HALF_OPEN.

        Попытка, допущенная до размыкания, может завершиться во время
        пробы; ее итог учитывается в статистике, но состояние не меняет.
        Без admission итог считается итогом пробы.
        """
        return admission is None or admission.probe

    def record_success(self, admission: Optional[Admission] = None):
        """Учет успешной попытки."""
        with self._lock:
            self._stats['total_successes'] += 1
            if self._state == CircuitState.HALF_OPEN and not self._is_probe_result(admission):
                return
            self._consecutive_failures = 0

            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.CLOSED
                self._opened_at = None
                self._probe_in_flight = False
                logger.info(f"Circuit '{self.name}' closed after successful probe")

    def record_failure(self, admission: Optional[Admission] = None):
        """Учет неудачной попытки."""
        with self._lock:
            now = self._clock()
            self._stats['total_failures'] += 1
            if self._state == CircuitState.HALF_OPEN and not self._is_probe_result(admission):
                return
            self._consecutive_failures += 1

            if self._state == CircuitState.HALF_OPEN:
                self._open(now)
            elif (self._state == CircuitState.CLOSED
                  and self._consecutive_failures >= self.config.failure_threshold):
                self._open(now)

    def get_state(self) -> CircuitState:
        """Текущее состояние с учетом истекшего cool-down."""
        with self._lock:
            self._refresh(self._clock())
            return self._state

    def time_until_retry(self) -> Optional[float]:
        """
        Сколько ждать до следующего возможного допуска.

        Returns:
            0.0 если допуск возможен сейчас, секунды до HALF_OPEN в OPEN,
            None если ждать нужно завершения пробной попытки
        """
        with self._lock:
            now = self._clock()
            self._refresh(now)

            if self._state == CircuitState.CLOSED:
                return 0.0
            if self._state == CircuitState.OPEN:
                return max(0.0, self._opened_at + self.config.cool_down_period - now)
            return None if self._probe_in_flight else 0.0

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def is_open(self) -> bool:
        return self.get_state() == CircuitState.OPEN

    def get_stats(self) -> Dict[str, Any]:
        """Получение статистики circuit breaker."""
        with self._lock:
            self._refresh(self._clock())
            stats = self._stats.copy()
            stats['state'] = self._state.value
            stats['consecutive_failures'] = self._consecutive_failures
            stats['probe_in_flight'] = self._probe_in_flight
            return stats

    def reset(self):
        """Принудительный возврат в CLOSED."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0
            self._opened_at = None
            self._probe_in_flight = False

        logger.info(f"Circuit '{self.name}' reset")

    def __repr__(self) -> str:
        return (f"CircuitBreaker(name={self.name}, state={self._state.value}, "
                f"failures={self._consecutive_failures})")
