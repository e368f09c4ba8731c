"""
Ограничитель количества одновременно выполняемых задач.
"""

import threading
import itertools
from contextlib import contextmanager
from typing import Optional, Set

from ..utils.logger import get_logger
from ..exceptions import ConfigurationError, InvariantViolationError


logger = get_logger(__name__)


class Permit:
    """Разрешение на один слот выполнения."""

    __slots__ = ("id", "_owner")

    def __init__(self, permit_id: int, owner: "ConcurrencyLimiter"):
        self.id = permit_id
        self._owner = owner

    def __repr__(self) -> str:
        return f"Permit(id={self.id})"


class ConcurrencyLimiter:
    """
    Счетный семафор с явными разрешениями.

    Каждый успешный acquire должен быть закрыт ровно одним release.
    Повторный или чужой release считается ошибкой движка.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ConfigurationError(f"capacity must be >= 1, got {capacity}")

        self._capacity = capacity
        self._condition = threading.Condition(threading.Lock())
        self._outstanding: Set[int] = set()
        self._ids = itertools.count(1)
        self._max_in_use = 0

        logger.debug(f"ConcurrencyLimiter initialized with capacity {capacity}")

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def in_use(self) -> int:
        with self._condition:
            return len(self._outstanding)

    @property
    def available(self) -> int:
        with self._condition:
            return self._capacity - len(self._outstanding)

    @property
    def max_in_use(self) -> int:
        """Пиковое число занятых слотов."""
        with self._condition:
            return self._max_in_use

    def _grant(self) -> Permit:
        permit = Permit(next(self._ids), self)
        self._outstanding.add(permit.id)
        self._max_in_use = max(self._max_in_use, len(self._outstanding))
        return permit

    def try_acquire(self) -> Optional[Permit]:
        """Получение слота без ожидания."""
        with self._condition:
            if len(self._outstanding) >= self._capacity:
                return None
            return self._grant()

    def acquire(self, timeout: Optional[float] = None) -> Optional[Permit]:
        """
        Получение слота с ожиданием.

        Args:
            timeout: Таймаут ожидания (None - ждать бесконечно)

        Returns:
            Разрешение или None если таймаут
        """
        with self._condition:
            acquired = self._condition.wait_for(
                lambda: len(self._outstanding) < self._capacity,
                timeout=timeout
            )
            if not acquired:
                return None
            return self._grant()

    def release(self, permit: Permit):
        """Возврат слота."""
        with self._condition:
            if permit._owner is not self or permit.id not in self._outstanding:
                raise InvariantViolationError(f"{permit} released twice or by a foreign limiter")

            self._outstanding.discard(permit.id)
            self._condition.notify()

    @contextmanager
    def slot(self, timeout: Optional[float] = None):
        """
        Контекстный менеджер для слота с гарантированным возвратом.

        Raises:
            TimeoutError: Если слот не получен за timeout
        """
        permit = self.acquire(timeout)
        if permit is None:
            raise TimeoutError(f"No free slot within {timeout}s")
        try:
            yield permit
        finally:
            self.release(permit)

    def __repr__(self) -> str:
        return f"ConcurrencyLimiter(in_use={self.in_use}, capacity={self._capacity})"
