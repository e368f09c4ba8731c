"""
Поэтапное завершение работы движка задач.

Порядок фаз:
1. STOPPING_NEW_TASKS - новые задачи больше не принимаются
2. DRAINING - только при drain=True, ждем опустошения движка
3. CANCELLING_PENDING - оставшиеся ожидающие задачи отменяются
4. TERMINATING_WORKERS - остановка диспетчера и пула потоков
"""

import signal
import threading
from typing import Callable, Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from ..utils.logger import get_logger
from ..exceptions import ShutdownError


logger = get_logger(__name__)

_HANDLED_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class ShutdownPhase(Enum):
    """Фазы завершения работы."""
    INITIATED = "initiated"
    STOPPING_NEW_TASKS = "stopping_new_tasks"
    DRAINING = "draining"
    CANCELLING_PENDING = "cancelling_pending"
    TERMINATING_WORKERS = "terminating_workers"
    COMPLETED = "completed"


@dataclass
class ShutdownConfig:
    """Конфигурация graceful shutdown."""
    timeout: Optional[float] = 30.0  # Таймаут дренажа в секундах (None - без ограничения)
    signal_handling: bool = False  # Перехват SIGTERM/SIGINT
    cleanup_callbacks: List[Callable] = field(default_factory=list)


@dataclass
class ShutdownStatus:
    """Статус завершения работы."""
    phase: ShutdownPhase
    start_time: datetime
    drain: bool = True
    drained: bool = False
    tasks_cancelled: int = 0
    cleanup_callbacks_executed: int = 0
    error_count: int = 0
    completed: bool = False
    error: Optional[Exception] = None

    def elapsed(self) -> float:
        return (datetime.now() - self.start_time).total_seconds()


class GracefulShutdown:
    """
    Координатор завершения работы.

    Сам ничего не останавливает: каждая фаза - callback владельца
    (планировщика). Shutdown инициируется ровно один раз, повторные
    инициации возвращают None.
    """

    def __init__(
        self,
        config: Optional[ShutdownConfig] = None,
        on_signal: Optional[Callable[[], None]] = None
    ):
        self.config = config or ShutdownConfig()
        self._on_signal = on_signal
        self._lock = threading.Lock()
        self._initiated = threading.Event()
        self._finished = threading.Event()
        self._status: Optional[ShutdownStatus] = None
        self._extra_callbacks: List[Callable] = []
        self._previous_handlers: Dict[int, object] = {}

        if self.config.signal_handling:
            self._install_signal_handlers()

    # ------------------------------------------------------------------
    # Сигналы
    # ------------------------------------------------------------------

    def _install_signal_handlers(self):
        """Перехват SIGTERM/SIGINT. Работает только из главного потока."""
        for signum in _HANDLED_SIGNALS:
            try:
                self._previous_handlers[signum] = signal.signal(signum, self._handle_signal)
            except (OSError, ValueError) as e:
                logger.warning(f"Could not install handler for signal {signum}: {e}")

    def _restore_signal_handlers(self):
        for signum, handler in self._previous_handlers.items():
            try:
                signal.signal(signum, handler)
            except (OSError, ValueError) as e:
                logger.warning(f"Could not restore handler for signal {signum}: {e}")
        self._previous_handlers.clear()

    def _handle_signal(self, signum, frame):
        logger.info(f"Signal {signum} received, shutting down")
        if self._on_signal is None:
            self.initiate_shutdown()
            return
        # Дренаж может длиться долго, обработчик сигнала не блокируем
        threading.Thread(target=self._on_signal, name="task-engine-signal-shutdown", daemon=True).start()

    # ------------------------------------------------------------------
    # Фазы
    # ------------------------------------------------------------------

    def initiate_shutdown(self, drain: bool = True) -> Optional[ShutdownStatus]:
        """
        Инициация shutdown.

        Returns:
            Новый статус или None, если shutdown уже был инициирован
        """
        with self._lock:
            if self._status is not None:
                return None
            self._status = ShutdownStatus(
                phase=ShutdownPhase.INITIATED,
                start_time=datetime.now(),
                drain=drain
            )
            self._initiated.set()

        logger.info(f"Shutdown initiated (drain={drain})")
        return self._status

    def _enter(self, phase: ShutdownPhase, message: str):
        self._status.phase = phase
        logger.info(message)

    def execute_shutdown(
        self,
        stop_new_tasks_callback: Optional[Callable[[], None]] = None,
        wait_for_tasks_callback: Optional[Callable[[Optional[float]], bool]] = None,
        cancel_pending_callback: Optional[Callable[[], int]] = None,
        terminate_workers_callback: Optional[Callable[[bool], None]] = None,
        cleanup_callbacks: Optional[List[Callable]] = None,
        timeout: Optional[float] = None
    ) -> ShutdownStatus:
        """
        Прохождение всех фаз.

        Args:
            stop_new_tasks_callback: Остановка приема задач
            wait_for_tasks_callback: Дренаж; принимает таймаут, возвращает
                True если движок опустел
            cancel_pending_callback: Отмена ожидающих задач, возвращает их число
            terminate_workers_callback: Остановка потоков; принимает флаг
                ожидания выполняющихся задач
            cleanup_callbacks: Callback'и, выполняемые после остановки
            timeout: Таймаут дренажа, по умолчанию из конфигурации

        Returns:
            Финальный статус

        Raises:
            ShutdownError: Если shutdown не инициирован или фаза упала
        """
        status = self._status
        if status is None:
            raise ShutdownError("execute_shutdown() called before initiate_shutdown()")

        drain_timeout = self.config.timeout if timeout is None else timeout

        try:
            self._enter(ShutdownPhase.STOPPING_NEW_TASKS, "Shutdown: no longer accepting tasks")
            if stop_new_tasks_callback:
                stop_new_tasks_callback()

            if status.drain and wait_for_tasks_callback:
                self._enter(ShutdownPhase.DRAINING, f"Shutdown: draining (timeout={drain_timeout})")
                status.drained = wait_for_tasks_callback(drain_timeout)
                if not status.drained:
                    logger.warning(f"Drain did not finish within {drain_timeout}s")

            self._enter(ShutdownPhase.CANCELLING_PENDING, "Shutdown: cancelling pending tasks")
            if cancel_pending_callback:
                status.tasks_cancelled = cancel_pending_callback()

            self._enter(ShutdownPhase.TERMINATING_WORKERS, "Shutdown: stopping workers")
            if terminate_workers_callback:
                terminate_workers_callback(status.drain)
        except Exception as e:
            status.error = e
            status.error_count += 1
            logger.error(f"Shutdown failed in phase {status.phase.value}: {e}")
            self._finish()
            raise ShutdownError(f"Shutdown failed in phase {status.phase.value}: {e}") from e

        callbacks = list(cleanup_callbacks or []) + self.config.cleanup_callbacks + self._extra_callbacks
        self._run_cleanup(callbacks)

        status.phase = ShutdownPhase.COMPLETED
        status.completed = True
        self._finish()

        logger.info(
            f"Shutdown completed in {status.elapsed():.2f}s "
            f"(drained={status.drained}, cancelled={status.tasks_cancelled})"
        )
        return status

    def _run_cleanup(self, callbacks: List[Callable]):
        """Cleanup callback'и выполняются все, ошибки только учитываются."""
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                self._status.error_count += 1
                logger.error(f"Cleanup callback {callback!r} failed: {e}")
            else:
                self._status.cleanup_callbacks_executed += 1

    def _finish(self):
        self._restore_signal_handlers()
        self._finished.set()

    # ------------------------------------------------------------------
    # Состояние
    # ------------------------------------------------------------------

    def add_cleanup_callback(self, callback: Callable):
        self._extra_callbacks.append(callback)

    def is_shutdown_initiated(self) -> bool:
        return self._initiated.is_set()

    def is_shutdown_completed(self) -> bool:
        return self._status is not None and self._status.completed

    def get_status(self) -> Optional[ShutdownStatus]:
        return self._status

    def wait_for_completion(self, timeout: Optional[float] = None) -> bool:
        """
        Ожидание окончания shutdown, выполняемого в другом потоке.

        Returns:
            True если shutdown не начинался или закончился
        """
        if self._status is None:
            return True
        return self._finished.wait(timeout)

    def __repr__(self) -> str:
        phase = self._status.phase.value if self._status else "not_initiated"
        return f"GracefulShutdown(phase={phase})"
