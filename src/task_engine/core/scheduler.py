"""
Планировщик: основной класс движка выполнения задач.
"""

import threading
import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Any, Optional, Dict, Tuple
from dataclasses import dataclass, field

from .task_queue import TaskQueue
from .retry_policy import RetryPolicy, RetryConfig
from .circuit_breaker import Admission, CircuitBreaker, CircuitBreakerConfig, CircuitState
from .concurrency_limiter import ConcurrencyLimiter, Permit
from .graceful_shutdown import GracefulShutdown, ShutdownConfig, ShutdownStatus
from .task_executor import TaskExecutor, ExecutionConfig, ExecutionOutcome

from ..models.task import Task, TaskView
from ..models.engine_metrics import EngineMetrics, EngineStatus

from ..utils.logger import get_logger
from ..exceptions import (
    TaskEngineError,
    EngineClosedError,
    UnknownTaskError,
    InvariantViolationError,
    TaskCancelledError
)


logger = get_logger(__name__)


@dataclass
class EngineConfig:
    """Конфигурация движка задач."""

    # Основные параметры
    concurrency: int = 4
    max_pending: Optional[int] = None  # Лимит очереди ожидания (None - без лимита)
    retention_limit: Optional[int] = None  # Сколько завершенных задач хранить (None - все)

    # Конфигурации компонентов
    retry_config: RetryConfig = field(default_factory=RetryConfig)
    circuit_config: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    shutdown_config: ShutdownConfig = field(default_factory=ShutdownConfig)
    execution_config: ExecutionConfig = field(default_factory=ExecutionConfig)


class TaskEngine:
    """
    Движок выполнения задач с ограничением конкурентности, ретраями
    и circuit breaker.

    Все задачи лежат ровно в одной из четырех коллекций: pending, running,
    completed, failed. Переход между ними выполняется под одной
    блокировкой. Выборкой занимается единственный поток-диспетчер, действия
    выполняются в пуле потоков размером ``concurrency``.

    Пример::

        with TaskEngine(EngineConfig(concurrency=2)) as engine:
            task_id = engine.submit(lambda: fetch(url))
            view = engine.wait(task_id, timeout=10.0)
    """

    def __init__(self, config: Optional[EngineConfig] = None, clock: Callable[[], float] = time.monotonic):
        self.config = config or EngineConfig()
        self._clock = clock
        self._condition = threading.Condition(threading.RLock())
        self._status = EngineStatus.CREATED

        # Компоненты
        self._limiter = ConcurrencyLimiter(self.config.concurrency)
        self._retry_policy = RetryPolicy(self.config.retry_config)
        self._circuit_breaker = CircuitBreaker(self.config.circuit_config, clock=clock)
        self._task_executor = TaskExecutor(self.config.execution_config)
        self._graceful_shutdown = GracefulShutdown(
            self.config.shutdown_config,
            on_signal=lambda: self.shutdown(drain=True)
        )

        # Коллекции задач
        self._tasks: Dict[str, Task] = {}
        self._pending = TaskQueue(self.config.max_pending, clock=clock)
        self._running: Dict[str, Task] = {}
        self._completed: "OrderedDict[str, Task]" = OrderedDict()
        self._failed: "OrderedDict[str, Task]" = OrderedDict()
        self._finished_order: "OrderedDict[str, None]" = OrderedDict()

        # Потоки
        self._workers: Optional[ThreadPoolExecutor] = None
        self._dispatcher: Optional[threading.Thread] = None

        # Флаги
        self._paused = False
        self._dispatch_stopped = False
        self._retries_allowed = True
        self._fatal_error: Optional[InvariantViolationError] = None

        self._metrics = EngineMetrics()

        logger.info(f"TaskEngine initialized with config: {self.config}")

    # ------------------------------------------------------------------
    # Жизненный цикл
    # ------------------------------------------------------------------

    def start(self):
        """Запуск диспетчера и пула воркеров. Повторный вызов ничего не делает."""
        self._raise_if_fatal()
        with self._condition:
            if self._graceful_shutdown.is_shutdown_initiated():
                raise EngineClosedError("Engine has been shut down")
            self._start_locked()

    def _start_locked(self):
        if self._dispatcher is not None:
            return

        self._workers = ThreadPoolExecutor(
            max_workers=self.config.concurrency,
            thread_name_prefix="task-engine-worker"
        )
        self._dispatcher = threading.Thread(
            target=self._dispatch_loop,
            name="task-engine-dispatcher",
            daemon=True
        )
        self._status = EngineStatus.PAUSED if self._paused else EngineStatus.RUNNING
        self._metrics.start_engine()
        self._dispatcher.start()

        logger.info(f"TaskEngine started with concurrency {self.config.concurrency}")

    def pause(self):
        """Остановка запуска новых задач. Выполняющиеся задачи доработают."""
        with self._condition:
            if self._paused:
                return
            self._paused = True
            if self._status == EngineStatus.RUNNING:
                self._status = EngineStatus.PAUSED
            self._condition.notify_all()

        logger.info("TaskEngine paused")

    def resume(self):
        """Возобновление запуска задач."""
        with self._condition:
            if not self._paused:
                return
            self._paused = False
            if self._status == EngineStatus.PAUSED:
                self._status = EngineStatus.RUNNING
            self._condition.notify_all()

        logger.info("TaskEngine resumed")

    def shutdown(self, drain: bool = True, timeout: Optional[float] = None) -> ShutdownStatus:
        """
        Завершение работы движка.

        Новые задачи перестают приниматься сразу. При drain=True движок
        продолжает выполнять ожидающие и запущенные задачи до опустошения
        или таймаута, оставшиеся ожидающие задачи отменяются. При
        drain=False ожидающие задачи отменяются сразу, а запущенные
        дорабатывают в фоне.

        Args:
            drain: Дождаться выполнения накопленной работы
            timeout: Таймаут дренажа, по умолчанию из ShutdownConfig

        Returns:
            Статус завершения работы
        """
        with self._condition:
            status = self._graceful_shutdown.initiate_shutdown(drain)

        if status is None:
            logger.debug("Shutdown already in progress")
            return self._graceful_shutdown.get_status()

        final_status = self._graceful_shutdown.execute_shutdown(
            stop_new_tasks_callback=self._stop_accepting_tasks,
            wait_for_tasks_callback=self.wait_for_completion,
            cancel_pending_callback=self._cancel_pending,
            terminate_workers_callback=self._terminate_workers,
            timeout=timeout
        )

        with self._condition:
            if self._status != EngineStatus.ERROR:
                self._status = EngineStatus.STOPPED
            self._metrics.stop_engine()

        logger.info(f"TaskEngine stopped (drain={drain}, cancelled={final_status.tasks_cancelled})")
        return final_status

    def _stop_accepting_tasks(self):
        with self._condition:
            if self._status != EngineStatus.ERROR:
                self._status = EngineStatus.STOPPING
            if self._graceful_shutdown.get_status().drain:
                # Дренаж идет даже на паузе
                self._paused = False
                if len(self._pending):
                    self._start_locked()
            self._condition.notify_all()

    def _cancel_pending(self) -> int:
        with self._condition:
            self._retries_allowed = False
            cancelled = self._pending.drain()
            for task in cancelled:
                self._finalize_failed(task, TaskCancelledError(f"Task {task.id} cancelled by shutdown"), cancelled=True)
            self._condition.notify_all()
            return len(cancelled)

    def _terminate_workers(self, wait: bool):
        with self._condition:
            self._dispatch_stopped = True
            self._condition.notify_all()

        if self._dispatcher is not None and self._dispatcher is not threading.current_thread():
            self._dispatcher.join()
        if self._workers is not None:
            self._workers.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Публичный API задач
    # ------------------------------------------------------------------

    def submit(
        self,
        action: Callable[[], Any],
        name: str = "",
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Отправка задачи в движок.

        Args:
            action: Функция без аргументов. Может вернуть значение,
                Success или Failure, а также выбросить исключение
            name: Имя задачи
            metadata: Произвольные данные, сохраняемые на задаче

        Returns:
            ID задачи

        Raises:
            EngineClosedError: Если shutdown уже начат
            QueueFullError: Если задан max_pending и очередь заполнена
        """
        self._raise_if_fatal()
        task = Task(action=action, name=name, metadata=dict(metadata or {}))

        with self._condition:
            if self._graceful_shutdown.is_shutdown_initiated():
                raise EngineClosedError("Engine is shutting down")

            self._pending.push(task)
            self._tasks[task.id] = task
            self._metrics.total_tasks_submitted += 1
            self._start_locked()
            self._condition.notify_all()

        logger.debug(f"Task {task.id} ({task.name}) submitted")
        return task.id

    def status(self, task_id: str) -> TaskView:
        """
        Снимок состояния задачи.

        Raises:
            UnknownTaskError: Если задача не отправлялась или удалена
        """
        with self._condition:
            return self._get_task(task_id).snapshot()

    def wait(self, task_id: str, timeout: Optional[float] = None) -> TaskView:
        """
        Ожидание терминального состояния задачи.

        Returns:
            Снимок задачи (по таймауту - текущий, нетерминальный)
        """
        with self._condition:
            task = self._get_task(task_id)
        task.wait(timeout)
        with self._condition:
            return task.snapshot()

    def wait_for_completion(self, timeout: Optional[float] = None) -> bool:
        """
        Ожидание, пока не останется ожидающих и выполняющихся задач.

        На паузе ожидающие задачи не запускаются, поэтому без таймаута
        вызов может не вернуться до resume().

        Returns:
            True если движок опустел, False если таймаут или авария
        """
        with self._condition:
            drained = self._condition.wait_for(
                lambda: self._fatal_error is not None or (not len(self._pending) and not self._running),
                timeout=timeout
            )
            return drained and self._fatal_error is None

    def forget(self, task_id: str):
        """
        Удаление завершенной задачи после получения результата.

        Raises:
            UnknownTaskError: Если задача неизвестна
            TaskEngineError: Если задача еще не завершена
        """
        with self._condition:
            task = self._get_task(task_id)
            if not task.is_finished():
                raise TaskEngineError(f"Task {task_id} is not finished (status: {task.status.value})")
            self._purge(task_id)

    def _get_task(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise UnknownTaskError(task_id)
        return task

    # ------------------------------------------------------------------
    # Диспетчер
    # ------------------------------------------------------------------

    def _dispatch_loop(self):
        """Цикл выборки задач. Спит, пока нет допустимой работы."""
        logger.debug("Dispatcher started")

        with self._condition:
            while not self._dispatch_stopped and self._fatal_error is None:
                dispatch, wait_timeout = self._next_dispatch()
                if dispatch is None:
                    self._condition.wait(timeout=wait_timeout)
                    continue

                self._workers.submit(self._run_task, *dispatch)

        logger.debug("Dispatcher stopped")

    def _next_dispatch(self) -> Tuple[Optional[Tuple[Task, Permit, Admission]], Optional[float]]:
        """
        Выбор следующей задачи под блокировкой.

        Returns:
            ((задача, разрешение, допуск breaker'а), None) при успехе, иначе (None, таймаут сна)
        """
        if self._paused or not len(self._pending):
            return None, None

        task, wake_in = self._pending.peek_eligible(self._clock())
        if task is None:
            return None, wake_in

        permit = self._limiter.try_acquire()
        if permit is None:
            return None, None

        admission = self._circuit_breaker.allow_request()
        if admission is None:
            self._limiter.release(permit)
            return None, self._circuit_breaker.time_until_retry()

        self._pending.remove(task.id)
        task.mark_running()
        self._running[task.id] = task

        logger.debug(f"Task {task.id} dispatched, attempt {task.attempts}")
        return (task, permit, admission), None

    def _run_task(self, task: Task, permit: Permit, admission: Admission):
        """Выполнение попытки в потоке воркера."""
        outcome = None
        try:
            outcome = self._task_executor.execute(task)
        except BaseException as e:
            # KeyboardInterrupt, SystemExit и т.п. завершают задачу без ретрая
            outcome = ExecutionOutcome(success=False, error=e, retryable=False)
            raise
        finally:
            self._complete(task, permit, outcome, admission)

    def _complete(self, task: Task, permit: Permit, outcome: ExecutionOutcome,
                  admission: Optional[Admission] = None):
        try:
            try:
                with self._condition:
                    self._finish_attempt(task, outcome, admission)
            finally:
                self._limiter.release(permit)
        except InvariantViolationError as e:
            self._abort(e, task)
            raise
        except Exception as e:
            # Сбой учета оставил бы задачу вне всех коллекций
            fatal = InvariantViolationError(f"Bookkeeping failed for task {task.id}: {e!r}")
            fatal.__cause__ = e
            self._abort(fatal, task)
            raise fatal from e
        finally:
            with self._condition:
                self._condition.notify_all()

    def _finish_attempt(self, task: Task, outcome: ExecutionOutcome, admission: Optional[Admission] = None):
        """Применение итога попытки. Вызывается под блокировкой."""
        if self._running.pop(task.id, None) is not task:
            raise InvariantViolationError(f"Task {task.id} finished an attempt but was not running")

        self._metrics.update_attempt(outcome.execution_time)

        if outcome.success:
            self._circuit_breaker.record_success(admission)
            task.mark_completed(outcome.value)
            self._completed[task.id] = task
            self._metrics.update_task_completion(success=True)
            self._record_finished(task)
            logger.debug(f"Task {task.id} completed after {task.attempts} attempts")
            return

        # Каждая неудачная попытка учитывается breaker'ом, включая будущие ретраи
        self._circuit_breaker.record_failure(admission)

        wants_retry = outcome.retryable and self._retry_policy.should_retry(task.attempts, outcome.error)

        if wants_retry and self._retries_allowed:
            delay = self._retry_policy.backoff_delay(task.attempts)
            task.mark_retry(outcome.error, self._clock() + delay)
            self._pending.requeue(task)
            self._metrics.update_task_retry()
            logger.warning(
                f"Task {task.id} attempt {task.attempts} failed: {outcome.error!r}; "
                f"retrying in {delay:.3f}s"
            )
            return

        if wants_retry:
            # Очередь уже отменена shutdown'ом, ретраить некуда
            error = TaskCancelledError(f"Task {task.id} cancelled by shutdown before retry")
            error.__cause__ = outcome.error
            self._finalize_failed(task, error, cancelled=True)
            logger.info(f"Task {task.id} cancelled by shutdown after attempt {task.attempts}")
            return

        self._finalize_failed(task, outcome.error)
        logger.error(f"Task {task.id} failed after {task.attempts} attempts: {outcome.error!r}")

    def _finalize_failed(self, task: Task, error: Exception, cancelled: bool = False):
        task.mark_failed(error)
        self._failed[task.id] = task
        self._metrics.update_task_completion(success=False, cancelled=cancelled)
        self._record_finished(task)

    def _record_finished(self, task: Task):
        self._finished_order[task.id] = None

        limit = self.config.retention_limit
        if limit is None:
            return
        while len(self._finished_order) > limit:
            oldest_id = next(iter(self._finished_order))
            self._purge(oldest_id)
            logger.debug(f"Task {oldest_id} purged by retention limit")

    def _purge(self, task_id: str):
        self._finished_order.pop(task_id, None)
        self._completed.pop(task_id, None)
        self._failed.pop(task_id, None)
        del self._tasks[task_id]

    def _abort(self, error: InvariantViolationError, task: Optional[Task] = None):
        """
        Авария движка из-за нарушения инварианта.

        Зарегистрированная задача, на которой случился сбой, завершается
        с этой ошибкой, чтобы ее ожидающие не зависли.
        """
        logger.critical(f"TaskEngine aborted: {error}")
        with self._condition:
            if self._fatal_error is None:
                self._fatal_error = error
            self._status = EngineStatus.ERROR
            self._dispatch_stopped = True
            if task is not None and self._tasks.get(task.id) is task and not task.is_finished():
                self._running.pop(task.id, None)
                if task.id in self._pending:
                    self._pending.remove(task.id)
                self._finalize_failed(task, error)
            self._condition.notify_all()

    def _raise_if_fatal(self):
        if self._fatal_error is not None:
            raise InvariantViolationError("TaskEngine aborted after an internal error") from self._fatal_error

    # ------------------------------------------------------------------
    # Диагностика
    # ------------------------------------------------------------------

    def get_counts(self) -> Dict[str, int]:
        """Размеры коллекций задач."""
        with self._condition:
            return {
                'pending': len(self._pending),
                'running': len(self._running),
                'completed': len(self._completed),
                'failed': len(self._failed)
            }

    def get_circuit_state(self) -> CircuitState:
        return self._circuit_breaker.get_state()

    def get_engine_status(self) -> EngineStatus:
        return self._status

    def get_metrics(self) -> Dict[str, Any]:
        """Получение метрик движка."""
        with self._condition:
            metrics = self._metrics.to_dict()
            metrics.update({
                'status': self._status.value,
                'paused': self._paused,
                'counts': self.get_counts(),
                'circuit_breaker': self._circuit_breaker.get_stats(),
                'limiter': {
                    'capacity': self._limiter.capacity,
                    'in_use': self._limiter.in_use,
                    'max_in_use': self._limiter.max_in_use
                },
                'queue_metrics': self._pending.get_metrics(),
                'execution_metrics': self._task_executor.get_metrics()
            })
            return metrics

    def is_running(self) -> bool:
        """Движок запущен и принимает задачи."""
        return self._status in (EngineStatus.RUNNING, EngineStatus.PAUSED)

    def is_paused(self) -> bool:
        return self._paused

    def is_closed(self) -> bool:
        return self._graceful_shutdown.is_shutdown_initiated()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown(drain=exc_type is None)

    def __repr__(self) -> str:
        counts = self.get_counts()
        return (f"TaskEngine(status={self._status.value}, pending={counts['pending']}, "
                f"running={counts['running']}, completed={counts['completed']}, failed={counts['failed']})")
