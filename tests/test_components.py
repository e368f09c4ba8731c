"""
Тесты для отдельных компонентов движка задач.
"""

import time
import signal
import pytest
import threading
from unittest.mock import Mock

from task_engine.core.retry_policy import RetryPolicy, RetryConfig, BackoffStrategy
from task_engine.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
from task_engine.core.concurrency_limiter import ConcurrencyLimiter
from task_engine.core.task_queue import TaskQueue
from task_engine.core.task_executor import TaskExecutor, ExecutionConfig
from task_engine.core.graceful_shutdown import GracefulShutdown, ShutdownConfig, ShutdownPhase

from task_engine.models.task import Task, TaskStatus, Success, Failure
from task_engine.models.engine_metrics import EngineMetrics
from task_engine.exceptions import (
    ConfigurationError,
    InvariantViolationError,
    NonRetryableError,
    QueueFullError,
    ShutdownError,
    TaskExecutionError
)


class FakeClock:
    """Управляемые монотонные часы."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class TestTask:
    """Тесты для конечного автомата задачи."""

    def test_task_defaults(self):
        """Тест значений по умолчанию."""
        def fetch():
            return 1

        task = Task(action=fetch)
        assert task.status == TaskStatus.PENDING
        assert task.attempts == 0
        assert task.name == "fetch"
        assert task.is_eligible(0.0)

    def test_action_must_be_callable(self):
        """Тест валидации действия."""
        with pytest.raises(ValueError):
            Task(action="not callable")

        with pytest.raises(ValueError):
            Task()

    def test_successful_lifecycle(self):
        """Тест пути PENDING -> RUNNING -> COMPLETED."""
        task = Task(action=lambda: 42, name="answer")

        task.mark_running()
        assert task.status == TaskStatus.RUNNING
        assert task.attempts == 1
        assert task.started_at is not None

        task.mark_completed(42)
        assert task.status == TaskStatus.COMPLETED
        assert task.result == 42
        assert task.is_finished()
        assert task.wait(timeout=0)

    def test_retry_lifecycle(self):
        """Тест возврата в PENDING с отложенным допуском."""
        task = Task(action=lambda: None)
        error = ValueError("boom")

        task.mark_running()
        task.mark_retry(error, next_eligible_at=10.0)

        assert task.status == TaskStatus.PENDING
        assert task.error is error
        assert not task.is_eligible(9.9)
        assert task.is_eligible(10.0)

        task.mark_running()
        assert task.attempts == 2

    def test_pending_can_be_cancelled(self):
        """Тест отмены задачи, ни разу не запускавшейся."""
        task = Task(action=lambda: None)
        task.mark_failed(RuntimeError("cancelled"))

        assert task.status == TaskStatus.FAILED
        assert task.attempts == 0

    @pytest.mark.parametrize("finish", ["completed", "failed"])
    def test_terminal_states_are_final(self, finish):
        """Тест запрета выхода из терминальных состояний."""
        task = Task(action=lambda: None)
        task.mark_running()
        if finish == "completed":
            task.mark_completed(None)
        else:
            task.mark_failed(ValueError())

        with pytest.raises(InvariantViolationError):
            task.mark_running()
        with pytest.raises(InvariantViolationError):
            task.mark_failed(ValueError())

    def test_completed_requires_running(self):
        """Тест запрета PENDING -> COMPLETED."""
        task = Task(action=lambda: None)
        with pytest.raises(InvariantViolationError):
            task.mark_completed(1)

    def test_failure_requires_exception(self):
        """Тест: Failure принимает только исключения."""
        with pytest.raises(TypeError):
            Failure("timeout")

        assert Failure(TimeoutError("timeout")).retryable

    def test_snapshot_is_immutable(self):
        """Тест снимка задачи."""
        task = Task(action=lambda: None, name="snap")
        task.mark_running()
        view = task.snapshot()

        task.mark_completed("done")

        assert view.status == TaskStatus.RUNNING
        assert view.name == "snap"
        assert not view.is_finished()
        with pytest.raises(Exception):
            view.status = TaskStatus.COMPLETED

        assert task.snapshot().is_success()


class TestRetryPolicy:
    """Тесты для политики ретраев."""

    def test_policy_defaults(self):
        """Тест инициализации политики."""
        policy = RetryPolicy()
        assert policy.config.max_attempts == 3
        assert policy.config.strategy == BackoffStrategy.EXPONENTIAL

    def test_exponential_backoff(self):
        """Тест экспоненциального backoff."""
        policy = RetryPolicy(RetryConfig(base_delay=1.0))

        assert policy.backoff_delay(1) == 1.0
        assert policy.backoff_delay(2) == 2.0
        assert policy.backoff_delay(3) == 4.0

    def test_linear_backoff(self):
        """Тест линейного backoff."""
        policy = RetryPolicy(RetryConfig(strategy=BackoffStrategy.LINEAR, base_delay=1.0))

        assert policy.backoff_delay(1) == 1.0
        assert policy.backoff_delay(2) == 2.0
        assert policy.backoff_delay(3) == 3.0

    def test_fixed_backoff(self):
        """Тест фиксированного backoff."""
        policy = RetryPolicy(RetryConfig(strategy="fixed", base_delay=0.5))

        assert policy.config.strategy == BackoffStrategy.FIXED
        assert policy.backoff_delay(1) == 0.5
        assert policy.backoff_delay(7) == 0.5

    def test_backoff_is_monotonic_and_capped(self):
        """Тест неубывания задержки и ограничения max_delay."""
        policy = RetryPolicy(RetryConfig(base_delay=0.1, max_delay=5.0, max_attempts=100))

        delays = [policy.backoff_delay(n) for n in range(1, 60)]
        assert delays == sorted(delays)
        assert all(delay <= 5.0 for delay in delays)
        assert delays[-1] == 5.0

    def test_backoff_overflow(self):
        """Тест огромного номера попытки."""
        policy = RetryPolicy(RetryConfig(base_delay=1.0, max_delay=30.0))
        assert policy.backoff_delay(5000) == 30.0

    def test_jitter_only_increases_delay(self):
        """Тест джиттера: задержка не меньше базовой и не больше max_delay."""
        policy = RetryPolicy(RetryConfig(base_delay=1.0, max_delay=3.0, jitter=True, jitter_factor=0.5))

        for _ in range(50):
            assert 1.0 <= policy.backoff_delay(1) <= 1.5
            assert policy.backoff_delay(5) == 3.0

    def test_should_retry_respects_max_attempts(self):
        """Тест лимита попыток."""
        policy = RetryPolicy(RetryConfig(max_attempts=3))
        error = ValueError("temporary")

        assert policy.should_retry(1, error)
        assert policy.should_retry(2, error)
        assert not policy.should_retry(3, error)

    def test_single_attempt_never_retries(self):
        """Тест max_attempts=1."""
        policy = RetryPolicy(RetryConfig(max_attempts=1))
        assert not policy.should_retry(1, ValueError())

    def test_non_retryable_errors(self):
        """Тест терминальных ошибок."""
        policy = RetryPolicy()

        assert not policy.should_retry(1, NonRetryableError("fatal"))
        assert not policy.should_retry(1, Failure(ValueError(), retryable=False))
        assert policy.should_retry(1, Failure(ValueError()))

    def test_exception_filters(self):
        """Тест фильтрации по типам исключений."""
        policy = RetryPolicy(RetryConfig(
            retry_on_exceptions=[ConnectionError, ValueError],
            stop_on_exceptions=[ConnectionRefusedError]
        ))

        assert policy.is_retryable(ValueError())
        assert policy.is_retryable(ConnectionResetError())
        assert not policy.is_retryable(ConnectionRefusedError())
        assert not policy.is_retryable(KeyError())

    def test_wrapped_error_classified_by_cause(self):
        """Тест классификации обернутой ошибки по исходной."""
        policy = RetryPolicy(RetryConfig(stop_on_exceptions=[KeyError]))

        wrapped = TaskExecutionError("wrapped")
        wrapped.__cause__ = KeyError("missing")

        assert not policy.is_retryable(wrapped)

    def test_chained_error_classified_by_itself(self):
        """Тест: цепочка raise ... from ... не подменяет тип ошибки."""
        try:
            try:
                raise KeyError("missing")
            except KeyError as e:
                raise ValueError("bad payload") from e
        except ValueError as e:
            chained = e

        stop_policy = RetryPolicy(RetryConfig(stop_on_exceptions=[ValueError]))
        assert not stop_policy.should_retry(1, chained)

        retry_policy = RetryPolicy(RetryConfig(retry_on_exceptions=[KeyError]))
        assert not retry_policy.should_retry(1, chained)

    @pytest.mark.parametrize("config", [
        RetryConfig(max_attempts=0),
        RetryConfig(base_delay=-1.0),
        RetryConfig(base_delay=10.0, max_delay=1.0),
        RetryConfig(exponential_base=0.5),
        RetryConfig(retry_on_exceptions=["ValueError"]),
        RetryConfig(stop_on_exceptions=[ValueError, 42]),
        RetryConfig(retry_on_exceptions=[dict]),
    ])
    def test_invalid_config(self, config):
        """Тест валидации конфигурации."""
        with pytest.raises(ConfigurationError):
            RetryPolicy(config)


class TestCircuitBreaker:
    """Тесты для circuit breaker."""

    def make_breaker(self, threshold=3, cool_down=10.0):
        clock = FakeClock()
        breaker = CircuitBreaker(
            CircuitBreakerConfig(failure_threshold=threshold, cool_down_period=cool_down),
            clock=clock
        )
        return breaker, clock

    def test_opens_after_threshold(self):
        """Тест размыкания после серии неудач."""
        breaker, _ = self.make_breaker(threshold=3)

        breaker.record_failure()
        breaker.record_failure()
        assert breaker.get_state() == CircuitState.CLOSED
        assert breaker.allow_request()

        breaker.record_failure()
        assert breaker.get_state() == CircuitState.OPEN
        assert not breaker.allow_request()

    def test_success_resets_failures(self):
        """Тест сброса счетчика успехом."""
        breaker, _ = self.make_breaker(threshold=3)

        breaker.record_failure()
        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()
        breaker.record_failure()

        assert breaker.get_state() == CircuitState.CLOSED
        assert breaker.consecutive_failures == 2

    def test_half_open_admits_single_probe(self):
        """Тест одной пробной попытки после cool-down."""
        breaker, clock = self.make_breaker(threshold=1, cool_down=8.0)
        breaker.record_failure()

        clock.advance(7.5)
        assert not breaker.allow_request()
        assert breaker.time_until_retry() == 0.5

        clock.advance(0.5)
        assert breaker.get_state() == CircuitState.HALF_OPEN
        assert breaker.time_until_retry() == 0.0
        assert breaker.allow_request()
        assert not breaker.allow_request()
        assert breaker.time_until_retry() is None

    def test_probe_success_closes(self):
        """Тест замыкания после успешной пробы."""
        breaker, clock = self.make_breaker(threshold=1, cool_down=5.0)
        breaker.record_failure()
        clock.advance(5.0)

        assert breaker.allow_request()
        breaker.record_success()

        assert breaker.get_state() == CircuitState.CLOSED
        assert breaker.allow_request()
        assert breaker.allow_request()

    def test_probe_failure_reopens(self):
        """Тест повторного размыкания после неудачной пробы."""
        breaker, clock = self.make_breaker(threshold=3, cool_down=5.0)
        for _ in range(3):
            breaker.record_failure()
        clock.advance(5.0)

        assert breaker.allow_request()
        breaker.record_failure()

        assert breaker.get_state() == CircuitState.OPEN
        assert breaker.time_until_retry() == pytest.approx(5.0)
        assert breaker.get_stats()['times_opened'] == 2

    def test_earlier_attempt_does_not_decide_half_open(self):
        """Тест: попытка, допущенная до размыкания, не меняет HALF_OPEN."""
        breaker, clock = self.make_breaker(threshold=1, cool_down=5.0)
        early = breaker.allow_request()
        assert not early.probe

        breaker.record_failure()
        clock.advance(5.0)
        trial = breaker.allow_request()
        assert trial.probe

        breaker.record_success(early)
        assert breaker.get_state() == CircuitState.HALF_OPEN
        breaker.record_failure(early)
        assert breaker.get_state() == CircuitState.HALF_OPEN
        assert breaker.allow_request() is None

        breaker.record_success(trial)
        assert breaker.get_state() == CircuitState.CLOSED

        stats = breaker.get_stats()
        assert stats['total_successes'] == 2
        assert stats['total_failures'] == 2
        assert stats['times_opened'] == 1

    def test_stats_and_reset(self):
        """Тест статистики и сброса."""
        breaker, _ = self.make_breaker(threshold=1)
        breaker.record_failure()
        breaker.allow_request()

        stats = breaker.get_stats()
        assert stats['state'] == 'open'
        assert stats['total_failures'] == 1
        assert stats['rejected_requests'] == 1

        breaker.reset()
        assert breaker.get_state() == CircuitState.CLOSED
        assert breaker.consecutive_failures == 0

    def test_invalid_config(self):
        """Тест валидации конфигурации."""
        with pytest.raises(ConfigurationError):
            CircuitBreaker(CircuitBreakerConfig(failure_threshold=0))
        with pytest.raises(ConfigurationError):
            CircuitBreaker(CircuitBreakerConfig(cool_down_period=-1))


class TestConcurrencyLimiter:
    """Тесты для ограничителя конкурентности."""

    def test_try_acquire_until_full(self):
        """Тест исчерпания слотов."""
        limiter = ConcurrencyLimiter(2)

        first = limiter.try_acquire()
        second = limiter.try_acquire()
        assert first is not None and second is not None
        assert limiter.try_acquire() is None
        assert limiter.in_use == 2
        assert limiter.available == 0

        limiter.release(first)
        assert limiter.available == 1

    def test_acquire_timeout(self):
        """Тест таймаута ожидания слота."""
        limiter = ConcurrencyLimiter(1)
        limiter.acquire()

        start_time = time.monotonic()
        assert limiter.acquire(timeout=0.05) is None
        assert time.monotonic() - start_time >= 0.04

    def test_double_release(self):
        """Тест повторного возврата слота."""
        limiter = ConcurrencyLimiter(1)
        permit = limiter.acquire()
        limiter.release(permit)

        with pytest.raises(InvariantViolationError):
            limiter.release(permit)
        assert limiter.in_use == 0

    def test_foreign_release(self):
        """Тест возврата чужого разрешения."""
        limiter = ConcurrencyLimiter(1)
        other = ConcurrencyLimiter(1)
        permit = other.acquire()

        with pytest.raises(InvariantViolationError):
            limiter.release(permit)

    def test_slot_context_manager(self):
        """Тест контекстного менеджера."""
        limiter = ConcurrencyLimiter(1)

        with pytest.raises(RuntimeError):
            with limiter.slot():
                assert limiter.in_use == 1
                raise RuntimeError("boom")

        assert limiter.in_use == 0

        with limiter.slot():
            with pytest.raises(TimeoutError):
                with limiter.slot(timeout=0.01):
                    pass

    def test_concurrent_usage_never_exceeds_capacity(self):
        """Тест ограничения под конкурентной нагрузкой."""
        limiter = ConcurrencyLimiter(3)
        active = 0
        peak = 0
        lock = threading.Lock()

        def worker():
            nonlocal active, peak
            for _ in range(20):
                with limiter.slot():
                    with lock:
                        active += 1
                        peak = max(peak, active)
                    time.sleep(0.001)
                    with lock:
                        active -= 1

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert peak <= 3
        assert limiter.max_in_use <= 3
        assert limiter.in_use == 0

    def test_invalid_capacity(self):
        """Тест валидации емкости."""
        with pytest.raises(ConfigurationError):
            ConcurrencyLimiter(0)


class TestTaskQueue:
    """Тесты для очереди ожидающих задач."""

    def test_fifo_order(self):
        """Тест порядка первых попыток."""
        queue = TaskQueue(clock=FakeClock())
        tasks = [Task(action=lambda: None, name=str(i)) for i in range(3)]
        for task in tasks:
            queue.push(task)

        picked, _ = queue.peek_eligible(0.0)
        assert picked is tasks[0]
        assert len(queue) == 3

        queue.remove(picked.id)
        picked, _ = queue.peek_eligible(0.0)
        assert picked is tasks[1]

    def test_retry_waits_for_eligibility(self):
        """Тест пропуска задачи до истечения backoff."""
        queue = TaskQueue(clock=FakeClock())
        retrying = Task(action=lambda: None, name="retrying")
        retrying.mark_running()
        retrying.mark_retry(ValueError(), next_eligible_at=5.0)
        queue.requeue(retrying)

        picked, wake_in = queue.peek_eligible(3.0)
        assert picked is None
        assert wake_in == pytest.approx(2.0)

        fresh = Task(action=lambda: None, name="fresh")
        queue.push(fresh)
        picked, _ = queue.peek_eligible(3.0)
        assert picked is fresh

        picked, _ = queue.peek_eligible(5.0)
        assert picked is retrying

    def test_empty_queue(self):
        """Тест пустой очереди."""
        queue = TaskQueue()
        assert queue.peek_eligible(0.0) == (None, None)

    def test_max_size(self):
        """Тест лимита очереди."""
        queue = TaskQueue(max_size=1)
        queue.push(Task(action=lambda: None))

        with pytest.raises(QueueFullError):
            queue.push(Task(action=lambda: None))

        retrying = Task(action=lambda: None)
        queue.requeue(retrying)
        assert retrying.id in queue
        assert queue.get_metrics()['tasks_rejected'] == 1

    def test_drain_and_metrics(self):
        """Тест извлечения всех задач и метрик."""
        clock = FakeClock()
        queue = TaskQueue(clock=clock)
        first = Task(action=lambda: None)
        second = Task(action=lambda: None)
        queue.push(first)
        queue.push(second)

        clock.advance(2.0)
        queue.remove(first.id)

        assert queue.drain() == [second]
        assert len(queue) == 0

        metrics = queue.get_metrics()
        assert metrics['tasks_enqueued'] == 2
        assert metrics['tasks_dequeued'] == 1
        assert metrics['max_wait_time'] == pytest.approx(2.0)
        assert metrics['max_size_reached'] == 2


class TestTaskExecutor:
    """Тесты для исполнителя задач."""

    def run(self, action, config=None):
        executor = TaskExecutor(config)
        task = Task(action=action)
        task.mark_running()
        return executor, executor.execute(task)

    def test_plain_value(self):
        """Тест обычного возвращаемого значения."""
        _, outcome = self.run(lambda: 10)
        assert outcome.success
        assert outcome.value == 10

    def test_success_wrapper(self):
        """Тест явного Success."""
        _, outcome = self.run(lambda: Success("ok"))
        assert outcome.success
        assert outcome.value == "ok"

    def test_failure_wrapper(self):
        """Тест явного Failure."""
        error = ValueError("bad")
        executor, outcome = self.run(lambda: Failure(error, retryable=False))
        assert not outcome.success
        assert outcome.error is error
        assert not outcome.retryable

        metrics = executor.get_metrics()
        assert metrics['returned_failures'] == 1
        assert metrics['terminal_failures'] == 1

    def test_exception_is_failure(self):
        """Тест исключения как неудачного исхода."""
        def failing():
            raise ValueError("boom")

        executor, outcome = self.run(failing)
        assert not outcome.success
        assert isinstance(outcome.error, ValueError)
        assert outcome.retryable

        metrics = executor.get_metrics()
        assert metrics['failed_executions'] == 1
        assert metrics['raised_exceptions'] == 1
        assert metrics['returned_failures'] == 0
        assert metrics['failure_rate'] == 100.0

    def test_non_retryable_exception(self):
        """Тест NonRetryableError."""
        def failing():
            raise NonRetryableError("stop")

        _, outcome = self.run(failing)
        assert not outcome.retryable

    def test_wrap_exceptions(self):
        """Тест оборачивания исключений."""
        def failing():
            raise KeyError("missing")

        _, outcome = self.run(failing, ExecutionConfig(wrap_exceptions=True))
        assert isinstance(outcome.error, TaskExecutionError)
        assert isinstance(outcome.error.__cause__, KeyError)

    def test_reset_metrics(self):
        """Тест сброса метрик."""
        executor, _ = self.run(lambda: 1)
        assert executor.get_metrics()['total_executions'] == 1

        executor.reset_metrics()
        metrics = executor.get_metrics()
        assert metrics['total_executions'] == 0
        assert metrics['success_rate'] == 0.0


class TestGracefulShutdown:
    """Тесты для graceful shutdown."""

    def test_shutdown_phases(self):
        """Тест вызова callback'ов по фазам."""
        shutdown = GracefulShutdown()
        calls = []

        shutdown.initiate_shutdown(drain=True)
        status = shutdown.execute_shutdown(
            stop_new_tasks_callback=lambda: calls.append("stop"),
            wait_for_tasks_callback=lambda timeout: calls.append(("wait", timeout)) or True,
            cancel_pending_callback=lambda: calls.append("cancel") or 0,
            terminate_workers_callback=lambda wait: calls.append(("terminate", wait)),
            timeout=1.5
        )

        assert calls == ["stop", ("wait", 1.5), "cancel", ("terminate", True)]
        assert status.phase == ShutdownPhase.COMPLETED
        assert status.drained
        assert shutdown.is_shutdown_completed()

    def test_no_drain_skips_waiting(self):
        """Тест shutdown без дренажа."""
        shutdown = GracefulShutdown()
        wait_callback = Mock(return_value=True)

        shutdown.initiate_shutdown(drain=False)
        status = shutdown.execute_shutdown(
            wait_for_tasks_callback=wait_callback,
            cancel_pending_callback=lambda: 4
        )

        wait_callback.assert_not_called()
        assert status.tasks_cancelled == 4
        assert not status.drained

    def test_initiate_once(self):
        """Тест повторной инициации."""
        shutdown = GracefulShutdown()
        assert shutdown.initiate_shutdown() is not None
        assert shutdown.initiate_shutdown() is None
        assert shutdown.is_shutdown_initiated()

    def test_execute_without_initiate(self):
        """Тест выполнения без инициации."""
        with pytest.raises(ShutdownError):
            GracefulShutdown().execute_shutdown()

    def test_phase_error(self):
        """Тест ошибки в фазе."""
        shutdown = GracefulShutdown()
        shutdown.initiate_shutdown()

        def broken():
            raise RuntimeError("stuck")

        with pytest.raises(ShutdownError):
            shutdown.execute_shutdown(stop_new_tasks_callback=broken)

        assert shutdown.get_status().error_count == 1
        assert shutdown.wait_for_completion(timeout=0)

    def test_cleanup_callbacks(self):
        """Тест cleanup callback'ов."""
        config_callback = Mock()
        added_callback = Mock()
        failing_callback = Mock(side_effect=RuntimeError("cleanup failed"))

        shutdown = GracefulShutdown(ShutdownConfig(cleanup_callbacks=[config_callback]))
        shutdown.add_cleanup_callback(added_callback)
        shutdown.initiate_shutdown()
        status = shutdown.execute_shutdown(cleanup_callbacks=[failing_callback])

        config_callback.assert_called_once()
        added_callback.assert_called_once()
        assert status.cleanup_callbacks_executed == 2
        assert status.error_count == 1
        assert status.completed

    def test_signal_handlers_restored(self):
        """Тест восстановления прежних обработчиков сигналов."""
        previous = signal.getsignal(signal.SIGTERM)

        shutdown = GracefulShutdown(ShutdownConfig(signal_handling=True))
        assert signal.getsignal(signal.SIGTERM) == shutdown._handle_signal

        shutdown.initiate_shutdown()
        shutdown.execute_shutdown()

        assert signal.getsignal(signal.SIGTERM) == previous


class TestEngineMetrics:
    """Тесты для метрик движка."""

    def test_rates(self):
        """Тест расчета процентов."""
        metrics = EngineMetrics()
        metrics.start_engine()
        metrics.total_tasks_submitted = 4

        metrics.update_task_completion(success=True)
        metrics.update_task_completion(success=True)
        metrics.update_task_completion(success=True)
        metrics.update_task_completion(success=False, cancelled=True)
        metrics.update_task_retry()

        data = metrics.to_dict()
        assert data['success_rate'] == 75.0
        assert data['error_rate'] == 25.0
        assert data['retry_rate'] == 25.0
        assert data['total_tasks_cancelled'] == 1
        assert data['min_execution_time'] == 0

    def test_attempt_times(self):
        """Тест времени попыток."""
        metrics = EngineMetrics()
        metrics.update_attempt(0.2)
        metrics.update_attempt(0.4)

        assert metrics.total_attempts == 2
        assert metrics.average_execution_time == pytest.approx(0.3)
        assert metrics.max_execution_time == 0.4
        assert metrics.min_execution_time == 0.2
