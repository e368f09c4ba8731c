"""
Продвинутый пример: конфигурация, circuit breaker, мониторинг и shutdown.
"""

import time
import threading

from task_engine import TaskEngine
from task_engine.utils.config import Config, load_config, load_config_from_env
from task_engine.utils.decorators import retry, circuit_breaker, measure_time
from task_engine.utils.monitoring import MetricsCollector, HealthChecker, engine_health_check
from task_engine.exceptions import CircuitOpenError


class FlakyService:
    """Имитация внешнего сервиса, который периодически недоступен."""

    def __init__(self):
        self.available = True
        self._lock = threading.Lock()
        self.calls = 0

    def call(self, payload):
        with self._lock:
            self.calls += 1
            if not self.available:
                raise ConnectionError("service unavailable")
        time.sleep(0.05)
        return {"payload": payload, "status": "ok"}


def circuit_breaker_demo(engine: TaskEngine, service: FlakyService):
    """Серия неудач размыкает breaker, новые задачи ждут cool-down."""
    print("\n1. Circuit breaker движка:")
    service.available = False
    for i in range(engine.config.circuit_config.failure_threshold):
        engine.submit(lambda i=i: service.call(i), name=f"outage_{i}")
    engine.wait_for_completion(timeout=10.0)
    print(f"   Состояние после серии ошибок: {engine.get_circuit_state().value}")

    service.available = True
    task_id = engine.submit(lambda: service.call("probe"), name="probe")
    time.sleep(0.1)
    print(f"   Новая задача сразу после размыкания: {engine.status(task_id).status.value}")

    view = engine.wait(task_id, timeout=10.0)
    print(f"   После cool-down: {view.status.value}, breaker {engine.get_circuit_state().value}")


def monitoring_demo(engine: TaskEngine):
    """Сбор метрик движка и системы, проверка здоровья."""
    print("\n2. Мониторинг:")
    collector = MetricsCollector(collection_interval=0.2)
    collector.add_custom_collector("engine", engine.get_metrics)
    collector.start()

    checker = HealthChecker(collector)
    checker.add_health_check(engine_health_check(engine, backlog_threshold=10))

    for i in range(20):
        engine.submit(lambda i=i: time.sleep(0.02) or i, name=f"batch_{i}")

    time.sleep(0.3)
    health = checker.check_health()
    print(f"   Здоров: {health.is_healthy}, проблемы: {health.issues}, предупреждения: {health.warnings}")

    engine.wait_for_completion(timeout=10.0)
    current = collector.get_current_metrics()
    if current:
        system = current['system']
        print(f"   CPU: {system.cpu_percent:.1f}%, память: {system.memory_percent:.1f}%, потоков: {system.thread_count}")
    collector.stop()


def decorators_demo(service: FlakyService):
    """Те же политики вне движка через декораторы."""
    print("\n3. Декораторы:")

    @retry(max_attempts=3, base_delay=0.05)
    @measure_time
    def fetch_with_retry():
        return service.call("decorated")

    print(f"   retry: {fetch_with_retry()['status']}")

    @circuit_breaker(failure_threshold=2, cool_down_period=1.0)
    def fetch_guarded():
        return service.call("guarded")

    service.available = False
    for _ in range(3):
        try:
            fetch_guarded()
        except CircuitOpenError as e:
            print(f"   circuit_breaker: вызов отклонен, повтор через {e.time_until_retry:.1f}s")
        except ConnectionError:
            print("   circuit_breaker: ошибка сервиса")
    service.available = True
    print(f"   Состояние: {fetch_guarded.circuit.get_state().value}")


def shutdown_demo(config: Config):
    """Shutdown без дренажа отменяет ожидающие задачи."""
    print("\n4. Shutdown без дренажа:")
    engine = config.update(concurrency=1).create_engine()
    running_id = engine.submit(lambda: time.sleep(0.2) or "done", name="long")
    pending_ids = [engine.submit(lambda: "never", name=f"queued_{i}") for i in range(3)]
    time.sleep(0.05)

    status = engine.shutdown(drain=False)
    print(f"   Отменено задач: {status.tasks_cancelled}")
    for task_id in pending_ids:
        print(f"   {engine.status(task_id).name}: {engine.status(task_id).error}")
    print(f"   Запущенная задача: {engine.wait(running_id, timeout=5.0).status.value}")


def main(config_path=None):
    """Основная функция с продвинутыми примерами."""
    print("=== Продвинутый пример использования движка задач ===")

    config = load_config(config_path) if config_path else load_config_from_env()
    config = config.update(
        retry={'max_attempts': 1, 'base_delay': 0.05},
        circuit_breaker={'failure_threshold': 3, 'cool_down_period': 0.5}
    )
    config.validate()

    service = FlakyService()
    engine = config.create_engine()
    try:
        circuit_breaker_demo(engine, service)
        monitoring_demo(engine)
    finally:
        status = engine.shutdown(drain=True, timeout=10.0)
        print(f"\nДвижок остановлен, дренаж завершен: {status.drained}")

    decorators_demo(service)
    shutdown_demo(config)

    print(f"Итоговое состояние breaker движка: {engine.get_circuit_state().value}")
    print(f"\nВсего вызовов сервиса: {service.calls}")


if __name__ == "__main__":
    main()
