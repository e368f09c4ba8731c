"""
Базовый пример использования движка задач.
"""

import time
import random
from task_engine import TaskEngine, EngineConfig, RetryConfig, Failure, NonRetryableError


def simple_task(x: int) -> int:
    """Простая задача для демонстрации."""
    print(f"Выполняется задача с аргументом {x}")
    time.sleep(random.uniform(0.1, 0.3))  # Имитация работы
    return x * 2


def flaky_task(x: int):
    """Задача, которая может завершиться с ошибкой."""
    if random.random() < 0.4:  # 40% вероятность ошибки
        raise ValueError(f"Временная ошибка в задаче {x}")
    return x * 3


def validate_input(x: int):
    """Задача с терминальной ошибкой: повторять бессмысленно."""
    if x < 0:
        return Failure(NonRetryableError(f"Отрицательный аргумент {x}"), retryable=False)
    return x


def main(config=None):
    """Основная функция с примерами использования."""
    print("=== Базовый пример использования движка задач ===\n")

    config = config or EngineConfig(
        concurrency=3,
        retry_config=RetryConfig(max_attempts=4, base_delay=0.05)
    )

    with TaskEngine(config) as engine:
        print(f"Движок запущен, конкурентность: {engine.config.concurrency}")

        # Пример 1: Простые задачи
        print("\n1. Отправка простых задач:")
        task_ids = [engine.submit(lambda i=i: simple_task(i), name=f"simple_task_{i}") for i in range(5)]
        for task_id in task_ids:
            view = engine.wait(task_id, timeout=10.0)
            print(f"   {view.name}: {view.status.value}, результат {view.result}")

        # Пример 2: Ретраи
        print("\n2. Задачи с временными ошибками:")
        task_ids = [engine.submit(lambda i=i: flaky_task(i), name=f"flaky_task_{i}") for i in range(5)]
        engine.wait_for_completion(timeout=10.0)
        for task_id in task_ids:
            view = engine.status(task_id)
            print(f"   {view.name}: {view.status.value} после {view.attempts} попыток")

        # Пример 3: Терминальная ошибка
        print("\n3. Терминальная ошибка без ретраев:")
        task_id = engine.submit(lambda: validate_input(-1), name="validate")
        view = engine.wait(task_id, timeout=5.0)
        print(f"   {view.name}: {view.status.value}, попыток {view.attempts}, ошибка: {view.error}")

        # Пример 4: Пауза
        print("\n4. Пауза и возобновление:")
        engine.pause()
        task_id = engine.submit(lambda: simple_task(42), name="paused_task")
        time.sleep(0.2)
        print(f"   На паузе: {engine.status(task_id).status.value}")
        engine.resume()
        print(f"   После resume: {engine.wait(task_id, timeout=5.0).status.value}")

        metrics = engine.get_metrics()
        print("\nМетрики:")
        print(f"   Отправлено: {metrics['total_tasks_submitted']}")
        print(f"   Выполнено: {metrics['total_tasks_completed']}")
        print(f"   Неудачно: {metrics['total_tasks_failed']}")
        print(f"   Ретраев: {metrics['total_retries']}")
        print(f"   Circuit breaker: {metrics['circuit_breaker']['state']}")

    print("\nДвижок остановлен")


if __name__ == "__main__":
    main()
