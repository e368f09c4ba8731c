"""
Мониторинг движка задач и системы.
"""

import threading
import psutil
from typing import Dict, Any, List, Optional, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from collections import deque

from ..utils.logger import get_logger


logger = get_logger(__name__)


@dataclass
class SystemMetrics:
    """Метрики системы."""
    cpu_percent: float = 0.0
    memory_percent: float = 0.0
    memory_used_mb: float = 0.0
    memory_available_mb: float = 0.0
    disk_usage_percent: float = 0.0
    thread_count: int = 0
    load_average: tuple = (0.0, 0.0, 0.0)
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class HealthStatus:
    """Статус здоровья."""
    is_healthy: bool = True
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)


def collect_system_metrics() -> SystemMetrics:
    """Снимок системных метрик через psutil."""
    try:
        memory = psutil.virtual_memory()
        disk = psutil.disk_usage('/')

        try:
            load_average = psutil.getloadavg()
        except (AttributeError, OSError):
            load_average = (0.0, 0.0, 0.0)

        return SystemMetrics(
            cpu_percent=psutil.cpu_percent(interval=None),
            memory_percent=memory.percent,
            memory_used_mb=memory.used / (1024 * 1024),
            memory_available_mb=memory.available / (1024 * 1024),
            disk_usage_percent=disk.percent,
            thread_count=psutil.Process().num_threads(),
            load_average=load_average
        )

    except (psutil.Error, OSError) as e:
        logger.error(f"Error collecting system metrics: {e}")
        return SystemMetrics()


class MetricsCollector:
    """
    Периодический сборщик метрик.

    Каждый снимок - словарь с ключами ``timestamp``, ``system``
    (SystemMetrics) и ``custom`` (результаты пользовательских сборщиков).
    Хранятся последние ``history_size`` снимков.
    """

    def __init__(self, collection_interval: float = 5.0, history_size: int = 100):
        self.collection_interval = collection_interval
        self._history: deque = deque(maxlen=history_size)
        self._history_lock = threading.Lock()
        self._collectors: Dict[str, Callable[[], Dict[str, Any]]] = {}
        self._worker: Optional[threading.Thread] = None
        self._stopping = threading.Event()

    def add_custom_collector(self, name: str, collector: Callable[[], Dict[str, Any]]):
        """
        Добавление пользовательского сборщика, например ``engine.get_metrics``.

        Args:
            name: Ключ, под которым метрики попадут в снимок
            collector: Функция без аргументов, возвращающая словарь
        """
        self._collectors[name] = collector

    def collect_once(self) -> Dict[str, Any]:
        """Один сбор метрик с сохранением в историю."""
        custom = {}
        for name, collector in self._collectors.items():
            try:
                custom[name] = collector()
            except Exception as e:
                logger.error(f"Collector '{name}' raised: {e}")

        snapshot = {'timestamp': datetime.now(), 'system': collect_system_metrics(), 'custom': custom}
        with self._history_lock:
            self._history.append(snapshot)
        return snapshot

    def is_running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def start(self):
        """Запуск фонового сбора в daemon-потоке."""
        if self.is_running():
            logger.warning("MetricsCollector is already running")
            return

        self._stopping.clear()
        self._worker = threading.Thread(target=self._run, name="task-engine-metrics", daemon=True)
        self._worker.start()
        logger.info(f"MetricsCollector started (interval={self.collection_interval}s)")

    def stop(self, timeout: float = 5.0):
        if not self.is_running():
            return
        self._stopping.set()
        self._worker.join(timeout=timeout)
        logger.info("MetricsCollector stopped")

    def _run(self):
        while not self._stopping.is_set():
            self.collect_once()
            self._stopping.wait(self.collection_interval)

    def get_current_metrics(self) -> Optional[Dict[str, Any]]:
        """Последний снимок или None, если сборов еще не было."""
        with self._history_lock:
            return self._history[-1] if self._history else None

    def get_metrics_history(self, window: Optional[float] = None) -> List[Dict[str, Any]]:
        """
        История снимков.

        Args:
            window: Вернуть только снимки за последние ``window`` секунд
        """
        with self._history_lock:
            history = list(self._history)

        if window is not None:
            since = datetime.now() - timedelta(seconds=window)
            history = [snapshot for snapshot in history if snapshot['timestamp'] >= since]
        return history


class HealthChecker:
    """
    Проверка здоровья.

    Системные пороги применяются к последнему снимку MetricsCollector,
    если он передан. Значение выше порога - проблема, выше 80% порога -
    предупреждение.
    """

    WARNING_RATIO = 0.8

    def __init__(
        self,
        metrics_collector: Optional[MetricsCollector] = None,
        cpu_threshold: float = 90.0,
        memory_threshold: float = 90.0,
        disk_threshold: float = 95.0
    ):
        self.metrics_collector = metrics_collector
        self.thresholds = {
            'CPU': ('cpu_percent', cpu_threshold),
            'memory': ('memory_percent', memory_threshold),
            'disk': ('disk_usage_percent', disk_threshold),
        }
        self._checks: List[Callable[[], HealthStatus]] = []

    def add_health_check(self, check_func: Callable[[], HealthStatus]):
        self._checks.append(check_func)

    def _system_status(self) -> HealthStatus:
        status = HealthStatus()
        snapshot = self.metrics_collector.get_current_metrics() if self.metrics_collector else None
        system = snapshot.get('system') if snapshot else None
        if system is None:
            return status

        for label, (attribute, threshold) in self.thresholds.items():
            value = getattr(system, attribute)
            if value > threshold:
                status.issues.append(f"High {label} usage: {value:.1f}%")
            elif value > threshold * self.WARNING_RATIO:
                status.warnings.append(f"Elevated {label} usage: {value:.1f}%")
        return status

    def check_health(self) -> HealthStatus:
        """Объединение системной проверки и пользовательских проверок."""
        result = self._system_status()

        for check_func in self._checks:
            try:
                partial = check_func()
            except Exception as e:
                logger.error(f"Health check {check_func!r} raised: {e}")
                result.issues.append(f"Health check error: {e}")
                continue
            result.issues.extend(partial.issues)
            result.warnings.extend(partial.warnings)

        result.is_healthy = not result.issues
        return result

    def is_healthy(self) -> bool:
        return self.check_health().is_healthy


def engine_health_check(engine, backlog_threshold: int = 100, error_rate_threshold: float = 50.0) -> Callable[[], HealthStatus]:
    """
    Проверка здоровья движка для HealthChecker.

    Открытый breaker и авария движка считаются проблемами, большая очередь
    и высокий процент ошибок - предупреждениями.

    Args:
        engine: Экземпляр TaskEngine
        backlog_threshold: Порог числа ожидающих задач
        error_rate_threshold: Порог процента неудачных задач
    """
    def check() -> HealthStatus:
        metrics = engine.get_metrics()
        issues = []
        warnings = []

        if metrics['status'] == 'error':
            issues.append("Engine aborted after an internal error")

        breaker_state = metrics['circuit_breaker']['state']
        if breaker_state == 'open':
            issues.append("Circuit breaker is open")
        elif breaker_state == 'half_open':
            warnings.append("Circuit breaker is half-open")

        pending = metrics['counts']['pending']
        if pending > backlog_threshold:
            warnings.append(f"High pending backlog: {pending}")

        if metrics['error_rate'] > error_rate_threshold:
            warnings.append(f"High error rate: {metrics['error_rate']:.1f}%")

        return HealthStatus(is_healthy=not issues, issues=issues, warnings=warnings)

    return check
