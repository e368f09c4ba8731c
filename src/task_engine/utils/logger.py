"""
Система логирования для движка задач.
"""

import logging
import sys
import threading
from typing import Optional, Dict
from pathlib import Path


_LEVEL_KEYS = (
    (logging.CRITICAL, 'critical_count'),
    (logging.ERROR, 'error_count'),
    (logging.WARNING, 'warning_count'),
    (logging.INFO, 'info_count'),
    (logging.DEBUG, 'debug_count'),
)


class TaskEngineFormatter(logging.Formatter):
    """Форматтер логов движка: время, уровень, модуль, поток, сообщение."""

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s | %(levelname)-8s | %(name)-28s | %(threadName)-22s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )


class MetricsHandler(logging.Handler):
    """Обработчик логов, считающий записи по уровням."""

    def __init__(self):
        super().__init__()
        self._lock_metrics = threading.Lock()
        self._metrics = self._empty()

    @staticmethod
    def _empty() -> Dict[str, int]:
        metrics = {'total_logs': 0}
        for _, key in _LEVEL_KEYS:
            metrics[key] = 0
        return metrics

    def emit(self, record):
        with self._lock_metrics:
            self._metrics['total_logs'] += 1
            for levelno, key in _LEVEL_KEYS:
                if record.levelno >= levelno:
                    self._metrics[key] += 1
                    break

    def get_metrics(self) -> Dict[str, int]:
        """Получение метрик логов."""
        with self._lock_metrics:
            return self._metrics.copy()

    def reset_metrics(self):
        """Сброс метрик."""
        with self._lock_metrics:
            self._metrics = self._empty()


_metrics_handler = MetricsHandler()

LOGGER_NAME = "task_engine"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    enable_console: bool = True,
    enable_metrics: bool = True,
    log_format: Optional[str] = None
):
    """
    Настройка логирования пакета.

    Обработчики вешаются на логгер ``task_engine``, корневой логгер
    приложения не трогается.

    Args:
        level: Уровень логирования
        log_file: Путь к файлу логов
        enable_console: Включить вывод в консоль
        enable_metrics: Включить подсчет записей по уровням
        log_format: Кастомный формат логов
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.setLevel(numeric_level)
    package_logger.handlers.clear()

    if log_format:
        formatter = logging.Formatter(log_format)
    else:
        formatter = TaskEngineFormatter()

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        package_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    if enable_metrics:
        _metrics_handler.setLevel(logging.DEBUG)
        package_logger.addHandler(_metrics_handler)


def get_logger(name: str) -> logging.Logger:
    """
    Получение логгера для модуля.

    Args:
        name: Имя модуля

    Returns:
        Объект логгера
    """
    return logging.getLogger(name)


def get_log_metrics() -> Dict[str, int]:
    """Получение метрик логов."""
    return _metrics_handler.get_metrics()


def reset_log_metrics():
    """Сброс метрик логов."""
    _metrics_handler.reset_metrics()
