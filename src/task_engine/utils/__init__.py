"""
Утилиты для движка задач.

Конфигурация, мониторинг и декораторы импортируются из своих модулей
(``task_engine.utils.config`` и т.д.): они зависят от core, а core
зависит от логгера.
"""

from .logger import get_logger, setup_logging, get_log_metrics, reset_log_metrics

__all__ = [
    "get_logger",
    "setup_logging",
    "get_log_metrics",
    "reset_log_metrics"
]
