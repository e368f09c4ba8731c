"""
Система конфигурации для движка задач.
"""

import json
import importlib
import os
import yaml
from typing import Any, Dict, List, Optional, Union
from dataclasses import dataclass, asdict, fields
from pathlib import Path

from ..core.scheduler import EngineConfig, TaskEngine
from ..core.retry_policy import RetryConfig, BackoffStrategy
from ..core.circuit_breaker import CircuitBreakerConfig
from ..core.graceful_shutdown import ShutdownConfig
from ..core.task_executor import ExecutionConfig
from ..exceptions import ConfigurationError
from .logger import setup_logging


@dataclass
class Config:
    """Основная конфигурация движка задач."""

    # Основные параметры движка
    concurrency: int = 4
    max_pending: Optional[int] = None
    retention_limit: Optional[int] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Конфигурации компонентов
    retry: RetryConfig = None
    circuit_breaker: CircuitBreakerConfig = None
    shutdown: ShutdownConfig = None
    execution: ExecutionConfig = None

    def __post_init__(self):
        """Инициализация конфигураций по умолчанию."""
        if self.retry is None:
            self.retry = RetryConfig()
        if self.circuit_breaker is None:
            self.circuit_breaker = CircuitBreakerConfig()
        if self.shutdown is None:
            self.shutdown = ShutdownConfig()
        if self.execution is None:
            self.execution = ExecutionConfig()

    def to_dict(self) -> Dict[str, Any]:
        """Преобразование в словарь, пригодный для YAML/JSON."""
        config_dict = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in ('retry', 'circuit_breaker', 'shutdown', 'execution')
        }

        retry = asdict(self.retry)
        retry['strategy'] = self.retry.strategy.value
        retry['retry_on_exceptions'] = _types_to_names(self.retry.retry_on_exceptions)
        retry['stop_on_exceptions'] = _types_to_names(self.retry.stop_on_exceptions)

        # cleanup_callbacks не сериализуются
        shutdown = {
            'timeout': self.shutdown.timeout,
            'signal_handling': self.shutdown.signal_handling
        }

        config_dict.update({
            'retry': retry,
            'circuit_breaker': asdict(self.circuit_breaker),
            'shutdown': shutdown,
            'execution': asdict(self.execution)
        })
        return config_dict

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Создание из словаря."""
        data = dict(data or {})

        retry_data = dict(data.pop('retry', None) or {})
        circuit_data = data.pop('circuit_breaker', None) or {}
        shutdown_data = data.pop('shutdown', None) or {}
        execution_data = data.pop('execution', None) or {}

        unknown = set(data) - {f.name for f in fields(cls)}
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")

        config = cls(**data)

        if retry_data:
            for key in ('retry_on_exceptions', 'stop_on_exceptions'):
                if retry_data.get(key):
                    retry_data[key] = _names_to_types(retry_data[key])
            config.retry = RetryConfig(**retry_data)
        if circuit_data:
            config.circuit_breaker = CircuitBreakerConfig(**circuit_data)
        if shutdown_data:
            config.shutdown = ShutdownConfig(**shutdown_data)
        if execution_data:
            config.execution = ExecutionConfig(**execution_data)

        return config

    def validate(self) -> bool:
        """Валидация конфигурации."""
        errors = []

        if self.concurrency < 1:
            errors.append("concurrency must be >= 1")

        if self.max_pending is not None and self.max_pending < 1:
            errors.append("max_pending must be >= 1")

        if self.retention_limit is not None and self.retention_limit < 0:
            errors.append("retention_limit must be >= 0")

        if self.retry.max_attempts < 1:
            errors.append("retry.max_attempts must be >= 1")

        if self.retry.base_delay < 0:
            errors.append("retry.base_delay must be >= 0")

        if self.retry.max_delay < self.retry.base_delay:
            errors.append("retry.max_delay must be >= retry.base_delay")

        if self.circuit_breaker.failure_threshold < 1:
            errors.append("circuit_breaker.failure_threshold must be >= 1")

        if self.circuit_breaker.cool_down_period < 0:
            errors.append("circuit_breaker.cool_down_period must be >= 0")

        if self.shutdown.timeout is not None and self.shutdown.timeout < 0:
            errors.append("shutdown.timeout must be >= 0")

        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

        return True

    def update(self, **kwargs) -> 'Config':
        """Новая конфигурация с обновленными значениями."""
        new_config = self.to_dict()
        new_config.update(kwargs)
        return Config.from_dict(new_config)

    def to_engine_config(self) -> EngineConfig:
        """Конфигурация для конструктора TaskEngine."""
        return EngineConfig(
            concurrency=self.concurrency,
            max_pending=self.max_pending,
            retention_limit=self.retention_limit,
            retry_config=self.retry,
            circuit_config=self.circuit_breaker,
            shutdown_config=self.shutdown,
            execution_config=self.execution
        )

    def apply_logging(self):
        """Настройка логирования по этой конфигурации."""
        setup_logging(level=self.log_level, log_file=self.log_file)

    def create_engine(self) -> TaskEngine:
        """Проверка конфигурации и создание движка."""
        self.validate()
        return TaskEngine(self.to_engine_config())


def _types_to_names(types: Optional[List[type]]) -> Optional[List[str]]:
    if not types:
        return None
    return [
        t.__name__ if t.__module__ == 'builtins' else f"{t.__module__}.{t.__qualname__}"
        for t in types
    ]


def _names_to_types(names: List[Union[str, type]]) -> List[type]:
    """Разрешение имен исключений вида 'ValueError' или 'package.module.Error'."""
    resolved = []
    for name in names:
        if isinstance(name, type):
            resolved.append(name)
            continue

        module_name, _, attr = name.rpartition('.')
        try:
            module = importlib.import_module(module_name or 'builtins')
            exc_type = getattr(module, attr)
        except (ImportError, AttributeError) as e:
            raise ConfigurationError(f"Cannot resolve exception type '{name}'") from e

        if not (isinstance(exc_type, type) and issubclass(exc_type, BaseException)):
            raise ConfigurationError(f"'{name}' is not an exception type")
        resolved.append(exc_type)

    return resolved


def load_config(file_path: Union[str, Path]) -> Config:
    """
    Загрузка конфигурации из файла.

    Args:
        file_path: Путь к файлу конфигурации (.yaml, .yml или .json)

    Returns:
        Проверенный объект конфигурации
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    with open(file_path, 'r', encoding='utf-8') as f:
        if file_path.suffix.lower() in ['.yaml', '.yml']:
            data = yaml.safe_load(f)
        elif file_path.suffix.lower() == '.json':
            data = json.load(f)
        else:
            raise ConfigurationError(f"Unsupported configuration file format: {file_path.suffix}")

    config = Config.from_dict(data or {})
    config.validate()

    return config


def save_config(config: Config, file_path: Union[str, Path], format: str = 'yaml'):
    """
    Сохранение конфигурации в файл.

    Args:
        config: Объект конфигурации
        file_path: Путь к файлу
        format: Формат файла ('yaml' или 'json')
    """
    file_path = Path(file_path)
    data = config.to_dict()

    if format.lower() not in ('yaml', 'json'):
        raise ConfigurationError(f"Unsupported format: {format}")

    file_path.parent.mkdir(parents=True, exist_ok=True)

    with open(file_path, 'w', encoding='utf-8') as f:
        if format.lower() == 'yaml':
            yaml.safe_dump(data, f, default_flow_style=False, indent=2, sort_keys=False)
        else:
            json.dump(data, f, indent=2, ensure_ascii=False)


def _env(name: str, cast):
    value = os.getenv(name)
    if value is None or value == '':
        return None
    try:
        return cast(value)
    except ValueError as e:
        raise ConfigurationError(f"Invalid value for {name}: {value!r}") from e


def load_config_from_env() -> Config:
    """
    Загрузка конфигурации из переменных окружения.

    Returns:
        Объект конфигурации
    """
    config_data: Dict[str, Any] = {}

    for key, env_name, cast in (
        ('concurrency', 'TASK_ENGINE_CONCURRENCY', int),
        ('max_pending', 'TASK_ENGINE_MAX_PENDING', int),
        ('retention_limit', 'TASK_ENGINE_RETENTION_LIMIT', int),
        ('log_level', 'TASK_ENGINE_LOG_LEVEL', str),
    ):
        value = _env(env_name, cast)
        if value is not None:
            config_data[key] = value

    retry_data = {}
    for key, env_name, cast in (
        ('max_attempts', 'RETRY_MAX_ATTEMPTS', int),
        ('base_delay', 'RETRY_BASE_DELAY', float),
        ('max_delay', 'RETRY_MAX_DELAY', float),
        ('strategy', 'RETRY_STRATEGY', BackoffStrategy),
    ):
        value = _env(env_name, cast)
        if value is not None:
            retry_data[key] = value
    if retry_data:
        config_data['retry'] = retry_data

    circuit_data = {}
    for key, env_name, cast in (
        ('failure_threshold', 'CIRCUIT_FAILURE_THRESHOLD', int),
        ('cool_down_period', 'CIRCUIT_COOL_DOWN_PERIOD', float),
    ):
        value = _env(env_name, cast)
        if value is not None:
            circuit_data[key] = value
    if circuit_data:
        config_data['circuit_breaker'] = circuit_data

    shutdown_timeout = _env('SHUTDOWN_TIMEOUT', float)
    if shutdown_timeout is not None:
        config_data['shutdown'] = {'timeout': shutdown_timeout}

    return Config.from_dict(config_data)


def merge_configs(base_config: Config, override_config: Config) -> Config:
    """
    Объединение двух конфигураций.

    Args:
        base_config: Базовая конфигурация
        override_config: Конфигурация для переопределения

    Returns:
        Объединенная конфигурация
    """
    def merge_dicts(base: dict, override: dict) -> dict:
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = merge_dicts(result[key], value)
            else:
                result[key] = value
        return result

    merged_dict = merge_dicts(base_config.to_dict(), override_config.to_dict())
    return Config.from_dict(merged_dict)
