#!/usr/bin/env python3
"""
Скрипт для запуска примеров использования движка задач.
"""

import sys
import argparse
import importlib
from pathlib import Path


def run_basic(config_path):
    from task_engine.utils.config import load_config

    module = importlib.import_module("examples.basic_usage")
    module.main(load_config(config_path).to_engine_config() if config_path else None)


def run_advanced(config_path):
    module = importlib.import_module("examples.advanced_usage")
    module.main(config_path)


EXAMPLES = {
    "basic": ("базовый пример", run_basic),
    "advanced": ("продвинутый пример", run_advanced),
}


def main():
    parser = argparse.ArgumentParser(description="Запуск примеров движка задач")
    parser.add_argument("example", choices=sorted(EXAMPLES), help="Какой пример запустить")
    parser.add_argument("--config", type=str, help="Файл конфигурации (YAML или JSON)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Уровень логирования пакета"
    )
    args = parser.parse_args()

    # Пакет examples лежит в корне проекта
    sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

    from task_engine.utils.logger import setup_logging
    setup_logging(level=args.log_level)

    title, runner = EXAMPLES[args.example]
    print(f"Запуск: {title}")
    try:
        runner(args.config)
    except KeyboardInterrupt:
        print("\nПрервано пользователем")
        return 1
    except Exception as e:
        print(f"Пример завершился с ошибкой: {e}")
        return 1

    print("Пример завершен")
    return 0


if __name__ == "__main__":
    sys.exit(main())
