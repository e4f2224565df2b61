# cli.py

"""
Точка входа для запуска PageScout без установки пакета.

Пример запуска:
    python cli.py --config configs/example.yaml run --max-depth 3
"""
from page_scout.cli import cli

if __name__ == "__main__":
    cli()
