# === FILE: page_scout/cli.py ===
#!/usr/bin/env python3
"""
Точка входа для запуска PageScout через командную строку.

Команды:
  crawl     Обойти приложение и сохранить sitemap.json
  capture   Снять скриншоты страниц из готового sitemap.json
  run       Обход (или загрузка карты) и съёмка
  config    Показать текущую конфигурацию

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml, если есть)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stdout, если не указан)
  --log-format FORMAT Формат логирования
  --verbose           Подробный вывод (DEBUG и отладочный режим браузера)

Дополнительно:
  --version, -v       Показать версию PageScout

Пример:
  page-scout --config configs/app.yaml run --cookie "_session=abc" --max-depth 3
"""
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click

from page_scout import __version__
from page_scout.config import DEFAULT_CONFIG_PATH, ScoutConfig, load_config
from page_scout.engine import Engine
from page_scout.logger import init_logging
from page_scout.sitemap import load_sitemap

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def _build_config(ctx: click.Context, **overrides: Any) -> ScoutConfig:
    """Конфиг из файла (если есть) плюс переопределения из командной строки."""
    path: Optional[Path] = ctx.obj['config_path']
    if ctx.obj['verbose']:
        overrides['verbose'] = True
    try:
        if path is not None or DEFAULT_CONFIG_PATH.exists():
            return load_config(path, overrides)
        return ScoutConfig(**{k: v for k, v in overrides.items() if v is not None})
    except Exception as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')


def _crawl_options(func):
    """Опции, переопределяющие параметры обхода."""
    func = click.option('--output-dir', '-o', 'output_dir', default=None,
                        type=click.Path(file_okay=False, path_type=Path),
                        help='Папка для sitemap.json и скриншотов')(func)
    func = click.option('--max-depth', '-d', 'max_depth', type=int, default=None,
                        help='Максимальная глубина обхода (0 = без ограничения)')(func)
    func = click.option('--cookie', default=None,
                        help='Cookie аутентификации, например "_session=abc"')(func)
    func = click.option('--url', '-u', default=None, help='Стартовый URL')(func)
    return func


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='PageScout, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stdout, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(message)s',
    show_default=True,
    help='Строка формата для логов'
)
@click.option('--verbose', is_flag=True, help='Подробный вывод')
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format, verbose):
    """Группа команд PageScout CLI."""
    init_logging(
        level='DEBUG' if verbose else log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path
    ctx.obj['verbose'] = verbose


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@_crawl_options
@click.pass_context
def crawl(ctx, url, cookie, max_depth, output_dir):
    """Обойти приложение и сохранить sitemap.json."""
    cfg = _build_config(ctx, url=url, cookie=cookie, max_depth=max_depth, output_dir=output_dir)
    engine = Engine(cfg)
    click.echo(f'Starting crawl: {cfg.url}')
    try:
        records = asyncio.run(engine.crawl())
    except Exception as e:
        print_error(f'Ошибка при обходе: {e}')
    click.echo(f'Sitemap ({len(records)} pages): {engine.sitemap_file}')


@cli.command('capture', context_settings=CONTEXT_SETTINGS)
@click.option(
    '--sitemap', '-s', 'sitemap',
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Готовый sitemap.json'
)
@click.option('--output-dir', '-o', 'output_dir', default=None,
              type=click.Path(file_okay=False, path_type=Path),
              help='Папка для скриншотов')
@click.pass_context
def capture(ctx, sitemap, output_dir):
    """Снять скриншоты страниц из sitemap.json."""
    try:
        records = load_sitemap(sitemap)
    except Exception as e:
        print_error(f'Ошибка чтения карты сайта: {e}')
    if not records:
        print_error(f'Карта сайта пуста: {sitemap}')
    overrides: Dict[str, Any] = {'input_sitemap': sitemap, 'output_dir': output_dir}
    if ctx.obj['config_path'] is None and not DEFAULT_CONFIG_PATH.exists():
        overrides['url'] = records[0].url
    cfg = _build_config(ctx, **overrides)
    engine = Engine(cfg)
    try:
        asyncio.run(engine.capture(records))
    except Exception as e:
        print_error(f'Ошибка при съёмке: {e}')
    click.echo(f'Captured {len(records)} pages into {engine.output_dir}')


@cli.command('run', context_settings=CONTEXT_SETTINGS)
@_crawl_options
@click.option(
    '--sitemap', '-s', 'sitemap',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Использовать готовый sitemap.json вместо обхода'
)
@click.option('--skip-capture', is_flag=True, help='Только карта сайта, без скриншотов')
@click.pass_context
def run(ctx, url, cookie, max_depth, output_dir, sitemap, skip_capture):
    """Обход (или загрузка карты) и съёмка скриншотов."""
    cfg = _build_config(
        ctx,
        url=url,
        cookie=cookie,
        max_depth=max_depth,
        output_dir=output_dir,
        input_sitemap=sitemap,
        skip_capture=skip_capture or None,
    )
    engine = Engine(cfg)
    click.echo(f'Starting run: {cfg.url}')
    try:
        records = asyncio.run(engine.run())
    except Exception as e:
        print_error(f'Ошибка выполнения: {e}')
    click.echo(f'Done: {len(records)} pages, sitemap: {engine.sitemap_file}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@_crawl_options
@click.pass_context
def show_config(ctx, url, cookie, max_depth, output_dir):
    """Показать текущую конфигурацию в JSON."""
    cfg = _build_config(ctx, url=url, cookie=cookie, max_depth=max_depth, output_dir=output_dir)
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
