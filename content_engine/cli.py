# -*- coding: utf-8 -*-
"""
CLI движка генерации контента.

Использование:
    content-engine generate "Как выбрать CRM" --keyword "crm" --secondary "crm для малого бизнеса"
    content-engine approve 12
    content-engine jobs --limit 20
    content-engine provider-debug
"""

import json
import logging
import sys

import click
from rich.console import Console
from rich.table import Table

from content_engine.application.commands.generate_content_command import GenerationRequest
from content_engine.application.pipeline.results import PipelineResult
from content_engine.dependencies import (
    build_pipeline,
    get_chat_provider,
    get_job_repository,
)
from content_engine.infrastructure.ai.model_discovery import ModelDiscovery
from content_engine.infrastructure.config.settings import get_settings

console = Console()


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def _print_result(result: PipelineResult) -> None:
    if result.ok:
        console.print(f"\n✅ [bold green]Готово[/bold green] (HTTP {result.status_code})")
    else:
        console.print(f"\n❌ [bold red]{result.error}[/bold red] (HTTP {result.status_code})")
    console.print_json(json.dumps(result.to_dict(), ensure_ascii=False, default=str))


@click.group()
@click.option('--log-level', default=None, help='Уровень логирования (по умолчанию из настроек)')
def cli(log_level):
    """Content Engine CLI."""
    _setup_logging(log_level or get_settings().log_level)


@cli.command()
@click.argument('subject')
@click.option('--keyword', default=None, help='Основное ключевое слово')
@click.option('--secondary', multiple=True, help='Дополнительное ключевое слово (можно повторять)')
@click.option('--audience', default='', help='Целевая аудитория')
@click.option('--intent', default='', help='Намерение читателя')
@click.option('--publish', is_flag=True, help='Опубликовать, если guardrails пройдены')
def generate(subject, keyword, secondary, audience, intent, publish):
    """
    Сгенерировать статью.

    Примеры:
        content-engine generate "Как выбрать CRM" --keyword crm --publish
    """
    console.print(f"\n🚀 [bold green]Генерация:[/bold green] {subject}")
    request = GenerationRequest(
        subject=subject,
        primary_keyword=keyword,
        secondary_keywords=list(secondary) or None,
        audience=audience,
        intent=intent,
    )
    result = build_pipeline().generate_once(request, publish_requested=publish)
    _print_result(result)
    if not result.ok:
        sys.exit(1)


@cli.command('run-job')
@click.argument('job_id', type=int)
def run_job(job_id):
    """Перезапустить задачу."""
    result = build_pipeline().run_job(job_id)
    _print_result(result)
    if not result.ok:
        sys.exit(1)


@cli.command()
@click.argument('job_id', type=int)
def approve(job_id):
    """Опубликовать сгенерированный пост задачи."""
    result = build_pipeline().approve_job(job_id)
    _print_result(result)
    if not result.ok:
        sys.exit(1)


@cli.command()
@click.option('--limit', default=50, help='Количество задач')
def jobs(limit):
    """Последние задачи."""
    table = Table(title="Задачи")
    table.add_column("ID", justify="right")
    table.add_column("Тема")
    table.add_column("Статус")
    table.add_column("Пост", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Запланирована")

    for job in get_job_repository().list_recent(limit):
        table.add_row(
            str(job.id),
            job.subject[:60],
            job.status.value,
            str(job.post_id or "-"),
            str(job.score.total) if job.score else "-",
            job.scheduled_at.strftime('%Y-%m-%d %H:%M') if job.scheduled_at else "-",
        )
    console.print(table)


@cli.command('provider-debug')
def provider_debug():
    """Конфигурация провайдера и последняя ошибка (без секретов)."""
    report = get_chat_provider().debug_report()
    console.print_json(json.dumps(report, ensure_ascii=False, default=str))


@cli.command()
@click.option('--refresh', is_flag=True, help='Игнорировать кэш')
def models(refresh):
    """Доступные модели провайдера."""
    discovery = ModelDiscovery(get_settings())
    for model_id in (discovery.refresh() if refresh else discovery.get_models()):
        console.print(f"  • {model_id}")


@cli.command('run-scheduled')
def run_scheduled():
    """Плановая генерация по теме из настроек."""
    result = build_pipeline().run_scheduled_campaigns()
    if result is None:
        console.print("[yellow]⚠️  Тема по умолчанию не задана[/yellow]")
        return
    _print_result(result)


@cli.command('retry-failed')
@click.option('--limit', default=50, help='Сколько последних задач просматривать')
def retry_failed(limit):
    """Повторить задачи в статусе error."""
    results = build_pipeline().run_retry_queue(limit)
    if not results:
        console.print("Нет задач с ошибкой")
        return
    ok = sum(1 for r in results if r.ok)
    console.print(f"Повторено: {len(results)}, успешно: {ok}, ошибок: {len(results) - ok}")


@cli.command()
@click.option('--yes', is_flag=True, help='Подтвердить удаление')
def cleanup(yes):
    """Удалить все задачи."""
    if not yes:
        console.print("[yellow]Добавьте --yes для подтверждения[/yellow]")
        return
    deleted = get_job_repository().delete_all()
    console.print(f"Удалено задач: {deleted}")


def main():
    cli()


if __name__ == '__main__':
    main()
