"""
issuetree Command Line Interface.

This module provides the CLI entry point for inspecting and editing a
repository's work-item tree.
"""

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import Any

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from issuetree.config import ConfigurationError, IssueTreeConfig, LoggingConfig, load_config
from issuetree.errors import IssueTreeError
from issuetree.github import GitHubClient
from issuetree.models import (
    Notification,
    NotificationLevel,
    SagaResult,
    WorkItem,
    WorkItemState,
)
from issuetree.sync import SagaOrchestrator
from issuetree.version import __version__

console = Console()

STATE_CHOICES = {
    "todo": WorkItemState.TODO,
    "in-progress": WorkItemState.IN_PROGRESS,
    "done": WorkItemState.DONE,
}

_STATE_STYLES = {
    WorkItemState.TODO: "white",
    WorkItemState.IN_PROGRESS: "yellow",
    WorkItemState.DONE: "green",
}

_LEVEL_STYLES = {
    NotificationLevel.SUCCESS: "green",
    NotificationLevel.INFO: "cyan",
    NotificationLevel.WARNING: "yellow",
    NotificationLevel.ERROR: "red",
}


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.run(coro)


def create_client(cfg: IssueTreeConfig) -> GitHubClient:
    """Build the tracker client used by every command."""
    return GitHubClient(config=cfg.github, labels=cfg.labels)


def configure_logging(cfg: LoggingConfig, verbose: bool = False) -> None:
    """Configure stdlib logging from configuration and the verbosity flag."""
    level = logging.DEBUG if verbose else getattr(logging, cfg.level.value)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if cfg.file:
        handlers.append(logging.FileHandler(cfg.file))
    logging.basicConfig(level=level, format=cfg.format, handlers=handlers)
    logging.getLogger("issuetree").setLevel(level)


@click.group()
@click.version_option(version=__version__, prog_name="issuetree")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    help="Path to configuration file",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """issuetree: work-item trees mirrored onto GitHub issues and branches."""
    ctx.ensure_object(dict)
    try:
        cfg = load_config(config)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)

    configure_logging(cfg.logging, verbose or cfg.debug)
    ctx.obj["config"] = cfg
    ctx.obj["verbose"] = verbose


@main.command()
@click.argument("repository")
@click.pass_context
def show(ctx: click.Context, repository: str) -> None:
    """Show the work-item tree of REPOSITORY (owner/name)."""

    async def action(saga: SagaOrchestrator) -> bool:
        _print_tree(saga.snapshot.repository, saga.snapshot.items)
        return True

    _run(ctx, repository, action)


@main.command("set-state")
@click.argument("repository")
@click.argument("item_id")
@click.argument("state", type=click.Choice(list(STATE_CHOICES)))
@click.pass_context
def set_state(ctx: click.Context, repository: str, item_id: str, state: str) -> None:
    """Move leaf ITEM_ID of REPOSITORY to STATE."""

    async def action(saga: SagaOrchestrator) -> bool:
        item = saga.snapshot.find(item_id)
        if item is None:
            console.print(f"[red]Error:[/red] Work item not found: {item_id}")
            return False
        result = await saga.submit_update(item, STATE_CHOICES[state])
        _print_result(result)
        return result.succeeded

    _run(ctx, repository, action)


@main.command()
@click.argument("repository")
@click.argument("title")
@click.option("--description", "-d", default="", help="Issue body")
@click.option("--category", "-t", default=None, help="Category label (Feature, Bug, Task, ...)")
@click.option("--parent", "-p", "parent_id", default=None, help="Create as sub-issue of this item")
@click.pass_context
def create(
    ctx: click.Context,
    repository: str,
    title: str,
    description: str,
    category: str | None,
    parent_id: str | None,
) -> None:
    """Create an issue titled TITLE in REPOSITORY."""

    async def action(saga: SagaOrchestrator) -> bool:
        result = await saga.submit_create(
            title,
            description,
            category=category,
            repository=repository,
            parent_id=parent_id,
        )
        _print_result(result)
        return result.succeeded

    _run(ctx, repository, action)


@main.command()
@click.argument("repository")
@click.argument("item_id")
@click.pass_context
def delete(ctx: click.Context, repository: str, item_id: str) -> None:
    """Delete ITEM_ID of REPOSITORY together with all its sub-issues."""

    async def action(saga: SagaOrchestrator) -> bool:
        item = saga.snapshot.find(item_id)
        if item is None:
            console.print(f"[red]Error:[/red] Work item not found: {item_id}")
            return False
        result = await saga.submit_delete(item)
        _print_result(result)
        if result.succeeded:
            console.print("[dim]Deleting issues on GitHub...[/dim]")
            await saga.wait_for_background()
        return result.succeeded

    _run(ctx, repository, action)


@main.command()
@click.argument("repository")
@click.pass_context
def reconcile(ctx: click.Context, repository: str) -> None:
    """Compare locally known deletions of REPOSITORY with GitHub labels."""

    async def action(saga: SagaOrchestrator) -> bool:
        report = await saga.reconcile()
        if report.consistent:
            console.print("[green]Tombstones are consistent.[/green]")
            return True

        table = Table(title=f"Tombstone drift in {repository}")
        table.add_column("Issue", style="cyan")
        table.add_column("Cached", style="magenta")
        table.add_column("Labelled", style="magenta")
        for inconsistency in report.inconsistencies:
            table.add_row(
                f"#{inconsistency.issue_id}",
                str(inconsistency.in_cache),
                str(inconsistency.has_label),
            )
        console.print(table)
        console.print(f"Added {len(report.added)}, removed {len(report.removed)} tombstone(s).")
        return True

    _run(ctx, repository, action, refresh=False)


def _run(
    ctx: click.Context,
    repository: str,
    action: Callable[[SagaOrchestrator], Awaitable[bool]],
    refresh: bool = True,
) -> None:
    """Open a client, run ``action`` against a fresh orchestrator, exit on failure."""
    cfg: IssueTreeConfig = ctx.obj["config"]

    async def runner() -> bool:
        async with create_client(cfg) as client:
            saga = SagaOrchestrator(client, client, repository, config=cfg)
            if refresh:
                await saga.refresh()
            try:
                return await action(saga)
            finally:
                await saga.wait_for_background()

    try:
        ok = run_async(runner())
    except IssueTreeError as e:
        console.print(f"[red]Error:[/red] {e}")
        if ctx.obj.get("verbose"):
            console.print_exception()
        sys.exit(1)

    if not ok:
        sys.exit(1)


def _print_tree(repository: str, items: tuple[WorkItem, ...]) -> None:
    if not items:
        console.print(f"[dim]No issues in {repository}.[/dim]")
        return

    tree = Tree(f"[bold blue]{repository}[/bold blue]")

    def add(node: Any, item: WorkItem) -> None:
        style = _STATE_STYLES[item.state]
        branch = node.add(
            f"[cyan]#{item.id}[/cyan] {escape(item.title)} "
            f"[{style}]({item.state.value})[/{style}] [dim]{item.category}[/dim]"
        )
        for child in item.children:
            add(branch, child)

    for item in items:
        add(tree, item)
    console.print(tree)


def _print_result(result: SagaResult) -> None:
    for notification in result.notifications:
        _print_notification(notification)


def _print_notification(notification: Notification) -> None:
    style = _LEVEL_STYLES[notification.level]
    console.print(f"[{style}]{notification.level.value}:[/{style}] {escape(notification.message)}")


if __name__ == "__main__":
    main()
