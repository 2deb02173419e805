"""CLI entry point for cursor-history.

Allows running the tool as a module:
    python -m cursor_history
"""

import asyncio
import json
import sys
from pathlib import Path

import click

from cursor_history.config import Config, StoragePaths, load_config
from cursor_history.errors import CursorHistoryError
from cursor_history.export.archive import export_workspaces
from cursor_history.export.markdown import conversation_to_markdown, format_display_time
from cursor_history.logging import setup_logging
from cursor_history.models import Conversation
from cursor_history.reconciler.fetch import fetch_workspace_conversations
from cursor_history.workspaces import list_workspaces


def print_conversation(conversation: Conversation) -> None:
    """Print a one-conversation summary."""
    click.echo(
        f"\033[36m[{format_display_time(conversation.last_updated_at)}]\033[0m "
        f"\033[1m{conversation.title}\033[0m"
    )
    click.echo(f"ID: {conversation.id} | Messages: {len(conversation.messages)}")
    if conversation.summary:
        click.echo(f"Summary: {conversation.summary}")
    click.echo("-" * 40)


def resolve_paths(config: Config) -> StoragePaths:
    try:
        return StoragePaths.from_config(config.storage)
    except CursorHistoryError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Path to config.yaml",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """Export Cursor chat history."""
    try:
        config = load_config(config_path)
    except CursorHistoryError as e:
        raise click.ClickException(str(e)) from e
    setup_logging("cli", log_dir=config.logging.log_dir, level=config.logging.level)
    ctx.obj = config


@cli.command()
@click.option("--counts", is_flag=True, help="Reconcile each workspace to count its conversations")
@click.pass_obj
def workspaces(config: Config, counts: bool) -> None:
    """List discovered workspaces, newest first."""
    paths = resolve_paths(config)
    found = list_workspaces(paths.workspace_root)
    click.echo(f"Found {len(found)} workspaces in {paths.workspace_root}:\n")

    for ws in found:
        line = f"{ws.id}  {format_display_time(ws.last_modified)}  {ws.folder or '(no folder)'}"
        if counts:
            conversations = asyncio.run(fetch_workspace_conversations(ws.id, paths))
            line += f"  [{len(conversations)} conversations]"
        click.echo(line)


@cli.command()
@click.argument("workspace_id")
@click.option("--json", "as_json", is_flag=True, help="Print the conversation list as JSON")
@click.option("--markdown", "as_markdown", is_flag=True, help="Print every conversation as Markdown")
@click.pass_obj
def conversations(config: Config, workspace_id: str, as_json: bool, as_markdown: bool) -> None:
    """Show the reconciled conversations of a workspace."""
    paths = resolve_paths(config)
    found = asyncio.run(fetch_workspace_conversations(workspace_id, paths))

    if as_json:
        payload = {"conversations": [conversation.to_dict() for conversation in found]}
        click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    if not found:
        click.echo(f"No conversations found for workspace {workspace_id}", err=True)
        sys.exit(1)

    if as_markdown:
        for conversation in found:
            click.echo(conversation_to_markdown(conversation))
        return

    click.echo(f"Found {len(found)} conversations:\n")
    for conversation in found:
        print_conversation(conversation)


@cli.command()
@click.argument("workspace_ids", nargs=-1)
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path, file_okay=False),
    help="Directory for the zip archive (defaults to export.output_dir)",
)
@click.pass_obj
def export(config: Config, workspace_ids: tuple[str, ...], output: Path | None) -> None:
    """Export conversations as Markdown in a zip archive.

    Without WORKSPACE_IDS every workspace is exported.
    """
    paths = resolve_paths(config)
    try:
        result = asyncio.run(
            export_workspaces(
                paths,
                list(workspace_ids) or None,
                prefix=config.export.archive_prefix,
            )
        )
    except CursorHistoryError as e:
        click.echo(f"Error exporting conversations: {e}", err=True)
        sys.exit(1)

    output_dir = output or config.export.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)
    archive_path = output_dir / result.filename
    archive_path.write_bytes(result.data)

    click.echo(
        f"Exported {result.conversation_count} conversations "
        f"from {result.workspace_count} workspaces to {archive_path}"
    )


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
