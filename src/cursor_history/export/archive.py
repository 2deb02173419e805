"""Zip packaging of Markdown exports.

Archive layout:
    <prefix>_<YYYYMMDDHHMMSS>[_<workspace-id>].zip
        <workspace-id>/<conversation title>.md
"""

import io
import re
import zipfile
from dataclasses import dataclass
from datetime import datetime

from cursor_history.config import DEFAULT_ARCHIVE_PREFIX, StoragePaths
from cursor_history.errors import NoConversationsFoundError
from cursor_history.export.markdown import conversation_to_markdown
from cursor_history.logging import get_logger
from cursor_history.models import Conversation
from cursor_history.reconciler.fetch import fetch_many
from cursor_history.workspaces import workspace_ids as discover_workspace_ids

logger = get_logger("export")

UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_filename(name: str) -> str:
    """Replace characters that are unsafe in file names with underscores.

    A single trailing dot is replaced as well.
    """
    sanitized = UNSAFE_FILENAME_CHARS.sub("_", name)
    if sanitized.endswith("."):
        sanitized = sanitized[:-1] + "_"
    return sanitized


def timestamp_string(now: datetime | None = None) -> str:
    """Local time as YYYYMMDDHHMMSS."""
    if now is None:
        now = datetime.now()
    return now.strftime("%Y%m%d%H%M%S")


def archive_filename(
    prefix: str = DEFAULT_ARCHIVE_PREFIX,
    now: datetime | None = None,
    workspace_id: str | None = None,
) -> str:
    """Build the archive file name, tagged with the workspace for single exports."""
    name = f"{prefix}_{timestamp_string(now)}"
    if workspace_id is not None:
        name += f"_{sanitize_filename(workspace_id)}"
    return f"{name}.zip"


def conversation_filename(conversation: Conversation) -> str:
    """Markdown file name of a conversation inside its workspace folder."""
    return sanitize_filename(conversation.title or conversation.id) + ".md"


def build_archive(conversations_by_workspace: dict[str, list[Conversation]]) -> bytes:
    """Package conversations as Markdown files in a zip archive.

    Args:
        conversations_by_workspace: Conversations keyed by workspace id;
            workspaces without conversations get no folder

    Returns:
        The zip archive bytes
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for workspace_id, conversations in conversations_by_workspace.items():
            if not conversations:
                continue
            folder = sanitize_filename(workspace_id)

            # Same-named conversations overwrite each other, last one wins
            files: dict[str, str] = {}
            for conversation in conversations:
                files[conversation_filename(conversation)] = conversation_to_markdown(conversation)

            for filename, content in files.items():
                zf.writestr(f"{folder}/{filename}", content)
    return buffer.getvalue()


@dataclass
class ExportResult:
    """A finished export archive."""

    filename: str
    data: bytes
    workspace_count: int
    conversation_count: int


async def export_workspaces(
    paths: StoragePaths,
    workspace_ids: list[str] | None = None,
    prefix: str = DEFAULT_ARCHIVE_PREFIX,
    now: datetime | None = None,
) -> ExportResult:
    """Reconcile and package one, several or all workspaces.

    Args:
        paths: Resolved storage locations
        workspace_ids: One id for a single-workspace export, several ids for
            a multi-workspace export, or None for every workspace directory
        prefix: Archive file name prefix
        now: Time used for the archive name (defaults to now)

    Returns:
        ExportResult with the archive name and bytes

    Raises:
        NoConversationsFoundError: If no requested workspace has conversations
    """
    if workspace_ids:
        requested = list(workspace_ids)
    else:
        requested = discover_workspace_ids(paths.workspace_root)

    results = await fetch_many(requested, paths)
    found = {workspace_id: convs for workspace_id, convs in results.items() if convs}
    if not found:
        raise NoConversationsFoundError(list(workspace_ids) if workspace_ids else None)

    single = workspace_ids[0] if workspace_ids and len(workspace_ids) == 1 else None
    conversation_count = sum(len(convs) for convs in found.values())
    result = ExportResult(
        filename=archive_filename(prefix, now, single),
        data=build_archive(found),
        workspace_count=len(found),
        conversation_count=conversation_count,
    )
    logger.info(
        "Built export archive: filename=%s workspaces=%d conversations=%d",
        result.filename,
        result.workspace_count,
        result.conversation_count,
    )
    return result
