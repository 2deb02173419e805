"""Discovery of Cursor workspaces under the workspace storage root.

Layout:
    <workspaceStorage>/<hash>/state.vscdb     - Workspace database
    <workspaceStorage>/<hash>/workspace.json  - {"folder": "file:///path"} or
                                                {"workspace": "file:///x.code-workspace"}
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from cursor_history.config import WORKSPACE_DB_NAME
from cursor_history.logging import get_logger
from cursor_history.timestamps import format_instant, parse_instant

logger = get_logger("workspaces")


@dataclass
class WorkspaceInfo:
    """A workspace storage directory."""

    id: str
    path: Path
    folder: str | None
    last_modified: str  # ISO-8601 instant
    has_database: bool

    @property
    def db_path(self) -> Path:
        return self.path / WORKSPACE_DB_NAME

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "folder": self.folder,
            "lastModified": self.last_modified,
            "hasDatabase": self.has_database,
        }


def read_workspace_folder(workspace_dir: Path) -> str | None:
    """Read the opened folder (or workspace file) from workspace.json.

    Args:
        workspace_dir: Workspace storage directory

    Returns:
        Folder path without the file:// scheme, or None if unavailable
    """
    workspace_json = workspace_dir / "workspace.json"
    if not workspace_json.exists():
        return None

    try:
        with open(workspace_json, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError):
        logger.debug("Unreadable workspace.json: path=%s", workspace_json)
        return None

    if not isinstance(data, dict):
        return None
    folder = data.get("folder") or data.get("workspace")
    if not isinstance(folder, str) or not folder:
        return None
    if folder.startswith("file://"):
        return folder[7:]  # Strip "file://" prefix
    return folder


def workspace_ids(workspace_root: Path) -> list[str]:
    """List workspace directory names under the storage root.

    Returns an empty list when the root does not exist.
    """
    if not workspace_root.is_dir():
        return []
    return sorted(entry.name for entry in workspace_root.iterdir() if entry.is_dir())


def list_workspaces(workspace_root: Path) -> list[WorkspaceInfo]:
    """Describe every workspace under the storage root, newest first."""
    workspaces: list[WorkspaceInfo] = []
    for workspace_id in workspace_ids(workspace_root):
        workspace_dir = workspace_root / workspace_id
        db_path = workspace_dir / WORKSPACE_DB_NAME
        has_database = db_path.exists()
        stat_target = db_path if has_database else workspace_dir
        try:
            mtime = stat_target.stat().st_mtime
        except OSError:
            mtime = 0.0
        workspaces.append(
            WorkspaceInfo(
                id=workspace_id,
                path=workspace_dir,
                folder=read_workspace_folder(workspace_dir),
                last_modified=format_instant(datetime.fromtimestamp(mtime, tz=timezone.utc)),
                has_database=has_database,
            )
        )

    workspaces.sort(key=lambda ws: parse_instant(ws.last_modified), reverse=True)
    logger.debug("Discovered workspaces: root=%s count=%d", workspace_root, len(workspaces))
    return workspaces
