"""Shared fixtures building Cursor-shaped state.vscdb databases."""

import json
import logging
import sqlite3
from pathlib import Path

import pytest

from cursor_history.config import StoragePaths

CHAT_DATA_KEY = "workbench.panel.aichat.view.aichat.chatdata"
COMPOSER_METADATA_KEY = "composer.composerData"


def create_kv_db(db_path: Path, table: str, items: dict[str, object]) -> Path:
    """Create a SQLite key/value table like Cursor's state.vscdb.

    Args:
        db_path: Database file to create
        table: ItemTable or cursorDiskKV
        items: Keys mapped to values; dicts and lists are stored as JSON,
               strings and bytes are stored verbatim

    Returns:
        Path to the database
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        conn.execute(f"CREATE TABLE IF NOT EXISTS {table} ([key] TEXT PRIMARY KEY, value BLOB)")
        for key, value in items.items():
            if isinstance(value, (dict, list)):
                value = json.dumps(value)
            conn.execute(f"INSERT OR REPLACE INTO {table} ([key], value) VALUES (?, ?)", (key, value))
        conn.commit()
    finally:
        conn.close()
    return db_path


class CursorStorage:
    """Builder for a fake Cursor User directory."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.workspace_root = root / "workspaceStorage"
        self.global_db = root / "globalStorage" / "state.vscdb"
        self.workspace_root.mkdir(parents=True, exist_ok=True)

    @property
    def paths(self) -> StoragePaths:
        return StoragePaths(workspace_root=self.workspace_root, global_db=self.global_db)

    def add_workspace(
        self,
        workspace_id: str,
        chat_data: object | None = None,
        composer_metadata: object | None = None,
        folder: str | None = None,
    ) -> Path:
        items: dict[str, object] = {}
        if chat_data is not None:
            items[CHAT_DATA_KEY] = chat_data
        if composer_metadata is not None:
            items[COMPOSER_METADATA_KEY] = composer_metadata
        workspace_dir = self.workspace_root / workspace_id
        db_path = create_kv_db(workspace_dir / "state.vscdb", "ItemTable", items)
        if folder is not None:
            (workspace_dir / "workspace.json").write_text(json.dumps({"folder": folder}))
        return db_path

    def add_global(self, items: dict[str, object]) -> Path:
        return create_kv_db(self.global_db, "cursorDiskKV", items)


@pytest.fixture
def storage(tmp_path: Path) -> CursorStorage:
    """Empty fake Cursor storage (no workspaces, no global database)."""
    return CursorStorage(tmp_path / "User")


@pytest.fixture(autouse=True)
def reset_package_logging():
    """Drop handlers installed by setup_logging between tests."""
    yield
    root = logging.getLogger("cursor_history")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
