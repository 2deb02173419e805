"""Per-workspace conversation fetch.

Runs the store I/O for one workspace and feeds the results through a
Reconciliation. Nothing raised while doing so escapes: a missing database,
an unreadable store or a malformed top-level blob all yield an empty list,
with the cause in the log.
"""

import json
from contextlib import AsyncExitStack

from cursor_history.config import StoragePaths
from cursor_history.logging import get_logger
from cursor_history.models import Conversation
from cursor_history.reconciler.engine import BUBBLE_KEY_PREFIX, Reconciliation
from cursor_history.reconciler.store import GLOBAL_TABLE, WORKSPACE_TABLE, KeyValueStore

logger = get_logger("fetch")

CHAT_DATA_KEY = "workbench.panel.aichat.view.aichat.chatdata"
COMPOSER_METADATA_KEY = "composer.composerData"


def _load_blob(value: str, what: str) -> dict:
    data = json.loads(value)
    if not isinstance(data, dict):
        raise ValueError(f"{what} is not a JSON object")
    return data


async def _reconcile(workspace_id: str, paths: StoragePaths, stack: AsyncExitStack) -> list[Conversation]:
    workspace_store = await stack.enter_async_context(
        KeyValueStore(paths.workspace_db(workspace_id), WORKSPACE_TABLE)
    )
    chat_value = await workspace_store.get(CHAT_DATA_KEY)
    composer_value = await workspace_store.get(COMPOSER_METADATA_KEY)

    if not chat_value and not composer_value:
        logger.info("No chat data in workspace: workspace=%s", workspace_id)
        return []

    run = Reconciliation()

    if chat_value:
        run.ingest_chat_tabs(_load_blob(chat_value, "chat data"))

    if composer_value:
        metadata = _load_blob(composer_value, "composer metadata")
        global_store = await stack.enter_async_context(KeyValueStore(paths.global_db, GLOBAL_TABLE))

        run.index_composers(metadata)
        bodies = await global_store.get_many(run.composer_keys())
        run.ingest_composers([json.loads(body) for body in bodies])

        rows = await global_store.scan_prefix(f"{BUBBLE_KEY_PREFIX}:")
        run.ingest_global_bubbles(rows)

    return run.finalize()


async def fetch_workspace_conversations(workspace_id: str, paths: StoragePaths) -> list[Conversation]:
    """Reconcile every conversation of one workspace.

    Args:
        workspace_id: Directory name under the workspace storage root
        paths: Resolved storage locations

    Returns:
        Conversations sorted by last update (most recent first); empty when
        the workspace has no database or anything fails along the way
    """
    db_path = paths.workspace_db(workspace_id)
    if not db_path.exists():
        logger.warning("Database not found for workspace: workspace=%s path=%s", workspace_id, db_path)
        return []

    try:
        async with AsyncExitStack() as stack:
            conversations = await _reconcile(workspace_id, paths, stack)
    except Exception:
        logger.exception("Failed to get conversations for workspace: workspace=%s", workspace_id)
        return []

    logger.info(
        "Reconciled workspace: workspace=%s conversations=%d",
        workspace_id,
        len(conversations),
    )
    return conversations


async def fetch_many(workspace_ids: list[str], paths: StoragePaths) -> dict[str, list[Conversation]]:
    """Reconcile several workspaces one after another.

    Returns:
        Mapping of workspace id to its conversations, in request order
    """
    results: dict[str, list[Conversation]] = {}
    for workspace_id in workspace_ids:
        results[workspace_id] = await fetch_workspace_conversations(workspace_id, paths)
    return results
